"""
Tests for record validation and the aggregator.
"""

import threading
import time
from datetime import timedelta

import pytest

from agent_outreach.aggregation.aggregator import Aggregator
from agent_outreach.aggregation.validation import (
    INVALID_IDENTITY,
    MISSING_IDENTITY,
    MISSING_NAME,
    REGION_NOT_ALLOWED,
    clean_candidate,
    dedup_key,
    is_valid_email,
    validate_identity,
)
from agent_outreach.collectors.collector_base import CandidateRecord, CollectorConfig
from agent_outreach.collectors.sample import SampleCollector
from agent_outreach.errors import CollectorError, ValidationError


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _agent(name="Jane Doe", email="jane@example.com", city="Austin", state="TX", **kwargs):
    return dict(name=name, email=email, city=city, state=state, **kwargs)


class _FailingCollector:
    def __init__(self, name="broken", exc=None):
        self.name = name
        self._exc = exc or CollectorError(name, "site unreachable")

    def produce(self, config):
        raise self._exc


class _SlowCollector:
    """Tracks how many collectors run at the same time."""

    active = 0
    peak = 0
    lock = threading.Lock()

    def __init__(self, name):
        self.name = name

    def produce(self, config):
        with _SlowCollector.lock:
            _SlowCollector.active += 1
            _SlowCollector.peak = max(_SlowCollector.peak, _SlowCollector.active)
        time.sleep(0.05)
        with _SlowCollector.lock:
            _SlowCollector.active -= 1
        return [CandidateRecord(name=self.name, email=f"{self.name}@example.com", state="TX")]


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

class TestValidation:
    def test_valid_email(self):
        assert is_valid_email("john.smith@realestate.com")
        assert is_valid_email("  Mixed.Case@Example.COM ")

    def test_invalid_email(self):
        assert not is_valid_email("")
        assert not is_valid_email(None)
        assert not is_valid_email("invalid-email")
        assert not is_valid_email("two words@example.com")
        assert not is_valid_email("no-tld@example")

    def test_validate_identity_normalizes(self):
        assert validate_identity("  Jane@Example.COM ") == "jane@example.com"

    def test_validate_identity_rejects_empty(self):
        with pytest.raises(ValidationError, match="no e-mail"):
            validate_identity("   ")

    def test_validate_identity_rejects_malformed(self):
        with pytest.raises(ValidationError, match="Invalid"):
            validate_identity("not-an-email")

    def test_clean_candidate(self):
        record = CandidateRecord(
            name="  John   Smith ",
            email=" JOHN@Example.com ",
            city=" New  York",
            state=" ny ",
        )
        cleaned = clean_candidate(record)
        assert cleaned.name == "John Smith"
        assert cleaned.email == "john@example.com"
        assert cleaned.city == "New York"
        assert cleaned.state == "NY"

    def test_dedup_key_is_case_and_space_insensitive(self):
        assert dedup_key("A@X.com", "John  Smith", "Austin") == dedup_key(
            "a@x.com", "john smith", " austin "
        )

    def test_dedup_key_distinguishes_city(self):
        assert dedup_key("a@x.com", "John", "Austin") != dedup_key("a@x.com", "John", "Dallas")


# ---------------------------------------------------------------------------
# Aggregator
# ---------------------------------------------------------------------------

class TestAggregator:
    def setup_method(self):
        self.aggregator = Aggregator()
        self.config = CollectorConfig(max_records=100)

    def test_sample_collector_records_all_survive(self):
        result = self.aggregator.collect([SampleCollector()], config=self.config)
        assert len(result.records) == 8
        assert result.errors == []
        assert result.per_source == {"sample": 8}

    def test_duplicates_keep_first_occurrence(self):
        first = SampleCollector([_agent(company="First Realty")], name="first")
        second = SampleCollector(
            [_agent(name="JANE DOE", email="JANE@example.com", company="Second Realty")],
            name="second",
        )
        result = self.aggregator.collect([first, second], config=self.config)

        assert len(result.records) == 1
        assert result.duplicates_dropped == 1
        assert result.records[0].company == "First Realty"
        assert result.records[0].source == "first"

    def test_same_email_different_city_is_kept(self):
        collector = SampleCollector([_agent(city="Austin"), _agent(city="Dallas")])
        result = self.aggregator.collect([collector], config=self.config)
        assert len(result.records) == 2

    def test_no_two_records_share_a_dedup_key(self):
        agents = [_agent(), _agent(), _agent(email="other@example.com"), _agent()]
        result = self.aggregator.collect([SampleCollector(agents)], config=self.config)
        keys = [r.dedup_key for r in result.records]
        assert len(keys) == len(set(keys)) == 2

    def test_drop_reasons(self):
        agents = [
            _agent(email=""),
            _agent(email="invalid-email"),
            _agent(name=""),
            _agent(state="ON"),
            _agent(),
        ]
        result = self.aggregator.collect([SampleCollector(agents)], config=self.config)
        assert len(result.records) == 1
        assert result.drop_counts() == {
            MISSING_IDENTITY: 1,
            INVALID_IDENTITY: 1,
            MISSING_NAME: 1,
            REGION_NOT_ALLOWED: 1,
        }

    def test_empty_region_set_allows_all(self):
        aggregator = Aggregator(allowed_regions=[])
        result = aggregator.collect(
            [SampleCollector([_agent(state="ON")])], config=self.config
        )
        assert len(result.records) == 1

    def test_identity_is_lowercased(self):
        result = self.aggregator.collect(
            [SampleCollector([_agent(email="Jane.Doe@Example.COM")])], config=self.config
        )
        assert result.records[0].identity == "jane.doe@example.com"

    def test_failed_collector_does_not_stop_others(self):
        collectors = [
            SampleCollector([_agent(email="a@example.com")], name="a"),
            _FailingCollector(),
            SampleCollector([_agent(email="b@example.com")], name="b"),
        ]
        result = self.aggregator.collect(collectors, config=self.config)

        assert [r.identity for r in result.records] == ["a@example.com", "b@example.com"]
        assert len(result.errors) == 1
        assert result.errors[0].source == "broken"
        assert "broken" not in result.per_source

    def test_unexpected_exception_becomes_collector_error(self):
        collectors = [_FailingCollector("flaky", exc=RuntimeError("boom"))]
        result = self.aggregator.collect(collectors, config=self.config)
        assert result.records == []
        assert result.errors[0].source == "flaky"
        assert result.errors[0].message == "boom"

    def test_output_follows_registration_order(self):
        collectors = [_SlowCollector(f"c{i}") for i in range(4)]
        result = self.aggregator.collect(collectors, concurrency_limit=4, config=self.config)
        assert [r.name for r in result.records] == ["c0", "c1", "c2", "c3"]

    def test_concurrency_limit_is_respected(self):
        _SlowCollector.active = 0
        _SlowCollector.peak = 0
        collectors = [_SlowCollector(f"c{i}") for i in range(6)]
        self.aggregator.collect(collectors, concurrency_limit=2, config=self.config)
        assert _SlowCollector.peak <= 2

    def test_invalid_concurrency_limit(self):
        with pytest.raises(ValueError):
            self.aggregator.collect([SampleCollector()], concurrency_limit=0)

    def test_no_collectors(self):
        result = self.aggregator.collect([], config=self.config)
        assert result.records == []
        assert result.completed_at is not None
        assert result.started_at.utcoffset() == timedelta(0)
        assert result.completed_at.utcoffset() == timedelta(0)

    def test_summary(self):
        result = self.aggregator.collect(
            [SampleCollector(), _FailingCollector()], config=self.config
        )
        text = result.summary()
        assert "Canonical records: 8" in text
        assert "broken: site unreachable" in text

"""
Aggregator: run collectors concurrently, then merge, filter, and dedup.

Collectors run on a bounded thread pool and fail in isolation. Every future
is joined before merging starts, so the merge always sees the complete
output of every collector that succeeded, concatenated in registration
order.
"""

from __future__ import annotations

import logging
from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable, Optional, Sequence

from agent_outreach.aggregation.validation import (
    US_STATES,
    clean_candidate,
    dedup_key,
    drop_reason,
)
from agent_outreach.collectors.collector_base import (
    CandidateRecord,
    Collector,
    CollectorConfig,
)
from agent_outreach.errors import CollectorError
from agent_outreach.store.records import CanonicalRecord

logger = logging.getLogger(__name__)


@dataclass
class DroppedRecord:
    """A candidate rejected by the validity filter."""

    record: CandidateRecord
    reason: str


@dataclass
class AggregationResult:
    """Outcome of one aggregation pass."""

    records: list[CanonicalRecord] = field(default_factory=list)
    errors: list[CollectorError] = field(default_factory=list)
    dropped: list[DroppedRecord] = field(default_factory=list)
    duplicates_dropped: int = 0
    per_source: dict[str, int] = field(default_factory=dict)
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: Optional[datetime] = None

    def drop_counts(self) -> dict[str, int]:
        return dict(Counter(d.reason for d in self.dropped))

    def summary(self) -> str:
        """Format a human-readable aggregation summary."""
        lines = [
            "=== Collection Report ===",
            f"Canonical records: {len(self.records)}",
            f"Duplicates:        {self.duplicates_dropped}",
            f"Dropped:           {len(self.dropped)}",
        ]
        for reason, count in sorted(self.drop_counts().items()):
            lines.append(f"  {reason:20s}: {count}")
        lines.append("")
        lines.append("Per source:")
        for source, count in self.per_source.items():
            lines.append(f"  {source:30s}: {count}")
        if self.errors:
            lines.append("")
            lines.append(f"Collector errors ({len(self.errors)}):")
            for err in self.errors:
                lines.append(f"  {err.source}: {err.message}")
        lines.append("=== End Report ===")
        return "\n".join(lines)


class Aggregator:
    """
    Merge collector output into a deduplicated canonical record set.

    Usage:
        aggregator = Aggregator()
        result = aggregator.collect([SampleCollector(), CsvFileCollector(path)],
                                    concurrency_limit=2)
        store.append(result.records)
    """

    def __init__(self, allowed_regions: Optional[Iterable[str]] = US_STATES) -> None:
        self.allowed_regions = frozenset(allowed_regions) if allowed_regions else frozenset()

    def collect(
        self,
        collectors: Sequence[Collector],
        concurrency_limit: int = 2,
        config: Optional[CollectorConfig] = None,
    ) -> AggregationResult:
        """
        Run every collector, then merge, filter, and dedup their output.

        Args:
            collectors: Collectors in registration order.
            concurrency_limit: Maximum collectors running at once.
            config: Settings passed to each collector's ``produce``.

        Returns:
            An AggregationResult; collector failures are reported in
            ``errors`` and never raised.

        Raises:
            ValueError: If concurrency_limit is less than 1.
        """
        if concurrency_limit < 1:
            raise ValueError(f"concurrency_limit must be >= 1, got {concurrency_limit}")

        cfg = config or CollectorConfig()
        result = AggregationResult()
        outputs = self._run_collectors(collectors, concurrency_limit, cfg, result)

        merged: list[CandidateRecord] = []
        for collector, records in zip(collectors, outputs):
            if records is None:
                continue
            result.per_source[collector.name] = len(records)
            merged.extend(records)

        result.records = self._merge(merged, result)
        result.completed_at = datetime.now(timezone.utc)
        logger.info(
            "Aggregated %d canonical records (%d duplicates, %d dropped, %d collector errors)",
            len(result.records),
            result.duplicates_dropped,
            len(result.dropped),
            len(result.errors),
        )
        return result

    def _run_collectors(
        self,
        collectors: Sequence[Collector],
        concurrency_limit: int,
        config: CollectorConfig,
        result: AggregationResult,
    ) -> list[Optional[list[CandidateRecord]]]:
        """Fan out on a bounded pool and join all futures before returning."""
        outputs: list[Optional[list[CandidateRecord]]] = [None] * len(collectors)
        if not collectors:
            return outputs

        with ThreadPoolExecutor(max_workers=concurrency_limit) as executor:
            futures = [executor.submit(c.produce, config) for c in collectors]
            for i, (collector, future) in enumerate(zip(collectors, futures)):
                try:
                    produced = future.result()
                except CollectorError as e:
                    logger.error("Collector %s failed: %s", collector.name, e.message)
                    result.errors.append(e)
                    continue
                except Exception as e:
                    logger.exception("Collector %s raised unexpectedly", collector.name)
                    result.errors.append(CollectorError(collector.name, str(e) or type(e).__name__))
                    continue
                outputs[i] = list(produced or [])
                logger.info("Collector %s produced %d records", collector.name, len(outputs[i]))
        return outputs

    def _merge(
        self,
        candidates: list[CandidateRecord],
        result: AggregationResult,
    ) -> list[CanonicalRecord]:
        """Single sequential pass: clean, filter, then keep the first of each key."""
        seen: set[str] = set()
        canonical: list[CanonicalRecord] = []

        for raw in candidates:
            record = clean_candidate(raw)
            reason = drop_reason(record, self.allowed_regions)
            if reason is not None:
                result.dropped.append(DroppedRecord(record=record, reason=reason))
                continue

            key = dedup_key(record.email, record.name, record.city)
            if key in seen:
                result.duplicates_dropped += 1
                continue
            seen.add(key)

            canonical.append(CanonicalRecord(
                identity=record.email,
                name=record.name,
                city=record.city,
                state=record.state,
                company=record.company,
                profile_url=record.profile_url,
                source=record.source,
                dedup_key=key,
            ))

        return canonical

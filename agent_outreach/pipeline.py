"""
Outreach pipeline: collect, store, then dispatch.

Wires the collectors, the aggregator, the record store, the delivery ledger,
and the dispatch engine together from a single OutreachSettings instance.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Callable, Optional, Sequence

from agent_outreach.aggregation.aggregator import AggregationResult, Aggregator
from agent_outreach.collectors.collector_base import Collector, CollectorConfig
from agent_outreach.collectors.registry import build_collectors
from agent_outreach.dispatch.config import OutreachSettings
from agent_outreach.dispatch.engine import BatchResult, DispatchEngine
from agent_outreach.dispatch.ledger import DeliveryLedger
from agent_outreach.dispatch.messages import MessageComposer
from agent_outreach.store.records import RecordFilter, RecordStore
from agent_outreach.transport.transport_base import Transport

logger = logging.getLogger(__name__)


@dataclass
class PipelineReport:
    """Result of a full collect-then-dispatch run."""

    collection: AggregationResult
    appended: int
    batch: BatchResult

    def summary(self) -> str:
        return "\n\n".join([
            self.collection.summary(),
            f"Newly stored records: {self.appended}",
            self.batch.summary(),
        ])


class OutreachPipeline:
    """
    Orchestrate an outreach campaign.

    Usage:
        settings = load_settings("outreach.json")
        pipeline = OutreachPipeline.from_settings(settings, transport=SmtpTransport(settings.smtp))
        report = pipeline.run(max_batch=20)
        print(report.summary())
    """

    def __init__(
        self,
        settings: OutreachSettings,
        store: RecordStore,
        ledger: DeliveryLedger,
        transport: Transport,
        collectors: Sequence[Collector],
        composer: Optional[MessageComposer] = None,
        sleep: Optional[Callable[[float], None]] = None,
        today: Optional[Callable[[], date]] = None,
    ) -> None:
        self.settings = settings
        self.store = store
        self.ledger = ledger
        self.collectors = list(collectors)
        self.aggregator = Aggregator(allowed_regions=settings.allowed_regions)
        self.composer = composer or MessageComposer(
            from_address=settings.smtp.from_address,
            from_name=settings.smtp.from_name,
        )
        engine_kwargs = {}
        if sleep is not None:
            engine_kwargs["sleep"] = sleep
        if today is not None:
            engine_kwargs["today"] = today
        self.engine = DispatchEngine(ledger, transport, self.composer, settings, **engine_kwargs)

    @classmethod
    def from_settings(
        cls,
        settings: OutreachSettings,
        transport: Transport,
        **kwargs,
    ) -> OutreachPipeline:
        """Build the store, ledger, and collectors described by ``settings``.

        Raises:
            PersistenceError: If an existing ledger snapshot is unreadable.
            ConfigError: If a source definition is invalid.
        """
        store = RecordStore(settings.db_url)
        ledger = DeliveryLedger(settings.ledger_path, max_per_day=settings.max_per_day)
        ledger.load()
        collectors = build_collectors(settings.sources)
        return cls(settings, store, ledger, transport, collectors, **kwargs)

    def collect(self) -> AggregationResult:
        """Run every collector and append the canonical records to the store."""
        config = CollectorConfig(
            max_records=self.settings.max_records_per_source,
            timeout=self.settings.collector_timeout,
        )
        result = self.aggregator.collect(
            self.collectors,
            concurrency_limit=self.settings.collector_concurrency_limit,
            config=config,
        )
        self.store.append(result.records)
        return result

    def eligible_records(self):
        """Stored records that carry an identity, in insertion order."""
        return self.store.list(RecordFilter(with_identity_only=True))

    def dispatch(self, max_batch: Optional[int] = None) -> BatchResult:
        candidates = self.eligible_records()
        logger.info("Found %d stored agents with e-mail addresses", len(candidates))
        return self.engine.run_batch(candidates, max_batch=max_batch)

    def run(self, max_batch: Optional[int] = None) -> PipelineReport:
        before = self.store.count()
        collection = self.collect()
        appended = self.store.count() - before
        batch = self.dispatch(max_batch=max_batch)
        return PipelineReport(collection=collection, appended=appended, batch=batch)

    def request_stop(self) -> None:
        """Ask the engine to stop after the recipient in flight."""
        self.engine.request_stop()

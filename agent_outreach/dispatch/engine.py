"""
Dispatch engine: sequential, throttled, retrying sender.

Processes canonical records in input order, one at a time:

    1. skip recipients the ledger already marks SENT or FAILED;
    2. stop the batch when the daily quota (or the batch limit) is reached;
    3. reject unusable identities as FAILED without contacting the transport;
    4. attempt delivery up to ``max_attempts`` times with linear backoff;
    5. record the outcome in the ledger (persisted immediately);
    6. wait ``per_message_delay`` after every attempted recipient.

The engine is strictly sequential. The throttle and the daily quota apply to
one ordered stream of attempts.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timezone
from typing import TYPE_CHECKING, Callable, Optional, Sequence

from agent_outreach.aggregation.validation import validate_identity
from agent_outreach.dispatch.config import OutreachSettings
from agent_outreach.dispatch.ledger import DeliveryLedger, DeliveryStatus
from agent_outreach.dispatch.messages import MessageComposer
from agent_outreach.errors import (
    QuotaExceeded,
    TransportError,
    ValidationError,
)
from agent_outreach.store.records import CanonicalRecord

if TYPE_CHECKING:
    from agent_outreach.transport.transport_base import Transport

logger = logging.getLogger(__name__)

# Outcome reasons
ALREADY_SENT = "already_sent"
PREVIOUSLY_FAILED = "previously_failed"
INVALID_IDENTITY = "invalid_identity"
DAILY_QUOTA_REACHED = "daily_quota_reached"
BATCH_LIMIT_REACHED = "batch_limit_reached"
STOPPED = "stopped"
DELIVERED = "delivered"
DELIVERY_FAILED = "delivery_failed"


@dataclass
class RecipientOutcome:
    """What happened to one candidate during a batch."""

    identity: str
    name: str
    status: DeliveryStatus
    reason: str
    attempts: int = 0
    variant: Optional[int] = None
    message_id: Optional[str] = None
    error: Optional[str] = None

    @property
    def skipped(self) -> bool:
        return self.reason in (ALREADY_SENT, PREVIOUSLY_FAILED)


@dataclass
class BatchResult:
    """Summary of one ``run_batch`` call."""

    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: Optional[datetime] = None
    attempted: int = 0
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
    pending: int = 0
    partial: bool = False
    interrupted: bool = False
    daily_count: int = 0
    outcomes: list[RecipientOutcome] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.outcomes)

    def by_status(self, status: DeliveryStatus) -> list[RecipientOutcome]:
        return [o for o in self.outcomes if o.status is status]

    def summary(self) -> str:
        """Format a human-readable batch summary."""
        duration = ""
        if self.completed_at:
            elapsed = (self.completed_at - self.started_at).total_seconds()
            duration = f" in {elapsed:.1f}s"

        lines = [
            "=== Dispatch Report ===",
            f"Started:   {self.started_at.strftime('%Y-%m-%d %H:%M:%S UTC')}",
        ]
        if self.completed_at:
            lines.append(
                f"Finished:  {self.completed_at.strftime('%Y-%m-%d %H:%M:%S UTC')}{duration}"
            )
        lines.extend([
            f"Candidates: {self.total}",
            f"Attempted:  {self.attempted}",
            f"Sent:       {self.succeeded}",
            f"Failed:     {self.failed}",
            f"Skipped:    {self.skipped}",
            f"Pending:    {self.pending}",
            f"Sent today: {self.daily_count}",
        ])
        if self.partial:
            lines.append("Result is PARTIAL: the batch stopped before the end of the input.")
        if self.interrupted:
            lines.append("Batch was interrupted by a stop request.")
        lines.append("")

        for i, o in enumerate(self.outcomes, 1):
            label = "SKIP" if o.skipped else o.status.value.upper()
            lines.append(f"  [{i:3d}] {label:7s} | {o.identity[:40]:40s} | {o.reason}")
            if o.error:
                lines.append(f"         Error: {o.error}")

        lines.append("")
        lines.append("=== End Report ===")
        return "\n".join(lines)


class DispatchEngine:
    """
    Send one message per canonical record under quota, throttle, and retry rules.

    Usage:
        ledger = DeliveryLedger(settings.ledger_path, settings.max_per_day)
        ledger.load()
        engine = DispatchEngine(ledger, SmtpTransport(settings.smtp),
                                MessageComposer(...), settings)
        result = engine.run_batch(store.list(RecordFilter(with_identity_only=True)))
        print(result.summary())
    """

    def __init__(
        self,
        ledger: DeliveryLedger,
        transport: Transport,
        composer: MessageComposer,
        settings: OutreachSettings,
        sleep: Callable[[float], None] = time.sleep,
        today: Callable[[], date] = date.today,
    ) -> None:
        self.ledger = ledger
        self.transport = transport
        self.composer = composer
        self.settings = settings
        self._sleep = sleep
        self._today = today
        self._variant_index = 0
        self._stop_requested = False
        self.in_flight: Optional[str] = None

    def request_stop(self) -> None:
        """Stop after the recipient currently in flight.

        A request made before ``run_batch`` starts holds until that batch sees
        it; the flag clears when the batch ends.
        """
        self._stop_requested = True

    def run_batch(
        self,
        candidates: Sequence[CanonicalRecord],
        max_batch: Optional[int] = None,
    ) -> BatchResult:
        """
        Dispatch to each candidate in order.

        Args:
            candidates: Canonical records; order is preserved.
            max_batch: Maximum recipients to attempt in this batch.

        Returns:
            A BatchResult. Per-recipient errors are captured in it, never raised.
        """
        result = BatchResult()
        total = len(candidates)
        logger.info("Starting batch of %d candidates", total)

        try:
            for position, record in enumerate(candidates):
                identity = (record.identity or "").strip().lower()
                status = self.ledger.status(identity) if identity else DeliveryStatus.PENDING

                if status is DeliveryStatus.SENT:
                    self._skip(result, record, identity, status, ALREADY_SENT)
                    continue
                if status is DeliveryStatus.FAILED:
                    self._skip(result, record, identity, status, PREVIOUSLY_FAILED)
                    continue

                stop_reason = self._stop_reason(result, max_batch)
                if stop_reason is not None:
                    self._leave_pending(result, candidates[position:], stop_reason)
                    break

                try:
                    identity = validate_identity(record.identity)
                except ValidationError as e:
                    self._reject(result, record, identity, str(e))
                    continue

                outcome = self._deliver(record, identity)
                result.outcomes.append(outcome)
                result.attempted += 1
                if outcome.status is DeliveryStatus.SENT:
                    result.succeeded += 1
                else:
                    result.failed += 1

                self._sleep(self.settings.per_message_delay)
        finally:
            self.in_flight = None
            self._stop_requested = False
            self.ledger.flush()

        result.daily_count = self.ledger.current_quota(self._today()).count
        result.completed_at = datetime.now(timezone.utc)
        logger.info(
            "Batch finished: %d attempted, %d sent, %d failed, %d skipped, %d pending%s",
            result.attempted,
            result.succeeded,
            result.failed,
            result.skipped,
            result.pending,
            " (partial)" if result.partial else "",
        )
        return result

    # ---- Batch control ----

    def _stop_reason(self, result: BatchResult, max_batch: Optional[int]) -> Optional[str]:
        if self._stop_requested:
            result.interrupted = True
            return STOPPED
        if self.ledger.current_quota(self._today()).exhausted:
            logger.warning("Daily limit of %d reached, stopping batch", self.ledger.max_per_day)
            return DAILY_QUOTA_REACHED
        if max_batch is not None and result.attempted >= max_batch:
            logger.info("Batch limit of %d reached", max_batch)
            return BATCH_LIMIT_REACHED
        return None

    def _leave_pending(
        self,
        result: BatchResult,
        remaining: Sequence[CanonicalRecord],
        reason: str,
    ) -> None:
        result.partial = True
        for record in remaining:
            identity = (record.identity or "").strip().lower()
            status = self.ledger.status(identity) if identity else DeliveryStatus.PENDING
            if status is DeliveryStatus.SENT:
                self._skip(result, record, identity, status, ALREADY_SENT)
                continue
            if status is DeliveryStatus.FAILED:
                self._skip(result, record, identity, status, PREVIOUSLY_FAILED)
                continue
            result.outcomes.append(RecipientOutcome(
                identity=identity,
                name=record.name,
                status=DeliveryStatus.PENDING,
                reason=reason,
            ))
            result.pending += 1

    def _skip(
        self,
        result: BatchResult,
        record: CanonicalRecord,
        identity: str,
        status: DeliveryStatus,
        reason: str,
    ) -> None:
        logger.debug("Skipping %s: %s", identity, reason)
        result.outcomes.append(RecipientOutcome(
            identity=identity, name=record.name, status=status, reason=reason
        ))
        result.skipped += 1

    def _reject(
        self,
        result: BatchResult,
        record: CanonicalRecord,
        identity: str,
        error: str,
    ) -> None:
        """Record an unusable identity as FAILED without contacting the transport."""
        logger.warning("Rejecting recipient %r: %s", identity, error)
        if identity:
            self.ledger.record_outcome(identity, DeliveryStatus.FAILED, 0, error=error)
        result.outcomes.append(RecipientOutcome(
            identity=identity,
            name=record.name,
            status=DeliveryStatus.FAILED,
            reason=INVALID_IDENTITY,
            error=error,
        ))
        result.failed += 1

    # ---- Delivery ----

    def _next_variant(self) -> int:
        variant = self._variant_index
        self._variant_index = (self._variant_index + 1) % self.composer.variant_count
        return variant

    def _deliver(self, record: CanonicalRecord, identity: str) -> RecipientOutcome:
        """Attempt delivery with bounded retry, then record the outcome."""
        self.in_flight = identity
        variant = self._next_variant()
        outcome = RecipientOutcome(
            identity=identity,
            name=record.name,
            status=DeliveryStatus.FAILED,
            reason=DELIVERY_FAILED,
            variant=variant,
        )

        try:
            message = self.composer.compose(replace(record, identity=identity), variant)
            max_attempts = self.settings.max_attempts
            last_error: Optional[str] = None

            for attempt in range(1, max_attempts + 1):
                outcome.attempts = attempt
                try:
                    receipt = self.transport.send(message)
                    if not receipt.success:
                        raise TransportError(receipt.detail or "Transport reported failure")
                except TransportError as e:
                    last_error = str(e)
                    if attempt < max_attempts:
                        wait = self.settings.backoff_base * attempt
                        logger.warning(
                            "Attempt %d/%d for %s failed (%s); retrying in %.1fs",
                            attempt, max_attempts, identity, last_error, wait,
                        )
                        self._sleep(wait)
                    continue

                outcome.status = DeliveryStatus.SENT
                outcome.reason = DELIVERED
                outcome.message_id = receipt.message_id
                self._record_sent(identity, attempt, variant)
                logger.info("Sent to %s on attempt %d (variant %d)", identity, attempt, variant)
                return outcome

            outcome.error = last_error
            logger.error(
                "Giving up on %s after %d attempts: %s", identity, max_attempts, last_error
            )
            self.ledger.record_outcome(
                identity, DeliveryStatus.FAILED, outcome.attempts, error=last_error, variant=variant
            )
        except Exception as e:
            # Anything unexpected is terminal for this recipient only
            logger.exception("Unexpected error while sending to %s", identity)
            outcome.status = DeliveryStatus.FAILED
            outcome.reason = DELIVERY_FAILED
            outcome.error = str(e) or type(e).__name__
            if self.ledger.status(identity) is DeliveryStatus.PENDING:
                self.ledger.record_outcome(
                    identity, DeliveryStatus.FAILED, outcome.attempts,
                    error=outcome.error, variant=variant,
                )
        finally:
            self.in_flight = None

        return outcome

    def _record_sent(self, identity: str, attempts: int, variant: int) -> None:
        try:
            self.ledger.increment_quota(self._today())
        except QuotaExceeded:
            # The quota was checked before the attempt
            logger.warning("Quota already full when recording %s", identity)
        self.ledger.record_outcome(identity, DeliveryStatus.SENT, attempts, variant=variant)

"""
Delivery ledger: persisted per-recipient status and the daily send quota.

The ledger is the single owner of delivery state. Every recorded outcome
triggers a full-state rewrite of a JSON snapshot (temp file, then atomic
rename), so an abrupt stop loses at most the in-flight recipient.

Durability is best effort: when a write fails the error is logged and kept
in ``last_persistence_error``, and the in-memory state stays authoritative
for the rest of the run.

Snapshot layout::

    {
      "sentIdentities": ["a@example.com"],
      "failedIdentities": ["b@example.com"],
      "dailyCount": 1,
      "lastResetDate": "2026-10-18",
      "lastUpdated": "2026-10-18T14:03:11+00:00",
      "entries": {"a@example.com": {"status": "sent", "attempts": 1,
                  "lastError": null, "variant": 0, "updatedAt": "..."}}
    }
"""

from __future__ import annotations

import enum
import json
import logging
import os
import tempfile
from dataclasses import dataclass
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Optional

from agent_outreach.errors import LedgerStateError, PersistenceError, QuotaExceeded

logger = logging.getLogger(__name__)


class DeliveryStatus(enum.Enum):
    """Lifecycle states for one recipient."""

    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (DeliveryStatus.SENT, DeliveryStatus.FAILED)


@dataclass
class LedgerEntry:
    """Delivery record for one recipient identity."""

    identity: str
    status: DeliveryStatus = DeliveryStatus.PENDING
    attempts: int = 0
    last_error: Optional[str] = None
    variant: Optional[int] = None
    updated_at: Optional[datetime] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "attempts": self.attempts,
            "lastError": self.last_error,
            "variant": self.variant,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }

    @classmethod
    def from_dict(cls, identity: str, data: dict[str, Any]) -> LedgerEntry:
        updated = data.get("updatedAt")
        return cls(
            identity=identity,
            status=DeliveryStatus(data.get("status", "pending")),
            attempts=int(data.get("attempts", 0)),
            last_error=data.get("lastError"),
            variant=data.get("variant"),
            updated_at=datetime.fromisoformat(updated) if updated else None,
        )


@dataclass
class DailyQuota:
    """Send counter for one calendar day."""

    date: date
    count: int
    limit: int

    @property
    def remaining(self) -> int:
        return max(0, self.limit - self.count)

    @property
    def exhausted(self) -> bool:
        return self.count >= self.limit


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DeliveryLedger:
    """
    Persisted delivery state for one campaign.

    Usage:
        ledger = DeliveryLedger("logs/email_log.json", max_per_day=50)
        ledger.load()
        if ledger.status("a@example.com") is DeliveryStatus.PENDING:
            ...
        ledger.record_outcome("a@example.com", DeliveryStatus.SENT, attempt_count=1)

    A ledger file must have a single writer; running two engines against
    the same file is unsupported.
    """

    def __init__(self, path: str | Path, max_per_day: int = 50) -> None:
        self.path = Path(path)
        self.max_per_day = max_per_day
        self._entries: dict[str, LedgerEntry] = {}
        self._daily_count = 0
        self._last_reset: date = date.today()
        self.last_persistence_error: Optional[PersistenceError] = None

    # ---- Load / persist ----

    def load(self) -> None:
        """Read the persisted snapshot. A missing file leaves an empty ledger.

        Raises:
            PersistenceError: If the snapshot exists but cannot be read or parsed.
        """
        if not self.path.exists():
            logger.info("No ledger at %s, starting empty", self.path)
            return

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
            self._entries = self._parse_entries(data)
            self._daily_count = int(data.get("dailyCount", 0))
            reset = data.get("lastResetDate")
            self._last_reset = date.fromisoformat(reset) if reset else date.today()
        except (OSError, ValueError, TypeError, AttributeError) as e:
            raise PersistenceError(f"Cannot load ledger {self.path}: {e}") from e

        logger.info(
            "Ledger loaded: %d sent, %d failed, %d sent on %s",
            len(self._identities(DeliveryStatus.SENT)),
            len(self._identities(DeliveryStatus.FAILED)),
            self._daily_count,
            self._last_reset.isoformat(),
        )

    @staticmethod
    def _parse_entries(data: dict[str, Any]) -> dict[str, LedgerEntry]:
        entries: dict[str, LedgerEntry] = {}
        for identity, raw in (data.get("entries") or {}).items():
            entries[identity] = LedgerEntry.from_dict(identity, raw)
        # Snapshots without ``entries`` carry only the identity lists
        for identity in data.get("sentIdentities", []):
            entries.setdefault(identity, LedgerEntry(identity, DeliveryStatus.SENT, attempts=1))
        for identity in data.get("failedIdentities", []):
            entries.setdefault(identity, LedgerEntry(identity, DeliveryStatus.FAILED))
        return entries

    def snapshot(self) -> dict[str, Any]:
        """Full serializable state."""
        return {
            "sentIdentities": self._identities(DeliveryStatus.SENT),
            "failedIdentities": self._identities(DeliveryStatus.FAILED),
            "dailyCount": self._daily_count,
            "lastResetDate": self._last_reset.isoformat(),
            "lastUpdated": _utcnow().isoformat(),
            "entries": {k: e.to_dict() for k, e in self._entries.items()},
        }

    def flush(self) -> bool:
        """Write the full state to disk. Returns False if the write failed."""
        try:
            self._write(self.snapshot())
        except PersistenceError as e:
            self.last_persistence_error = e
            logger.error("Ledger write failed, continuing with in-memory state: %s", e)
            return False
        self.last_persistence_error = None
        return True

    def _write(self, payload: dict[str, Any]) -> None:
        try:
            directory = self.path.parent
            directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self.path.name}.", suffix=".tmp", dir=directory
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(payload, f, indent=2)
                os.replace(tmp_name, self.path)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise
        except OSError as e:
            raise PersistenceError(f"Cannot write ledger {self.path}: {e}") from e

    # ---- Status ----

    def status(self, identity: str) -> DeliveryStatus:
        entry = self._entries.get(identity)
        return entry.status if entry else DeliveryStatus.PENDING

    def entry(self, identity: str) -> Optional[LedgerEntry]:
        return self._entries.get(identity)

    def record_outcome(
        self,
        identity: str,
        status: DeliveryStatus,
        attempt_count: int,
        error: Optional[str] = None,
        variant: Optional[int] = None,
    ) -> LedgerEntry:
        """Record a delivery outcome, then persist the full state.

        A persistence failure is logged and does not undo the change.

        Raises:
            LedgerStateError: If the identity is already SENT or FAILED.
        """
        entry = self._entries.get(identity)
        if entry is not None and entry.status.is_terminal:
            raise LedgerStateError(
                f"{identity} is already {entry.status.value}; clear the ledger to retry"
            )
        if entry is None:
            entry = LedgerEntry(identity=identity)
            self._entries[identity] = entry

        entry.status = status
        entry.attempts = attempt_count
        entry.last_error = error
        entry.variant = variant
        entry.updated_at = _utcnow()

        self.flush()
        return entry

    # ---- Quota ----

    def _roll(self, today: date) -> None:
        if today != self._last_reset:
            logger.info(
                "New day %s: resetting daily counter (was %d on %s)",
                today.isoformat(),
                self._daily_count,
                self._last_reset.isoformat(),
            )
            self._daily_count = 0
            self._last_reset = today

    def current_quota(self, today: date) -> DailyQuota:
        self._roll(today)
        return DailyQuota(date=self._last_reset, count=self._daily_count, limit=self.max_per_day)

    def increment_quota(self, today: date) -> DailyQuota:
        """Count one successful send for ``today``.

        Raises:
            QuotaExceeded: If the counter is already at the daily limit.
        """
        self._roll(today)
        if self._daily_count >= self.max_per_day:
            raise QuotaExceeded(
                f"Daily limit of {self.max_per_day} reached for {today.isoformat()}"
            )
        self._daily_count += 1
        return self.current_quota(today)

    def reset_daily_counter(self, today: Optional[date] = None) -> None:
        """Zero today's counter without touching recipient statuses."""
        self._daily_count = 0
        self._last_reset = today or date.today()
        self.flush()
        logger.info("Daily counter reset")

    # ---- Maintenance ----

    def clear(self, today: Optional[date] = None) -> None:
        """Forget every recipient and the quota state, e.g. to restart a campaign."""
        self._entries.clear()
        self._daily_count = 0
        self._last_reset = today or date.today()
        self.flush()
        logger.info("Ledger cleared")

    def stats(self, today: Optional[date] = None) -> dict[str, int]:
        quota = self.current_quota(today or date.today())
        return {
            "sent_today": quota.count,
            "daily_limit": quota.limit,
            "total_sent": len(self._identities(DeliveryStatus.SENT)),
            "total_failed": len(self._identities(DeliveryStatus.FAILED)),
            "remaining_today": quota.remaining,
        }

    def _identities(self, status: DeliveryStatus) -> list[str]:
        return [k for k, e in self._entries.items() if e.status is status]

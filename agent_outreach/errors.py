"""
Error taxonomy shared by collectors, the aggregator, the ledger, and the
dispatch engine.

Per-recipient and per-collector errors are captured into result objects at
the batch and aggregation boundaries. Only setup failures (configuration,
transport construction, an unreadable ledger) propagate to the caller.
"""

from __future__ import annotations


class OutreachError(Exception):
    """Base class for all agent-outreach errors."""


class ConfigError(OutreachError, ValueError):
    """Configuration is missing or has an unusable value."""


class ValidationError(OutreachError):
    """A recipient identity is malformed or unusable. Never retried."""


class TransportError(OutreachError):
    """A single delivery attempt failed. Retried with backoff."""


class QuotaExceeded(OutreachError):
    """The daily send quota is exhausted.

    Used as a control signal: it halts a batch early and leaves the
    remaining candidates pending.
    """


class PersistenceError(OutreachError):
    """The delivery ledger could not be read or written."""


class LedgerStateError(OutreachError):
    """An outcome was recorded for an identity already in a terminal state."""


class CollectorError(OutreachError):
    """One source failed to produce records."""

    def __init__(self, source: str, message: str) -> None:
        super().__init__(f"{source}: {message}")
        self.source = source
        self.message = message

    def to_dict(self) -> dict[str, str]:
        return {"source": self.source, "error": self.message}

"""
Collector capability shared by every contact source.

A collector is anything with a ``name`` and a ``produce(config)`` method
returning raw candidate records. Variants do not inherit from a common base
and hold no shared mutable state, so any one of them can be swapped or run
on its own thread.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional, Protocol


@dataclass
class CandidateRecord:
    """A raw contact record as produced by a collector.

    Attributes:
        name: Agent's full name.
        email: Contact address; the recipient identity once cleaned.
        city: City the agent works in.
        state: Two-letter region code (e.g. "CA").
        company: Brokerage or agency name.
        profile_url: Link to the agent's public profile.
        source: Tag of the collector that produced the record.
    """

    name: str = ""
    email: str = ""
    city: str = ""
    state: str = ""
    company: str = ""
    profile_url: str = ""
    source: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any], source: str = "") -> CandidateRecord:
        return cls(
            name=str(data.get("name") or ""),
            email=str(data.get("email") or ""),
            city=str(data.get("city") or ""),
            state=str(data.get("state") or ""),
            company=str(data.get("company") or ""),
            profile_url=str(data.get("profile_url") or ""),
            source=str(data.get("source") or source),
        )

    def to_dict(self) -> dict[str, str]:
        return {
            "name": self.name,
            "email": self.email,
            "city": self.city,
            "state": self.state,
            "company": self.company,
            "profile_url": self.profile_url,
            "source": self.source,
        }


@dataclass
class CollectorConfig:
    """Per-run settings handed to every collector.

    Attributes:
        max_records: Upper bound on records a single source may return.
        timeout: Network timeout in seconds for sources that do I/O.
        options: Source-specific extras keyed by option name.
    """

    max_records: int = 100
    timeout: float = 10.0
    options: dict[str, Any] = field(default_factory=dict)


class Collector(Protocol):
    """Producer of raw candidate records for one source."""

    name: str

    def produce(self, config: CollectorConfig) -> list[CandidateRecord]:
        ...


def cap_records(
    records: list[CandidateRecord], max_records: Optional[int]
) -> list[CandidateRecord]:
    """Trim a source's output to ``max_records`` (None or <= 0 means no cap)."""
    if max_records is None or max_records <= 0:
        return records
    return records[:max_records]

"""
Canonical record storage.
"""

from agent_outreach.store.records import (
    AgentRecord,
    Base,
    CanonicalRecord,
    RecordFilter,
    RecordStore,
)

__all__ = [
    "AgentRecord",
    "Base",
    "CanonicalRecord",
    "RecordFilter",
    "RecordStore",
]

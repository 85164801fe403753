"""
Aggregation of collector output into the canonical record set.
"""

from agent_outreach.aggregation.aggregator import (
    AggregationResult,
    Aggregator,
    DroppedRecord,
)
from agent_outreach.aggregation.validation import (
    US_STATES,
    dedup_key,
    is_valid_email,
    validate_identity,
)

__all__ = [
    "AggregationResult",
    "Aggregator",
    "DroppedRecord",
    "US_STATES",
    "dedup_key",
    "is_valid_email",
    "validate_identity",
]

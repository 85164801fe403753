"""
Record cleaning, identity validation, region filtering, and dedup keys.
"""

from __future__ import annotations

import re
from dataclasses import replace
from typing import Iterable, Optional

from agent_outreach.collectors.collector_base import CandidateRecord
from agent_outreach.errors import ValidationError

EMAIL_REGEX = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

US_STATES: frozenset[str] = frozenset({
    "AL", "AK", "AZ", "AR", "CA", "CO", "CT", "DE", "FL", "GA",
    "HI", "ID", "IL", "IN", "IA", "KS", "KY", "LA", "ME", "MD",
    "MA", "MI", "MN", "MS", "MO", "MT", "NE", "NV", "NH", "NJ",
    "NM", "NY", "NC", "ND", "OH", "OK", "OR", "PA", "RI", "SC",
    "SD", "TN", "TX", "UT", "VT", "VA", "WA", "WV", "WI", "WY",
})

# Drop reasons reported by the aggregator
MISSING_IDENTITY = "missing_identity"
INVALID_IDENTITY = "invalid_identity"
MISSING_NAME = "missing_name"
REGION_NOT_ALLOWED = "region_not_allowed"


def _collapse(text: str) -> str:
    return re.sub(r"\s+", " ", text or "").strip()


def normalize_identity(email: Optional[str]) -> str:
    """Recipient identity: the trimmed, lower-cased e-mail address."""
    return (email or "").strip().lower()


def is_valid_email(email: Optional[str]) -> bool:
    if not email or not isinstance(email, str):
        return False
    return bool(EMAIL_REGEX.match(normalize_identity(email)))


def validate_identity(email: Optional[str]) -> str:
    """Return the normalized identity or raise ValidationError."""
    identity = normalize_identity(email)
    if not identity:
        raise ValidationError("Recipient has no e-mail address")
    if not EMAIL_REGEX.match(identity):
        raise ValidationError(f"Invalid e-mail address: {identity!r}")
    return identity


def clean_candidate(record: CandidateRecord) -> CandidateRecord:
    """Trim every field, lower-case the e-mail, upper-case the state."""
    return replace(
        record,
        name=_collapse(record.name),
        email=normalize_identity(record.email),
        city=_collapse(record.city),
        state=_collapse(record.state).upper(),
        company=_collapse(record.company),
        profile_url=(record.profile_url or "").strip(),
        source=(record.source or "").strip(),
    )


def is_allowed_region(state: str, allowed_regions: Optional[Iterable[str]]) -> bool:
    """An empty or None region set allows every region."""
    if not allowed_regions:
        return True
    return (state or "").strip().upper() in {r.upper() for r in allowed_regions}


def drop_reason(
    record: CandidateRecord,
    allowed_regions: Optional[Iterable[str]] = US_STATES,
) -> Optional[str]:
    """Return why a cleaned record must be dropped, or None if it is usable."""
    if not record.email:
        return MISSING_IDENTITY
    if not is_valid_email(record.email):
        return INVALID_IDENTITY
    if not record.name:
        return MISSING_NAME
    if not is_allowed_region(record.state, allowed_regions):
        return REGION_NOT_ALLOWED
    return None


def dedup_key(email: str, name: str, city: str) -> str:
    """Composite identity key: e-mail, name, and city, normalized."""
    parts = (normalize_identity(email), _collapse(name).lower(), _collapse(city).lower())
    return "|".join(parts)

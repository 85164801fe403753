"""
Built-in sample roster.

Produces a fixed set of agents without touching the network. Used for smoke
runs, dry runs, and environments where live sources are unavailable.
"""

from __future__ import annotations

import logging
from typing import Optional

from agent_outreach.collectors.collector_base import (
    CandidateRecord,
    CollectorConfig,
    cap_records,
)

logger = logging.getLogger(__name__)


SAMPLE_AGENTS: list[dict[str, str]] = [
    {
        "name": "John Smith",
        "email": "john.smith@realtypros.com",
        "city": "New York",
        "state": "NY",
        "company": "Realty Pros",
        "profile_url": "https://example.com/john-smith",
    },
    {
        "name": "Sarah Johnson",
        "email": "sarah.johnson@century21.com",
        "city": "Los Angeles",
        "state": "CA",
        "company": "Century 21",
        "profile_url": "https://example.com/sarah-johnson",
    },
    {
        "name": "Michael Brown",
        "email": "michael.brown@kellerwilliams.com",
        "city": "Chicago",
        "state": "IL",
        "company": "Keller Williams",
        "profile_url": "https://example.com/michael-brown",
    },
    {
        "name": "Emily Davis",
        "email": "emily.davis@remax.com",
        "city": "Houston",
        "state": "TX",
        "company": "RE/MAX",
        "profile_url": "https://example.com/emily-davis",
    },
    {
        "name": "David Wilson",
        "email": "david.wilson@coldwellbanker.com",
        "city": "Phoenix",
        "state": "AZ",
        "company": "Coldwell Banker",
        "profile_url": "https://example.com/david-wilson",
    },
    {
        "name": "Lisa Anderson",
        "email": "lisa.anderson@berkshirehathaway.com",
        "city": "Philadelphia",
        "state": "PA",
        "company": "Berkshire Hathaway",
        "profile_url": "https://example.com/lisa-anderson",
    },
    {
        "name": "Robert Taylor",
        "email": "robert.taylor@compass.com",
        "city": "San Antonio",
        "state": "TX",
        "company": "Compass",
        "profile_url": "https://example.com/robert-taylor",
    },
    {
        "name": "Jennifer Martinez",
        "email": "jennifer.martinez@exprealty.com",
        "city": "San Diego",
        "state": "CA",
        "company": "eXp Realty",
        "profile_url": "https://example.com/jennifer-martinez",
    },
]


class SampleCollector:
    """Return the sample roster, or an explicit list of records."""

    def __init__(
        self,
        records: Optional[list[dict[str, str]]] = None,
        name: str = "sample",
    ) -> None:
        self.name = name
        self._records = records if records is not None else SAMPLE_AGENTS

    def produce(self, config: CollectorConfig) -> list[CandidateRecord]:
        records = [CandidateRecord.from_dict(r, source=self.name) for r in self._records]
        records = cap_records(records, config.max_records)
        logger.info("Sample collector produced %d records", len(records))
        return records

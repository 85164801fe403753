"""Read candidate agents from a CSV export."""

from __future__ import annotations

import csv
import logging
from pathlib import Path

from agent_outreach.collectors.collector_base import (
    CandidateRecord,
    CollectorConfig,
    cap_records,
)
from agent_outreach.errors import CollectorError

logger = logging.getLogger(__name__)

CSV_FIELDS = ["name", "email", "city", "state", "company", "profile_url"]


class CsvFileCollector:
    """
    Produce candidates from a CSV file with a header row.

    Expected columns: name, email, city, state, company, profile_url.
    Missing columns read as empty strings; extra columns are ignored.

    Usage:
        collector = CsvFileCollector("exports/agents.csv")
        records = collector.produce(CollectorConfig(max_records=200))
    """

    def __init__(self, path: str | Path, name: str = "") -> None:
        self.path = Path(path)
        self.name = name or f"csv:{self.path.name}"

    def produce(self, config: CollectorConfig) -> list[CandidateRecord]:
        if not self.path.exists():
            raise CollectorError(self.name, f"CSV file not found: {self.path}")

        records: list[CandidateRecord] = []
        try:
            with open(self.path, "r", encoding="utf-8", newline="") as f:
                reader = csv.DictReader(f)
                if reader.fieldnames is None or "email" not in reader.fieldnames:
                    raise CollectorError(self.name, "CSV header has no 'email' column")
                for row in reader:
                    records.append(CandidateRecord.from_dict(row, source=self.name))
        except (OSError, csv.Error, UnicodeDecodeError) as e:
            raise CollectorError(self.name, f"Failed to read {self.path}: {e}") from e

        records = cap_records(records, config.max_records)
        logger.info("Read %d records from %s", len(records), self.path)
        return records

"""
Contact sources.

Each collector is an independent producer of raw candidate records; see
``collector_base.Collector`` for the capability they share.
"""

from agent_outreach.collectors.collector_base import (
    CandidateRecord,
    Collector,
    CollectorConfig,
)
from agent_outreach.collectors.csv_file import CsvFileCollector
from agent_outreach.collectors.directory_api import (
    DirectoryApiCollector,
    DirectoryApiConfig,
)
from agent_outreach.collectors.registry import build_collectors
from agent_outreach.collectors.sample import SampleCollector

__all__ = [
    "CandidateRecord",
    "Collector",
    "CollectorConfig",
    "CsvFileCollector",
    "DirectoryApiCollector",
    "DirectoryApiConfig",
    "SampleCollector",
    "build_collectors",
]

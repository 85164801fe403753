"""
Build collectors from the ``sources`` section of the settings file.

Each entry names a collector ``type`` plus that type's options, e.g.::

    {"type": "csv", "path": "exports/agents.csv"}
    {"type": "directory", "name": "zillow-api", "base_url": "https://...",
     "token_env": "DIRECTORY_TOKEN", "locations": ["Austin, TX"]}

API tokens are read from the environment variable named in ``token_env``
so secrets never live in the settings file.
"""

from __future__ import annotations

import os
from typing import Any, Mapping, Optional

from agent_outreach.collectors.collector_base import Collector
from agent_outreach.collectors.csv_file import CsvFileCollector
from agent_outreach.collectors.directory_api import (
    DEFAULT_LOCATIONS,
    DirectoryApiCollector,
    DirectoryApiConfig,
)
from agent_outreach.collectors.sample import SampleCollector
from agent_outreach.errors import ConfigError

COLLECTOR_TYPES = ("sample", "csv", "directory")


def build_collectors(
    sources: list[dict[str, Any]],
    environ: Optional[Mapping[str, str]] = None,
) -> list[Collector]:
    """Instantiate collectors in registration order, skipping disabled entries.

    Raises:
        ConfigError: If an entry has an unknown type or lacks a required field.
    """
    env = os.environ if environ is None else environ
    collectors: list[Collector] = []

    for entry in sources:
        if not entry.get("enabled", True):
            continue
        kind = entry.get("type", "")
        if kind == "sample":
            collectors.append(SampleCollector(name=entry.get("name", "sample")))
        elif kind == "csv":
            if not entry.get("path"):
                raise ConfigError("csv source requires a 'path'")
            collectors.append(CsvFileCollector(entry["path"], name=entry.get("name", "")))
        elif kind == "directory":
            if not entry.get("base_url"):
                raise ConfigError("directory source requires a 'base_url'")
            token_env = entry.get("token_env", "")
            config = DirectoryApiConfig(
                base_url=entry["base_url"],
                api_token=env.get(token_env, "") if token_env else "",
                path=entry.get("path", "/agents/"),
                page_size=int(entry.get("page_size", 50)),
                max_pages=int(entry.get("max_pages", 10)),
                locations=list(entry.get("locations", DEFAULT_LOCATIONS)),
            )
            collectors.append(
                DirectoryApiCollector(config, name=entry.get("name", "directory"))
            )
        else:
            raise ConfigError(
                f"Unknown source type '{kind}'. Supported: {list(COLLECTOR_TYPES)}"
            )

    return collectors

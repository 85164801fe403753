"""
Agent directory API collector.

Pages through a JSON agent directory (paginated ``results``/``next``
responses) for a list of search locations and maps each listing to a
candidate record. Page rendering and HTML extraction are out of scope: the
directory is expected to already expose structured listings.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

import httpx

from agent_outreach.collectors.collector_base import (
    CandidateRecord,
    CollectorConfig,
    cap_records,
)
from agent_outreach.errors import CollectorError

logger = logging.getLogger(__name__)


DEFAULT_LOCATIONS = [
    "New York, NY",
    "Los Angeles, CA",
    "Chicago, IL",
    "Houston, TX",
    "Phoenix, AZ",
]


@dataclass
class DirectoryApiConfig:
    """Connection settings for one agent directory.

    Attributes:
        base_url: API root (e.g. "https://directory.example.com/api").
        api_token: Optional token sent as ``Authorization: Token <token>``.
        path: Listing endpoint relative to base_url.
        page_size: Results requested per page.
        max_pages: Safety bound on pages fetched per location.
        locations: Search locations, queried in order.
    """

    base_url: str
    api_token: str = ""
    path: str = "/agents/"
    page_size: int = 50
    max_pages: int = 10
    locations: list[str] = field(default_factory=lambda: list(DEFAULT_LOCATIONS))


class DirectoryApiCollector:
    """
    Collect agents from a paginated JSON directory.

    Usage:
        collector = DirectoryApiCollector(
            DirectoryApiConfig(base_url="https://directory.example.com/api"),
            name="directory",
        )
        records = collector.produce(CollectorConfig(max_records=100))
    """

    def __init__(
        self,
        config: DirectoryApiConfig,
        name: str = "directory",
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.config = config
        self.name = name
        self._transport = transport

    def produce(self, config: CollectorConfig) -> list[CandidateRecord]:
        headers = {"Accept": "application/json"}
        if self.config.api_token:
            headers["Authorization"] = f"Token {self.config.api_token}"

        records: list[CandidateRecord] = []
        try:
            with httpx.Client(
                base_url=self.config.base_url,
                headers=headers,
                timeout=config.timeout,
                transport=self._transport,
            ) as client:
                for location in self.config.locations:
                    if config.max_records and len(records) >= config.max_records:
                        break
                    records.extend(self._fetch_location(client, location, config))
        except httpx.HTTPError as e:
            raise CollectorError(self.name, f"HTTP error: {e}") from e
        except ValueError as e:
            raise CollectorError(self.name, f"Malformed directory response: {e}") from e

        records = cap_records(records, config.max_records)
        logger.info("Directory %s produced %d records", self.name, len(records))
        return records

    def _fetch_location(
        self,
        client: httpx.Client,
        location: str,
        config: CollectorConfig,
    ) -> list[CandidateRecord]:
        """Follow ``next`` links for one location until exhausted or capped."""
        logger.debug("Searching agents in %s", location)
        found: list[CandidateRecord] = []
        params: Optional[dict[str, Any]] = {
            "location": location,
            "page_size": self.config.page_size,
        }
        url: Optional[str] = self.config.path

        for _ in range(self.config.max_pages):
            if url is None:
                break
            resp = client.get(url, params=params)
            resp.raise_for_status()
            data = resp.json()
            if not isinstance(data, dict):
                raise ValueError("expected a JSON object")

            for listing in data.get("results", []):
                found.append(self._to_candidate(listing, location))
                if config.max_records and len(found) >= config.max_records:
                    return found

            url = data.get("next")
            # ``next`` links already carry the query string
            params = None

        return found

    def _to_candidate(self, listing: dict[str, Any], location: str) -> CandidateRecord:
        city = listing.get("city") or ""
        state = listing.get("state") or ""
        if not city and "," in location:
            city, _, state_part = location.partition(",")
            state = state or state_part.strip()
        return CandidateRecord(
            name=str(listing.get("name") or listing.get("full_name") or ""),
            email=str(listing.get("email") or ""),
            city=str(city),
            state=str(state),
            company=str(listing.get("company") or listing.get("brokerage") or ""),
            profile_url=str(listing.get("profile_url") or listing.get("url") or ""),
            source=self.name,
        )

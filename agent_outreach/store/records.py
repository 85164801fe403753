"""
SQLAlchemy model and CRUD operations for the canonical agent record set.

Records enter the store once they are cleaned, validated, and deduplicated.
The dedup key is unique, so appending a record the store already holds is a
no-op rather than an error.
"""

from __future__ import annotations

import csv
import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Iterable, Optional

from sqlalchemy import Column, DateTime, Integer, String, create_engine, select
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


@dataclass(frozen=True)
class CanonicalRecord:
    """A deduplicated, validated agent eligible for dispatch."""

    identity: str
    name: str
    city: str = ""
    state: str = ""
    company: str = ""
    profile_url: str = ""
    source: str = ""
    dedup_key: str = ""
    id: Optional[int] = None
    created_at: Optional[datetime] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.identity,
            "city": self.city,
            "state": self.state,
            "company": self.company,
            "profile_url": self.profile_url,
            "source": self.source,
        }


class AgentRecord(Base):
    """Stored row for one canonical agent."""

    __tablename__ = "agents"

    id = Column(Integer, primary_key=True, autoincrement=True)
    dedup_key = Column(String(512), unique=True, nullable=False, index=True)
    email = Column(String(320), nullable=False, index=True)
    name = Column(String(256), nullable=False)
    city = Column(String(128), nullable=True)
    state = Column(String(16), nullable=True, index=True)
    company = Column(String(256), nullable=True)
    profile_url = Column(String(1024), nullable=True)
    source = Column(String(128), nullable=True, index=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    def __repr__(self) -> str:
        return f"<AgentRecord(id={self.id}, email='{self.email}', source='{self.source}')>"

    def to_canonical(self) -> CanonicalRecord:
        return CanonicalRecord(
            identity=self.email,
            name=self.name,
            city=self.city or "",
            state=self.state or "",
            company=self.company or "",
            profile_url=self.profile_url or "",
            source=self.source or "",
            dedup_key=self.dedup_key,
            id=self.id,
            created_at=self.created_at,
        )


@dataclass
class RecordFilter:
    """Optional constraints for ``RecordStore.list``."""

    with_identity_only: bool = False
    state: Optional[str] = None
    source: Optional[str] = None
    limit: Optional[int] = None
    offset: int = 0


UPDATABLE_FIELDS = ("name", "city", "state", "company", "profile_url", "source")


class RecordStore:
    """
    CRUD interface for canonical agent records.

    Usage:
        store = RecordStore("sqlite:///agents.db")
        store.append(result.records)
        for record in store.list(RecordFilter(with_identity_only=True)):
            ...
    """

    def __init__(self, db_url: str = "sqlite:///agents.db") -> None:
        self.engine = create_engine(db_url, echo=False)
        Base.metadata.create_all(self.engine)
        self.SessionFactory = sessionmaker(bind=self.engine)

    def _session(self) -> Session:
        return self.SessionFactory()

    # ---- Create ----

    def append(self, records: Iterable[CanonicalRecord]) -> int:
        """Insert records whose dedup key is not yet stored. Returns rows added."""
        added = 0
        with self._session() as session:
            existing = set(session.scalars(select(AgentRecord.dedup_key)))
            for record in records:
                if record.dedup_key in existing:
                    continue
                session.add(AgentRecord(
                    dedup_key=record.dedup_key,
                    email=record.identity,
                    name=record.name,
                    city=record.city,
                    state=record.state,
                    company=record.company,
                    profile_url=record.profile_url,
                    source=record.source,
                ))
                existing.add(record.dedup_key)
                added += 1
            session.commit()
        logger.info("Appended %d records to the store", added)
        return added

    # ---- Read ----

    def list(self, record_filter: Optional[RecordFilter] = None) -> list[CanonicalRecord]:
        """Return records in insertion order, optionally filtered."""
        f = record_filter or RecordFilter()
        with self._session() as session:
            q = session.query(AgentRecord)
            if f.with_identity_only:
                q = q.filter(AgentRecord.email != "")
            if f.state:
                q = q.filter(AgentRecord.state == f.state.upper())
            if f.source:
                q = q.filter(AgentRecord.source == f.source)
            q = q.order_by(AgentRecord.id.asc())
            if f.offset:
                q = q.offset(f.offset)
            if f.limit is not None:
                q = q.limit(f.limit)
            return [row.to_canonical() for row in q.all()]

    def get(self, record_id: int) -> Optional[CanonicalRecord]:
        with self._session() as session:
            row = session.get(AgentRecord, record_id)
            return row.to_canonical() if row else None

    def count(self) -> int:
        with self._session() as session:
            return session.query(AgentRecord).count()

    def stats(self) -> dict[str, int]:
        records = self.list()
        with_emails = [r for r in records if r.identity]
        return {
            "total": len(records),
            "with_emails": len(with_emails),
            "without_emails": len(records) - len(with_emails),
            "unique_emails": len({r.identity for r in with_emails}),
            "states": len({r.state for r in records if r.state}),
            "cities": len({r.city for r in records if r.city}),
        }

    # ---- Update ----

    def update(self, record_id: int, **fields: Any) -> Optional[CanonicalRecord]:
        """Explicitly change descriptive fields of a stored record.

        The identity and dedup key are fixed at creation.

        Raises:
            ValueError: If a field name is not updatable.
        """
        unknown = set(fields) - set(UPDATABLE_FIELDS)
        if unknown:
            raise ValueError(f"Cannot update fields: {sorted(unknown)}")
        with self._session() as session:
            row = session.get(AgentRecord, record_id)
            if row is None:
                return None
            for key, val in fields.items():
                setattr(row, key, val)
            session.commit()
            session.refresh(row)
            return row.to_canonical()

    # ---- Delete ----

    def remove_duplicates(self) -> list[CanonicalRecord]:
        """Keep the earliest record per identity and delete the rest.

        Returns the surviving records.
        """
        removed = 0
        with self._session() as session:
            seen: set[str] = set()
            for row in session.query(AgentRecord).order_by(AgentRecord.id.asc()).all():
                key = row.email.lower()
                if key in seen:
                    session.delete(row)
                    removed += 1
                else:
                    seen.add(key)
            session.commit()
        if removed:
            logger.info("Removed %d duplicate records", removed)
        return self.list()

    def clear(self) -> int:
        """Delete every record. Returns the number removed."""
        with self._session() as session:
            removed = session.query(AgentRecord).delete()
            session.commit()
        logger.info("Cleared %d records from the store", removed)
        return removed

    # ---- Export ----

    def export_csv(self, path: str | Path) -> int:
        """Write all records to a CSV file. Returns the number of rows written."""
        records = self.list()
        out = Path(path)
        if out.parent and not out.parent.exists():
            out.parent.mkdir(parents=True, exist_ok=True)
        with open(out, "w", encoding="utf-8", newline="") as f:
            writer = csv.DictWriter(
                f, fieldnames=["name", "email", "city", "state", "company", "profile_url"]
            )
            writer.writeheader()
            for r in records:
                writer.writerow({
                    "name": r.name,
                    "email": r.identity,
                    "city": r.city,
                    "state": r.state,
                    "company": r.company,
                    "profile_url": r.profile_url,
                })
        logger.info("Exported %d records to %s", len(records), out)
        return len(records)

"""
vigil.db
========

SQLite persistence layer for Vigil.

This module exposes:

* ``engine`` – a global SQLModel engine pointing at ``settings.DB_URL``
* ``SessionLocal`` – a session factory used via ``with SessionLocal() as s:``
* ``ComplianceRecordDB`` / ``ActivityLogDB`` – the two tables
* CRUD helpers, including the conditional ``update_record_if_unchanged``
* ``create_all()`` – helper to create tables at first run
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import JSON, Column, update
from sqlalchemy.engine import Engine
from sqlmodel import Field, Session, SQLModel, create_engine, select

from vigil.errors import Conflict, RecordNotFound
from vigil.models import ComplianceRecord, RecordKind
from vigil.settings import DB_ECHO, DB_URL
from vigil.status import to_datetime


def make_engine(url: str = DB_URL, echo: bool = DB_ECHO, **kwargs) -> Engine:
    """Build an engine; SQLite connections may be shared with FastAPI's threadpool."""
    if url.startswith("sqlite"):
        kwargs.setdefault("connect_args", {"check_same_thread": False})
    return create_engine(url, echo=echo, **kwargs)


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------
engine = make_engine()


# ---------------------------------------------------------------------------
# Session factory
# ---------------------------------------------------------------------------
def SessionLocal() -> Session:  # noqa: N802 (factory camel‑case for consistency with FastAPI docs)
    """Return a new Session bound to the global engine."""
    return Session(engine)


# ---------------------------------------------------------------------------
# ORM models
# ---------------------------------------------------------------------------
class ComplianceRecordDB(SQLModel, table=True):
    """
    SQLite‑backed representation of a :class:`vigil.models.ComplianceRecord`.

    ``version`` is the optimistic‑concurrency token: every write goes through
    ``UPDATE … WHERE id = :id AND version = :expected``.
    """

    __tablename__ = "compliance_records"

    id: str = Field(primary_key=True, index=True)
    subject_id: str = Field(index=True)
    kind: RecordKind = Field(index=True)
    label: str
    due_date: Optional[datetime] = None
    issue_date: Optional[datetime] = None
    scheduled_date: Optional[datetime] = None
    completed_date: Optional[datetime] = None
    progress: int = 0
    explicit_status: Optional[str] = None
    archived: bool = False
    last_reminded_at: Optional[datetime] = None
    document_ref: Optional[str] = None
    authority_notes: Optional[str] = None
    subject_name: str = ""
    department: Optional[str] = None
    description: str = ""
    version: int = 0

    # ---------------------------------------------------------------------
    # Converters
    # ---------------------------------------------------------------------
    @classmethod
    def from_record(cls, rec: ComplianceRecord) -> "ComplianceRecordDB":
        """Create a DB row from an in‑memory record."""
        return cls(**_row_values(vars(rec)))

    def to_record(self) -> ComplianceRecord:
        """Convert the DB row back into a plain ComplianceRecord."""
        return ComplianceRecord(
            id=self.id,
            subject_id=self.subject_id,
            kind=RecordKind(self.kind),
            label=self.label,
            due_date=self.due_date,
            issue_date=self.issue_date,
            scheduled_date=self.scheduled_date,
            completed_date=self.completed_date,
            progress=self.progress,
            explicit_status=self.explicit_status,
            archived=self.archived,
            last_reminded_at=self.last_reminded_at,
            document_ref=self.document_ref,
            authority_notes=self.authority_notes,
            subject_name=self.subject_name,
            department=self.department,
            description=self.description,
            version=self.version,
        )


class ActivityLogDB(SQLModel, table=True):
    """One audit entry: which action touched which record, before and after."""

    __tablename__ = "activity_log"

    id: Optional[int] = Field(default=None, primary_key=True)
    created_at: datetime = Field(default_factory=datetime.now, index=True)
    action: str
    entity_type: str
    entity_id: str = Field(index=True)
    old_values: Optional[Dict[str, Any]] = Field(default=None, sa_column=Column(JSON))
    new_values: Optional[Dict[str, Any]] = Field(default=None, sa_column=Column(JSON))


_DATE_FIELDS = ("due_date", "issue_date", "scheduled_date", "completed_date", "last_reminded_at")


def _row_values(values: Dict[str, Any]) -> Dict[str, Any]:
    """SQLite DATETIME columns only accept datetimes: widen bare dates."""
    out = dict(values)
    for key in _DATE_FIELDS:
        if key in out:
            out[key] = to_datetime(out[key])
    return out


# ---------------------------------------------------------------------------
# Convenience CRUD helpers
# ---------------------------------------------------------------------------
def insert_record(s: Session, rec: ComplianceRecord) -> ComplianceRecord:
    """Insert a new row (version 0) and return the stored record."""
    row = ComplianceRecordDB.from_record(rec)
    row.version = 0
    s.add(row)
    s.commit()
    s.refresh(row)
    return row.to_record()


def get_record(s: Session, record_id: str) -> ComplianceRecord | None:
    """Return a record by id or *None* if missing."""
    db_row = s.get(ComplianceRecordDB, record_id)
    return db_row.to_record() if db_row else None


def records_by(
    s: Session,
    subject_id: Optional[str] = None,
    kind: Optional[RecordKind] = None,
) -> List[ComplianceRecord]:
    """Return every record, optionally narrowed to one subject and/or kind."""
    stmt = select(ComplianceRecordDB)
    if subject_id is not None:
        stmt = stmt.where(ComplianceRecordDB.subject_id == subject_id)
    if kind is not None:
        stmt = stmt.where(ComplianceRecordDB.kind == RecordKind(kind))
    rows = s.exec(stmt.order_by(ComplianceRecordDB.id)).all()
    return [row.to_record() for row in rows]


def update_record_if_unchanged(
    s: Session,
    record_id: str,
    expected_version: int,
    patch: Dict[str, Any],
) -> ComplianceRecord:
    """
    Apply *patch* only if the row is still at *expected_version*.

    Raises RecordNotFound when the row is gone and Conflict when another
    writer got there first.
    """
    values = _row_values(patch)
    values.pop("id", None)
    values["version"] = expected_version + 1
    stmt = (
        update(ComplianceRecordDB)
        .where(ComplianceRecordDB.id == record_id)
        .where(ComplianceRecordDB.version == expected_version)
        .values(**values)
    )
    result = s.connection().execute(stmt)
    if result.rowcount == 0:
        s.rollback()
        if s.get(ComplianceRecordDB, record_id) is None:
            raise RecordNotFound(record_id)
        raise Conflict(record_id, expected_version)
    s.commit()
    s.expire_all()
    return get_record(s, record_id)


# ---------------------------------------------------------------------------
# Utility: create tables
# ---------------------------------------------------------------------------
def create_all(bind: Engine | None = None) -> None:
    """Create all tables for imported SQLModel subclasses."""
    SQLModel.metadata.create_all(bind or engine)

# ---------------------------------------------------------------------------
# Lightweight CLI
# ---------------------------------------------------------------------------
if __name__ == "__main__":
    """
    Quick bootstrap helper.

    Examples
    --------
    $ python -m vigil.db --create        # first‑time table creation
    $ python -m vigil.db --count         # how many records are stored
    """
    import argparse
    import textwrap

    parser = argparse.ArgumentParser(
        prog="python -m vigil.db",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        description=textwrap.dedent(
            """\
            Vigil DB utilities
            ------------------
            --create   Create all SQLModel tables (safe if they already exist)
            --count    Print the number of stored records per kind
            """
        ),
    )
    parser.add_argument("--create", action="store_true", help="create tables")
    parser.add_argument("--count", action="store_true", help="count stored records")
    args = parser.parse_args()

    if args.create:
        create_all()
        print(f"✅ schema initialised at {DB_URL}")

    if args.count:
        with SessionLocal() as s:
            for kind in RecordKind:
                print(f"{kind.value}: {len(records_by(s, kind=kind))}")

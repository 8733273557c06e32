"""
vigil.registry_db
=================

SQLite‑backed implementation of the RecordStore public surface.

This adapter wraps the CRUD helpers in :pymod:`vigil.db` so that any code
expecting the in‑memory RecordStore can switch to a persistent store without
changing its API calls.
"""

from __future__ import annotations

from typing import Any, Iterator, List, Mapping

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session

from vigil.db import (
    SessionLocal,
    get_record,
    insert_record,
    records_by,
    update_record_if_unchanged,
)
from vigil.errors import RecordNotFound, ValidationError
from vigil.models import ComplianceRecord, RecordKind


class DBRecordStore:
    """
    Drop‑in replacement backed by SQLite.

    Methods mirror the in‑memory RecordStore:
    * add(rec)
    * get(record_id)
    * list_by_subject(subject_id) / list_by_kind(kind)
    * update_if_unchanged(record_id, expected_version, patch)
    * iteration / len()
    """

    def __init__(self, session: Session | None = None) -> None:
        self._session: Session = session or SessionLocal()

    # ------------------------------------------------------------------ CRUD
    def add(self, rec: ComplianceRecord) -> ComplianceRecord:
        try:
            return insert_record(self._session, rec)
        except IntegrityError as e:
            self._session.rollback()
            raise ValidationError(f"record {rec.id!r} already exists") from e

    def get(self, record_id: str) -> ComplianceRecord:
        rec = get_record(self._session, record_id)
        if rec is None:
            raise RecordNotFound(record_id)
        return rec

    def list_by_subject(self, subject_id: str) -> List[ComplianceRecord]:
        return records_by(self._session, subject_id=subject_id)

    def list_by_kind(self, kind: RecordKind) -> List[ComplianceRecord]:
        return records_by(self._session, kind=kind)

    def update_if_unchanged(
        self, record_id: str, expected_version: int, patch: Mapping[str, Any]
    ) -> ComplianceRecord:
        return update_record_if_unchanged(self._session, record_id, expected_version, dict(patch))

    # ------------------------------------------------------ dunder helpers
    def __iter__(self) -> Iterator[ComplianceRecord]:
        yield from records_by(self._session)

    def __len__(self) -> int:
        return len(records_by(self._session))

    # ----------------------------------------------------- context manager
    def __enter__(self) -> "DBRecordStore":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self._session.close()

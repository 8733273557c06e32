"""
vigil.registry
==============

An in‑memory record store keyed by record id.

This module is intentionally simple (only the standard library) so that the
lifecycle controller can be unit‑tested without a database.  It exposes the
same surface as :class:`vigil.registry_db.DBRecordStore`, including the
conditional write the controller relies on for optimistic concurrency.
"""

from __future__ import annotations

import threading
from dataclasses import replace
from typing import Any, Dict, Iterator, List, Mapping

from .errors import Conflict, RecordNotFound, ValidationError
from .models import ComplianceRecord, RecordKind


class RecordStore:
    """
    Dictionary‑backed store of compliance records.

    Records handed out are copies; the only way to change a stored record is
    :meth:`update_if_unchanged`.

    Example
    -------
    >>> from datetime import date
    >>> store = RecordStore()
    >>> rec = store.add(ComplianceRecord("lic-1", "emp-1", RecordKind.LICENSE,
    ...                                  "Forklift", due_date=date(2030, 1, 1)))
    >>> store.get("lic-1").version
    0
    """

    def __init__(self) -> None:
        self._records: Dict[str, ComplianceRecord] = {}
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def add(self, rec: ComplianceRecord) -> ComplianceRecord:
        """Insert a new record at version 0 (raise ValidationError on duplicate id)."""
        with self._lock:
            if rec.id in self._records:
                raise ValidationError(f"record {rec.id!r} already exists")
            stored = replace(rec, version=0)
            self._records[rec.id] = stored
            return replace(stored)

    def get(self, record_id: str) -> ComplianceRecord:
        """Retrieve by id (raise RecordNotFound if not present)."""
        try:
            return replace(self._records[record_id])
        except KeyError:
            raise RecordNotFound(record_id) from None

    def list_by_subject(self, subject_id: str) -> List[ComplianceRecord]:
        """Return all records belonging to one employee."""
        return [replace(r) for r in self._records.values() if r.subject_id == subject_id]

    def list_by_kind(self, kind: RecordKind) -> List[ComplianceRecord]:
        """Return all licenses or all inductions."""
        return [replace(r) for r in self._records.values() if r.kind == kind]

    def update_if_unchanged(
        self, record_id: str, expected_version: int, patch: Mapping[str, Any]
    ) -> ComplianceRecord:
        """
        Apply *patch* atomically if the stored version still equals
        *expected_version*; bump the version and return the new record.
        """
        with self._lock:
            current = self._records.get(record_id)
            if current is None:
                raise RecordNotFound(record_id)
            if current.version != expected_version:
                raise Conflict(record_id, expected_version)
            changes = {k: v for k, v in patch.items() if k not in ("id", "version")}
            updated = replace(current, version=current.version + 1, **changes)
            self._records[record_id] = updated
            return replace(updated)

    # ------------------------------------------------------------------
    # Dunder helpers for convenience
    # ------------------------------------------------------------------
    def __iter__(self) -> Iterator[ComplianceRecord]:
        return iter([replace(r) for r in self._records.values()])

    def __len__(self) -> int:
        return len(self._records)

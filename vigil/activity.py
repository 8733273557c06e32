"""
vigil.activity
==============

Audit trail for lifecycle actions.

An :class:`ActivityLogger` is fire‑and‑forget from the controller's point of
view: the controller catches and logs anything it raises, so a broken audit
sink never undoes a successful mutation.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from datetime import date, datetime
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, Mapping, Optional

if TYPE_CHECKING:
    from sqlmodel import Session

audit_logger = logging.getLogger("vigil.audit")


def jsonable(values: Optional[Mapping[str, Any]]) -> Optional[Dict[str, Any]]:
    """Make dates and enums JSON‑friendly so the values can be stored verbatim."""
    if values is None:
        return None
    out: Dict[str, Any] = {}
    for key, value in values.items():
        if isinstance(value, (date, datetime)):
            value = value.isoformat()
        elif isinstance(value, Enum):
            value = value.value
        out[key] = value
    return out


class ActivityLogger(ABC):
    """Abstract audit sink."""

    @abstractmethod
    def log(
        self,
        action: str,
        entity_type: str,
        entity_id: str,
        old_values: Optional[Mapping[str, Any]] = None,
        new_values: Optional[Mapping[str, Any]] = None,
    ) -> None:
        """Record that *action* changed *entity_id* from *old_values* to *new_values*."""


class LoggingActivityLogger(ActivityLogger):
    """Writes one line per action to the ``vigil.audit`` logger."""

    def log(self, action, entity_type, entity_id, old_values=None, new_values=None) -> None:
        audit_logger.info(
            "%s %s %s: %s -> %s",
            action,
            entity_type,
            entity_id,
            jsonable(old_values),
            jsonable(new_values),
        )


class DBActivityLogger(ActivityLogger):
    """Persists audit entries in the ``activity_log`` table."""

    def __init__(self, session: Session | None = None) -> None:
        if session is None:
            from vigil.db import SessionLocal
            session = SessionLocal()
        self._session: Session = session

    def log(self, action, entity_type, entity_id, old_values=None, new_values=None) -> None:
        from vigil.db import ActivityLogDB

        entry = ActivityLogDB(
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            old_values=jsonable(old_values),
            new_values=jsonable(new_values),
        )
        try:
            self._session.add(entry)
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

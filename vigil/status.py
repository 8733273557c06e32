"""
vigil.status
============

Pure functions that turn a record's dates and progress into a
:class:`~vigil.models.DerivedStatus`.

This is the only place that knows the expiry boundaries.  Nothing here
raises: a record whose dates cannot be read resolves to ``UNKNOWN`` so every
record stays renderable.
"""

from __future__ import annotations

import math
from datetime import date, datetime, time, timedelta
from typing import Iterable, List, Optional

from .models import (
    AnnotatedRecord,
    ComplianceRecord,
    DerivedStatus,
    RecordKind,
    Resolution,
)

# ---------------------------------------------------------------------
# Boundaries (days).  "Expiring soon" is inclusive on both ends.
# ---------------------------------------------------------------------
EXPIRING_SOON_DAYS = 30
EXPIRED_BOUNDARY_DAYS = 0

_DAY = timedelta(days=1)

UNKNOWN = Resolution(DerivedStatus.UNKNOWN, None)


def to_datetime(value, like: Optional[datetime] = None) -> Optional[datetime]:
    """
    Coerce *value* (date, datetime or ISO string) to a datetime comparable
    with *like*.  Returns ``None`` for anything unreadable.

    A bare date means midnight at the start of that day.
    """
    if value is None:
        return None
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date):
        dt = datetime.combine(value, time.min)
    else:
        return None

    if like is not None:
        if like.tzinfo is not None and dt.tzinfo is None:
            dt = dt.replace(tzinfo=like.tzinfo)
        elif like.tzinfo is None and dt.tzinfo is not None:
            dt = dt.astimezone().replace(tzinfo=None)
    return dt


def _days_ceil(delta: timedelta) -> int:
    return math.ceil(delta / _DAY)


def resolve_license(
    issue_date,
    due_date,
    now: datetime,
    threshold_days: int = EXPIRING_SOON_DAYS,
) -> Resolution:
    """
    Status of a license at *now*.

    ``days_until_due = ceil((due_date - now) / 1 day)``; negative means
    expired, ``0..threshold_days`` (inclusive) means expiring soon.
    *issue_date* does not affect the status.
    """
    now = to_datetime(now) or datetime.now()
    due = to_datetime(due_date, now)
    if due is None:
        return UNKNOWN

    days = _days_ceil(due - now)
    if days < EXPIRED_BOUNDARY_DAYS:
        status = DerivedStatus.EXPIRED
    elif days <= threshold_days:
        status = DerivedStatus.EXPIRING_SOON
    else:
        status = DerivedStatus.ACTIVE
    return Resolution(status, days)


def resolve_induction(scheduled_date, due_date, progress, now: datetime) -> Resolution:
    """
    Status of an induction at *now*.

    Completed once progress reaches 100 whatever the due date; otherwise
    overdue when *now* is past the due date, in progress when started and
    scheduled when not.  Days remaining round up like a license's; once
    overdue, ``urgency`` is ``ceil((now - due_date) / 1 day)`` so a record is
    a full day late as soon as its due moment passes.
    """
    try:
        pct = int(progress or 0)
    except (TypeError, ValueError):
        pct = 0

    now = to_datetime(now) or datetime.now()
    due = to_datetime(due_date, now)
    if due is None:
        days = None
    elif now > due:
        days = -_days_ceil(now - due)
    else:
        days = _days_ceil(due - now)

    if pct >= 100:
        return Resolution(DerivedStatus.COMPLETED, days)
    if due is None:
        return UNKNOWN
    if now > due:
        return Resolution(DerivedStatus.OVERDUE, days)
    if pct > 0:
        return Resolution(DerivedStatus.IN_PROGRESS, days)
    return Resolution(DerivedStatus.SCHEDULED, days)


def resolve_status(record: ComplianceRecord, now: Optional[datetime] = None) -> Resolution:
    """Resolve any record, dispatching on its kind."""
    now = now or datetime.now()
    if record.kind == RecordKind.LICENSE:
        return resolve_license(record.issue_date, record.due_date, now)
    if record.kind == RecordKind.INDUCTION:
        return resolve_induction(record.scheduled_date, record.due_date, record.progress, now)
    return UNKNOWN


def annotate(
    records: Iterable[ComplianceRecord], now: Optional[datetime] = None
) -> List[AnnotatedRecord]:
    """Pair every record with its resolution, all evaluated at the same instant."""
    now = now or datetime.now()
    return [AnnotatedRecord(r, resolve_status(r, now)) for r in records]

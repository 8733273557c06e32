"""
vigil.alerts
============

Pick and rank the records that need attention: everything expired or
overdue, plus licenses about to expire and started inductions about to fall
due.  Used both for the short dashboard banner (``limit=5``) and for the
full alerts view (no limit).
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Iterable, List, Optional

from .models import AlertItem, AnnotatedRecord, ComplianceRecord, DerivedStatus, Severity
from .status import annotate

logger = logging.getLogger(__name__)

DEFAULT_NEAR_DUE_DAYS = 7

OVERDUE_STATUSES = frozenset({DerivedStatus.EXPIRED, DerivedStatus.OVERDUE})
NEAR_DUE_STATUSES = frozenset({DerivedStatus.EXPIRING_SOON, DerivedStatus.IN_PROGRESS})


def _needs_attention(item: AnnotatedRecord, near_due_days: int) -> bool:
    if item.record.archived or item.days_until_due is None:
        return False
    if item.status in OVERDUE_STATUSES:
        return True
    return item.status in NEAR_DUE_STATUSES and item.days_until_due <= near_due_days


def _to_alert(item: AnnotatedRecord) -> AlertItem:
    rec = item.record
    overdue = item.status in OVERDUE_STATUSES
    return AlertItem(
        record_id=rec.id,
        subject_name=rec.subject_name or rec.subject_id,
        kind=rec.kind,
        label=rec.label,
        due_date=rec.due_date,
        urgency=item.days_until_due,
        severity=Severity.CRITICAL if overdue else Severity.WARNING,
    )


def select_alerts(
    records: Iterable[AnnotatedRecord],
    near_due_days: int = DEFAULT_NEAR_DUE_DAYS,
    limit: Optional[int] = None,
) -> List[AlertItem]:
    """
    Overdue/expired records first, most overdue first; then near‑due
    records, soonest first.  Ties keep their input order.  *limit*
    truncates the ranked list.
    """
    candidates = [i for i in records if _needs_attention(i, near_due_days)]
    candidates.sort(key=lambda i: (i.status not in OVERDUE_STATUSES, i.days_until_due))
    alerts = [_to_alert(i) for i in candidates]
    if limit is not None:
        alerts = alerts[:max(limit, 0)]
    logger.debug("Selected %d alert(s) from %d candidate(s)", len(alerts), len(candidates))
    return alerts


def alerts(
    records: Iterable[ComplianceRecord],
    now: Optional[datetime] = None,
    near_due_days: int = DEFAULT_NEAR_DUE_DAYS,
    limit: Optional[int] = None,
) -> List[AlertItem]:
    """Resolve raw records at *now* and select their alerts."""
    return select_alerts(annotate(records, now), near_due_days, limit)

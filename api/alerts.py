"""
Alert and summary endpoints backing the dashboard banner, the alerts view
and the status tiles.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from vigil.aggregation import RecordFilter, filter_records, summarize
from vigil.alerts import select_alerts
from vigil.models import RecordKind
from vigil.settings import settings
from vigil.status import annotate

from .deps import get_store
from .schemas import AlertOut, DashboardOut

router = APIRouter(tags=["alerts"])


def _visible(store, kind: Optional[RecordKind] = None):
    return filter_records(annotate(store), RecordFilter(kind=kind))


@router.get("/alerts", response_model=List[AlertOut])
def list_alerts(
    near_due_days: Optional[int] = Query(None, ge=0, alias="nearDueDays"),
    limit: Optional[int] = Query(None, ge=1),
    kind: Optional[RecordKind] = Query(None),
    store=Depends(get_store),
):
    """Overdue/expired records first, then those due within ``nearDueDays``."""
    days = settings.near_due_days if near_due_days is None else near_due_days
    return [AlertOut.from_item(a) for a in select_alerts(_visible(store, kind), days, limit)]


@router.get("/summary")
def status_summary(kind: Optional[RecordKind] = Query(None), store=Depends(get_store)):
    """Count of non‑archived records per derived status, plus ``total``."""
    return summarize(_visible(store, kind))


@router.get("/dashboard", response_model=DashboardOut)
def dashboard(store=Depends(get_store)):
    """Status counts plus the top alerts for the dashboard banner."""
    visible = _visible(store)
    top = select_alerts(visible, settings.near_due_days, settings.dashboard_alert_limit)
    return DashboardOut(summary=summarize(visible), alerts=[AlertOut.from_item(a) for a in top])

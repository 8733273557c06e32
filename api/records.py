"""
Record endpoints: create, list, fetch, and apply lifecycle actions.

Listing is a thin adapter over :func:`vigil.aggregation.list_records`;
actions go through :class:`vigil.lifecycle.LifecycleController`, whose
errors are turned into HTTP responses by the handler in :pymod:`api.main`.
"""

import logging
import uuid
from typing import Optional

from fastapi import APIRouter, Body, Depends, Query

from vigil.aggregation import RecordFilter, SortKey, list_records
from vigil.errors import ValidationError
from vigil.lifecycle import LifecycleController
from vigil.models import ComplianceRecord, DerivedStatus, RecordKind
from vigil.settings import settings

from .deps import get_controller, get_store
from .schemas import ActionIn, ActionOut, PageOut, RecordIn, RecordOut

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/records", tags=["records"])


def parse_status(value: Optional[str]) -> Optional[DerivedStatus]:
    """Accept either the display value ("Expiring Soon") or the name ("EXPIRING_SOON")."""
    if not value:
        return None
    key = value.strip().upper().replace(" ", "_").replace("-", "_")
    try:
        return DerivedStatus[key]
    except KeyError:
        raise ValidationError(f"unknown status {value!r}") from None


@router.post("", status_code=201, response_model=ActionOut)
def create_record(body: RecordIn, controller: LifecycleController = Depends(get_controller)):
    record = ComplianceRecord(
        id=body.id or uuid.uuid4().hex,
        subject_id=body.subject_id,
        kind=body.kind,
        label=body.label,
        due_date=body.due_date,
        issue_date=body.issue_date,
        scheduled_date=body.scheduled_date,
        progress=body.progress,
        document_ref=body.document_ref,
        authority_notes=body.authority_notes,
        subject_name=body.subject_name,
        department=body.department,
        description=body.description,
    )
    return ActionOut.from_result(controller.create(record))


@router.get("", response_model=PageOut)
def list_all(
    search: Optional[str] = Query(None, description="Substring of employee name, label or description"),
    kind: Optional[RecordKind] = Query(None),
    status: Optional[str] = Query(None, description="Derived status, e.g. 'Expiring Soon'"),
    department: Optional[str] = Query(None),
    subject_id: Optional[str] = Query(None, alias="subjectId"),
    include_archived: bool = Query(False, alias="includeArchived"),
    sort: Optional[SortKey] = Query(None),
    descending: bool = Query(False),
    page: int = Query(1, ge=1),
    page_size: Optional[int] = Query(None, ge=1, le=200, alias="pageSize"),
    store=Depends(get_store),
):
    """
    One page of records, each annotated with the status it resolves to now.

    Filters are AND‑combined; archived records are hidden unless
    ``includeArchived=true``.
    """
    filters = RecordFilter(
        search_text=search,
        kind=kind,
        status=parse_status(status),
        department=department,
        subject_id=subject_id,
        include_archived=include_archived,
    )
    page_obj = list_records(
        store,
        filters,
        page=page,
        page_size=page_size or settings.page_size,
        sort=sort,
        descending=descending,
    )
    return PageOut.from_page(page_obj)


@router.get("/{record_id}", response_model=RecordOut)
def get_one(record_id: str, controller: LifecycleController = Depends(get_controller)):
    return RecordOut.from_annotated(controller.resolve(record_id))


@router.post("/{record_id}/actions/{action}", response_model=ActionOut)
def apply_action(
    record_id: str,
    action: str,
    body: Optional[ActionIn] = Body(None),
    controller: LifecycleController = Depends(get_controller),
):
    """
    Apply a lifecycle action (start, continue, reschedule, complete, remind,
    archive, renew, edit).  A failed reminder still answers 200 and lists the
    delivery problem under ``warnings``.
    """
    body = body or ActionIn()
    result = controller.apply_action(
        record_id,
        action,
        body.snake_payload(),
        expected_version=body.expected_version,
    )
    for warning in result.warnings:
        logger.warning("%s %s: %s", action, record_id, warning)
    return ActionOut.from_result(result)

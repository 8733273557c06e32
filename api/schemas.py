"""
api.schemas
===========

Pydantic request/response models.  JSON uses camelCase field names
(``subjectId``, ``dueDate``…); Python code keeps snake_case.
"""

from __future__ import annotations

import re
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from vigil.lifecycle import ActionResult
from vigil.models import AlertItem, AnnotatedRecord, DerivedStatus, Page, RecordKind, Severity

When = Union[datetime, date]

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def to_snake(name: str) -> str:
    """``newDueDate`` → ``new_due_date`` (snake_case input passes through)."""
    return _CAMEL_BOUNDARY.sub("_", name).lower()


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RecordIn(CamelModel):
    """Body of ``POST /records``: schedule an induction or register a license."""
    id: Optional[str] = None
    subject_id: str = Field(..., min_length=1)
    subject_name: str = ""
    department: Optional[str] = None
    kind: RecordKind
    label: str = Field(..., min_length=1)
    description: str = ""
    due_date: When
    issue_date: Optional[When] = None
    scheduled_date: Optional[When] = None
    progress: int = 0
    document_ref: Optional[str] = None
    authority_notes: Optional[str] = None


class RecordOut(CamelModel):
    id: str
    subject_id: str
    subject_name: str
    department: Optional[str] = None
    kind: RecordKind
    label: str
    description: str = ""
    issue_date: Optional[When] = None
    due_date: Optional[When] = None
    scheduled_date: Optional[When] = None
    completed_date: Optional[When] = None
    progress: int
    archived: bool
    last_reminded_at: Optional[datetime] = None
    document_ref: Optional[str] = None
    authority_notes: Optional[str] = None
    version: int
    status: DerivedStatus
    days_until_due: Optional[int] = None

    @classmethod
    def from_annotated(cls, item: AnnotatedRecord) -> "RecordOut":
        rec = item.record
        return cls(
            id=rec.id,
            subject_id=rec.subject_id,
            subject_name=rec.subject_name,
            department=rec.department,
            kind=rec.kind,
            label=rec.label,
            description=rec.description,
            issue_date=rec.issue_date,
            due_date=rec.due_date,
            scheduled_date=rec.scheduled_date,
            completed_date=rec.completed_date,
            progress=rec.progress,
            archived=rec.archived,
            last_reminded_at=rec.last_reminded_at,
            document_ref=rec.document_ref,
            authority_notes=rec.authority_notes,
            version=rec.version,
            status=item.status,
            days_until_due=item.days_until_due,
        )


class PageOut(CamelModel):
    items: List[RecordOut]
    page: int
    page_size: int
    total: int
    total_pages: int

    @classmethod
    def from_page(cls, page: Page) -> "PageOut":
        return cls(
            items=[RecordOut.from_annotated(i) for i in page.items],
            page=page.page,
            page_size=page.page_size,
            total=page.total,
            total_pages=page.total_pages,
        )


class ActionIn(CamelModel):
    """Body of ``POST /records/{id}/actions/{action}``."""
    payload: Dict[str, Any] = Field(default_factory=dict)
    expected_version: Optional[int] = None

    def snake_payload(self) -> Dict[str, Any]:
        out = {to_snake(k): v for k, v in self.payload.items()}
        if isinstance(out.get("fields"), dict):
            out["fields"] = {to_snake(k): v for k, v in out["fields"].items()}
        return out


class ActionOut(CamelModel):
    record: RecordOut
    changed: bool
    throttled: bool = False
    warnings: List[str] = Field(default_factory=list)

    @classmethod
    def from_result(cls, result: ActionResult) -> "ActionOut":
        return cls(
            record=RecordOut.from_annotated(AnnotatedRecord(result.record, result.resolution)),
            changed=result.changed,
            throttled=result.throttled,
            warnings=list(result.warnings),
        )


class AlertOut(CamelModel):
    record_id: str
    subject_name: str
    kind: RecordKind
    label: str
    due_date: Optional[When] = None
    urgency: int
    severity: Severity

    @classmethod
    def from_item(cls, item: AlertItem) -> "AlertOut":
        return cls(
            record_id=item.record_id,
            subject_name=item.subject_name,
            kind=item.kind,
            label=item.label,
            due_date=item.due_date,
            urgency=item.urgency,
            severity=item.severity,
        )


class DashboardOut(CamelModel):
    summary: Dict[str, int]
    alerts: List[AlertOut]

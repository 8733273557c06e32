"""
vigil.models
============

Dataclasses and enums describing a single compliance record (a license or
an onboarding induction) and the values derived from it.  Like the rest of
the core package these objects carry **no** external‑library dependencies,
so the resolver and aggregation helpers can be unit‑tested in isolation.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import List, NamedTuple, Optional, Union

When = Union[date, datetime]


class RecordKind(str, Enum):
    """The two kinds of artefact tracked against an employee."""
    LICENSE = "license"
    INDUCTION = "induction"

    def __str__(self) -> str:
        return self.value


class DerivedStatus(str, Enum):
    """
    Status computed at read time.  Licenses use the first three members,
    inductions the next four; ``UNKNOWN`` is returned when the dates of a
    record cannot be read.
    """
    ACTIVE = "Active"
    EXPIRING_SOON = "Expiring Soon"
    EXPIRED = "Expired"
    SCHEDULED = "Scheduled"
    IN_PROGRESS = "In Progress"
    COMPLETED = "Completed"
    OVERDUE = "Overdue"
    UNKNOWN = "Unknown"

    def __str__(self) -> str:        # nicer REPL display
        return self.name


LICENSE_STATUSES = (
    DerivedStatus.ACTIVE,
    DerivedStatus.EXPIRING_SOON,
    DerivedStatus.EXPIRED,
)
INDUCTION_STATUSES = (
    DerivedStatus.SCHEDULED,
    DerivedStatus.IN_PROGRESS,
    DerivedStatus.COMPLETED,
    DerivedStatus.OVERDUE,
)


class Severity(str, Enum):
    CRITICAL = "critical"
    WARNING = "warning"


@dataclass
class ComplianceRecord:
    """
    Core record tracked by Vigil.

    Parameters
    ----------
    id : str
        Store identifier.
    subject_id : str
        Employee the record belongs to.
    kind : RecordKind
        License or induction.
    label : str
        License type or induction name (e.g. "Forklift Licence").
    due_date : date | datetime | None
        Expiry date of a license, due date of an induction.
    issue_date, scheduled_date, completed_date : date | datetime | None
        Optional lifecycle dates; ``scheduled_date`` only applies to inductions.
    progress : int, default=0
        Induction progress, 0–100.
    explicit_status : str | None
        Legacy status hint kept for auditing; never read by the resolver.
    archived : bool, default=False
        One‑way terminal flag.
    version : int, default=0
        Optimistic‑concurrency token, bumped by every store write.
    """
    id: str
    subject_id: str
    kind: RecordKind
    label: str
    due_date: Optional[When] = None
    issue_date: Optional[When] = None
    scheduled_date: Optional[When] = None
    completed_date: Optional[When] = None
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

    @property
    def entity_type(self) -> str:
        """Name used for audit entries ("license" / "induction")."""
        return self.kind.value


class Resolution(NamedTuple):
    """
    Result of resolving a record.

    ``days_until_due`` is signed: positive while time remains, negative once
    the due date has passed, ``None`` when the status is ``UNKNOWN``.
    """
    status: DerivedStatus
    days_until_due: Optional[int]

    @property
    def urgency(self) -> Optional[int]:
        """Days past due (positive once overdue)."""
        if self.days_until_due is None:
            return None
        return -self.days_until_due


@dataclass(frozen=True)
class AnnotatedRecord:
    """A record paired with the status it resolved to at read time."""
    record: ComplianceRecord
    resolution: Resolution

    @property
    def status(self) -> DerivedStatus:
        return self.resolution.status

    @property
    def days_until_due(self) -> Optional[int]:
        return self.resolution.days_until_due


@dataclass(frozen=True)
class AlertItem:
    """One row of an alert banner or alerts view."""
    record_id: str
    subject_name: str
    kind: RecordKind
    label: str
    due_date: Optional[When]
    urgency: int
    severity: Severity


@dataclass
class Page:
    """One page of a listing (1‑indexed)."""
    items: List[AnnotatedRecord] = field(default_factory=list)
    page: int = 1
    page_size: int = 10
    total: int = 0

    @property
    def total_pages(self) -> int:
        if self.total == 0:
            return 0
        return -(-self.total // self.page_size)

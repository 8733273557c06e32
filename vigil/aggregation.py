"""
vigil.aggregation
=================

Stateless listing helpers over *annotated* records: filter, search, sort,
paginate and count.

Every function takes a collection and returns a new one; nothing here keeps
filter state between calls, and nothing here raises on an empty result.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence

from .models import (
    AnnotatedRecord,
    ComplianceRecord,
    DerivedStatus,
    Page,
    RecordKind,
)
from .status import annotate, to_datetime

DEFAULT_PAGE_SIZE = 10


@dataclass(frozen=True)
class RecordFilter:
    """
    Criteria for :func:`filter_records`.  ``None`` means "don't filter".

    ``search_text`` is a case‑insensitive substring match against the
    subject name, label and description; the other fields are exact matches.
    Archived records are hidden unless ``include_archived`` is set.
    """
    search_text: Optional[str] = None
    kind: Optional[RecordKind] = None
    status: Optional[DerivedStatus] = None
    department: Optional[str] = None
    subject_id: Optional[str] = None
    include_archived: bool = False


class SortKey(str, Enum):
    DUE_DATE = "due_date"
    LABEL = "label"
    SUBJECT_NAME = "subject_name"
    URGENCY = "urgency"


def _matches(item: AnnotatedRecord, f: RecordFilter, needle: Optional[str]) -> bool:
    rec = item.record
    if rec.archived and not f.include_archived:
        return False
    if f.kind is not None and rec.kind != f.kind:
        return False
    if f.status is not None and item.status != f.status:
        return False
    if f.department is not None and rec.department != f.department:
        return False
    if f.subject_id is not None and rec.subject_id != f.subject_id:
        return False
    if needle:
        haystack = " ".join((rec.subject_name or "", rec.label or "", rec.description or ""))
        if needle not in haystack.lower():
            return False
    return True


def filter_records(
    records: Iterable[AnnotatedRecord], filters: Optional[RecordFilter] = None
) -> List[AnnotatedRecord]:
    """Return the records matching *filters*, in their input order."""
    f = filters or RecordFilter()
    needle = (f.search_text or "").strip().lower() or None
    return [item for item in records if _matches(item, f, needle)]


def sort_records(
    records: Iterable[AnnotatedRecord],
    key: SortKey = SortKey.DUE_DATE,
    descending: bool = False,
) -> List[AnnotatedRecord]:
    """
    Stable sort by *key*.  Records with no due date (or unknown urgency)
    always go last, whatever the direction.
    """
    key = SortKey(key)
    items = list(records)

    if key is SortKey.LABEL:
        return sorted(items, key=lambda i: (i.record.label or "").lower(), reverse=descending)
    if key is SortKey.SUBJECT_NAME:
        return sorted(items, key=lambda i: (i.record.subject_name or "").lower(), reverse=descending)

    keyed, missing = [], []
    for item in items:
        if key is SortKey.URGENCY:
            value = None if item.days_until_due is None else -item.days_until_due
        else:
            due = to_datetime(item.record.due_date)
            value = None if due is None else _naive(due)
        if value is None:
            missing.append(item)
        else:
            keyed.append((value, item))
    keyed.sort(key=lambda pair: pair[0], reverse=descending)
    return [item for _, item in keyed] + missing


def _naive(when: datetime) -> datetime:
    if when.tzinfo is not None:
        return when.astimezone().replace(tzinfo=None)
    return when


def paginate(
    records: Sequence[AnnotatedRecord], page: int = 1, page_size: int = DEFAULT_PAGE_SIZE
) -> Page:
    """
    Slice out one 1‑indexed page.  A page past the end is empty, not an
    error; page and page_size below 1 are treated as 1.
    """
    page = max(int(page), 1)
    page_size = max(int(page_size), 1)
    items = list(records)
    start = (page - 1) * page_size
    return Page(
        items=items[start:start + page_size],
        page=page,
        page_size=page_size,
        total=len(items),
    )


def summarize(records: Iterable[AnnotatedRecord]) -> Dict[str, int]:
    """
    Count records per derived status, plus ``total``.

    Every status appears, zero when absent, so dashboards can render a fixed
    set of tiles.
    """
    counts: Dict[str, int] = {s.name: 0 for s in DerivedStatus}
    total = 0
    for item in records:
        counts[item.status.name] += 1
        total += 1
    counts["total"] = total
    return counts


def list_records(
    records: Iterable[ComplianceRecord],
    filters: Optional[RecordFilter] = None,
    page: int = 1,
    page_size: int = DEFAULT_PAGE_SIZE,
    now: Optional[datetime] = None,
    sort: Optional[SortKey] = None,
    descending: bool = False,
) -> Page:
    """Annotate raw records, then filter, optionally sort, and paginate them."""
    selected = filter_records(annotate(records, now), filters)
    if sort is not None:
        selected = sort_records(selected, sort, descending)
    return paginate(selected, page, page_size)

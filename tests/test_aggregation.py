"""
tests/test_aggregation.py
=========================

Unit tests for vigil.aggregation: filter, sort, paginate, summarize.
"""

from datetime import date, timedelta

from conftest import NOW, make_induction, make_license
from vigil.aggregation import (
    RecordFilter,
    SortKey,
    filter_records,
    list_records,
    paginate,
    sort_records,
    summarize,
)
from vigil.models import DerivedStatus, RecordKind
from vigil.status import annotate


def _demo_records():
    return [
        make_license("lic-a", date(2024, 3, 6), subject_name="Stephen Ford", department="Operations"),
        make_license("lic-b", date(2026, 1, 1), subject_name="Mike Rodriguez", department="Installation",
                     label="Electrical Licence"),
        make_induction("ind-a", NOW - timedelta(days=3), progress=25, subject_name="Emma Davis",
                       department="Operations", description="Workplace Safety & Protocols"),
        make_induction("ind-b", NOW + timedelta(days=10), subject_name="Elizabeth Chen",
                       department="Sales", label="Company Onboarding"),
        make_induction("ind-c", NOW - timedelta(days=30), progress=100, subject_name="Stephen Ford",
                       department="Operations", archived=True),
    ]


def _annotated():
    return annotate(_demo_records(), NOW)


def _ids(items):
    return [i.record.id for i in items]


# ---------------------------------------------------------------------------
# filter_records
# ---------------------------------------------------------------------------
def test_no_filter_hides_archived_only():
    assert _ids(filter_records(_annotated())) == ["lic-a", "lic-b", "ind-a", "ind-b"]


def test_include_archived():
    assert "ind-c" in _ids(filter_records(_annotated(), RecordFilter(include_archived=True)))


def test_search_is_case_insensitive_over_name_label_description():
    items = _annotated()
    assert _ids(filter_records(items, RecordFilter(search_text="STEPHEN"))) == ["lic-a"]
    assert _ids(filter_records(items, RecordFilter(search_text="electrical"))) == ["lic-b"]
    assert _ids(filter_records(items, RecordFilter(search_text="protocols"))) == ["ind-a"]


def test_blank_search_matches_everything():
    assert len(filter_records(_annotated(), RecordFilter(search_text="   "))) == 4


def test_filters_are_and_combined():
    f = RecordFilter(kind=RecordKind.INDUCTION, department="Operations")
    assert _ids(filter_records(_annotated(), f)) == ["ind-a"]


def test_status_filter_uses_derived_status():
    f = RecordFilter(status=DerivedStatus.EXPIRING_SOON)
    assert _ids(filter_records(_annotated(), f)) == ["lic-a"]


def test_department_is_exact_match():
    assert filter_records(_annotated(), RecordFilter(department="Ops")) == []


def test_subject_filter():
    f = RecordFilter(subject_id="emp-2", include_archived=True)
    assert _ids(filter_records(_annotated(), f)) == ["ind-a", "ind-b", "ind-c"]


def test_filter_preserves_input_order():
    items = list(reversed(_annotated()))
    assert _ids(filter_records(items)) == ["ind-b", "ind-a", "lic-b", "lic-a"]


def test_empty_input():
    assert filter_records([], RecordFilter(search_text="x")) == []


# ---------------------------------------------------------------------------
# sort_records
# ---------------------------------------------------------------------------
def test_sort_by_due_date_puts_missing_last():
    items = annotate(_demo_records() + [make_license("lic-x", None)], NOW)
    ordered = _ids(sort_records(items, SortKey.DUE_DATE))
    assert ordered == ["ind-c", "ind-a", "lic-a", "ind-b", "lic-b", "lic-x"]
    assert _ids(sort_records(items, SortKey.DUE_DATE, descending=True))[-1] == "lic-x"


def test_sort_by_urgency_most_overdue_first():
    ordered = _ids(sort_records(_annotated(), SortKey.URGENCY, descending=True))
    assert ordered[:2] == ["ind-c", "ind-a"]


def test_sort_by_label_is_stable_and_case_insensitive():
    items = annotate([make_license("1", date(2030, 1, 1), label="b"),
                      make_license("2", date(2030, 1, 1), label="A"),
                      make_license("3", date(2030, 1, 1), label="a")], NOW)
    assert _ids(sort_records(items, SortKey.LABEL)) == ["2", "3", "1"]


# ---------------------------------------------------------------------------
# paginate
# ---------------------------------------------------------------------------
def _many(n):
    return annotate([make_license(f"lic-{i:02d}", date(2030, 1, 1)) for i in range(n)], NOW)


def test_paginate_last_partial_page():
    page = paginate(_many(25), page=3, page_size=10)
    assert len(page.items) == 5
    assert page.total == 25
    assert page.total_pages == 3
    assert page.items[0].record.id == "lic-20"


def test_paginate_beyond_range_is_empty():
    page = paginate(_many(25), page=4, page_size=10)
    assert page.items == []
    assert page.total == 25


def test_paginate_defaults_and_clamping():
    page = paginate(_many(12), page=0)
    assert page.page == 1 and page.page_size == 10
    assert len(page.items) == 10


def test_paginate_empty():
    page = paginate([], page=1)
    assert page.items == [] and page.total_pages == 0


# ---------------------------------------------------------------------------
# summarize / list_records
# ---------------------------------------------------------------------------
def test_summarize_counts_every_status():
    counts = summarize(filter_records(_annotated()))
    assert counts["EXPIRING_SOON"] == 1
    assert counts["ACTIVE"] == 1
    assert counts["OVERDUE"] == 1
    assert counts["SCHEDULED"] == 1
    assert counts["COMPLETED"] == 0
    assert counts["UNKNOWN"] == 0
    assert counts["total"] == 4
    assert set(counts) == {s.name for s in DerivedStatus} | {"total"}


def test_summarize_empty():
    assert summarize([])["total"] == 0


def test_list_records_end_to_end():
    page = list_records(
        _demo_records(),
        RecordFilter(kind=RecordKind.LICENSE),
        page=1,
        page_size=1,
        now=NOW,
        sort=SortKey.DUE_DATE,
        descending=True,
    )
    assert page.total == 2
    assert _ids(page.items) == ["lic-b"]

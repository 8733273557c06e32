"""
tests/test_lifecycle.py
=======================

Unit tests for vigil.lifecycle (transition table and LifecycleController)
against the in‑memory RecordStore.
"""

import threading
from datetime import date, datetime, timedelta, timezone

import pytest

from conftest import NOW, RecordingActivity, RecordingDispatcher, make_induction, make_license
from vigil.errors import Conflict, InvalidTransition, RecordNotFound, ValidationError
from vigil.lifecycle import Action, LifecycleController, allowed_actions, check_transition
from vigil.models import DerivedStatus, RecordKind

FUTURE = NOW + timedelta(days=20)
PAST = NOW - timedelta(days=5)


def _add(controller, record):
    return controller.create(record, now=NOW).record


# ---------------------------------------------------------------------------
# Transition table
# ---------------------------------------------------------------------------
def test_good_transition():
    """SCHEDULED → start is allowed."""
    check_transition(RecordKind.INDUCTION, Action.START, DerivedStatus.SCHEDULED)


def test_illegal_transition_names_action_and_state():
    with pytest.raises(InvalidTransition) as err:
        check_transition(RecordKind.INDUCTION, Action.ARCHIVE, DerivedStatus.IN_PROGRESS)
    assert "archive" in str(err.value)
    assert "IN_PROGRESS" in str(err.value)


def test_action_not_defined_for_kind():
    with pytest.raises(InvalidTransition):
        check_transition(RecordKind.LICENSE, Action.START, DerivedStatus.ACTIVE)


def test_allowed_actions_for_scheduled_induction():
    ind = make_induction(due_date=FUTURE)
    assert allowed_actions(ind, NOW) == [Action.START, Action.RESCHEDULE, Action.EDIT]


# ---------------------------------------------------------------------------
# create
# ---------------------------------------------------------------------------
def test_create_stores_and_audits(controller, store, activity):
    result = controller.create(make_induction(due_date=FUTURE), now=NOW)
    assert result.status is DerivedStatus.SCHEDULED
    assert store.get("ind-1").explicit_status == "Scheduled"
    assert activity.entries[0][:3] == ("create", "induction", "ind-1")


def test_create_rewrites_a_contradicting_status_hint(controller, store):
    controller.create(make_induction(due_date=FUTURE, explicit_status="Completed"), now=NOW)
    assert store.get("ind-1").explicit_status == "Scheduled"


def test_create_completed_induction_sets_completed_date(controller):
    result = controller.create(make_induction(due_date=FUTURE, progress=100), now=NOW)
    assert result.record.completed_date == NOW


@pytest.mark.parametrize(
    "record",
    [
        make_induction(due_date=FUTURE, progress=120),
        make_induction(due_date=FUTURE, progress=-1),
        make_induction(due_date=date(2024, 1, 1), scheduled_date=date(2024, 2, 1)),
        make_induction(due_date=None),
        make_license(due_date=date(2024, 1, 1), issue_date=date(2024, 6, 1)),
        make_license(due_date=FUTURE, label="  "),
    ],
)
def test_create_rejects_invalid_records(controller, record):
    with pytest.raises(ValidationError):
        controller.create(record, now=NOW)


# ---------------------------------------------------------------------------
# start / continue / complete
# ---------------------------------------------------------------------------
def test_start_scheduled_induction(controller, activity):
    _add(controller, make_induction(due_date=FUTURE))
    result = controller.apply_action("ind-1", "start")
    assert result.record.progress >= 5
    assert result.status is DerivedStatus.IN_PROGRESS
    action, _, _, old, new = activity.entries[-1]
    assert action == "start"
    assert old["progress"] == 0 and new["progress"] == 5


def test_start_overdue_induction_stays_overdue(controller):
    _add(controller, make_induction(due_date=FUTURE))
    result = controller.apply_action("ind-1", Action.START, now=FUTURE + timedelta(days=1))
    assert result.record.progress == 5
    assert result.status is DerivedStatus.OVERDUE


def test_start_twice_is_illegal(controller):
    _add(controller, make_induction(due_date=FUTURE))
    controller.apply_action("ind-1", "start")
    with pytest.raises(InvalidTransition):
        controller.apply_action("ind-1", "start")


def test_continue_to_completion(controller):
    _add(controller, make_induction(due_date=FUTURE, progress=30))
    result = controller.apply_action("ind-1", "continue", {"delta": 100})
    assert result.record.progress == 100
    assert result.status is DerivedStatus.COMPLETED
    assert result.record.completed_date == NOW


def test_continue_partial(controller):
    _add(controller, make_induction(due_date=FUTURE, progress=30))
    result = controller.apply_action("ind-1", "continue", {"delta": 25})
    assert result.record.progress == 55
    assert result.record.completed_date is None
    assert result.status is DerivedStatus.IN_PROGRESS


def test_continue_with_absolute_progress(controller):
    _add(controller, make_induction(due_date=FUTURE, progress=30))
    assert controller.apply_action("ind-1", "continue", {"progress": 80}).record.progress == 80


@pytest.mark.parametrize("payload", [{}, {"delta": -10}, {"delta": "lots"}, {"progress": 10}, {"progress": 150}])
def test_continue_rejects_bad_progress(controller, payload):
    _add(controller, make_induction(due_date=FUTURE, progress=30))
    with pytest.raises(ValidationError):
        controller.apply_action("ind-1", "continue", payload)


def test_continue_scheduled_induction_is_illegal(controller):
    _add(controller, make_induction(due_date=FUTURE))
    with pytest.raises(InvalidTransition):
        controller.apply_action("ind-1", "continue", {"delta": 10})


def test_complete_overdue_induction(controller):
    _add(controller, make_induction(due_date=PAST, progress=40, scheduled_date=PAST - timedelta(days=3)))
    result = controller.apply_action("ind-1", "complete")
    assert result.status is DerivedStatus.COMPLETED
    assert result.record.progress == 100
    assert result.record.completed_date == NOW


# ---------------------------------------------------------------------------
# reschedule
# ---------------------------------------------------------------------------
def test_reschedule_overdue_induction(controller):
    _add(controller, make_induction(due_date=PAST, progress=40))
    result = controller.apply_action("ind-1", "reschedule", {"new_due_date": "2024-03-15"})
    assert result.status is DerivedStatus.IN_PROGRESS
    assert result.record.due_date.date() == date(2024, 3, 15)


def test_reschedule_to_today_is_allowed(controller):
    _add(controller, make_induction(due_date=PAST))
    result = controller.apply_action("ind-1", "reschedule", {"new_due_date": NOW.date()})
    assert result.record.due_date.date() == NOW.date()


def test_reschedule_into_the_past(controller):
    _add(controller, make_induction(due_date=FUTURE))
    with pytest.raises(ValidationError):
        controller.apply_action("ind-1", "reschedule", {"new_due_date": "2024-02-01"})


def test_reschedule_before_scheduled_date(controller):
    _add(controller, make_induction(due_date=NOW + timedelta(days=30), scheduled_date=NOW + timedelta(days=10)))
    with pytest.raises(ValidationError):
        controller.apply_action("ind-1", "reschedule", {"new_due_date": NOW + timedelta(days=5)})


def test_reschedule_needs_a_date(controller):
    _add(controller, make_induction(due_date=FUTURE))
    with pytest.raises(ValidationError):
        controller.apply_action("ind-1", "reschedule", {"new_due_date": "soon"})


# ---------------------------------------------------------------------------
# archive
# ---------------------------------------------------------------------------
@pytest.mark.parametrize("progress, due", [(0, FUTURE), (50, FUTURE), (50, PAST)])
def test_archive_requires_completed(controller, progress, due):
    _add(controller, make_induction(due_date=due, progress=progress))
    with pytest.raises(InvalidTransition):
        controller.apply_action("ind-1", "archive")


def test_archive_completed_is_terminal(controller):
    _add(controller, make_induction(due_date=FUTURE, progress=100))
    result = controller.apply_action("ind-1", "archive")
    assert result.record.archived is True
    for action in ("reschedule", "edit", "archive"):
        with pytest.raises(InvalidTransition) as err:
            controller.apply_action("ind-1", action, {"new_due_date": FUTURE, "label": "x"})
        assert "ARCHIVED" in str(err.value)


def test_license_cannot_be_archived(controller):
    _add(controller, make_license(due_date=PAST))
    with pytest.raises(InvalidTransition):
        controller.apply_action("lic-1", "archive")


# ---------------------------------------------------------------------------
# renew / edit (licenses)
# ---------------------------------------------------------------------------
def test_renew_expired_license(controller):
    _add(controller, make_license(due_date=PAST, issue_date=date(2021, 1, 1)))
    result = controller.apply_action(
        "lic-1",
        "renew",
        {"new_issue_date": "2024-03-01", "new_due_date": "2027-03-01", "document_ref": "doc-9"},
    )
    assert result.status is DerivedStatus.ACTIVE
    assert result.record.document_ref == "doc-9"
    assert result.record.issue_date.date() == date(2024, 3, 1)


def test_renew_defaults_issue_date_to_today(controller):
    _add(controller, make_license(due_date=PAST))
    result = controller.apply_action("lic-1", "renew", {"new_due_date": "2025-03-01"})
    assert result.record.issue_date.date() == NOW.date()


def test_renew_mixes_naive_and_aware_dates(controller):
    """A date‑only issue date and a UTC expiry are compared on the same clock."""
    _add(controller, make_license(due_date=PAST))
    result = controller.apply_action(
        "lic-1", "renew", {"new_issue_date": "2024-03-01", "new_due_date": "2025-03-01T00:00:00Z"}
    )
    assert result.status is DerivedStatus.ACTIVE
    assert result.record.issue_date == datetime(2024, 3, 1, tzinfo=timezone.utc)

    with pytest.raises(ValidationError):
        controller.apply_action(
            "lic-1", "renew", {"new_issue_date": "2026-01-01", "new_due_date": "2025-03-01T00:00:00Z"}
        )


def test_renew_requires_due_after_issue(controller):
    _add(controller, make_license(due_date=PAST))
    with pytest.raises(ValidationError):
        controller.apply_action("lic-1", "renew", {"new_issue_date": "2025-01-01", "new_due_date": "2024-12-31"})


def test_renew_is_license_only(controller):
    _add(controller, make_induction(due_date=FUTURE))
    with pytest.raises(InvalidTransition):
        controller.apply_action("ind-1", "renew", {"new_due_date": "2030-01-01"})


def test_edit_does_not_touch_status(controller):
    _add(controller, make_license(due_date=date(2024, 3, 6)))
    result = controller.apply_action("lic-1", "edit", {"fields": {"label": "HR Forklift", "authority_notes": "renewed by post"}})
    assert result.record.label == "HR Forklift"
    assert result.status is DerivedStatus.EXPIRING_SOON
    assert result.record.due_date == date(2024, 3, 6)


@pytest.mark.parametrize("fields", [{"due_date": "2030-01-01"}, {"progress": 50}, {}, {"label": ""}])
def test_edit_rejects_date_and_unknown_fields(controller, fields):
    _add(controller, make_license(due_date=FUTURE))
    with pytest.raises(ValidationError):
        controller.apply_action("lic-1", "edit", {"fields": fields})


def test_edit_with_no_change_is_a_no_op(controller, activity):
    _add(controller, make_license(due_date=FUTURE))
    result = controller.apply_action("lic-1", "edit", {"label": "Forklift Licence"})
    assert result.changed is False
    assert len(activity.entries) == 1  # just the create


# ---------------------------------------------------------------------------
# remind
# ---------------------------------------------------------------------------
def test_remind_overdue_induction(controller, dispatcher):
    _add(controller, make_induction(due_date=PAST))
    result = controller.apply_action("ind-1", "remind")
    assert dispatcher.sent == ["ind-1"]
    assert result.record.last_reminded_at == NOW
    assert result.status is DerivedStatus.OVERDUE


def test_remind_is_throttled_for_a_day(controller, dispatcher):
    _add(controller, make_induction(due_date=PAST))
    controller.apply_action("ind-1", "remind")
    again = controller.apply_action("ind-1", "remind", now=NOW + timedelta(hours=23))
    assert again.throttled is True and again.changed is False
    assert dispatcher.sent == ["ind-1"]

    later = controller.apply_action("ind-1", "remind", now=NOW + timedelta(hours=24))
    assert later.throttled is False
    assert dispatcher.sent == ["ind-1", "ind-1"]


def test_remind_expiring_license(controller, dispatcher):
    _add(controller, make_license(due_date=date(2024, 3, 6)))
    controller.apply_action("lic-1", "remind")
    assert dispatcher.sent == ["lic-1"]


@pytest.mark.parametrize(
    "record",
    [
        make_license(due_date=date(2025, 1, 1)),
        make_license(due_date=PAST),
        make_induction(due_date=FUTURE, progress=20),
    ],
)
def test_remind_only_from_expiring_or_overdue(controller, dispatcher, record):
    _add(controller, record)
    with pytest.raises(InvalidTransition):
        controller.apply_action(record.id, "remind")
    assert dispatcher.sent == []


def test_failed_dispatch_is_a_warning(store, activity):
    ctl = LifecycleController(store, dispatcher=RecordingDispatcher(fail=True), activity=activity, clock=lambda: NOW)
    _add(ctl, make_induction(due_date=PAST))
    result = ctl.apply_action("ind-1", "remind")
    assert result.dispatch_failure is not None
    assert result.warnings and "not delivered" in result.warnings[0]
    assert result.changed is False
    # the throttle slot was released, so a retry is not throttled
    assert store.get("ind-1").last_reminded_at is None
    assert ctl.apply_action("ind-1", "remind").throttled is False


# ---------------------------------------------------------------------------
# side effects and concurrency
# ---------------------------------------------------------------------------
def test_activity_failure_does_not_undo_the_write(store, dispatcher):
    ctl = LifecycleController(store, dispatcher=dispatcher, activity=RecordingActivity(fail=True), clock=lambda: NOW)
    created = ctl.create(make_induction(due_date=FUTURE), now=NOW)
    assert created.warnings
    result = ctl.apply_action("ind-1", "start")
    assert result.warnings and "activity log failed" in result.warnings[0]
    assert store.get("ind-1").progress == 5


def test_stale_expected_version_conflicts(controller):
    rec = _add(controller, make_induction(due_date=FUTURE))
    controller.apply_action("ind-1", "start")
    with pytest.raises(Conflict):
        controller.apply_action("ind-1", "continue", {"delta": 10}, expected_version=rec.version)


def test_losing_writer_gets_conflict(store, controller):
    """A write racing between our read and our update must not be overwritten."""
    _add(controller, make_induction(due_date=FUTURE))
    original_get = store.get

    def racing_get(record_id):
        snapshot = original_get(record_id)
        store.update_if_unchanged(record_id, snapshot.version, {"label": "renamed elsewhere"})
        return snapshot

    store.get = racing_get
    with pytest.raises(Conflict):
        controller.apply_action("ind-1", "start")
    store.get = original_get
    assert store.get("ind-1").progress == 0
    assert store.get("ind-1").label == "renamed elsewhere"


def test_concurrent_reminders_send_once(store, controller, dispatcher):
    """Reminders racing on the same record: one claims the slot, the rest get Conflict."""
    _add(controller, make_induction(due_date=PAST))
    workers = 4
    barrier = threading.Barrier(workers, timeout=5)
    original_get = store.get

    def synchronized_get(record_id):
        snapshot = original_get(record_id)
        barrier.wait()
        return snapshot

    store.get = synchronized_get
    outcomes = []

    def remind():
        try:
            controller.apply_action("ind-1", "remind")
            outcomes.append("sent")
        except Conflict:
            outcomes.append("conflict")

    threads = [threading.Thread(target=remind) for _ in range(workers)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    store.get = original_get

    assert dispatcher.sent == ["ind-1"]
    assert sorted(outcomes) == ["conflict"] * (workers - 1) + ["sent"]
    assert store.get("ind-1").last_reminded_at == NOW


def test_unknown_record(controller):
    with pytest.raises(RecordNotFound):
        controller.apply_action("nope", "start")


def test_unknown_action(controller):
    _add(controller, make_induction(due_date=FUTURE))
    with pytest.raises(ValidationError):
        controller.apply_action("ind-1", "teleport")

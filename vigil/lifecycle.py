"""
vigil.lifecycle
===============

State‑transition guard and action runner for a
:class:`vigil.models.ComplianceRecord`.

A small table (:data:`RULES`) lists, per record kind, the states from which
each named action is legal.  The state is never read from the record: it is
resolved from its dates and progress at the moment the action is applied
(``ARCHIVED`` once the terminal flag is set).

:class:`LifecycleController` validates an action against that table,
computes the patch, and writes it with a version‑conditioned update, so a
concurrent writer gets :class:`~vigil.errors.Conflict` instead of silently
overwriting.  Audit entries and reminders are side effects whose failure is
reported on the result but never undoes the write.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Callable, Dict, FrozenSet, List, Mapping, Optional, Union

from .activity import ActivityLogger, LoggingActivityLogger
from .dispatch import ReminderDispatcher, default_dispatcher
from .errors import Conflict, DispatchFailure, InvalidTransition, ValidationError
from .models import (
    INDUCTION_STATUSES,
    LICENSE_STATUSES,
    AnnotatedRecord,
    ComplianceRecord,
    DerivedStatus,
    RecordKind,
    Resolution,
)
from .settings import Settings, settings as default_settings
from .status import resolve_status, to_datetime

logger = logging.getLogger(__name__)

ARCHIVED = "ARCHIVED"


class Action(str, Enum):
    """Transition actions accepted by :meth:`LifecycleController.apply_action`."""
    START = "start"
    CONTINUE = "continue"
    RESCHEDULE = "reschedule"
    COMPLETE = "complete"
    REMIND = "remind"
    ARCHIVE = "archive"
    RENEW = "renew"
    EDIT = "edit"

    def __str__(self) -> str:
        return self.value


S = DerivedStatus
_ANY_INDUCTION = frozenset(INDUCTION_STATUSES) | {S.UNKNOWN}
_ANY_LICENSE = frozenset(LICENSE_STATUSES) | {S.UNKNOWN}

# ---------------------------------------------------------------------
# Allowed transitions: kind → action → set[legal source states]
# ARCHIVED appears in no set, so it is terminal for every action.
# ---------------------------------------------------------------------
RULES: Dict[RecordKind, Dict[Action, FrozenSet]] = {
    RecordKind.INDUCTION: {
        Action.START:      frozenset({S.SCHEDULED, S.OVERDUE}),
        Action.CONTINUE:   frozenset({S.IN_PROGRESS, S.OVERDUE}),
        Action.RESCHEDULE: _ANY_INDUCTION,
        Action.COMPLETE:   frozenset({S.IN_PROGRESS, S.OVERDUE}),
        Action.REMIND:     frozenset({S.OVERDUE}),
        Action.ARCHIVE:    frozenset({S.COMPLETED}),
        Action.EDIT:       _ANY_INDUCTION,
    },
    RecordKind.LICENSE: {
        Action.RENEW:      _ANY_LICENSE,
        Action.REMIND:     frozenset({S.EXPIRING_SOON}),
        Action.ARCHIVE:    frozenset({S.COMPLETED}),
        Action.EDIT:       _ANY_LICENSE,
    },
}

# Fields `edit` may touch; dates and progress only move through their own actions.
EDITABLE_FIELDS = frozenset(
    {"label", "description", "department", "subject_name", "document_ref", "authority_notes"}
)

State = Union[DerivedStatus, str]


def lifecycle_state(record: ComplianceRecord, resolution: Resolution) -> State:
    """The state transitions are checked against: ARCHIVED or the derived status."""
    return ARCHIVED if record.archived else resolution.status


def parse_action(name: Union[str, Action]) -> Action:
    try:
        return Action(name)
    except ValueError:
        raise ValidationError(f"unknown action {name!r}") from None


def check_transition(kind: RecordKind, action: Action, state: State) -> None:
    """Raise InvalidTransition if *action* is not legal from *state*."""
    allowed = RULES.get(RecordKind(kind), {}).get(action, frozenset())
    if state not in allowed:
        raise InvalidTransition(action.value, state.name if isinstance(state, Enum) else str(state))


def allowed_actions(record: ComplianceRecord, now: Optional[datetime] = None) -> List[Action]:
    """Every action legal for *record* right now (for UIs deciding which buttons to show)."""
    state = lifecycle_state(record, resolve_status(record, now))
    return [a for a, legal in RULES.get(record.kind, {}).items() if state in legal]


def validate_record(record: ComplianceRecord) -> None:
    """Check the invariants a stored record must satisfy; raise ValidationError."""
    if not record.id or not record.subject_id:
        raise ValidationError("id and subject_id are required")
    if not (record.label or "").strip():
        raise ValidationError("label is required")
    due = to_datetime(record.due_date)
    if due is None:
        raise ValidationError("due_date is required")
    if isinstance(record.progress, bool) or not isinstance(record.progress, int):
        raise ValidationError("progress must be an integer")
    if not 0 <= record.progress <= 100:
        raise ValidationError(f"progress must be within 0–100, got {record.progress}")
    if record.kind == RecordKind.INDUCTION:
        scheduled = to_datetime(record.scheduled_date, due)
        if scheduled is not None and due < scheduled:
            raise ValidationError("due_date cannot be before scheduled_date")
    else:
        issued = to_datetime(record.issue_date, due)
        if issued is not None and due <= issued:
            raise ValidationError("expiry date must be after issue date")
        if record.progress:
            raise ValidationError("licenses do not track progress")


# ---------------------------------------------------------------------
# Payload helpers
# ---------------------------------------------------------------------
def _payload_date(payload: Mapping[str, Any], key: str, required: bool = True) -> Optional[datetime]:
    value = payload.get(key)
    if value is None:
        if required:
            raise ValidationError(f"{key} is required")
        return None
    when = to_datetime(value)
    if when is None:
        raise ValidationError(f"{key} is not a valid date: {value!r}")
    return when


def _payload_int(payload: Mapping[str, Any], key: str) -> int:
    value = payload.get(key)
    if isinstance(value, bool):
        raise ValidationError(f"{key} must be an integer")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{key} must be an integer, got {value!r}") from None


def _start_of_day(when: datetime) -> datetime:
    return when.replace(hour=0, minute=0, second=0, microsecond=0)


@dataclass
class ActionResult:
    """Outcome of a lifecycle action."""
    record: ComplianceRecord
    resolution: Resolution
    changed: bool = True
    throttled: bool = False
    dispatch_failure: Optional[DispatchFailure] = None
    warnings: List[str] = field(default_factory=list)

    @property
    def status(self) -> DerivedStatus:
        return self.resolution.status


class LifecycleController:
    """
    Applies transition actions to records held in a store.

    Parameters
    ----------
    store : RecordStore | DBRecordStore
        Anything exposing ``get`` / ``add`` / ``update_if_unchanged``.
    dispatcher : ReminderDispatcher, optional
        Reminder channel; defaults to :func:`vigil.dispatch.default_dispatcher`.
    activity : ActivityLogger, optional
        Audit sink; defaults to :class:`LoggingActivityLogger`.
    config : Settings, optional
        Throttle window and start progress.
    clock : callable, optional
        Returns "now"; override in tests.
    """

    def __init__(
        self,
        store,
        dispatcher: Optional[ReminderDispatcher] = None,
        activity: Optional[ActivityLogger] = None,
        config: Optional[Settings] = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        cfg = config or default_settings
        self.store = store
        self.dispatcher = dispatcher or default_dispatcher()
        self.activity = activity or LoggingActivityLogger()
        self.remind_throttle = timedelta(hours=cfg.remind_throttle_hours)
        self.start_progress = cfg.start_progress
        self._clock = clock

        self._handlers: Dict[Action, Callable[..., Dict[str, Any]]] = {
            Action.START: self._start,
            Action.CONTINUE: self._continue,
            Action.RESCHEDULE: self._reschedule,
            Action.COMPLETE: self._complete,
            Action.ARCHIVE: self._archive,
            Action.RENEW: self._renew,
            Action.EDIT: self._edit,
        }

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def create(self, record: ComplianceRecord, now: Optional[datetime] = None) -> ActionResult:
        """Validate and store a newly scheduled induction or issued license."""
        now = now or self._clock()
        validate_record(record)
        if record.archived:
            raise ValidationError("a new record cannot start archived")

        resolution = resolve_status(record, now)
        completed = record.completed_date
        if resolution.status is DerivedStatus.COMPLETED and completed is None:
            completed = now
        elif resolution.status is not DerivedStatus.COMPLETED:
            completed = None
        stored = self.store.add(
            replace(record, completed_date=completed, explicit_status=resolution.status.value)
        )
        logger.info("Created %s %s for %s", stored.kind.value, stored.id, stored.subject_id)
        warnings = self._audit("create", stored, None, _snapshot(stored))
        return ActionResult(stored, resolution, warnings=warnings)

    def resolve(self, record_id: str, now: Optional[datetime] = None) -> AnnotatedRecord:
        """Fetch one record and resolve its status."""
        record = self.store.get(record_id)
        return AnnotatedRecord(record, resolve_status(record, now or self._clock()))

    def apply_action(
        self,
        record_id: str,
        action: Union[str, Action],
        payload: Optional[Mapping[str, Any]] = None,
        now: Optional[datetime] = None,
        expected_version: Optional[int] = None,
    ) -> ActionResult:
        """
        Validate *action* against the record's freshly resolved state and
        apply it.

        Raises ValidationError, RecordNotFound, InvalidTransition or Conflict.
        Reminder delivery problems are returned on the result instead.
        """
        act = parse_action(action)
        payload = dict(payload or {})
        now = now or self._clock()

        record = self.store.get(record_id)
        if expected_version is not None and record.version != expected_version:
            raise Conflict(record_id, expected_version)

        resolution = resolve_status(record, now)
        check_transition(record.kind, act, lifecycle_state(record, resolution))

        if act is Action.REMIND:
            return self._remind(record, resolution, now)

        patch = self._handlers[act](record, payload, now)
        return self._commit(record, act, resolution, patch, now)

    # ------------------------------------------------------------------
    # Action handlers: return the patch to write
    # ------------------------------------------------------------------
    def _progress_patch(self, record: ComplianceRecord, progress: int, now: datetime) -> Dict[str, Any]:
        patch: Dict[str, Any] = {"progress": progress}
        if progress >= 100 and record.completed_date is None:
            patch["completed_date"] = now
        return patch

    def _start(self, record, payload, now):
        return self._progress_patch(record, max(record.progress, self.start_progress), now)

    def _continue(self, record, payload, now):
        if "delta" in payload:
            delta = _payload_int(payload, "delta")
        elif "progress" in payload:
            delta = _payload_int(payload, "progress") - record.progress
            if not 0 <= delta + record.progress <= 100:
                raise ValidationError("progress must be within 0–100")
        else:
            raise ValidationError("continue needs a delta (or an absolute progress)")
        if delta < 0:
            raise ValidationError(f"progress cannot go backwards (delta {delta})")
        progress = min(max(record.progress + delta, 0), 100)
        return self._progress_patch(record, progress, now)

    def _reschedule(self, record, payload, now):
        new_due = _payload_date(payload, "new_due_date")
        if new_due < _start_of_day(to_datetime(now, new_due)):
            raise ValidationError("cannot reschedule into the past")
        scheduled = to_datetime(record.scheduled_date, new_due)
        if scheduled is not None and new_due < scheduled:
            raise ValidationError("due date cannot be before the scheduled date")
        return {"due_date": new_due}

    def _complete(self, record, payload, now):
        return {"progress": 100, "completed_date": now}

    def _archive(self, record, payload, now):
        return {"archived": True}

    def _renew(self, record, payload, now):
        new_due = _payload_date(payload, "new_due_date")
        new_issue = _payload_date(payload, "new_issue_date", required=False)
        if new_issue is None:
            new_issue = _start_of_day(to_datetime(now, new_due))
        else:
            new_issue = to_datetime(new_issue, new_due)
        if new_due <= new_issue:
            raise ValidationError("new expiry date must be after the new issue date")
        patch: Dict[str, Any] = {"issue_date": new_issue, "due_date": new_due}
        if payload.get("document_ref"):
            patch["document_ref"] = payload["document_ref"]
        return patch

    def _edit(self, record, payload, now):
        fields = payload.get("fields", payload)
        if not isinstance(fields, Mapping) or not fields:
            raise ValidationError("edit needs at least one field")
        unknown = set(fields) - EDITABLE_FIELDS
        if unknown:
            raise ValidationError(f"fields not editable: {', '.join(sorted(unknown))}")
        if "label" in fields and not str(fields["label"] or "").strip():
            raise ValidationError("label cannot be blank")
        return dict(fields)

    # ------------------------------------------------------------------
    # Writes and side effects
    # ------------------------------------------------------------------
    def _commit(
        self,
        record: ComplianceRecord,
        action: Action,
        resolution: Resolution,
        patch: Dict[str, Any],
        now: datetime,
    ) -> ActionResult:
        new_resolution = resolve_status(replace(record, **patch), now)
        patch["explicit_status"] = new_resolution.status.value

        old = {k: getattr(record, k) for k in patch}
        patch = {k: v for k, v in patch.items() if old[k] != v}
        if not patch:
            return ActionResult(record, resolution, changed=False)

        updated = self.store.update_if_unchanged(record.id, record.version, patch)
        logger.info(
            "%s %s: %s → %s", action.value, record.id, resolution.status.name, new_resolution.status.name
        )
        warnings = self._audit(action.value, updated, {k: old[k] for k in patch}, patch)
        return ActionResult(updated, resolve_status(updated, now), warnings=warnings)

    def _remind(self, record: ComplianceRecord, resolution: Resolution, now: datetime) -> ActionResult:
        last = to_datetime(record.last_reminded_at, now)
        if last is not None and now - last < self.remind_throttle:
            logger.info("Reminder for %s throttled (last sent %s)", record.id, last)
            return ActionResult(record, resolution, changed=False, throttled=True)

        # Claim the slot first: a concurrent remind for the same record loses
        # with Conflict and never sends.
        claimed = self.store.update_if_unchanged(
            record.id, record.version, {"last_reminded_at": now}
        )
        try:
            self.dispatcher.send(claimed)
        except Exception as e:
            failure = e if isinstance(e, DispatchFailure) else DispatchFailure(str(e))
            logger.warning("Reminder for %s not delivered: %s", record.id, failure)
            restored = self._release_claim(record, claimed)
            return ActionResult(
                restored,
                resolution,
                changed=False,
                dispatch_failure=failure,
                warnings=[f"reminder not delivered: {failure}"],
            )

        warnings = self._audit(
            Action.REMIND.value,
            claimed,
            {"last_reminded_at": record.last_reminded_at},
            {"last_reminded_at": now},
        )
        return ActionResult(claimed, resolution, warnings=warnings)

    def _release_claim(self, original: ComplianceRecord, claimed: ComplianceRecord) -> ComplianceRecord:
        """Put last_reminded_at back after a failed send so the next attempt is not throttled."""
        try:
            return self.store.update_if_unchanged(
                claimed.id, claimed.version, {"last_reminded_at": original.last_reminded_at}
            )
        except Conflict:
            logger.warning("Record %s changed before its reminder claim could be released", claimed.id)
            return claimed

    def _audit(self, action, record, old_values, new_values) -> List[str]:
        try:
            self.activity.log(action, record.entity_type, record.id, old_values, new_values)
        except Exception as e:
            logger.exception("Activity log failed for %s %s", action, record.id)
            return [f"activity log failed: {e}"]
        return []


def _snapshot(record: ComplianceRecord) -> Dict[str, Any]:
    values = dict(vars(record))
    values.pop("version", None)
    return values

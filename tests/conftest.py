"""
Pytest configuration: make sure `import vigil` works regardless of
where pytest is invoked, and provide shared fixtures.

It prepends the project root (one directory above *tests/*) to
``sys.path`` **before** any tests are collected.
"""

import sys
from datetime import datetime
from pathlib import Path

import pytest

# /path/to/project/tests -> project root
PROJECT_ROOT = Path(__file__).resolve().parent.parent

if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from vigil.activity import ActivityLogger  # noqa: E402
from vigil.dispatch import ReminderDispatcher  # noqa: E402
from vigil.errors import DispatchFailure  # noqa: E402
from vigil.lifecycle import LifecycleController  # noqa: E402
from vigil.models import ComplianceRecord, RecordKind  # noqa: E402
from vigil.registry import RecordStore  # noqa: E402

NOW = datetime(2024, 3, 1, 9, 0)


class RecordingDispatcher(ReminderDispatcher):
    """Keeps the ids it was asked to remind about; can be told to fail."""

    def __init__(self, fail: bool = False):
        self.sent = []
        self.fail = fail

    def send(self, record):
        if self.fail:
            raise DispatchFailure("mail relay unavailable")
        self.sent.append(record.id)


class RecordingActivity(ActivityLogger):
    def __init__(self, fail: bool = False):
        self.entries = []
        self.fail = fail

    def log(self, action, entity_type, entity_id, old_values=None, new_values=None):
        if self.fail:
            raise RuntimeError("audit table locked")
        self.entries.append((action, entity_type, entity_id, old_values, new_values))


def make_license(record_id="lic-1", due_date=None, **kw):
    kw.setdefault("subject_id", "emp-1")
    kw.setdefault("subject_name", "Stephen Ford")
    kw.setdefault("label", "Forklift Licence")
    return ComplianceRecord(id=record_id, kind=RecordKind.LICENSE, due_date=due_date, **kw)


def make_induction(record_id="ind-1", due_date=None, progress=0, **kw):
    kw.setdefault("subject_id", "emp-2")
    kw.setdefault("subject_name", "Emma Davis")
    kw.setdefault("label", "Safety Induction")
    return ComplianceRecord(
        id=record_id, kind=RecordKind.INDUCTION, due_date=due_date, progress=progress, **kw
    )


@pytest.fixture
def store():
    return RecordStore()


@pytest.fixture
def dispatcher():
    return RecordingDispatcher()


@pytest.fixture
def activity():
    return RecordingActivity()


@pytest.fixture
def controller(store, dispatcher, activity):
    return LifecycleController(store, dispatcher=dispatcher, activity=activity, clock=lambda: NOW)

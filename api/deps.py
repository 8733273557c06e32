"""
api.deps
========

FastAPI dependency providers.

Every request gets its own SQLModel ``Session`` from `get_session`;
`get_store` wraps it in a **DBRecordStore** and `get_controller` wires the
lifecycle controller to that store, the configured reminder channel and an
SQL audit log on the same session.  FastAPI resolves `get_session` once per
request and closes it when the response is done, so concurrent requests on
the threadpool never share a session.  Tests swap any of these through
``app.dependency_overrides``.
"""

from functools import lru_cache
from typing import Iterator

from fastapi import Depends
from sqlmodel import Session

from vigil.activity import DBActivityLogger
from vigil.db import SessionLocal, create_all
from vigil.dispatch import ReminderDispatcher, default_dispatcher
from vigil.lifecycle import LifecycleController
from vigil.registry_db import DBRecordStore
from vigil.settings import settings


@lru_cache
def _ensure_schema() -> None:
    """Create the tables once per process."""
    create_all()


def get_session() -> Iterator[Session]:
    """One session per request, closed when the request finishes."""
    _ensure_schema()
    with SessionLocal() as session:
        yield session


def get_store(session: Session = Depends(get_session)) -> DBRecordStore:
    """DB‑backed record store bound to the request's session."""
    return DBRecordStore(session)


@lru_cache
def get_settings():
    """Return application settings."""
    return settings


@lru_cache
def get_dispatcher() -> ReminderDispatcher:
    """Reminder channel shared by all requests (it holds no session)."""
    return default_dispatcher()


def get_controller(
    store=Depends(get_store),
    session: Session = Depends(get_session),
    dispatcher: ReminderDispatcher = Depends(get_dispatcher),
) -> LifecycleController:
    """A controller per request, writing records and audit rows on its session."""
    return LifecycleController(
        store,
        dispatcher=dispatcher,
        activity=DBActivityLogger(session),
        config=settings,
    )

"""
vigil.errors
============

Exceptions raised by the lifecycle controller and the record stores.

Each carries a ``status_code`` hint so an HTTP layer can map it without a
lookup table of its own.
"""

from __future__ import annotations

__all__ = [
    "VigilError",
    "ValidationError",
    "RecordNotFound",
    "InvalidTransition",
    "Conflict",
    "DispatchFailure",
]


class VigilError(Exception):
    """Base class for every error raised by :pymod:`vigil`."""

    status_code = 500

    def __init__(self, message: str = "") -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message


class ValidationError(VigilError, ValueError):
    """Bad input: out‑of‑range progress, impossible dates, malformed payload."""

    status_code = 400


class RecordNotFound(VigilError, KeyError):
    """No record with the requested id."""

    status_code = 404

    def __init__(self, record_id: str) -> None:
        super().__init__(f"record {record_id!r} not found")
        self.record_id = record_id


class InvalidTransition(VigilError, ValueError):
    """The action is not legal from the record's current derived state."""

    status_code = 422

    def __init__(self, action: str, state: str) -> None:
        super().__init__(f"illegal transition: cannot {action} a record in state {state}")
        self.action = action
        self.state = state


class Conflict(VigilError):
    """The record changed since it was read; the caller should retry."""

    status_code = 409

    def __init__(self, record_id: str, expected_version: int) -> None:
        super().__init__(
            f"record {record_id!r} was modified concurrently "
            f"(expected version {expected_version})"
        )
        self.record_id = record_id
        self.expected_version = expected_version


class DispatchFailure(VigilError):
    """A reminder could not be delivered.  Non‑fatal for the calling action."""

    status_code = 502

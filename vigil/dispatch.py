"""
vigil.dispatch
==============

Reminder delivery.

The lifecycle controller decides *whether* a reminder may be sent (state and
throttle); a :class:`ReminderDispatcher` only delivers it.  Concrete
subclasses implement ``.send(record)`` and raise
:class:`~vigil.errors.DispatchFailure` when delivery fails.
"""

__all__ = ["ReminderDispatcher", "LoggingReminderDispatcher", "WebhookReminderDispatcher"]

import logging
from abc import ABC, abstractmethod
from datetime import date, datetime
from typing import Any, Dict, Optional

import httpx

from vigil.errors import DispatchFailure
from vigil.models import ComplianceRecord
from vigil.settings import settings

logger = logging.getLogger(__name__)


def reminder_payload(record: ComplianceRecord) -> Dict[str, Any]:
    """JSON body describing the reminder for *record*."""
    due = record.due_date
    return {
        "recordId": record.id,
        "subjectId": record.subject_id,
        "subjectName": record.subject_name,
        "kind": record.kind.value,
        "label": record.label,
        "dueDate": due.isoformat() if isinstance(due, (date, datetime)) else due,
    }


class ReminderDispatcher(ABC):
    """
    Abstract base for reminder channels.

    Concrete subclasses implement `.send(record) -> None`.
    """

    @abstractmethod
    def send(self, record: ComplianceRecord) -> None:
        """Deliver a reminder for *record* or raise DispatchFailure."""


class LoggingReminderDispatcher(ReminderDispatcher):
    """Default channel: writes the reminder to the log and always succeeds."""

    def send(self, record: ComplianceRecord) -> None:
        logger.info(
            "Reminder: %s for %s (%s) is due %s",
            record.label,
            record.subject_name or record.subject_id,
            record.kind.value,
            record.due_date,
        )


class WebhookReminderDispatcher(ReminderDispatcher):
    """
    POST each reminder as JSON to a webhook (mail relay, chat hook, SMS
    gateway...).

    Any transport error or non‑2xx answer becomes a DispatchFailure.
    """

    def __init__(
        self,
        url: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.Client] = None,
    ):
        """
        Initialize the webhook dispatcher.

        Args:
            url: Target URL; defaults to ``settings.reminder_webhook_url``
            timeout: Request timeout in seconds
            client: Optional pre-configured httpx client (tests inject one
                with a mock transport)
        """
        self.url = url or (str(settings.reminder_webhook_url) if settings.reminder_webhook_url else None)
        if not self.url:
            raise ValueError("WebhookReminderDispatcher needs a URL (set VIGIL_REMINDER_WEBHOOK_URL)")
        self.timeout = timeout or settings.reminder_timeout
        self._client = client

    def send(self, record: ComplianceRecord) -> None:
        client = self._client or httpx.Client(timeout=self.timeout)
        try:
            response = client.post(self.url, json=reminder_payload(record))
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.warning("Reminder webhook rejected %s: HTTP %s", record.id, e.response.status_code)
            raise DispatchFailure(
                f"reminder for {record.id} rejected with HTTP {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            logger.warning("Reminder webhook unreachable for %s: %s", record.id, e)
            raise DispatchFailure(f"reminder for {record.id} could not be sent: {e}") from e
        finally:
            if self._client is None:
                client.close()
        logger.debug("Reminder for %s delivered to %s", record.id, self.url)


def default_dispatcher() -> ReminderDispatcher:
    """Webhook dispatcher when a URL is configured, logging dispatcher otherwise."""
    if settings.reminder_webhook_url:
        return WebhookReminderDispatcher()
    return LoggingReminderDispatcher()

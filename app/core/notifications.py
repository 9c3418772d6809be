"""
Operator notifications (toasts). Fire-and-forget: nothing in the services reads a return value.
"""

from typing import List, Optional, Protocol

from pydantic import BaseModel

from app.core.enums import Severity
from app.core.exceptions import ServiceError
from app.core.logging import get_logger

logger = get_logger("notifications")


class Notification(BaseModel):
    title: str
    description: str
    severity: Severity = Severity.SUCCESS


class NotificationSink(Protocol):
    def notify(self, title: str, description: str, severity: Severity = Severity.SUCCESS) -> None:
        ...


class LoggingNotificationSink:
    """Default sink: writes each toast to the application log."""

    def notify(self, title: str, description: str, severity: Severity = Severity.SUCCESS) -> None:
        if severity == Severity.DESTRUCTIVE:
            logger.warning("%s: %s", title, description)
        else:
            logger.info("%s: %s", title, description)


class RecordingNotificationSink:
    """Keeps every toast in memory, newest last."""

    def __init__(self) -> None:
        self.notifications: List[Notification] = []

    def notify(self, title: str, description: str, severity: Severity = Severity.SUCCESS) -> None:
        self.notifications.append(Notification(title=title, description=description, severity=severity))

    @property
    def last(self) -> Optional[Notification]:
        return self.notifications[-1] if self.notifications else None

    def clear(self) -> None:
        self.notifications.clear()


def notify_error(sink: NotificationSink, error: ServiceError) -> None:
    sink.notify(error.title, error.message, Severity.DESTRUCTIVE)


_default_sink = LoggingNotificationSink()


def get_notifier() -> NotificationSink:
    """FastAPI dependency; tests override it with a RecordingNotificationSink."""
    return _default_sink

# sync/notifications.py — User-facing outcome notifications (toast / log)
import logging
from enum import Enum
from typing import Protocol


class Severity(str, Enum):
    SUCCESS = "success"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class NotificationSink(Protocol):
    """Fire-and-forget channel for operation outcomes."""

    def notify(self, severity: Severity, title: str, message: str) -> None:
        ...


_LOG_LEVELS = {
    Severity.SUCCESS: logging.INFO,
    Severity.INFO: logging.INFO,
    Severity.WARNING: logging.WARNING,
    Severity.ERROR: logging.ERROR,
}


class LoggingNotificationSink:
    """Sink that writes notifications to the application log.

    Used when no UI is attached (scripts, workers).
    """

    def __init__(self, logger_name: str = "qms-boards.notifications"):
        self.logger = logging.getLogger(logger_name)

    def notify(self, severity: Severity, title: str, message: str) -> None:
        self.logger.log(_LOG_LEVELS.get(severity, logging.INFO), f"[{severity.value}] {title}: {message}")

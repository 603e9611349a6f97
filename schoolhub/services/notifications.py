"""Notification collaborator.

The orchestration core reports failures (tier fetches, role sync) here and
nowhere else; it never reports on success paths.  Presentation (toasts,
banners) is somebody else's job: the core only hands over severity, a
short title and the underlying detail message.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Protocol, runtime_checkable

logger = logging.getLogger(__name__)


class Severity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True, slots=True)
class Notice:
    severity: Severity
    title: str
    detail: str


@runtime_checkable
class Notifier(Protocol):
    def report(self, severity: Severity, title: str, detail: str) -> None: ...


class RecordingNotifier:
    """Keeps every notice in memory, newest last."""

    def __init__(self) -> None:
        self.notices: list[Notice] = []

    def report(self, severity: Severity, title: str, detail: str) -> None:
        self.notices.append(Notice(severity=severity, title=title, detail=detail))

    def titles(self) -> list[str]:
        return [n.title for n in self.notices]

    def clear(self) -> None:
        self.notices.clear()


_LEVELS = {
    Severity.INFO: logging.INFO,
    Severity.WARNING: logging.WARNING,
    Severity.ERROR: logging.ERROR,
}


class LoggingNotifier:
    """Notifier for headless deployments: notices become log lines."""

    def report(self, severity: Severity, title: str, detail: str) -> None:
        logger.log(_LEVELS[severity], "%s: %s", title, detail)

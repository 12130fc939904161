"""
MOA Core Notifications — Administrative Notice Sink
=====================================================
Fire-and-forget audit messages for administrative visibility
("Order #12 added to master order #3 ...").

Rules:
- Notices are recorded AFTER the surrounding transaction commits
- A failing sink is logged and ignored, never propagated
- A rolled-back transaction records nothing
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from django.db import transaction

from core.time.clock import Clock, get_default_clock

logger = logging.getLogger("moa.notifications")


class NoticeLevel:
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class NotificationSink(Protocol):
    def record(self, message: str, *, level: str = NoticeLevel.INFO) -> None:
        ...  # pragma: no cover


@dataclass(frozen=True)
class Notice:
    message: str
    level: str
    recorded_at: datetime


class InMemoryNotificationSink:
    """Keeps notices in process memory. Used by tests and the dev adapter."""

    def __init__(self, clock: Clock | None = None):
        self._clock = clock or get_default_clock()
        self._notices: list[Notice] = []
        self._lock = threading.Lock()

    def record(self, message: str, *, level: str = NoticeLevel.INFO) -> None:
        with self._lock:
            self._notices.append(
                Notice(message=message, level=level, recorded_at=self._clock.now_utc())
            )

    @property
    def notices(self) -> tuple[Notice, ...]:
        with self._lock:
            return tuple(self._notices)

    @property
    def messages(self) -> tuple[str, ...]:
        return tuple(notice.message for notice in self.notices)

    @property
    def last(self) -> Notice | None:
        with self._lock:
            return self._notices[-1] if self._notices else None

    def clear(self) -> None:
        with self._lock:
            self._notices.clear()


class LoggingNotificationSink:
    """Writes notices to the `moa.notices` logger."""

    _LEVELS = {
        NoticeLevel.INFO: logging.INFO,
        NoticeLevel.SUCCESS: logging.INFO,
        NoticeLevel.WARNING: logging.WARNING,
        NoticeLevel.ERROR: logging.ERROR,
    }

    def __init__(self, logger_name: str = "moa.notices"):
        self._logger = logging.getLogger(logger_name)

    def record(self, message: str, *, level: str = NoticeLevel.INFO) -> None:
        self._logger.log(self._LEVELS.get(level, logging.INFO), message)


def _safe_record(sink: NotificationSink, message: str, level: str) -> None:
    try:
        sink.record(message, level=level)
    except Exception as exc:
        logger.error(f"Notification sink failed for '{message}': {exc}", exc_info=True)


def notify_on_commit(
    sink: NotificationSink | None,
    message: str,
    *,
    level: str = NoticeLevel.INFO,
) -> None:
    """Schedule a notice for after commit (immediately in autocommit mode)."""
    if sink is None:
        return
    transaction.on_commit(lambda: _safe_record(sink, message, level))

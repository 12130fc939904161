"""
MOA Core Notifications — Public API
"""

from core.notifications.sink import (
    InMemoryNotificationSink,
    LoggingNotificationSink,
    Notice,
    NoticeLevel,
    NotificationSink,
    notify_on_commit,
)

__all__ = [
    "InMemoryNotificationSink",
    "LoggingNotificationSink",
    "Notice",
    "NoticeLevel",
    "NotificationSink",
    "notify_on_commit",
]

"""
MOA Event Bus — Public API
============================
State is committed first; subscribers hear about it afterwards.
"""

from core.events.dispatcher import (
    DispatchReport,
    SubscriberFailure,
    dispatch,
    dispatch_on_commit,
)
from core.events.errors import (
    DuplicateSubscriberError,
    EventBusError,
    InvalidEventTypeFormat,
    SelfSubscriptionError,
)
from core.events.registry import SubscriberRegistry, Subscription

__all__ = [
    "dispatch",
    "dispatch_on_commit",
    "DispatchReport",
    "SubscriberFailure",
    "SubscriberRegistry",
    "Subscription",
    "EventBusError",
    "InvalidEventTypeFormat",
    "DuplicateSubscriberError",
    "SelfSubscriptionError",
]

"""
MOA Event Bus — Subscriber Registry
======================================
Who listens to what.

An event type reads <engine>.<subject>.<change>; the first segment
names the publishing engine. An engine may not listen to its own
events unless it says so, and one handler is registered at most
once per event type.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from threading import Lock
from typing import Callable

from core.events.errors import (
    DuplicateSubscriberError,
    EventBusError,
    InvalidEventTypeFormat,
    SelfSubscriptionError,
)

logger = logging.getLogger("moa.events")


@dataclass(frozen=True)
class Subscription:
    event_type: str
    handler: Callable
    engine: str

    @property
    def handler_name(self) -> str:
        return getattr(self.handler, "__qualname__", repr(self.handler))


def publishing_engine(event_type: str) -> str:
    if not isinstance(event_type, str):
        raise InvalidEventTypeFormat(str(event_type))
    segments = event_type.strip().split(".")
    if len(segments) < 3 or "" in segments:
        raise InvalidEventTypeFormat(event_type)
    return segments[0]


class SubscriberRegistry:
    def __init__(self):
        self._by_type: dict[str, list[Subscription]] = {}
        self._lock = Lock()

    def register_subscriber(
        self,
        event_type: str,
        handler: Callable,
        subscriber_engine: str,
        allow_self_subscription: bool = False,
    ) -> Subscription:
        source = publishing_engine(event_type)
        if not callable(handler):
            raise EventBusError(f"Subscriber for {event_type} is not callable: {handler!r}.")
        if source == subscriber_engine and not allow_self_subscription:
            raise SelfSubscriptionError(subscriber_engine, event_type)

        subscription = Subscription(event_type, handler, subscriber_engine)
        with self._lock:
            current = self._by_type.setdefault(event_type, [])
            # Bound methods compare equal when they wrap the same function and object.
            if any(existing.handler == handler for existing in current):
                raise DuplicateSubscriberError(event_type, subscription.handler_name)
            current.append(subscription)

        logger.info(
            f"{subscriber_engine} subscribed {subscription.handler_name} to {event_type}"
        )
        return subscription

    def subscriptions_for(self, event_type: str) -> tuple[Subscription, ...]:
        with self._lock:
            return tuple(self._by_type.get(event_type, ()))

    def has_subscribers(self, event_type: str) -> bool:
        return bool(self.subscriptions_for(event_type))

    def subscriber_count(self, event_type: str) -> int:
        return len(self.subscriptions_for(event_type))

"""
MOA Django Adapter Wiring
==========================
Builds the process-wide MasterOrderService for the HTTP adapter.

This module is adapter-only glue:
- one SubscriberRegistry shared by the order store and the engine
- notices go to the `moa.notices` logger
- built lazily on first request
"""

from __future__ import annotations

import threading

from core.events.registry import SubscriberRegistry
from core.notifications.sink import LoggingNotificationSink, NotificationSink
from engines.master_orders.services import MasterOrderService

_SERVICE_LOCK = threading.Lock()
_SERVICE: MasterOrderService | None = None


def _create_service(notifications: NotificationSink | None = None) -> MasterOrderService:
    registry = SubscriberRegistry()
    service = MasterOrderService(
        subscriber_registry=registry,
        notifications=notifications or LoggingNotificationSink(),
    )
    service.register_subscriptions(registry)
    return service


def build_service() -> MasterOrderService:
    """
    Lazy singleton wiring for adapter runtime.
    """
    global _SERVICE
    with _SERVICE_LOCK:
        if _SERVICE is None:
            _SERVICE = _create_service()
        return _SERVICE


def install_service(service: MasterOrderService | None) -> None:
    """Replace (or with None, reset) the adapter service. Tests only."""
    global _SERVICE
    with _SERVICE_LOCK:
        _SERVICE = service


def create_service(notifications: NotificationSink | None = None) -> MasterOrderService:
    return _create_service(notifications)

"""
Shared fixtures: a fixed clock, an in-memory notice sink, a wired
MasterOrderService and factories for accounts and member orders.
"""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from core.events.registry import SubscriberRegistry
from core.notifications.sink import InMemoryNotificationSink
from core.order_store.models import Account, MemberOrderStatus, Product
from core.order_store.service import OrderStore
from core.time.clock import FixedClock
from engines.master_orders.config import MasterOrderSettings
from engines.master_orders.services import MasterOrderService

T0 = datetime(2026, 9, 1, 8, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def clock():
    return FixedClock(T0)


@pytest.fixture
def sink(clock):
    return InMemoryNotificationSink(clock)


@pytest.fixture
def subscriber_registry():
    return SubscriberRegistry()


@pytest.fixture
def moa_settings():
    return MasterOrderSettings(allocation_lock_timeout=0.2)


@pytest.fixture
def service(moa_settings, subscriber_registry, sink, clock):
    svc = MasterOrderService(
        settings=moa_settings,
        subscriber_registry=subscriber_registry,
        notifications=sink,
        clock=clock,
    )
    svc.register_subscriptions(subscriber_registry)
    return svc


@pytest.fixture
def store(service):
    return service.store


@pytest.fixture
def make_account():
    counter = {"n": 0}

    def _make(name: str | None = None, *, pays_centrally: bool = False) -> Account:
        counter["n"] += 1
        return Account.objects.create(
            name=name or f"School {counter['n']}",
            pays_centrally=pays_centrally,
        )

    return _make


@pytest.fixture
def make_order():
    plain_store = OrderStore()

    def _make(account, items, *, status=MemberOrderStatus.PROCESSING, register_products=True):
        if register_products:
            for item in items:
                for product_id in (item["product_id"], item.get("variation_id") or 0):
                    if product_id:
                        Product.objects.get_or_create(
                            id=product_id, defaults={"name": f"Product {product_id}"}
                        )
        return plain_store.create_order(account=account, items=items, status=status)

    return _make


@pytest.fixture
def review(store):
    """Move a member order processing -> reviewed as a normal write."""

    def _review(order):
        store.update_status(order.id, MemberOrderStatus.REVIEWED)
        order.refresh_from_db()
        return order

    return _review

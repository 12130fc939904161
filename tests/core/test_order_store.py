from __future__ import annotations

from decimal import Decimal

import pytest

from core.events.registry import SubscriberRegistry
from core.order_store.errors import OrderNotFound, UnknownOrderStatus
from core.order_store.events import MEMBER_ORDER_STATUS_CHANGED, OrderStatusChanged
from core.order_store.models import Account, MemberOrderStatus, OrderKind, Product
from core.order_store.providers import DbAccountBillingProvider, DbProductResolver
from core.order_store.service import OrderStore
from tests.factories import line

pytestmark = pytest.mark.django_db(transaction=True)


def _store_with_listener():
    registry = SubscriberRegistry()
    events: list[OrderStatusChanged] = []
    registry.register_subscriber(MEMBER_ORDER_STATUS_CHANGED, events.append, "test_probe")
    return OrderStore(subscriber_registry=registry), events


def test_create_order_keeps_line_order_and_tax_buckets() -> None:
    account = Account.objects.create(name="Collège Jean Moulin")
    store = OrderStore()

    order = store.create_order(
        account=account,
        items=[line(12, 2, tax_rate=("1", "20")), line(7, 1, variation_id=71)],
    )

    items = store.get_items(order)
    assert [item.product_id for item in items] == [12, 7]
    assert items[0].taxes == {"1": "4.00"}
    assert items[0].tax == Decimal("4.00")
    assert items[1].variation_id == 71


def test_update_status_publishes_after_commit() -> None:
    account = Account.objects.create(name="A")
    store, events = _store_with_listener()
    order = store.create_order(account=account, items=[line(1, 1)], status="processing")

    store.update_status(order.id, MemberOrderStatus.REVIEWED, note="Checked by staff.")

    assert len(events) == 1
    assert events[0].order_id == order.id
    assert events[0].old_status == "processing"
    assert events[0].new_status == "reviewed"
    assert store.notes_for(OrderKind.MEMBER, order.id) == ["Checked by staff."]


def test_system_mode_write_publishes_nothing() -> None:
    account = Account.objects.create(name="A")
    store, events = _store_with_listener()
    order = store.create_order(account=account, items=[line(1, 1)], status="reviewed")

    store.update_status(order.id, MemberOrderStatus.WAREHOUSE, emit=False)

    order.refresh_from_db()
    assert order.status == "warehouse"
    assert events == []


def test_same_status_write_is_a_no_op() -> None:
    account = Account.objects.create(name="A")
    store, events = _store_with_listener()
    order = store.create_order(account=account, items=[line(1, 1)], status="reviewed")

    store.update_status(order.id, MemberOrderStatus.REVIEWED)

    assert events == []


def test_update_status_rejects_unknown_status_and_missing_order() -> None:
    store = OrderStore()
    with pytest.raises(UnknownOrderStatus):
        store.update_status(1, "shipped")
    with pytest.raises(OrderNotFound):
        store.update_status(999_999, MemberOrderStatus.REVIEWED)


def test_master_reference_round_trip() -> None:
    account = Account.objects.create(name="A")
    store = OrderStore()
    order = store.create_order(account=account, items=[line(1, 1)])

    store.set_master_reference(order, 42)
    order.refresh_from_db()
    assert order.master_order_id == 42
    assert order.merged_at is not None

    store.clear_master_reference(order)
    order.refresh_from_db()
    assert order.master_order_id is None
    assert order.merged_at is None


def test_billing_provider_reads_account_preference() -> None:
    central = Account.objects.create(name="Central", pays_centrally=True)
    member = Account.objects.create(name="Members")
    provider = DbAccountBillingProvider()

    assert provider.pays_centrally(central.account_id) is True
    assert provider.pays_centrally(member.account_id) is False
    assert provider.pays_centrally("00000000-0000-0000-0000-000000000000") is False


def test_product_resolver_checks_variation_first() -> None:
    Product.objects.create(id=10, name="Notebook")
    Product.objects.create(id=11, name="Notebook A5", is_active=False)
    resolver = DbProductResolver()

    assert resolver.is_resolvable(10)
    assert not resolver.is_resolvable(10, 11)
    assert not resolver.is_resolvable(99)

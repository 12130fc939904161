"""
Admission and removal driven through member order status writes,
the way the storefront reaches the engine.
"""

from __future__ import annotations

from decimal import Decimal

import pytest

from core.locks.service import acquire_lock
from core.notifications.sink import NoticeLevel
from core.order_store.models import MemberOrder, MemberOrderStatus, OrderKind, Product
from engines.master_orders.errors import MemberOrderNotFound, RemovalRefusedError
from engines.master_orders.membership import (
    AdmissionOutcome,
    RemovalOutcome,
    removal_lock_name,
)
from engines.master_orders.models import MasterOrder, MasterOrderItem, MasterOrderRegistry
from engines.master_orders.statuses import MasterOrderStatus
from tests.factories import line

pytestmark = pytest.mark.django_db(transaction=True)


def _lines(master_id):
    return [
        (item.product_id, item.quantity)
        for item in MasterOrderItem.objects.filter(master_order_id=master_id).order_by("position")
    ]


def _hold(store, order):
    store.update_status(order.id, MemberOrderStatus.ON_HOLD)
    order.refresh_from_db()
    return order


# ══════════════════════════════════════════════════════════════
# ADMISSION
# ══════════════════════════════════════════════════════════════

class TestAdmission:
    def test_reviewed_orders_share_one_master(self, service, make_account, make_order, review, sink):
        account = make_account("Collège Voltaire")
        a = review(make_order(account, [line(7, 2)]))
        b = review(make_order(account, [line(7, 1), line(9, 3)]))
        c = review(make_order(account, [line(9, 1)]))

        master = service.get_master_order_for(a.id)

        assert master.status == MasterOrderStatus.INITIAL
        assert master.included_order_ids == [a.id, b.id, c.id]
        assert {a.master_order_id, b.master_order_id, c.master_order_id} == {master.id}
        assert _lines(master.id) == [(7, 3), (9, 4)]
        assert master.total_quantity == 7
        assert master.subtotal == Decimal("70.00")
        assert sink.messages[0] == (
            f"Order #{a.id} added to master order #{master.id} "
            f"for account 'Collège Voltaire'."
        )
        assert all(notice.level == NoticeLevel.SUCCESS for notice in sink.notices)

    def test_accounts_are_kept_apart(self, service, make_account, make_order, review):
        first = review(make_order(make_account(), [line(1, 1)]))
        second = review(make_order(make_account(), [line(1, 1)]))
        assert first.master_order_id != second.master_order_id

    def test_admit_twice_is_already_member(self, service, make_account, make_order, review):
        order = review(make_order(make_account(), [line(7, 2)]))

        result = service.admit(order.id)

        assert result.outcome == AdmissionOutcome.ALREADY_MEMBER
        assert result.master_order_id == order.master_order_id
        assert _lines(order.master_order_id) == [(7, 2)]

    def test_not_reviewed_is_skipped(self, service, make_account, make_order):
        order = make_order(make_account(), [line(7, 2)])

        result = service.admit(order.id)

        assert result.outcome == AdmissionOutcome.SKIPPED
        assert MasterOrder.objects.count() == 0

    def test_order_without_account_is_skipped(self, service, make_order, store):
        order = make_order(None, [line(7, 2)])
        store.update_status(order.id, MemberOrderStatus.REVIEWED, emit=False)

        result = service.admit(order.id)

        assert result.outcome == AdmissionOutcome.SKIPPED
        assert result.reason == "order has no account"
        assert MasterOrder.objects.count() == 0

    def test_stale_back_reference_is_cleared(self, service, store, make_account, make_order):
        order = make_order(make_account(), [line(7, 2)])
        store.set_master_reference(order, 424242)
        store.update_status(order.id, MemberOrderStatus.REVIEWED, emit=False)

        result = service.admit(order.id)

        order.refresh_from_db()
        assert result.outcome == AdmissionOutcome.MERGED
        assert order.master_order_id == result.master_order_id != 424242

    def test_master_progressing_mid_admission_allocates_again(
        self, service, store, make_account, make_order, review, monkeypatch
    ):
        account = make_account()
        first = review(make_order(account, [line(7, 2)]))
        progressed_id = first.master_order_id
        allocator = service.membership._allocator
        acquire = allocator.acquire_or_create_master_order
        allocated = []

        def acquire_then_progress(account_id):
            master_order_id = acquire(account_id)
            if not allocated:
                # Someone moves the master to warehouse before the merge runs.
                MasterOrder.objects.filter(id=master_order_id).update(
                    status=MasterOrderStatus.WAREHOUSE
                )
            allocated.append(master_order_id)
            return master_order_id

        monkeypatch.setattr(allocator, "acquire_or_create_master_order", acquire_then_progress)
        late = make_order(account, [line(9, 1)])
        store.update_status(late.id, MemberOrderStatus.REVIEWED, emit=False)

        result = service.admit(late.id)

        late.refresh_from_db()
        fresh = MasterOrder.objects.get(id=result.master_order_id)
        assert allocated[0] == progressed_id
        assert result.outcome == AdmissionOutcome.MERGED
        assert result.master_order_id == allocated[1] != progressed_id
        assert fresh.status == MasterOrderStatus.INITIAL
        assert fresh.included_order_ids == [late.id]
        assert late.master_order_id == fresh.id
        assert MasterOrder.objects.get(id=progressed_id).included_order_ids == [first.id]
        assert _lines(progressed_id) == [(7, 2)]

    def test_unknown_order_raises(self, service):
        with pytest.raises(MemberOrderNotFound):
            service.admit(99999)

    def test_other_status_changes_are_ignored(self, service, store, make_account, make_order):
        order = make_order(make_account(), [line(7, 2)], status=MemberOrderStatus.PENDING)
        store.update_status(order.id, MemberOrderStatus.PROCESSING)
        store.update_status(order.id, MemberOrderStatus.ON_HOLD)
        assert MasterOrder.objects.count() == 0


# ══════════════════════════════════════════════════════════════
# REMOVAL
# ══════════════════════════════════════════════════════════════

class TestRemoval:
    def test_leaving_reviewed_rebuilds_master(
        self, service, store, make_account, make_order, review, sink
    ):
        account = make_account()
        a = review(make_order(account, [line(7, 2)]))
        b = review(make_order(account, [line(7, 1), line(9, 3)]))
        master_id = a.master_order_id
        sink.clear()

        _hold(store, b)

        b.refresh_from_db()
        master = MasterOrder.objects.get(id=master_id)
        assert b.master_order_id is None
        assert master.included_order_ids == [a.id]
        assert _lines(master_id) == [(7, 2)]
        assert master.total == Decimal("20.00")
        assert f"Order #{b.id} removed." in store.notes_for(OrderKind.MASTER, master_id)
        assert sink.messages == (
            f"Order #{b.id} removed from master order #{master_id}. "
            f"Master order now has 1 product(s), 2 item(s), total 20.00.",
        )

    def test_removal_notice_counts_skipped_lines(
        self, service, store, make_account, make_order, review, sink
    ):
        account = make_account()
        a = review(make_order(account, [line(7, 2), line(8, 1)]))
        b = review(make_order(account, [line(9, 1)]))
        master_id = a.master_order_id
        Product.objects.filter(id=8).update(is_active=False)
        sink.clear()

        _hold(store, b)

        assert _lines(master_id) == [(7, 2)]
        assert sink.messages == (
            f"Order #{b.id} removed from master order #{master_id}. "
            f"Master order now has 1 product(s), 2 item(s), total 20.00, 1 line(s) skipped.",
        )

    def test_removed_order_can_rejoin(self, service, store, make_account, make_order, review):
        account = make_account()
        a = review(make_order(account, [line(7, 2)]))
        b = review(make_order(account, [line(9, 1)]))
        _hold(store, b)
        store.update_status(b.id, MemberOrderStatus.PROCESSING)

        review(b)

        master = MasterOrder.objects.get(id=a.master_order_id)
        assert master.included_order_ids == [a.id, b.id]
        assert _lines(master.id) == [(7, 2), (9, 1)]

    def test_last_member_out_deletes_master(
        self, service, store, make_account, make_order, review
    ):
        account = make_account()
        a = review(make_order(account, [line(7, 2)]))
        b = review(make_order(account, [line(9, 1)]))
        master_id = a.master_order_id

        _hold(store, a)
        store.update_status(b.id, MemberOrderStatus.CANCELLED)

        assert not MasterOrder.objects.filter(id=master_id).exists()
        assert MasterOrderItem.objects.filter(master_order_id=master_id).count() == 0
        entry = MasterOrderRegistry.objects.get(account=account)
        assert entry.is_active is False
        assert any("deleted" in note for note in store.notes_for(OrderKind.MEMBER, b.id))

        c = review(make_order(account, [line(3, 1)]))
        assert c.master_order_id not in (None, master_id)
        assert MasterOrderRegistry.objects.get(account=account).is_active is True

    def test_removal_refused_once_master_progressed(
        self, service, store, make_account, make_order, review, sink
    ):
        account = make_account()
        a = review(make_order(account, [line(7, 2)]))
        master_id = a.master_order_id
        MasterOrder.objects.filter(id=master_id).update(status=MasterOrderStatus.WAREHOUSE)
        sink.clear()

        _hold(store, a)

        a.refresh_from_db()
        assert a.master_order_id == master_id
        assert MasterOrder.objects.get(id=master_id).included_order_ids == [a.id]
        assert _lines(master_id) == [(7, 2)]
        assert any("was not removed" in note for note in store.notes_for(OrderKind.MEMBER, a.id))
        assert sink.last.level == NoticeLevel.WARNING

    def test_refusal_is_reported_in_result(self, service, store, make_account, make_order, review):
        a = review(make_order(make_account(), [line(7, 2)]))
        MasterOrder.objects.filter(id=a.master_order_id).update(status=MasterOrderStatus.PREPARED)

        result = service.remove(a.id)

        assert result.outcome == RemovalOutcome.REFUSED
        assert isinstance(result.refusal, RemovalRefusedError)
        assert result.refusal.master_status == MasterOrderStatus.PREPARED

    def test_concurrent_removal_is_busy(self, service, make_account, make_order, review, clock):
        a = review(make_order(make_account(), [line(7, 2)]))
        acquire_lock(removal_lock_name(a.id), timeout=0, ttl=30, clock=clock)

        result = service.remove(a.id)

        assert result.outcome == RemovalOutcome.BUSY
        assert MemberOrder.objects.get(id=a.id).master_order_id == a.master_order_id

    def test_remove_non_member(self, service, make_account, make_order):
        order = make_order(make_account(), [line(7, 2)])
        assert service.remove(order.id).outcome == RemovalOutcome.NOT_MEMBER

    def test_remove_with_missing_master_clears_reference(
        self, service, store, make_account, make_order
    ):
        order = make_order(make_account(), [line(7, 2)])
        store.set_master_reference(order, 555)

        result = service.remove(order.id)

        order.refresh_from_db()
        assert result.outcome == RemovalOutcome.NOT_MEMBER
        assert order.master_order_id is None

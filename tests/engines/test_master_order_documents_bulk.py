from __future__ import annotations

from decimal import Decimal

import pytest

from core.notifications.sink import NoticeLevel
from core.order_store.models import MemberOrder, MemberOrderItem, MemberOrderStatus, OrderKind
from engines.master_orders.documents import (
    PACKING_SLIP_NOTE,
    DocumentAction,
    DocumentType,
    GeneratedDocument,
)
from engines.master_orders.errors import MasterOrderNotFound
from engines.master_orders.models import MasterOrder, MasterOrderItem
from engines.master_orders.statuses import MasterOrderStatus
from tests.factories import line

pytestmark = pytest.mark.django_db(transaction=True)


@pytest.fixture
def master(service, make_account, make_order, review):
    account = make_account()
    first = review(make_order(account, [line(7, 2), line(9, 1)]))
    review(make_order(account, [line(7, 1)]))
    return MasterOrder.objects.get(id=first.master_order_id)


def _slip(*order_ids):
    return GeneratedDocument(DocumentType.BULK_PACKING_SLIP, order_ids)


# ══════════════════════════════════════════════════════════════
# DOCUMENTS
# ══════════════════════════════════════════════════════════════

class TestDocumentTrigger:
    def test_document_fields_are_coerced(self):
        document = GeneratedDocument("bulk-packing-slip", ["4", 5])
        assert document.document_type is DocumentType.BULK_PACKING_SLIP
        assert document.order_ids == (4, 5)

    def test_bulk_slip_moves_initial_master_to_warehouse(self, service, store, master):
        outcomes = service.handle_document_generated(_slip(master.id))

        assert [o.action for o in outcomes] == [DocumentAction.TRANSITIONED]
        assert outcomes[0].transition.applied
        assert MasterOrder.objects.get(id=master.id).status == MasterOrderStatus.WAREHOUSE
        assert set(
            MemberOrder.objects.filter(master_order_id=master.id).values_list("status", flat=True)
        ) == {"warehouse"}
        assert any(PACKING_SLIP_NOTE in note for note in store.notes_for(OrderKind.MASTER, master.id))

    def test_bulk_slip_moves_stage_b_back_to_warehouse(self, service, master):
        service.transition(master.id, MasterOrderStatus.WAREHOUSE)
        service.transition(master.id, MasterOrderStatus.PREPARED)

        outcomes = service.handle_document_generated(_slip(master.id))

        assert outcomes[0].action == DocumentAction.TRANSITIONED
        assert MasterOrder.objects.get(id=master.id).status == MasterOrderStatus.WAREHOUSE

    def test_already_in_warehouse_is_a_no_op(self, service, master):
        service.transition(master.id, MasterOrderStatus.WAREHOUSE)

        outcomes = service.handle_document_generated(_slip(master.id))

        assert outcomes[0].action == DocumentAction.ALREADY_WAREHOUSE

    def test_complete_master_only_gets_a_note(self, service, store, master):
        service.transition(master.id, MasterOrderStatus.WAREHOUSE)
        service.transition(master.id, MasterOrderStatus.COMPLETE)

        outcomes = service.handle_document_generated(_slip(master.id))

        assert outcomes[0].action == DocumentAction.NOTED
        assert MasterOrder.objects.get(id=master.id).status == MasterOrderStatus.COMPLETE
        assert "already complete" in store.notes_for(OrderKind.MASTER, master.id)[-1]

    def test_other_documents_and_ids_are_ignored(self, service, master, make_account, make_order):
        plain = make_order(make_account(), [line(1, 1)])

        assert service.handle_document_generated(
            GeneratedDocument(DocumentType.PACKING_SLIP, [master.id])
        ) == []
        outcomes = service.handle_document_generated(_slip(plain.id + 1000))
        assert outcomes[0].action == DocumentAction.IGNORED
        assert MasterOrder.objects.get(id=master.id).status == MasterOrderStatus.INITIAL


# ══════════════════════════════════════════════════════════════
# BULK ACTIONS
# ══════════════════════════════════════════════════════════════

class TestBulkTransition:
    def test_mixed_selection(self, service, sink, master, make_account, make_order, review):
        other = review(make_order(make_account(), [line(3, 1)]))
        other_master_id = other.master_order_id
        service.transition(other_master_id, MasterOrderStatus.WAREHOUSE)
        regular = make_order(make_account(), [line(4, 1)])
        sink.clear()

        summary = service.bulk_transition(
            [master.id, other_master_id, master.id, regular.id + 5000],
            MasterOrderStatus.WAREHOUSE,
        )

        assert summary.changed == (master.id,)
        assert summary.unchanged == (other_master_id,)
        assert summary.not_master == (regular.id + 5000,)
        assert summary.invalid_master_ids == ()
        assert [n.level for n in sink.notices] == [NoticeLevel.SUCCESS, NoticeLevel.WARNING]
        assert sink.messages[0] == "1 master order(s) status changed."

    def test_blocked_orders_do_not_stop_the_rest(self, service, master, make_account, make_order, review):
        other = review(make_order(make_account(), [line(3, 1)]))
        service.transition(master.id, MasterOrderStatus.WAREHOUSE)

        summary = service.bulk_transition(
            [other.master_order_id, master.id], MasterOrderStatus.PREPARED
        )

        assert summary.blocked == (other.master_order_id,)
        assert summary.changed == (master.id,)

    def test_drift_is_reported_after_change(self, service, sink, master):
        MasterOrderItem.objects.filter(master_order_id=master.id, product_id=7).update(quantity=99)
        sink.clear()

        summary = service.bulk_transition([master.id], MasterOrderStatus.WAREHOUSE)

        assert summary.invalid_master_ids == (master.id,)
        assert sink.last.level == NoticeLevel.ERROR
        assert f"#{master.id}" in sink.last.message

    def test_rejects_non_master_status(self, service, master):
        with pytest.raises(ValueError):
            service.bulk_transition([master.id], MemberOrderStatus.PROCESSING)

    def test_generic_completed_means_complete(self, service, master):
        service.transition(master.id, MasterOrderStatus.WAREHOUSE)

        summary = service.bulk_transition([master.id], MemberOrderStatus.COMPLETED)

        assert summary.new_status == MasterOrderStatus.COMPLETE
        assert summary.changed == (master.id,)
        master.refresh_from_db()
        assert master.status == MasterOrderStatus.COMPLETE


# ══════════════════════════════════════════════════════════════
# VALIDATION / RECONCILIATION
# ══════════════════════════════════════════════════════════════

class TestValidation:
    def test_fresh_master_is_valid(self, service, master):
        report = service.validate_master_order_totals(master.id)
        assert report.is_valid
        assert report.members_checked == 2

    def test_drift_is_detected_per_line(self, service, master):
        MemberOrderItem.objects.filter(order_id=master.member_ids[1]).update(quantity=4)

        report = service.validate_master_order_totals(master.id)

        assert not report.is_valid
        (discrepancy,) = report.discrepancies
        assert (discrepancy.product_id, discrepancy.expected_quantity, discrepancy.actual_quantity) == (
            7,
            6,
            3,
        )
        # Line totals were left untouched.
        assert discrepancy.expected_total == discrepancy.actual_total == Decimal("30.00")

    def test_failed_members_are_not_expected(self, service, store, master):
        store.update_status(master.member_ids[1], MemberOrderStatus.FAILED, emit=False)

        report = service.validate_master_order_totals(master.id)

        assert not report.is_valid
        assert report.members_checked == 1

    def test_reconcile_rebuilds_initial_master(self, service, master):
        MasterOrderItem.objects.filter(master_order_id=master.id).delete()

        result = service.reconcile(master.id)

        assert result.repaired
        assert service.validate_master_order_totals(master.id).is_valid

    def test_reconcile_leaves_progressed_master(self, service, master):
        service.transition(master.id, MasterOrderStatus.WAREHOUSE)
        MasterOrderItem.objects.filter(master_order_id=master.id).delete()

        result = service.reconcile(master.id)

        assert not result.repaired
        assert result.reason == "master order already progressed"
        assert MasterOrderItem.objects.filter(master_order_id=master.id).count() == 0

    def test_reconcile_valid_master_does_nothing(self, service, master):
        result = service.reconcile(master.id)
        assert result.report.is_valid and not result.repaired

    def test_unknown_master(self, service):
        with pytest.raises(MasterOrderNotFound):
            service.validate_master_order_totals(424242)

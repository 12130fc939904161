"""
MOA Master Orders — Document Trigger
======================================
Reacts to generated fulfillment documents.

Only a bulk packing slip moves a master order: printing the
combined slip means the warehouse has started on it.

    master-order / master-prepared   -> master-warehouse
    master-warehouse                 -> nothing
    master-complete                  -> note only
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from core.order_store.models import OrderKind
from core.order_store.service import OrderStore
from engines.master_orders.models import MasterOrder
from engines.master_orders.state_machine import MasterOrderStateMachine, TransitionResult
from engines.master_orders.statuses import MasterOrderStatus, is_terminal

logger = logging.getLogger("moa.master_orders")

PACKING_SLIP_NOTE = "Combined packing slip generated."


class DocumentType(str, Enum):
    INVOICE = "invoice"
    PACKING_SLIP = "packing-slip"
    BULK_PACKING_SLIP = "bulk-packing-slip"


@dataclass(frozen=True)
class GeneratedDocument:
    document_type: DocumentType
    order_ids: tuple[int, ...]

    def __post_init__(self):
        object.__setattr__(self, "document_type", DocumentType(self.document_type))
        object.__setattr__(self, "order_ids", tuple(int(i) for i in self.order_ids))


class DocumentAction:
    TRANSITIONED = "transitioned"
    ALREADY_WAREHOUSE = "already_warehouse"
    NOTED = "noted"
    IGNORED = "ignored"


@dataclass(frozen=True)
class DocumentOutcome:
    order_id: int
    action: str
    transition: TransitionResult | None = None


class DocumentTrigger:
    def __init__(
        self,
        *,
        state_machine: MasterOrderStateMachine,
        store: OrderStore | None = None,
    ):
        self._state_machine = state_machine
        self._store = store or OrderStore()

    def handle_document_generated(self, document: GeneratedDocument) -> list[DocumentOutcome]:
        if document.document_type != DocumentType.BULK_PACKING_SLIP:
            return []

        masters = MasterOrder.objects.in_bulk(list(document.order_ids))
        outcomes = []
        for order_id in document.order_ids:
            master = masters.get(order_id)
            if master is None:
                outcomes.append(DocumentOutcome(order_id, DocumentAction.IGNORED))
                continue
            outcomes.append(self._handle_master(master))
        return outcomes

    def _handle_master(self, master: MasterOrder) -> DocumentOutcome:
        if master.status == MasterOrderStatus.WAREHOUSE:
            return DocumentOutcome(master.id, DocumentAction.ALREADY_WAREHOUSE)

        if is_terminal(master.status):
            self._store.add_note(
                OrderKind.MASTER,
                master.id,
                f"{PACKING_SLIP_NOTE} No status change: the master order is "
                f"already complete.",
            )
            return DocumentOutcome(master.id, DocumentAction.NOTED)

        result = self._state_machine.transition(
            master.id,
            MasterOrderStatus.WAREHOUSE,
            note=PACKING_SLIP_NOTE,
        )
        logger.info(
            f"Bulk packing slip for master order #{master.id}: {result.outcome}."
        )
        return DocumentOutcome(master.id, DocumentAction.TRANSITIONED, transition=result)

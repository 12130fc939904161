"""
MOA Order Store — Service Layer
=================================
Read and write member orders on behalf of the engines.

Status writes:
- `update_status(..., emit=True)` publishes OrderStatusChanged after commit
- `update_status(..., emit=False)` is the system mode used for
  propagated writes; nothing is published, so no subscriber re-enters

The store does no locking of its own. Concurrent writers to the same
order follow last-write-wins.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from decimal import Decimal
from typing import Any

from django.db import transaction

from core.events.dispatcher import dispatch_on_commit
from core.events.registry import SubscriberRegistry
from core.order_store.errors import OrderNotFound, UnknownOrderStatus
from core.order_store.events import OrderStatusChanged
from core.order_store.models import (
    Account,
    MemberOrder,
    MemberOrderItem,
    MemberOrderStatus,
    OrderKind,
    OrderNote,
)
from core.time.clock import Clock, get_default_clock

logger = logging.getLogger("moa.order_store")

_VALID_STATUSES = frozenset(MemberOrderStatus.values)


def _to_decimal(value: Any, *, field_name: str) -> Decimal:
    try:
        return Decimal(str(value))
    except Exception as exc:
        raise ValueError(f"{field_name} must be a decimal amount.") from exc


def _normalize_taxes(taxes: Mapping | None) -> dict[str, str]:
    if not taxes:
        return {}
    return {
        str(rate_key): str(_to_decimal(amount, field_name=f"taxes[{rate_key}]"))
        for rate_key, amount in taxes.items()
    }


class OrderStore:
    def __init__(
        self,
        *,
        subscriber_registry: SubscriberRegistry | None = None,
        clock: Clock | None = None,
    ):
        self._registry = subscriber_registry
        self._clock = clock or get_default_clock()

    # ══════════════════════════════════════════════════════════
    # READS
    # ══════════════════════════════════════════════════════════

    def get_order(self, order_id: int, *, for_update: bool = False) -> MemberOrder | None:
        qs = MemberOrder.objects.select_related("account")
        if for_update:
            qs = qs.select_for_update(of=("self",))
        return qs.filter(id=order_id).first()

    def get_orders(self, order_ids: Iterable[int]) -> dict[int, MemberOrder]:
        ids = [int(order_id) for order_id in order_ids]
        if not ids:
            return {}
        return {
            order.id: order
            for order in MemberOrder.objects.select_related("account").filter(id__in=ids)
        }

    def get_items(self, order: MemberOrder | int) -> list[MemberOrderItem]:
        order_id = order if isinstance(order, int) else order.id
        return list(
            MemberOrderItem.objects.filter(order_id=order_id).order_by("position", "id")
        )

    def notes_for(self, kind: str, order_id: int) -> list[str]:
        return list(
            OrderNote.objects.filter(order_kind=kind, order_id=order_id)
            .order_by("created_at", "id")
            .values_list("message", flat=True)
        )

    # ══════════════════════════════════════════════════════════
    # WRITES
    # ══════════════════════════════════════════════════════════

    def save(self, order: MemberOrder, *, update_fields: Iterable[str] | None = None) -> None:
        if update_fields is not None:
            update_fields = list(update_fields)
            if "updated_at" not in update_fields:
                update_fields.append("updated_at")
        order.save(update_fields=update_fields)

    def set_master_reference(self, order: MemberOrder, master_order_id: int) -> None:
        order.master_order_id = master_order_id
        order.merged_at = self._clock.now_utc()
        self.save(order, update_fields=["master_order_id", "merged_at"])

    def clear_master_reference(self, order: MemberOrder) -> None:
        order.master_order_id = None
        order.merged_at = None
        self.save(order, update_fields=["master_order_id", "merged_at"])

    def add_note(self, kind: str, order_id: int, message: str) -> OrderNote:
        if kind not in OrderKind.values:
            raise ValueError(f"order kind must be one of {', '.join(OrderKind.values)}.")
        return OrderNote.objects.create(order_kind=kind, order_id=order_id, message=message)

    @transaction.atomic
    def update_status(
        self,
        order_id: int,
        status: str,
        note: str = "",
        *,
        emit: bool = True,
    ) -> MemberOrder:
        """
        Move a member order to `status`.

        A write to the current status changes nothing and publishes nothing.
        """
        if status not in _VALID_STATUSES:
            raise UnknownOrderStatus(status)

        order = self.get_order(order_id, for_update=True)
        if order is None:
            raise OrderNotFound(order_id)

        old_status = order.status
        if old_status == status:
            return order

        order.status = status
        self.save(order, update_fields=["status"])
        if note:
            self.add_note(OrderKind.MEMBER, order.id, note)

        logger.info(
            f"Member order #{order.id} status {old_status} -> {status}"
            f"{'' if emit else ' (system)'}"
        )

        if emit:
            dispatch_on_commit(
                OrderStatusChanged(
                    order_id=order.id,
                    old_status=old_status,
                    new_status=status,
                    occurred_at=self._clock.now_utc(),
                ),
                self._registry,
            )
        return order

    @transaction.atomic
    def create_order(
        self,
        *,
        account: Account | None,
        items: Iterable[Mapping[str, Any]],
        status: str = MemberOrderStatus.PENDING,
        customer_name: str = "",
    ) -> MemberOrder:
        """
        Create a member order with its line items.

        Each item mapping needs product_id and quantity; variation_id,
        name, subtotal, total, tax and taxes are optional.
        """
        if status not in _VALID_STATUSES:
            raise UnknownOrderStatus(status)

        order = MemberOrder.objects.create(
            account=account,
            status=status,
            customer_name=customer_name,
        )
        rows = []
        for position, item in enumerate(items):
            quantity = int(item["quantity"])
            if quantity <= 0:
                raise ValueError("quantity must be positive.")
            rows.append(
                MemberOrderItem(
                    order=order,
                    product_id=int(item["product_id"]),
                    variation_id=int(item.get("variation_id") or 0),
                    name=str(item.get("name", "")),
                    quantity=quantity,
                    subtotal=_to_decimal(item.get("subtotal", "0"), field_name="subtotal"),
                    total=_to_decimal(item.get("total", "0"), field_name="total"),
                    tax=_to_decimal(item.get("tax", "0"), field_name="tax"),
                    taxes=_normalize_taxes(item.get("taxes")),
                    position=position,
                )
            )
        MemberOrderItem.objects.bulk_create(rows)
        return order

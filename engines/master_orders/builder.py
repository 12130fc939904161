"""
MOA Master Orders — Builder
=============================
Keeps a master order's consolidated lines equal to the sum of its
members' lines, keyed by (product_id, variation_id).

merge_into    incremental: fold one member into the current lines
reconstruct   full rebuild from the remaining members

A master order that has left its initial status takes no new members.

Both write the consolidated lines sorted by product id (variation id
breaks ties) and recompute the master totals. Both hold the master
order row lock for the whole operation.

Master total = sum of line totals + sum of line taxes.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable

from django.db import transaction

from core.order_store.models import OrderKind
from core.order_store.providers import DbProductResolver, ProductResolver
from core.order_store.service import OrderStore
from core.time.clock import Clock, get_default_clock
from engines.master_orders.errors import MemberOrderNotFound, ReconstructionError
from engines.master_orders.models import MasterOrder, MasterOrderItem
from engines.master_orders.queries import lock_master_order
from engines.master_orders.statuses import ADMISSIBLE_STATUSES, is_failure_status, is_initial

logger = logging.getLogger("moa.master_orders")

ZERO = Decimal("0")

MASTER_PROGRESSED = "master order already progressed"


# ══════════════════════════════════════════════════════════════
# RESULTS
# ══════════════════════════════════════════════════════════════

class MergeOutcome:
    MERGED = "merged"
    ALREADY_MERGED = "already_merged"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class MergeResult:
    outcome: str
    master_order_id: int
    member_order_id: int
    reason: str = ""

    @property
    def merged(self) -> bool:
        return self.outcome == MergeOutcome.MERGED


@dataclass(frozen=True)
class ReconstructionResult:
    master_order_id: int
    item_count: int
    line_item_count: int
    processed_orders: tuple[int, ...]
    errors: tuple[ReconstructionError, ...] = ()


# ══════════════════════════════════════════════════════════════
# CONSOLIDATION (pure)
# ══════════════════════════════════════════════════════════════

@dataclass
class ConsolidatedLine:
    product_id: int
    variation_id: int
    name: str = ""
    quantity: int = 0
    subtotal: Decimal = ZERO
    total: Decimal = ZERO
    tax: Decimal = ZERO
    taxes: dict[str, Decimal] = field(default_factory=dict)

    @property
    def key(self) -> tuple[int, int]:
        return (self.product_id, self.variation_id)

    def add(self, item) -> None:
        """Fold a line item (member or master row) into this line."""
        if not self.name and item.name:
            self.name = item.name
        self.quantity += int(item.quantity)
        self.subtotal += Decimal(item.subtotal)
        self.total += Decimal(item.total)
        self.tax += Decimal(item.tax)
        for rate_key, amount in (item.taxes or {}).items():
            rate_key = str(rate_key)
            self.taxes[rate_key] = self.taxes.get(rate_key, ZERO) + Decimal(str(amount))

    def taxes_json(self) -> dict[str, str]:
        return {rate_key: str(amount) for rate_key, amount in sorted(self.taxes.items())}


def fold_items(
    lines: dict[tuple[int, int], ConsolidatedLine],
    items: Iterable,
) -> dict[tuple[int, int], ConsolidatedLine]:
    for item in items:
        key = (int(item.product_id), int(item.variation_id or 0))
        line = lines.get(key)
        if line is None:
            line = ConsolidatedLine(product_id=key[0], variation_id=key[1])
            lines[key] = line
        line.add(item)
    return lines


def sorted_lines(lines: dict[tuple[int, int], ConsolidatedLine]) -> list[ConsolidatedLine]:
    return [lines[key] for key in sorted(lines)]


# ══════════════════════════════════════════════════════════════
# BUILDER
# ══════════════════════════════════════════════════════════════

class MasterOrderBuilder:
    def __init__(
        self,
        *,
        store: OrderStore | None = None,
        products: ProductResolver | None = None,
        clock: Clock | None = None,
    ):
        self._clock = clock or get_default_clock()
        self._store = store or OrderStore(clock=self._clock)
        self._products = products or DbProductResolver()

    @transaction.atomic
    def merge_into(self, master_order_id: int, member_order_id: int) -> MergeResult:
        master = lock_master_order(master_order_id)
        member = self._store.get_order(member_order_id, for_update=True)
        if member is None:
            raise MemberOrderNotFound(member_order_id)

        if member.id in master.member_ids or member.master_order_id == master.id:
            logger.debug(
                f"Order #{member.id} already merged into master order #{master.id}."
            )
            return MergeResult(MergeOutcome.ALREADY_MERGED, master.id, member.id)

        if not is_initial(master.status):
            logger.info(
                f"Order #{member.id} not merged into master order #{master.id}: "
                f"master is already {master.status}."
            )
            return MergeResult(
                MergeOutcome.SKIPPED, master.id, member.id, reason=MASTER_PROGRESSED
            )

        if member.status not in ADMISSIBLE_STATUSES:
            logger.info(
                f"Order #{member.id} not merged into master order #{master.id}: "
                f"status '{member.status}'."
            )
            return MergeResult(
                MergeOutcome.SKIPPED,
                master.id,
                member.id,
                reason=f"status '{member.status}' is not mergeable",
            )

        # Back-reference is written before any line is copied.
        self._store.set_master_reference(member, master.id)

        member_items = self._store.get_items(member)
        lines = fold_items({}, master.items.all())
        fold_items(lines, member_items)

        master.included_order_ids = master.member_ids + [member.id]
        self._write_lines(master, lines)

        self._store.add_note(
            OrderKind.MASTER,
            master.id,
            f"Order #{member.id} merged ({len(member_items)} line(s)).",
        )
        logger.info(
            f"Merged order #{member.id} into master order #{master.id} "
            f"({len(lines)} consolidated line(s))."
        )
        return MergeResult(MergeOutcome.MERGED, master.id, member.id)

    @transaction.atomic
    def reconstruct(
        self,
        master_order_id: int,
        remaining_member_ids: Iterable[int] | None = None,
    ) -> ReconstructionResult:
        """
        Rebuild the consolidated lines from scratch.

        Defaults to the master's current membership list. Missing and
        failed members are skipped; unresolvable product lines are
        skipped and reported in `errors`.
        """
        master = lock_master_order(master_order_id)
        member_ids = (
            master.member_ids
            if remaining_member_ids is None
            else [int(order_id) for order_id in remaining_member_ids]
        )
        members = self._store.get_orders(member_ids)

        lines: dict[tuple[int, int], ConsolidatedLine] = {}
        processed: list[int] = []
        errors: list[ReconstructionError] = []

        for member_id in member_ids:
            member = members.get(member_id)
            if member is None:
                logger.warning(
                    f"Master order #{master.id}: member order #{member_id} "
                    f"no longer exists, skipped."
                )
                continue
            if is_failure_status(member.status):
                continue

            resolvable = []
            for item in self._store.get_items(member):
                if self._products.is_resolvable(item.product_id, item.variation_id):
                    resolvable.append(item)
                    continue
                error = ReconstructionError(
                    member.id, item.product_id, item.variation_id, "product not found"
                )
                errors.append(error)
                logger.warning(f"Master order #{master.id}: {error}")
            fold_items(lines, resolvable)
            processed.append(member.id)

        self._write_lines(master, lines)

        result = ReconstructionResult(
            master_order_id=master.id,
            item_count=len(lines),
            line_item_count=sum(line.quantity for line in lines.values()),
            processed_orders=tuple(processed),
            errors=tuple(errors),
        )
        logger.info(
            f"Reconstructed master order #{master.id}: {result.item_count} line(s), "
            f"{result.line_item_count} unit(s) from {len(processed)} order(s)"
            f"{f', {len(errors)} skipped' if errors else ''}."
        )
        return result

    # ══════════════════════════════════════════════════════════
    # PERSISTENCE
    # ══════════════════════════════════════════════════════════

    def _write_lines(
        self,
        master: MasterOrder,
        lines: dict[tuple[int, int], ConsolidatedLine],
    ) -> None:
        ordered = sorted_lines(lines)

        MasterOrderItem.objects.filter(master_order=master).delete()
        MasterOrderItem.objects.bulk_create(
            [
                MasterOrderItem(
                    master_order=master,
                    product_id=line.product_id,
                    variation_id=line.variation_id,
                    name=line.name,
                    quantity=line.quantity,
                    subtotal=line.subtotal,
                    total=line.total,
                    tax=line.tax,
                    taxes=line.taxes_json(),
                    position=position,
                )
                for position, line in enumerate(ordered)
            ]
        )

        master.subtotal = sum((line.subtotal for line in ordered), ZERO)
        master.total_tax = sum((line.tax for line in ordered), ZERO)
        master.total = sum((line.total for line in ordered), ZERO) + master.total_tax
        master.total_quantity = sum(line.quantity for line in ordered)
        master.save(
            update_fields=[
                "included_order_ids",
                "subtotal",
                "total",
                "total_tax",
                "total_quantity",
                "updated_at",
            ]
        )

"""
MOA Master Orders — Totals Validation & Reconciliation
========================================================
Compares a master order's consolidated lines against a fresh
consolidation of its members and repairs drift.

Only master orders still in their initial status are repaired;
progressed master orders are reported, never rewritten.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal

from core.order_store.providers import DbProductResolver, ProductResolver
from core.order_store.service import OrderStore
from engines.master_orders.builder import (
    MASTER_PROGRESSED,
    ConsolidatedLine,
    MasterOrderBuilder,
    ReconstructionResult,
    fold_items,
)
from engines.master_orders.errors import MasterOrderNotFound
from engines.master_orders.queries import get_master_order
from engines.master_orders.statuses import is_failure_status, is_initial

logger = logging.getLogger("moa.master_orders")


@dataclass(frozen=True)
class LineDiscrepancy:
    product_id: int
    variation_id: int
    expected_quantity: int
    actual_quantity: int
    expected_total: Decimal
    actual_total: Decimal


@dataclass(frozen=True)
class ValidationReport:
    master_order_id: int
    discrepancies: tuple[LineDiscrepancy, ...]
    members_checked: int

    @property
    def is_valid(self) -> bool:
        return not self.discrepancies


@dataclass(frozen=True)
class ReconciliationResult:
    report: ValidationReport
    reconstruction: ReconstructionResult | None = None
    reason: str = ""

    @property
    def repaired(self) -> bool:
        return self.reconstruction is not None


class MasterOrderValidator:
    def __init__(
        self,
        *,
        store: OrderStore | None = None,
        products: ProductResolver | None = None,
        builder: MasterOrderBuilder | None = None,
    ):
        self._store = store or OrderStore()
        self._products = products or DbProductResolver()
        self._builder = builder or MasterOrderBuilder(store=self._store, products=self._products)

    def validate_master_order_totals(self, master_order_id: int) -> ValidationReport:
        master = get_master_order(master_order_id)
        if master is None:
            raise MasterOrderNotFound(master_order_id)

        expected: dict[tuple[int, int], ConsolidatedLine] = {}
        members = self._store.get_orders(master.member_ids)
        checked = 0
        for member_id in master.member_ids:
            member = members.get(member_id)
            if member is None or is_failure_status(member.status):
                continue
            checked += 1
            fold_items(
                expected,
                (
                    item
                    for item in self._store.get_items(member)
                    if self._products.is_resolvable(item.product_id, item.variation_id)
                ),
            )

        actual = fold_items({}, master.items.all())

        discrepancies = []
        for key in sorted(set(expected) | set(actual)):
            want = expected.get(key) or ConsolidatedLine(*key)
            have = actual.get(key) or ConsolidatedLine(*key)
            if want.quantity != have.quantity or want.total != have.total:
                discrepancies.append(
                    LineDiscrepancy(
                        product_id=key[0],
                        variation_id=key[1],
                        expected_quantity=want.quantity,
                        actual_quantity=have.quantity,
                        expected_total=want.total,
                        actual_total=have.total,
                    )
                )

        if discrepancies:
            logger.warning(
                f"Master order #{master.id} totals drifted on "
                f"{len(discrepancies)} line(s)."
            )
        return ValidationReport(master.id, tuple(discrepancies), checked)

    def reconcile(self, master_order_id: int) -> ReconciliationResult:
        report = self.validate_master_order_totals(master_order_id)
        if report.is_valid:
            return ReconciliationResult(report)

        master = get_master_order(master_order_id)
        if master is None or not is_initial(master.status):
            logger.warning(
                f"Master order #{master_order_id} has drifted totals but is no "
                f"longer in its initial status, left unchanged."
            )
            return ReconciliationResult(report, reason=MASTER_PROGRESSED)

        reconstruction = self._builder.reconstruct(master.id)
        logger.info(f"Master order #{master.id} reconciled from its members.")
        return ReconciliationResult(report, reconstruction=reconstruction)

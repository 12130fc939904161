"""
MOA Master Orders — Bulk Status Actions
=========================================
Applies one target status to a selection of orders, the way an
administrator does from an order list.

- Ids that are not master orders are counted as `not_master` and
  left untouched (regular orders are protected)
- Each master order goes through the state machine on its own;
  one blocked order does not stop the others
- Every master order that changed is validated afterwards
- A generic "completed" is read as master-complete
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable

from core.notifications.sink import NoticeLevel, NotificationSink, notify_on_commit
from core.order_store.models import MemberOrderStatus
from engines.master_orders.models import MasterOrder
from engines.master_orders.state_machine import MasterOrderStateMachine, TransitionOutcome
from engines.master_orders.statuses import MasterOrderStatus, is_master_status
from engines.master_orders.validation import MasterOrderValidator, ValidationReport

logger = logging.getLogger("moa.master_orders")

_STATUS_ALIASES = {MemberOrderStatus.COMPLETED: MasterOrderStatus.COMPLETE}


@dataclass(frozen=True)
class BulkTransitionSummary:
    new_status: str
    changed: tuple[int, ...] = ()
    blocked: tuple[int, ...] = ()
    unchanged: tuple[int, ...] = ()
    not_master: tuple[int, ...] = ()
    validation: tuple[ValidationReport, ...] = ()

    @property
    def changed_count(self) -> int:
        return len(self.changed)

    @property
    def blocked_count(self) -> int:
        return len(self.blocked)

    @property
    def unchanged_count(self) -> int:
        return len(self.unchanged)

    @property
    def not_master_count(self) -> int:
        return len(self.not_master)

    @property
    def invalid_master_ids(self) -> tuple[int, ...]:
        return tuple(report.master_order_id for report in self.validation if not report.is_valid)


class BulkTransitionRunner:
    def __init__(
        self,
        *,
        state_machine: MasterOrderStateMachine,
        validator: MasterOrderValidator,
        notifications: NotificationSink | None = None,
    ):
        self._state_machine = state_machine
        self._validator = validator
        self._notifications = notifications

    def bulk_transition(self, order_ids: Iterable[int], new_status: str) -> BulkTransitionSummary:
        new_status = _STATUS_ALIASES.get(new_status, new_status)
        if not is_master_status(new_status):
            raise ValueError(f"'{new_status}' is not a master order status.")

        ids = list(dict.fromkeys(int(order_id) for order_id in order_ids))
        existing = set(MasterOrder.objects.filter(id__in=ids).values_list("id", flat=True))

        changed, blocked, unchanged, not_master = [], [], [], []
        for order_id in ids:
            if order_id not in existing:
                not_master.append(order_id)
                continue
            result = self._state_machine.transition(order_id, new_status)
            if result.outcome == TransitionOutcome.CHANGED:
                changed.append(order_id)
            elif result.outcome == TransitionOutcome.BLOCKED:
                blocked.append(order_id)
            else:
                unchanged.append(order_id)

        reports = tuple(
            self._validator.validate_master_order_totals(order_id) for order_id in changed
        )

        summary = BulkTransitionSummary(
            new_status=new_status,
            changed=tuple(changed),
            blocked=tuple(blocked),
            unchanged=tuple(unchanged),
            not_master=tuple(not_master),
            validation=reports,
        )
        self._report(summary)
        return summary

    def _report(self, summary: BulkTransitionSummary) -> None:
        logger.info(
            f"Bulk transition to {summary.new_status}: {summary.changed_count} changed, "
            f"{summary.blocked_count} blocked, {summary.unchanged_count} unchanged, "
            f"{summary.not_master_count} not master orders."
        )
        if summary.changed:
            notify_on_commit(
                self._notifications,
                f"{summary.changed_count} master order(s) status changed.",
                level=NoticeLevel.SUCCESS,
            )
        if summary.not_master:
            notify_on_commit(
                self._notifications,
                f"{summary.not_master_count} regular order(s) were protected: "
                f"master actions only apply to master orders.",
                level=NoticeLevel.WARNING,
            )
        if summary.invalid_master_ids:
            notify_on_commit(
                self._notifications,
                "Totals mismatch on master order(s) "
                + ", ".join(f"#{order_id}" for order_id in summary.invalid_master_ids)
                + ".",
                level=NoticeLevel.ERROR,
            )

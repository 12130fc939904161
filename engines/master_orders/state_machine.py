"""
MOA Master Orders — Status State Machine
==========================================
Applies master order transitions and pushes the new stage down to
the member orders.

Rules:
- Every transition is checked with `is_regression` first
- A disallowed transition is never applied: a note is attached,
  a warning notice is recorded and the result carries the
  InvalidTransitionError in `rejection`
- Member writes go through the order store in system mode
  (emit=False) so no member subscriber runs again
- Reaching the terminal status deactivates the account registry
  entry if it still points at this master order

Member propagation:
    master-warehouse  ->  members to warehouse
    master-prepared   ->  members to prepared
    master-complete   ->  "prepared": warehouse members to prepared
                          "completed": every live member to completed
Failed members and members already at or past the target are skipped.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from django.db import transaction

from core.events.dispatcher import dispatch_on_commit
from core.events.registry import SubscriberRegistry
from core.notifications.sink import NoticeLevel, NotificationSink, notify_on_commit
from core.order_store.models import MemberOrderStatus, OrderKind
from core.order_store.service import OrderStore
from core.time.clock import Clock, get_default_clock
from engines.master_orders.config import (
    TERMINAL_PROPAGATE_COMPLETED,
    MasterOrderSettings,
)
from engines.master_orders.errors import InvalidTransitionError
from engines.master_orders.events import MasterOrderStatusChanged
from engines.master_orders.models import MasterOrder, MasterOrderRegistry
from engines.master_orders.queries import lock_master_order
from engines.master_orders.statuses import (
    MasterOrderStatus,
    is_failure_status,
    is_regression,
    is_terminal,
    should_advance_member,
    status_label,
)

logger = logging.getLogger("moa.master_orders")


class TransitionOutcome:
    CHANGED = "changed"
    UNCHANGED = "unchanged"
    BLOCKED = "blocked"


@dataclass(frozen=True)
class TransitionResult:
    master_order_id: int
    old_status: str
    new_status: str
    outcome: str
    rejection: InvalidTransitionError | None = None
    members_updated: tuple[int, ...] = ()

    @property
    def applied(self) -> bool:
        return self.outcome == TransitionOutcome.CHANGED

    @property
    def blocked(self) -> bool:
        return self.outcome == TransitionOutcome.BLOCKED


class MasterOrderStateMachine:
    def __init__(
        self,
        *,
        settings: MasterOrderSettings | None = None,
        store: OrderStore | None = None,
        notifications: NotificationSink | None = None,
        subscriber_registry: SubscriberRegistry | None = None,
        clock: Clock | None = None,
    ):
        self._settings = settings or MasterOrderSettings()
        self._clock = clock or get_default_clock()
        self._store = store or OrderStore(clock=self._clock)
        self._notifications = notifications
        self._registry = subscriber_registry

    # ══════════════════════════════════════════════════════════
    # TRANSITIONS
    # ══════════════════════════════════════════════════════════

    @transaction.atomic
    def transition(
        self,
        master_order_id: int,
        new_status: str,
        *,
        note: str | None = None,
        system: bool = False,
    ) -> TransitionResult:
        """
        Move a master order to `new_status` and propagate to its members.

        system=True applies the same rules but publishes no
        status-changed event.
        """
        master = lock_master_order(master_order_id)
        old_status = master.status

        if old_status == new_status:
            return TransitionResult(
                master.id, old_status, old_status, TransitionOutcome.UNCHANGED
            )

        if is_regression(old_status, new_status):
            return self._reject(master, old_status, new_status)

        master.status = new_status
        master.save(update_fields=["status", "updated_at"])

        self._store.add_note(
            OrderKind.MASTER,
            master.id,
            f"Status changed from {status_label(old_status)} to "
            f"{status_label(new_status)}."
            + (f" {note}" if note else ""),
        )
        members_updated = self._apply_effects(master, new_status)

        logger.info(
            f"Master order #{master.id} {old_status} -> {new_status}"
            f"{' (system)' if system else ''}, "
            f"{len(members_updated)} member order(s) updated."
        )

        if not system:
            dispatch_on_commit(
                MasterOrderStatusChanged(
                    master_order_id=master.id,
                    account_id=str(master.account_id),
                    old_status=old_status,
                    new_status=new_status,
                    members_updated=members_updated,
                    occurred_at=self._clock.now_utc(),
                ),
                self._registry,
            )

        return TransitionResult(
            master.id,
            old_status,
            new_status,
            TransitionOutcome.CHANGED,
            members_updated=members_updated,
        )

    @transaction.atomic
    def revert_if_disallowed(
        self,
        master_order_id: int,
        previous_status: str,
    ) -> TransitionResult:
        """
        Check a status that was already written outside the engine.

        A disallowed change is reverted to `previous_status`; an allowed
        one is kept and its member propagation is run.
        """
        master = lock_master_order(master_order_id)
        current = master.status

        if current == previous_status:
            return TransitionResult(
                master.id, previous_status, current, TransitionOutcome.UNCHANGED
            )

        if is_regression(previous_status, current):
            master.status = previous_status
            master.save(update_fields=["status", "updated_at"])
            logger.warning(
                f"Master order #{master.id}: reverted external status write "
                f"{previous_status} -> {current}."
            )
            return self._reject(master, previous_status, current)

        members_updated = self._apply_effects(master, current)
        return TransitionResult(
            master.id,
            previous_status,
            current,
            TransitionOutcome.CHANGED,
            members_updated=members_updated,
        )

    # ══════════════════════════════════════════════════════════
    # INTERNALS
    # ══════════════════════════════════════════════════════════

    def _reject(
        self,
        master: MasterOrder,
        old_status: str,
        new_status: str,
    ) -> TransitionResult:
        rejection = InvalidTransitionError(master.id, old_status, new_status)
        message = (
            f"Master order #{master.id}: status change from "
            f"{status_label(old_status)} to {status_label(new_status)} is not "
            f"allowed. Status kept at {status_label(old_status)}."
        )
        self._store.add_note(OrderKind.MASTER, master.id, message)
        notify_on_commit(self._notifications, message, level=NoticeLevel.WARNING)
        logger.warning(str(rejection))
        return TransitionResult(
            master.id,
            old_status,
            old_status,
            TransitionOutcome.BLOCKED,
            rejection=rejection,
        )

    def _apply_effects(self, master: MasterOrder, new_status: str) -> tuple[int, ...]:
        members_updated = self._propagate(master, new_status)
        if is_terminal(new_status):
            deactivated = MasterOrderRegistry.objects.filter(
                master_order_id=master.id,
                is_active=True,
            ).update(is_active=False, updated_at=self._clock.now_utc())
            if deactivated:
                logger.info(
                    f"Registry entry for account {master.account_id} released "
                    f"by completed master order #{master.id}."
                )
            notify_on_commit(
                self._notifications,
                f"Master order #{master.id} completed for account "
                f"'{master.account_name}'. The next reviewed order will start "
                f"a new master order.",
                level=NoticeLevel.SUCCESS,
            )
        return members_updated

    def _propagate(self, master: MasterOrder, new_status: str) -> tuple[int, ...]:
        member_ids = master.member_ids
        members = self._store.get_orders(member_ids)
        updated: list[int] = []

        for member_id in member_ids:
            member = members.get(member_id)
            if member is None:
                continue
            target = self.member_target(new_status, member.status)
            if target is None:
                continue
            self._store.update_status(
                member.id,
                target,
                note=(
                    f"Status set to {status_label(target)} by master order "
                    f"#{master.id}."
                ),
                emit=False,
            )
            updated.append(member.id)

        return tuple(updated)

    def member_target(self, master_status: str, member_status: str) -> str | None:
        """The status a member should move to, or None to leave it."""
        if master_status == MasterOrderStatus.WAREHOUSE:
            target = MemberOrderStatus.WAREHOUSE
        elif master_status == MasterOrderStatus.PREPARED:
            target = MemberOrderStatus.PREPARED
        elif master_status == MasterOrderStatus.COMPLETE:
            if self._settings.terminal_member_propagation == TERMINAL_PROPAGATE_COMPLETED:
                if is_failure_status(member_status):
                    return None
                if member_status == MemberOrderStatus.COMPLETED:
                    return None
                return MemberOrderStatus.COMPLETED
            if member_status != MemberOrderStatus.WAREHOUSE:
                return None
            return MemberOrderStatus.PREPARED
        else:
            return None

        if not should_advance_member(member_status, target):
            return None
        return target

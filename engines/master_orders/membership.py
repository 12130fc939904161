"""
MOA Master Orders — Membership Manager
========================================
Admission and removal of member orders.

admit(member_order_id)
    reviewed order with an account -> allocate the account's master
    order, merge the member into it, record an audit notice.

remove(member_order_id)
    order left the reviewed state -> pull it out of its master order
    while the master is still in its initial status. The last member
    out deletes the master order.

Re-entrancy is guarded by data: the membership list and the member's
back-reference. Removal additionally takes a short non-blocking
per-member lock; a concurrent second removal returns `busy`.

Lock order is always master order row, then member order row.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from django.db import transaction

from core.locks.service import acquire_lock, release_lock
from core.notifications.sink import NoticeLevel, NotificationSink, notify_on_commit
from core.order_store.models import MemberOrderStatus, OrderKind
from core.order_store.service import OrderStore
from core.time.clock import Clock, get_default_clock
from engines.master_orders.allocation import AllocationCoordinator
from engines.master_orders.builder import (
    MASTER_PROGRESSED,
    MasterOrderBuilder,
    MergeOutcome,
    ReconstructionResult,
)
from engines.master_orders.config import MasterOrderSettings
from engines.master_orders.errors import MemberOrderNotFound, RemovalRefusedError
from engines.master_orders.models import MasterOrder, MasterOrderRegistry
from engines.master_orders.queries import get_master_order
from engines.master_orders.statuses import MasterOrderStatus, status_label

logger = logging.getLogger("moa.master_orders")


def removal_lock_name(member_order_id) -> str:
    return f"master_order_removal_{member_order_id}"


# ══════════════════════════════════════════════════════════════
# RESULTS
# ══════════════════════════════════════════════════════════════

class AdmissionOutcome:
    MERGED = "merged"
    ALREADY_MEMBER = "already_member"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class AdmissionResult:
    member_order_id: int
    outcome: str
    master_order_id: int | None = None
    reason: str = ""


class RemovalOutcome:
    REMOVED = "removed"
    MASTER_DELETED = "master_deleted"
    REFUSED = "refused"
    NOT_MEMBER = "not_member"
    BUSY = "busy"


@dataclass(frozen=True)
class RemovalResult:
    member_order_id: int
    outcome: str
    master_order_id: int | None = None
    reconstruction: ReconstructionResult | None = None
    refusal: RemovalRefusedError | None = None


# ══════════════════════════════════════════════════════════════
# MANAGER
# ══════════════════════════════════════════════════════════════

class MembershipManager:
    def __init__(
        self,
        *,
        settings: MasterOrderSettings | None = None,
        store: OrderStore | None = None,
        allocator: AllocationCoordinator | None = None,
        builder: MasterOrderBuilder | None = None,
        notifications: NotificationSink | None = None,
        clock: Clock | None = None,
    ):
        self._settings = settings or MasterOrderSettings()
        self._clock = clock or get_default_clock()
        self._store = store or OrderStore(clock=self._clock)
        self._allocator = allocator or AllocationCoordinator(
            settings=self._settings, clock=self._clock, store=self._store
        )
        self._builder = builder or MasterOrderBuilder(store=self._store, clock=self._clock)
        self._notifications = notifications

    # ══════════════════════════════════════════════════════════
    # ADMISSION
    # ══════════════════════════════════════════════════════════

    def admit(self, member_order_id: int) -> AdmissionResult:
        """
        Add a reviewed member order to its account's master order.

        Allocation and merge errors propagate to the caller.
        """
        member = self._store.get_order(member_order_id)
        if member is None:
            raise MemberOrderNotFound(member_order_id)

        if member.status != MemberOrderStatus.REVIEWED:
            return AdmissionResult(
                member.id,
                AdmissionOutcome.SKIPPED,
                reason=f"status is '{member.status}', not reviewed",
            )
        if member.account_id is None:
            logger.info(f"Order #{member.id} has no account, not aggregated.")
            return AdmissionResult(
                member.id, AdmissionOutcome.SKIPPED, reason="order has no account"
            )

        if member.master_order_id is not None:
            current = get_master_order(member.master_order_id)
            if current is not None and member.id in current.member_ids:
                return AdmissionResult(
                    member.id, AdmissionOutcome.ALREADY_MEMBER, master_order_id=current.id
                )
            logger.warning(
                f"Order #{member.id} had a stale master order reference "
                f"#{member.master_order_id}, cleared."
            )
            self._store.clear_master_reference(member)

        master_order_id = self._allocator.acquire_or_create_master_order(member.account_id)
        merge = self._builder.merge_into(master_order_id, member.id)
        if merge.outcome == MergeOutcome.SKIPPED and merge.reason == MASTER_PROGRESSED:
            # The master moved on between allocation and merge; the next
            # allocation supersedes it.
            logger.info(
                f"Master order #{master_order_id} progressed before order "
                f"#{member.id} was merged, allocating again."
            )
            master_order_id = self._allocator.acquire_or_create_master_order(
                member.account_id
            )
            merge = self._builder.merge_into(master_order_id, member.id)

        if merge.outcome == MergeOutcome.SKIPPED:
            return AdmissionResult(
                member.id,
                AdmissionOutcome.SKIPPED,
                master_order_id=master_order_id,
                reason=merge.reason,
            )
        if merge.outcome == MergeOutcome.ALREADY_MERGED:
            return AdmissionResult(
                member.id, AdmissionOutcome.ALREADY_MEMBER, master_order_id=master_order_id
            )

        notify_on_commit(
            self._notifications,
            f"Order #{member.id} added to master order #{master_order_id} "
            f"for account '{member.account.name}'.",
            level=NoticeLevel.SUCCESS,
        )
        return AdmissionResult(
            member.id, AdmissionOutcome.MERGED, master_order_id=master_order_id
        )

    # ══════════════════════════════════════════════════════════
    # REMOVAL
    # ══════════════════════════════════════════════════════════

    def remove(self, member_order_id: int) -> RemovalResult:
        lock_name = removal_lock_name(member_order_id)
        token = acquire_lock(
            lock_name,
            timeout=0,
            ttl=self._settings.removal_lock_ttl,
            clock=self._clock,
        )
        if token is None:
            logger.info(f"Removal of order #{member_order_id} already in progress.")
            return RemovalResult(member_order_id, RemovalOutcome.BUSY)
        try:
            return self._remove(member_order_id)
        finally:
            release_lock(lock_name, token)

    @transaction.atomic
    def _remove(self, member_order_id: int) -> RemovalResult:
        member = self._store.get_order(member_order_id)
        if member is None:
            raise MemberOrderNotFound(member_order_id)
        if member.master_order_id is None:
            return RemovalResult(member.id, RemovalOutcome.NOT_MEMBER)

        master = (
            MasterOrder.objects.select_for_update()
            .filter(id=member.master_order_id)
            .first()
        )
        member = self._store.get_order(member_order_id, for_update=True)

        if master is None:
            logger.warning(
                f"Order #{member.id} referenced missing master order "
                f"#{member.master_order_id}, reference cleared."
            )
            self._store.clear_master_reference(member)
            return RemovalResult(member.id, RemovalOutcome.NOT_MEMBER)

        if master.status != MasterOrderStatus.INITIAL:
            return self._refuse(member.id, master)

        self._store.clear_master_reference(member)
        remaining = [order_id for order_id in master.member_ids if order_id != member.id]

        if not remaining:
            return self._delete_empty_master(member.id, master)

        master.included_order_ids = remaining
        master.save(update_fields=["included_order_ids", "updated_at"])
        reconstruction = self._builder.reconstruct(master.id, remaining)
        master.refresh_from_db(fields=["total"])

        self._store.add_note(
            OrderKind.MASTER, master.id, f"Order #{member.id} removed."
        )
        notify_on_commit(
            self._notifications,
            f"Order #{member.id} removed from master order #{master.id}. "
            f"Master order now has {reconstruction.item_count} product(s), "
            f"{reconstruction.line_item_count} item(s), total {master.total}"
            + (
                f", {len(reconstruction.errors)} line(s) skipped."
                if reconstruction.errors
                else "."
            ),
        )
        logger.info(f"Order #{member.id} removed from master order #{master.id}.")
        return RemovalResult(
            member.id,
            RemovalOutcome.REMOVED,
            master_order_id=master.id,
            reconstruction=reconstruction,
        )

    def _refuse(self, member_order_id: int, master: MasterOrder) -> RemovalResult:
        refusal = RemovalRefusedError(member_order_id, master.id, master.status)
        message = (
            f"Order #{member_order_id} was not removed from master order "
            f"#{master.id}: the master order is already "
            f"{status_label(master.status)}."
        )
        self._store.add_note(OrderKind.MEMBER, member_order_id, message)
        notify_on_commit(self._notifications, message, level=NoticeLevel.WARNING)
        logger.info(str(refusal))
        return RemovalResult(
            member_order_id,
            RemovalOutcome.REFUSED,
            master_order_id=master.id,
            refusal=refusal,
        )

    def _delete_empty_master(self, member_order_id: int, master: MasterOrder) -> RemovalResult:
        master_id = master.id
        MasterOrderRegistry.objects.filter(master_order_id=master_id).update(
            is_active=False,
            updated_at=self._clock.now_utc(),
        )
        master.delete()

        message = (
            f"Master order #{master_id} deleted: its last order "
            f"#{member_order_id} was removed."
        )
        self._store.add_note(OrderKind.MEMBER, member_order_id, message)
        notify_on_commit(self._notifications, message)
        logger.info(message)
        return RemovalResult(
            member_order_id,
            RemovalOutcome.MASTER_DELETED,
            master_order_id=master_id,
        )

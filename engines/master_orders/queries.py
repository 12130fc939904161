"""
MOA Master Orders — Read Queries
"""

from __future__ import annotations

from core.order_store.models import MemberOrder
from engines.master_orders.errors import MasterOrderNotFound
from engines.master_orders.models import MasterOrder, MasterOrderRegistry


def lock_master_order(master_order_id: int) -> MasterOrder:
    """Read a master order FOR UPDATE. Must run inside a transaction."""
    master = MasterOrder.objects.select_for_update().filter(id=master_order_id).first()
    if master is None:
        raise MasterOrderNotFound(master_order_id)
    return master


def get_master_order(master_order_id: int) -> MasterOrder | None:
    return MasterOrder.objects.filter(id=master_order_id).first()


def get_master_order_for(member_order_id: int) -> MasterOrder | None:
    """
    The master order a member order belongs to.

    Only a consistent pair counts: the member's back-reference must
    point at an existing master order that lists the member.
    """
    back_reference = (
        MemberOrder.objects.filter(id=member_order_id)
        .values_list("master_order_id", flat=True)
        .first()
    )
    if back_reference is None:
        return None
    master = get_master_order(back_reference)
    if master is None or int(member_order_id) not in master.member_ids:
        return None
    return master


def get_members(master_order_id: int) -> list[MemberOrder]:
    """Member orders of a master order, in merge order. Missing ids are dropped."""
    master = get_master_order(master_order_id)
    if master is None:
        raise MasterOrderNotFound(master_order_id)
    member_ids = master.member_ids
    by_id = MemberOrder.objects.in_bulk(member_ids)
    return [by_id[member_id] for member_id in member_ids if member_id in by_id]


def get_active_master_order(account_id) -> MasterOrder | None:
    entry = (
        MasterOrderRegistry.objects.select_related("master_order")
        .filter(account_id=account_id, is_active=True)
        .first()
    )
    if entry is None:
        return None
    return entry.master_order

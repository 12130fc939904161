"""
MOA Master Orders — Status Vocabulary & Transition Table
==========================================================
Pure data and pure functions. No database access.

Master order lifecycle:

    master-order ──► master-warehouse ◄──► master-prepared
                            │                     │
                            └──► master-complete ◄┘

- The initial state is never re-entered.
- The terminal state is never left.
- warehouse <-> prepared is the only backwards move.
"""

from __future__ import annotations

from django.db import models

from core.order_store.models import MemberOrderStatus


class MasterOrderStatus(models.TextChoices):
    INITIAL = "master-order", "Master Validated"
    WAREHOUSE = "master-warehouse", "Master Warehouse"
    PREPARED = "master-prepared", "Master Prepared"
    COMPLETE = "master-complete", "Master Complete"


MASTER_STATUSES = frozenset(MasterOrderStatus.values)

_ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    MasterOrderStatus.INITIAL: frozenset({MasterOrderStatus.WAREHOUSE}),
    MasterOrderStatus.WAREHOUSE: frozenset(
        {MasterOrderStatus.PREPARED, MasterOrderStatus.COMPLETE}
    ),
    MasterOrderStatus.PREPARED: frozenset(
        {MasterOrderStatus.WAREHOUSE, MasterOrderStatus.COMPLETE}
    ),
    MasterOrderStatus.COMPLETE: frozenset(),
}


def is_master_status(status: str) -> bool:
    return status in MASTER_STATUSES


def is_terminal(status: str) -> bool:
    return status == MasterOrderStatus.COMPLETE


def is_initial(status: str) -> bool:
    return status == MasterOrderStatus.INITIAL


def is_regression(old_status: str, new_status: str) -> bool:
    """
    True when moving from `old_status` to `new_status` is NOT allowed.

    Staying put is not a regression. Unknown statuses on either side
    are always a regression.
    """
    if old_status == new_status:
        return False
    if old_status not in MASTER_STATUSES or new_status not in MASTER_STATUSES:
        return True
    return new_status not in _ALLOWED_TRANSITIONS[old_status]


def allowed_targets(status: str) -> frozenset[str]:
    return _ALLOWED_TRANSITIONS.get(status, frozenset())


def status_label(status: str) -> str:
    try:
        return MasterOrderStatus(status).label
    except ValueError:
        try:
            return MemberOrderStatus(status).label
        except ValueError:
            return status


# ══════════════════════════════════════════════════════════════
# MEMBER ORDER SIDE
# ══════════════════════════════════════════════════════════════

FAILURE_STATUSES = frozenset(
    {
        MemberOrderStatus.CANCELLED,
        MemberOrderStatus.FAILED,
        MemberOrderStatus.REFUNDED,
    }
)

ADMISSIBLE_STATUSES = frozenset(
    {
        MemberOrderStatus.PROCESSING,
        MemberOrderStatus.REVIEWED,
    }
)

# Fulfillment progression rank. Propagation never moves a member backwards.
_MEMBER_RANK = {
    MemberOrderStatus.PENDING: 0,
    MemberOrderStatus.ON_HOLD: 0,
    MemberOrderStatus.PROCESSING: 1,
    MemberOrderStatus.REVIEWED: 2,
    MemberOrderStatus.WAREHOUSE: 3,
    MemberOrderStatus.PREPARED: 4,
    MemberOrderStatus.COMPLETED: 5,
}


def is_failure_status(status: str) -> bool:
    return status in FAILURE_STATUSES


def member_rank(status: str) -> int:
    return _MEMBER_RANK.get(status, 0)


def should_advance_member(current_status: str, target_status: str) -> bool:
    """
    Whether a propagated write should move a member to `target_status`.

    Failed members, members already at the target, and members already
    past it are left alone.
    """
    if is_failure_status(current_status):
        return False
    if current_status == target_status:
        return False
    return member_rank(current_status) < member_rank(target_status)

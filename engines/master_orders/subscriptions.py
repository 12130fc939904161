"""
MOA Master Orders — Event Subscriptions
=========================================
Master orders subscribe to member order status changes:

    processing -> reviewed        admit into the account master order
    reviewed   -> anything else   remove from its master order

Propagated writes are made in system mode and never arrive here.
"""

from __future__ import annotations

import logging

from core.events.registry import SubscriberRegistry
from core.order_store.events import MEMBER_ORDER_STATUS_CHANGED, OrderStatusChanged
from core.order_store.models import MemberOrderStatus

logger = logging.getLogger("moa.master_orders")

MASTER_ORDERS_ENGINE = "master_orders"


class MasterOrderSubscriptionHandler:
    def __init__(self, membership):
        self._membership = membership

    def handle_member_status_changed(self, event: OrderStatusChanged):
        if (
            event.old_status == MemberOrderStatus.PROCESSING
            and event.new_status == MemberOrderStatus.REVIEWED
        ):
            return self._membership.admit(event.order_id)
        if event.old_status == MemberOrderStatus.REVIEWED:
            return self._membership.remove(event.order_id)
        logger.debug(
            f"Order #{event.order_id} {event.old_status} -> {event.new_status} "
            f"ignored by master orders."
        )
        return None


def register_master_order_subscriptions(
    registry: SubscriberRegistry,
    handler: MasterOrderSubscriptionHandler,
) -> None:
    registry.register_subscriber(
        event_type=MEMBER_ORDER_STATUS_CHANGED,
        handler=handler.handle_member_status_changed,
        subscriber_engine=MASTER_ORDERS_ENGINE,
    )

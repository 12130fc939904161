"""
MOA Order Store — Event Types
===============================
Events published by the order store. Dispatched after commit.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime

MEMBER_ORDER_STATUS_CHANGED = "order_store.member_order.status_changed"


@dataclass(frozen=True)
class OrderStatusChanged:
    order_id: int
    old_status: str
    new_status: str
    occurred_at: datetime
    event_id: uuid.UUID = field(default_factory=uuid.uuid4)
    event_type: str = MEMBER_ORDER_STATUS_CHANGED

    def __post_init__(self):
        if not self.old_status or not self.new_status:
            raise ValueError("old_status and new_status must be non-empty.")
        if self.old_status == self.new_status:
            raise ValueError("A status change needs two different statuses.")

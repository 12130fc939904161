"""
MOA Master Orders — Event Types
=================================
Published after commit by normal-mode transitions only.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime

MASTER_ORDER_STATUS_CHANGED = "master_orders.master_order.status_changed"


@dataclass(frozen=True)
class MasterOrderStatusChanged:
    master_order_id: int
    account_id: str
    old_status: str
    new_status: str
    members_updated: tuple[int, ...]
    occurred_at: datetime
    event_id: uuid.UUID = field(default_factory=uuid.uuid4)
    event_type: str = MASTER_ORDER_STATUS_CHANGED

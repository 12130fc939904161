"""
MOA Order Store — Relational Order State
==========================================
Accounts (schools), products, member orders, line items and notes.

A member order's `master_order_id` is a plain id, not a foreign key:
the store does not depend on the aggregation engine, it only keeps
the back-reference the engine writes.
"""

from __future__ import annotations

import uuid
from decimal import Decimal

from django.db import models


class MemberOrderStatus(models.TextChoices):
    PENDING = "pending", "Pending payment"
    PROCESSING = "processing", "Processing"
    REVIEWED = "reviewed", "Validated"
    WAREHOUSE = "warehouse", "Warehouse"
    PREPARED = "prepared", "Prepared"
    COMPLETED = "completed", "Completed"
    ON_HOLD = "on-hold", "On hold"
    CANCELLED = "cancelled", "Cancelled"
    FAILED = "failed", "Failed"
    REFUNDED = "refunded", "Refunded"


class OrderKind(models.TextChoices):
    MEMBER = "MEMBER", "Member order"
    MASTER = "MASTER", "Master order"


class Account(models.Model):
    account_id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=255)
    pays_centrally = models.BooleanField(
        default=False,
        help_text=(
            "True when the account pays for its master orders itself; "
            "False when every member pays its own order."
        ),
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "moa_accounts"
        ordering = ["name", "account_id"]

    def __str__(self) -> str:
        return f"{self.name} ({self.account_id})"


class Product(models.Model):
    id = models.PositiveIntegerField(primary_key=True)
    name = models.CharField(max_length=255)
    is_active = models.BooleanField(default=True)

    class Meta:
        db_table = "moa_products"
        ordering = ["id"]

    def __str__(self) -> str:
        return f"#{self.id} {self.name}"


class MemberOrder(models.Model):
    id = models.BigAutoField(primary_key=True)
    account = models.ForeignKey(
        Account,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="member_orders",
        db_column="account_id",
    )
    customer_name = models.CharField(max_length=255, blank=True, default="")
    status = models.CharField(
        max_length=20,
        choices=MemberOrderStatus.choices,
        default=MemberOrderStatus.PENDING,
    )
    master_order_id = models.BigIntegerField(
        null=True,
        blank=True,
        help_text="Master order this order was merged into, if any.",
    )
    merged_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "moa_member_orders"
        ordering = ["id"]
        indexes = [
            models.Index(fields=["account", "status"], name="idx_member_acct_status"),
            models.Index(fields=["master_order_id"], name="idx_member_master"),
        ]

    def __str__(self) -> str:
        return f"Order #{self.id} ({self.status})"


class MemberOrderItem(models.Model):
    order = models.ForeignKey(
        MemberOrder,
        on_delete=models.CASCADE,
        related_name="items",
    )
    product_id = models.PositiveIntegerField()
    variation_id = models.PositiveIntegerField(default=0)
    name = models.CharField(max_length=255, blank=True, default="")
    quantity = models.PositiveIntegerField()
    subtotal = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0"))
    total = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0"))
    tax = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0"))
    taxes = models.JSONField(
        default=dict,
        blank=True,
        help_text="Tax amounts keyed by tax rate id, as decimal strings.",
    )
    position = models.PositiveIntegerField(default=0)

    class Meta:
        db_table = "moa_member_order_items"
        ordering = ["order_id", "position", "id"]

    @property
    def key(self) -> tuple[int, int]:
        return (self.product_id, self.variation_id)

    def __str__(self) -> str:
        return f"{self.quantity} x {self.product_id}/{self.variation_id}"


class OrderNote(models.Model):
    order_kind = models.CharField(max_length=10, choices=OrderKind.choices)
    order_id = models.BigIntegerField()
    message = models.TextField()
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "moa_order_notes"
        ordering = ["created_at", "id"]
        indexes = [
            models.Index(fields=["order_kind", "order_id"], name="idx_note_order"),
        ]

    def __str__(self) -> str:
        return f"{self.order_kind}#{self.order_id}: {self.message[:40]}"

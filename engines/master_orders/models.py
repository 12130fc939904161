"""
MOA Master Orders — Persistence Models
========================================
MasterOrder            consolidated order for one account
MasterOrderItem        one row per (product, variation) in a master order
MasterOrderRegistry    account -> currently active master order

Registry rows:
- exactly one row per account (unique account)
- master_order NULL + is_active = a reservation in progress
- is_active = False means the account needs a new master order
"""

from __future__ import annotations

from decimal import Decimal

from django.db import models

from core.order_store.models import Account
from engines.master_orders.statuses import MasterOrderStatus


class MasterOrder(models.Model):
    id = models.BigAutoField(primary_key=True)
    account = models.ForeignKey(
        Account,
        on_delete=models.PROTECT,
        related_name="master_orders",
        db_column="account_id",
    )
    account_name = models.CharField(
        max_length=255,
        blank=True,
        default="",
        help_text="Account display name at creation time.",
    )
    status = models.CharField(
        max_length=20,
        choices=MasterOrderStatus.choices,
        default=MasterOrderStatus.INITIAL,
    )
    included_order_ids = models.JSONField(
        default=list,
        blank=True,
        help_text="Member order ids in merge order.",
    )

    subtotal = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0"))
    total = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0"))
    total_tax = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0"))
    total_quantity = models.PositiveIntegerField(default=0)

    # Billing metadata, written once at creation.
    payment_method = models.CharField(max_length=50, blank=True, default="")
    payment_method_title = models.CharField(max_length=255, blank=True, default="")
    transaction_id = models.CharField(max_length=100, blank=True, default="")
    paid_at = models.DateTimeField(null=True, blank=True)
    pays_centrally = models.BooleanField(default=False)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "moa_master_orders"
        ordering = ["id"]
        indexes = [
            models.Index(fields=["account", "status"], name="idx_master_acct_status"),
        ]

    def __str__(self) -> str:
        return f"Master order #{self.id} ({self.status})"

    @property
    def member_ids(self) -> list[int]:
        return [int(order_id) for order_id in (self.included_order_ids or [])]


class MasterOrderItem(models.Model):
    master_order = models.ForeignKey(
        MasterOrder,
        on_delete=models.CASCADE,
        related_name="items",
    )
    product_id = models.PositiveIntegerField()
    variation_id = models.PositiveIntegerField(default=0)
    name = models.CharField(max_length=255, blank=True, default="")
    quantity = models.PositiveIntegerField(default=0)
    subtotal = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0"))
    total = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0"))
    tax = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0"))
    taxes = models.JSONField(
        default=dict,
        blank=True,
        help_text="Tax amounts keyed by tax rate id, as decimal strings.",
    )
    position = models.PositiveIntegerField(default=0)

    class Meta:
        db_table = "moa_master_order_items"
        ordering = ["master_order_id", "position", "id"]
        constraints = [
            models.UniqueConstraint(
                fields=["master_order", "product_id", "variation_id"],
                name="uq_master_item_key",
            ),
        ]

    @property
    def key(self) -> tuple[int, int]:
        return (self.product_id, self.variation_id)

    def __str__(self) -> str:
        return f"{self.quantity} x {self.product_id}/{self.variation_id}"


class MasterOrderRegistry(models.Model):
    account = models.OneToOneField(
        Account,
        on_delete=models.CASCADE,
        related_name="master_order_registry",
        db_column="account_id",
    )
    master_order = models.ForeignKey(
        MasterOrder,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="registry_entries",
    )
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "moa_master_order_registry"
        indexes = [
            models.Index(fields=["is_active"], name="idx_registry_active"),
        ]

    def __str__(self) -> str:
        state = "active" if self.is_active else "inactive"
        return f"{self.account_id} -> {self.master_order_id} ({state})"

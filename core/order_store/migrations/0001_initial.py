import uuid
from decimal import Decimal

import django.db.models.deletion
from django.db import migrations, models


STATUS_CHOICES = [
    ("pending", "Pending payment"),
    ("processing", "Processing"),
    ("reviewed", "Validated"),
    ("warehouse", "Warehouse"),
    ("prepared", "Prepared"),
    ("completed", "Completed"),
    ("on-hold", "On hold"),
    ("cancelled", "Cancelled"),
    ("failed", "Failed"),
    ("refunded", "Refunded"),
]


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Account",
            fields=[
                (
                    "account_id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                ("name", models.CharField(max_length=255)),
                (
                    "pays_centrally",
                    models.BooleanField(
                        default=False,
                        help_text=(
                            "True when the account pays for its master orders itself; "
                            "False when every member pays its own order."
                        ),
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "db_table": "moa_accounts",
                "ordering": ["name", "account_id"],
            },
        ),
        migrations.CreateModel(
            name="Product",
            fields=[
                ("id", models.PositiveIntegerField(primary_key=True, serialize=False)),
                ("name", models.CharField(max_length=255)),
                ("is_active", models.BooleanField(default=True)),
            ],
            options={
                "db_table": "moa_products",
                "ordering": ["id"],
            },
        ),
        migrations.CreateModel(
            name="MemberOrder",
            fields=[
                ("id", models.BigAutoField(primary_key=True, serialize=False)),
                (
                    "customer_name",
                    models.CharField(blank=True, default="", max_length=255),
                ),
                (
                    "status",
                    models.CharField(
                        choices=STATUS_CHOICES,
                        default="pending",
                        max_length=20,
                    ),
                ),
                (
                    "master_order_id",
                    models.BigIntegerField(
                        blank=True,
                        help_text="Master order this order was merged into, if any.",
                        null=True,
                    ),
                ),
                ("merged_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "account",
                    models.ForeignKey(
                        blank=True,
                        db_column="account_id",
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="member_orders",
                        to="order_store.account",
                    ),
                ),
            ],
            options={
                "db_table": "moa_member_orders",
                "ordering": ["id"],
                "indexes": [
                    models.Index(
                        fields=["account", "status"],
                        name="idx_member_acct_status",
                    ),
                    models.Index(
                        fields=["master_order_id"],
                        name="idx_member_master",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="MemberOrderItem",
            fields=[
                ("id", models.BigAutoField(primary_key=True, serialize=False)),
                ("product_id", models.PositiveIntegerField()),
                ("variation_id", models.PositiveIntegerField(default=0)),
                ("name", models.CharField(blank=True, default="", max_length=255)),
                ("quantity", models.PositiveIntegerField()),
                (
                    "subtotal",
                    models.DecimalField(decimal_places=2, default=Decimal("0"), max_digits=12),
                ),
                (
                    "total",
                    models.DecimalField(decimal_places=2, default=Decimal("0"), max_digits=12),
                ),
                (
                    "tax",
                    models.DecimalField(decimal_places=2, default=Decimal("0"), max_digits=12),
                ),
                (
                    "taxes",
                    models.JSONField(
                        blank=True,
                        default=dict,
                        help_text="Tax amounts keyed by tax rate id, as decimal strings.",
                    ),
                ),
                ("position", models.PositiveIntegerField(default=0)),
                (
                    "order",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="items",
                        to="order_store.memberorder",
                    ),
                ),
            ],
            options={
                "db_table": "moa_member_order_items",
                "ordering": ["order_id", "position", "id"],
            },
        ),
        migrations.CreateModel(
            name="OrderNote",
            fields=[
                ("id", models.BigAutoField(primary_key=True, serialize=False)),
                (
                    "order_kind",
                    models.CharField(
                        choices=[("MEMBER", "Member order"), ("MASTER", "Master order")],
                        max_length=10,
                    ),
                ),
                ("order_id", models.BigIntegerField()),
                ("message", models.TextField()),
                ("created_at", models.DateTimeField(auto_now_add=True)),
            ],
            options={
                "db_table": "moa_order_notes",
                "ordering": ["created_at", "id"],
                "indexes": [
                    models.Index(
                        fields=["order_kind", "order_id"],
                        name="idx_note_order",
                    ),
                ],
            },
        ),
    ]

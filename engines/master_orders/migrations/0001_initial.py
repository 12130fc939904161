from decimal import Decimal

import django.db.models.deletion
from django.db import migrations, models


MASTER_STATUS_CHOICES = [
    ("master-order", "Master Validated"),
    ("master-warehouse", "Master Warehouse"),
    ("master-prepared", "Master Prepared"),
    ("master-complete", "Master Complete"),
]


def _money():
    return models.DecimalField(decimal_places=2, default=Decimal("0"), max_digits=14)


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        ("order_store", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="MasterOrder",
            fields=[
                ("id", models.BigAutoField(primary_key=True, serialize=False)),
                (
                    "account_name",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Account display name at creation time.",
                        max_length=255,
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=MASTER_STATUS_CHOICES,
                        default="master-order",
                        max_length=20,
                    ),
                ),
                (
                    "included_order_ids",
                    models.JSONField(
                        blank=True,
                        default=list,
                        help_text="Member order ids in merge order.",
                    ),
                ),
                ("subtotal", _money()),
                ("total", _money()),
                ("total_tax", _money()),
                ("total_quantity", models.PositiveIntegerField(default=0)),
                ("payment_method", models.CharField(blank=True, default="", max_length=50)),
                (
                    "payment_method_title",
                    models.CharField(blank=True, default="", max_length=255),
                ),
                ("transaction_id", models.CharField(blank=True, default="", max_length=100)),
                ("paid_at", models.DateTimeField(blank=True, null=True)),
                ("pays_centrally", models.BooleanField(default=False)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "account",
                    models.ForeignKey(
                        db_column="account_id",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="master_orders",
                        to="order_store.account",
                    ),
                ),
            ],
            options={
                "db_table": "moa_master_orders",
                "ordering": ["id"],
                "indexes": [
                    models.Index(
                        fields=["account", "status"],
                        name="idx_master_acct_status",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="MasterOrderItem",
            fields=[
                ("id", models.BigAutoField(primary_key=True, serialize=False)),
                ("product_id", models.PositiveIntegerField()),
                ("variation_id", models.PositiveIntegerField(default=0)),
                ("name", models.CharField(blank=True, default="", max_length=255)),
                ("quantity", models.PositiveIntegerField(default=0)),
                ("subtotal", _money()),
                ("total", _money()),
                ("tax", _money()),
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
                    "master_order",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="items",
                        to="master_orders.masterorder",
                    ),
                ),
            ],
            options={
                "db_table": "moa_master_order_items",
                "ordering": ["master_order_id", "position", "id"],
                "constraints": [
                    models.UniqueConstraint(
                        fields=["master_order", "product_id", "variation_id"],
                        name="uq_master_item_key",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="MasterOrderRegistry",
            fields=[
                ("id", models.BigAutoField(primary_key=True, serialize=False)),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "account",
                    models.OneToOneField(
                        db_column="account_id",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="master_order_registry",
                        to="order_store.account",
                    ),
                ),
                (
                    "master_order",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="registry_entries",
                        to="master_orders.masterorder",
                    ),
                ),
            ],
            options={
                "db_table": "moa_master_order_registry",
                "indexes": [
                    models.Index(fields=["is_active"], name="idx_registry_active"),
                ],
            },
        ),
    ]

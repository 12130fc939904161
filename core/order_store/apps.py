"""
MOA Order Store — App Configuration
=====================================
Accounts, catalog references and individual (member) orders.

This app:
- Persists member orders and their line items
- Publishes member order status changes after commit
- Holds the human-readable notes attached to any order

This app does NOT:
- Group orders (that is engines.master_orders responsibility)
- Lock anything (last write wins)
"""

from django.apps import AppConfig


class OrderStoreConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "core.order_store"
    label = "order_store"
    verbose_name = "MOA Order Store"

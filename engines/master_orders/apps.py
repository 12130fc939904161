"""
MOA Master Orders — App Configuration
=======================================
Groups validated member orders of one account into a single
master order and drives the shared fulfillment state.
"""

from django.apps import AppConfig


class MasterOrdersConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "engines.master_orders"
    label = "master_orders"
    verbose_name = "MOA Master Orders"

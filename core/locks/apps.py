"""
MOA Core Locks — App Configuration
====================================
Named, time-bounded mutual exclusion shared by every worker
process that talks to the same database.
"""

from django.apps import AppConfig


class LocksConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "core.locks"
    label = "locks"
    verbose_name = "MOA Named Locks"

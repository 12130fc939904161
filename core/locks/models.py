"""
MOA Core Locks — Lock Table
=============================
One row per held lock. The primary key on `name` is what makes
acquisition atomic: two INSERTs for the same name cannot both succeed.

A row whose expires_at is in the past belongs to a holder that
died without releasing; the next contender takes it over.
"""

from django.db import models


class NamedLock(models.Model):
    name = models.CharField(
        primary_key=True,
        max_length=191,
        help_text="Lock name, e.g. master_order_account_<account_id>.",
    )
    token = models.CharField(
        max_length=64,
        help_text="Opaque holder token. Only the holder may release.",
    )
    acquired_at = models.DateTimeField()
    expires_at = models.DateTimeField(
        help_text="After this instant the lock may be taken over.",
    )

    class Meta:
        db_table = "moa_named_locks"
        indexes = [
            models.Index(fields=["expires_at"], name="idx_named_lock_expiry"),
        ]

    def __str__(self) -> str:
        return f"{self.name} (until {self.expires_at.isoformat()})"

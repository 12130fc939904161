from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="NamedLock",
            fields=[
                (
                    "name",
                    models.CharField(
                        help_text="Lock name, e.g. master_order_account_<account_id>.",
                        max_length=191,
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "token",
                    models.CharField(
                        help_text="Opaque holder token. Only the holder may release.",
                        max_length=64,
                    ),
                ),
                ("acquired_at", models.DateTimeField()),
                (
                    "expires_at",
                    models.DateTimeField(
                        help_text="After this instant the lock may be taken over.",
                    ),
                ),
            ],
            options={
                "db_table": "moa_named_locks",
                "indexes": [
                    models.Index(fields=["expires_at"], name="idx_named_lock_expiry"),
                ],
            },
        ),
    ]

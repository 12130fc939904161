"""
MOA – Django Settings
======================
Django is the container for the order store and the master order
engine. Everything engine-specific lives in MASTER_ORDERS.

Environment overrides:
    MOA_SECRET_KEY, MOA_DEBUG
    MOA_DB_ENGINE (sqlite | postgresql), MOA_DB_NAME, MOA_DB_USER,
    MOA_DB_PASSWORD, MOA_DB_HOST, MOA_DB_PORT
    MOA_ALLOCATION_LOCK_TIMEOUT, MOA_ALLOCATION_LOCK_TTL,
    MOA_REMOVAL_LOCK_TTL, MOA_TERMINAL_MEMBER_PROPAGATION
    MOA_LOG_LEVEL
"""

import os
from pathlib import Path

# ── Paths ─────────────────────────────────────────────────────
BASE_DIR = Path(__file__).resolve().parent.parent

# ── Security ──────────────────────────────────────────────────
SECRET_KEY = os.environ.get("MOA_SECRET_KEY", "moa-dev-key-replace-before-deployment")

DEBUG = os.environ.get("MOA_DEBUG", "true").strip().lower() in {"1", "true", "yes"}

ALLOWED_HOSTS = ["localhost", "127.0.0.1", "testserver"]

# ── Installed Apps ────────────────────────────────────────────
INSTALLED_APPS = [
    "django.contrib.auth",
    "django.contrib.contenttypes",
    # ── MOA Modules (dependency order) ─────────────────────
    "core.locks",
    "core.order_store",
    "engines.master_orders",
]

# ── Middleware ────────────────────────────────────────────────
MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.middleware.common.CommonMiddleware",
]

# ── URL & WSGI ────────────────────────────────────────────────
ROOT_URLCONF = "config.urls"
WSGI_APPLICATION = "config.wsgi.application"

# ── Database ──────────────────────────────────────────────────
# SQLite for development. Row locks and concurrent allocation
# need PostgreSQL (MOA_DB_ENGINE=postgresql).
if os.environ.get("MOA_DB_ENGINE", "sqlite").strip().lower() == "postgresql":
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.postgresql",
            "NAME": os.environ.get("MOA_DB_NAME", "moa"),
            "USER": os.environ.get("MOA_DB_USER", "moa"),
            "PASSWORD": os.environ.get("MOA_DB_PASSWORD", ""),
            "HOST": os.environ.get("MOA_DB_HOST", "localhost"),
            "PORT": os.environ.get("MOA_DB_PORT", "5432"),
        }
    }
else:
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.sqlite3",
            "NAME": BASE_DIR / "db.sqlite3",
        }
    }

# ── Internationalization ──────────────────────────────────────
LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = True
USE_TZ = True

# ── Default Primary Key ──────────────────────────────────────
DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# ── Master Orders ─────────────────────────────────────────────
MASTER_ORDERS = {
    "ALLOCATION_LOCK_TIMEOUT": float(os.environ.get("MOA_ALLOCATION_LOCK_TIMEOUT", "10")),
    "ALLOCATION_LOCK_TTL": float(os.environ.get("MOA_ALLOCATION_LOCK_TTL", "30")),
    "REMOVAL_LOCK_TTL": float(os.environ.get("MOA_REMOVAL_LOCK_TTL", "30")),
    # "prepared": warehouse members move to prepared on completion.
    # "completed": every live member moves to completed.
    "TERMINAL_MEMBER_PROPAGATION": os.environ.get(
        "MOA_TERMINAL_MEMBER_PROPAGATION", "prepared"
    ),
}

# ── Logging ───────────────────────────────────────────────────
LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "plain": {
            "format": "%(asctime)s %(levelname)s %(name)s: %(message)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "plain",
        },
    },
    "loggers": {
        "moa": {
            "handlers": ["console"],
            "level": os.environ.get("MOA_LOG_LEVEL", "INFO"),
            "propagate": True,
        },
    },
}

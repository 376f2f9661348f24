"""
Salon – Django Settings (Infrastructure Only)
==============================================
Django hosts the relational store (adapters.django_store).
The salon engines do not import Django; only the adapter does.
"""

import os
from pathlib import Path

# ── Paths ─────────────────────────────────────────────────────
BASE_DIR = Path(__file__).resolve().parent.parent

# ── Security ──────────────────────────────────────────────────
SECRET_KEY = os.environ.get("SALON_SECRET_KEY", "salon-dev-key-replace-before-deployment")

DEBUG = os.environ.get("SALON_DEBUG", "1") == "1"

ALLOWED_HOSTS = []

# ── Installed Apps ────────────────────────────────────────────
INSTALLED_APPS = [
    "django.contrib.contenttypes",
    "adapters.django_store",
]

# ── Database ──────────────────────────────────────────────────
# SQLite for development. Production DB configured via environment.
DATABASES = {
    "default": {
        "ENGINE": os.environ.get("SALON_DB_ENGINE", "django.db.backends.sqlite3"),
        "NAME": os.environ.get("SALON_DB_NAME", str(BASE_DIR / "db.sqlite3")),
    }
}

# ── Internationalization ──────────────────────────────────────
LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = True
USE_TZ = True

# ── Default Primary Key ──────────────────────────────────────
DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# ── Logging ───────────────────────────────────────────────────
# Engines log under the "salon" namespace (salon.fulfillment,
# salon.booking, salon.store, ...).
LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "plain": {
            "format": "%(asctime)s %(levelname)s %(name)s %(message)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "plain",
        },
    },
    "loggers": {
        "salon": {
            "handlers": ["console"],
            "level": os.environ.get("SALON_LOG_LEVEL", "INFO"),
        },
    },
}

# ── Salon Rules ───────────────────────────────────────────────
# Admin overrides for core.config.rules.SalonRules.
SALON_RULES = {
    "MAX_QUANTITY": 10,
    "SETTLE_WINDOW_SECONDS": 60,
    "TRANSIENT_RETRIES": 1,
    "COMMISSION_RATES": {"WORKER": "10.00", "MASSEUSE": "50.00"},
}

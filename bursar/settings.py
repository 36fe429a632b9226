# bursar/settings.py

"""
Django settings for the bursar project.

Configuration is read from the environment (and an optional .env file):
- SECRET_KEY, DEBUG, ALLOWED_HOSTS
- DB_NAME / DB_USER / DB_PASSWORD / DB_HOST / DB_PORT for PostgreSQL,
  SQLite otherwise
- TIME_ZONE and LOG_LEVEL
- BURSAR_* ledger settings (currency, number prefixes, promotion policy)
"""

import os
import sys
from pathlib import Path

from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent.parent

# Apps live under apps/ and are imported as top-level modules
sys.path.insert(0, str(BASE_DIR / "apps"))

load_dotenv(BASE_DIR / ".env")


def env_bool(name, default=False):
    val = os.environ.get(name)
    if val is None:
        return default
    return str(val).strip().lower() in ("1", "true", "yes", "on")


SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key")
DEBUG = env_bool("DEBUG", True)
ALLOWED_HOSTS = [
    h.strip()
    for h in os.environ.get("ALLOWED_HOSTS", "*").split(",")
    if h.strip()
]

INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    # local apps
    "utils.apps.UtilsConfig",
    "core.apps.CoreConfig",
    "academics.apps.AcademicsConfig",
    "students.apps.StudentsConfig",
    "discipline.apps.DisciplineConfig",
    "fees.apps.FeesConfig",
    "promotions.apps.PromotionsConfig",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
    # audit trail
    "utils.middleware.AuditContextMiddleware",
]

ROOT_URLCONF = "bursar.urls"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.debug",
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    }
]

WSGI_APPLICATION = "bursar.wsgi.application"

_DB_NAME = os.environ.get("DB_NAME")
if _DB_NAME:
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.postgresql",
            "NAME": _DB_NAME,
            "USER": os.environ.get("DB_USER", ""),
            "PASSWORD": os.environ.get("DB_PASSWORD", ""),
            "HOST": os.environ.get("DB_HOST", "localhost"),
            "PORT": os.environ.get("DB_PORT", "5432"),
        }
    }
else:
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.sqlite3",
            "NAME": str(BASE_DIR / "db.sqlite3"),
        }
    }

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

LANGUAGE_CODE = "en-us"
TIME_ZONE = os.environ.get("TIME_ZONE", "Africa/Nairobi")
USE_I18N = True
USE_TZ = True

STATIC_URL = "static/"
STATIC_ROOT = BASE_DIR / "staticfiles"

# =============================================================================
# LEDGER / PROMOTION SETTINGS
# =============================================================================

BURSAR = {
    "DEFAULT_CURRENCY": os.environ.get("BURSAR_DEFAULT_CURRENCY", "KES"),
    "RECEIPT_PREFIX": os.environ.get("BURSAR_RECEIPT_PREFIX", "RCP"),
    "PAYMENT_REFERENCE_PREFIX": os.environ.get("BURSAR_PAYMENT_PREFIX", "PAY"),
    "CARRY_FORWARD_PREFIX": os.environ.get("BURSAR_CARRY_FORWARD_PREFIX", "CF"),
    # Eligible when at least one criteria set passes unless this is enabled
    "REQUIRE_ALL_CRITERIA_SETS": env_bool("BURSAR_REQUIRE_ALL_CRITERIA_SETS", False),
    "TERMINAL_PROMOTION_IGNORES_FEES": env_bool("BURSAR_TERMINAL_IGNORES_FEES", True),
}

# =============================================================================
# LOGGING
# =============================================================================

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "verbose": {
            "format": "{asctime} {levelname} {name} {message}",
            "style": "{",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "verbose",
        },
    },
    "root": {
        "handlers": ["console"],
        "level": LOG_LEVEL,
    },
    "loggers": {
        "django": {
            "handlers": ["console"],
            "level": "WARNING",
            "propagate": False,
        },
        "financial_audit": {
            "handlers": ["console"],
            "level": "INFO",
            "propagate": False,
        },
    },
}

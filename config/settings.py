"""
Django settings for the energy trading service.

Everything deployment specific comes from the environment. Defaults give a
local SQLite setup suitable for development and the test suite.
"""

import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent


def _env_bool(name, default=False):
    return os.environ.get(name, str(default)).strip().lower() in ("1", "true", "yes", "on")


SECRET_KEY = os.environ.get("DJANGO_SECRET_KEY", "insecure-development-key")
DEBUG = _env_bool("DJANGO_DEBUG", False)
ALLOWED_HOSTS = [h for h in os.environ.get("DJANGO_ALLOWED_HOSTS", "localhost,127.0.0.1,testserver").split(",") if h]

INSTALLED_APPS = [
    "django.contrib.contenttypes",
    "django.contrib.auth",
    "rest_framework",
    "energy_trading.apps.EnergyTradingConfig",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.middleware.common.CommonMiddleware",
]

ROOT_URLCONF = "config.urls"
WSGI_APPLICATION = "config.wsgi.application"

# Every storage call runs under a driver-level timeout. Timeouts surface as
# OperationalError, which the ledger store reports as Unavailable.
DB_TIMEOUT = int(os.environ.get("DB_TIMEOUT", "10"))

if os.environ.get("DB_ENGINE", "sqlite") == "postgresql":
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.postgresql",
            "NAME": os.environ.get("DB_NAME", "energy_trading"),
            "USER": os.environ.get("DB_USER", "energy_trading"),
            "PASSWORD": os.environ.get("DB_PASSWORD", ""),
            "HOST": os.environ.get("DB_HOST", "127.0.0.1"),
            "PORT": os.environ.get("DB_PORT", "5432"),
            "OPTIONS": {
                "connect_timeout": DB_TIMEOUT,
                "options": f"-c statement_timeout={DB_TIMEOUT * 1000} -c lock_timeout={DB_TIMEOUT * 1000}",
            },
        }
    }
else:
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.sqlite3",
            "NAME": os.environ.get("DB_NAME", str(BASE_DIR / "db.sqlite3")),
            # SQLite ignores SELECT ... FOR UPDATE; IMMEDIATE takes the write lock
            # when the transaction begins, so settlements still serialize.
            "OPTIONS": {"timeout": DB_TIMEOUT, "transaction_mode": "IMMEDIATE"},
            # A file, not shared-cache memory, so concurrent test threads wait
            # on the busy timeout instead of failing with "table is locked".
            "TEST": {"NAME": os.environ.get("DB_TEST_NAME", str(BASE_DIR / "test_db.sqlite3"))},
        }
    }

CACHES = {
    "default": {
        "BACKEND": os.environ.get(
            "CACHE_BACKEND", "django.core.cache.backends.locmem.LocMemCache"
        ),
        "LOCATION": os.environ.get("CACHE_LOCATION", "energy-trading"),
    }
}

USE_TZ = True
TIME_ZONE = "UTC"

REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": [],
    "DEFAULT_PERMISSION_CLASSES": ["rest_framework.permissions.AllowAny"],
    "UNAUTHENTICATED_USER": None,
    # Number of trusted proxies appending to X-Forwarded-For; 0 keys throttles on REMOTE_ADDR.
    "NUM_PROXIES": int(os.environ.get("NUM_PROXIES", "0")),
}

ENERGY_TRADING = {
    "COUNTER_STORE": os.environ.get(
        "RATE_LIMIT_COUNTER_STORE",
        "energy_trading.application.ratelimit.InMemoryCounterStore",
    ),
    "RATE_LIMITS": {
        "login": {
            "ceiling": int(os.environ.get("LOGIN_RATE_LIMIT", "5")),
            "window_seconds": int(os.environ.get("RATE_LIMIT_WINDOW_SECONDS", "900")),
        },
        "signup": {
            "ceiling": int(os.environ.get("SIGNUP_RATE_LIMIT", "3")),
            "window_seconds": int(os.environ.get("RATE_LIMIT_WINDOW_SECONDS", "900")),
        },
    },
}

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "standard": {
            "format": "%(asctime)s %(levelname)s %(name)s: %(message)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "standard",
        },
    },
    "loggers": {
        "energy_trading": {
            "handlers": ["console"],
            "level": os.environ.get("ENERGY_TRADING_LOG_LEVEL", "INFO"),
            "propagate": False,
        },
    },
    "root": {
        "handlers": ["console"],
        "level": "WARNING",
    },
}

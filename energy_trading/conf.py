"""
App settings.

Projects override any key through the ``ENERGY_TRADING`` dict in their
Django settings; missing keys fall back to DEFAULTS. Nested dicts are merged
one level deep so a project can override a single rate-limit rule.
"""

from django.conf import settings

DEFAULTS = {
    "LEDGER_STORE": "energy_trading.infrastructure.django_store.DjangoLedgerStore",
    "COUNTER_STORE": "energy_trading.application.ratelimit.InMemoryCounterStore",
    "COUNTER_STORE_OPTIONS": {},
    "RATE_LIMITS": {
        "login": {"ceiling": 5, "window_seconds": 15 * 60},
        "signup": {"ceiling": 3, "window_seconds": 15 * 60},
    },
    "RATE_LIMIT_CLEANUP_THRESHOLD": 10000,
    "SIGNUP_DEFAULT_BALANCES": {
        "energy": "0",
        "currency": "1000",
        "available_energy": "0",
        "daily_consumption": "0",
    },
}


def get_setting(name):
    overrides = getattr(settings, "ENERGY_TRADING", {})
    default = DEFAULTS[name]
    value = overrides.get(name, default)
    if isinstance(default, dict) and isinstance(value, dict) and value is not default:
        merged = dict(default)
        merged.update(value)
        return merged
    return value

"""
Service wiring.

The ledger store and the counter store are resolved once per process from
settings, so views and throttles never branch on which backend is active.
Tests call reset_services() after changing settings or to drop counters.
"""

import functools

from django.utils.module_loading import import_string

from energy_trading.application.factories import FactoryAccounts
from energy_trading.application.ledger import BalanceLedger
from energy_trading.application.offers import OfferBoard
from energy_trading.application.ratelimit import (
    InMemoryCounterStore,
    RateLimiter,
    RateLimitRule,
)
from energy_trading.application.trades import TradeService
from energy_trading.conf import get_setting

DEFAULT_WINDOW_SECONDS = 15 * 60


@functools.lru_cache(maxsize=None)
def get_ledger_store():
    return import_string(get_setting("LEDGER_STORE"))()


@functools.lru_cache(maxsize=None)
def get_ledger():
    return BalanceLedger(get_ledger_store())


@functools.lru_cache(maxsize=None)
def get_trade_service():
    return TradeService(get_ledger_store(), get_ledger())


@functools.lru_cache(maxsize=None)
def get_offer_board():
    return OfferBoard(get_ledger_store())


@functools.lru_cache(maxsize=None)
def get_factory_accounts():
    return FactoryAccounts(get_ledger_store())


@functools.lru_cache(maxsize=None)
def get_rate_limiter():
    store_class = import_string(get_setting("COUNTER_STORE"))
    options = dict(get_setting("COUNTER_STORE_OPTIONS"))
    if issubclass(store_class, InMemoryCounterStore):
        options.setdefault("cleanup_threshold", get_setting("RATE_LIMIT_CLEANUP_THRESHOLD"))

    rules = {
        endpoint: RateLimitRule(
            ceiling=int(rule["ceiling"]),
            window_seconds=float(rule.get("window_seconds", DEFAULT_WINDOW_SECONDS)),
        )
        for endpoint, rule in get_setting("RATE_LIMITS").items()
    }
    return RateLimiter(rules, store=store_class(**options))


def reset_services():
    for factory in (
        get_ledger_store,
        get_ledger,
        get_trade_service,
        get_factory_accounts,
        get_offer_board,
        get_rate_limiter,
    ):
        factory.cache_clear()

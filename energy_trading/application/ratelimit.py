"""
Application Use Case — Authentication Rate Limiter

Fixed window counter keyed by (endpoint, client). A window opens on the first
attempt; attempts inside it accumulate; once the count passes the endpoint's
ceiling further attempts are throttled until the window has elapsed. The
first attempt after that opens a fresh window with count 1.

This is an approximation. A burst straddling a window boundary can exceed
the nominal rate; the limiter deters abuse, it does not account quotas.

Counters live behind the CounterStore interface:

- InMemoryCounterStore keeps them in this process. Behind a load balancer
  every instance enforces its own limit.
- CacheCounterStore keeps them in the Django cache. With a shared cache
  (Redis, Memcached) the limit becomes global across instances.
"""

import abc
import logging
import math
import threading
import time
from dataclasses import dataclass

from energy_trading.domain.exceptions import Throttled

logger = logging.getLogger(__name__)


@dataclass
class RateLimitEntry:
    count: int
    window_start: float
    window_seconds: float

    def expired(self, now):
        return now - self.window_start >= self.window_seconds


@dataclass(frozen=True)
class RateLimitRule:
    ceiling: int
    window_seconds: float


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    count: int = 0
    retry_after: int = 0


class CounterStore(abc.ABC):

    @abc.abstractmethod
    def hit(self, key, now, window_seconds):
        """Records one attempt and returns the RateLimitEntry it landed in."""

    @abc.abstractmethod
    def clear(self):
        pass


class InMemoryCounterStore(CounterStore):

    def __init__(self, cleanup_threshold=10000):
        self.cleanup_threshold = cleanup_threshold
        self._entries = {}
        self._lock = threading.Lock()

    def __len__(self):
        return len(self._entries)

    def hit(self, key, now, window_seconds):
        with self._lock:
            if len(self._entries) > self.cleanup_threshold:
                self._purge(now)

            entry = self._entries.get(key)
            if entry is None or entry.expired(now):
                entry = RateLimitEntry(count=0, window_start=now, window_seconds=window_seconds)
                self._entries[key] = entry
            entry.count += 1
            return RateLimitEntry(entry.count, entry.window_start, entry.window_seconds)

    def clear(self):
        with self._lock:
            self._entries.clear()

    def _purge(self, now):
        expired = [key for key, entry in self._entries.items() if entry.expired(now)]
        for key in expired:
            del self._entries[key]
        logger.debug("Purged %d expired rate-limit entries", len(expired))


class CacheCounterStore(CounterStore):
    """
    Counters in a Django cache alias.

    The window start lives under one key and the count under a second key
    derived from that start, so a window reset never has to zero a counter
    another instance may be incrementing. Keys expire with their window.

    Every key also carries a generation number. clear() bumps the generation,
    which orphans the old counters and leaves the rest of the cache alone.
    """

    def __init__(self, alias="default", prefix="energy-trading:ratelimit"):
        self.alias = alias
        self.prefix = prefix
        self.generation_key = f"{prefix}:generation"

    @property
    def cache(self):
        from django.core.cache import caches

        return caches[self.alias]

    def hit(self, key, now, window_seconds):
        cache = self.cache
        timeout = math.ceil(window_seconds) + 1
        start_key = f"{self._namespace(cache)}:{key[0]}:{key[1]}:start"

        window_start = cache.get(start_key)
        if window_start is None or now - window_start >= window_seconds:
            # add() loses to a concurrent writer only while the key is absent.
            if window_start is None and cache.add(start_key, now, timeout):
                window_start = now
            elif window_start is not None:
                cache.set(start_key, now, timeout)
                window_start = now
            else:
                window_start = cache.get(start_key, now)

        count_key = f"{start_key}:{window_start!r}"
        cache.add(count_key, 0, timeout)
        try:
            count = cache.incr(count_key)
        except ValueError:
            # Evicted between add() and incr().
            cache.set(count_key, 1, timeout)
            count = 1
        return RateLimitEntry(count=count, window_start=window_start, window_seconds=window_seconds)

    def _namespace(self, cache):
        generation = cache.get(self.generation_key)
        if generation is None:
            cache.add(self.generation_key, 1, None)
            generation = cache.get(self.generation_key, 1)
        return f"{self.prefix}:{generation}"

    def clear(self):
        cache = self.cache
        try:
            cache.incr(self.generation_key)
        except ValueError:
            cache.set(self.generation_key, 2, None)


class RateLimiter:

    def __init__(self, rules, store=None, clock=time.time):
        self.rules = dict(rules)
        self.store = store if store is not None else InMemoryCounterStore()
        self.clock = clock

    def check(self, endpoint, client):
        rule = self.rules.get(endpoint)
        if rule is None:
            return RateLimitDecision(allowed=True)

        now = self.clock()
        entry = self.store.hit((endpoint, client), now, rule.window_seconds)
        if entry.count <= rule.ceiling:
            return RateLimitDecision(allowed=True, count=entry.count)

        remaining = entry.window_start + rule.window_seconds - now
        retry_after = max(1, math.ceil(remaining))
        logger.warning(
            "Throttled %s attempt: client=%s count=%s retry_after=%ss",
            endpoint, client, entry.count, retry_after,
        )
        return RateLimitDecision(allowed=False, count=entry.count, retry_after=retry_after)

    def enforce(self, endpoint, client):
        decision = self.check(endpoint, client)
        if not decision.allowed:
            raise Throttled(endpoint, decision.retry_after)
        return decision

    def reset(self):
        self.store.clear()

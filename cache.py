"""
AgentDesk In-Memory Cache
=========================
Process-local TTL cache for market-data proxies: CoinGecko market pages
and Hyperliquid pair metadata.  Nothing here is shared between workers.

    from cache import market_cache

    rows = market_cache.get("coingecko:markets:usd:20:1")
    if rows is None:
        rows = await fetch()
        market_cache.set("coingecko:markets:usd:20:1", rows, ttl=60)

    class HyperliquidService:
        @market_cache.cached(ttl=300, key_prefix="hyperliquid:pairs")
        async def get_trading_pairs(self): ...
"""

from __future__ import annotations

import functools
import logging
import threading
import time
from collections import OrderedDict
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple

logger = logging.getLogger(__name__)

# key -> (expires_at on the monotonic clock, value)
_Slot = Tuple[float, Any]


class InMemoryCache:
    """
    TTL cache guarded by one lock.  Keys are kept in insertion order, so
    when the store is full the expired keys go first and then the oldest.
    """

    def __init__(self, max_size: int = 1000):
        self.max_size = max_size
        self._slots: "OrderedDict[str, _Slot]" = OrderedDict()
        self._lock = threading.RLock()
        self._hits = 0
        self._misses = 0

    # ── basic operations ─────────────────────────────────────────

    def get(self, key: str) -> Optional[Any]:
        now = time.monotonic()
        with self._lock:
            slot = self._slots.get(key)
            if slot is not None and slot[0] < now:
                del self._slots[key]
                slot = None
            if slot is None:
                self._misses += 1
                return None
            self._hits += 1
            return slot[1]

    def set(self, key: str, value: Any, ttl: float = 60) -> None:
        with self._lock:
            self._slots.pop(key, None)
            if len(self._slots) >= self.max_size:
                self._evict()
            self._slots[key] = (time.monotonic() + ttl, value)

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._slots.pop(key, None) is not None

    def invalidate_prefix(self, prefix: str) -> int:
        with self._lock:
            keys = [k for k in self._slots if k.startswith(prefix)]
            for k in keys:
                del self._slots[k]
        if keys:
            logger.debug("Invalidated %d cache keys under %s", len(keys), prefix)
        return len(keys)

    def clear(self) -> None:
        with self._lock:
            self._slots.clear()
            self._hits = self._misses = 0

    @property
    def stats(self) -> Dict[str, Any]:
        with self._lock:
            lookups = self._hits + self._misses
            return {
                "size": len(self._slots),
                "max_size": self.max_size,
                "hits": self._hits,
                "misses": self._misses,
                "hit_rate": round(100 * self._hits / lookups, 1) if lookups else 0.0,
            }

    def _evict(self) -> None:
        now = time.monotonic()
        for key in [k for k, (expires, _) in self._slots.items() if expires < now]:
            del self._slots[key]
        while len(self._slots) >= self.max_size:
            key, _ = self._slots.popitem(last=False)
            logger.debug("Cache full, evicted %s", key)

    # ── decorator ────────────────────────────────────────────────

    @staticmethod
    def make_key(prefix: str, args: tuple = (), kwargs: Optional[Dict[str, Any]] = None) -> str:
        named = [f"{k}={v}" for k, v in sorted((kwargs or {}).items())]
        return ":".join([prefix, *map(str, args), *named])

    def cached(self, ttl: float = 60, key_prefix: str = ""):
        """
        Memoise an async *method*.  ``self`` is left out of the key, so all
        instances share entries.  Falsy results are returned but not stored,
        which keeps an upstream outage from being cached.
        """
        def decorator(method: Callable[..., Awaitable[Any]]):
            prefix = key_prefix or method.__qualname__

            @functools.wraps(method)
            async def wrapper(owner, *args, **kwargs):
                key = self.make_key(prefix, args, kwargs)
                value = self.get(key)
                if value is None:
                    value = await method(owner, *args, **kwargs)
                    if value:
                        self.set(key, value, ttl=ttl)
                return value
            return wrapper
        return decorator


market_cache = InMemoryCache(max_size=500)

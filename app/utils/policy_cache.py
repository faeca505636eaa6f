"""In-memory registry of per-visitor frequency policies.

A policy reads its persisted state once, on construction. The registry keeps
recently used policies alive so consecutive requests from one visitor share
an in-memory state, and drops idle ones after a TTL. Dropping a policy loses
nothing: every mutation has already been written to the store.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable

from app.services.ad_frequency import AdFrequencyPolicy

logger = logging.getLogger(__name__)


PolicyFactory = Callable[[str], AdFrequencyPolicy]


@dataclass
class CacheItem:
    """Cached policy with expiration metadata."""

    policy: AdFrequencyPolicy
    expires_at: float


class PolicyRegistry:
    """Thread-safe TTL cache of policies with LRU eviction.

    Attributes:
        ttl_seconds: Idle time after which a policy is rebuilt from storage.
        max_entries: Maximum number of cached policies (None for unlimited).
    """

    def __init__(
        self,
        factory: PolicyFactory,
        *,
        ttl_seconds: int = 1800,
        max_entries: int | None = 10000,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._factory = factory
        self._ttl = ttl_seconds
        self._max_entries = max_entries
        self._clock = clock
        self._store: OrderedDict[str, CacheItem] = OrderedDict()
        self._lock = threading.RLock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return (
            f"PolicyRegistry(ttl_seconds={self._ttl}, max_entries={self._max_entries}, "
            f"size={len(self._store)}, hits={self._hits}, misses={self._misses}, "
            f"evictions={self._evictions})"
        )

    @property
    def lock(self) -> threading.RLock:
        """Lock serializing check-then-record sequences on cached policies."""
        return self._lock

    def get_or_create(self, visitor_key: str) -> AdFrequencyPolicy:
        """Return the cached policy for visitor_key, building it on a miss.

        Every access slides the entry's expiry forward.
        """

        with self._lock:
            now = self._clock()
            item = self._store.get(visitor_key)

            if item is not None and item.expires_at > now:
                self._hits += 1
                item.expires_at = now + self._ttl
                self._store.move_to_end(visitor_key)
                return item.policy

            if item is not None:
                self._evict_single(visitor_key)
                reason = "expired"
            else:
                reason = "not_found"

            self._misses += 1
            logger.debug("policy_cache.miss", extra={"reason": reason})

            policy = self._factory(visitor_key)
            self._evict_expired_locked(now)
            self._store[visitor_key] = CacheItem(policy=policy, expires_at=now + self._ttl)
            self._evict_if_over_capacity_locked()
            return policy

    def clear(self) -> None:
        """Drop all cached policies and reset counters."""

        with self._lock:
            self._store.clear()
            self._hits = 0
            self._misses = 0
            self._evictions = 0

    def stats(self) -> dict[str, int | float | None]:
        with self._lock:
            return {
                "ttl_seconds": self._ttl,
                "max_entries": self._max_entries,
                "entries": len(self._store),
                "hits": self._hits,
                "misses": self._misses,
                "evictions": self._evictions,
            }

    def _evict_single(self, key: str) -> None:
        if self._store.pop(key, None) is not None:
            self._evictions += 1

    def _evict_expired_locked(self, now: float) -> None:
        expired_keys = [k for k, item in self._store.items() if item.expires_at <= now]
        for key in expired_keys:
            self._evict_single(key)

    def _evict_if_over_capacity_locked(self) -> None:
        if self._max_entries is None:
            return

        while len(self._store) > self._max_entries:
            # popitem(last=False) removes the least recently used entry
            self._store.popitem(last=False)
            self._evictions += 1

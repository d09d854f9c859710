"""In-memory TTL store for per-shop order API tokens.

Thread-safe with LRU eviction; easy to swap for Redis or a database while
keeping the same interface. Token values are never logged.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable

logger = logging.getLogger(__name__)


@dataclass
class TokenItem:
    """Stored token with expiration metadata."""

    token: str
    saved_at: float
    expires_at: float | None


class TokenStore:
    """Thread-safe, in-memory shop -> token map with TTL and LRU eviction.

    Attributes:
        ttl_seconds: Time-to-live applied to all entries (None keeps forever).
        max_entries: Maximum number of stored shops (None for unlimited).
    """

    def __init__(
        self,
        ttl_seconds: int | None = 86400,
        max_entries: int | None = 10000,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._ttl = ttl_seconds
        self._max_entries = max_entries
        self._clock = clock
        self._store: OrderedDict[str, TokenItem] = OrderedDict()
        self._lock = threading.RLock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return (
            f"TokenStore(ttl_seconds={self._ttl}, max_entries={self._max_entries}, "
            f"size={len(self._store)}, evictions={self._evictions})"
        )

    def get(self, shop: str) -> str | None:
        """Return the token for a shop if present and not expired."""

        with self._lock:
            item = self._store.get(shop)
            if item is None:
                self._misses += 1
                logger.debug("token_store.miss", extra={"shop": shop, "reason": "not_found"})
                return None

            if self._is_expired(item):
                self._evict_single(shop)
                self._misses += 1
                logger.debug("token_store.miss", extra={"shop": shop, "reason": "expired"})
                return None

            self._hits += 1
            self._store.move_to_end(shop)
            return item.token

    def save(self, shop: str, token: str) -> None:
        """Store (or replace) a shop's token, evicting as needed."""

        with self._lock:
            self._evict_expired_locked()
            now = self._clock()
            self._store[shop] = TokenItem(
                token=token,
                saved_at=now,
                expires_at=now + self._ttl if self._ttl is not None else None,
            )
            self._store.move_to_end(shop)
            self._evict_if_over_capacity_locked()

            logger.info(
                "token_store.saved",
                extra={"shop": shop, "token_length": len(token), "size": len(self._store)},
            )

    def delete(self, shop: str) -> bool:
        """Remove a shop's token. Returns True if one was stored."""

        with self._lock:
            removed = self._store.pop(shop, None) is not None
        if removed:
            logger.info("token_store.deleted", extra={"shop": shop})
        return removed

    def clear(self) -> None:
        """Remove all tokens and reset counters."""

        with self._lock:
            self._store.clear()
            self._hits = 0
            self._misses = 0
            self._evictions = 0

    def stats(self) -> dict[str, int | None]:
        """Return lightweight store metrics without exposing tokens."""

        with self._lock:
            return {
                "ttl_seconds": self._ttl,
                "max_entries": self._max_entries,
                "entries": len(self._store),
                "hits": self._hits,
                "misses": self._misses,
                "evictions": self._evictions,
            }

    def _evict_single(self, shop: str) -> None:
        if shop in self._store:
            self._store.pop(shop, None)
            self._evictions += 1

    def _evict_expired_locked(self) -> None:
        expired = [shop for shop, item in self._store.items() if self._is_expired(item)]
        for shop in expired:
            self._evict_single(shop)

    def _evict_if_over_capacity_locked(self) -> None:
        if self._max_entries is None:
            return

        while len(self._store) > self._max_entries:
            # popitem(last=False) removes the least recently used entry
            self._store.popitem(last=False)
            self._evictions += 1

    def _is_expired(self, item: TokenItem) -> bool:
        return item.expires_at is not None and self._clock() >= item.expires_at

"""In-memory USD price cache with lazy time-based expiry."""
from __future__ import annotations

import time
from typing import Callable

from ..config import PRICE_CACHE_TTL_MS
from ..models import PriceEntry


def _now_ms() -> int:
    return int(time.time() * 1000)


class PriceCache:
    """Token price cache keyed by lowercase address.

    Expired entries are never purged in the background; ``lookup`` simply
    treats them as absent until they are overwritten or the cache is cleared.
    """

    def __init__(
        self,
        ttl_ms: int = PRICE_CACHE_TTL_MS,
        clock: Callable[[], int] = _now_ms,
    ) -> None:
        self.ttl_ms = ttl_ms
        self._clock = clock
        self._entries: dict[str, PriceEntry] = {}

    def now(self) -> int:
        """Current time in milliseconds according to the cache's clock."""
        return self._clock()

    def lookup(self, token_address: str) -> PriceEntry | None:
        entry = self._entries.get(token_address.lower())
        if entry is None:
            return None
        if self._clock() - entry.fetched_at_ms > self.ttl_ms:
            return None
        return entry

    def store(self, token_address: str, entry: PriceEntry) -> None:
        self._entries[token_address.lower()] = entry

    def clear(self) -> None:
        self._entries.clear()

    def size(self) -> int:
        return len(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

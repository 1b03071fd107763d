"""Unit tests for the TTL price cache."""
from __future__ import annotations

import pytest

from lp_aggregator.models import PriceEntry
from lp_aggregator.oracles.price_cache import PriceCache


class FakeClock:
    def __init__(self, now_ms: int = 1_000_000) -> None:
        self.now_ms = now_ms

    def __call__(self) -> int:
        return self.now_ms


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def cache(clock: FakeClock) -> PriceCache:
    return PriceCache(ttl_ms=60_000, clock=clock)


def _entry(address: str, price: float, fetched_at: int) -> PriceEntry:
    return PriceEntry(
        token_address=address.lower(), symbol="TKN", price_usd=price, fetched_at_ms=fetched_at
    )


class TestLookup:
    def test_missing_key_returns_none(self, cache: PriceCache) -> None:
        assert cache.lookup("0xabc") is None

    def test_fresh_entry_returned(self, cache: PriceCache, clock: FakeClock) -> None:
        cache.store("0xabc", _entry("0xabc", 2.5, clock.now_ms))
        entry = cache.lookup("0xabc")
        assert entry is not None
        assert entry.price_usd == 2.5

    def test_keys_are_case_insensitive(self, cache: PriceCache, clock: FakeClock) -> None:
        cache.store("0xABCdef", _entry("0xabcdef", 1.0, clock.now_ms))
        assert cache.lookup("0xabcDEF") is not None
        assert cache.size() == 1

    def test_entry_at_exact_ttl_is_still_valid(
        self, cache: PriceCache, clock: FakeClock
    ) -> None:
        cache.store("0xabc", _entry("0xabc", 1.0, clock.now_ms))
        clock.now_ms += 60_000
        assert cache.lookup("0xabc") is not None

    def test_expired_entry_treated_as_absent(
        self, cache: PriceCache, clock: FakeClock
    ) -> None:
        cache.store("0xabc", _entry("0xabc", 1.0, clock.now_ms))
        clock.now_ms += 60_001
        assert cache.lookup("0xabc") is None

    def test_expired_entry_not_purged(self, cache: PriceCache, clock: FakeClock) -> None:
        cache.store("0xabc", _entry("0xabc", 1.0, clock.now_ms))
        clock.now_ms += 120_000
        cache.lookup("0xabc")
        assert cache.size() == 1


class TestStoreAndClear:
    def test_store_overwrites(self, cache: PriceCache, clock: FakeClock) -> None:
        cache.store("0xabc", _entry("0xabc", 1.0, clock.now_ms))
        cache.store("0xabc", _entry("0xabc", 2.0, clock.now_ms))
        assert cache.lookup("0xabc").price_usd == 2.0
        assert len(cache) == 1

    def test_overwrite_refreshes_expired_entry(
        self, cache: PriceCache, clock: FakeClock
    ) -> None:
        cache.store("0xabc", _entry("0xabc", 1.0, clock.now_ms))
        clock.now_ms += 90_000
        cache.store("0xabc", _entry("0xabc", 1.1, clock.now_ms))
        assert cache.lookup("0xabc").price_usd == 1.1

    def test_clear(self, cache: PriceCache, clock: FakeClock) -> None:
        cache.store("0xa", _entry("0xa", 1.0, clock.now_ms))
        cache.store("0xb", _entry("0xb", 1.0, clock.now_ms))
        cache.clear()
        assert cache.size() == 0
        assert cache.lookup("0xa") is None

    def test_now_uses_injected_clock(self, cache: PriceCache, clock: FakeClock) -> None:
        assert cache.now() == clock.now_ms

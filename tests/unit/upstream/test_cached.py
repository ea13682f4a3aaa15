"""Tests for the cache-aside upstream wrapper."""

import asyncio
from datetime import timedelta

import httpx
import pytest

from beacon.cache.store import DatabaseCacheStore
from beacon.upstream.base import UpstreamError
from beacon.upstream.cached import CachedUpstream
from beacon.upstream.schemas import Coordinates

TTL = timedelta(hours=24)
PARIS = Coordinates(lat=48.8566, lng=2.3522, service="nominatim")


class CountingProvider:
    """Provider double recording how often it was called."""

    def __init__(self, result: Coordinates | None = PARIS, error: Exception | None = None):
        self.result = result
        self.error = error
        self.calls = 0
        self.gate: asyncio.Event | None = None

    async def __call__(self) -> Coordinates | None:
        self.calls += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return self.result


def no_fallback() -> None:
    return None


@pytest.fixture
def cached(cache_store: DatabaseCacheStore) -> CachedUpstream:
    return CachedUpstream(cache_store, timeout=1.0)


class TestCachedUpstream:
    """Test hits, misses and fallbacks."""

    async def test_miss_calls_provider_and_caches(self, cached: CachedUpstream) -> None:
        """Second fetch within the TTL is served from cache."""
        provider = CountingProvider()

        first = await cached.fetch("beacon:geocode:paris", Coordinates, TTL, provider, no_fallback)
        second = await cached.fetch("beacon:geocode:paris", Coordinates, TTL, provider, no_fallback)

        assert first == PARIS
        assert second == PARIS
        assert provider.calls == 1

    async def test_expired_entry_calls_provider_again(
        self, cached: CachedUpstream, clock
    ) -> None:
        """After the TTL the provider is asked again."""
        provider = CountingProvider()
        await cached.fetch("k", Coordinates, timedelta(minutes=5), provider, no_fallback)

        clock.advance(minutes=6)
        await cached.fetch("k", Coordinates, timedelta(minutes=5), provider, no_fallback)

        assert provider.calls == 2

    @pytest.mark.parametrize(
        "error",
        [
            UpstreamError("nominatim", "boom"),
            httpx.ConnectError("unreachable"),
        ],
    )
    async def test_failure_returns_fallback_uncached(
        self, cached: CachedUpstream, cache_store: DatabaseCacheStore, error: Exception
    ) -> None:
        """Provider errors never surface and the fallback is not stored."""
        fallback = Coordinates(lat=0, lng=0, service="fallback")
        provider = CountingProvider(error=error)

        result = await cached.fetch("k", Coordinates, TTL, provider, lambda: fallback)

        assert result == fallback
        assert await cache_store.get("k") is None

    async def test_timeout_returns_fallback(self, cache_store: DatabaseCacheStore) -> None:
        """A provider slower than the timeout yields the fallback."""
        cached = CachedUpstream(cache_store, timeout=0.01)
        provider = CountingProvider()
        provider.gate = asyncio.Event()

        result = await cached.fetch("k", Coordinates, TTL, provider, no_fallback)

        assert result is None
        assert await cache_store.get("k") is None

    async def test_none_result_is_not_cached(self, cached: CachedUpstream) -> None:
        """A provider miss is asked again on the next fetch."""
        provider = CountingProvider(result=None)

        assert await cached.fetch("k", Coordinates, TTL, provider, no_fallback) is None
        assert await cached.fetch("k", Coordinates, TTL, provider, no_fallback) is None
        assert provider.calls == 2

    async def test_undecodable_entry_is_a_miss(
        self, cached: CachedUpstream, cache_store: DatabaseCacheStore
    ) -> None:
        """A corrupt entry is replaced by a fresh provider result."""
        await cache_store.set("k", b'{"unexpected": true}', TTL)
        provider = CountingProvider()

        assert await cached.fetch("k", Coordinates, TTL, provider, no_fallback) == PARIS
        assert provider.calls == 1
        assert await cache_store.get("k") is not None

    async def test_concurrent_misses_share_one_call(self, cached: CachedUpstream) -> None:
        """Simultaneous misses on a key produce one provider call."""
        provider = CountingProvider()
        provider.gate = asyncio.Event()

        tasks = [
            asyncio.create_task(cached.fetch("k", Coordinates, TTL, provider, no_fallback))
            for _ in range(5)
        ]
        for _ in range(50):
            if provider.calls:
                break
            await asyncio.sleep(0.01)
        await asyncio.sleep(0.2)
        provider.gate.set()

        results = await asyncio.gather(*tasks)
        assert results == [PARIS] * 5
        assert provider.calls == 1
        assert cached._inflight == {}

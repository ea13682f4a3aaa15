"""Forward geocoding: location name to coordinates.

Providers are tried in order (Google Maps when an API key is configured,
then OpenStreetMap Nominatim). Nominatim's usage policy allows one request
per second, so its calls are spaced by ``RequestSpacer``.
"""

from __future__ import annotations

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from datetime import timedelta
from typing import Any

import httpx

from beacon.cache.keys import CacheKeys
from beacon.upstream.base import UpstreamError
from beacon.upstream.cached import CachedUpstream
from beacon.upstream.schemas import Coordinates

logger = logging.getLogger(__name__)


class RequestSpacer:
    """Serializes callers so consecutive requests start ``min_interval`` apart."""

    def __init__(
        self,
        min_interval: float = 1.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.min_interval = min_interval
        self._clock = clock
        self._sleep = sleep
        self._lock = asyncio.Lock()
        self._last: float | None = None

    async def wait(self) -> None:
        async with self._lock:
            if self._last is not None:
                delay = self._last + self.min_interval - self._clock()
                if delay > 0:
                    await self._sleep(delay)
            self._last = self._clock()


class GeocodingProvider(ABC):
    """Forward geocoding provider.

    Returns None when the provider has no match; raises ``UpstreamError``
    or ``httpx.HTTPError`` when the call itself failed.
    """

    name: str

    @abstractmethod
    async def geocode(self, location_name: str) -> Coordinates | None:
        raise NotImplementedError


class GoogleMapsProvider(GeocodingProvider):
    BASE_URL = "https://maps.googleapis.com/maps/api/geocode/json"

    name = "google_maps"

    def __init__(self, http: httpx.AsyncClient, api_key: str):
        self.http = http
        self.api_key = api_key

    async def geocode(self, location_name: str) -> Coordinates | None:
        response = await self.http.get(
            self.BASE_URL, params={"address": location_name, "key": self.api_key}
        )
        response.raise_for_status()
        try:
            data: Any = response.json()
        except ValueError as e:
            raise UpstreamError(self.name, "response is not JSON") from e
        if not isinstance(data, dict):
            raise UpstreamError(self.name, "unexpected response shape")

        status = data.get("status")
        if status == "ZERO_RESULTS":
            return None
        if status != "OK" or not data.get("results"):
            raise UpstreamError(self.name, f"geocode status {status}")

        try:
            result = data["results"][0]
            location = result["geometry"]["location"]
            return Coordinates(
                lat=float(location["lat"]),
                lng=float(location["lng"]),
                formatted_address=result.get("formatted_address"),
                service=self.name,
            )
        except (KeyError, IndexError, TypeError, ValueError) as e:
            raise UpstreamError(self.name, "unexpected response shape") from e


class NominatimProvider(GeocodingProvider):
    """OpenStreetMap Nominatim search.

    - No API key required.
    - Includes a User-Agent header as required by Nominatim usage policy.
    """

    BASE_URL = "https://nominatim.openstreetmap.org/search"

    name = "nominatim"

    def __init__(
        self,
        http: httpx.AsyncClient,
        user_agent: str = "DisasterResponsePlatform/1.0",
        spacer: RequestSpacer | None = None,
    ):
        self.http = http
        self.user_agent = user_agent
        self.spacer = spacer or RequestSpacer()

    async def geocode(self, location_name: str) -> Coordinates | None:
        await self.spacer.wait()
        response = await self.http.get(
            self.BASE_URL,
            params={"q": location_name, "format": "json", "limit": 1},
            headers={"User-Agent": self.user_agent},
        )
        response.raise_for_status()
        try:
            data: Any = response.json()
        except ValueError as e:
            raise UpstreamError(self.name, "response is not JSON") from e
        # Nominatim reports failures such as rate limiting as {"error": ...}
        if not isinstance(data, list):
            raise UpstreamError(self.name, "unexpected response shape")
        if not data:
            return None

        try:
            result = data[0]
            return Coordinates(
                lat=float(result["lat"]),
                lng=float(result["lon"]),
                formatted_address=result.get("display_name"),
                service=self.name,
            )
        except (KeyError, TypeError, ValueError) as e:
            raise UpstreamError(self.name, "unexpected response shape") from e


class GeocodingService:
    """Cached geocoding over an ordered list of providers."""

    def __init__(
        self,
        cached: CachedUpstream,
        providers: list[GeocodingProvider],
        ttl: timedelta = timedelta(hours=24),
    ):
        self.cached = cached
        self.providers = providers
        self.ttl = ttl

    async def geocode(self, location_name: str | None) -> Coordinates | None:
        """Resolve a location name to coordinates, or None if nothing matches.

        A miss is not cached, so a later request asks the providers again.
        """
        if not location_name or not location_name.strip():
            return None

        return await self.cached.fetch(
            CacheKeys.geocode(location_name),
            Coordinates,
            self.ttl,
            lambda: self._resolve(location_name),
            lambda: None,
        )

    async def _resolve(self, location_name: str) -> Coordinates | None:
        error: Exception | None = None
        for provider in self.providers:
            try:
                coordinates = await provider.geocode(location_name)
            except (UpstreamError, httpx.HTTPError) as e:
                logger.warning("Geocoding with %s failed: %s", provider.name, e)
                error = e
                continue
            if coordinates is not None:
                logger.info(
                    "Geocoded with %s: %s -> %s, %s",
                    provider.name,
                    location_name,
                    coordinates.lat,
                    coordinates.lng,
                )
                return coordinates

        if error is not None:
            raise error
        return None

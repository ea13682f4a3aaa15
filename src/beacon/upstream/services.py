"""Runtime wiring for upstream providers."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta

import httpx

from beacon.cache.store import CacheStore
from beacon.config import Settings
from beacon.upstream.ai import GeminiClient
from beacon.upstream.cached import CachedUpstream
from beacon.upstream.geocoding import (
    GeocodingProvider,
    GeocodingService,
    GoogleMapsProvider,
    NominatimProvider,
    RequestSpacer,
)
from beacon.upstream.official import OfficialUpdatesService
from beacon.upstream.social import SocialMediaService


@dataclass
class UpstreamServices:
    """Provider clients sharing one HTTP client and one cache wrapper."""

    http: httpx.AsyncClient
    cached: CachedUpstream
    gemini: GeminiClient
    geocoding: GeocodingService
    social: SocialMediaService
    official: OfficialUpdatesService

    async def aclose(self) -> None:
        await self.http.aclose()


def create_upstream_services(
    store: CacheStore,
    settings: Settings,
    http: httpx.AsyncClient | None = None,
) -> UpstreamServices:
    """Build every provider client from settings."""
    http = http or httpx.AsyncClient(timeout=settings.upstream_timeout)
    cached = CachedUpstream(store, timeout=settings.upstream_timeout)

    providers: list[GeocodingProvider] = []
    if settings.google_maps_api_key:
        providers.append(GoogleMapsProvider(http, settings.google_maps_api_key))
    providers.append(
        NominatimProvider(
            http,
            user_agent=settings.nominatim_user_agent,
            spacer=RequestSpacer(settings.nominatim_min_interval),
        )
    )

    return UpstreamServices(
        http=http,
        cached=cached,
        gemini=GeminiClient(
            http,
            cached,
            api_key=settings.gemini_api_key,
            model=settings.gemini_model,
            location_ttl=timedelta(minutes=settings.ttl_location_minutes),
            verify_ttl=timedelta(minutes=settings.ttl_image_verification_minutes),
        ),
        geocoding=GeocodingService(
            cached, providers, ttl=timedelta(minutes=settings.ttl_geocode_minutes)
        ),
        social=SocialMediaService(cached, ttl=timedelta(minutes=settings.ttl_social_media_minutes)),
        official=OfficialUpdatesService(
            cached,
            http,
            urls=settings.official_update_urls,
            ttl=timedelta(minutes=settings.ttl_official_updates_minutes),
            scrape_timeout=settings.scrape_timeout,
            user_agent=settings.nominatim_user_agent,
        ),
    )

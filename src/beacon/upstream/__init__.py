"""Upstream provider clients for Beacon.

Every provider call goes through ``CachedUpstream`` so repeated requests
within the TTL window are served from the expiring cache, and provider
failures degrade to fallback values instead of errors.
"""

from beacon.upstream.ai import GeminiClient
from beacon.upstream.base import UpstreamError
from beacon.upstream.cached import CachedUpstream
from beacon.upstream.geocoding import (
    GeocodingService,
    GoogleMapsProvider,
    NominatimProvider,
    RequestSpacer,
)
from beacon.upstream.official import OfficialUpdatesService
from beacon.upstream.schemas import (
    Coordinates,
    ImageVerification,
    LocationExtraction,
    OfficialFeed,
    OfficialUpdate,
    SocialFeed,
    SocialMediaReport,
)
from beacon.upstream.services import UpstreamServices, create_upstream_services
from beacon.upstream.social import SocialMediaService

__all__ = [
    "CachedUpstream",
    "Coordinates",
    "GeminiClient",
    "GeocodingService",
    "GoogleMapsProvider",
    "ImageVerification",
    "LocationExtraction",
    "NominatimProvider",
    "OfficialFeed",
    "OfficialUpdate",
    "OfficialUpdatesService",
    "RequestSpacer",
    "SocialFeed",
    "SocialMediaReport",
    "SocialMediaService",
    "UpstreamError",
    "UpstreamServices",
    "create_upstream_services",
]

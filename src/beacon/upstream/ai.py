"""Gemini client for location extraction and image verification.

Calls the Generative Language REST API directly through httpx. A missing
API key surfaces as ``UpstreamError`` so callers get the same fallback as
for any other provider failure.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any

import httpx

from beacon.cache.keys import CacheKeys
from beacon.upstream.base import UpstreamError
from beacon.upstream.cached import CachedUpstream
from beacon.upstream.schemas import ImageVerification, LocationExtraction

logger = logging.getLogger(__name__)

GEMINI_URL = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"

LOCATION_PROMPT = """Extract the location name from this disaster description. \
Return only the location name (city, state/country format if available), \
or "Unknown" if no location is found.

Description: "{description}"

Location:"""

VERIFY_PROMPT = """Analyze this image URL for potential signs of manipulation \
or to verify disaster context.
Image URL: {image_url}
Context: {context}

Provide a brief analysis focusing on:
1. Signs of digital manipulation
2. Consistency with disaster context
3. Overall authenticity assessment

Keep response concise and factual."""

LOCATION_CONFIDENCE = 0.8
VERIFY_ERROR_ANALYSIS = "Unable to verify image due to service error"


def _no_location() -> LocationExtraction:
    return LocationExtraction(location=None, confidence=0.0)


def _verification_error() -> ImageVerification:
    return ImageVerification(analysis=VERIFY_ERROR_ANALYSIS, status="error")


class GeminiClient:
    """Location extraction and image verification through Gemini."""

    def __init__(
        self,
        http: httpx.AsyncClient,
        cached: CachedUpstream,
        api_key: str | None,
        model: str = "gemini-1.5-flash",
        location_ttl: timedelta = timedelta(minutes=60),
        verify_ttl: timedelta = timedelta(minutes=60),
    ):
        self.http = http
        self.cached = cached
        self.api_key = api_key
        self.model = model
        self.location_ttl = location_ttl
        self.verify_ttl = verify_ttl

    async def extract_location(self, text: str) -> LocationExtraction:
        """Extract a location name from free text.

        Falls back to ``{location: None, confidence: 0}`` on any provider
        failure; the fallback is not cached.
        """

        async def call() -> LocationExtraction:
            answer = await self._generate(LOCATION_PROMPT.format(description=text))
            location = answer.strip().strip('"').strip()
            if not location or location.lower() == "unknown":
                return _no_location()
            logger.info("Location extracted: %s", location)
            return LocationExtraction(location=location, confidence=LOCATION_CONFIDENCE)

        result = await self.cached.fetch(
            CacheKeys.location_extraction(text),
            LocationExtraction,
            self.location_ttl,
            call,
            _no_location,
        )
        return result if result is not None else _no_location()

    async def verify_image(self, image_url: str, context: str = "") -> ImageVerification:
        """Ask Gemini for an authenticity analysis of an image URL."""

        async def call() -> ImageVerification:
            analysis = await self._generate(
                VERIFY_PROMPT.format(image_url=image_url, context=context)
            )
            return ImageVerification(analysis=analysis.strip(), status="analyzed")

        result = await self.cached.fetch(
            CacheKeys.image_verification(image_url, context),
            ImageVerification,
            self.verify_ttl,
            call,
            _verification_error,
        )
        return result if result is not None else _verification_error()

    async def _generate(self, prompt: str) -> str:
        if not self.api_key:
            raise UpstreamError("gemini", "GEMINI_API_KEY is not configured")

        response = await self.http.post(
            GEMINI_URL.format(model=self.model),
            params={"key": self.api_key},
            json={"contents": [{"parts": [{"text": prompt}]}]},
        )
        response.raise_for_status()

        try:
            data: Any = response.json()
            return str(data["candidates"][0]["content"]["parts"][0]["text"])
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise UpstreamError("gemini", "unexpected response shape") from e

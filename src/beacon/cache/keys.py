"""Cache key schema for Beacon.

Key format: {prefix}:{namespace}:{digest}

Where:
- prefix: "beacon"
- namespace: which upstream call the entry shields ("ai:location",
  "geocode", "social:mock:<disaster_id>", ...)
- digest: full SHA-256 hex of the semantically relevant input

Identical inputs always map to the same key so repeated requests collapse
to one upstream call within the TTL window. Digests are never truncated.
"""

from __future__ import annotations

import hashlib
from collections.abc import Iterable

_SEPARATOR = "\x1f"


def content_digest(*parts: str) -> str:
    """SHA-256 hex digest over the given parts."""
    return hashlib.sha256(_SEPARATOR.join(parts).encode("utf-8")).hexdigest()


def normalize_location_name(name: str) -> str:
    """Collapse whitespace and case so "Paris" and " paris " share a key."""
    return " ".join(name.split()).casefold()


class CacheKeys:
    """Cache key generator following consistent naming convention."""

    PREFIX = "beacon"

    @classmethod
    def location_extraction(cls, text: str) -> str:
        """Key for AI location extraction from free text."""
        return f"{cls.PREFIX}:ai:location:{content_digest(text)}"

    @classmethod
    def image_verification(cls, image_url: str, context: str = "") -> str:
        """Key for AI image verification of a URL within a context."""
        return f"{cls.PREFIX}:ai:verify:{content_digest(image_url, context)}"

    @classmethod
    def geocode(cls, location_name: str) -> str:
        """Key for forward geocoding of a location name."""
        return f"{cls.PREFIX}:geocode:{content_digest(normalize_location_name(location_name))}"

    @classmethod
    def social_media(cls, source: str, disaster_id: str, keywords: Iterable[str]) -> str:
        """Key for a social media pull.

        Keywords act as a set filter, so their order does not matter.
        """
        keyword_digest = content_digest(*sorted(k.lower() for k in keywords))
        return f"{cls.PREFIX}:social:{source}:{disaster_id}:{keyword_digest}"

    @classmethod
    def official_updates(cls, disaster_type: str) -> str:
        """Key for official updates of a disaster type."""
        return f"{cls.PREFIX}:official:{content_digest(disaster_type.lower())}"

    @classmethod
    def namespace_pattern(cls, namespace: str = "") -> str:
        """Glob pattern matching every key in a namespace (all keys by default)."""
        if not namespace:
            return f"{cls.PREFIX}:*"
        return f"{cls.PREFIX}:{namespace}:*"

    @classmethod
    def parse_key(cls, key: str) -> dict[str, str] | None:
        """Split a key into prefix, namespace and digest.

        Returns None if the key doesn't match the expected format.
        """
        parts = key.split(":")
        if len(parts) < 3 or parts[0] != cls.PREFIX:
            return None

        return {
            "prefix": parts[0],
            "namespace": ":".join(parts[1:-1]),
            "digest": parts[-1],
        }

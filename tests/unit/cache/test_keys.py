"""Tests for cache key generation."""

import hashlib

from beacon.cache.keys import CacheKeys, content_digest, normalize_location_name


class TestCacheKeys:
    """Test cache key generation."""

    def test_location_extraction_key(self) -> None:
        """Location key embeds the full SHA-256 of the text."""
        key = CacheKeys.location_extraction("Flooding in Paris")
        digest = hashlib.sha256(b"Flooding in Paris").hexdigest()
        assert key == f"beacon:ai:location:{digest}"

    def test_digest_is_never_truncated(self) -> None:
        """Long inputs sharing a prefix map to different keys."""
        prefix = "x" * 500
        assert CacheKeys.location_extraction(prefix + "a") != CacheKeys.location_extraction(
            prefix + "b"
        )
        assert len(CacheKeys.parse_key(CacheKeys.location_extraction(prefix))["digest"]) == 64

    def test_image_verification_key_includes_context(self) -> None:
        """The same image in different contexts is cached separately."""
        url = "https://example.com/flood.jpg"
        assert CacheKeys.image_verification(url, "flood") != CacheKeys.image_verification(
            url, "fire"
        )

    def test_image_verification_parts_are_separated(self) -> None:
        """Moving characters between URL and context changes the key."""
        assert CacheKeys.image_verification("ab", "c") != CacheKeys.image_verification("a", "bc")

    def test_geocode_key_normalizes_name(self) -> None:
        """Case and surrounding whitespace do not change the geocode key."""
        assert CacheKeys.geocode("Paris") == CacheKeys.geocode("  paris ")
        assert CacheKeys.geocode("New  York") == CacheKeys.geocode("new york")

    def test_social_media_key_ignores_keyword_order(self) -> None:
        """Keywords act as a set."""
        a = CacheKeys.social_media("mock", "d1", ["flood", "shelter"])
        b = CacheKeys.social_media("mock", "d1", ["shelter", "flood"])
        assert a == b

    def test_social_media_key_scoped_by_source_and_disaster(self) -> None:
        """Source and disaster are part of the namespace."""
        key = CacheKeys.social_media("twitter", "d1", [])
        assert key.startswith("beacon:social:twitter:d1:")
        assert key != CacheKeys.social_media("mock", "d1", [])
        assert key != CacheKeys.social_media("twitter", "d2", [])

    def test_official_updates_key(self) -> None:
        """Official updates key is namespaced and case-insensitive."""
        assert CacheKeys.official_updates("Flood") == CacheKeys.official_updates("flood")
        assert CacheKeys.official_updates("flood").startswith("beacon:official:")


class TestKeyHelpers:
    """Test digest and parsing helpers."""

    def test_content_digest_matches_sha256(self) -> None:
        """Single part digest is plain SHA-256."""
        assert content_digest("abc") == hashlib.sha256(b"abc").hexdigest()

    def test_normalize_location_name(self) -> None:
        """Whitespace is collapsed and case folded."""
        assert normalize_location_name("  Lower   Manhattan ") == "lower manhattan"

    def test_parse_key(self) -> None:
        """Keys split into prefix, namespace and digest."""
        parsed = CacheKeys.parse_key(CacheKeys.geocode("Paris"))
        assert parsed is not None
        assert parsed["prefix"] == "beacon"
        assert parsed["namespace"] == "geocode"

    def test_parse_key_rejects_foreign_prefix(self) -> None:
        """Keys from other applications are not parsed."""
        assert CacheKeys.parse_key("other:ns:abc") is None
        assert CacheKeys.parse_key("beacon") is None

    def test_namespace_pattern(self) -> None:
        """Patterns match all keys or one namespace."""
        assert CacheKeys.namespace_pattern() == "beacon:*"
        assert CacheKeys.namespace_pattern("geocode") == "beacon:geocode:*"

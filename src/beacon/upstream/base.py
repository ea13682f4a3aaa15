"""Shared types for upstream provider clients."""

from __future__ import annotations


class UpstreamError(Exception):
    """A provider call failed or returned something unusable.

    Never reaches HTTP clients: ``CachedUpstream`` converts it into the
    caller's fallback value.
    """

    def __init__(self, provider: str, message: str):
        self.provider = provider
        self.message = message
        super().__init__(f"{provider}: {message}")

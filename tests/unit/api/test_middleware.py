"""Tests for correlation and rate limiting middleware."""

from __future__ import annotations

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from beacon.api.middleware import (
    CorrelationMiddleware,
    RateLimitConfig,
    RateLimitMiddleware,
    rate_limit,
)
from beacon.observability.logging import request_id_var


class FakePipeline:
    def __init__(self, redis: FakeRedis):
        self.redis = redis
        self.key = ""

    def zremrangebyscore(self, key: str, low: float, high: float) -> None:
        self.key = key

    def zcard(self, key: str) -> None:
        pass

    def zadd(self, key: str, mapping: dict[str, float]) -> None:
        pass

    def expire(self, key: str, seconds: int) -> None:
        pass

    async def execute(self) -> list[object]:
        if self.redis.fail:
            raise ConnectionError("redis down")
        count = self.redis.hits.get(self.key, 0)
        self.redis.hits[self.key] = count + 1
        return [0, count, 1, True]


class FakeRedis:
    """Counts sliding-window hits per key."""

    def __init__(self) -> None:
        self.hits: dict[str, int] = {}
        self.fail = False

    def pipeline(self) -> FakePipeline:
        return FakePipeline(self)


@pytest.fixture
def redis(monkeypatch: pytest.MonkeyPatch) -> FakeRedis:
    fake = FakeRedis()

    async def get_redis() -> FakeRedis:
        return fake

    monkeypatch.setattr(rate_limit, "get_redis", get_redis)
    return fake


def build_client(config: RateLimitConfig | None = None) -> TestClient:
    app = FastAPI()
    app.add_middleware(CorrelationMiddleware)
    app.add_middleware(RateLimitMiddleware, config=config or RateLimitConfig())

    @app.get("/api/disasters")
    async def disasters() -> dict[str, str]:
        return {"request_id": request_id_var.get()}

    @app.get("/api/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    return TestClient(app)


class TestCorrelationMiddleware:
    """Test request id propagation."""

    def test_generates_request_id(self, redis: FakeRedis) -> None:
        """A request id is generated, echoed and visible to handlers."""
        response = build_client().get("/api/disasters")

        assert response.headers["x-request-id"]
        assert response.headers["x-correlation-id"] == response.headers["x-request-id"]
        assert response.json()["request_id"] == response.headers["x-request-id"]

    def test_passes_through_incoming_ids(self, redis: FakeRedis) -> None:
        """Incoming ids are kept."""
        response = build_client().get(
            "/api/disasters", headers={"x-request-id": "req-1", "x-correlation-id": "corr-1"}
        )

        assert response.headers["x-request-id"] == "req-1"
        assert response.headers["x-correlation-id"] == "corr-1"


class TestRateLimitMiddleware:
    """Test per-IP limits."""

    def test_limit_exceeded_returns_429(self, redis: FakeRedis) -> None:
        """Requests past the limit get the error body."""
        client = build_client(RateLimitConfig(requests_per_window=2))

        assert client.get("/api/disasters").status_code == 200
        assert client.get("/api/disasters").headers["X-RateLimit-Remaining"] == "0"

        response = client.get("/api/disasters")
        assert response.status_code == 429
        assert response.json()["error"] == "TooManyRequests"
        assert response.headers["Retry-After"] == "900"

    def test_health_bypassed(self, redis: FakeRedis) -> None:
        """Health checks are never limited."""
        client = build_client(RateLimitConfig(requests_per_window=1))

        for _ in range(3):
            assert client.get("/api/health").status_code == 200
        assert redis.hits == {}

    def test_redis_failure_allows_request(self, redis: FakeRedis) -> None:
        """An unreachable Redis does not block traffic."""
        redis.fail = True
        client = build_client(RateLimitConfig(requests_per_window=1))

        for _ in range(3):
            response = client.get("/api/disasters")
            assert response.status_code == 200
            assert "X-RateLimit-Limit" not in response.headers

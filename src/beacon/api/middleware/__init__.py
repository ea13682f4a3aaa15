"""HTTP middleware for the Beacon API."""

from beacon.api.middleware.correlation import CorrelationMiddleware
from beacon.api.middleware.rate_limit import RateLimitConfig, RateLimitMiddleware

__all__ = ["CorrelationMiddleware", "RateLimitConfig", "RateLimitMiddleware"]

"""Rate limiting middleware."""

import logging
import time

import redis
from fastapi import Request, status
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

from consent_api.settings import get_settings

settings = get_settings()
redis_client = redis.from_url(settings.redis_url, decode_responses=True)
logger = logging.getLogger(__name__)

EXEMPT_PATHS = ["/health", "/ready", "/metrics", "/docs", "/openapi.json"]


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Token bucket rate limiting per API client."""

    async def dispatch(self, request: Request, call_next):
        """Apply rate limiting."""
        if not settings.rate_limit_enabled or request.url.path in EXEMPT_PATHS:
            return await call_next(request)

        client_id = getattr(request.state, "client_id", None)
        if not client_id or client_id == "anonymous":
            client_id = request.client.host if request.client else "unknown"

        key = f"rate_limit:{client_id}"
        capacity = settings.rate_limit_requests_per_minute
        now = time.time()

        try:
            pipe = redis_client.pipeline()
            pipe.get(key)
            pipe.get(f"{key}:last_refill")
            results = pipe.execute()
        except redis.RedisError as e:
            # Limiter unavailable: fail open
            logger.warning(f"Rate limiter unavailable: {e}")
            return await call_next(request)

        tokens = float(results[0]) if results[0] else capacity
        last_refill = float(results[1]) if results[1] else now

        # Refill tokens based on time passed
        refill_amount = ((now - last_refill) / 60.0) * capacity
        tokens = min(capacity, tokens + refill_amount)

        if tokens < 1:
            return JSONResponse(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                content={"detail": "Rate limit exceeded. Please try again later.", "error_code": "RATE_LIMITED"},
                headers={"Retry-After": "60"},
            )

        tokens -= 1

        ttl = settings.rate_limit_ttl_seconds
        pipe = redis_client.pipeline()
        pipe.set(key, tokens, ex=ttl)
        pipe.set(f"{key}:last_refill", now, ex=ttl)
        pipe.execute()

        response = await call_next(request)

        response.headers["X-RateLimit-Limit"] = str(capacity)
        response.headers["X-RateLimit-Remaining"] = str(int(tokens))
        response.headers["X-RateLimit-Reset"] = str(int(now + 60))
        return response

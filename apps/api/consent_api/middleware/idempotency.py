"""Idempotency middleware."""

import base64
import hashlib
import json
import logging

import redis
from fastapi import Request, status
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse, Response

from consent_api.settings import get_settings

settings = get_settings()
redis_client = redis.from_url(settings.redis_url, decode_responses=False)
logger = logging.getLogger(__name__)


class IdempotencyMiddleware(BaseHTTPMiddleware):
    """Replay the stored response for a repeated idempotency-key on POST/PUT/PATCH."""

    async def dispatch(self, request: Request, call_next):
        """Handle idempotency."""
        if not settings.idempotency_enabled or request.method not in ["POST", "PUT", "PATCH"]:
            return await call_next(request)

        idempotency_key = request.headers.get("idempotency-key")
        if not idempotency_key:
            return await call_next(request)

        # Scoped to the authenticated API key
        key_digest = getattr(request.state, "key_digest", None)
        if not key_digest:
            return await call_next(request)
        role = getattr(request.state, "role", "unknown")
        cache_key = f"idempotency:{role}:{key_digest}:{idempotency_key}"

        body = await request.body()
        fingerprint = hashlib.sha256(
            request.method.encode() + b" " + request.url.path.encode() + b"\n" + body
        ).hexdigest()

        try:
            cached = redis_client.get(cache_key)
        except redis.RedisError as e:
            logger.warning(f"Idempotency cache unavailable: {e}")
            cached = None
        if cached:
            stored = json.loads(cached)
            if stored["fingerprint"] != fingerprint:
                return JSONResponse(
                    status_code=status.HTTP_409_CONFLICT,
                    content={
                        "detail": "Idempotency key was already used for a different request.",
                        "error_code": "CONFLICT",
                    },
                )
            response = Response(
                content=base64.b64decode(stored["body"]),
                status_code=stored["status_code"],
                media_type=stored.get("media_type"),
            )
            response.headers["X-Idempotency-Key"] = idempotency_key
            response.headers["X-Idempotency-Replayed"] = "true"
            return response

        response = await call_next(request)

        # Only successful responses are replayable
        if 200 <= response.status_code < 300:
            content = b"".join([chunk async for chunk in response.body_iterator])
            stored = {
                "fingerprint": fingerprint,
                "body": base64.b64encode(content).decode("ascii"),
                "status_code": response.status_code,
                "media_type": response.headers.get("content-type"),
            }
            try:
                redis_client.setex(cache_key, settings.idempotency_ttl_seconds, json.dumps(stored))
            except redis.RedisError as e:
                logger.warning(f"Failed to cache idempotent response: {e}")
            headers = {
                key: value
                for key, value in response.headers.items()
                if key.lower() not in ("content-length", "content-type")
            }
            response = Response(
                content=content,
                status_code=response.status_code,
                headers=headers,
                media_type=stored["media_type"],
            )

        response.headers["X-Idempotency-Key"] = idempotency_key
        return response

"""Authentication middleware to resolve the caller's role from an API key."""

import logging

from fastapi import Request, status
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

from consent_api.auth.api_key import compute_key_digest, extract_api_key, resolve_role

logger = logging.getLogger(__name__)

PUBLIC_PATHS = {"/health", "/ready", "/metrics", "/docs", "/openapi.json", "/"}


class AuthMiddleware(BaseHTTPMiddleware):
    """Reject requests without a recognized API key."""

    async def dispatch(self, request: Request, call_next):
        """Process request with role resolution."""
        if request.url.path in PUBLIC_PATHS or request.url.path.startswith("/metrics"):
            return await call_next(request)

        api_key = extract_api_key(request.headers)
        if not api_key:
            return JSONResponse(
                status_code=status.HTTP_401_UNAUTHORIZED,
                content={"detail": "Missing API key. Provide x-api-key header.", "error_code": "UNAUTHORIZED"},
            )

        role = resolve_role(api_key)
        if role is None:
            return JSONResponse(
                status_code=status.HTTP_401_UNAUTHORIZED,
                content={"detail": "Invalid or revoked API key.", "error_code": "UNAUTHORIZED"},
            )

        request.state.role = role
        request.state.key_digest = compute_key_digest(api_key)
        request.state.client_id = request.headers.get("x-client-id") or "anonymous"

        correlation_id = getattr(request.state, "correlation_id", None)
        logger.info(
            "Authenticated request",
            extra={
                "role": role,
                "client_id": request.state.client_id,
                "correlation_id": correlation_id,
                "path": request.url.path,
            },
        )

        return await call_next(request)

"""API key authentication with HMAC digest comparison."""

import hashlib
import hmac
from typing import Optional

from fastapi import HTTPException, Request, status

from consent_api.settings import get_settings

ROLE_CLIENT = "client"
ROLE_ADMIN = "admin"


def compute_key_digest(raw_key: str, secret: Optional[str] = None) -> str:
    """Compute HMAC-SHA256 digest of API key."""
    secret = (secret or get_settings().secret_key).encode()
    return hmac.new(secret, raw_key.encode(), hashlib.sha256).hexdigest()


def extract_api_key(headers) -> Optional[str]:
    """Read the key from x-api-key or a Bearer authorization header."""
    api_key = headers.get("x-api-key")
    if api_key:
        return api_key
    authorization = headers.get("authorization", "")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() == "bearer" and token:
        return token.strip()
    return None


def resolve_role(raw_key: Optional[str]) -> Optional[str]:
    """Map an API key to a role, or None if it is not recognized."""
    if not raw_key or len(raw_key) < 8:
        return None

    settings = get_settings()
    digest = compute_key_digest(raw_key, settings.secret_key)

    # Constant-time comparison against every configured key
    role = None
    for candidate in settings.admin_api_keys:
        if hmac.compare_digest(compute_key_digest(candidate, settings.secret_key), digest):
            role = ROLE_ADMIN
    if role is None:
        for candidate in settings.api_keys:
            if hmac.compare_digest(compute_key_digest(candidate, settings.secret_key), digest):
                role = ROLE_CLIENT
    return role


async def require_admin(request: Request) -> None:
    """Dependency guarding admin routes."""
    if getattr(request.state, "role", None) != ROLE_ADMIN:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin API key required.",
        )

"""ConsentHub API - Main FastAPI application."""

import logging
import sys
from contextlib import asynccontextmanager
from typing import Optional

import redis
from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import make_asgi_app

from consent_api import __version__
from consent_api.dependencies import build_ledger
from consent_api.errors import ConsentError
from consent_api.ledger.service import ConsentLedger
from consent_api.middleware import rate_limit
from consent_api.middleware.auth import AuthMiddleware
from consent_api.middleware.correlation import CorrelationIdFilter, CorrelationIDMiddleware
from consent_api.middleware.idempotency import IdempotencyMiddleware
from consent_api.middleware.rate_limit import RateLimitMiddleware
from consent_api.routes import admin, consents, policies, users
from consent_api.settings import Settings, get_settings

LOG_FORMATS = {
    "json": (
        '{"time": "%(asctime)s", "level": "%(levelname)s", "message": "%(message)s", '
        '"module": "%(name)s", "correlation_id": "%(correlation_id)s"}'
    ),
    "text": "%(asctime)s %(levelname)s [%(correlation_id)s] %(name)s: %(message)s",
}


def configure_logging(settings: Settings) -> None:
    """Configure root logging with correlation IDs on every record."""
    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(CorrelationIdFilter())
    logging.basicConfig(
        level=settings.log_level,
        format=LOG_FORMATS.get(settings.log_format, LOG_FORMATS["json"]),
        handlers=[handler],
    )


logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    logger.info("Starting ConsentHub API...")
    try:
        app.state.settings.validate_production_settings()
    except ValueError as e:
        logger.error(f"Configuration validation failed: {e}")
        raise

    ledger: ConsentLedger = app.state.ledger
    logger.info(
        "Consent ledger ready",
        extra={"store": type(ledger.store).__name__, "users": len(ledger.user_ids())},
    )
    yield
    logger.info("Shutting down ConsentHub API...")


async def consent_error_handler(request: Request, exc: ConsentError):
    """Render ledger errors with their stable error code."""
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Render request schema violations in the same shape as ledger errors."""
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "detail": "Request validation failed",
            "error_code": "VALIDATION_ERROR",
            "details": {"errors": jsonable_encoder(exc.errors())},
        },
    )


def create_app(
    settings: Optional[Settings] = None,
    ledger: Optional[ConsentLedger] = None,
) -> FastAPI:
    """Build the API application around a ledger."""
    settings = settings or get_settings()
    configure_logging(settings)

    app = FastAPI(
        title="ConsentHub API",
        description="Append-only consent ledger with policy document versioning",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.ledger = ledger or build_ledger(settings)

    app.add_exception_handler(ConsentError, consent_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
    )

    # Custom middleware (order matters - last added is first executed)
    app.add_middleware(IdempotencyMiddleware)  # Needs client_id from auth
    app.add_middleware(RateLimitMiddleware)
    app.add_middleware(AuthMiddleware)
    app.add_middleware(CorrelationIDMiddleware)

    # Prometheus metrics
    app.mount("/metrics", make_asgi_app())

    app.include_router(consents.router)
    app.include_router(users.router)
    app.include_router(policies.router)
    app.include_router(admin.router)

    @app.get("/health")
    async def health_check():
        """Health check endpoint (basic liveness)."""
        return {
            "status": "healthy",
            "service": "consenthub-api",
            "version": __version__,
        }

    @app.get("/ready")
    async def readiness_check():
        """Readiness check endpoint (verifies dependencies)."""
        checks = {"ledger": False, "redis": False}

        try:
            checks["ledger"] = bool(app.state.ledger.store.ping())
        except Exception as e:
            logger.error(f"Ledger store check failed: {e}")

        try:
            rate_limit.redis_client.ping()
            checks["redis"] = True
        except redis.RedisError as e:
            logger.error(f"Redis check failed: {e}")

        all_ready = all(checks.values())
        return JSONResponse(
            content={"status": "ready" if all_ready else "not_ready", "checks": checks},
            status_code=200 if all_ready else 503,
        )

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "service": "ConsentHub API",
            "version": __version__,
            "docs": "/docs",
            "health": "/health",
        }

    return app


app = create_app()

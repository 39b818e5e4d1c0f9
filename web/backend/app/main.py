"""FastAPI application for the trustgate write-path gateway.

Provides REST API endpoints wrapping the trustgate package for:
- Quota checks (fixed-window rate limiting)
- Semantic content analysis
- Harmful-content moderation checks
- Full submission gating for posts, comments and other writes
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from trustgate import __version__
from trustgate.config import GatewaySettings, configure_logging
from trustgate.errors import GatewayError
from trustgate.gateway import TrustGateway
from trustgate.identity import IdentityProvider, RemoteIdentityProvider
from trustgate.metrics import Metrics
from web.backend.app.models.api import MetricsResponse
from web.backend.app.routers import content, moderation, quota, submissions

log = logging.getLogger("trustgate.api")


def create_app(
    settings: Optional[GatewaySettings] = None,
    gateway: Optional[TrustGateway] = None,
    identity_provider: Optional[IdentityProvider] = None,
) -> FastAPI:
    """Build the API.  Collaborators not passed in are built from *settings*."""
    settings = settings or GatewaySettings.from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        metrics = gateway.metrics if gateway is not None else Metrics()
        app.state.metrics = metrics
        app.state.gateway = gateway or TrustGateway.from_settings(settings, metrics=metrics)
        provider = identity_provider
        if provider is None and settings.supabase_url and settings.supabase_service_key:
            provider = RemoteIdentityProvider(
                settings.supabase_url,
                settings.supabase_service_key,
                timeout=settings.service_timeout,
            )
        if provider is None:
            log.warning("No identity provider configured; authenticated endpoints will return 401")
        app.state.identity_provider = provider
        log.info(
            "trustgate API starting quota_backend=%s classifier=%s scorer=%s",
            settings.quota_backend,
            app.state.gateway.classifier.configured,
            app.state.gateway.scorer.configured,
        )
        yield
        app.state.gateway.close()

    app = FastAPI(
        title="trustgate API",
        description=(
            "Write-path trust gateway: rate limiting and content moderation "
            "in front of every content submission."
        ),
        version=__version__,
        lifespan=lifespan,
    )

    # -----------------------------------------------------------------------
    # CORS middleware (allow all origins for development)
    # -----------------------------------------------------------------------
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # -----------------------------------------------------------------------
    # Error envelope
    # -----------------------------------------------------------------------

    @app.exception_handler(GatewayError)
    async def _handle_gateway_error(request: Request, exc: GatewayError):
        level = logging.WARNING if 400 <= exc.status_code < 500 else logging.ERROR
        log.log(level, "GatewayError path=%s code=%s msg=%s", request.url.path, exc.code, exc.message)
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "error": exc.message,
                "code": exc.code,
                "retryable": exc.retryable,
                "details": exc.details,
            },
        )

    # -----------------------------------------------------------------------
    # Include routers
    # -----------------------------------------------------------------------
    app.include_router(quota.router)
    app.include_router(content.router)
    app.include_router(moderation.router)
    app.include_router(submissions.router)

    # -----------------------------------------------------------------------
    # Root, health-check and metrics endpoints
    # -----------------------------------------------------------------------

    @app.get("/", tags=["meta"])
    async def root():
        """Return basic API information."""
        return {
            "name": "trustgate API",
            "version": __version__,
            "docs": "/docs",
            "openapi": "/openapi.json",
        }

    @app.get("/health", tags=["meta"])
    async def health_check():
        """Health check endpoint."""
        return {"status": "healthy"}

    @app.get("/api/gateway/metrics", response_model=MetricsResponse, tags=["meta"])
    async def gateway_metrics(request: Request):
        """Internal counters: storage errors, degraded calls, decisions."""
        return MetricsResponse(counters=request.app.state.metrics.snapshot())

    return app


def _default_app() -> FastAPI:
    settings = GatewaySettings.from_env()
    configure_logging(settings.log_level)
    return create_app(settings)


app = _default_app()

"""FastAPI application entry-point.

Assembles routers, middleware, exception handlers, and lifecycle hooks.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from collections.abc import AsyncIterator

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse

from keyproxy.adapters.inbound.rest.routers import health_router, proxy_router
from keyproxy.config import Settings
from keyproxy.dependencies import (
    build_key_pool,
    build_upstream_client,
    get_cached_settings,
)
from keyproxy.shared.errors import register_exception_handlers
from keyproxy.shared.middleware import (
    LoggingMiddleware,
    MetricsMiddleware,
    RequestIdMiddleware,
)
from keyproxy.shared.observability import configure_logging

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifecycle — startup & shutdown hooks."""
    settings: Settings = app.state.settings
    configure_logging(
        log_level=settings.log_level,
        json_logs=settings.is_production,
    )
    logger.info(
        "application_starting",
        env=settings.app_env.value,
        key_count=app.state.key_pool.count(),
        upstream=settings.model_api_url,
        max_retries=settings.max_retries,
    )
    yield
    await app.state.upstream.close()
    logger.info("application_shutdown")


def create_app(settings: Settings | None = None) -> FastAPI:
    """Application factory — creates a fully configured FastAPI instance.

    The key pool built here is the process-wide pool: every request served
    by this app shares its health state and round-robin cursor.
    """
    settings = settings or get_cached_settings()

    app = FastAPI(
        title="GenAI Key Proxy",
        description=(
            "Proxies generative-AI requests to an OpenAI-compatible upstream "
            "through a pool of API keys with round-robin rotation, cooldowns, "
            "and bounded retries."
        ),
        version="0.1.0",
        docs_url="/docs",
        redoc_url=None,
        openapi_url="/openapi.json",
        default_response_class=ORJSONResponse,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.key_pool = build_key_pool(settings)
    app.state.upstream = build_upstream_client(settings)

    # ── Middleware (order matters: last added = outermost) ───
    allow_all_origins = "*" in settings.cors_origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if allow_all_origins else settings.cors_origins,
        allow_methods=["POST", "GET", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "X-Admin-Token", "X-Request-ID"],
    )
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(RequestIdMiddleware)

    # ── Exception handlers ───────────────────────────────────
    register_exception_handlers(app)

    # ── Routers ──────────────────────────────────────────────
    app.include_router(health_router, prefix="/api/v1")
    app.include_router(proxy_router)

    # ── Root route for serverless deployments ────────────────
    @app.get("/")
    async def root() -> dict[str, str]:
        return {
            "message": "GenAI key proxy is running",
            "generate": "/api/generate",
            "health": "/api/v1/health",
        }

    return app


# Uvicorn entry-point
app = create_app()

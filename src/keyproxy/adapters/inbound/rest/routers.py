"""REST API routers — thin HTTP adapters over the generation service and key pool."""

from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Header, Query, Request, Response
from fastapi.responses import ORJSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from keyproxy.application.dtos import (
    DebugKeysResponse,
    GeminiRequest,
    GenerateRequest,
    HealthResponse,
    KeyHealthResponse,
)
from keyproxy.application.services import GenerationService
from keyproxy.config import Settings
from keyproxy.dependencies import (
    get_app_settings,
    get_generation_service,
    get_key_pool,
    require_configured_keys,
)
from keyproxy.shared.keypool import DispatchResult, KeyPool


def _request_id(request: Request) -> str | None:
    return getattr(request.state, "request_id", None)


def _to_response(result: DispatchResult) -> ORJSONResponse:
    return ORJSONResponse(status_code=result.status_code, content=result.to_dict())


# ═══════════════════════════════════════════════════════════════
#  Health
# ═══════════════════════════════════════════════════════════════
health_router = APIRouter(tags=["Health"])


@health_router.get("/health", response_model=HealthResponse)
async def health_check(
    settings: Settings = Depends(get_app_settings),
    pool: KeyPool = Depends(get_key_pool),
) -> HealthResponse:
    return HealthResponse(
        status="ok" if pool.count() > 0 else "degraded",
        environment=settings.app_env.value,
        key_count=pool.count(),
    )


@health_router.get("/metrics")
async def prometheus_metrics() -> Response:
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST,
    )


# ═══════════════════════════════════════════════════════════════
#  Proxy
# ═══════════════════════════════════════════════════════════════
proxy_router = APIRouter(prefix="/api", tags=["Proxy"])


@proxy_router.post("/generate", dependencies=[Depends(require_configured_keys)])
async def generate(
    body: GenerateRequest,
    request: Request,
    service: GenerationService = Depends(get_generation_service),
) -> ORJSONResponse:
    """Forward a prompt to the model API through the key pool."""
    result = await service.generate(body, request_id=_request_id(request))
    request.state.upstream_attempts = result.attempts
    return _to_response(result)


@proxy_router.post("/gemini", dependencies=[Depends(require_configured_keys)])
async def generate_gemini(
    body: GeminiRequest,
    request: Request,
    service: GenerationService = Depends(get_generation_service),
) -> ORJSONResponse:
    """Gemini-shaped request in, ``candidates``-shaped response out."""
    result = await service.generate_gemini(body, request_id=_request_id(request))
    request.state.upstream_attempts = result.attempts
    if result.ok:
        return ORJSONResponse(status_code=200, content=result.data)
    return _to_response(result)


# ═══════════════════════════════════════════════════════════════
#  Admin / debug
# ═══════════════════════════════════════════════════════════════
@proxy_router.get("/debug-keys", response_model=DebugKeysResponse)
async def debug_keys(
    token: str | None = Query(None),
    x_admin_token: str | None = Header(None, alias="X-Admin-Token"),
    pool: KeyPool = Depends(get_key_pool),
) -> DebugKeysResponse:
    """Masked per-key health. Requires ADMIN_TOKEN via ``?token=`` or header."""
    snapshot = pool.debug_snapshot(token or x_admin_token)
    return DebugKeysResponse(
        timestamp=datetime.now(timezone.utc).isoformat(),
        keys=[KeyHealthResponse(**s.to_dict()) for s in snapshot],
    )

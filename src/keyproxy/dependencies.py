"""Dependency injection container — wires the key pool to route handlers.

The ``KeyPool`` and ``UpstreamClient`` are process-wide singletons: they are
built once by ``build_key_pool`` / ``build_upstream_client`` inside
``create_app`` and parked on ``app.state``. FastAPI's ``Depends()`` pulls
them from there, so tests can hand ``create_app`` their own settings (or
override these factories) without touching module globals.
"""

from __future__ import annotations

from functools import lru_cache

from fastapi import Depends, Request

from keyproxy.adapters.outbound.llm import UpstreamClient
from keyproxy.application.services import GenerationService
from keyproxy.config import Settings, get_settings
from keyproxy.domain.exceptions import NoKeysConfiguredError
from keyproxy.ports.outbound import UpstreamPort
from keyproxy.shared.keypool import KeyPool, RequestDispatcher


# ── Settings ─────────────────────────────────────────────────
@lru_cache(maxsize=1)
def get_cached_settings() -> Settings:
    return get_settings()


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings  # type: ignore[no-any-return]


# ── Builders (called once per process by create_app) ─────────
def build_key_pool(settings: Settings) -> KeyPool:
    return KeyPool.from_values(
        settings.credential_slots(),
        admin_token=settings.admin_token,
    )


def build_upstream_client(settings: Settings) -> UpstreamClient:
    return UpstreamClient(settings.model_api_url, timeout=settings.request_timeout_s)


# ── Request-scoped accessors ─────────────────────────────────
def get_key_pool(request: Request) -> KeyPool:
    return request.app.state.key_pool  # type: ignore[no-any-return]


def require_configured_keys(pool: KeyPool = Depends(get_key_pool)) -> None:
    """Route guard: an empty pool fails the request before its body is validated."""
    if pool.count() == 0:
        raise NoKeysConfiguredError()


def get_upstream_client(request: Request) -> UpstreamPort:
    return request.app.state.upstream  # type: ignore[no-any-return]


def get_dispatcher(
    settings: Settings = Depends(get_app_settings),
    pool: KeyPool = Depends(get_key_pool),
    upstream: UpstreamPort = Depends(get_upstream_client),
) -> RequestDispatcher:
    return RequestDispatcher(
        pool,
        upstream.send,
        max_retries=settings.max_retries,
        timeout_s=settings.request_timeout_s,
        rate_limit_cooldown_ms=settings.key_cooldown_ms,
    )


def get_generation_service(
    settings: Settings = Depends(get_app_settings),
    dispatcher: RequestDispatcher = Depends(get_dispatcher),
) -> GenerationService:
    return GenerationService(
        dispatcher,
        default_model=settings.default_model,
        compat_model=settings.compat_model,
    )

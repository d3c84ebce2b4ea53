"""Global exception handlers — map domain errors to HTTP responses."""

from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import ORJSONResponse
import structlog

from keyproxy.domain.exceptions import (
    AuthorisationError,
    DomainError,
    InvalidRequestError,
    NoKeysConfiguredError,
)

logger = structlog.get_logger(__name__)


def _error_body(code: str, message: str) -> dict[str, object]:
    return {"ok": False, "error": code, "detail": message}


def _summarise_validation(exc: RequestValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
        parts.append(f"{loc}: {err.get('msg', 'invalid')}" if loc else str(err.get("msg", "invalid")))
    return "; ".join(parts) or "invalid request body"


def register_exception_handlers(app: FastAPI) -> None:
    """Register all domain→HTTP exception mappings."""

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(
        request: Request, exc: RequestValidationError
    ) -> ORJSONResponse:
        return ORJSONResponse(
            status_code=400,
            content=_error_body("invalid_request", _summarise_validation(exc)),
        )

    @app.exception_handler(InvalidRequestError)
    async def handle_invalid(request: Request, exc: InvalidRequestError) -> ORJSONResponse:
        return ORJSONResponse(
            status_code=400,
            content=_error_body(exc.code, exc.message),
        )

    @app.exception_handler(NoKeysConfiguredError)
    async def handle_no_keys(request: Request, exc: NoKeysConfiguredError) -> ORJSONResponse:
        logger.error("request_rejected_no_keys", path=request.url.path)
        return ORJSONResponse(
            status_code=500,
            content=_error_body(exc.code, exc.message),
        )

    @app.exception_handler(AuthorisationError)
    async def handle_authz(request: Request, exc: AuthorisationError) -> ORJSONResponse:
        logger.warning("debug_access_denied", path=request.url.path)
        return ORJSONResponse(status_code=403, content={"error": "forbidden"})

    @app.exception_handler(DomainError)
    async def handle_domain(request: Request, exc: DomainError) -> ORJSONResponse:
        return ORJSONResponse(
            status_code=400,
            content=_error_body(exc.code, exc.message),
        )

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception) -> ORJSONResponse:
        logger.exception("unhandled_exception", error=str(exc))
        return ORJSONResponse(
            status_code=500,
            content=_error_body("internal_error", "An unexpected error occurred"),
        )

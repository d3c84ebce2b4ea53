"""Request dispatcher — the retry loop in front of the upstream model API.

Per attempt: select a key → call upstream under a hard timeout → classify →
report the outcome to the health tracker → retry with a fresh key on a
transient failure. Callers always get a ``DispatchResult``; upstream
failures never escape as exceptions.

Usage::

    dispatcher = RequestDispatcher(pool, upstream.send, max_retries=2, timeout_s=10)
    result = await dispatcher.dispatch(UpstreamRequest(model="gpt-4o", messages=(...)))
"""

from __future__ import annotations

import asyncio
import time
import uuid
from typing import Awaitable, Callable

import structlog

from keyproxy.shared.keypool.pool import KeyPool
from keyproxy.shared.keypool.types import (
    RATE_LIMIT_COOLDOWN_MS,
    SNIPPET_MAX_CHARS,
    DispatchResult,
    ErrorKind,
    OutcomeKind,
    UpstreamOutcome,
    UpstreamRequest,
    mask_key,
)
from keyproxy.shared.observability.metrics import (
    DISPATCH_RESULTS_TOTAL,
    UPSTREAM_ATTEMPT_LATENCY,
    UPSTREAM_ATTEMPTS_TOTAL,
)

logger = structlog.get_logger(__name__)

SendFn = Callable[[str, UpstreamRequest], Awaitable[UpstreamOutcome]]


class RequestDispatcher:
    """Drives select → dispatch → classify → report for one request."""

    def __init__(
        self,
        pool: KeyPool,
        send: SendFn,
        *,
        max_retries: int = 2,
        timeout_s: float = 10.0,
        rate_limit_cooldown_ms: float = RATE_LIMIT_COOLDOWN_MS,
    ) -> None:
        self._pool = pool
        self._send = send
        self._max_retries = max_retries
        self._timeout_s = timeout_s
        self._rate_limit_cooldown_ms = rate_limit_cooldown_ms

    @property
    def max_attempts(self) -> int:
        return self._max_retries + 1

    # ── Main entry-point ─────────────────────────────────────
    async def dispatch(
        self,
        request: UpstreamRequest,
        *,
        request_id: str | None = None,
    ) -> DispatchResult:
        request_id = request_id or uuid.uuid4().hex[:8]
        log = logger.bind(request_id=request_id, model=request.model)

        if self._pool.count() == 0:
            log.error("dispatch_no_keys_configured")
            return self._finish(
                ErrorKind.NO_KEYS_CONFIGURED,
                "No API keys configured",
                status_code=500,
            )

        if not request.model or not request.messages:
            return self._finish(
                ErrorKind.INVALID_REQUEST,
                "request needs a model and at least one message",
                status_code=400,
            )

        health = self._pool.health
        last_error: ErrorKind | None = None
        last_detail = "Unknown error"

        for attempt in range(1, self.max_attempts + 1):
            key = self._pool.selector.select()
            if key is None:
                return self._finish(
                    ErrorKind.NO_KEYS_CONFIGURED,
                    "No API keys configured",
                    status_code=500,
                    attempts=attempt - 1,
                )

            outcome, latency_ms = await self._attempt(key, request)
            retry = outcome.kind.is_transient and attempt < self.max_attempts
            self._log_attempt(log, attempt, key, outcome, latency_ms, retry)

            if outcome.kind is OutcomeKind.SUCCESS:
                health.report_success(key)
                DISPATCH_RESULTS_TOTAL.labels(result="success").inc()
                return DispatchResult(
                    ok=True,
                    data=outcome.payload,
                    status_code=outcome.status_code or 200,
                    attempts=attempt,
                )

            if outcome.kind is OutcomeKind.CLIENT_ERROR:
                # The key works; the request itself was rejected.
                health.report_success(key)
                return self._finish(
                    ErrorKind.UPSTREAM_CLIENT_ERROR,
                    outcome.detail,
                    status_code=outcome.status_code,
                    attempts=attempt,
                )

            if outcome.kind is OutcomeKind.RATE_LIMITED:
                health.report_failure(key, cooldown_ms=self._rate_limit_cooldown_ms)
            else:
                health.report_failure(key)

            last_error = ErrorKind.from_outcome(outcome.kind)
            last_detail = outcome.detail or last_error.value

        log.error(
            "dispatch_retries_exhausted",
            attempts=self.max_attempts,
            last_error=last_error.value if last_error else None,
        )
        return self._finish(
            ErrorKind.ALL_RETRIES_FAILED,
            last_detail,
            status_code=502,
            attempts=self.max_attempts,
            last_error=last_error,
        )

    # ── Single attempt ───────────────────────────────────────
    async def _attempt(
        self, key: str, request: UpstreamRequest
    ) -> tuple[UpstreamOutcome, float]:
        start = time.monotonic()
        try:
            outcome = await asyncio.wait_for(
                self._send(key, request),
                timeout=self._timeout_s,
            )
        except asyncio.TimeoutError:
            outcome = UpstreamOutcome.timeout(f"Timeout after {self._timeout_s}s")
        except Exception as exc:
            outcome = UpstreamOutcome.network_error(f"{type(exc).__name__}: {exc}")
        latency_ms = (time.monotonic() - start) * 1000
        return outcome, latency_ms

    @staticmethod
    def _log_attempt(
        log: structlog.typing.FilteringBoundLogger,
        attempt: int,
        key: str,
        outcome: UpstreamOutcome,
        latency_ms: float,
        retry: bool,
    ) -> None:
        UPSTREAM_ATTEMPTS_TOTAL.labels(outcome=outcome.kind.value).inc()
        UPSTREAM_ATTEMPT_LATENCY.labels(outcome=outcome.kind.value).observe(latency_ms / 1000)

        fields = dict(
            attempt=attempt,
            key=mask_key(key),
            latency_ms=float(f"{latency_ms:.1f}"),
            status=outcome.status_code,
            outcome=outcome.kind.value,
            retry=retry,
            snippet=(outcome.detail or "")[:SNIPPET_MAX_CHARS],
        )
        if outcome.kind is OutcomeKind.SUCCESS:
            log.info("upstream_attempt", **fields)
        else:
            log.warning("upstream_attempt", **fields)

    @staticmethod
    def _finish(
        error: ErrorKind,
        detail: str,
        *,
        status_code: int,
        attempts: int = 0,
        last_error: ErrorKind | None = None,
    ) -> DispatchResult:
        DISPATCH_RESULTS_TOTAL.labels(result=error.value).inc()
        return DispatchResult(
            ok=False,
            error=error,
            detail=detail,
            status_code=status_code,
            attempts=attempts,
            last_error=last_error,
        )

"""Upstream model API adapter.

A single pure HTTP call per attempt. Every response is classified into an
``UpstreamOutcome`` here, at the boundary; nothing past this module looks
at raw status codes. Retry, rotation and health are the dispatcher's job.
"""

from __future__ import annotations

import json
from typing import Any

import httpx
import structlog

from keyproxy.ports.outbound import UpstreamPort
from keyproxy.shared.keypool.types import UpstreamOutcome, UpstreamRequest

logger = structlog.get_logger(__name__)

DEFAULT_MODEL_API_URL = "https://api.openai.com/v1/chat/completions"


def classify_response(status_code: int, body: str) -> UpstreamOutcome:
    """Map an upstream HTTP status + body to a tagged outcome."""
    if status_code == 429:
        return UpstreamOutcome.rate_limited()

    if 400 <= status_code < 500:
        return UpstreamOutcome.client_error(status_code, body)

    if status_code >= 500:
        return UpstreamOutcome.server_error(status_code, f"upstream_5xx: {body}")

    if 200 <= status_code < 300:
        try:
            payload = json.loads(body)
        except json.JSONDecodeError:
            return UpstreamOutcome.server_error(status_code, f"invalid_json: {body}")
        return UpstreamOutcome.success(status_code, payload)

    # 1xx/3xx: nothing usable came back
    return UpstreamOutcome.server_error(status_code, f"unexpected_status: {body}")


class UpstreamClient(UpstreamPort):
    """Posts chat-completion bodies to ``MODEL_API_URL`` with a bearer key."""

    def __init__(
        self,
        api_url: str = DEFAULT_MODEL_API_URL,
        *,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_url = api_url
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)

    @property
    def api_url(self) -> str:
        return self._api_url

    async def send(self, api_key: str, request: UpstreamRequest) -> UpstreamOutcome:
        body: dict[str, Any] = request.to_body()
        try:
            response = await self._client.post(
                self._api_url,
                headers={
                    "Authorization": f"Bearer {api_key}",
                    "Content-Type": "application/json",
                },
                json=body,
            )
        except httpx.TimeoutException as exc:
            return UpstreamOutcome.timeout(f"timeout: {type(exc).__name__}")
        except httpx.HTTPError as exc:
            return UpstreamOutcome.network_error(f"{type(exc).__name__}: {exc}")

        return classify_response(response.status_code, response.text)

    async def close(self) -> None:
        await self._client.aclose()

"""Generation service.

Turns inbound proxy payloads into ``UpstreamRequest`` objects, runs them
through the dispatcher, and shapes the result for the caller. Two inbound
dialects are supported: a plain ``prompt``/``system`` body and a
Gemini-shaped ``contents`` body whose answer is wrapped back into
``candidates`` so Gemini clients need no changes.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Any

from keyproxy.application.dtos import GenerateRequest, GeminiRequest, candidates_envelope
from keyproxy.domain.exceptions import InvalidRequestError
from keyproxy.shared.keypool import DispatchResult, RequestDispatcher, UpstreamRequest

DEFAULT_TEMPERATURE = 0.1
DEFAULT_MAX_TOKENS = 500
COMPAT_TEMPERATURE = 0.4


class GenerationService:
    """Validates, translates and dispatches generation requests."""

    def __init__(
        self,
        dispatcher: RequestDispatcher,
        *,
        default_model: str = "gpt-3.5-turbo",
        compat_model: str = "doubao-seed-1-6-flash-250828",
    ) -> None:
        self._dispatcher = dispatcher
        self._default_model = default_model
        self._compat_model = compat_model

    # ── Plain prompt dialect ─────────────────────────────────
    def build_chat_request(self, body: GenerateRequest) -> UpstreamRequest:
        messages: list[dict[str, Any]] = []
        if body.system:
            messages.append({"role": "system", "content": body.system})
        messages.append({"role": "user", "content": body.prompt})

        return UpstreamRequest(
            model=body.model or self._default_model,
            messages=tuple(messages),
            params={
                "temperature": DEFAULT_TEMPERATURE if body.temperature is None else body.temperature,
                "max_tokens": DEFAULT_MAX_TOKENS if body.max_tokens is None else body.max_tokens,
                "n": 1,
            },
        )

    async def generate(self, body: GenerateRequest, *, request_id: str | None = None) -> DispatchResult:
        return await self._dispatcher.dispatch(
            self.build_chat_request(body), request_id=request_id
        )

    # ── Gemini dialect ───────────────────────────────────────
    def translate_gemini(self, body: GeminiRequest) -> UpstreamRequest:
        """Convert ``contents``/``system_instruction`` into chat messages.

        Raises:
            InvalidRequestError: nothing with text survived translation.
        """
        messages: list[dict[str, Any]] = []

        if body.system_instruction and body.system_instruction.parts:
            sys_text = _join_parts(body.system_instruction.parts)
            if sys_text:
                messages.append({"role": "system", "content": sys_text})

        for content in body.contents:
            role = "assistant" if content.role == "model" else (content.role or "user")
            text = _join_parts(content.parts)
            if text:
                messages.append({"role": role, "content": text})

        if not messages:
            raise InvalidRequestError("Empty messages")

        params: dict[str, Any] = {"temperature": COMPAT_TEMPERATURE}
        config = body.generation_config
        if config and config.response_mime_type == "application/json":
            params["response_format"] = {"type": "json_object"}

        return UpstreamRequest(model=self._compat_model, messages=tuple(messages), params=params)

    async def generate_gemini(
        self, body: GeminiRequest, *, request_id: str | None = None
    ) -> DispatchResult:
        result = await self._dispatcher.dispatch(
            self.translate_gemini(body), request_id=request_id
        )
        if not result.ok:
            return result
        return replace(result, data=candidates_envelope(extract_text(result.data)))


def _join_parts(parts: list[Any]) -> str:
    return "\n".join(p.text for p in parts if p.text)


def extract_text(payload: Any) -> str:
    """Pull the first choice's text out of a chat-completions response."""
    if not isinstance(payload, dict):
        return ""
    choices = payload.get("choices") or []
    if not choices or not isinstance(choices[0], dict):
        return ""
    first = choices[0]
    message = first.get("message") or {}
    text = message.get("content") if isinstance(message, dict) else None
    if text is None:
        delta = first.get("delta") or {}
        text = delta.get("content") if isinstance(delta, dict) else None
    return text or ""

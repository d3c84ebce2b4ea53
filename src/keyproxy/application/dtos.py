"""Data Transfer Objects — Pydantic models for API boundaries.

DTOs handle serialisation, validation, and documentation.  They live in the
application layer because they are *not* domain objects — they adapt between
the external world and the key pool.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


# ═══════════════════════════════════════════════════════════════
#  Common
# ═══════════════════════════════════════════════════════════════
class HealthResponse(BaseModel):
    status: str = "ok"
    version: str = "0.1.0"
    environment: str = "development"
    key_count: int = 0


class KeyHealthResponse(BaseModel):
    key: str
    total_attempts: int
    total_successes: int
    consecutive_failures: int
    is_cooling: bool
    cooldown_remaining_seconds: int


class DebugKeysResponse(BaseModel):
    timestamp: str
    keys: list[KeyHealthResponse]


# ═══════════════════════════════════════════════════════════════
#  Generate (OpenAI-style chat proxy)
# ═══════════════════════════════════════════════════════════════
class GenerateRequest(BaseModel):
    prompt: str = Field(..., min_length=1)
    system: str | None = None
    model: str | None = None
    temperature: float | None = None
    max_tokens: int | None = None


# ═══════════════════════════════════════════════════════════════
#  Gemini-compatible proxy
# ═══════════════════════════════════════════════════════════════
class GeminiPart(BaseModel):
    model_config = ConfigDict(extra="allow")

    text: str | None = None


class GeminiContent(BaseModel):
    role: str | None = None
    parts: list[GeminiPart] = Field(default_factory=list)


class GeminiSystemInstruction(BaseModel):
    parts: list[GeminiPart] = Field(default_factory=list)


class GeminiGenerationConfig(BaseModel):
    model_config = ConfigDict(extra="allow")

    response_mime_type: str | None = None


class GeminiRequest(BaseModel):
    """Body shaped like Google's ``generateContent`` request."""

    model_config = ConfigDict(extra="ignore", protected_namespaces=())

    contents: list[GeminiContent] = Field(default_factory=list)
    system_instruction: GeminiSystemInstruction | None = None
    generation_config: GeminiGenerationConfig | None = None


def candidates_envelope(text: str) -> dict[str, Any]:
    """Wrap plain text as a ``generateContent``-style response."""
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}

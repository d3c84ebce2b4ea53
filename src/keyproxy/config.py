"""Key proxy — application configuration."""

from __future__ import annotations

import enum
from typing import Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from keyproxy.adapters.outbound.llm import DEFAULT_MODEL_API_URL
from keyproxy.shared.keypool.types import RATE_LIMIT_COOLDOWN_MS


class Environment(str, enum.Enum):
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


class Settings(BaseSettings):
    """Centralised, validated configuration loaded from environment / .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        protected_namespaces=(),
    )

    # ── Application ──────────────────────────────────────────
    app_name: str = "genai-key-proxy"
    app_env: Environment = Environment.DEVELOPMENT
    log_level: str = "INFO"
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])

    # ── Credentials (single slot + numbered slots) ───────────
    gemini_api_key: str = ""
    gemini_api_key1: str = ""
    gemini_api_key2: str = ""
    gemini_api_key3: str = ""
    gemini_api_key4: str = ""
    gemini_api_key5: str = ""
    gemini_api_key6: str = ""
    gemini_api_key7: str = ""
    gemini_api_key8: str = ""
    gemini_api_key9: str = ""
    gemini_api_key10: str = ""

    # ── Upstream ─────────────────────────────────────────────
    model_api_url: str = DEFAULT_MODEL_API_URL
    request_timeout_ms: int = 10_000
    max_retries: int = 2
    key_cooldown_ms: int = RATE_LIMIT_COOLDOWN_MS
    default_model: str = "gpt-3.5-turbo"
    compat_model: str = "doubao-seed-1-6-flash-250828"

    # ── Admin ────────────────────────────────────────────────
    admin_token: str = ""

    # ── Derived helpers ──────────────────────────────────────
    @property
    def is_production(self) -> bool:
        return self.app_env == Environment.PRODUCTION

    @property
    def request_timeout_s(self) -> float:
        return self.request_timeout_ms / 1000

    def credential_slots(self) -> list[str]:
        """Raw credential values in slot order: single slot first, then 1..10."""
        slots = [self.gemini_api_key]
        slots.extend(getattr(self, f"gemini_api_key{i}") for i in range(1, 11))
        return slots

    @field_validator("log_level")
    @classmethod
    def _upper_log_level(cls, v: str) -> str:
        return v.upper()

    @field_validator("request_timeout_ms", "key_cooldown_ms")
    @classmethod
    def _positive_ms(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("must be a positive number of milliseconds")
        return v

    @field_validator("max_retries")
    @classmethod
    def _non_negative_retries(cls, v: int) -> int:
        if v < 0:
            raise ValueError("max_retries must be >= 0")
        return v


def get_settings(**overrides: Any) -> Settings:
    """Factory that allows test-time overrides."""
    return Settings(**overrides)

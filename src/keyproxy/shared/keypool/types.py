"""Core types for the API key pool."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any

# ── Policy constants ─────────────────────────────────────────
FAILURE_THRESHOLD = 3
DEFAULT_COOLDOWN_MS = 10 * 60 * 1000  # generic failures
RATE_LIMIT_COOLDOWN_MS = 60_000  # default for KEY_COOLDOWN_MS
SNIPPET_MAX_CHARS = 200


class OutcomeKind(str, enum.Enum):
    """Classification of a single upstream attempt."""

    SUCCESS = "success"
    RATE_LIMITED = "rate_limited"
    CLIENT_ERROR = "client_error"
    SERVER_ERROR = "server_error"
    NETWORK_ERROR = "network_error"
    TIMEOUT = "timeout"

    @property
    def is_transient(self) -> bool:
        return self in _TRANSIENT


_TRANSIENT = frozenset(
    {
        OutcomeKind.RATE_LIMITED,
        OutcomeKind.SERVER_ERROR,
        OutcomeKind.NETWORK_ERROR,
        OutcomeKind.TIMEOUT,
    }
)


class ErrorKind(str, enum.Enum):
    """Error kinds surfaced to callers of the dispatcher."""

    NO_KEYS_CONFIGURED = "no_keys_configured"
    INVALID_REQUEST = "invalid_request"
    RATE_LIMITED = "rate_limited"
    UPSTREAM_SERVER_ERROR = "upstream_server_error"
    NETWORK_ERROR = "network_error"
    TIMEOUT = "timeout"
    UPSTREAM_CLIENT_ERROR = "upstream_client_error"
    ALL_RETRIES_FAILED = "all_retries_failed"

    @classmethod
    def from_outcome(cls, kind: OutcomeKind) -> ErrorKind:
        return _OUTCOME_TO_ERROR[kind]


_OUTCOME_TO_ERROR = {
    OutcomeKind.RATE_LIMITED: ErrorKind.RATE_LIMITED,
    OutcomeKind.SERVER_ERROR: ErrorKind.UPSTREAM_SERVER_ERROR,
    OutcomeKind.NETWORK_ERROR: ErrorKind.NETWORK_ERROR,
    OutcomeKind.TIMEOUT: ErrorKind.TIMEOUT,
    OutcomeKind.CLIENT_ERROR: ErrorKind.UPSTREAM_CLIENT_ERROR,
}


@dataclass
class CredentialHealth:
    """Mutable health record for one credential."""

    consecutive_failures: int = 0
    cooldown_until: float = 0.0
    total_attempts: int = 0
    total_successes: int = 0


@dataclass(frozen=True)
class KeyHealthSnapshot:
    """Read-only, masked view of a credential's health for diagnostics."""

    masked_key: str
    total_attempts: int
    total_successes: int
    consecutive_failures: int
    is_cooling: bool
    cooldown_remaining_seconds: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.masked_key,
            "total_attempts": self.total_attempts,
            "total_successes": self.total_successes,
            "consecutive_failures": self.consecutive_failures,
            "is_cooling": self.is_cooling,
            "cooldown_remaining_seconds": self.cooldown_remaining_seconds,
        }


@dataclass(frozen=True)
class UpstreamRequest:
    """Outbound chat-completions request, independent of the credential.

    Attributes:
        model:     Upstream model identifier.
        messages:  Chat messages (``{"role", "content"}`` dicts).
        params:    Generation parameters merged into the body
                   (temperature, max_tokens, response_format, ...).
    """

    model: str
    messages: tuple[dict[str, Any], ...] = ()
    params: dict[str, Any] = field(default_factory=dict)

    def to_body(self) -> dict[str, Any]:
        return {"model": self.model, "messages": list(self.messages), **self.params}


@dataclass(frozen=True)
class UpstreamOutcome:
    """Tagged result of one outbound attempt, decided at the HTTP boundary."""

    kind: OutcomeKind
    status_code: int = 0
    payload: Any = None
    detail: str = ""

    @classmethod
    def success(cls, status_code: int, payload: Any) -> UpstreamOutcome:
        return cls(OutcomeKind.SUCCESS, status_code, payload, "Success")

    @classmethod
    def rate_limited(cls, detail: str = "Rate Limit (429)") -> UpstreamOutcome:
        return cls(OutcomeKind.RATE_LIMITED, 429, None, detail)

    @classmethod
    def client_error(cls, status_code: int, detail: str) -> UpstreamOutcome:
        return cls(OutcomeKind.CLIENT_ERROR, status_code, None, detail)

    @classmethod
    def server_error(cls, status_code: int, detail: str) -> UpstreamOutcome:
        return cls(OutcomeKind.SERVER_ERROR, status_code, None, detail)

    @classmethod
    def network_error(cls, detail: str) -> UpstreamOutcome:
        return cls(OutcomeKind.NETWORK_ERROR, 0, None, detail)

    @classmethod
    def timeout(cls, detail: str = "timeout") -> UpstreamOutcome:
        return cls(OutcomeKind.TIMEOUT, 408, None, detail)


@dataclass(frozen=True)
class DispatchResult:
    """Terminal result of one dispatch: a payload or a structured error."""

    ok: bool
    data: Any = None
    error: ErrorKind | None = None
    detail: str = ""
    status_code: int = 200
    attempts: int = 0
    last_error: ErrorKind | None = None

    def to_dict(self) -> dict[str, Any]:
        if self.ok:
            return {"ok": True, "data": self.data}
        body: dict[str, Any] = {
            "ok": False,
            "error": self.error.value if self.error else None,
            "detail": self.detail,
        }
        if self.last_error is not None:
            body["last_error"] = self.last_error.value
        return body


def mask_key(key: str | None) -> str:
    """Show only the last 4 characters of a credential."""
    if not key or len(key) < 5:
        return "****"
    return "..." + key[-4:]

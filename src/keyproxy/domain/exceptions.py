"""Domain-specific exception hierarchy.

All exceptions inherit from ``DomainError`` so callers can catch the entire
family in one clause while still discriminating on subclass. ``code`` is the
wire-level error kind returned to HTTP clients.
"""

from __future__ import annotations


class DomainError(Exception):
    """Base class for all domain-layer errors."""

    def __init__(self, message: str, *, code: str = "domain_error") -> None:
        self.message = message
        self.code = code
        super().__init__(message)


# ── Validation ───────────────────────────────────────────────
class InvalidRequestError(DomainError):
    """Inbound payload is malformed; never retried, no key penalty."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="invalid_request")


# ── Auth ─────────────────────────────────────────────────────
class AuthorisationError(DomainError):
    def __init__(self, message: str = "forbidden") -> None:
        super().__init__(message, code="forbidden")


# ── Configuration ────────────────────────────────────────────
class NoKeysConfiguredError(DomainError):
    """Raised before any request work when the key pool is empty."""

    def __init__(self, message: str = "No API keys configured") -> None:
        super().__init__(message, code="no_keys_configured")

"""Key pool — the per-process context bundling store, health and selector.

Exactly one pool should exist per process (it is created by ``create_app``
and stored on ``app.state``). State lives in memory only: a cold start or
restart begins with every key healthy and every counter at zero.
"""

from __future__ import annotations

import hmac
from typing import Any, Iterable

from keyproxy.domain.exceptions import AuthorisationError
from keyproxy.shared.keypool.health import Clock, HealthTracker, wall_clock_ms
from keyproxy.shared.keypool.key_store import KeyStore
from keyproxy.shared.keypool.selector import KeySelector
from keyproxy.shared.keypool.types import (
    DEFAULT_COOLDOWN_MS,
    FAILURE_THRESHOLD,
    KeyHealthSnapshot,
)


class KeyPool:
    """Dependency-injected key pool shared by concurrent requests."""

    def __init__(
        self,
        store: KeyStore,
        *,
        failure_threshold: int = FAILURE_THRESHOLD,
        default_cooldown_ms: float = DEFAULT_COOLDOWN_MS,
        clock: Clock = wall_clock_ms,
        admin_token: str = "",
    ) -> None:
        self.store = store
        self.health = HealthTracker(
            store.credentials,
            failure_threshold=failure_threshold,
            default_cooldown_ms=default_cooldown_ms,
            clock=clock,
        )
        self.selector = KeySelector(store, self.health)
        self._admin_token = admin_token

    @classmethod
    def from_values(cls, raw_values: Iterable[str | None], **kwargs: Any) -> KeyPool:
        return cls(KeyStore.load(raw_values), **kwargs)

    def count(self) -> int:
        return self.store.count()

    def debug_snapshot(self, auth_token: str | None) -> list[KeyHealthSnapshot]:
        """Health snapshot gated by the admin token.

        Raises:
            AuthorisationError: token missing, wrong, or no admin token configured.
        """
        if not self._admin_token or not auth_token:
            raise AuthorisationError("forbidden")
        if not hmac.compare_digest(auth_token.encode(), self._admin_token.encode()):
            raise AuthorisationError("forbidden")
        return self.health.snapshot()

"""Per-credential health tracker with threshold-triggered cooldowns.

State machine per credential:
    HEALTHY  → (FAILURE_THRESHOLD consecutive failures) → COOLING
    COOLING  → (cooldown_until passes)                  → HEALTHY
    any      → (one success)                            → HEALTHY, counters cleared
"""

from __future__ import annotations

import math
import threading
import time
from typing import Callable, Iterable

import structlog

from keyproxy.shared.keypool.types import (
    DEFAULT_COOLDOWN_MS,
    FAILURE_THRESHOLD,
    CredentialHealth,
    KeyHealthSnapshot,
    mask_key,
)
from keyproxy.shared.observability.metrics import KEY_COOLDOWNS_TOTAL

logger = structlog.get_logger(__name__)

Clock = Callable[[], float]


def wall_clock_ms() -> float:
    return time.time() * 1000


class _Entry:
    __slots__ = ("health", "lock")

    def __init__(self) -> None:
        self.health = CredentialHealth()
        self.lock = threading.Lock()


class HealthTracker:
    """Thread-safe health records, one lock per credential."""

    def __init__(
        self,
        credentials: Iterable[str],
        *,
        failure_threshold: int = FAILURE_THRESHOLD,
        default_cooldown_ms: float = DEFAULT_COOLDOWN_MS,
        clock: Clock = wall_clock_ms,
    ) -> None:
        self._failure_threshold = failure_threshold
        self._default_cooldown_ms = default_cooldown_ms
        self._clock = clock
        # Insertion order follows the key store, snapshot relies on it.
        self._entries: dict[str, _Entry] = {key: _Entry() for key in credentials}

    def now(self) -> float:
        return self._clock()

    # ── Recording ────────────────────────────────────────────
    def report_success(self, credential: str) -> None:
        """Fully rehabilitate a credential, even mid-cooldown."""
        entry = self._entries.get(credential)
        if entry is None:
            return
        with entry.lock:
            was_cooling = entry.health.cooldown_until > 0
            entry.health.consecutive_failures = 0
            entry.health.cooldown_until = 0.0
            entry.health.total_successes += 1
        if was_cooling:
            logger.info("key_cooldown_cleared", key=mask_key(credential))

    def report_failure(self, credential: str, *, cooldown_ms: float | None = None) -> None:
        """Count a failure; start a cooldown once the threshold is reached."""
        entry = self._entries.get(credential)
        if entry is None:
            return
        duration = self._default_cooldown_ms if cooldown_ms is None else cooldown_ms
        with entry.lock:
            entry.health.consecutive_failures += 1
            failures = entry.health.consecutive_failures
            tripped = failures >= self._failure_threshold
            if tripped:
                entry.health.cooldown_until = self._clock() + duration
        if tripped:
            KEY_COOLDOWNS_TOTAL.inc()
            logger.warning(
                "key_cooldown_started",
                key=mask_key(credential),
                failures=failures,
                cooldown_s=round(duration / 1000, 1),
            )

    def record_attempt(self, credential: str) -> None:
        entry = self._entries.get(credential)
        if entry is None:
            return
        with entry.lock:
            entry.health.total_attempts += 1

    # ── Queries ──────────────────────────────────────────────
    def is_healthy(self, credential: str, now: float | None = None) -> bool:
        entry = self._entries.get(credential)
        if entry is None:
            return False
        current = self._clock() if now is None else now
        return entry.health.cooldown_until <= current

    def cooldown_until(self, credential: str) -> float:
        entry = self._entries.get(credential)
        return entry.health.cooldown_until if entry else 0.0

    def get(self, credential: str) -> CredentialHealth | None:
        """Return a copy of the credential's health record."""
        entry = self._entries.get(credential)
        if entry is None:
            return None
        with entry.lock:
            h = entry.health
            return CredentialHealth(
                consecutive_failures=h.consecutive_failures,
                cooldown_until=h.cooldown_until,
                total_attempts=h.total_attempts,
                total_successes=h.total_successes,
            )

    def snapshot(self) -> list[KeyHealthSnapshot]:
        """Masked diagnostics for every credential, in store order."""
        now = self._clock()
        results: list[KeyHealthSnapshot] = []
        for key, entry in self._entries.items():
            with entry.lock:
                h = entry.health
                remaining = max(0.0, h.cooldown_until - now)
                results.append(
                    KeyHealthSnapshot(
                        masked_key=mask_key(key),
                        total_attempts=h.total_attempts,
                        total_successes=h.total_successes,
                        consecutive_failures=h.consecutive_failures,
                        is_cooling=remaining > 0,
                        cooldown_remaining_seconds=math.ceil(remaining / 1000),
                    )
                )
        return results

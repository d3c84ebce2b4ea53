"""Key selector — round-robin over healthy keys with a degraded fallback.

When every key is cooling the selector still returns one (the key that
recovers soonest) so the service keeps trying and heals as cooldowns expire.
"""

from __future__ import annotations

import threading

import structlog

from keyproxy.shared.keypool.health import HealthTracker
from keyproxy.shared.keypool.key_store import KeyStore
from keyproxy.shared.keypool.types import mask_key
from keyproxy.shared.observability.metrics import KEY_DEGRADED_SELECTIONS_TOTAL

logger = structlog.get_logger(__name__)


class KeySelector:
    """Selects one usable credential per request attempt."""

    def __init__(self, store: KeyStore, health: HealthTracker) -> None:
        self._store = store
        self._health = health
        self._rr_index = 0
        self._lock = threading.Lock()

    @property
    def cursor(self) -> int:
        return self._rr_index

    def select(self) -> str | None:
        """Return the next credential, or ``None`` if none are configured."""
        count = self._store.count()
        if count == 0:
            return None

        now = self._health.now()
        with self._lock:
            start_index = self._rr_index
            selected: str | None = None

            for i in range(count):
                idx = (start_index + i) % count
                key = self._store[idx]
                if not self._health.is_healthy(key, now):
                    continue
                selected = key
                self._rr_index = (idx + 1) % count
                break

            degraded = selected is None
            if degraded:
                # Scan from the cursor so tied keys take turns.
                best_idx = start_index % count
                best_until = self._health.cooldown_until(self._store[best_idx])
                for i in range(1, count):
                    idx = (start_index + i) % count
                    until = self._health.cooldown_until(self._store[idx])
                    if until < best_until:
                        best_idx, best_until = idx, until
                selected = self._store[best_idx]
                self._rr_index = (best_idx + 1) % count

        if degraded:
            KEY_DEGRADED_SELECTIONS_TOTAL.inc()
            logger.warning(
                "key_pool_degraded_selection",
                key=mask_key(selected),
                key_count=count,
            )

        self._health.record_attempt(selected)
        return selected

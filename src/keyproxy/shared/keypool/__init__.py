"""API key pool.

Round-robin key selection, per-key failure counting, cooldowns, degraded
selection when every key is cooling, and the bounded retry loop that ties
them to the upstream model API.
"""

from keyproxy.shared.keypool.types import (
    DEFAULT_COOLDOWN_MS,
    FAILURE_THRESHOLD,
    CredentialHealth,
    DispatchResult,
    ErrorKind,
    KeyHealthSnapshot,
    OutcomeKind,
    UpstreamOutcome,
    UpstreamRequest,
    mask_key,
)
from keyproxy.shared.keypool.key_store import KeyStore
from keyproxy.shared.keypool.health import HealthTracker
from keyproxy.shared.keypool.selector import KeySelector
from keyproxy.shared.keypool.pool import KeyPool
from keyproxy.shared.keypool.dispatcher import RequestDispatcher

__all__ = [
    "DEFAULT_COOLDOWN_MS",
    "FAILURE_THRESHOLD",
    "CredentialHealth",
    "DispatchResult",
    "ErrorKind",
    "HealthTracker",
    "KeyHealthSnapshot",
    "KeyPool",
    "KeySelector",
    "KeyStore",
    "OutcomeKind",
    "RequestDispatcher",
    "UpstreamOutcome",
    "UpstreamRequest",
    "mask_key",
]

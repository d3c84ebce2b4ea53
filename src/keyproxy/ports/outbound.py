"""Outbound ports — interfaces that infrastructure adapters must implement.

These are the *driven* ports in hexagonal architecture.  The key pool and
application layers depend only on these abstractions, never on concrete
HTTP clients.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from keyproxy.shared.keypool.types import UpstreamOutcome, UpstreamRequest


# ═══════════════════════════════════════════════════════════════
#  Upstream model API port
# ═══════════════════════════════════════════════════════════════
class UpstreamPort(ABC):
    """One outbound call to the model API with a given key."""

    @abstractmethod
    async def send(self, api_key: str, request: UpstreamRequest) -> UpstreamOutcome:
        """Perform the call and classify the result; must not raise for HTTP errors."""
        ...

    @abstractmethod
    async def close(self) -> None: ...

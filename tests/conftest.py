"""Shared test fixtures."""

from __future__ import annotations

import os
import sys
from typing import Any, Awaitable, Callable, Union

import pytest

# Add src to path so imports work
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "../src")))

from keyproxy.shared.keypool import KeyPool, UpstreamOutcome, UpstreamRequest

T0 = 1_700_000_000_000.0


class FakeClock:
    """Millisecond clock under test control."""

    def __init__(self, start: float = T0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


Step = Union[UpstreamOutcome, BaseException, Callable[[str, UpstreamRequest], Awaitable[UpstreamOutcome]]]


class ScriptedUpstream:
    """Fake ``send`` that replays a script of outcomes; the last step repeats."""

    def __init__(self, *steps: Step) -> None:
        self._steps = list(steps)
        self.calls: list[str] = []
        self.requests: list[UpstreamRequest] = []

    async def send(self, api_key: str, request: UpstreamRequest) -> UpstreamOutcome:
        self.calls.append(api_key)
        self.requests.append(request)
        step = self._steps.pop(0) if len(self._steps) > 1 else self._steps[0]
        if isinstance(step, BaseException):
            raise step
        if callable(step):
            return await step(api_key, request)
        return step


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_pool(clock: FakeClock) -> Callable[..., KeyPool]:
    def _make(*keys: str, **kwargs: Any) -> KeyPool:
        kwargs.setdefault("clock", clock)
        return KeyPool.from_values(keys, **kwargs)

    return _make


@pytest.fixture
def chat_request() -> UpstreamRequest:
    return UpstreamRequest(
        model="gpt-4o-mini",
        messages=({"role": "user", "content": "hello"},),
        params={"temperature": 0.1, "max_tokens": 50},
    )


def ok_outcome(text: str = "hi") -> UpstreamOutcome:
    return UpstreamOutcome.success(200, {"choices": [{"message": {"content": text}}]})


@pytest.fixture
def scripted() -> type[ScriptedUpstream]:
    return ScriptedUpstream


@pytest.fixture
def ok() -> Callable[..., UpstreamOutcome]:
    return ok_outcome

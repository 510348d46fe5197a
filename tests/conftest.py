from __future__ import annotations

import asyncio

import pytest

from metricz.visibility import VisibilitySignal


class FakeClock:
    """Monotonic clock the tests move by hand (seconds)."""

    def __init__(self, now: float = 100.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


async def settle(rounds: int = 10) -> None:
    """Let pending poll tasks run to their next suspension point."""
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def visibility() -> VisibilitySignal:
    return VisibilitySignal()

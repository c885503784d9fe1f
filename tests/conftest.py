# tests/conftest.py
"""
Shared pytest fixtures and configuration for predictive_loader tests.
"""

import asyncio
import logging

import pytest

from predictive_loader.loading import SimulatedFetcher
from predictive_loader.models import HintKind, RegisteredEntity

# Configure logging for tests
logging.basicConfig(level=logging.WARNING)
logging.getLogger("predictive_loader").setLevel(logging.DEBUG)


class FakeClock:
    """Manually advanced clock in epoch seconds."""

    def __init__(self, start: float = 1_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class ManualFetcher:
    """Fetcher whose loads complete only when the test says so."""

    def __init__(self):
        self.pending: dict[str, asyncio.Future] = {}
        self.hints: list[tuple[str, HintKind, str]] = []
        self.cleared: list[str] = []
        self.fail_hints = False

    def hint(self, entity_id: str, kind: HintKind, locator: str) -> None:
        if self.fail_hints:
            raise RuntimeError("hint rejected")
        self.hints.append((entity_id, kind, locator))

    def clear_hint(self, entity_id: str) -> None:
        self.cleared.append(entity_id)

    async def fetch(self, locator, estimated_ms: float) -> float:
        future = asyncio.get_running_loop().create_future()
        self.pending[locator] = future
        return await future

    def complete(self, locator: str, elapsed_ms: float = 1.0) -> None:
        self.pending.pop(locator).set_result(elapsed_ms)

    def fail(self, locator: str, exc: Exception) -> None:
        self.pending.pop(locator).set_exception(exc)


async def _settle(rounds: int = 5) -> None:
    """Let scheduled tasks and their callbacks run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fetcher():
    return SimulatedFetcher(time_scale=0)


@pytest.fixture
def manual_fetcher():
    return ManualFetcher()


@pytest.fixture
def settle():
    """Coroutine function that yields to the loop a few times."""
    return _settle


@pytest.fixture
def entities():
    """Five plain entities A..E."""
    return [RegisteredEntity(id=name, size_kb=10, locator=f"/static/{name}.js") for name in "ABCDE"]

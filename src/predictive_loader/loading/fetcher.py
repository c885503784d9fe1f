# predictive_loader/loading/fetcher.py
"""
Resource fetcher protocol and a simulated implementation.

The scheduler never touches the platform directly. Hints are fire-and-forget
side effects; ``fetch`` is the only awaited operation and returns the
elapsed time in milliseconds.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Protocol, runtime_checkable

from predictive_loader.models import HintKind

logger = logging.getLogger(__name__)


@runtime_checkable
class ResourceFetcher(Protocol):
    """Side effects the scheduler drives for each entity."""

    def hint(self, entity_id: str, kind: HintKind, locator: str) -> None: ...

    def clear_hint(self, entity_id: str) -> None: ...

    async def fetch(self, locator: str | None, estimated_ms: float) -> float: ...


class SimulatedFetcher:
    """
    Fetcher that sleeps for the estimated load time.

    ``time_scale`` multiplies the sleep; 0 completes on the next loop
    iteration, which keeps tests fast while preserving async ordering.
    Hints are tracked in ``active_hints`` so callers can inspect them.
    """

    def __init__(self, time_scale: float = 1.0) -> None:
        self.time_scale = time_scale
        self.active_hints: dict[str, tuple[HintKind, str]] = {}
        self.fetched: list[str | None] = []

    def hint(self, entity_id: str, kind: HintKind, locator: str) -> None:
        self.active_hints[entity_id] = (kind, locator)
        logger.debug("Hint %s for %s -> %s", kind.value, entity_id, locator)

    def clear_hint(self, entity_id: str) -> None:
        self.active_hints.pop(entity_id, None)

    async def fetch(self, locator: str | None, estimated_ms: float) -> float:
        start = time.perf_counter()
        await asyncio.sleep(max(estimated_ms, 0.0) / 1000 * self.time_scale)
        self.fetched.append(locator)
        if self.time_scale == 0:
            return estimated_ms
        return (time.perf_counter() - start) * 1000

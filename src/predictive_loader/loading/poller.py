# predictive_loader/loading/poller.py
"""
NetworkPoller - periodic network sampling for providers without push events.

Reads a provider callable on an interval and forwards the snapshot to a
sink (normally ``LoadScheduler.set_network_conditions``) only when it
differs from the last one forwarded.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable

from predictive_loader.config import DEFAULT_NETWORK_POLL_SECONDS
from predictive_loader.models import NetworkSnapshot

logger = logging.getLogger(__name__)

NetworkProvider = Callable[[], NetworkSnapshot | Awaitable[NetworkSnapshot]]
NetworkSink = Callable[[NetworkSnapshot], None]


class NetworkPoller:
    """
    Usage::

        poller = NetworkPoller(read_connection, scheduler.set_network_conditions)
        await poller.start()
        ...
        await poller.stop()
    """

    def __init__(
        self,
        provider: NetworkProvider,
        sink: NetworkSink,
        interval_seconds: float = DEFAULT_NETWORK_POLL_SECONDS,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self.provider = provider
        self.sink = sink
        self.interval_seconds = interval_seconds
        self._last: NetworkSnapshot | None = None
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def last_snapshot(self) -> NetworkSnapshot | None:
        return self._last

    async def poll_once(self) -> bool:
        """Sample the provider once. Returns True if a changed snapshot was forwarded."""
        result = self.provider()
        snapshot = await result if inspect.isawaitable(result) else result

        if snapshot == self._last:
            return False

        self._last = snapshot
        self.sink(snapshot)
        return True

    async def _run(self) -> None:
        while True:
            try:
                await self.poll_once()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Network poll failed")
            await asyncio.sleep(self.interval_seconds)

    async def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run())
        logger.info("Network poller started (every %.0fs)", self.interval_seconds)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Network poller stopped")

"""Byte-progress accounting for image pulls."""

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, Optional, Union

from ..core.types import PULL_LOG_INTERVAL_SEC

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, bool], Union[None, Awaitable[Any]]]


class LayerProgress:
    """Turns cumulative per-layer byte counts into deltas."""

    def __init__(self) -> None:
        self._layers: dict[str, int] = {}

    def update(self, layer_id: str, current: int) -> int:
        last = self._layers.get(layer_id, 0)
        self._layers[layer_id] = current
        return current - last

    @property
    def total(self) -> int:
        return sum(self._layers.values())


class ProgressAggregator:
    """Sums downloaded byte deltas and reports them periodically.

    The aggregator is ``idle`` until the first delta arrives, then
    ``reporting`` once per ``interval`` until ``close()`` moves it to
    ``stopped`` after one final report. ``feed()`` never blocks.
    """

    IDLE = "idle"
    REPORTING = "reporting"
    STOPPED = "stopped"

    def __init__(
        self,
        interval: float = PULL_LOG_INTERVAL_SEC,
        callback: Optional[ProgressCallback] = None,
    ) -> None:
        self.interval = interval
        self.callback = callback
        self.total_bytes = 0
        self.reports = 0
        self.state = self.IDLE
        self._deltas: asyncio.Queue[Optional[int]] = asyncio.Queue()

    def feed(self, delta: int) -> None:
        self._deltas.put_nowait(delta)

    def close(self) -> None:
        self._deltas.put_nowait(None)

    async def run(self) -> int:
        """Consume deltas until closed.

        Returns:
            Total number of bytes accounted for
        """
        loop = asyncio.get_event_loop()
        deadline: Optional[float] = None
        getter: Optional[asyncio.Future] = None
        try:
            while True:
                if getter is None:
                    getter = asyncio.ensure_future(self._deltas.get())
                timeout = None if deadline is None else max(deadline - loop.time(), 0)
                done, _ = await asyncio.wait({getter}, timeout=timeout)

                if not done:
                    await self._report(final=False)
                    deadline = loop.time() + self.interval
                    continue

                delta = getter.result()
                getter = None
                if delta is None:
                    break
                self.total_bytes += delta
                if self.state == self.IDLE:
                    self.state = self.REPORTING
                    deadline = loop.time() + self.interval
        finally:
            if getter is not None:
                getter.cancel()

        self.state = self.STOPPED
        await self._report(final=True)
        return self.total_bytes

    async def _report(self, final: bool) -> None:
        self.reports += 1
        kib = self.total_bytes // 1024
        if final:
            logger.info("Finished downloading image (%dKb downloaded)", kib)
        else:
            logger.info("Downloading image (%dKb downloaded)", kib)
        if self.callback:
            result = self.callback(self.total_bytes, final)
            if inspect.isawaitable(result):
                await result

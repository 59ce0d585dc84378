"""Heartbeat: keep the local agent's record from going offline."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

log = logging.getLogger(__name__)

Beat = Callable[[], Awaitable[object]]


class Heartbeat:
    """Recurring background task owned by the process entry point.

    `beat` is awaited every `interval` seconds until `stop()`. A failing beat
    is logged and the loop keeps going; only cancellation ends it.
    """

    def __init__(self, beat: Beat, interval: float = 30.0):
        self.beat = beat
        self.interval = interval
        self.beats = 0
        self.failures = 0
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> asyncio.Task:
        if self.running:
            raise RuntimeError("Heartbeat already running")
        self._task = asyncio.create_task(self._run(), name="relay-heartbeat")
        log.info(f"Heartbeat started (every {self.interval}s)")
        return self._task

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        log.info(f"Heartbeat stopped after {self.beats} beats ({self.failures} failed)")

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                await self.beat()
                self.beats += 1
            except Exception as e:
                self.failures += 1
                log.error(f"Heartbeat update failed: {e}", exc_info=True)

    async def __aenter__(self) -> Heartbeat:
        self.start()
        return self

    async def __aexit__(self, *exc) -> None:
        await self.stop()

"""Rendering-tick sources used to pace condition polling."""

from __future__ import annotations

import asyncio
import logging
from typing import Protocol

LOGGER = logging.getLogger(__name__)

DEFAULT_FRAME_INTERVAL = 1 / 60
FRAME_CLOCK_CHOICES: tuple[str, ...] = ("asyncio", "qt")


class FrameClock(Protocol):
    """Something that can suspend the caller until the next rendering frame."""

    @property
    def frames(self) -> int:
        """Number of frame callbacks delivered so far."""
        ...

    async def next_frame(self) -> None:
        ...

    async def sleep(self, delay: float) -> None:
        """Adapter for retry libraries: always waits exactly one frame."""
        ...


class AsyncioFrameClock:
    """Frame clock driven by ``call_later`` on the running asyncio loop."""

    def __init__(self, interval: float = DEFAULT_FRAME_INTERVAL) -> None:
        if interval < 0:
            raise ValueError("frame interval must not be negative")
        self._interval = float(interval)
        self._frames = 0

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def frames(self) -> int:
        return self._frames

    async def next_frame(self) -> None:
        loop = asyncio.get_running_loop()
        future: asyncio.Future[None] = loop.create_future()
        handle = loop.call_later(self._interval, self._deliver, future)
        try:
            await future
        finally:
            # A cancelled wait must not leave its frame callback behind.
            handle.cancel()

    async def sleep(self, delay: float) -> None:
        del delay
        await self.next_frame()

    def _deliver(self, future: asyncio.Future[None]) -> None:
        if future.done():
            return
        self._frames += 1
        future.set_result(None)


def create_frame_clock(kind: str = "asyncio", *, interval: float = DEFAULT_FRAME_INTERVAL) -> FrameClock:
    """Return the frame clock configured by ``kind``."""

    normalized = (kind or "asyncio").strip().lower()
    if normalized == "asyncio":
        return AsyncioFrameClock(interval)
    if normalized == "qt":
        from .qt import QtFrameClock

        return QtFrameClock(interval)
    raise ValueError(f"Unknown frame clock {kind!r}; expected one of {FRAME_CLOCK_CHOICES}")


__all__ = [
    "AsyncioFrameClock",
    "DEFAULT_FRAME_INTERVAL",
    "FRAME_CLOCK_CHOICES",
    "FrameClock",
    "create_frame_clock",
]

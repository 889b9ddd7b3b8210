"""Qt integration: a qasync event loop and a QTimer-backed frame clock."""

from __future__ import annotations

import asyncio
import logging
import os
import sys
from dataclasses import dataclass
from typing import Any, cast

from .frames import DEFAULT_FRAME_INTERVAL

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class QtRuntime:
    """Container returned by :func:`create_qt_runtime`."""

    app: Any
    loop: asyncio.AbstractEventLoop


def create_qt_runtime(*, headless: bool = True) -> QtRuntime:
    """Create (or reuse) a ``QApplication`` wrapped in a qasync event loop."""

    if headless:
        os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")
    try:  # Local import to avoid mandatory PySide6 dependency at import time.
        from PySide6.QtWidgets import QApplication
    except ImportError as exc:  # pragma: no cover - depends on desktop stack
        raise RuntimeError("PySide6 must be installed to use the Qt frame clock.") from exc

    try:
        from qasync import QEventLoop
    except ImportError as exc:  # pragma: no cover - depends on env setup
        raise RuntimeError("qasync is required to run the async Qt event loop.") from exc

    app = cast(Any, QApplication.instance() or QApplication(sys.argv[:1]))
    loop = QEventLoop(app)
    asyncio.set_event_loop(loop)
    LOGGER.debug("Created qasync loop for %s", type(app).__name__)
    return QtRuntime(app=app, loop=loop)


class QtFrameClock:
    """Frame clock backed by single-shot ``QTimer`` instances on the Qt event loop."""

    def __init__(self, interval: float = DEFAULT_FRAME_INTERVAL) -> None:
        try:
            from PySide6.QtCore import QTimer
        except ImportError as exc:  # pragma: no cover - depends on desktop stack
            raise RuntimeError("PySide6 must be installed to use the Qt frame clock.") from exc
        self._timer_cls = QTimer
        self._interval_ms = max(0, int(round(interval * 1000)))
        self._frames = 0
        self._timers: set[Any] = set()

    @property
    def frames(self) -> int:
        return self._frames

    @property
    def pending_frames(self) -> int:
        """Timers still armed for waits that have not resolved."""

        return len(self._timers)

    async def next_frame(self) -> None:
        loop = asyncio.get_running_loop()
        future: asyncio.Future[None] = loop.create_future()

        def _deliver() -> None:
            if future.done():
                return
            self._frames += 1
            future.set_result(None)

        timer = self._timer_cls()
        timer.setSingleShot(True)
        timer.timeout.connect(_deliver)
        self._timers.add(timer)
        timer.start(self._interval_ms)
        try:
            await future
        finally:
            timer.stop()
            self._timers.discard(timer)

    async def sleep(self, delay: float) -> None:
        del delay
        await self.next_frame()


__all__ = ["QtFrameClock", "QtRuntime", "create_qt_runtime"]

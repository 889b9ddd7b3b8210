"""Scenario-scoped editor sessions."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from .errors import ErrorCode, UsageError
from .flags import StateFlag, StatePredicateSet
from .surfaces import EditorSurface, WorkbenchSurface
from .waiter import ConditionWaiter

LOGGER = logging.getLogger(__name__)

OPEN_MODES: tuple[str, ...] = ("activate", "open")


class EditorSessionFixture:
    """Open editors for one scenario and guarantee they are closed afterwards.

    ``open`` only returns once the language backend reports the document as
    managed, so protocol steps never race the backend start-up.
    """

    def __init__(
        self,
        workbench: WorkbenchSurface,
        flags: StatePredicateSet,
        waiter: ConditionWaiter,
        *,
        save_on_close: bool = False,
        readiness_timeout: float | None = None,
    ) -> None:
        self._workbench = workbench
        self._flags = flags
        self._waiter = waiter
        self._save_on_close = save_on_close
        self._readiness_timeout = readiness_timeout
        self._handles: list[EditorSurface] = []

    @property
    def handles(self) -> tuple[EditorSurface, ...]:
        return tuple(self._handles)

    async def open(self, uri: str, *, mode: str = "activate", preview: bool = False) -> EditorSurface:
        if mode not in OPEN_MODES:
            raise UsageError(
                error_code=ErrorCode.INVALID_SCENARIO,
                message=f"Unsupported open mode {mode!r}; expected one of {OPEN_MODES}",
            )
        LOGGER.debug("Opening %s (mode=%s, preview=%s)", uri, mode, preview)
        editor = await self._workbench.open(uri, mode=mode, preview=preview)
        self._handles.append(editor)
        if mode == "activate":
            await self._waiter.wait_for_flag(
                self._flags,
                StateFlag.LANGUAGE_SERVICE_MANAGED,
                True,
                max_wait=self._readiness_timeout,
            )
            LOGGER.debug("Language service attached to %s", uri)
        return editor

    async def close_all(self, *, save: bool | None = None) -> None:
        """Close every editor; safe to call any number of times."""

        should_save = self._save_on_close if save is None else save
        self._handles.clear()
        await self._workbench.close_all(save=should_save)

    @asynccontextmanager
    async def scope(self) -> AsyncIterator[EditorSessionFixture]:
        """Close everything before and after the body, whatever its outcome."""

        await self.close_all()
        try:
            yield self
        finally:
            await self.close_all()


__all__ = ["EditorSessionFixture", "OPEN_MODES"]

"""Frame-paced condition waits with teardown-aware cancellation."""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from typing import Any, Awaitable, Callable

from tenacity import AsyncRetrying, RetryError, retry_if_result, stop_after_delay, stop_never, wait_none

from .disposables import DisposableCollection
from .errors import WaitTimeoutError, WaiterDisposedError
from .flags import StateFlag, StatePredicateSet, parse_flag
from .frames import FrameClock

LOGGER = logging.getLogger(__name__)

Predicate = Callable[[], "bool | Awaitable[bool]"]
Sleeper = Callable[[float], Awaitable[None]]


class ConditionWaiter:
    """Suspend the caller until a predicate holds, checking once per frame.

    Waits are unbounded unless ``max_wait`` is given; the scenario deadline owns
    the overall budget. Each pending wait registers itself in ``teardown`` so
    disposing the collection releases it together with its frame callback.
    """

    def __init__(
        self,
        clock: FrameClock,
        *,
        teardown: DisposableCollection | None = None,
        flags: StatePredicateSet | None = None,
    ) -> None:
        self._clock = clock
        self._teardown = teardown if teardown is not None else DisposableCollection()
        self._flags = flags
        self._pending = 0

    @property
    def pending(self) -> int:
        """Number of waits currently suspended."""

        return self._pending

    async def wait_for(
        self,
        predicate: Predicate,
        *,
        max_wait: float | None = None,
        description: str = "",
    ) -> None:
        """Resolve the first time ``predicate()`` is true.

        The first check happens after one frame so the host gets a chance to
        repaint after whatever action preceded the wait.

        Raises:
            WaitTimeoutError: ``max_wait`` elapsed first.
            WaiterDisposedError: the wait was released through teardown.
        """

        await self._run(
            self._poll(predicate, max_wait, description, sleep=self._clock.sleep, first_frame=True),
            description,
        )

    async def wait_for_flag(
        self,
        flags: StatePredicateSet,
        flag: StateFlag | str,
        expected: bool = True,
        *,
        max_wait: float | None = None,
    ) -> None:
        """Wait until ``flag`` reads ``expected``.

        Change notifications from the host wake the wait early; per-frame
        polling covers hosts that do not emit them for every flag.
        """

        resolved = parse_flag(flag)
        description = f"{resolved.label} == {expected}"
        changed = asyncio.Event()
        subscription = flags.on_change(changed.set)
        try:
            await self._run(
                self._poll(
                    flags.predicate(resolved, expected),
                    max_wait,
                    description,
                    sleep=lambda _delay: self._wake(changed),
                    first_frame=False,
                ),
                description,
            )
        finally:
            subscription.dispose()

    async def _run(self, poll: Awaitable[None], description: str) -> None:
        task = asyncio.ensure_future(poll)
        disposed = False

        def _dispose() -> None:
            nonlocal disposed
            if not task.done():
                disposed = True
                task.cancel()

        registration = self._teardown.push_callback(_dispose, label=description or "wait")
        self._pending += 1
        try:
            await task
        except asyncio.CancelledError:
            if disposed:
                LOGGER.debug("Wait for %s disposed before it resolved", description or "condition")
                raise WaiterDisposedError(
                    message=f"Wait for {description or 'condition'} was disposed",
                    details=self._flag_details(),
                ) from None
            raise
        finally:
            self._pending -= 1
            registration.dispose()
            if not task.done():
                task.cancel()

    async def _poll(
        self,
        predicate: Predicate,
        max_wait: float | None,
        description: str,
        *,
        sleep: Sleeper,
        first_frame: bool,
    ) -> None:
        started = time.monotonic()
        if first_frame:
            await self._clock.next_frame()
        retrying = AsyncRetrying(
            sleep=sleep,
            stop=stop_after_delay(max_wait) if max_wait is not None else stop_never,
            wait=wait_none(),
            retry=retry_if_result(lambda satisfied: not satisfied),
        )
        LOGGER.debug("Waiting for %s", description or "condition")
        try:
            await retrying(self._check, predicate)
        except RetryError:
            waited = time.monotonic() - started
            LOGGER.warning("Condition %s not met after %.2fs", description or "<anonymous>", waited)
            raise WaitTimeoutError(
                message=f"Condition {description or '<anonymous>'} not met within {max_wait}s",
                description=description,
                waited_seconds=waited,
                last_flags=self._flag_labels(),
            ) from None
        LOGGER.debug(
            "Condition %s satisfied after %.3fs",
            description or "<anonymous>",
            time.monotonic() - started,
        )

    @staticmethod
    async def _check(predicate: Predicate) -> bool:
        result: Any = predicate()
        if inspect.isawaitable(result):
            result = await result
        return bool(result)

    async def _wake(self, changed: asyncio.Event) -> None:
        frame = asyncio.ensure_future(self._clock.next_frame())
        signal = asyncio.ensure_future(changed.wait())
        try:
            await asyncio.wait({frame, signal}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            frame.cancel()
            signal.cancel()
        changed.clear()

    def _flag_labels(self) -> dict[str, bool] | None:
        if self._flags is None:
            return None
        return self._flags.snapshot_labels()

    def _flag_details(self) -> dict[str, Any]:
        labels = self._flag_labels()
        return {"flags": labels} if labels is not None else {}


__all__ = ["ConditionWaiter", "Predicate"]

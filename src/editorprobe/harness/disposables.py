"""Disposable handles used for scenario-scoped teardown."""

from __future__ import annotations

import logging
from typing import Callable, Protocol

LOGGER = logging.getLogger(__name__)


class Disposable(Protocol):
    """Anything that can release a resource exactly once."""

    def dispose(self) -> None:
        ...


class CallbackDisposable:
    """Wrap a callback so that it runs at most once."""

    __slots__ = ("_callback", "_label")

    def __init__(self, callback: Callable[[], object], *, label: str = "") -> None:
        self._callback: Callable[[], object] | None = callback
        self._label = label

    @property
    def disposed(self) -> bool:
        return self._callback is None

    def dispose(self) -> None:
        callback, self._callback = self._callback, None
        if callback is not None:
            callback()

    def __repr__(self) -> str:
        state = "disposed" if self.disposed else "live"
        return f"CallbackDisposable({self._label or '?'}, {state})"


class DisposableCollection:
    """Ordered bag of disposables released together during teardown.

    Disposing the collection is idempotent. Items are released in reverse
    registration order, and a failing item does not prevent the others from
    being released; the first error is re-raised once every item ran.
    """

    def __init__(self) -> None:
        self._items: list[Disposable] = []

    def __len__(self) -> int:
        return len(self._items)

    def push(self, item: Disposable) -> Disposable:
        """Register ``item`` and return a handle that unregisters it."""

        self._items.append(item)
        return CallbackDisposable(lambda: self._discard(item), label="unregister")

    def push_callback(self, callback: Callable[[], object], *, label: str = "") -> Disposable:
        return self.push(CallbackDisposable(callback, label=label))

    def _discard(self, item: Disposable) -> None:
        try:
            self._items.remove(item)
        except ValueError:
            pass

    def dispose(self) -> None:
        items, self._items = self._items, []
        if items:
            LOGGER.debug("Disposing %d teardown item(s)", len(items))
        first_error: BaseException | None = None
        for item in reversed(items):
            try:
                item.dispose()
            except Exception as exc:
                LOGGER.exception("Teardown item %r failed to dispose", item)
                if first_error is None:
                    first_error = exc
        if first_error is not None:
            raise first_error


__all__ = ["Disposable", "CallbackDisposable", "DisposableCollection"]

"""Collaborator interfaces consumed by the interaction engine.

The harness never reaches into editor or language-backend internals; a host
adapter implements these protocols and the engine only talks to them.
"""

from __future__ import annotations

from typing import Any, Callable, Protocol

from ..core.positions import CursorPosition, SelectionRange, WordSpan
from .disposables import Disposable


class CommandSurface(Protocol):
    """Command registry facade."""

    async def execute(self, command_id: str) -> None:
        """Run ``command_id``; resolves once its synchronous portion completes."""
        ...


class KeyDispatchSurface(Protocol):
    """Keybinding dispatch facade (synchronous, fire-and-forget)."""

    def dispatch(self, key: str, target: "InputHandle | None" = None) -> None:
        ...


class ContextFlagSurface(Protocol):
    """Context-key service facade."""

    def match(self, key: str) -> bool:
        ...

    def on_change(self, listener: Callable[[], None]) -> Disposable:
        ...


class PreferenceSurface(Protocol):
    """Preference service facade."""

    def get(self, key: str, default: Any = None) -> Any:
        ...

    def inspect_user(self, key: str) -> Any:
        """Return the value stored in the user scope, or ``None``."""
        ...

    async def set(self, key: str, value: Any, scope: str = "user") -> None:
        ...


class InputHandle(Protocol):
    """A focused text input such as the inline rename box."""

    value: str

    @property
    def selection_end(self) -> int:
        ...


class EditorSurface(Protocol):
    """One open document view."""

    @property
    def uri(self) -> str:
        ...

    @property
    def is_preview(self) -> bool:
        ...

    @property
    def closed(self) -> bool:
        ...

    def position(self) -> CursorPosition:
        ...

    def set_position(self, position: CursorPosition) -> None:
        ...

    def set_selection(self, selection: SelectionRange) -> None:
        ...

    def word_at(self, position: CursorPosition) -> WordSpan | None:
        ...

    def apply_edit(self, selection: SelectionRange, text: str) -> None:
        ...

    def hover_text(self) -> str | None:
        ...

    def lens_label(self, index: int = 0) -> str | None:
        """Rendered label of the ``index``-th code lens, ``None`` when not shown."""
        ...

    def activate_lens(self, index: int = 0) -> None:
        """Simulate a pointer activation on the ``index``-th code lens."""
        ...


class WorkbenchSurface(Protocol):
    """Editor manager facade: opening, closing and locating editors."""

    async def open(self, uri: str, *, mode: str = "activate", preview: bool = False) -> EditorSurface:
        ...

    async def close_all(self, *, save: bool = False) -> None:
        ...

    def active_editor(self) -> EditorSurface | None:
        ...

    def focused_input(self) -> InputHandle | None:
        ...


class EditorHost(Protocol):
    """Bundle of every surface a scenario needs."""

    @property
    def commands(self) -> CommandSurface:
        ...

    @property
    def keys(self) -> KeyDispatchSurface:
        ...

    @property
    def contexts(self) -> ContextFlagSurface:
        ...

    @property
    def preferences(self) -> PreferenceSurface:
        ...

    @property
    def workbench(self) -> WorkbenchSurface:
        ...


__all__ = [
    "CommandSurface",
    "ContextFlagSurface",
    "EditorHost",
    "EditorSurface",
    "InputHandle",
    "KeyDispatchSurface",
    "PreferenceSurface",
    "WorkbenchSurface",
]

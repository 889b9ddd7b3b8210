"""Named UI-state flags and the live predicate set that reads them."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Callable, Mapping

from .disposables import Disposable
from .errors import ErrorCode, InvariantViolationError, StateMismatchError, UsageError
from .surfaces import ContextFlagSurface

LOGGER = logging.getLogger(__name__)

DEFAULT_MANAGED_FLAG = "typescript.isManagedFile"


class StateFlag(Enum):
    """Closed set of boolean UI-state flags, valued by their context key."""

    TEXT_FOCUS = "editorTextFocus"
    PEEK_VISIBLE = "referenceSearchVisible"
    LIST_FOCUS = "listFocus"
    SUGGEST_VISIBLE = "suggestWidgetVisible"
    RENAME_VISIBLE = "renameInputVisible"
    PARAMETER_HINTS_VISIBLE = "parameterHintsVisible"
    HOVER_VISIBLE = "hoverVisible"
    WRITE_HIGHLIGHT_VISIBLE = "writeOccurrenceHighlight"
    # Context key is host specific, see StatePredicateSet(managed_key=...).
    LANGUAGE_SERVICE_MANAGED = "languageServiceManaged"

    @property
    def label(self) -> str:
        """Kebab-case label used in diagnostics and scenario files."""

        return self.name.lower().replace("_", "-")


class ModalSurface(Enum):
    """The single transient surface that may be shown in an editor."""

    NONE = "none"
    PEEK = "peek"
    SUGGEST = "suggest"
    RENAME = "rename"
    PARAMETER_HINTS = "parameter-hints"
    HOVER = "hover"


MODAL_FLAGS: Mapping[StateFlag, ModalSurface] = {
    StateFlag.PEEK_VISIBLE: ModalSurface.PEEK,
    StateFlag.SUGGEST_VISIBLE: ModalSurface.SUGGEST,
    StateFlag.RENAME_VISIBLE: ModalSurface.RENAME,
    StateFlag.PARAMETER_HINTS_VISIBLE: ModalSurface.PARAMETER_HINTS,
    StateFlag.HOVER_VISIBLE: ModalSurface.HOVER,
}

_LOOKUP: dict[str, StateFlag] = {}
for _flag in StateFlag:
    _LOOKUP[_flag.name] = _flag
    _LOOKUP[_flag.label] = _flag
    _LOOKUP[_flag.value] = _flag
# Labels used by older scenario files.
_LOOKUP.update(
    {
        "text-focused": StateFlag.TEXT_FOCUS,
        "reference-search-visible": StateFlag.PEEK_VISIBLE,
        "list-focused": StateFlag.LIST_FOCUS,
        "suggestions-visible": StateFlag.SUGGEST_VISIBLE,
        "rename-input-visible": StateFlag.RENAME_VISIBLE,
    }
)


def parse_flag(name: StateFlag | str) -> StateFlag:
    """Resolve an enum member, enum name, kebab label or context key."""

    if isinstance(name, StateFlag):
        return name
    if isinstance(name, str):
        flag = _LOOKUP.get(name) or _LOOKUP.get(name.strip().upper())
        if flag is not None:
            return flag
    raise UsageError(
        error_code=ErrorCode.UNKNOWN_FLAG,
        message=f"Unknown state flag {name!r}",
        details={"known": sorted(flag.label for flag in StateFlag)},
    )


class StatePredicateSet:
    """Live, never-memoised view over the host's context flags."""

    def __init__(
        self,
        surface: ContextFlagSurface,
        *,
        managed_key: str = DEFAULT_MANAGED_FLAG,
    ) -> None:
        self._surface = surface
        self._managed_key = managed_key

    def context_key(self, flag: StateFlag | str) -> str:
        resolved = parse_flag(flag)
        if resolved is StateFlag.LANGUAGE_SERVICE_MANAGED:
            return self._managed_key
        return resolved.value

    def match(self, flag: StateFlag | str) -> bool:
        """Return the current value of ``flag`` as reported by the host."""

        return bool(self._surface.match(self.context_key(flag)))

    def predicate(self, flag: StateFlag | str, expected: bool = True) -> Callable[[], bool]:
        """Return a zero-argument callable suitable for a condition wait."""

        resolved = parse_flag(flag)
        return lambda: self.match(resolved) is expected

    def on_change(self, listener: Callable[[], None]) -> Disposable:
        return self._surface.on_change(listener)

    def snapshot(self) -> dict[StateFlag, bool]:
        return {flag: self.match(flag) for flag in StateFlag}

    def snapshot_labels(self) -> dict[str, bool]:
        """Return the snapshot keyed by kebab labels for diagnostics."""

        return {flag.label: value for flag, value in self.snapshot().items()}

    def visible_modals(self) -> tuple[ModalSurface, ...]:
        return tuple(surface for flag, surface in MODAL_FLAGS.items() if self.match(flag))

    def active_modal(self) -> ModalSurface:
        """Collapse the modal flags into one tagged state.

        Raises:
            InvariantViolationError: more than one modal flag is set.
        """

        visible = self.visible_modals()
        if len(visible) > 1:
            names = tuple(surface.value for surface in visible)
            LOGGER.warning("Modal exclusivity violated: %s", ", ".join(names))
            raise InvariantViolationError(
                message=f"Several modal surfaces are visible at once: {', '.join(names)}",
                details={"flags": self.snapshot_labels()},
                visible=names,
            )
        return visible[0] if visible else ModalSurface.NONE

    def assert_exclusive(self) -> None:
        self.active_modal()

    def expect(self, expected: Mapping[StateFlag | str, bool], *, phase: str = "after") -> None:
        """Compare ``expected`` against live values, reporting every mismatch."""

        mismatches: dict[str, tuple[bool, bool]] = {}
        for name, wanted in expected.items():
            flag = parse_flag(name)
            actual = self.match(flag)
            if actual is not bool(wanted):
                mismatches[flag.label] = (bool(wanted), actual)
        if mismatches:
            summary = ", ".join(
                f"{label}: expected {want}, got {got}" for label, (want, got) in mismatches.items()
            )
            raise StateMismatchError(
                message=f"Unexpected state {phase} step ({summary})",
                details={"flags": self.snapshot_labels()},
                phase=phase,
                mismatches=dict(mismatches),
            )


__all__ = [
    "DEFAULT_MANAGED_FLAG",
    "MODAL_FLAGS",
    "ModalSurface",
    "StateFlag",
    "StatePredicateSet",
    "parse_flag",
]

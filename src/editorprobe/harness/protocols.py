"""Interaction protocols: ordered trigger / expected-state steps per feature.

Each protocol is a linear state machine. ``states`` names the state before the
first step and after every step, so a protocol with ``n`` steps has ``n + 1``
states and never transitions backwards.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Awaitable, Callable, Mapping, Sequence, Union

from ..core.positions import CursorPosition, SelectionRange
from .disposables import DisposableCollection
from .errors import ErrorCode, StateMismatchError, UsageError
from .flags import StateFlag, StatePredicateSet, parse_flag
from .surfaces import EditorHost, EditorSurface

LOGGER = logging.getLogger(__name__)

REVEAL_DEFINITION = "editor.action.revealDefinition"
PEEK_DEFINITION = "editor.action.peekDefinition"
GO_TO_IMPLEMENTATION = "editor.action.goToImplementation"
GO_TO_TYPE_DEFINITION = "editor.action.goToTypeDefinition"
TRIGGER_SUGGEST = "editor.action.triggerSuggest"
RENAME = "editor.action.rename"
TRIGGER_PARAMETER_HINTS = "editor.action.triggerParameterHints"
SHOW_HOVER = "editor.action.showHover"
REFERENCES_CODE_LENS_PREFERENCE = "javascript.referencesCodeLens.enabled"


def _flags(values: Mapping[StateFlag | str, bool] | None = None, **kwargs: bool) -> Mapping[StateFlag, bool]:
    merged: dict[StateFlag, bool] = {}
    for name, value in (values or {}).items():
        merged[parse_flag(name)] = bool(value)
    for name, value in kwargs.items():
        merged[parse_flag(name)] = bool(value)
    return MappingProxyType(merged)


# -----------------------------------------------------------------------------
# Step context
# -----------------------------------------------------------------------------


@dataclass(slots=True)
class StepContext:
    """Everything a trigger may touch while a scenario runs."""

    host: EditorHost
    flags: StatePredicateSet
    teardown: DisposableCollection
    cleanups: list[Callable[[], Awaitable[None]]] = field(default_factory=list)
    pending: list[asyncio.Future[Any]] = field(default_factory=list)

    def active_editor(self) -> EditorSurface:
        editor = self.host.workbench.active_editor()
        if editor is None or editor.closed:
            raise UsageError(
                error_code=ErrorCode.SESSION_CLOSED,
                message="No open editor to act on; the session was closed",
            )
        return editor

    async def join_pending(self) -> None:
        """Await detached commands started by earlier triggers."""

        pending, self.pending = self.pending, []
        for future in pending:
            await future


# -----------------------------------------------------------------------------
# Triggers
# -----------------------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class CommandTrigger:
    """Execute a command; ``detach`` keeps it running across the next wait."""

    command_id: str
    detach: bool = False

    def describe(self) -> str:
        return f"command {self.command_id}"

    async def fire(self, context: StepContext) -> None:
        context.active_editor()
        if self.detach:
            context.pending.append(asyncio.ensure_future(context.host.commands.execute(self.command_id)))
            return
        await context.host.commands.execute(self.command_id)


@dataclass(slots=True, frozen=True)
class KeyTrigger:
    """Dispatch a key, optionally to the focused input instead of the editor."""

    key: str
    to_input: bool = False

    def describe(self) -> str:
        return f"key {self.key}"

    async def fire(self, context: StepContext) -> None:
        context.active_editor()
        target = context.host.workbench.focused_input() if self.to_input else None
        context.host.keys.dispatch(self.key, target)


@dataclass(slots=True, frozen=True)
class EditTrigger:
    """Replace ``selection`` in the active document with ``text``."""

    selection: SelectionRange
    text: str

    def describe(self) -> str:
        return f"edit {self.selection.start}-{self.selection.end} -> {self.text!r}"

    async def fire(self, context: StepContext) -> None:
        context.active_editor().apply_edit(self.selection, self.text)


@dataclass(slots=True, frozen=True)
class PreferenceTrigger:
    """Set a preference, restoring the user-scope value during teardown."""

    key: str
    value: Any
    scope: str = "user"
    restore: bool = True

    def describe(self) -> str:
        return f"preference {self.key}={self.value!r}"

    async def fire(self, context: StepContext) -> None:
        preferences = context.host.preferences
        if self.restore:
            previous = preferences.inspect_user(self.key)

            async def _restore() -> None:
                await preferences.set(self.key, previous, self.scope)

            context.cleanups.append(_restore)
        await preferences.set(self.key, self.value, self.scope)


@dataclass(slots=True, frozen=True)
class InputCommit:
    """Type ``text`` into the focused input and confirm it with ``key``."""

    text: str
    key: str = "Enter"

    def describe(self) -> str:
        return f"input {self.text!r} + {self.key}"

    async def fire(self, context: StepContext) -> None:
        target = context.host.workbench.focused_input()
        if target is None:
            raise StateMismatchError(
                message="Expected a focused input to commit into",
                phase="before",
                mismatches={"focused-input": ("input", None)},
            )
        target.value = self.text
        context.host.keys.dispatch(self.key, target)


@dataclass(slots=True, frozen=True)
class LensActivation:
    """Simulate a pointer activation on a code lens of the active editor."""

    index: int = 0

    def describe(self) -> str:
        return f"activate code lens #{self.index}"

    async def fire(self, context: StepContext) -> None:
        context.active_editor().activate_lens(self.index)


@dataclass(slots=True, frozen=True)
class Conjunction:
    """Fire several independent preconditions before a single wait."""

    triggers: tuple["Trigger", ...]

    def describe(self) -> str:
        return " + ".join(trigger.describe() for trigger in self.triggers)

    async def fire(self, context: StepContext) -> None:
        for trigger in self.triggers:
            await trigger.fire(context)


Trigger = Union[CommandTrigger, KeyTrigger, EditTrigger, PreferenceTrigger, InputCommit, LensActivation, Conjunction]


# -----------------------------------------------------------------------------
# Waits and steps
# -----------------------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class WaitCondition:
    """Declarative condition a step waits for after firing its trigger."""

    flags: Mapping[StateFlag, bool] = field(default_factory=dict)
    lens_visible: bool | None = None
    input_selection_end: int | None = None
    cursor: CursorPosition | None = None
    uri: str | None = None

    @property
    def trivial(self) -> bool:
        return (
            not self.flags
            and self.lens_visible is None
            and self.input_selection_end is None
            and self.cursor is None
            and self.uri is None
        )

    def describe(self) -> str:
        parts = [f"{flag.label}={value}" for flag, value in self.flags.items()]
        if self.lens_visible is not None:
            parts.append(f"lens-visible={self.lens_visible}")
        if self.input_selection_end is not None:
            parts.append(f"input-selection-end={self.input_selection_end}")
        if self.cursor is not None:
            parts.append(f"cursor={self.cursor}")
        if self.uri is not None:
            parts.append(f"uri={self.uri}")
        return ", ".join(parts) or "nothing"

    def satisfied(self, context: StepContext) -> bool:
        for flag, expected in self.flags.items():
            if context.flags.match(flag) is not expected:
                return False
        editor = context.host.workbench.active_editor()
        if self.lens_visible is not None:
            if editor is None or (editor.lens_label(0) is not None) is not self.lens_visible:
                return False
        if self.input_selection_end is not None:
            target = context.host.workbench.focused_input()
            if target is None or target.selection_end != self.input_selection_end:
                return False
        if self.cursor is not None and (editor is None or editor.position() != self.cursor):
            return False
        if self.uri is not None and (editor is None or editor.uri != self.uri):
            return False
        return True


@dataclass(slots=True, frozen=True)
class InteractionStep:
    """One transition: check pre-state, fire trigger, wait, check post-state."""

    trigger: Trigger
    expected_before: Mapping[StateFlag, bool] = field(default_factory=dict)
    wait_until: WaitCondition = field(default_factory=WaitCondition)
    expected_after: Mapping[StateFlag, bool] = field(default_factory=dict)
    expected_cursor: CursorPosition | None = None
    expected_word: str | None = None
    expected_uri: str | None = None
    expected_preview: bool | None = None
    expected_hover: str | None = None
    expected_lens_label: str | None = None
    lens_visible_before: bool | None = None
    join_pending: bool = False


@dataclass(slots=True, frozen=True)
class InteractionProtocol:
    """Named linear state machine."""

    name: str
    states: tuple[str, ...]
    steps: tuple[InteractionStep, ...]

    def __post_init__(self) -> None:
        if not self.steps:
            raise UsageError(
                error_code=ErrorCode.INVALID_PROTOCOL,
                message=f"Protocol {self.name!r} has no steps",
            )
        if len(self.states) != len(self.steps) + 1:
            raise UsageError(
                error_code=ErrorCode.INVALID_PROTOCOL,
                message=(
                    f"Protocol {self.name!r} declares {len(self.states)} states "
                    f"for {len(self.steps)} steps"
                ),
            )
        if len(set(self.states)) != len(self.states):
            raise UsageError(
                error_code=ErrorCode.INVALID_PROTOCOL,
                message=f"Protocol {self.name!r} revisits a state",
            )

    @property
    def initial_state(self) -> str:
        return self.states[0]

    @property
    def terminal_state(self) -> str:
        return self.states[-1]

    def transitions(self) -> list[tuple[str, InteractionStep, str]]:
        return [
            (self.states[index], step, self.states[index + 1])
            for index, step in enumerate(self.steps)
        ]


# -----------------------------------------------------------------------------
# Builders
# -----------------------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class NavigationTarget:
    """Where a navigation is expected to land."""

    uri: str
    position: CursorPosition
    word: str
    preview: bool | None = None


_NO_MODAL = {
    StateFlag.PEEK_VISIBLE: False,
    StateFlag.SUGGEST_VISIBLE: False,
    StateFlag.RENAME_VISIBLE: False,
    StateFlag.PARAMETER_HINTS_VISIBLE: False,
    StateFlag.HOVER_VISIBLE: False,
}
_PEEK_CLOSED = _flags(text_focus=True, peek_visible=False, list_focus=False)
_PEEK_OPEN = _flags(text_focus=False, peek_visible=True, list_focus=True)


def _navigation(name: str, command_id: str, target: NavigationTarget) -> InteractionProtocol:
    step = InteractionStep(
        trigger=CommandTrigger(command_id),
        expected_before=_flags(_NO_MODAL),
        wait_until=WaitCondition(uri=target.uri, cursor=target.position),
        expected_after=_flags(_NO_MODAL),
        expected_cursor=target.position,
        expected_word=target.word,
        expected_uri=target.uri,
        expected_preview=target.preview,
    )
    return InteractionProtocol(name=name, states=("editing", "navigated"), steps=(step,))


def go_to_definition(target: NavigationTarget) -> InteractionProtocol:
    return _navigation("go-to-definition", REVEAL_DEFINITION, target)


def go_to_implementation(target: NavigationTarget) -> InteractionProtocol:
    return _navigation("go-to-implementation", GO_TO_IMPLEMENTATION, target)


def go_to_type_definition(target: NavigationTarget) -> InteractionProtocol:
    return _navigation("go-to-type-definition", GO_TO_TYPE_DEFINITION, target)


def _open_peek_step(trigger: Trigger, *, lens: bool = False) -> InteractionStep:
    return InteractionStep(
        trigger=trigger,
        expected_before=_flags(_NO_MODAL) if lens else _PEEK_CLOSED,
        wait_until=WaitCondition(flags=_flags(peek_visible=True, list_focus=True)),
        expected_after=_PEEK_OPEN,
    )


def _close_peek_step() -> InteractionStep:
    return InteractionStep(
        trigger=KeyTrigger("Escape"),
        expected_before=_flags(peek_visible=True),
        wait_until=WaitCondition(flags=_flags(list_focus=False)),
        expected_after=_PEEK_CLOSED,
    )


def peek_definition(target: NavigationTarget) -> InteractionProtocol:
    """focused -> peek-open -> reference-selected -> closed."""

    select = InteractionStep(
        trigger=KeyTrigger("Enter"),
        expected_before=_PEEK_OPEN,
        wait_until=WaitCondition(
            flags=_flags(list_focus=True), uri=target.uri, cursor=target.position
        ),
        expected_after=_PEEK_OPEN,
        expected_cursor=target.position,
        expected_word=target.word,
        expected_uri=target.uri,
        expected_preview=target.preview,
    )
    return InteractionProtocol(
        name="peek-definition",
        states=("focused", "peek-open", "reference-selected", "closed"),
        steps=(_open_peek_step(CommandTrigger(PEEK_DEFINITION)), select, _close_peek_step()),
    )


def trigger_suggest(*, expected_cursor: CursorPosition, expected_word: str) -> InteractionProtocol:
    """focused -> suggest-open -> committed."""

    open_step = InteractionStep(
        trigger=CommandTrigger(TRIGGER_SUGGEST),
        expected_before=_flags(text_focus=True, suggest_visible=False),
        wait_until=WaitCondition(flags=_flags(suggest_visible=True)),
        expected_after=_flags(text_focus=True, suggest_visible=True),
    )
    commit_step = InteractionStep(
        trigger=KeyTrigger("Enter"),
        expected_before=_flags(suggest_visible=True),
        wait_until=WaitCondition(flags=_flags(suggest_visible=False)),
        expected_after=_flags(text_focus=True, suggest_visible=False),
        expected_cursor=expected_cursor,
        expected_word=expected_word,
    )
    return InteractionProtocol(
        name="trigger-suggest",
        states=("focused", "suggest-open", "committed"),
        steps=(open_step, commit_step),
    )


def rename(*, original_word: str, new_name: str, expected_cursor: CursorPosition) -> InteractionProtocol:
    """focused -> rename-input-open -> committed.

    The rename command stays pending while its input box is shown; it is
    joined after the new name has been committed.
    """

    open_step = InteractionStep(
        trigger=CommandTrigger(RENAME, detach=True),
        expected_before=_flags(text_focus=True, rename_visible=False),
        wait_until=WaitCondition(
            flags=_flags(rename_visible=True), input_selection_end=len(original_word)
        ),
        expected_after=_flags(text_focus=False, rename_visible=True),
    )
    commit_step = InteractionStep(
        trigger=InputCommit(new_name),
        expected_before=_flags(rename_visible=True),
        wait_until=WaitCondition(flags=_flags(rename_visible=False)),
        expected_after=_flags(text_focus=True, rename_visible=False),
        expected_cursor=expected_cursor,
        expected_word=new_name,
        join_pending=True,
    )
    return InteractionProtocol(
        name="rename",
        states=("focused", "rename-input-open", "committed"),
        steps=(open_step, commit_step),
    )


def _show_and_dismiss(
    name: str,
    command_id: str,
    flag: StateFlag,
    open_state: str,
    *,
    expected_text: str | None = None,
) -> InteractionProtocol:
    open_step = InteractionStep(
        trigger=CommandTrigger(command_id),
        expected_before=_flags({StateFlag.TEXT_FOCUS: True, flag: False}),
        wait_until=WaitCondition(flags=_flags({flag: True})),
        expected_after=_flags({StateFlag.TEXT_FOCUS: True, flag: True}),
        expected_hover=expected_text,
    )
    close_step = InteractionStep(
        trigger=KeyTrigger("Escape"),
        expected_before=_flags({flag: True}),
        wait_until=WaitCondition(flags=_flags({flag: False})),
        expected_after=_flags({StateFlag.TEXT_FOCUS: True, flag: False}),
    )
    return InteractionProtocol(
        name=name,
        states=("focused", open_state, "closed"),
        steps=(open_step, close_step),
    )


def trigger_parameter_hints() -> InteractionProtocol:
    """focused -> hints-open -> closed."""

    return _show_and_dismiss(
        "trigger-parameter-hints",
        TRIGGER_PARAMETER_HINTS,
        StateFlag.PARAMETER_HINTS_VISIBLE,
        "hints-open",
    )


def show_hover(*, expected_text: str | None = None) -> InteractionProtocol:
    """focused -> hover-open -> closed, optionally checking the hover text."""

    return _show_and_dismiss(
        "show-hover",
        SHOW_HOVER,
        StateFlag.HOVER_VISIBLE,
        "hover-open",
        expected_text=expected_text,
    )


def code_lens_references(
    *,
    edit: EditTrigger,
    expected_label: str,
    preference_key: str = REFERENCES_CODE_LENS_PREFERENCE,
) -> InteractionProtocol:
    """no-lens -> lens-visible -> peek-open -> closed.

    The lens only appears once both the document edit and the preference
    change have happened, so both are fired before the single wait.
    """

    reveal = InteractionStep(
        trigger=Conjunction((edit, PreferenceTrigger(preference_key, True))),
        expected_before=_flags(_NO_MODAL),
        lens_visible_before=False,
        wait_until=WaitCondition(lens_visible=True),
        expected_after=_flags(_NO_MODAL),
        expected_lens_label=expected_label,
    )
    return InteractionProtocol(
        name="code-lens-references",
        states=("no-lens", "lens-visible", "peek-open", "closed"),
        steps=(reveal, _open_peek_step(LensActivation(0), lens=True), _close_peek_step()),
    )


def highlight_write_occurrences() -> InteractionProtocol:
    """placed -> highlighted: moving the caret like a user triggers highlights."""

    step = InteractionStep(
        trigger=KeyTrigger("ArrowRight"),
        expected_before=_flags(write_highlight_visible=False),
        wait_until=WaitCondition(flags=_flags(write_highlight_visible=True)),
        expected_after=_flags(write_highlight_visible=True),
    )
    return InteractionProtocol(
        name="highlight-write-occurrences",
        states=("placed", "highlighted"),
        steps=(step,),
    )


def build_protocol(name: str, steps: Sequence[InteractionStep], states: Sequence[str]) -> InteractionProtocol:
    """Assemble a custom protocol from explicit steps."""

    return InteractionProtocol(name=name, states=tuple(states), steps=tuple(steps))


__all__ = [
    "CommandTrigger",
    "Conjunction",
    "EditTrigger",
    "InputCommit",
    "InteractionProtocol",
    "InteractionStep",
    "KeyTrigger",
    "LensActivation",
    "NavigationTarget",
    "PreferenceTrigger",
    "StepContext",
    "Trigger",
    "WaitCondition",
    "build_protocol",
    "code_lens_references",
    "go_to_definition",
    "go_to_implementation",
    "go_to_type_definition",
    "highlight_write_occurrences",
    "peek_definition",
    "rename",
    "show_hover",
    "trigger_parameter_hints",
    "trigger_suggest",
]

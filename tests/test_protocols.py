"""Tests for protocol definitions and triggers."""

from __future__ import annotations

import pytest

from editorprobe.core.positions import CursorPosition, SelectionRange
from editorprobe.harness import protocols
from editorprobe.harness.disposables import DisposableCollection
from editorprobe.harness.errors import ErrorCode, StateMismatchError, UsageError
from editorprobe.harness.flags import StateFlag, StatePredicateSet
from editorprobe.harness.protocols import (
    CommandTrigger,
    Conjunction,
    EditTrigger,
    InputCommit,
    InteractionStep,
    KeyTrigger,
    NavigationTarget,
    PreferenceTrigger,
    StepContext,
    WaitCondition,
    build_protocol,
)
from editorprobe.simulated.workbench import SimulatedWorkbench


def _context(workbench: SimulatedWorkbench) -> StepContext:
    return StepContext(
        host=workbench,
        flags=StatePredicateSet(workbench.contexts),
        teardown=DisposableCollection(),
    )


class TestProtocolShape:
    """Protocols are validated when they are built."""

    def test_rejects_empty_protocol(self) -> None:
        with pytest.raises(UsageError) as caught:
            build_protocol("empty", [], ["start"])
        assert caught.value.error_code == ErrorCode.INVALID_PROTOCOL

    def test_rejects_state_count_mismatch(self) -> None:
        step = InteractionStep(trigger=KeyTrigger("Escape"))
        with pytest.raises(UsageError, match="2 states for 2 steps"):
            build_protocol("short", [step, step], ["a", "b"])

    def test_rejects_revisited_state(self) -> None:
        step = InteractionStep(trigger=KeyTrigger("Escape"))
        with pytest.raises(UsageError, match="revisits"):
            build_protocol("loop", [step, step], ["a", "b", "a"])

    @pytest.mark.parametrize(
        "protocol, states",
        [
            (protocols.peek_definition(NavigationTarget("file:///a.js", CursorPosition(1, 1), "a")), ("focused", "peek-open", "reference-selected", "closed")),
            (protocols.trigger_suggest(expected_cursor=CursorPosition(1, 2), expected_word="a"), ("focused", "suggest-open", "committed")),
            (protocols.trigger_parameter_hints(), ("focused", "hints-open", "closed")),
            (protocols.highlight_write_occurrences(), ("placed", "highlighted")),
        ],
        ids=lambda value: getattr(value, "name", None),
    )
    def test_builtin_state_names(self, protocol: protocols.InteractionProtocol, states: tuple[str, ...]) -> None:
        assert protocol.states == states
        assert protocol.initial_state == states[0]
        assert protocol.terminal_state == states[-1]
        assert len(protocol.transitions()) == len(states) - 1

    def test_rename_detaches_command_and_joins_on_commit(self) -> None:
        protocol = protocols.rename(original_word="container", new_name="foo", expected_cursor=CursorPosition(11, 7))
        open_step, commit_step = protocol.steps

        assert open_step.trigger == CommandTrigger(protocols.RENAME, detach=True)
        assert open_step.wait_until.input_selection_end == len("container")
        assert isinstance(commit_step.trigger, InputCommit)
        assert commit_step.join_pending
        assert commit_step.expected_word == "foo"

    def test_code_lens_fires_edit_and_preference_together(self) -> None:
        edit = EditTrigger(SelectionRange.caret(CursorPosition(16, 1)), "export ")
        protocol = protocols.code_lens_references(edit=edit, expected_label="19 references")
        reveal = protocol.steps[0]

        assert protocol.states == ("no-lens", "lens-visible", "peek-open", "closed")
        assert isinstance(reveal.trigger, Conjunction)
        assert reveal.trigger.triggers == (edit, PreferenceTrigger(protocols.REFERENCES_CODE_LENS_PREFERENCE, True))
        assert " + " in reveal.trigger.describe()
        assert reveal.lens_visible_before is False
        assert reveal.wait_until.lens_visible is True


class TestWaitCondition:
    def test_empty_condition_is_trivial(self) -> None:
        condition = WaitCondition()
        assert condition.trivial
        assert condition.describe() == "nothing"

    def test_describe_lists_every_part(self) -> None:
        condition = WaitCondition(
            flags={StateFlag.PEEK_VISIBLE: True},
            cursor=CursorPosition(3, 10),
            uri="file:///x.ts",
        )
        assert not condition.trivial
        assert condition.describe() == "peek-visible=True, cursor=3:10, uri=file:///x.ts"


class TestTriggers:
    """Triggers act on the host through its surfaces only."""

    @pytest.mark.asyncio
    async def test_command_without_editor_is_usage_error(self, workbench: SimulatedWorkbench) -> None:
        with pytest.raises(UsageError) as caught:
            await CommandTrigger(protocols.SHOW_HOVER).fire(_context(workbench))
        assert caught.value.error_code == ErrorCode.SESSION_CLOSED

    @pytest.mark.asyncio
    async def test_input_commit_requires_focused_input(self, workbench: SimulatedWorkbench) -> None:
        with pytest.raises(StateMismatchError) as caught:
            await InputCommit("foo").fire(_context(workbench))
        assert caught.value.phase == "before"

    @pytest.mark.asyncio
    async def test_preference_trigger_registers_restore(self, workbench: SimulatedWorkbench) -> None:
        context = _context(workbench)
        key = protocols.REFERENCES_CODE_LENS_PREFERENCE

        await PreferenceTrigger(key, True).fire(context)

        assert workbench.preferences.get(key) is True
        assert len(context.cleanups) == 1
        await context.cleanups[0]()
        assert workbench.preferences.inspect_user(key) is None
        assert workbench.preferences.get(key) is False

    @pytest.mark.asyncio
    async def test_edit_trigger_replaces_selection(self, workbench: SimulatedWorkbench, workspace) -> None:
        await workbench.open(workspace.server_uri)
        trigger = EditTrigger(SelectionRange.on_line(11, 7, 16), "registry")

        await trigger.fire(_context(workbench))

        assert workbench.document(workspace.server_uri).line(11) == "const registry = new Container();"
        await workbench.close_all()

    @pytest.mark.asyncio
    async def test_detached_command_is_joined_after_commit(
        self, workbench: SimulatedWorkbench, workspace, clock
    ) -> None:
        """The rename command keeps running until its input is committed."""
        editor = await workbench.open(workspace.server_uri)
        editor.set_position(CursorPosition(11, 7))
        context = _context(workbench)

        await CommandTrigger(protocols.RENAME, detach=True).fire(context)
        for _ in range(3):
            await clock.next_frame()
        assert len(context.pending) == 1
        assert not context.pending[0].done()

        await InputCommit("foo").fire(context)
        await context.join_pending()

        assert context.pending == []
        assert workbench.document(workspace.server_uri).line(11) == "const foo = new Container();"
        await workbench.close_all()

"""Tests for the scenario-scoped editor session."""

from __future__ import annotations

import pytest

from editorprobe.harness.disposables import DisposableCollection
from editorprobe.harness.errors import ErrorCode, UsageError, WaitTimeoutError
from editorprobe.harness.flags import StateFlag, StatePredicateSet
from editorprobe.harness.frames import AsyncioFrameClock
from editorprobe.harness.session import EditorSessionFixture
from editorprobe.harness.waiter import ConditionWaiter
from editorprobe.simulated.documents import SampleWorkspace
from editorprobe.simulated.workbench import SimulatedWorkbench


def _fixture(workbench: SimulatedWorkbench, clock: AsyncioFrameClock, **kwargs) -> EditorSessionFixture:
    flags = StatePredicateSet(workbench.contexts)
    waiter = ConditionWaiter(clock, teardown=DisposableCollection(), flags=flags)
    return EditorSessionFixture(workbench, flags, waiter, **kwargs)


class TestEditorSessionFixture:
    @pytest.mark.asyncio
    async def test_activate_waits_for_language_service(
        self, workbench: SimulatedWorkbench, workspace: SampleWorkspace, clock: AsyncioFrameClock
    ) -> None:
        """open() returns only once the document is managed by the backend."""
        fixture = _fixture(workbench, clock)

        editor = await fixture.open(workspace.server_uri)

        assert StatePredicateSet(workbench.contexts).match(StateFlag.LANGUAGE_SERVICE_MANAGED)
        assert clock.frames >= 3
        assert workbench.active_editor() is editor
        assert fixture.handles == (editor,)
        await fixture.close_all()

    @pytest.mark.asyncio
    async def test_open_mode_does_not_activate(
        self, workbench: SimulatedWorkbench, workspace: SampleWorkspace, clock: AsyncioFrameClock
    ) -> None:
        fixture = _fixture(workbench, clock)

        editor = await fixture.open(workspace.inversify_uri, mode="open")

        assert workbench.active_editor() is None
        assert not editor.is_preview
        assert clock.frames == 0
        await fixture.close_all()

    @pytest.mark.asyncio
    async def test_rejects_unknown_mode(self, workbench: SimulatedWorkbench, clock: AsyncioFrameClock) -> None:
        with pytest.raises(UsageError) as caught:
            await _fixture(workbench, clock).open("file:///x.js", mode="split")
        assert caught.value.error_code == ErrorCode.INVALID_SCENARIO

    @pytest.mark.asyncio
    async def test_readiness_timeout(self, workspace: SampleWorkspace, clock: AsyncioFrameClock) -> None:
        slow = SimulatedWorkbench(workspace, clock=clock, readiness_frames=10_000)
        fixture = _fixture(slow, clock, readiness_timeout=0.02)

        with pytest.raises(WaitTimeoutError, match="language-service-managed"):
            await fixture.open(workspace.server_uri)
        await fixture.close_all()

    @pytest.mark.asyncio
    async def test_close_all_is_idempotent(
        self, workbench: SimulatedWorkbench, workspace: SampleWorkspace, clock: AsyncioFrameClock
    ) -> None:
        fixture = _fixture(workbench, clock)
        editor = await fixture.open(workspace.server_uri)

        await fixture.close_all()
        await fixture.close_all()

        assert editor.closed
        assert workbench.editors == ()
        assert fixture.handles == ()

    @pytest.mark.asyncio
    async def test_unsaved_edits_are_discarded(
        self, workbench: SimulatedWorkbench, workspace: SampleWorkspace, clock: AsyncioFrameClock
    ) -> None:
        fixture = _fixture(workbench, clock)
        editor = await fixture.open(workspace.server_uri)
        editor.apply_edit(editor.selection, "// scratch\n")

        await fixture.close_all()

        assert workbench.document(workspace.server_uri).line(1) == "// @ts-check"

    @pytest.mark.asyncio
    async def test_scope_closes_editors_when_body_fails(
        self, workbench: SimulatedWorkbench, workspace: SampleWorkspace, clock: AsyncioFrameClock
    ) -> None:
        fixture = _fixture(workbench, clock)

        with pytest.raises(RuntimeError, match="body failed"):
            async with fixture.scope() as session:
                await session.open(workspace.server_uri)
                raise RuntimeError("body failed")

        assert workbench.editors == ()
        assert workbench.active_editor() is None

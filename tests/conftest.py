"""Shared pytest fixtures."""

from __future__ import annotations

import os

import pytest

from editorprobe.harness.frames import AsyncioFrameClock
from editorprobe.harness.runner import ScenarioRunner
from editorprobe.services.settings import HarnessSettings
from editorprobe.simulated.documents import SampleWorkspace
from editorprobe.simulated.workbench import SimulatedWorkbench


@pytest.fixture(autouse=True)
def _isolated_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in list(os.environ):
        if name.startswith("EDITORPROBE_"):
            monkeypatch.delenv(name, raising=False)


@pytest.fixture
def clock() -> AsyncioFrameClock:
    return AsyncioFrameClock(interval=0.001)


@pytest.fixture
def workspace() -> SampleWorkspace:
    return SampleWorkspace()


@pytest.fixture
def workbench(clock: AsyncioFrameClock, workspace: SampleWorkspace) -> SimulatedWorkbench:
    return SimulatedWorkbench(workspace, clock=clock, response_frames=2, readiness_frames=3, lens_frames=3)


@pytest.fixture
def settings() -> HarnessSettings:
    return HarnessSettings(scenario_timeout=5.0, extended_timeout=5.0, frame_interval=0.001)


@pytest.fixture
def runner(workbench: SimulatedWorkbench, settings: HarnessSettings, clock: AsyncioFrameClock) -> ScenarioRunner:
    return ScenarioRunner(workbench, settings=settings, clock=clock)

"""Interaction-test engine: waits, state flags, protocols and the scenario runner."""

from .disposables import CallbackDisposable, Disposable, DisposableCollection
from .errors import (
    ErrorCode,
    HarnessError,
    InvariantViolationError,
    ScenarioTimeoutError,
    StateMismatchError,
    UsageError,
    WaitTimeoutError,
    WaiterDisposedError,
)
from .events import EventBus, ScenarioFinished, ScenarioStarted, StepCompleted
from .flags import ModalSurface, StateFlag, StatePredicateSet, parse_flag
from .frames import AsyncioFrameClock, FrameClock, create_frame_clock
from .protocols import InteractionProtocol, InteractionStep, NavigationTarget, WaitCondition
from .runner import Scenario, ScenarioResult, ScenarioRunner
from .session import EditorSessionFixture
from .waiter import ConditionWaiter

__all__ = [
    # Waiting
    "AsyncioFrameClock",
    "ConditionWaiter",
    "FrameClock",
    "create_frame_clock",
    # Teardown
    "CallbackDisposable",
    "Disposable",
    "DisposableCollection",
    # State
    "ModalSurface",
    "StateFlag",
    "StatePredicateSet",
    "parse_flag",
    # Protocols and runs
    "EditorSessionFixture",
    "InteractionProtocol",
    "InteractionStep",
    "NavigationTarget",
    "Scenario",
    "ScenarioResult",
    "ScenarioRunner",
    "WaitCondition",
    # Events
    "EventBus",
    "ScenarioFinished",
    "ScenarioStarted",
    "StepCompleted",
    # Errors
    "ErrorCode",
    "HarnessError",
    "InvariantViolationError",
    "ScenarioTimeoutError",
    "StateMismatchError",
    "UsageError",
    "WaitTimeoutError",
    "WaiterDisposedError",
]

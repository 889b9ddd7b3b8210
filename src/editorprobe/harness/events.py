"""Progress events published while scenarios run.

Reporters (the command line, pytest plugins, log sinks) subscribe to these
instead of reaching into the runner.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Callable, Generic, TypeVar
from weakref import WeakMethod

logger = logging.getLogger(__name__)

E = TypeVar("E", bound="Event")

Handler = Callable[[E], None]


@dataclass(slots=True)
class Event:
    """Base class for harness events."""


@dataclass(slots=True)
class ScenarioStarted(Event):
    """A scenario acquired its session and is about to run its protocol."""

    scenario: str
    protocol: str


@dataclass(slots=True)
class StepCompleted(Event):
    """A protocol step observed its expected post-state.

    Attributes:
        scenario: Name of the running scenario.
        from_state: Protocol state before the step.
        to_state: Protocol state reached by the step.
        trigger: Human readable trigger description.
        duration_ms: Time from firing the trigger to verified post-state.
    """

    scenario: str
    from_state: str
    to_state: str
    trigger: str
    duration_ms: float = 0.0


@dataclass(slots=True)
class ScenarioFinished(Event):
    """A scenario ended, successfully or not; teardown has already run."""

    scenario: str
    passed: bool
    final_state: str
    failure_kind: str | None = None
    error: dict[str, Any] = field(default_factory=dict)
    duration_ms: float = 0.0


class EventBus(Generic[E]):
    """Synchronous publish/subscribe bus keyed by event type.

    Bound methods are held weakly so a reporter that goes away stops receiving
    events without unsubscribing. A handler raising is logged and does not
    stop delivery to the remaining handlers.
    """

    __slots__ = ("_handlers",)

    def __init__(self) -> None:
        self._handlers: defaultdict[type[Event], list[_HandlerRef]] = defaultdict(list)

    def subscribe(self, event_type: type[E], handler: Handler[E]) -> None:
        self._handlers[event_type].append(_HandlerRef.create(handler))
        logger.debug("Subscribed %s to %s", _handler_name(handler), event_type.__name__)

    def unsubscribe(self, event_type: type[E], handler: Handler[E]) -> None:
        handlers = self._handlers.get(event_type)
        if not handlers:
            return
        for index, handler_ref in enumerate(handlers):
            if handler_ref.matches(handler):
                handlers.pop(index)
                return

    def publish(self, event: E) -> None:
        handlers = self._handlers.get(type(event))
        if not handlers:
            return
        live: list[_HandlerRef] = []
        for handler_ref in list(handlers):
            handler = handler_ref.resolve()
            if handler is None:
                continue
            live.append(handler_ref)
            try:
                handler(event)
            except Exception:
                logger.exception(
                    "Handler %s raised for event %s",
                    _handler_name(handler),
                    type(event).__name__,
                )
        handlers[:] = [ref for ref in handlers if ref in live]

    def clear(self) -> None:
        self._handlers.clear()

    def handler_count(self, event_type: type[E] | None = None) -> int:
        if event_type is not None:
            return len(self._handlers.get(event_type, []))
        return sum(len(handlers) for handlers in self._handlers.values())


class _HandlerRef:
    """Weak reference for bound methods, strong reference otherwise."""

    __slots__ = ("_ref", "_is_weak")

    def __init__(self, target: Any, is_weak: bool) -> None:
        self._ref = target
        self._is_weak = is_weak

    @classmethod
    def create(cls, handler: Handler) -> _HandlerRef:
        if hasattr(handler, "__self__") and hasattr(handler, "__func__"):
            try:
                return cls(WeakMethod(handler), is_weak=True)
            except TypeError:
                pass
        return cls(handler, is_weak=False)

    def resolve(self) -> Handler | None:
        if not self._is_weak:
            return self._ref
        return self._ref()

    def matches(self, handler: Handler) -> bool:
        resolved = self.resolve()
        return resolved is not None and resolved == handler


def _handler_name(handler: Handler) -> str:
    if hasattr(handler, "__self__") and hasattr(handler, "__func__"):
        return f"{type(handler.__self__).__name__}.{handler.__func__.__name__}"
    return getattr(handler, "__name__", repr(handler))


__all__ = [
    "Event",
    "EventBus",
    "Handler",
    "ScenarioFinished",
    "ScenarioStarted",
    "StepCompleted",
]

"""Error types raised by the interaction engine.

Every error carries a machine-readable code plus structured details so the
scenario runner can turn it into a diagnostic without parsing messages.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar


class ErrorCode:
    """Constants for error codes attached to harness failures."""

    WAIT_TIMEOUT = "wait_timeout"
    SCENARIO_TIMEOUT = "scenario_timeout"
    WAITER_DISPOSED = "waiter_disposed"
    INVARIANT_VIOLATION = "invariant_violation"
    STATE_MISMATCH = "state_mismatch"
    UNKNOWN_FLAG = "unknown_flag"
    SESSION_CLOSED = "session_closed"
    INVALID_PROTOCOL = "invalid_protocol"
    INVALID_SCENARIO = "invalid_scenario"
    HOST_ERROR = "host_error"


@dataclass
class HarnessError(Exception):
    """Base exception for all harness failures.

    Attributes:
        error_code: Machine-readable error identifier.
        message: Human-readable description.
        details: Additional structured information (flag snapshots, positions).
    """

    error_code: str
    message: str
    details: dict[str, Any] = field(default_factory=dict)

    # Coarse bucket reported by the scenario runner.
    failure_kind: ClassVar[str] = "error"

    def __post_init__(self) -> None:
        Exception.__init__(self, self.message)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "error": self.error_code,
            "kind": self.failure_kind,
            "message": self.message,
        }
        if self.details:
            result["details"] = dict(self.details)
        return result

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"


# -----------------------------------------------------------------------------
# Timeouts
# -----------------------------------------------------------------------------


@dataclass
class WaitTimeoutError(HarnessError):
    """A condition wait exceeded its own ``max_wait`` budget."""

    error_code: str = field(default=ErrorCode.WAIT_TIMEOUT)
    message: str = field(default="Condition was not satisfied before the wait deadline")
    details: dict[str, Any] = field(default_factory=dict)

    failure_kind: ClassVar[str] = "timeout"

    description: str = field(default="")
    waited_seconds: float = field(default=0.0)
    last_flags: dict[str, bool] | None = field(default=None)

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.description:
            result["condition"] = self.description
        result["waited_seconds"] = round(self.waited_seconds, 3)
        if self.last_flags is not None:
            result["last_flags"] = dict(self.last_flags)
        return result


@dataclass
class ScenarioTimeoutError(HarnessError):
    """The scenario-level deadline expired; outstanding waiters were disposed."""

    error_code: str = field(default=ErrorCode.SCENARIO_TIMEOUT)
    message: str = field(default="Scenario did not complete before its deadline")
    details: dict[str, Any] = field(default_factory=dict)

    failure_kind: ClassVar[str] = "timeout"

    timeout_seconds: float = field(default=0.0)


@dataclass
class WaiterDisposedError(HarnessError):
    """A pending wait was released through teardown before it resolved."""

    error_code: str = field(default=ErrorCode.WAITER_DISPOSED)
    message: str = field(default="Wait was disposed before the condition held")
    details: dict[str, Any] = field(default_factory=dict)

    failure_kind: ClassVar[str] = "timeout"


# -----------------------------------------------------------------------------
# Assertion failures
# -----------------------------------------------------------------------------


@dataclass
class InvariantViolationError(HarnessError):
    """More than one modal UI surface reported itself visible."""

    error_code: str = field(default=ErrorCode.INVARIANT_VIOLATION)
    message: str = field(default="More than one modal UI surface is visible")
    details: dict[str, Any] = field(default_factory=dict)

    failure_kind: ClassVar[str] = "invariant"

    visible: tuple[str, ...] = field(default=())

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["visible"] = list(self.visible)
        return result


@dataclass
class StateMismatchError(HarnessError):
    """Observed editor state differs from the expectation of a protocol step.

    ``phase`` is ``"before"`` when the pre-state check failed (the trigger was
    not fired) and ``"after"`` when the post-state check failed.
    """

    error_code: str = field(default=ErrorCode.STATE_MISMATCH)
    message: str = field(default="Editor state does not match the expected state")
    details: dict[str, Any] = field(default_factory=dict)

    failure_kind: ClassVar[str] = "mismatch"

    phase: str = field(default="after")
    mismatches: dict[str, tuple[Any, Any]] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["phase"] = self.phase
        result["mismatches"] = {
            name: {"expected": expected, "actual": actual}
            for name, (expected, actual) in self.mismatches.items()
        }
        return result


# -----------------------------------------------------------------------------
# Usage errors
# -----------------------------------------------------------------------------


@dataclass
class UsageError(HarnessError):
    """Programming error in the test itself, never a flaky condition."""

    error_code: str = field(default=ErrorCode.UNKNOWN_FLAG)
    message: str = field(default="Invalid use of the harness")
    details: dict[str, Any] = field(default_factory=dict)

    failure_kind: ClassVar[str] = "usage"


# -----------------------------------------------------------------------------
# Host failures
# -----------------------------------------------------------------------------


@dataclass
class HostError(HarnessError):
    """The editor host raised an exception of its own while a scenario ran."""

    error_code: str = field(default=ErrorCode.HOST_ERROR)
    message: str = field(default="Editor host raised an unexpected error")
    details: dict[str, Any] = field(default_factory=dict)

    failure_kind: ClassVar[str] = "host"

    exception_type: str = field(default="")

    @classmethod
    def from_exception(cls, exc: Exception, *, state: str) -> HostError:
        return cls(
            message=f"{type(exc).__name__} in state {state!r}: {exc}",
            details={"state": state},
            exception_type=type(exc).__name__,
        )

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["exception"] = self.exception_type
        return result


__all__ = [
    "ErrorCode",
    "HarnessError",
    "HostError",
    "WaitTimeoutError",
    "ScenarioTimeoutError",
    "WaiterDisposedError",
    "InvariantViolationError",
    "StateMismatchError",
    "UsageError",
]

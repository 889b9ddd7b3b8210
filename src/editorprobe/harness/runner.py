"""Scenario runner: session + protocol + predicate set -> pass/fail."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Iterable

from ..core.positions import CursorPosition, SelectionRange
from ..services.settings import HarnessSettings
from .disposables import DisposableCollection
from .errors import ErrorCode, HarnessError, HostError, ScenarioTimeoutError, StateMismatchError, UsageError
from .events import EventBus, ScenarioFinished, ScenarioStarted, StepCompleted
from .flags import StatePredicateSet
from .frames import FrameClock, create_frame_clock
from .protocols import InteractionProtocol, InteractionStep, StepContext
from .session import EditorSessionFixture
from .surfaces import EditorHost, EditorSurface
from .waiter import ConditionWaiter

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class Scenario:
    """One protocol run against a freshly opened document.

    Attributes:
        name: Identifier used in reports.
        uri: Document opened (and activated) before the protocol starts.
        protocol: The interaction to drive.
        start: Cursor position set after opening.
        preview: Open the document in a preview editor.
        selection: Optional selection applied after ``start``.
        expected_word: Word expected under ``start`` before the first step.
        open_first: Documents opened in the background beforehand.
        timeout: Explicit scenario deadline in seconds.
        extended: Use the extended deadline from settings when ``timeout`` is unset.
    """

    name: str
    uri: str
    protocol: InteractionProtocol
    start: CursorPosition
    preview: bool = False
    selection: SelectionRange | None = None
    expected_word: str | None = None
    open_first: tuple[str, ...] = ()
    timeout: float | None = None
    extended: bool = False


@dataclass(slots=True)
class Diagnostic:
    """Last observed editor state, captured before teardown."""

    flags: dict[str, bool] = field(default_factory=dict)
    cursor: CursorPosition | None = None
    word: str | None = None
    uri: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "flags": dict(self.flags),
            "cursor": self.cursor.to_dict() if self.cursor else None,
            "word": self.word,
            "uri": self.uri,
        }


@dataclass(slots=True)
class ScenarioResult:
    scenario: str
    passed: bool
    final_state: str
    duration: float = 0.0
    error: HarnessError | None = None
    diagnostic: Diagnostic | None = None

    @property
    def failure_kind(self) -> str | None:
        return None if self.error is None else self.error.failure_kind

    def summary(self) -> str:
        if self.passed:
            return f"PASS {self.scenario} ({self.duration:.2f}s)"
        return f"FAIL {self.scenario} in state {self.final_state!r}: {self.error}"


class ScenarioRunner:
    """Run scenarios one at a time against a single editor host.

    The runner holds no state between scenarios: every run builds its own
    teardown collection, predicate set, waiter and session fixture.
    """

    def __init__(
        self,
        host: EditorHost,
        *,
        settings: HarnessSettings | None = None,
        clock: FrameClock | None = None,
        bus: EventBus | None = None,
    ) -> None:
        self._host = host
        self._settings = settings or HarnessSettings()
        self._clock = clock or create_frame_clock(
            self._settings.frame_clock, interval=self._settings.frame_interval
        )
        self._bus = bus

    @property
    def settings(self) -> HarnessSettings:
        return self._settings

    def timeout_for(self, scenario: Scenario) -> float:
        if scenario.timeout is not None:
            return scenario.timeout
        if scenario.extended:
            return self._settings.extended_timeout
        return self._settings.scenario_timeout

    async def run_all(self, scenarios: Iterable[Scenario]) -> list[ScenarioResult]:
        return [await self.run(scenario) for scenario in scenarios]

    async def run(self, scenario: Scenario) -> ScenarioResult:
        teardown = DisposableCollection()
        flags = StatePredicateSet(self._host.contexts, managed_key=self._settings.managed_flag)
        waiter = ConditionWaiter(self._clock, teardown=teardown, flags=flags)
        fixture = EditorSessionFixture(
            self._host.workbench,
            flags,
            waiter,
            save_on_close=self._settings.save_on_close,
        )
        context = StepContext(host=self._host, flags=flags, teardown=teardown)
        progress = [scenario.protocol.initial_state]
        timeout = self.timeout_for(scenario)
        error: HarnessError | None = None
        diagnostic: Diagnostic | None = None
        started = time.monotonic()

        LOGGER.info("Running scenario %s (%s, timeout=%.1fs)", scenario.name, scenario.protocol.name, timeout)
        await fixture.close_all()
        try:
            await asyncio.wait_for(self._execute(scenario, fixture, context, waiter, progress), timeout)
        except asyncio.TimeoutError:
            error = ScenarioTimeoutError(
                message=f"Scenario {scenario.name!r} exceeded {timeout:.1f}s in state {progress[-1]!r}",
                timeout_seconds=timeout,
            )
        except HarnessError as exc:
            error = exc
        except Exception as exc:
            LOGGER.exception("Editor host raised during scenario %s", scenario.name)
            error = HostError.from_exception(exc, state=progress[-1])
        finally:
            if error is not None:
                diagnostic = self._diagnose(flags)
            cleanup_error = await self._teardown(fixture, context, teardown)
        if error is None and cleanup_error is not None:
            if isinstance(cleanup_error, HarnessError):
                error = cleanup_error
            else:
                error = HostError.from_exception(cleanup_error, state=progress[-1])
            diagnostic = self._diagnose(flags)

        duration = time.monotonic() - started
        result = ScenarioResult(
            scenario=scenario.name,
            passed=error is None,
            final_state=progress[-1],
            duration=duration,
            error=error,
            diagnostic=diagnostic,
        )
        if error is None:
            LOGGER.info("Scenario %s passed in %.2fs", scenario.name, duration)
        else:
            LOGGER.warning("Scenario %s failed: %s", scenario.name, error)
        self._publish(
            ScenarioFinished(
                scenario=scenario.name,
                passed=result.passed,
                final_state=result.final_state,
                failure_kind=result.failure_kind,
                error=error.to_dict() if error else {},
                duration_ms=duration * 1000,
            )
        )
        return result

    async def _execute(
        self,
        scenario: Scenario,
        fixture: EditorSessionFixture,
        context: StepContext,
        waiter: ConditionWaiter,
        progress: list[str],
    ) -> None:
        for uri in scenario.open_first:
            await fixture.open(uri, mode="open")
        editor = await fixture.open(scenario.uri, mode="activate", preview=scenario.preview)
        editor.set_position(scenario.start)
        if scenario.selection is not None:
            editor.set_selection(scenario.selection)
        if scenario.expected_word is not None:
            actual = _word_under_cursor(editor)
            if actual != scenario.expected_word:
                raise StateMismatchError(
                    message=f"Expected word {scenario.expected_word!r} at {scenario.start}, found {actual!r}",
                    phase="before",
                    mismatches={"word": (scenario.expected_word, actual)},
                )

        self._publish(ScenarioStarted(scenario=scenario.name, protocol=scenario.protocol.name))
        for from_state, step, to_state in scenario.protocol.transitions():
            step_started = time.monotonic()
            await self._run_step(step, context, waiter)
            progress.append(to_state)
            LOGGER.debug("%s: %s -> %s", scenario.name, from_state, to_state)
            self._publish(
                StepCompleted(
                    scenario=scenario.name,
                    from_state=from_state,
                    to_state=to_state,
                    trigger=step.trigger.describe(),
                    duration_ms=(time.monotonic() - step_started) * 1000,
                )
            )

    async def _run_step(self, step: InteractionStep, context: StepContext, waiter: ConditionWaiter) -> None:
        flags = context.flags
        flags.assert_exclusive()
        flags.expect(step.expected_before, phase="before")
        if step.lens_visible_before is not None:
            visible = context.active_editor().lens_label(0) is not None
            if visible is not step.lens_visible_before:
                raise StateMismatchError(
                    message="Code lens visibility differs before the step",
                    phase="before",
                    mismatches={"lens-visible": (step.lens_visible_before, visible)},
                )

        LOGGER.debug("Firing %s", step.trigger.describe())
        await step.trigger.fire(context)
        if not step.wait_until.trivial:
            condition = step.wait_until
            await waiter.wait_for(
                lambda: condition.satisfied(context),
                max_wait=self._settings.wait_timeout,
                description=condition.describe(),
            )
        if step.join_pending:
            await context.join_pending()
        self._verify_after(step, context)

    def _verify_after(self, step: InteractionStep, context: StepContext) -> None:
        context.flags.assert_exclusive()
        context.flags.expect(step.expected_after, phase="after")
        editor = context.active_editor()
        checks: list[tuple[str, Any, Any]] = []
        if step.expected_uri is not None:
            checks.append(("uri", step.expected_uri, editor.uri))
        if step.expected_preview is not None:
            checks.append(("preview", step.expected_preview, editor.is_preview))
        if step.expected_cursor is not None:
            checks.append(("cursor", step.expected_cursor, editor.position()))
        if step.expected_word is not None:
            checks.append(("word", step.expected_word, _word_under_cursor(editor)))
        if step.expected_hover is not None:
            checks.append(("hover", step.expected_hover, editor.hover_text()))
        if step.expected_lens_label is not None:
            checks.append(("lens-label", step.expected_lens_label, editor.lens_label(0)))
        mismatches = {name: (want, got) for name, want, got in checks if want != got}
        if mismatches:
            summary = ", ".join(f"{name}: expected {want!r}, got {got!r}" for name, (want, got) in mismatches.items())
            raise StateMismatchError(
                message=f"Unexpected editor state after step ({summary})",
                details={"flags": context.flags.snapshot_labels()},
                phase="after",
                mismatches=mismatches,
            )

    async def _teardown(
        self,
        fixture: EditorSessionFixture,
        context: StepContext,
        teardown: DisposableCollection,
    ) -> Exception | None:
        """Release waits, run cleanups and close editors; return the first cleanup error."""

        teardown.dispose()
        for future in context.pending:
            future.cancel()
        context.pending.clear()
        cleanup_error: Exception | None = None
        for cleanup in reversed(context.cleanups):
            try:
                await cleanup()
            except Exception as exc:
                LOGGER.exception("Scenario cleanup failed")
                cleanup_error = cleanup_error or exc
        context.cleanups.clear()
        await fixture.close_all()
        return cleanup_error

    def _diagnose(self, flags: StatePredicateSet) -> Diagnostic:
        diagnostic = Diagnostic(flags=flags.snapshot_labels())
        editor = self._host.workbench.active_editor()
        if editor is not None and not editor.closed:
            diagnostic.cursor = editor.position()
            diagnostic.word = _word_under_cursor(editor)
            diagnostic.uri = editor.uri
        return diagnostic

    def _publish(self, event: Any) -> None:
        if self._bus is not None:
            self._bus.publish(event)


def _word_under_cursor(editor: EditorSurface) -> str | None:
    span = editor.word_at(editor.position())
    return span.text if span is not None else None


def require_scenario_names(scenarios: Iterable[Scenario], names: Iterable[str]) -> list[Scenario]:
    """Select scenarios by name, failing loudly on unknown names."""

    by_name = {scenario.name: scenario for scenario in scenarios}
    selected: list[Scenario] = []
    for name in names:
        if name not in by_name:
            raise UsageError(
                error_code=ErrorCode.INVALID_SCENARIO,
                message=f"Unknown scenario {name!r}",
                details={"known": sorted(by_name)},
            )
        selected.append(by_name[name])
    return selected


__all__ = [
    "Diagnostic",
    "Scenario",
    "ScenarioResult",
    "ScenarioRunner",
    "require_scenario_names",
]

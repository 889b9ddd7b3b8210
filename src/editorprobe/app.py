"""Command-line entry point running scenario catalogs against the simulated host."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path
from typing import Any, Dict, Optional, Sequence, TextIO

from .harness.errors import UsageError
from .harness.events import EventBus, ScenarioFinished, StepCompleted
from .harness.frames import FrameClock, create_frame_clock
from .harness.runner import Scenario, ScenarioResult, ScenarioRunner, require_scenario_names
from .scenarios import builtin_scenarios, load_catalog
from .services.settings import HarnessSettings, SettingsStore, coerce_override
from .simulated.workbench import SimulatedWorkbench
from .utils import logging as logging_utils

_LOGGER = logging.getLogger(__name__)


class _ProgressReporter:
    """Prints one line per finished scenario."""

    def __init__(self, stream: TextIO) -> None:
        self._stream = stream
        self.failed: list[str] = []

    def on_step(self, event: StepCompleted) -> None:
        _LOGGER.debug(
            "%s: %s -> %s via %s (%.0fms)",
            event.scenario,
            event.from_state,
            event.to_state,
            event.trigger,
            event.duration_ms,
        )

    def on_finished(self, event: ScenarioFinished) -> None:
        status = "PASS" if event.passed else "FAIL"
        line = f"{status} {event.scenario} ({event.duration_ms / 1000:.2f}s)"
        if not event.passed:
            self.failed.append(event.scenario)
            line += f" [{event.failure_kind}] in {event.final_state!r}: {event.error.get('message', '')}"
        print(line, file=self._stream)


def load_settings(
    path: Optional[Path] = None,
    *,
    store: SettingsStore | None = None,
    overrides: Dict[str, Any] | None = None,
) -> HarnessSettings:
    """Load persisted settings, falling back to defaults on unreadable files."""

    active_store = store or SettingsStore(path)
    try:
        return active_store.load(overrides=overrides)
    except OSError as exc:
        _LOGGER.warning("Failed to load settings from %s: %s", active_store.path, exc)
        return HarnessSettings()


async def run_scenarios(
    scenarios: Sequence[Scenario],
    settings: HarnessSettings,
    *,
    clock: FrameClock | None = None,
    bus: EventBus | None = None,
) -> list[ScenarioResult]:
    """Run ``scenarios`` one by one against a fresh simulated workbench."""

    clock = clock or create_frame_clock(settings.frame_clock, interval=settings.frame_interval)
    host = SimulatedWorkbench(clock=clock, managed_key=settings.managed_flag)
    runner = ScenarioRunner(host, settings=settings, clock=clock, bus=bus)
    return await runner.run_all(scenarios)


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point invoked by the ``editorprobe`` console script."""

    args = _parse_cli_args(argv)
    settings_path = args.settings_path or os.environ.get("EDITORPROBE_SETTINGS_PATH")
    resolved_path = Path(settings_path).expanduser() if settings_path else None
    try:
        overrides = _coerce_cli_overrides(args.overrides or [])
    except ValueError as exc:
        print(f"Invalid --set override: {exc}", file=sys.stderr)
        return 2

    settings = load_settings(resolved_path, overrides=overrides or None)
    logging_utils.configure_from_settings(settings)

    try:
        catalog = load_catalog(args.catalog) if args.catalog else builtin_scenarios()
        selected = require_scenario_names(catalog, args.scenarios) if args.scenarios else catalog
    except UsageError as exc:
        print(str(exc), file=sys.stderr)
        return 2

    if args.list:
        for scenario in catalog:
            print(f"{scenario.name}\t{scenario.protocol.name}")
        return 0

    reporter = _ProgressReporter(sys.stdout)
    bus: EventBus = EventBus()
    bus.subscribe(StepCompleted, reporter.on_step)
    bus.subscribe(ScenarioFinished, reporter.on_finished)

    results = _run(selected, settings, bus)
    passed = sum(1 for result in results if result.passed)
    print(f"{passed}/{len(results)} scenarios passed")
    if reporter.failed:
        _LOGGER.warning("Failed scenarios: %s", ", ".join(reporter.failed))
        return 1
    return 0


def _run(scenarios: Sequence[Scenario], settings: HarnessSettings, bus: EventBus) -> list[ScenarioResult]:
    if settings.frame_clock.strip().lower() != "qt":
        return asyncio.run(run_scenarios(scenarios, settings, bus=bus))

    from .harness.qt import create_qt_runtime

    runtime = create_qt_runtime()
    try:
        return runtime.loop.run_until_complete(run_scenarios(scenarios, settings, bus=bus))
    finally:
        runtime.loop.close()


def _parse_cli_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="editorprobe",
        description="Run editor interaction scenarios against the simulated workbench.",
    )
    parser.add_argument(
        "--scenario",
        dest="scenarios",
        metavar="NAME",
        action="append",
        default=[],
        help="Run only the named scenario (repeatable).",
    )
    parser.add_argument(
        "--catalog",
        metavar="FILE.yaml",
        help="Load scenarios from a YAML catalog instead of the built-in suite.",
    )
    parser.add_argument(
        "--settings",
        dest="settings_path",
        metavar="PATH",
        help="Override the default ~/.editorprobe/settings.json path.",
    )
    parser.add_argument(
        "--set",
        dest="overrides",
        metavar="KEY=VALUE",
        action="append",
        default=[],
        help="Override persisted settings for this run (repeatable).",
    )
    parser.add_argument(
        "--list",
        action="store_true",
        help="List the available scenarios and exit.",
    )
    return parser.parse_args(argv)


def _coerce_cli_overrides(items: Sequence[str]) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    for entry in items:
        if "=" not in entry:
            raise ValueError(f"Override '{entry}' must use KEY=VALUE syntax.")
        key, raw_value = entry.split("=", 1)
        key = key.strip()
        if not key:
            raise ValueError("Override is missing a field name.")
        overrides[key] = coerce_override(key, raw_value)
    return overrides


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())

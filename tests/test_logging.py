"""Tests for the logging bootstrap."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from editorprobe.services.settings import HarnessSettings
from editorprobe.utils import logging as logging_utils


@pytest.fixture
def fresh_logging(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(logging_utils, "_CONFIGURED", False)
    monkeypatch.setattr(logging_utils, "_LOG_PATH", None)
    root = logging.getLogger()
    previous = (root.level, list(root.handlers))
    yield
    for handler in list(root.handlers):
        if handler not in previous[1]:
            handler.close()
            root.removeHandler(handler)
    for handler in previous[1]:
        if handler not in root.handlers:
            root.addHandler(handler)
    root.setLevel(previous[0])


def test_configure_from_settings_writes_rotating_log(tmp_path: Path, fresh_logging: None) -> None:
    settings = HarnessSettings(debug_logging=True, log_dir=str(tmp_path / "logs"))

    path = logging_utils.configure_from_settings(settings, console=False)
    logging.getLogger("editorprobe.test").debug("hello from the harness")

    assert path == tmp_path / "logs" / "editorprobe.log"
    assert logging_utils.get_log_path() == path
    assert logging.getLogger().level == logging.DEBUG
    assert logging.getLogger("asyncio").level == logging.WARNING
    for handler in logging.getLogger().handlers:
        handler.flush()
    assert "hello from the harness" in path.read_text(encoding="utf-8")


def test_setup_is_idempotent_without_force(tmp_path: Path, fresh_logging: None) -> None:
    first = logging_utils.setup_logging(log_dir=tmp_path / "a", console=False)
    second = logging_utils.setup_logging(log_dir=tmp_path / "b", console=False)
    forced = logging_utils.setup_logging(log_dir=tmp_path / "b", console=False, force=True)

    assert first == second
    assert forced == tmp_path / "b" / "editorprobe.log"


def test_log_dir_from_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch, fresh_logging: None) -> None:
    monkeypatch.setenv("EDITORPROBE_LOG_DIR", str(tmp_path / "env-logs"))

    path = logging_utils.setup_logging(console=False)

    assert path.parent == tmp_path / "env-logs"


def test_console_only_shows_warnings_without_debug(tmp_path: Path, fresh_logging: None) -> None:
    settings = HarnessSettings(log_dir=str(tmp_path))

    logging_utils.configure_from_settings(settings)

    levels = {type(handler).__name__: handler.level for handler in logging.getLogger().handlers}
    assert levels == {"RotatingFileHandler": logging.INFO, "StreamHandler": logging.WARNING}
    assert logging.getLogger().level == logging.INFO


@pytest.mark.parametrize(
    ("debug", "console", "expected"),
    [
        (False, True, (logging.INFO, logging.WARNING, logging.INFO)),
        (False, False, (logging.INFO, None, logging.INFO)),
        (True, True, (logging.DEBUG, logging.DEBUG, logging.DEBUG)),
        (True, False, (logging.DEBUG, None, logging.DEBUG)),
    ],
)
def test_policy_from_settings(debug: bool, console: bool, expected: tuple[int, int | None, int]) -> None:
    policy = logging_utils.LoggingPolicy.from_settings(HarnessSettings(debug_logging=debug), console=console)

    assert (policy.file_level, policy.console_level, policy.root_level) == expected

"""Tests covering the command-line entry point."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest

from editorprobe import app
from editorprobe.services.settings import HarnessSettings


@pytest.fixture(autouse=True)
def _no_log_files(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setattr(
        app.logging_utils, "configure_from_settings", lambda settings, **_kwargs: tmp_path / "editorprobe.log"
    )


def _settings_args(tmp_path: Path) -> list[str]:
    return ["--settings", str(tmp_path / "settings.json"), "--set", "frame_interval=0"]


def test_list_prints_catalog(capsys: pytest.CaptureFixture[str]) -> None:
    assert app.main(["--list"]) == 0

    lines = capsys.readouterr().out.strip().splitlines()
    assert len(lines) == 20
    assert "rename\trename" in lines
    assert "code-lens-references\tcode-lens-references" in lines


def test_runs_selected_scenario(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    exit_code = app.main(["--scenario", "rename", "--scenario", "show-hover", *_settings_args(tmp_path)])

    out = capsys.readouterr().out
    assert exit_code == 0
    assert "PASS rename" in out
    assert "PASS show-hover" in out
    assert "2/2 scenarios passed" in out


def test_failing_catalog_scenario_sets_exit_code(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    catalog = tmp_path / "catalog.yaml"
    catalog.write_text(
        "scenarios:\n"
        "  - name: hover-on-blank-line\n"
        "    uri: server\n"
        "    protocol: show-hover\n"
        "    start: '10:1'\n"
        "    timeout: 0.2\n",
        encoding="utf-8",
    )

    exit_code = app.main(["--catalog", str(catalog), *_settings_args(tmp_path)])

    out = capsys.readouterr().out
    assert exit_code == 1
    assert "FAIL hover-on-blank-line" in out
    assert "[timeout] in 'focused'" in out
    assert "0/1 scenarios passed" in out


def test_catalog_with_missing_document_reports_failure(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    catalog = tmp_path / "catalog.yaml"
    catalog.write_text(
        "scenarios:\n"
        "  - name: missing-document\n"
        "    uri: file:///workspace/missing.ts\n"
        "    protocol: show-hover\n"
        "    start: '12:16'\n"
        "  - name: hover-after-missing\n"
        "    uri: server\n"
        "    protocol: show-hover\n"
        "    start: '12:16'\n",
        encoding="utf-8",
    )

    exit_code = app.main(["--catalog", str(catalog), *_settings_args(tmp_path)])

    out = capsys.readouterr().out
    assert exit_code == 1
    assert "FAIL missing-document" in out
    assert "[host] in 'focused': FileNotFoundError" in out
    assert "PASS hover-after-missing" in out
    assert "1/2 scenarios passed" in out


def test_unknown_scenario_is_usage_error(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    exit_code = app.main(["--scenario", "format-document", *_settings_args(tmp_path)])

    assert exit_code == 2
    assert "Unknown scenario 'format-document'" in capsys.readouterr().err


@pytest.mark.parametrize("override", ["scenario_timeout=soon", "novalue", "=3", "theme=dark"])
def test_bad_override_is_usage_error(override: str, capsys: pytest.CaptureFixture[str]) -> None:
    assert app.main(["--list", "--set", override]) == 2
    assert "Invalid --set override" in capsys.readouterr().err


def test_settings_path_from_environment(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    path = tmp_path / "from-env.json"
    path.write_text('{"frame_interval": 0, "scenario_timeout": 10}', encoding="utf-8")
    monkeypatch.setenv("EDITORPROBE_SETTINGS_PATH", str(path))
    captured: dict[str, HarnessSettings] = {}
    monkeypatch.setattr(
        app.logging_utils,
        "configure_from_settings",
        lambda settings, **_kwargs: captured.setdefault("settings", settings),
    )

    assert app.main(["--list"]) == 0
    assert captured["settings"].scenario_timeout == 10


def test_load_settings_survives_unreadable_store() -> None:
    class _BrokenStore:
        path = Path("/unreadable/settings.json")

        def load(self, *, overrides: Any = None) -> HarnessSettings:
            raise PermissionError("denied")

    assert app.load_settings(store=_BrokenStore()) == HarnessSettings()  # type: ignore[arg-type]

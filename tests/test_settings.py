"""Tests for the settings persistence layer."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from editorprobe.services.settings import HarnessSettings, SettingsStore, coerce_override


def test_defaults() -> None:
    settings = HarnessSettings()

    assert settings.scenario_timeout == 15.0
    assert settings.extended_timeout == 30.0
    assert settings.wait_timeout is None
    assert settings.frame_clock == "asyncio"
    assert settings.managed_flag == "typescript.isManagedFile"


@pytest.mark.parametrize("field, value", [("scenario_timeout", 0), ("extended_timeout", -1), ("frame_interval", -0.1)])
def test_rejects_invalid_values(field: str, value: float) -> None:
    with pytest.raises(ValueError):
        HarnessSettings(**{field: value})


def test_load_returns_defaults_when_file_missing(tmp_path: Path) -> None:
    assert SettingsStore(tmp_path / "settings.json").load() == HarnessSettings()


def test_save_and_load_roundtrip(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "settings.json"
    original = HarnessSettings(scenario_timeout=4.0, wait_timeout=1.5, frame_clock="qt", debug_logging=True)

    SettingsStore(path).save(original)

    assert json.loads(path.read_text(encoding="utf-8"))["version"] == 1
    assert SettingsStore(path).load() == original


def test_unknown_keys_are_ignored(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"scenario_timeout": 3.0, "theme": "dark"}), encoding="utf-8")

    assert SettingsStore(path).load().scenario_timeout == 3.0


@pytest.mark.parametrize("body", ["{not json", "[1, 2]", json.dumps({"scenario_timeout": -5})])
def test_unusable_file_falls_back_to_defaults(tmp_path: Path, body: str) -> None:
    path = tmp_path / "settings.json"
    path.write_text(body, encoding="utf-8")

    assert SettingsStore(path).load() == HarnessSettings()


def test_environment_overrides(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("EDITORPROBE_SCENARIO_TIMEOUT", "7.5")
    monkeypatch.setenv("EDITORPROBE_DEBUG_LOGGING", "yes")
    monkeypatch.setenv("EDITORPROBE_MANAGED_FLAG", "python.isManagedFile")
    monkeypatch.setenv("EDITORPROBE_FRAME_INTERVAL", "fast")

    settings = SettingsStore(tmp_path / "settings.json").load()

    assert settings.scenario_timeout == 7.5
    assert settings.debug_logging is True
    assert settings.managed_flag == "python.isManagedFile"
    assert settings.frame_interval == HarnessSettings().frame_interval


def test_environment_wins_over_cli(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("EDITORPROBE_WAIT_TIMEOUT", "2")

    settings = SettingsStore(tmp_path / "settings.json").load(
        overrides={"wait_timeout": 0.5, "save_on_close": True, "bogus": 1}
    )

    assert settings.wait_timeout == 2.0
    assert settings.save_on_close is True


def test_invalid_cli_override_is_ignored(tmp_path: Path) -> None:
    settings = SettingsStore(tmp_path / "settings.json").load(overrides={"scenario_timeout": -1.0})

    assert settings.scenario_timeout == 15.0


class TestCoerceOverride:
    """``--set key=value`` parsing."""

    @pytest.mark.parametrize(
        "key, raw, expected",
        [
            ("debug_logging", "on", True),
            ("save_on_close", "No", False),
            ("scenario_timeout", "2", 2.0),
            ("wait_timeout", "0.25", 0.25),
            ("wait_timeout", "none", None),
            ("frame_clock", " qt ", "qt"),
        ],
    )
    def test_values_follow_field_types(self, key: str, raw: str, expected: object) -> None:
        assert coerce_override(key, raw) == expected

    @pytest.mark.parametrize(
        "key, raw",
        [("theme", "dark"), ("debug_logging", "maybe"), ("frame_interval", "fast")],
    )
    def test_rejects_bad_input(self, key: str, raw: str) -> None:
        with pytest.raises(ValueError):
            coerce_override(key, raw)

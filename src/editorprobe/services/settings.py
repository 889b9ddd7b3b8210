"""Harness settings dataclass and JSON persistence helpers."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping

__all__ = ["HarnessSettings", "SettingsStore", "coerce_override"]

LOGGER = logging.getLogger(__name__)
_SETTINGS_DIR = Path.home() / ".editorprobe"
_DEFAULT_SETTINGS_PATH = _SETTINGS_DIR / "settings.json"
_SETTINGS_VERSION = 1
_ENV_OVERRIDES: Mapping[str, str] = {
    "EDITORPROBE_FRAME_CLOCK": "frame_clock",
    "EDITORPROBE_MANAGED_FLAG": "managed_flag",
    "EDITORPROBE_LOG_DIR": "log_dir",
}
_BOOL_ENV_OVERRIDES: Mapping[str, str] = {
    "EDITORPROBE_DEBUG_LOGGING": "debug_logging",
    "EDITORPROBE_SAVE_ON_CLOSE": "save_on_close",
}
_FLOAT_ENV_OVERRIDES: Mapping[str, str] = {
    "EDITORPROBE_SCENARIO_TIMEOUT": "scenario_timeout",
    "EDITORPROBE_EXTENDED_TIMEOUT": "extended_timeout",
    "EDITORPROBE_FRAME_INTERVAL": "frame_interval",
    "EDITORPROBE_WAIT_TIMEOUT": "wait_timeout",
}
_TRUE_VALUES = {"1", "true", "yes", "on", "debug"}
_FALSE_VALUES = {"0", "false", "no", "off", "disabled"}


@dataclass(slots=True)
class HarnessSettings:
    """Deadlines, pacing and host wiring for scenario runs.

    ``scenario_timeout`` bounds an ordinary scenario; ``extended_timeout`` is
    used by scenarios that wait on slow backend features such as code lenses.
    ``wait_timeout`` optionally bounds every single wait in addition to the
    scenario deadline (``None`` leaves waits to the scenario deadline).
    """

    scenario_timeout: float = 15.0
    extended_timeout: float = 30.0
    wait_timeout: float | None = None
    frame_interval: float = 1 / 60
    frame_clock: str = "asyncio"
    managed_flag: str = "typescript.isManagedFile"
    save_on_close: bool = False
    debug_logging: bool = False
    log_dir: str | None = None

    def __post_init__(self) -> None:
        if self.scenario_timeout <= 0 or self.extended_timeout <= 0:
            raise ValueError("scenario deadlines must be positive")
        if self.frame_interval < 0:
            raise ValueError("frame_interval must not be negative")


class SettingsStore:
    """Persistence adapter for :class:`HarnessSettings`."""

    def __init__(self, path: Path | None = None) -> None:
        self._path = path or _DEFAULT_SETTINGS_PATH

    @property
    def path(self) -> Path:
        return self._path

    def load(self, *, overrides: Mapping[str, Any] | None = None) -> HarnessSettings:
        """Load settings from disk, then apply CLI and environment overrides."""

        payload = self._read_payload()
        settings = HarnessSettings()
        if payload:
            data = _filter_fields(payload)
            try:
                settings = HarnessSettings(**data)
            except (TypeError, ValueError) as exc:
                LOGGER.warning("Settings payload in %s is invalid: %s", self._path, exc)
                settings = HarnessSettings()
            LOGGER.debug("Settings loaded from %s: %s", self._path, sorted(data))

        if overrides:
            settings = self._apply_overrides(settings, overrides, source="CLI")
        return self._apply_env_overrides(settings)

    def save(self, settings: HarnessSettings) -> Path:
        """Persist settings with an atomic replace."""

        payload = asdict(settings)
        payload["version"] = _SETTINGS_VERSION
        body = json.dumps(payload, indent=2, sort_keys=True)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(".tmp")
        tmp_path.write_text(body, encoding="utf-8")
        tmp_path.replace(self._path)
        LOGGER.debug("Settings saved to %s", self._path)
        return self._path

    def _read_payload(self) -> Dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except json.JSONDecodeError as exc:
            LOGGER.warning("Settings file %s is not valid JSON: %s", self._path, exc)
            return {}
        if not isinstance(data, dict):
            LOGGER.warning("Settings file %s does not contain an object", self._path)
            return {}
        return data

    def _apply_overrides(
        self,
        settings: HarnessSettings,
        overrides: Mapping[str, Any],
        *,
        source: str = "runtime",
    ) -> HarnessSettings:
        allowed = {field.name for field in fields(HarnessSettings)}
        filtered: Dict[str, Any] = {}
        for key, value in overrides.items():
            if key not in allowed:
                LOGGER.warning("Ignoring unknown %s setting %r", source, key)
                continue
            filtered[key] = value
        if not filtered:
            return settings
        LOGGER.debug("Applying %s settings overrides: %s", source, sorted(filtered))
        try:
            return replace(settings, **filtered)
        except (TypeError, ValueError) as exc:
            LOGGER.warning("Ignoring invalid %s overrides %s: %s", source, sorted(filtered), exc)
            return settings

    def _apply_env_overrides(self, settings: HarnessSettings) -> HarnessSettings:
        overrides: Dict[str, Any] = {}
        for env_name, field_name in _ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is not None:
                overrides[field_name] = value
        for env_name, field_name in _BOOL_ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is not None:
                overrides[field_name] = value.strip().lower() in _TRUE_VALUES
        for env_name, field_name in _FLOAT_ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is None:
                continue
            try:
                overrides[field_name] = float(value)
            except ValueError:
                LOGGER.warning("Environment override %s=%s is not a valid float", env_name, value)
        if overrides:
            settings = self._apply_overrides(settings, overrides, source="environment")
        return settings


def coerce_override(key: str, raw: str) -> Any:
    """Convert a ``--set key=value`` string to the type of the target field.

    Raises:
        ValueError: unknown key or a value that does not parse.
    """

    known = {field.name: field for field in fields(HarnessSettings)}
    if key not in known:
        raise ValueError(f"unknown setting {key!r}")
    default = getattr(HarnessSettings(), key)
    text = raw.strip()
    if default is None and text.lower() in {"", "none", "null"}:
        return None
    if isinstance(default, bool):
        lowered = text.lower()
        if lowered in _TRUE_VALUES:
            return True
        if lowered in _FALSE_VALUES:
            return False
        raise ValueError(f"{key} expects a boolean, got {raw!r}")
    if isinstance(default, float) or key == "wait_timeout":
        try:
            return float(text)
        except ValueError as exc:
            raise ValueError(f"{key} expects a number, got {raw!r}") from exc
    return text


def _filter_fields(payload: Mapping[str, Any]) -> Dict[str, Any]:
    allowed = {field.name for field in fields(HarnessSettings)}
    return {key: value for key, value in payload.items() if key in allowed}

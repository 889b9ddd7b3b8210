"""Logging setup for harness runs.

Harness logs always go to a rotating ``editorprobe.log``. The console only
carries warnings unless debug logging is enabled, so scenario progress lines
printed by the command line stay readable.
"""

from __future__ import annotations

import logging
import logging.handlers
import os
from dataclasses import dataclass
from pathlib import Path

from ..services.settings import HarnessSettings

__all__ = ["LoggingPolicy", "configure_from_settings", "setup_logging", "get_log_path"]

_DEFAULT_LOG_DIR = Path.home() / ".editorprobe" / "logs"
# Per-frame callbacks make these chatty at DEBUG.
_NOISY_LOGGERS: tuple[str, ...] = ("asyncio", "qasync")
_HARNESS_LOGGER = "editorprobe"
_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
_CONFIGURED = False
_LOG_PATH: Path | None = None


@dataclass(slots=True, frozen=True)
class LoggingPolicy:
    """Handler levels and rotation limits for one logging configuration.

    ``console_level`` of ``None`` disables console output entirely.
    """

    file_level: int = logging.INFO
    console_level: int | None = logging.WARNING
    max_bytes: int = 1_000_000
    backup_count: int = 3

    @classmethod
    def from_settings(cls, settings: HarnessSettings, *, console: bool = True) -> LoggingPolicy:
        if settings.debug_logging:
            return cls(file_level=logging.DEBUG, console_level=logging.DEBUG if console else None)
        return cls(file_level=logging.INFO, console_level=logging.WARNING if console else None)

    @property
    def root_level(self) -> int:
        if self.console_level is None:
            return self.file_level
        return min(self.file_level, self.console_level)


def configure_from_settings(settings: HarnessSettings, *, console: bool = True, force: bool = False) -> Path:
    """Apply ``debug_logging`` and ``log_dir`` from harness settings."""

    policy = LoggingPolicy.from_settings(settings, console=console)
    path = _install(policy, log_dir=settings.log_dir, force=force)
    logging.getLogger(__name__).debug(
        "Logging configured (file=%s, level=%s)", path, logging.getLevelName(policy.file_level)
    )
    return path


def setup_logging(
    level: int = logging.INFO,
    *,
    log_dir: Path | str | None = None,
    console: bool = True,
    force: bool = False,
) -> Path:
    """Log everything at ``level`` to the rotating file and, optionally, the console.

    Repeated calls are no-ops unless ``force`` is set.
    """

    policy = LoggingPolicy(file_level=level, console_level=level if console else None)
    return _install(policy, log_dir=log_dir, force=force)


def get_log_path() -> Path | None:
    """Return the active log file, if logging was configured."""

    return _LOG_PATH


def _install(policy: LoggingPolicy, *, log_dir: Path | str | None, force: bool) -> Path:
    global _CONFIGURED, _LOG_PATH
    if _CONFIGURED and not force and _LOG_PATH is not None:
        return _LOG_PATH

    log_path = _resolve_log_dir(log_dir) / "editorprobe.log"
    log_path.parent.mkdir(parents=True, exist_ok=True)
    logging.basicConfig(level=policy.root_level, handlers=_build_handlers(policy, log_path), force=True)
    logging.captureWarnings(True)
    logging.getLogger(_HARNESS_LOGGER).setLevel(policy.root_level)
    quiet_level = max(policy.root_level, logging.WARNING)
    for logger_name in _NOISY_LOGGERS:
        logging.getLogger(logger_name).setLevel(quiet_level)

    _CONFIGURED = True
    _LOG_PATH = log_path
    return log_path


def _build_handlers(policy: LoggingPolicy, log_path: Path) -> list[logging.Handler]:
    formatter = logging.Formatter(fmt=_LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
    file_handler = logging.handlers.RotatingFileHandler(
        log_path, maxBytes=policy.max_bytes, backupCount=policy.backup_count, encoding="utf-8"
    )
    file_handler.setLevel(policy.file_level)
    file_handler.setFormatter(formatter)
    handlers: list[logging.Handler] = [file_handler]
    if policy.console_level is not None:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(policy.console_level)
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)
    return handlers


def _resolve_log_dir(log_dir: Path | str | None) -> Path:
    env_override = os.environ.get("EDITORPROBE_LOG_DIR")
    return Path(log_dir or env_override or _DEFAULT_LOG_DIR).expanduser()

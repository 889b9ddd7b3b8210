"""Service layer helpers (settings persistence)."""

from .settings import HarnessSettings, SettingsStore, coerce_override

__all__ = ["HarnessSettings", "SettingsStore", "coerce_override"]

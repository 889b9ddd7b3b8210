"""Declarative scenario catalogs stored as YAML.

A catalog file holds a ``scenarios`` list. Each entry names a protocol and
the parameters that protocol needs::

    scenarios:
      - name: reveal-definition
        uri: server
        protocol: go-to-definition
        start: "12:4"
        expected_word: container
        target: {uri: server, position: "11:7", word: container}

URIs may use the workspace aliases ``server``, ``inversify`` and
``container``; anything else is taken literally.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Callable, Dict, Mapping

from ruamel.yaml import YAML
from ruamel.yaml.error import MarkedYAMLError, YAMLError

from ..core.positions import CursorPosition, SelectionRange
from ..harness import protocols
from ..harness.errors import ErrorCode, HarnessError, UsageError
from ..harness.protocols import EditTrigger, InteractionProtocol, NavigationTarget
from ..harness.runner import Scenario
from ..simulated.documents import SampleWorkspace

LOGGER = logging.getLogger(__name__)


def load_catalog(path: Path | str, *, workspace: SampleWorkspace | None = None) -> list[Scenario]:
    """Read ``path`` and build its scenarios."""

    source = Path(path).expanduser()
    try:
        text = source.read_text(encoding="utf-8")
    except OSError as exc:
        raise _invalid(f"Cannot read scenario catalog {source}: {exc}") from exc
    scenarios = parse_catalog(text, workspace=workspace)
    LOGGER.debug("Loaded %d scenario(s) from %s", len(scenarios), source)
    return scenarios


def parse_catalog(text: str, *, workspace: SampleWorkspace | None = None) -> list[Scenario]:
    parser = YAML(typ="safe")
    parser.allow_duplicate_keys = False
    try:
        payload = parser.load(text)
    except MarkedYAMLError as exc:
        mark = exc.problem_mark
        where = f" (line {mark.line + 1})" if mark is not None else ""
        raise _invalid(f"Scenario catalog is not valid YAML{where}: {exc.problem}") from exc
    except YAMLError as exc:
        raise _invalid(f"Scenario catalog is not valid YAML: {exc}") from exc

    if not isinstance(payload, Mapping) or not isinstance(payload.get("scenarios"), list):
        raise _invalid("Scenario catalog must contain a 'scenarios' list")
    aliases = _aliases(workspace or SampleWorkspace())
    scenarios = [scenario_from_mapping(entry, aliases=aliases) for entry in payload["scenarios"]]
    names = [scenario.name for scenario in scenarios]
    duplicates = sorted({name for name in names if names.count(name) > 1})
    if duplicates:
        raise _invalid(f"Duplicate scenario names: {', '.join(duplicates)}")
    return scenarios


def scenario_from_mapping(entry: Any, *, aliases: Mapping[str, str] | None = None) -> Scenario:
    """Build one :class:`Scenario` from a catalog entry."""

    if not isinstance(entry, Mapping):
        raise _invalid(f"Scenario entries must be mappings, got {entry!r}")
    aliases = aliases or {}
    name = str(entry.get("name") or "").strip()
    if not name:
        raise _invalid("Scenario entry is missing a name")
    protocol_name = entry.get("protocol")
    builder = _PROTOCOL_BUILDERS.get(str(protocol_name))
    if builder is None:
        raise _invalid(
            f"Scenario {name!r} uses unknown protocol {protocol_name!r}",
            known=sorted(_PROTOCOL_BUILDERS),
        )
    try:
        uri = _resolve_uri(_require(entry, "uri", name), aliases)
        start = CursorPosition.from_value(_require(entry, "start", name))
        selection = entry.get("selection")
        protocol = builder(entry, aliases, start)
        return Scenario(
            name=name,
            uri=uri,
            protocol=protocol,
            start=start,
            preview=bool(entry.get("preview", False)),
            selection=SelectionRange.from_value(selection) if selection is not None else None,
            expected_word=entry.get("expected_word"),
            open_first=tuple(_resolve_uri(item, aliases) for item in entry.get("open_first") or ()),
            timeout=float(entry["timeout"]) if entry.get("timeout") is not None else None,
            extended=bool(entry.get("extended", False)),
        )
    except HarnessError:
        raise
    except (KeyError, TypeError, ValueError) as exc:
        raise _invalid(f"Scenario {name!r} is malformed: {exc}") from exc


# -----------------------------------------------------------------------------
# Protocol builders
# -----------------------------------------------------------------------------

ProtocolBuilder = Callable[[Mapping[str, Any], Mapping[str, str], CursorPosition], InteractionProtocol]


def _target(entry: Mapping[str, Any], aliases: Mapping[str, str]) -> NavigationTarget:
    raw = _require(entry, "target", str(entry.get("name")))
    if not isinstance(raw, Mapping):
        raise TypeError("target must be a mapping")
    preview = raw.get("preview")
    return NavigationTarget(
        uri=_resolve_uri(raw["uri"], aliases),
        position=CursorPosition.from_value(raw["position"]),
        word=str(raw["word"]),
        preview=None if preview is None else bool(preview),
    )


def _navigation(factory: Callable[[NavigationTarget], InteractionProtocol]) -> ProtocolBuilder:
    return lambda entry, aliases, start: factory(_target(entry, aliases))


def _suggest(entry: Mapping[str, Any], aliases: Mapping[str, str], start: CursorPosition) -> InteractionProtocol:
    return protocols.trigger_suggest(
        expected_cursor=CursorPosition.from_value(_require(entry, "expected_cursor", entry["name"])),
        expected_word=str(entry.get("committed_word") or _require(entry, "expected_word", entry["name"])),
    )


def _rename(entry: Mapping[str, Any], aliases: Mapping[str, str], start: CursorPosition) -> InteractionProtocol:
    cursor = entry.get("expected_cursor")
    return protocols.rename(
        original_word=str(entry.get("original_word") or _require(entry, "expected_word", entry["name"])),
        new_name=str(_require(entry, "new_name", entry["name"])),
        expected_cursor=CursorPosition.from_value(cursor) if cursor is not None else start,
    )


def _hover(entry: Mapping[str, Any], aliases: Mapping[str, str], start: CursorPosition) -> InteractionProtocol:
    return protocols.show_hover(expected_text=entry.get("hover"))


def _code_lens(entry: Mapping[str, Any], aliases: Mapping[str, str], start: CursorPosition) -> InteractionProtocol:
    edit = _require(entry, "edit", entry["name"])
    if not isinstance(edit, Mapping):
        raise TypeError("edit must be a mapping")
    selection = edit.get("selection")
    if selection is None:
        selection = SelectionRange.caret(CursorPosition.from_value(edit["at"]))
    return protocols.code_lens_references(
        edit=EditTrigger(SelectionRange.from_value(selection), str(edit["text"])),
        expected_label=str(_require(entry, "lens_label", entry["name"])),
        preference_key=str(entry.get("preference") or protocols.REFERENCES_CODE_LENS_PREFERENCE),
    )


_PROTOCOL_BUILDERS: Dict[str, ProtocolBuilder] = {
    "go-to-definition": _navigation(protocols.go_to_definition),
    "go-to-implementation": _navigation(protocols.go_to_implementation),
    "go-to-type-definition": _navigation(protocols.go_to_type_definition),
    "peek-definition": _navigation(protocols.peek_definition),
    "trigger-suggest": _suggest,
    "rename": _rename,
    "trigger-parameter-hints": lambda entry, aliases, start: protocols.trigger_parameter_hints(),
    "show-hover": _hover,
    "code-lens-references": _code_lens,
    "highlight-write-occurrences": lambda entry, aliases, start: protocols.highlight_write_occurrences(),
}


def known_protocols() -> list[str]:
    return sorted(_PROTOCOL_BUILDERS)


# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------


def _aliases(workspace: SampleWorkspace) -> dict[str, str]:
    return {
        "server": workspace.server_uri,
        "inversify": workspace.inversify_uri,
        "container": workspace.container_uri,
    }


def _resolve_uri(value: Any, aliases: Mapping[str, str]) -> str:
    text = str(value).strip()
    return aliases.get(text, text)


def _require(entry: Mapping[str, Any], key: str, name: str) -> Any:
    if entry.get(key) is None:
        raise _invalid(f"Scenario {name!r} is missing {key!r}")
    return entry[key]


def _invalid(message: str, **details: Any) -> UsageError:
    return UsageError(error_code=ErrorCode.INVALID_SCENARIO, message=message, details=details)


__all__ = ["known_protocols", "load_catalog", "parse_catalog", "scenario_from_mapping"]

"""Tests for the built-in catalog and YAML scenario files."""

from __future__ import annotations

from pathlib import Path

import pytest

from editorprobe.core.positions import CursorPosition, SelectionRange
from editorprobe.harness.errors import ErrorCode, UsageError
from editorprobe.harness.protocols import Conjunction, EditTrigger
from editorprobe.scenarios import builtin_scenarios, known_protocols, load_catalog, parse_catalog
from editorprobe.simulated.documents import SampleWorkspace

CATALOG = """
scenarios:
  - name: reveal-definition
    uri: server
    protocol: go-to-definition
    start: "12:4"
    expected_word: container
    target: {uri: server, position: "11:7", word: container, preview: false}
  - name: suggest
    uri: server
    protocol: trigger-suggest
    start: [5, 9]
    selection: {line: 5, start_column: 9, end_column: 18}
    expected_word: Container
    expected_cursor: "5:18"
  - name: lens
    uri: server
    protocol: code-lens-references
    start: "1:1"
    extended: true
    edit: {at: "16:1", text: "export "}
    lens_label: 19 references
  - name: type-definition
    uri: server
    protocol: go-to-type-definition
    start: {line: 12, column: 4}
    open_first: [inversify]
    timeout: 3
    target: {uri: container, position: "2:15", word: Container}
"""


class TestBuiltinCatalog:
    def test_catalog_names(self) -> None:
        scenarios = builtin_scenarios()
        names = [scenario.name for scenario in scenarios]

        assert len(scenarios) == 20
        assert len(set(names)) == 20
        assert names[:3] == [
            "reveal-definition-within-editor",
            "reveal-definition-from-editor-to-editor",
            "reveal-definition-from-editor-to-preview",
        ]
        assert "peek-definition-from-preview-to-preview" in names

    def test_only_code_lens_uses_extended_deadline(self) -> None:
        extended = [scenario.name for scenario in builtin_scenarios() if scenario.extended]
        assert extended == ["code-lens-references"]

    def test_custom_workspace_root(self) -> None:
        workspace = SampleWorkspace(root="file:///tmp/ws")
        assert all(scenario.uri.startswith("file:///tmp/ws/") for scenario in builtin_scenarios(workspace))


class TestYamlCatalog:
    """Declarative catalogs go through the same Scenario type."""

    def test_parse_catalog_resolves_aliases(self) -> None:
        workspace = SampleWorkspace()
        definition, suggest, lens, type_definition = parse_catalog(CATALOG, workspace=workspace)

        assert definition.uri == workspace.server_uri
        assert definition.protocol.name == "go-to-definition"
        assert definition.protocol.steps[0].expected_cursor == CursorPosition(11, 7)
        assert definition.protocol.steps[0].expected_preview is False

        assert suggest.start == CursorPosition(5, 9)
        assert suggest.selection == SelectionRange.on_line(5, 9, 18)
        assert suggest.protocol.steps[1].expected_cursor == CursorPosition(5, 18)

        trigger = lens.protocol.steps[0].trigger
        assert lens.extended
        assert isinstance(trigger, Conjunction)
        assert trigger.triggers[0] == EditTrigger(SelectionRange.caret(CursorPosition(16, 1)), "export ")

        assert type_definition.open_first == (workspace.inversify_uri,)
        assert type_definition.timeout == 3.0
        assert type_definition.protocol.steps[0].expected_uri == workspace.container_uri

    def test_load_catalog_from_file(self, tmp_path: Path) -> None:
        path = tmp_path / "catalog.yaml"
        path.write_text(CATALOG, encoding="utf-8")

        assert [scenario.name for scenario in load_catalog(path)] == [
            "reveal-definition",
            "suggest",
            "lens",
            "type-definition",
        ]

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(UsageError, match="Cannot read scenario catalog"):
            load_catalog(tmp_path / "absent.yaml")

    @pytest.mark.parametrize(
        "text, message",
        [
            ("scenarios: [\n", "not valid YAML"),
            ("name: lonely\n", "'scenarios' list"),
            ("scenarios:\n  - {name: x, uri: server, protocol: format-document, start: '1:1'}\n", "unknown protocol"),
            ("scenarios:\n  - {name: x, uri: server, protocol: show-hover}\n", "missing 'start'"),
            ("scenarios:\n  - {name: x, uri: server, protocol: show-hover, start: '0:1'}\n", "malformed"),
            (
                "scenarios:\n"
                "  - {name: x, uri: server, protocol: show-hover, start: '1:1'}\n"
                "  - {name: x, uri: server, protocol: show-hover, start: '2:1'}\n",
                "Duplicate scenario names: x",
            ),
        ],
    )
    def test_invalid_catalogs(self, text: str, message: str) -> None:
        with pytest.raises(UsageError, match=message) as caught:
            parse_catalog(text)
        assert caught.value.error_code == ErrorCode.INVALID_SCENARIO

    def test_known_protocols(self) -> None:
        assert "rename" in known_protocols()
        assert known_protocols() == sorted(known_protocols())

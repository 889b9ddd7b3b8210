"""Toy language backend answering definition, completion and lens queries.

It understands just enough JavaScript/TypeScript declaration syntax for the
sample workspace: ``const``/``function``/``class`` declarations, destructured
``require`` imports and ``export { ... }`` re-exports.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Mapping

from ..core.positions import CursorPosition, SelectionRange
from .documents import SimulatedDocument

LOGGER = logging.getLogger(__name__)

_IMPORT = r"const \{ ([^}]*) \} = require\('([^']+)'\)"
_DECLARATION = r"\b(?:const|let|var|function|class)\s+({name})\b"
_NEW_EXPRESSION = r"\b(?:const|let|var)\s+{name}\s*=\s*new\s+(\w+)"
_CLASS = r"\b(?:declare\s+)?class\s+({name})\b"
_EXPORTED_FUNCTION = r"^export\s+function\s+(\w+)"


@dataclass(slots=True, frozen=True)
class Location:
    uri: str
    position: CursorPosition


@dataclass(slots=True, frozen=True)
class CodeLens:
    line: int
    label: str
    symbol: str


class SimulatedLanguageBackend:
    """Resolve language queries against a fixed set of documents."""

    def __init__(
        self,
        documents: Mapping[str, SimulatedDocument],
        *,
        module_uris: Mapping[str, str] | None = None,
        type_hints: Mapping[str, str] | None = None,
    ) -> None:
        self._documents = documents
        self._module_uris = dict(module_uris or {})
        self._type_hints = dict(type_hints or {})

    def supports(self, document: SimulatedDocument) -> bool:
        return document.language in {"javascript", "typescript"}

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------
    def definition(self, document: SimulatedDocument, position: CursorPosition) -> Location | None:
        span = document.word_at(position)
        if span is None:
            return None
        imported = self._resolve_import(document, span.text)
        if imported is not None:
            return imported
        return self._declaration(document, span.text)

    def implementation(self, document: SimulatedDocument, position: CursorPosition) -> Location | None:
        span = document.word_at(position)
        if span is None:
            return None
        return self._declaration(document, span.text) or self._resolve_import(document, span.text)

    def type_definition(self, document: SimulatedDocument, position: CursorPosition) -> Location | None:
        span = document.word_at(position)
        if span is None:
            return None
        pattern = _NEW_EXPRESSION.format(name=re.escape(span.text))
        for _, match in document.find(pattern):
            type_name = match.group(1)
            for candidate in self._documents.values():
                found = candidate.find(_CLASS.format(name=re.escape(type_name)))
                if found:
                    return Location(candidate.uri, found[0][0])
        return None

    def references(self, document: SimulatedDocument, symbol: str) -> list[Location]:
        declaration = self._declaration(document, symbol)
        return [
            Location(document.uri, position)
            for position in document.occurrences(symbol)
            if declaration is None or position != declaration.position
        ]

    # ------------------------------------------------------------------
    # Editing assistance
    # ------------------------------------------------------------------
    def completions(self, document: SimulatedDocument, position: CursorPosition, selected: str = "") -> list[str]:
        """Return candidate identifiers, best match first."""

        names: set[str] = set()
        for _, match in document.find(_IMPORT):
            module_uri = self._module_uris.get(match.group(2))
            if module_uri is not None and module_uri in self._documents:
                names.update(self._exports(self._documents[module_uri]))
        for _, match in document.find(_DECLARATION.format(name=r"\w+")):
            names.add(match.group(1))
        line = document.line(position.line)
        prefix_match = re.search(r"[\w$]*$", line[: position.column - 1])
        prefix = prefix_match.group(0) if prefix_match else ""
        word = selected or prefix
        ranked = sorted(names, key=lambda name: (name != word, not name.startswith(prefix), name.lower()))
        return [name for name in ranked if not prefix or name.startswith(prefix) or name == word]

    def rename_edits(self, document: SimulatedDocument, position: CursorPosition, new_name: str) -> list[tuple[SelectionRange, str]]:
        span = document.word_at(position)
        if span is None:
            return []
        width = len(span.text)
        return [
            (SelectionRange.on_line(found.line, found.column, found.column + width), new_name)
            for found in document.occurrences(span.text)
        ]

    def hover(self, document: SimulatedDocument, position: CursorPosition) -> str | None:
        span = document.word_at(position)
        if span is None:
            return None
        name = span.text
        for _, match in document.find(_NEW_EXPRESSION.format(name=re.escape(name))):
            return f"const {name}: {match.group(1)}"
        for _, match in document.find(_IMPORT):
            if name in _split_names(match.group(1)):
                return f"const {name}: {self._type_hints.get(name, 'any')}"
        for _, match in document.find(rf"\bfunction\s+{re.escape(name)}\s*(\([^)]*\))"):
            return f"function {name}{match.group(1)}: Promise<void>"
        return None

    def signature_help(self, document: SimulatedDocument, position: CursorPosition) -> str | None:
        """Return a signature label when the position sits inside call parentheses."""

        before = document.line(position.line)[: position.column - 1]
        depth = 0
        for index in range(len(before) - 1, -1, -1):
            char = before[index]
            if char == ")":
                depth += 1
            elif char == "(":
                if depth == 0:
                    callee = re.search(r"([\w$]+)\s*$", before[:index])
                    return f"{callee.group(1) if callee else 'call'}(...args: any[]): any"
                depth -= 1
        return None

    def is_write_occurrence(self, document: SimulatedDocument, position: CursorPosition) -> bool:
        span = document.word_at(position)
        if span is None:
            return False
        line = document.line(position.line)
        head = line[: span.start_column - 1]
        tail = line[span.end_column - 1 :]
        return bool(re.search(r"\b(?:const|let|var)\s+$", head) or re.match(r"\s*=(?!=)", tail))

    def reference_lenses(self, document: SimulatedDocument) -> list[CodeLens]:
        lenses: list[CodeLens] = []
        for position, match in document.find(_EXPORTED_FUNCTION):
            symbol = match.group(1)
            count = len(self.references(document, symbol))
            label = f"{count} reference" if count == 1 else f"{count} references"
            lenses.append(CodeLens(line=position.line, label=label, symbol=symbol))
        return lenses

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _declaration(self, document: SimulatedDocument, name: str) -> Location | None:
        found = document.find(_DECLARATION.format(name=re.escape(name)))
        if found:
            return Location(document.uri, found[0][0])
        return None

    def _resolve_import(self, document: SimulatedDocument, name: str) -> Location | None:
        for position, match in document.find(_IMPORT):
            if name not in _split_names(match.group(1)):
                continue
            module_uri = self._module_uris.get(match.group(2))
            target = self._documents.get(module_uri) if module_uri else None
            if target is None:
                # Unresolved modules land on the imported binding itself.
                offset = match.group(1).index(name)
                return Location(document.uri, position.shifted(columns=offset))
            for position, _ in target.find(rf"^export \{{[^}}]*?\b({re.escape(name)})\b"):
                return Location(target.uri, position)
        return None

    @staticmethod
    def _exports(document: SimulatedDocument) -> set[str]:
        names: set[str] = set()
        for _, match in document.find(r"^export \{ ([^}]*) \}"):
            for entry in _split_names(match.group(1)):
                names.add(entry)
        return names


def _split_names(group: str) -> list[str]:
    names = []
    for part in group.split(","):
        name = part.strip().split(" as ")[-1].strip()
        if name:
            names.append(name)
    return names


__all__ = ["CodeLens", "Location", "SimulatedLanguageBackend"]

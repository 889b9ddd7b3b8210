"""In-memory documents and the sample workspace used by the simulated host."""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from ..core.positions import CursorPosition, SelectionRange, WordSpan, word_at

DEFAULT_ROOT = "file:///workspace/examples/api-tests"


@dataclass(slots=True)
class SimulatedDocument:
    """Line-based text buffer addressed with one-based positions."""

    uri: str
    lines: list[str]
    version: int = 1

    @classmethod
    def from_text(cls, uri: str, text: str) -> SimulatedDocument:
        return cls(uri=uri, lines=text.split("\n"))

    @property
    def text(self) -> str:
        return "\n".join(self.lines)

    @property
    def language(self) -> str:
        if self.uri.endswith((".ts", ".d.ts")):
            return "typescript"
        if self.uri.endswith(".js"):
            return "javascript"
        return "plaintext"

    def line(self, number: int) -> str:
        if 1 <= number <= len(self.lines):
            return self.lines[number - 1]
        return ""

    def clamp(self, position: CursorPosition) -> CursorPosition:
        line = min(max(1, position.line), len(self.lines))
        column = min(max(1, position.column), len(self.line(line)) + 1)
        return CursorPosition(line, column)

    def word_at(self, position: CursorPosition) -> WordSpan | None:
        return word_at(self.line(position.line), position.column)

    def text_in(self, selection: SelectionRange) -> str:
        start, end = selection.start, selection.end
        if start.line == end.line:
            return self.line(start.line)[start.column - 1 : end.column - 1]
        parts = [self.line(start.line)[start.column - 1 :]]
        parts.extend(self.line(number) for number in range(start.line + 1, end.line))
        parts.append(self.line(end.line)[: end.column - 1])
        return "\n".join(parts)

    def replace(self, selection: SelectionRange, text: str) -> CursorPosition:
        """Replace ``selection`` with ``text`` and return the end of the insert."""

        start = self.clamp(selection.start)
        end = self.clamp(selection.end)
        head = self.line(start.line)[: start.column - 1]
        tail = self.line(end.line)[end.column - 1 :]
        inserted = text.split("\n")
        new_lines = [head + inserted[0]] + inserted[1:]
        end_line = start.line + len(new_lines) - 1
        end_column = len(new_lines[-1]) + 1
        new_lines[-1] = new_lines[-1] + tail
        self.lines[start.line - 1 : end.line] = new_lines
        self.version += 1
        return CursorPosition(end_line, end_column)

    def occurrences(self, word: str) -> list[CursorPosition]:
        """Whole-word occurrences of ``word`` that are not member accesses."""

        found: list[CursorPosition] = []
        pattern = re.compile(rf"(?<![\w$.]){re.escape(word)}(?![\w$])")
        for number, line in enumerate(self.lines, start=1):
            for match in pattern.finditer(line):
                found.append(CursorPosition(number, match.start() + 1))
        return found

    def find(self, pattern: str, group: int = 1) -> list[tuple[CursorPosition, re.Match[str]]]:
        """Regex search returning the position of ``group`` for every match."""

        compiled = re.compile(pattern)
        results: list[tuple[CursorPosition, re.Match[str]]] = []
        for number, line in enumerate(self.lines, start=1):
            for match in compiled.finditer(line):
                results.append((CursorPosition(number, match.start(group) + 1), match))
        return results


# -----------------------------------------------------------------------------
# Sample workspace
# -----------------------------------------------------------------------------

BACKEND_MODULES: tuple[str, ...] = (
    "@theia/core/lib/node/i18n/i18n-backend-module",
    "@theia/core/lib/node/hosting/backend-hosting-module",
    "@theia/core/lib/node/request/backend-request-module",
    "@theia/filesystem/lib/node/filesystem-backend-module",
    "@theia/filesystem/lib/node/download/file-download-backend-module",
    "@theia/workspace/lib/node/workspace-backend-module",
    "@theia/process/lib/common/process-common-module",
    "@theia/process/lib/node/process-backend-module",
    "@theia/file-search/lib/node/file-search-backend-module",
    "@theia/terminal/lib/node/terminal-backend-module",
    "@theia/task/lib/node/task-backend-module",
    "@theia/debug/lib/node/debug-backend-module",
    "@theia/search-in-workspace/lib/node/search-in-workspace-backend-module",
    "@theia/plugin-ext/lib/plugin-ext-backend-module",
    "@theia/plugin-ext-vscode/lib/node/plugin-vscode-backend-module",
    "@theia/preferences/lib/node/preference-backend-module",
    "@theia/mini-browser/lib/node/mini-browser-backend-module",
    "@theia/scm/lib/node/scm-backend-module",
    "@theia/git/lib/node/git-backend-module",
)

_SERVER_HEAD = """\
// @ts-check
require('reflect-metadata');
const path = require('path');
const express = require('express');
const { Container } = require('inversify');
const { BackendApplication, CliManager } = require('@theia/core/lib/node');
const { backendApplicationModule } = require('@theia/core/lib/node/backend-application-module');
const { messagingBackendModule } = require('@theia/core/lib/node/messaging/messaging-backend-module');
const { loggerBackendModule } = require('@theia/core/lib/node/logger-backend-module');

const container = new Container();
container.load(backendApplicationModule);
container.load(messagingBackendModule);
container.load(loggerBackendModule);

function load(raw) {
    return Promise.resolve(raw.default).then(
        module => container.load(module)
    );
}

function start(port, host, argv) {
    if (argv === undefined) {
        argv = process.argv;
    }
    const cliManager = container.get(CliManager);
    return cliManager.initializeCli(argv).then(function () {
        const application = container.get(BackendApplication);
        return application.start(port, host);
    });
}

module.exports = (port, host, argv) => Promise.resolve()"""

_SERVER_TAIL = """\
    .then(() => start(port, host, argv)).catch(error => {
        console.error('Failed to start the backend application.');
        console.error(error);
        process.exitCode = 1;
        throw error;
    });
"""

_INVERSIFY_DTS = """\
import * as keys from "./constants/metadata_keys";
export { keys as METADATA_KEY };
export { Container } from "./container/container";
export { ContainerModule, AsyncContainerModule } from "./container/container_module";
export { injectable } from "./annotation/injectable";
export { inject } from "./annotation/inject";
"""

_CONTAINER_DTS = """\
import { interfaces } from "../interfaces/interfaces";
declare class Container implements interfaces.Container {
    id: number;
    parent: interfaces.Container | null;
    load(...modules: interfaces.ContainerModule[]): void;
    get<T>(serviceIdentifier: interfaces.ServiceIdentifier<T>): T;
}
export { Container };
"""


def server_source() -> str:
    loads = "\n".join(
        f"    .then(function () {{ return load(require('{module}')); }})" for module in BACKEND_MODULES
    )
    return f"{_SERVER_HEAD}\n{loads}\n{_SERVER_TAIL}"


@dataclass(slots=True)
class SampleWorkspace:
    """The generated backend entry point plus the inversify typings it uses."""

    root: str = DEFAULT_ROOT
    type_hints: dict[str, str] = field(
        default_factory=lambda: {
            "backendApplicationModule": "ContainerModule",
            "messagingBackendModule": "ContainerModule",
            "loggerBackendModule": "ContainerModule",
        }
    )

    @property
    def server_uri(self) -> str:
        return f"{self.root}/src-gen/backend/server.js"

    @property
    def inversify_uri(self) -> str:
        return f"{self.root}/node_modules/inversify/dts/inversify.d.ts"

    @property
    def container_uri(self) -> str:
        return f"{self.root}/node_modules/inversify/dts/container/container.d.ts"

    @property
    def module_uris(self) -> dict[str, str]:
        return {"inversify": self.inversify_uri}

    def sources(self) -> dict[str, str]:
        return {
            self.server_uri: server_source(),
            self.inversify_uri: _INVERSIFY_DTS,
            self.container_uri: _CONTAINER_DTS,
        }


__all__ = [
    "BACKEND_MODULES",
    "DEFAULT_ROOT",
    "SampleWorkspace",
    "SimulatedDocument",
    "server_source",
]

"""Built-in scenarios against the sample backend workspace."""

from __future__ import annotations

from ..core.positions import CursorPosition, SelectionRange
from ..harness import protocols
from ..harness.protocols import EditTrigger, NavigationTarget
from ..harness.runner import Scenario
from ..simulated.documents import SampleWorkspace

# con|tainer.load(backendApplicationModule);
_CONTAINER_USE = CursorPosition(12, 4)
# const |container = new Container();
_CONTAINER_DECLARATION = CursorPosition(11, 7)
# const { Cont|ainer } = require('inversify');
_CONTAINER_IMPORT = CursorPosition(5, 13)
# export { |Container } from "./container/container";
_CONTAINER_EXPORT = CursorPosition(3, 10)
# declare class |Container implements interfaces.Container {
_CONTAINER_CLASS = CursorPosition(2, 15)
# container.load(|backendApplicationModule);
_MODULE_ARGUMENT = CursorPosition(12, 16)
# [export ]function load(raw) {
_LOAD_FUNCTION = CursorPosition(16, 1)


def builtin_scenarios(workspace: SampleWorkspace | None = None) -> list[Scenario]:
    """Return the default catalog in its canonical run order."""

    workspace = workspace or SampleWorkspace()
    scenarios: list[Scenario] = []
    for action, builder in (
        ("reveal-definition", protocols.go_to_definition),
        ("peek-definition", protocols.peek_definition),
    ):
        scenarios.extend(_navigation_matrix(workspace, action, builder))

    server = workspace.server_uri
    scenarios.append(
        Scenario(
            name="trigger-suggest",
            uri=server,
            protocol=protocols.trigger_suggest(
                expected_cursor=CursorPosition(5, 18), expected_word="Container"
            ),
            start=CursorPosition(5, 9),
            selection=SelectionRange.on_line(5, 9, 18),
            expected_word="Container",
        )
    )
    scenarios.append(
        Scenario(
            name="rename",
            uri=server,
            protocol=protocols.rename(
                original_word="container",
                new_name="foo",
                expected_cursor=_CONTAINER_DECLARATION,
            ),
            start=_CONTAINER_DECLARATION,
            expected_word="container",
        )
    )
    scenarios.append(
        Scenario(
            name="trigger-parameter-hints",
            uri=server,
            protocol=protocols.trigger_parameter_hints(),
            start=_MODULE_ARGUMENT,
            expected_word="backendApplicationModule",
        )
    )
    scenarios.append(
        Scenario(
            name="show-hover",
            uri=server,
            protocol=protocols.show_hover(expected_text="const backendApplicationModule: ContainerModule"),
            start=_MODULE_ARGUMENT,
            expected_word="backendApplicationModule",
        )
    )
    scenarios.append(
        Scenario(
            name="highlight-write-occurrences",
            uri=server,
            protocol=protocols.highlight_write_occurrences(),
            start=_CONTAINER_DECLARATION,
            expected_word="container",
        )
    )
    scenarios.append(
        Scenario(
            name="go-to-implementation",
            uri=server,
            protocol=protocols.go_to_implementation(
                NavigationTarget(server, _CONTAINER_DECLARATION, "container")
            ),
            start=_CONTAINER_USE,
            expected_word="container",
        )
    )
    scenarios.append(
        Scenario(
            name="go-to-type-definition",
            uri=server,
            protocol=protocols.go_to_type_definition(
                NavigationTarget(workspace.container_uri, _CONTAINER_CLASS, "Container")
            ),
            start=_CONTAINER_USE,
            expected_word="container",
        )
    )
    scenarios.append(
        Scenario(
            name="code-lens-references",
            uri=server,
            protocol=protocols.code_lens_references(
                edit=EditTrigger(SelectionRange.caret(_LOAD_FUNCTION), "export "),
                expected_label="19 references",
            ),
            start=CursorPosition(1, 1),
            extended=True,
        )
    )
    return scenarios


def _navigation_matrix(workspace: SampleWorkspace, action: str, builder) -> list[Scenario]:
    server = workspace.server_uri
    inversify = workspace.inversify_uri
    scenarios: list[Scenario] = []
    for preview in (False, True):
        origin = "preview" if preview else "editor"
        scenarios.append(
            Scenario(
                name=f"{action}-within-{origin}",
                uri=server,
                preview=preview,
                protocol=builder(NavigationTarget(server, _CONTAINER_DECLARATION, "container", preview=preview)),
                start=_CONTAINER_USE,
                expected_word="container",
            )
        )
        scenarios.append(
            Scenario(
                name=f"{action}-from-{origin}-to-editor",
                uri=server,
                preview=preview,
                open_first=(inversify,),
                protocol=builder(NavigationTarget(inversify, _CONTAINER_EXPORT, "Container", preview=False)),
                start=_CONTAINER_IMPORT,
                expected_word="Container",
            )
        )
        # The target is never open beforehand, so it lands in the preview slot.
        scenarios.append(
            Scenario(
                name=f"{action}-from-{origin}-to-preview",
                uri=server,
                protocol=builder(NavigationTarget(inversify, _CONTAINER_EXPORT, "Container", preview=True)),
                start=_CONTAINER_IMPORT,
                expected_word="Container",
            )
        )
    return scenarios


__all__ = ["builtin_scenarios"]

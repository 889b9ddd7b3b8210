"""In-process editor host used by the built-in scenarios and the test-suite.

The host keeps a single modal surface and a single focus owner, and derives
every context key from them. Backend answers arrive a few frames after the
request, the way a real language server round-trip would.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Mapping

from ..core.positions import CursorPosition, SelectionRange, WordSpan
from ..harness.disposables import CallbackDisposable, Disposable
from ..harness.flags import DEFAULT_MANAGED_FLAG, ModalSurface, StateFlag
from ..harness.frames import AsyncioFrameClock, FrameClock
from ..harness.protocols import (
    GO_TO_IMPLEMENTATION,
    GO_TO_TYPE_DEFINITION,
    PEEK_DEFINITION,
    REFERENCES_CODE_LENS_PREFERENCE,
    RENAME,
    REVEAL_DEFINITION,
    SHOW_HOVER,
    TRIGGER_PARAMETER_HINTS,
    TRIGGER_SUGGEST,
)
from .backend import CodeLens, Location, SimulatedLanguageBackend
from .documents import SampleWorkspace, SimulatedDocument

LOGGER = logging.getLogger(__name__)

FOCUS_TEXT = "text"
FOCUS_LIST = "list"
FOCUS_INPUT = "input"
FOCUS_NONE = "none"

CommandHandler = Callable[[], Awaitable[None]]


class SimulatedContextKeys:
    """Context-key store that notifies listeners when any value flips."""

    def __init__(self) -> None:
        self._values: Dict[str, bool] = {}
        self._listeners: list[Callable[[], None]] = []

    def match(self, key: str) -> bool:
        return self._values.get(key, False)

    def on_change(self, listener: Callable[[], None]) -> Disposable:
        self._listeners.append(listener)

        def _remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return CallbackDisposable(_remove, label="context-listener")

    def update(self, values: Mapping[str, bool]) -> bool:
        changed = [key for key, value in values.items() if self._values.get(key, False) != bool(value)]
        for key, value in values.items():
            self._values[key] = bool(value)
        if not changed:
            return False
        LOGGER.debug("Context keys changed: %s", ", ".join(sorted(changed)))
        for listener in list(self._listeners):
            try:
                listener()
            except Exception:
                LOGGER.exception("Context key listener failed")
        return True


class SimulatedPreferences:
    """Scoped preference values with change notification."""

    SCOPES = ("default", "user", "workspace")

    def __init__(self, defaults: Mapping[str, Any] | None = None) -> None:
        self._scopes: Dict[str, Dict[str, Any]] = {scope: {} for scope in self.SCOPES}
        self._scopes["default"].update(defaults or {})
        self._listeners: list[Callable[[str], None]] = []

    def get(self, key: str, default: Any = None) -> Any:
        for scope in reversed(self.SCOPES):
            if key in self._scopes[scope]:
                return self._scopes[scope][key]
        return default

    def inspect_user(self, key: str) -> Any:
        return self._scopes["user"].get(key)

    async def set(self, key: str, value: Any, scope: str = "user") -> None:
        if scope not in self.SCOPES or scope == "default":
            raise ValueError(f"Cannot write preferences to scope {scope!r}")
        values = self._scopes[scope]
        if value is None:
            values.pop(key, None)
        else:
            values[key] = value
        LOGGER.debug("Preference %s=%r (%s)", key, value, scope)
        for listener in list(self._listeners):
            listener(key)

    def on_change(self, listener: Callable[[str], None]) -> Disposable:
        self._listeners.append(listener)
        return CallbackDisposable(lambda: self._listeners.remove(listener), label="preference-listener")


class SimulatedInput:
    """Inline input box; the whole initial value starts selected."""

    def __init__(self, value: str) -> None:
        self.value = value
        self._selection_end = len(value)

    @property
    def selection_end(self) -> int:
        return self._selection_end


class SimulatedEditor:
    """One view onto a :class:`SimulatedDocument`."""

    def __init__(self, workbench: SimulatedWorkbench, document: SimulatedDocument, *, preview: bool) -> None:
        self._workbench = workbench
        self.document = document
        self._preview = preview
        self._closed = False
        self._selection = SelectionRange.caret(CursorPosition(1, 1))
        self.lenses: list[CodeLens] = []

    def __repr__(self) -> str:
        return f"SimulatedEditor({self.uri!r}, preview={self._preview}, closed={self._closed})"

    @property
    def uri(self) -> str:
        return self.document.uri

    @property
    def is_preview(self) -> bool:
        return self._preview

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def selection(self) -> SelectionRange:
        return self._selection

    def pin(self) -> None:
        self._preview = False

    def close(self) -> None:
        self._closed = True

    def position(self) -> CursorPosition:
        return self._selection.end

    def set_position(self, position: CursorPosition) -> None:
        self._selection = SelectionRange.caret(self.document.clamp(CursorPosition.from_value(position)))
        self._workbench._cursor_moved(self)

    def set_selection(self, selection: SelectionRange) -> None:
        self._selection = SelectionRange(
            self.document.clamp(selection.start), self.document.clamp(selection.end)
        )
        self._workbench._cursor_moved(self)

    def word_at(self, position: CursorPosition) -> WordSpan | None:
        return self.document.word_at(position)

    def apply_edit(self, selection: SelectionRange, text: str) -> None:
        end = self.document.replace(selection, text)
        self._selection = SelectionRange.caret(end)
        self._workbench._document_changed(self)

    def hover_text(self) -> str | None:
        return self._workbench._hover_for(self)

    def lens_label(self, index: int = 0) -> str | None:
        if 0 <= index < len(self.lenses):
            return self.lenses[index].label
        return None

    def activate_lens(self, index: int = 0) -> None:
        self._workbench._activate_lens(self, index)


class _CommandRegistry:
    def __init__(self) -> None:
        self._handlers: Dict[str, CommandHandler] = {}

    def register(self, command_id: str, handler: CommandHandler) -> None:
        self._handlers[command_id] = handler

    async def execute(self, command_id: str) -> None:
        handler = self._handlers.get(command_id)
        if handler is None:
            raise ValueError(f"Unknown command {command_id!r}")
        LOGGER.debug("Executing %s", command_id)
        await handler()


class _Keybindings:
    def __init__(self, workbench: SimulatedWorkbench) -> None:
        self._workbench = workbench

    def dispatch(self, key: str, target: SimulatedInput | None = None) -> None:
        self._workbench._handle_key(key, target)


class SimulatedWorkbench:
    """A complete :class:`~editorprobe.harness.surfaces.EditorHost` in memory.

    Args:
        workspace: Documents to serve; defaults to the sample backend workspace.
        clock: Frame source for delayed responses.
        response_frames: Frames between a request and the backend answer.
        readiness_frames: Frames before the language service reports a
            document as managed, counted from the first activation.
        lens_frames: Frames before code lenses are recomputed after a change.
        managed_key: Context key announcing language-service readiness.
    """

    def __init__(
        self,
        workspace: SampleWorkspace | None = None,
        *,
        clock: FrameClock | None = None,
        response_frames: int = 2,
        readiness_frames: int = 3,
        lens_frames: int = 6,
        managed_key: str = DEFAULT_MANAGED_FLAG,
    ) -> None:
        self._workspace = workspace or SampleWorkspace()
        self._clock = clock or AsyncioFrameClock()
        self._response_frames = response_frames
        self._readiness_frames = readiness_frames
        self._lens_frames = lens_frames
        self._managed_key = managed_key

        self._sources = self._workspace.sources()
        self._documents: Dict[str, SimulatedDocument] = {}
        self._load_documents()
        self._backend = SimulatedLanguageBackend(
            self._documents,
            module_uris=self._workspace.module_uris,
            type_hints=self._workspace.type_hints,
        )

        self._contexts = SimulatedContextKeys()
        self._preferences = SimulatedPreferences({REFERENCES_CODE_LENS_PREFERENCE: False})
        self._preferences.on_change(self._preference_changed)
        self._commands = _CommandRegistry()
        self._keys = _Keybindings(self)
        self._register_commands()

        self._editors: list[SimulatedEditor] = []
        self._active: SimulatedEditor | None = None
        self._modal = ModalSurface.NONE
        self._focus = FOCUS_NONE
        self._ready = False
        self._readiness_scheduled = False
        self._write_highlight = False
        self._hover: str | None = None
        self._suggestions: list[str] = []
        self._peek_target: Location | None = None
        self._input: SimulatedInput | None = None
        self._rename_commit: asyncio.Future[str | None] | None = None
        self._tasks: set[asyncio.Task[None]] = set()
        self._sync()

    # ------------------------------------------------------------------
    # EditorHost surfaces
    # ------------------------------------------------------------------
    @property
    def commands(self) -> _CommandRegistry:
        return self._commands

    @property
    def keys(self) -> _Keybindings:
        return self._keys

    @property
    def contexts(self) -> SimulatedContextKeys:
        return self._contexts

    @property
    def preferences(self) -> SimulatedPreferences:
        return self._preferences

    @property
    def workbench(self) -> SimulatedWorkbench:
        return self

    @property
    def modal(self) -> ModalSurface:
        return self._modal

    @property
    def focus(self) -> str:
        return self._focus

    @property
    def editors(self) -> tuple[SimulatedEditor, ...]:
        return tuple(self._editors)

    def document(self, uri: str) -> SimulatedDocument:
        return self._documents[uri]

    # ------------------------------------------------------------------
    # WorkbenchSurface
    # ------------------------------------------------------------------
    async def open(self, uri: str, *, mode: str = "activate", preview: bool = False) -> SimulatedEditor:
        document = self._documents.get(uri)
        if document is None:
            raise FileNotFoundError(uri)
        editor = self._find_editor(uri)
        if editor is None:
            editor = self._create_editor(document, preview=preview)
        elif not preview and editor.is_preview:
            editor.pin()
        if mode == "activate":
            self._activate(editor)
            self._schedule_readiness()
        self._schedule_lenses(editor)
        return editor

    async def close_all(self, *, save: bool = False) -> None:
        for task in list(self._tasks):
            task.cancel()
        self._tasks.clear()
        if self._rename_commit is not None and not self._rename_commit.done():
            self._rename_commit.cancel()
        self._rename_commit = None
        for editor in self._editors:
            editor.close()
        if save:
            LOGGER.debug("Saving %d editor(s) before closing", len(self._editors))
        else:
            # Unsaved edits are discarded with the editors.
            self._load_documents()
        self._editors.clear()
        self._active = None
        self._modal = ModalSurface.NONE
        self._focus = FOCUS_NONE
        self._readiness_scheduled = False
        self._write_highlight = False
        self._hover = None
        self._suggestions = []
        self._peek_target = None
        self._input = None
        self._sync()

    def active_editor(self) -> SimulatedEditor | None:
        return self._active

    def focused_input(self) -> SimulatedInput | None:
        return self._input if self._focus == FOCUS_INPUT else None

    def blur(self) -> None:
        """Move keyboard focus out of the editor without closing anything."""

        self._focus = FOCUS_NONE
        self._sync()

    # ------------------------------------------------------------------
    # Context keys
    # ------------------------------------------------------------------
    def context_values(self) -> Dict[str, bool]:
        """Derive every context key from the current modal and focus state."""

        active = self._active
        managed = (
            self._ready
            and active is not None
            and not active.closed
            and self._backend.supports(active.document)
        )
        return {
            StateFlag.TEXT_FOCUS.value: active is not None and self._focus == FOCUS_TEXT,
            StateFlag.LIST_FOCUS.value: self._focus == FOCUS_LIST,
            StateFlag.PEEK_VISIBLE.value: self._modal is ModalSurface.PEEK,
            StateFlag.SUGGEST_VISIBLE.value: self._modal is ModalSurface.SUGGEST,
            StateFlag.RENAME_VISIBLE.value: self._modal is ModalSurface.RENAME,
            StateFlag.PARAMETER_HINTS_VISIBLE.value: self._modal is ModalSurface.PARAMETER_HINTS,
            StateFlag.HOVER_VISIBLE.value: self._modal is ModalSurface.HOVER,
            StateFlag.WRITE_HIGHLIGHT_VISIBLE.value: self._write_highlight,
            self._managed_key: managed,
        }

    def _sync(self) -> None:
        self._contexts.update(self.context_values())

    def _show_modal(self, modal: ModalSurface, focus: str) -> None:
        self._modal = modal
        self._focus = focus
        self._sync()

    def _hide_modal(self) -> None:
        self._modal = ModalSurface.NONE
        self._focus = FOCUS_TEXT if self._active is not None else FOCUS_NONE
        self._hover = None
        self._suggestions = []
        self._peek_target = None
        self._sync()

    # ------------------------------------------------------------------
    # Frame scheduling
    # ------------------------------------------------------------------
    def _after_frames(self, frames: int, callback: Callable[[], None], *, label: str) -> None:
        async def _delayed() -> None:
            for _ in range(frames):
                await self._clock.next_frame()
            callback()

        task = asyncio.ensure_future(_delayed())
        self._tasks.add(task)

        def _finished(done: asyncio.Task[None]) -> None:
            self._tasks.discard(done)
            if not done.cancelled() and done.exception() is not None:
                LOGGER.error("Delayed %s failed", label, exc_info=done.exception())

        task.add_done_callback(_finished)

    def _schedule_readiness(self) -> None:
        if self._ready or self._readiness_scheduled:
            self._sync()
            return
        self._readiness_scheduled = True

        def _attach() -> None:
            self._ready = True
            LOGGER.debug("Language service attached")
            self._sync()

        self._after_frames(self._readiness_frames, _attach, label="language service start")

    # ------------------------------------------------------------------
    # Editors
    # ------------------------------------------------------------------
    def _load_documents(self) -> None:
        self._documents.clear()
        for uri, text in self._sources.items():
            self._documents[uri] = SimulatedDocument.from_text(uri, text)

    def _find_editor(self, uri: str) -> SimulatedEditor | None:
        for editor in self._editors:
            if editor.uri == uri and not editor.closed:
                return editor
        return None

    def _create_editor(self, document: SimulatedDocument, *, preview: bool) -> SimulatedEditor:
        if preview:
            # A single preview slot: a new preview replaces the previous one.
            for existing in [editor for editor in self._editors if editor.is_preview]:
                existing.close()
                self._editors.remove(existing)
                if self._active is existing:
                    self._active = None
        editor = SimulatedEditor(self, document, preview=preview)
        self._editors.append(editor)
        return editor

    def _activate(self, editor: SimulatedEditor) -> None:
        self._active = editor
        self._focus = FOCUS_TEXT
        self._sync()

    def _navigate(self, location: Location, *, keep_peek: bool = False) -> None:
        editor = self._active
        if editor is None or editor.uri != location.uri:
            editor = self._find_editor(location.uri)
            if editor is None:
                editor = self._create_editor(self._documents[location.uri], preview=True)
            self._active = editor
        editor.set_position(location.position)
        if keep_peek:
            self._focus = FOCUS_LIST
            self._sync()
        else:
            self._hide_modal()
        LOGGER.debug("Navigated to %s %s", location.uri, location.position)

    def _cursor_moved(self, editor: SimulatedEditor) -> None:
        if self._write_highlight and editor is self._active:
            self._write_highlight = False
            self._sync()

    def _document_changed(self, editor: SimulatedEditor) -> None:
        self._write_highlight = False
        self._sync()
        for candidate in self._editors:
            if candidate.document is editor.document:
                self._schedule_lenses(candidate)

    def _preference_changed(self, key: str) -> None:
        if key != REFERENCES_CODE_LENS_PREFERENCE:
            return
        for editor in self._editors:
            self._schedule_lenses(editor)

    def _schedule_lenses(self, editor: SimulatedEditor) -> None:
        def _refresh() -> None:
            if editor.closed:
                return
            if self._preferences.get(REFERENCES_CODE_LENS_PREFERENCE, False):
                editor.lenses = self._backend.reference_lenses(editor.document)
            else:
                editor.lenses = []

        self._after_frames(self._lens_frames, _refresh, label="code lens refresh")

    def _hover_for(self, editor: SimulatedEditor) -> str | None:
        if editor is self._active and self._modal is ModalSurface.HOVER:
            return self._hover
        return None

    def _activate_lens(self, editor: SimulatedEditor, index: int) -> None:
        if not 0 <= index < len(editor.lenses):
            LOGGER.warning("No code lens #%d in %s", index, editor.uri)
            return
        references = self._backend.references(editor.document, editor.lenses[index].symbol)

        def _open() -> None:
            self._peek_target = references[0] if references else None
            self._show_modal(ModalSurface.PEEK, FOCUS_LIST)

        self._after_frames(self._response_frames, _open, label="reference peek")

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------
    def _register_commands(self) -> None:
        navigation: Mapping[str, Callable[[SimulatedDocument, CursorPosition], Location | None]] = {
            REVEAL_DEFINITION: self._backend.definition,
            GO_TO_IMPLEMENTATION: self._backend.implementation,
            GO_TO_TYPE_DEFINITION: self._backend.type_definition,
        }
        for command_id, resolver in navigation.items():
            self._commands.register(command_id, self._navigation_command(command_id, resolver))
        self._commands.register(PEEK_DEFINITION, self._peek_definition)
        self._commands.register(TRIGGER_SUGGEST, self._trigger_suggest)
        self._commands.register(RENAME, self._rename)
        self._commands.register(TRIGGER_PARAMETER_HINTS, self._trigger_parameter_hints)
        self._commands.register(SHOW_HOVER, self._show_hover)

    def _require_active(self) -> SimulatedEditor:
        if self._active is None or self._active.closed:
            raise RuntimeError("No active editor")
        return self._active

    def _navigation_command(
        self,
        command_id: str,
        resolver: Callable[[SimulatedDocument, CursorPosition], Location | None],
    ) -> CommandHandler:
        async def _run() -> None:
            editor = self._require_active()
            location = resolver(editor.document, editor.position())
            if location is None:
                LOGGER.info("%s found nothing at %s", command_id, editor.position())
                return
            self._after_frames(self._response_frames, lambda: self._navigate(location), label=command_id)

        return _run

    async def _peek_definition(self) -> None:
        editor = self._require_active()
        location = self._backend.definition(editor.document, editor.position())
        if location is None:
            LOGGER.info("Peek found no definition at %s", editor.position())
            return

        def _open() -> None:
            self._peek_target = location
            self._show_modal(ModalSurface.PEEK, FOCUS_LIST)

        self._after_frames(self._response_frames, _open, label="peek definition")

    async def _trigger_suggest(self) -> None:
        editor = self._require_active()
        selected = "" if editor.selection.is_caret else editor.document.text_in(editor.selection)
        items = self._backend.completions(editor.document, editor.position(), selected)
        if not items:
            return

        def _open() -> None:
            self._suggestions = items
            self._show_modal(ModalSurface.SUGGEST, FOCUS_TEXT)

        self._after_frames(self._response_frames, _open, label="suggest")

    async def _rename(self) -> None:
        editor = self._require_active()
        position = editor.position()
        span = editor.word_at(position)
        if span is None:
            LOGGER.info("Nothing to rename at %s", position)
            return
        loop = asyncio.get_running_loop()
        commit: asyncio.Future[str | None] = loop.create_future()
        self._rename_commit = commit
        handle = SimulatedInput(span.text)

        def _open() -> None:
            self._input = handle
            self._show_modal(ModalSurface.RENAME, FOCUS_INPUT)

        self._after_frames(self._response_frames, _open, label="rename input")
        new_name = await commit
        self._input = None
        self._rename_commit = None
        if new_name and new_name != span.text:
            edits = self._backend.rename_edits(editor.document, position, new_name)
            for selection, text in sorted(edits, key=lambda edit: edit[0].start, reverse=True):
                editor.document.replace(selection, text)
            editor.set_position(position)
            self._document_changed(editor)
            LOGGER.debug("Renamed %r to %r (%d edits)", span.text, new_name, len(edits))
        self._hide_modal()

    async def _trigger_parameter_hints(self) -> None:
        editor = self._require_active()
        signature = self._backend.signature_help(editor.document, editor.position())
        if signature is None:
            return
        self._after_frames(
            self._response_frames,
            lambda: self._show_modal(ModalSurface.PARAMETER_HINTS, FOCUS_TEXT),
            label="parameter hints",
        )

    async def _show_hover(self) -> None:
        editor = self._require_active()
        text = self._backend.hover(editor.document, editor.position())
        if text is None:
            return

        def _open() -> None:
            self._hover = text
            self._show_modal(ModalSurface.HOVER, FOCUS_TEXT)

        self._after_frames(self._response_frames, _open, label="hover")

    # ------------------------------------------------------------------
    # Keys
    # ------------------------------------------------------------------
    def _handle_key(self, key: str, target: SimulatedInput | None) -> None:
        LOGGER.debug("Key %s (modal=%s, focus=%s)", key, self._modal.value, self._focus)
        if self._modal is ModalSurface.RENAME:
            self._rename_key(key, target)
        elif key == "Escape":
            self._escape()
        elif key == "Enter":
            self._enter()
        elif key in ("ArrowRight", "ArrowLeft"):
            self._arrow(1 if key == "ArrowRight" else -1)
        elif len(key) == 1 and self._focus == FOCUS_TEXT and self._active is not None:
            self._active.apply_edit(self._active.selection, key)
        else:
            LOGGER.debug("Key %s ignored", key)

    def _rename_key(self, key: str, target: SimulatedInput | None) -> None:
        commit = self._rename_commit
        if commit is None or commit.done():
            return
        if key == "Escape":
            commit.set_result(None)
        elif key == "Enter" and target is not None and target is self._input:
            commit.set_result(target.value)

    def _escape(self) -> None:
        if self._modal is ModalSurface.NONE:
            return
        if self._modal is ModalSurface.PEEK:
            # The peek widget animates out before the list loses focus.
            self._after_frames(1, self._hide_modal, label="close peek")
        else:
            self._hide_modal()

    def _enter(self) -> None:
        editor = self._active
        if editor is None:
            return
        if self._modal is ModalSurface.SUGGEST and self._suggestions:
            choice = self._suggestions[0]
            selection = editor.selection
            if selection.is_caret:
                span = editor.word_at(selection.end)
                if span is not None and span.end_column == selection.end.column:
                    selection = SelectionRange.on_line(selection.end.line, span.start_column, span.end_column)
            editor.apply_edit(selection, choice)
            self._hide_modal()
        elif self._modal is ModalSurface.PEEK and self._focus == FOCUS_LIST:
            if self._peek_target is not None:
                self._navigate(self._peek_target, keep_peek=True)
        elif self._modal is ModalSurface.NONE and self._focus == FOCUS_TEXT:
            editor.apply_edit(editor.selection, "\n")

    def _arrow(self, delta: int) -> None:
        editor = self._active
        if editor is None or self._focus != FOCUS_TEXT:
            return
        if self._modal is not ModalSurface.NONE:
            self._hide_modal()
        editor.set_position(editor.position().shifted(columns=delta))
        position = editor.position()

        def _highlight() -> None:
            if editor is self._active and editor.position() == position:
                self._write_highlight = self._backend.is_write_occurrence(editor.document, position)
                self._sync()

        self._after_frames(self._response_frames, _highlight, label="occurrence highlight")


__all__ = [
    "FOCUS_INPUT",
    "FOCUS_LIST",
    "FOCUS_NONE",
    "FOCUS_TEXT",
    "SimulatedContextKeys",
    "SimulatedEditor",
    "SimulatedInput",
    "SimulatedPreferences",
    "SimulatedWorkbench",
]

"""Search state for one notebook: query, matches, current match and overlay focus."""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, replace
from typing import Any, Callable, Mapping

import structlog

from notebook_search.core.focus_state import EscapeAction, FocusEvent, FocusState, FocusStateMachine
from notebook_search.notebook.model import ChangeKind, Notebook, NotebookChange
from notebook_search.services.match_index import (
    Match,
    MatchSet,
    MatchUnit,
    ScopeMode,
    SearchQuery,
    compute_matches,
)
from notebook_search.services.replace_engine import ReplaceResult, replace_all, replace_current
from notebook_search.services.search_cursor import Position, SearchCursor
from notebook_search.services.search_scope import (
    CapturedTextSelection,
    ScopeDescriptor,
    cells_label,
    resolve_scope,
    selection_filter_label,
    selection_filter_mode,
)
from notebook_search.settings_store import normalize_search_settings

logger = structlog.get_logger(__name__)


@dataclass(frozen=True, slots=True)
class Highlight:
    cell_id: str
    unit: MatchUnit
    output_index: int
    start: int
    end: int
    active: bool = False


@dataclass(frozen=True, slots=True)
class SearchStatus:
    is_open: bool
    focus: FocusState
    query_text: str
    position: int
    total: int
    display_text: str
    error: str | None
    use_regex: bool
    case_sensitive: bool
    whole_word: bool
    search_outputs: bool
    scope: ScopeMode
    filter_label: str
    replace_visible: bool
    filters_visible: bool
    truncated: bool

    @property
    def has_error(self) -> bool:
        return self.error is not None

    @property
    def selection_filter_active(self) -> bool:
        return self.scope is not ScopeMode.ALL


@dataclass(frozen=True, slots=True)
class OpenResult:
    query_text: str
    seeded_from_selection: bool


SessionListener = Callable[[SearchStatus], None]


class NotebookSearchSession:
    def __init__(self, notebook: Notebook, settings: Mapping[str, Any] | None = None) -> None:
        cfg = normalize_search_settings(settings)
        self._notebook = notebook
        self._query = SearchQuery(
            use_regex=cfg["use_regex"],
            case_sensitive=cfg["case_sensitive"],
            whole_word=cfg["whole_word"],
            search_outputs=cfg["search_outputs"],
        )
        self._max_matches = cfg["max_matches"]
        self._restore_last_query = cfg["restore_last_query"]
        self._cursor = SearchCursor()
        self._focus = FocusStateMachine()
        self._captured_text: CapturedTextSelection | None = None
        # Source of the captured cell as of the last remap of the captured range.
        self._captured_source = ""
        self._cached_query_text = ""
        self._replace_visible = False
        self._filters_visible = False
        self._listeners: list[SessionListener] = []
        self._unsubscribe: Callable[[], None] | None = None
        self._suspended = 0

    # --------- properties ---------
    @property
    def notebook(self) -> Notebook:
        return self._notebook

    @property
    def query(self) -> SearchQuery:
        return self._query

    @property
    def match_set(self) -> MatchSet:
        return self._cursor.match_set

    @property
    def cursor(self) -> SearchCursor:
        return self._cursor

    @property
    def current_match(self) -> Match | None:
        return self._cursor.current

    @property
    def focus_state(self) -> FocusState:
        return self._focus.state

    @property
    def is_open(self) -> bool:
        return self._focus.is_open

    @property
    def cached_query_text(self) -> str:
        return self._cached_query_text

    def scope(self) -> ScopeDescriptor:
        return resolve_scope(self._notebook, self._query.scope, captured_text=self._captured_text)

    # --------- lifecycle ---------
    def open(self) -> OpenResult:
        """Show the overlay, seeding the query from a single-line editor selection."""
        seed = self._notebook.selected_text()
        seeded = bool(seed) and "\n" not in seed
        was_open = self.is_open
        if not was_open:
            self._unsubscribe = self._notebook.subscribe(self._on_notebook_changed)
        self._focus.dispatch(FocusEvent.OPEN)

        if was_open and not seeded:
            self._notify()
            return OpenResult(query_text=self._query.text, seeded_from_selection=False)

        if seeded:
            text = seed
        else:
            text = self._cached_query_text if self._restore_last_query else ""

        self._query = replace(self._query, text=text)
        self._reindex("open", anchor=self._notebook_anchor())
        logger.debug("search.open", seeded=seeded, query=text, total=self._cursor.total)
        return OpenResult(query_text=text, seeded_from_selection=seeded)

    def close(self) -> None:
        """Tear down highlights and notebook listeners; keep the query for the next open."""
        if not self.is_open:
            return
        self._teardown()
        self._focus.dispatch(FocusEvent.CLOSE)
        self._notify()

    def _teardown(self) -> None:
        self._cached_query_text = self._query.text
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self._cursor.clear()
        self._captured_text = None
        self._captured_source = ""
        if self._query.scope is not ScopeMode.ALL:
            self._query = replace(self._query, scope=ScopeMode.ALL)
        logger.debug("search.close", cached_query=self._cached_query_text)

    def handle_escape(self) -> EscapeAction:
        action = self._focus.escape()
        if action is EscapeAction.EXIT_CELL_EDIT:
            self._notebook.exit_edit_mode()
            self._notify()
        elif action is EscapeAction.CLOSE_SEARCH:
            self._teardown()
            self._notify()
        return action

    def focus_search(self) -> None:
        if self.is_open:
            self._focus.dispatch(FocusEvent.FOCUS_SEARCH)

    def focus_notebook(self) -> None:
        if self.is_open:
            self._focus.dispatch(FocusEvent.FOCUS_NOTEBOOK)
            self._sync_focus_with_notebook()

    # --------- query and filters ---------
    def set_query_text(self, text: str) -> None:
        text = str(text or "")
        if text == self._query.text:
            return
        self._query = replace(self._query, text=text)
        if self.is_open:
            current = self._cursor.current
            anchor = current.position if current is not None else self._notebook_anchor()
            self._reindex("query", anchor=anchor)

    def set_use_regex(self, enabled: bool) -> None:
        self._update_query(use_regex=bool(enabled))

    def set_case_sensitive(self, enabled: bool) -> None:
        self._update_query(case_sensitive=bool(enabled))

    def set_whole_word(self, enabled: bool) -> None:
        self._update_query(whole_word=bool(enabled))

    def set_search_outputs(self, enabled: bool) -> None:
        self._update_query(search_outputs=bool(enabled))

    def set_selection_filter(self, enabled: bool) -> None:
        if enabled:
            mode = selection_filter_mode(self._notebook)
            self._captured_text = (
                CapturedTextSelection.from_notebook(self._notebook)
                if mode is ScopeMode.SELECTED_TEXT
                else None
            )
            cell = self._notebook.active_cell
            self._captured_source = cell.source if self._captured_text is not None else ""
        else:
            mode = ScopeMode.ALL
            self._captured_text = None
            self._captured_source = ""
        self._update_query(scope=mode, force=True)

    def set_replace_visible(self, visible: bool) -> None:
        self._replace_visible = bool(visible)
        self._notify()

    def set_filters_visible(self, visible: bool) -> None:
        self._filters_visible = bool(visible)
        self._notify()

    def _update_query(self, *, force: bool = False, **changes: Any) -> None:
        updated = replace(self._query, **changes)
        if updated == self._query and not force:
            return
        self._query = updated
        if self.is_open:
            self._reindex("filters")
        else:
            self._notify()

    # --------- navigation and replace ---------
    def next(self) -> Match | None:
        match = self._cursor.next()
        logger.debug("search.next", position=self._cursor.position, total=self._cursor.total)
        self._notify()
        return match

    def previous(self) -> Match | None:
        match = self._cursor.previous()
        logger.debug("search.previous", position=self._cursor.position, total=self._cursor.total)
        self._notify()
        return match

    def replace_current(self, replacement: str) -> ReplaceResult:
        match = self._cursor.current
        if match is None or not self.is_open:
            return ReplaceResult()
        replacement = str(replacement or "")
        with self._batched():
            result = replace_current(self._notebook, match, replacement)
        if result.replaced:
            # Resume after the inserted text so the replacement itself is not revisited.
            anchor = (match.position[0], match.position[1], match.start + len(replacement))
            self._reindex("replace", anchor=anchor)
        else:
            self.next()
        return result

    def replace_all(self, replacement: str) -> ReplaceResult:
        if not self.is_open or not self._cursor.total:
            return ReplaceResult()
        anchor = self._cursor.anchor
        with self._batched():
            result = replace_all(self._notebook, self._cursor.match_set, str(replacement or ""))
        self._reindex("replace_all", anchor=anchor)
        return result

    # --------- outputs for the host ---------
    def status(self) -> SearchStatus:
        if self._query.scope is ScopeMode.SELECTED_TEXT:
            filter_label = self.scope().label
        elif self._query.scope is ScopeMode.SELECTED_CELLS:
            filter_label = cells_label(len(self._notebook.selected_indices()))
        else:
            filter_label = selection_filter_label(self._notebook)
        match_set = self._cursor.match_set
        return SearchStatus(
            is_open=self.is_open,
            focus=self._focus.state,
            query_text=self._query.text,
            position=self._cursor.position,
            total=self._cursor.total,
            display_text=self._cursor.display_text(),
            error=match_set.error,
            use_regex=self._query.use_regex,
            case_sensitive=self._query.case_sensitive,
            whole_word=self._query.whole_word,
            search_outputs=self._query.search_outputs,
            scope=self._query.scope,
            filter_label=filter_label,
            replace_visible=self._replace_visible,
            filters_visible=self._filters_visible,
            truncated=match_set.truncated,
        )

    def highlights(self) -> list[Highlight]:
        if not self.is_open:
            return []
        live_ids = {cell.cell_id for cell in self._notebook.cells}
        current = self._cursor.index
        out: list[Highlight] = []
        for idx, match in enumerate(self._cursor.match_set.matches):
            if match.cell_id not in live_ids:
                logger.warning("search.stale_match_pruned", cell_id=match.cell_id)
                continue
            out.append(
                Highlight(
                    cell_id=match.cell_id,
                    unit=match.unit,
                    output_index=match.output_index,
                    start=match.start,
                    end=match.end,
                    active=idx == current,
                )
            )
        return out

    def add_listener(self, listener: SessionListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _remove() -> None:
            try:
                self._listeners.remove(listener)
            except ValueError:
                pass

        return _remove

    # --------- re-indexing ---------
    def reindex(self) -> None:
        if self.is_open:
            self._reindex("manual")

    def _notebook_anchor(self) -> Position:
        """Document position of the editing cursor, used to search from the cursor."""
        index = max(0, self._notebook.active_index)
        offset = 0
        if self._notebook.editing:
            selection = self._notebook.text_selection
            offset = selection.start if selection is not None else self._notebook.caret
        return (index, 0, offset)

    def _reindex(self, reason: str, *, anchor: Position | None = None) -> None:
        match_set = compute_matches(
            self._notebook,
            self._query,
            self.scope(),
            max_matches=self._max_matches,
        )
        if anchor is not None:
            self._cursor.start_from(match_set, anchor)
        else:
            self._cursor.rebase(match_set)
        logger.debug(
            "search.reindex",
            reason=reason,
            total=match_set.total,
            position=self._cursor.position,
            invalid=match_set.is_invalid,
        )
        self._notify()

    @contextmanager
    def _batched(self):
        self._suspended += 1
        try:
            yield
        finally:
            self._suspended -= 1

    def _sync_focus_with_notebook(self) -> None:
        state = self._focus.state
        if self._notebook.editing and state is not FocusState.CELL_EDITING:
            self._focus.dispatch(FocusEvent.ENTER_CELL_EDIT)
        elif not self._notebook.editing and state is FocusState.CELL_EDITING:
            self._focus.dispatch(FocusEvent.EXIT_CELL_EDIT)

    def _on_notebook_changed(self, change: NotebookChange) -> None:
        if not self.is_open:
            return
        if change.kind is ChangeKind.SOURCE:
            self._follow_captured_text(change)
        if change.kind is ChangeKind.INSERTED:
            self._cursor.shift_cells(change.index, 1)
        elif change.kind is ChangeKind.DELETED:
            self._cursor.shift_cells(change.index, -1)
            if self._captured_text is not None and self._captured_text.cell_id == change.cell_id:
                logger.info("search.scope_cell_deleted", cell_id=change.cell_id)
        elif change.kind is ChangeKind.OUTPUTS and not self._query.search_outputs:
            return
        elif change.kind is ChangeKind.SELECTION:
            self._sync_focus_with_notebook()
            if self._query.scope is not ScopeMode.SELECTED_CELLS:
                self._notify()
                return

        if self._suspended:
            return
        self._reindex(change.kind.value)

    def _follow_captured_text(self, change: NotebookChange) -> None:
        captured = self._captured_text
        if captured is None or captured.cell_id != change.cell_id:
            return
        cell = self._notebook.find_cell(captured.cell_id)
        if cell is None:
            return
        self._captured_text = captured.remapped(self._captured_source, cell.source)
        self._captured_source = cell.source

    def _notify(self) -> None:
        if not self._listeners:
            return
        status = self.status()
        for listener in list(self._listeners):
            listener(status)

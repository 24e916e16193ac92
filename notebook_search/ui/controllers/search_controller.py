from __future__ import annotations

from typing import Any, Mapping

import structlog
from PySide6.QtCore import QEvent, QObject, QTimer
from PySide6.QtGui import QKeyEvent
from PySide6.QtWidgets import QApplication, QWidget

from notebook_search.core.focus_state import EscapeAction
from notebook_search.services.search_session import NotebookSearchSession, SearchStatus
from notebook_search.settings_store import normalize_search_settings
from notebook_search.ui.shortcuts import ActionShortcuts
from notebook_search.ui.widgets.notebook_view import NotebookView
from notebook_search.ui.widgets.search_overlay import SearchOverlay

logger = structlog.get_logger(__name__)

_OVERLAY_ACTIONS = (
    "action.find",
    "action.toggle_replace",
    "action.find_next",
    "action.find_previous",
    "action.close_search",
)


class SearchController(QObject):
    """Connects the search overlay, the notebook view and a search session.

    Search shortcuts are caught with an application-wide event filter so they
    work whichever child of ``host`` has focus, including cell editors.
    """

    def __init__(
        self,
        host: QWidget,
        view: NotebookView,
        overlay: SearchOverlay,
        session: NotebookSearchSession,
        *,
        settings: Mapping[str, Any] | None = None,
        keybindings: Mapping[str, Mapping[str, list[str]]] | None = None,
        parent: QObject | None = None,
    ):
        super().__init__(parent or host)
        cfg = normalize_search_settings(settings)
        self._host = host
        self._view = view
        self._overlay = overlay
        self._session = session
        self._shortcuts = ActionShortcuts(keybindings, "search")

        self._query_timer = QTimer(self)
        self._query_timer.setSingleShot(True)
        self._query_timer.setInterval(cfg["refresh_debounce_ms"])
        self._query_timer.timeout.connect(self._apply_pending_query)

        overlay.queryChanged.connect(self._on_query_changed)
        overlay.nextRequested.connect(self.search_next)
        overlay.previousRequested.connect(self.search_previous)
        overlay.closeRequested.connect(self.close_search)
        overlay.regexToggled.connect(session.set_use_regex)
        overlay.caseToggled.connect(session.set_case_sensitive)
        overlay.wholeWordToggled.connect(session.set_whole_word)
        overlay.searchOutputsToggled.connect(session.set_search_outputs)
        overlay.selectionFilterToggled.connect(session.set_selection_filter)
        overlay.replaceToggled.connect(session.set_replace_visible)
        overlay.filtersToggled.connect(session.set_filters_visible)
        overlay.replaceRequested.connect(self.replace_current)
        overlay.replaceAllRequested.connect(self.replace_all)
        overlay.hide()

        self._remove_listener = session.add_listener(self._on_status)
        app = QApplication.instance()
        if app is not None:
            app.installEventFilter(self)
            app.focusChanged.connect(self._on_focus_changed)

    @property
    def session(self) -> NotebookSearchSession:
        return self._session

    def shutdown(self) -> None:
        self._query_timer.stop()
        self._remove_listener()
        app = QApplication.instance()
        if app is not None:
            app.removeEventFilter(self)
            try:
                app.focusChanged.disconnect(self._on_focus_changed)
            except (RuntimeError, TypeError):
                pass

    # --------- open / close ---------
    def open_search(self, *, replace: bool = False) -> None:
        self.flush_pending_query()
        result = self._session.open()
        self._overlay.set_query_text(result.query_text)
        if replace:
            self._session.set_replace_visible(True)
        self._overlay.show()
        self._overlay.raise_()
        self._overlay.apply_status(self._session.status())
        self._overlay.focus_find()
        self._session.focus_search()
        self._refresh_highlights(reveal=True)

    def toggle_replace(self) -> None:
        if not self._session.is_open:
            self.open_search(replace=True)
            return
        self._session.set_replace_visible(not self._session.status().replace_visible)
        if self._session.status().replace_visible:
            self._overlay.replace_edit.setFocus()

    def close_search(self) -> None:
        self.flush_pending_query()
        self._session.close()
        self._hide_overlay()

    def _hide_overlay(self) -> None:
        self._overlay.hide()
        self._view.apply_highlights([])
        if self._session.notebook.editing:
            self._view.edit_cell()
        else:
            self._view.setFocus()

    def handle_escape(self) -> bool:
        """Route Escape; returns whether it was consumed."""
        if not self._session.is_open:
            if self._session.notebook.editing:
                self._view.command_mode()
                return True
            return False
        self.flush_pending_query()
        action = self._session.handle_escape()
        logger.debug("search.escape", action=action.value, state=self._session.focus_state.value)
        if action is EscapeAction.EXIT_CELL_EDIT:
            self._view.setFocus()
        elif action is EscapeAction.CLOSE_SEARCH:
            self._hide_overlay()
        return action is not EscapeAction.IGNORED

    # --------- query / navigation ---------
    def _on_query_changed(self, text: str) -> None:
        if self._query_timer.interval() <= 0:
            self._session.set_query_text(text)
            self._reveal_current()
            return
        self._query_timer.start()

    def _apply_pending_query(self) -> None:
        self._session.set_query_text(self._overlay.query_text())
        self._reveal_current()

    def flush_pending_query(self) -> None:
        if self._query_timer.isActive():
            self._query_timer.stop()
            self._apply_pending_query()

    def search_next(self) -> None:
        self.flush_pending_query()
        self._session.next()
        self._reveal_current()

    def search_previous(self) -> None:
        self.flush_pending_query()
        self._session.previous()
        self._reveal_current()

    def replace_current(self, replacement: str) -> None:
        self.flush_pending_query()
        result = self._session.replace_current(replacement)
        logger.debug("search.replace_requested", replaced=result.replaced, skipped=result.skipped)
        self._reveal_current()

    def replace_all(self, replacement: str) -> None:
        self.flush_pending_query()
        result = self._session.replace_all(replacement)
        logger.info("search.replace_all_done", replaced=result.replaced, skipped=result.skipped)

    # --------- session -> widgets ---------
    def _on_status(self, status: SearchStatus) -> None:
        if status.is_open:
            self._overlay.apply_status(status)
        self._refresh_highlights(reveal=False)

    def _refresh_highlights(self, *, reveal: bool) -> None:
        highlights = self._session.highlights()
        self._view.apply_highlights(highlights)
        if reveal:
            self._reveal_current()

    def _reveal_current(self) -> None:
        for highlight in self._session.highlights():
            if highlight.active:
                self._view.reveal_highlight(highlight)
                return

    def _on_focus_changed(self, _old, new) -> None:
        if new is None or not self._session.is_open:
            return
        if self._overlay.isAncestorOf(new):
            self._session.focus_search()
        elif new is self._view or self._view.isAncestorOf(new):
            self._session.focus_notebook()

    # --------- shortcut interception ---------
    def _owns(self, watched) -> bool:
        return isinstance(watched, QWidget) and (watched is self._host or self._host.isAncestorOf(watched))

    def _matched_action(self, event: QKeyEvent) -> str | None:
        for action_id in _OVERLAY_ACTIONS:
            if self._shortcuts.matches(event, action_id):
                return action_id
        return None

    def _wants_action(self, action_id: str) -> bool:
        if action_id in ("action.find_next", "action.find_previous"):
            return self._session.is_open
        if action_id == "action.close_search":
            return self._session.is_open or self._session.notebook.editing
        return True

    def _run_action(self, action_id: str) -> bool:
        if action_id == "action.find":
            self.open_search()
        elif action_id == "action.toggle_replace":
            self.toggle_replace()
        elif action_id == "action.find_next":
            self.search_next()
        elif action_id == "action.find_previous":
            self.search_previous()
        elif action_id == "action.close_search":
            return self.handle_escape()
        else:
            return False
        return True

    def eventFilter(self, watched, event):
        etype = event.type()
        if etype in (QEvent.ShortcutOverride, QEvent.KeyPress) and isinstance(event, QKeyEvent) and self._owns(watched):
            action_id = self._matched_action(event)
            if action_id is not None and self._wants_action(action_id):
                event.accept()
                if etype == QEvent.ShortcutOverride:
                    # Claim the key so window shortcuts do not fire; act on the key press.
                    return True
                return self._run_action(action_id)
        return super().eventFilter(watched, event)

from __future__ import annotations

from pathlib import Path

import structlog
from PySide6.QtGui import QAction
from PySide6.QtWidgets import QFileDialog, QMainWindow, QMessageBox, QVBoxLayout, QWidget

from notebook_search.core.keybindings import get_action_sequence, sequence_to_text
from notebook_search.notebook import Cell, CellKind, Notebook, NotebookFormatError, load_notebook, save_notebook
from notebook_search.services.search_session import NotebookSearchSession
from notebook_search.settings_store import JsonSettingsStore, SettingsStoreError
from notebook_search.ui.controllers.cell_runner import CellRunner
from notebook_search.ui.controllers.search_controller import SearchController
from notebook_search.ui.widgets.notebook_view import NotebookView
from notebook_search.ui.widgets.search_overlay import SearchOverlay

logger = structlog.get_logger(__name__)

_MAX_RECENT = 10


class NotebookSearchWindow(QMainWindow):
    def __init__(
        self,
        settings_store: JsonSettingsStore,
        notebook: Notebook | None = None,
        *,
        path: str | None = None,
        parent: QWidget | None = None,
    ):
        super().__init__(parent)
        self.settings_store = settings_store
        self.notebook_path: str | None = path
        self.view: NotebookView | None = None
        self.overlay: SearchOverlay | None = None
        self.session: NotebookSearchSession | None = None
        self.controller: SearchController | None = None
        self._execution_count = 0
        self.cell_runner = CellRunner(self)
        self.cell_runner.cellFinished.connect(self._on_cell_finished)
        self.resize(980, 720)
        self._build_menus()
        self.set_notebook(notebook if notebook is not None else Notebook([Cell(CellKind.CODE)]), path=path)

    # --------- setup ---------
    def _build_menus(self) -> None:
        file_menu = self.menuBar().addMenu("&File")
        self._add_action(file_menu, "Open Notebook...", self.open_notebook_dialog)
        self._add_action(file_menu, "Save", self.save_current)
        file_menu.addSeparator()
        self._add_action(file_menu, "Quit", self.close)

        edit_menu = self.menuBar().addMenu("&Edit")
        # Shortcut text is only a hint; the search controller owns the keys.
        self._add_action(edit_menu, "Find", lambda: self.controller and self.controller.open_search(), "action.find")
        self._add_action(
            edit_menu,
            "Replace",
            lambda: self.controller and self.controller.toggle_replace(),
            "action.toggle_replace",
        )
        self._add_action(
            edit_menu, "Find Next", lambda: self.controller and self.controller.search_next(), "action.find_next"
        )
        self._add_action(
            edit_menu,
            "Find Previous",
            lambda: self.controller and self.controller.search_previous(),
            "action.find_previous",
        )

    def _add_action(self, menu, text: str, slot, action_id: str | None = None) -> QAction:
        if action_id:
            sequence = get_action_sequence(
                self.settings_store.get("keybindings"),
                scope="search",
                action_id=action_id,
            )
            if sequence:
                text = f"{text}\t{sequence_to_text(sequence)}"
        action = QAction(text, self)
        action.triggered.connect(slot)
        menu.addAction(action)
        return action

    def set_notebook(self, notebook: Notebook, *, path: str | None = None) -> None:
        if self.controller is not None:
            self.controller.shutdown()
            self.controller.deleteLater()
        old_central = self.centralWidget()

        search = self.settings_store.search_settings()
        keybindings = self.settings_store.get("keybindings")
        central = QWidget(self)
        lay = QVBoxLayout(central)
        lay.setContentsMargins(0, 0, 0, 0)
        lay.setSpacing(0)
        self.overlay = SearchOverlay(central)
        self.view = NotebookView(
            notebook,
            central,
            keybindings=keybindings,
            highlight_color=search["highlight_color"],
            active_highlight_color=search["active_highlight_color"],
        )
        self.view.runRequested.connect(self.run_cell)
        lay.addWidget(self.overlay)
        lay.addWidget(self.view, 1)
        self.setCentralWidget(central)
        if old_central is not None:
            old_central.deleteLater()

        self.session = NotebookSearchSession(notebook, search)
        self.controller = SearchController(
            central,
            self.view,
            self.overlay,
            self.session,
            settings=search,
            keybindings=keybindings,
            parent=self,
        )
        self.notebook_path = path
        self.cell_runner.stop_all()
        self._execution_count = 0
        self._update_title()
        self.view.setFocus()

    def _update_title(self) -> None:
        name = Path(self.notebook_path).name if self.notebook_path else "Untitled.ipynb"
        self.setWindowTitle(f"{name} - Notebook Search")

    # --------- files ---------
    def open_notebook_dialog(self) -> None:
        path, _ = QFileDialog.getOpenFileName(self, "Open Notebook", "", "Jupyter Notebooks (*.ipynb)")
        if path:
            self.open_notebook(path)

    def open_notebook(self, path: str) -> bool:
        render = bool(self.settings_store.search_settings()["render_markdown_on_open"])
        try:
            notebook = load_notebook(path, render_markdown=render)
        except (OSError, NotebookFormatError) as exc:
            logger.warning("notebook.open_failed", path=path, error=str(exc))
            QMessageBox.warning(self, "Open Notebook", f"Could not open '{path}':\n{exc}")
            return False
        self.set_notebook(notebook, path=path)
        self._remember_recent(path)
        return True

    def save_current(self) -> bool:
        if self.view is None:
            return False
        path = self.notebook_path
        if not path:
            path, _ = QFileDialog.getSaveFileName(self, "Save Notebook", "", "Jupyter Notebooks (*.ipynb)")
            if not path:
                return False
        try:
            save_notebook(self.view.notebook, path)
        except OSError as exc:
            QMessageBox.warning(self, "Save Notebook", f"Could not save '{path}':\n{exc}")
            return False
        self.notebook_path = path
        self._update_title()
        return True

    def _remember_recent(self, path: str) -> None:
        recent = [item for item in self.settings_store.get("recent_notebooks", []) or [] if item != path]
        recent.insert(0, path)
        self.settings_store.set("recent_notebooks", recent[:_MAX_RECENT])

    # --------- execution ---------
    def run_cell(self, index: int) -> None:
        """Render a markdown cell, or start a code cell in its own interpreter."""
        if self.view is None:
            return
        notebook = self.view.notebook
        cell = notebook.cell(index)
        if cell.kind is CellKind.MARKDOWN:
            notebook.set_rendered(index, True)
            return
        if cell.kind is not CellKind.CODE:
            return
        self._execution_count += 1
        self.cell_runner.run(cell.cell_id, cell.source, self._execution_count)

    def _on_cell_finished(self, cell_id: str, outputs: list, execution_count: int) -> None:
        if self.view is None:
            return
        notebook = self.view.notebook
        index = notebook.index_of(cell_id)
        if index < 0:
            logger.debug("cell.finished_after_delete", cell_id=cell_id)
            return
        notebook.set_outputs(index, outputs, execution_count=execution_count)

    def closeEvent(self, event):
        self.cell_runner.stop_all()
        if self.controller is not None:
            self.controller.shutdown()
        if self.settings_store.dirty:
            try:
                self.settings_store.save()
            except SettingsStoreError as exc:
                logger.warning("settings.save_failed", error=str(exc))
        super().closeEvent(event)

from __future__ import annotations

from typing import Iterable, Mapping

import structlog
from PySide6.QtCore import QEvent, Qt, Signal
from PySide6.QtGui import QColor, QFont, QKeyEvent, QTextCursor
from PySide6.QtWidgets import (
    QFrame,
    QHBoxLayout,
    QLabel,
    QPlainTextEdit,
    QScrollArea,
    QTextEdit,
    QVBoxLayout,
    QWidget,
)

from notebook_search.notebook.model import Cell, CellKind, ChangeKind, Notebook, NotebookChange
from notebook_search.services.match_index import MatchUnit
from notebook_search.services.search_session import Highlight
from notebook_search.ui.shortcuts import ActionShortcuts

logger = structlog.get_logger(__name__)

# Per text widget: (start, end, active).
SpanList = list[tuple[int, int, bool]]


def utf16_offset(text: str, offset: int) -> int:
    """Qt document position of the code point ``offset`` in ``text``."""
    head = text[: max(0, int(offset))]
    return len(head) + sum(1 for ch in head if ord(ch) > 0xFFFF)


def python_offset(text: str, position: int) -> int:
    """Inverse of :func:`utf16_offset`; a position inside a surrogate pair rounds up."""
    units = 0
    for index, ch in enumerate(text):
        if units >= position:
            return index
        units += 2 if ord(ch) > 0xFFFF else 1
    return len(text)


def _color(value: str, alpha: int) -> QColor:
    color = QColor(str(value or ""))
    if not color.isValid():
        color = QColor("#4A5C7E")
    color.setAlpha(alpha)
    return color


class CellEditor(QPlainTextEdit):
    """Plain text area for one cell unit; highlights are kept apart from the text."""

    def __init__(self, parent: QWidget | None = None, *, read_only: bool = False):
        super().__init__(parent)
        self.setReadOnly(read_only)
        self.setLineWrapMode(QPlainTextEdit.LineWrapMode.NoWrap)
        self.setVerticalScrollBarPolicy(Qt.ScrollBarPolicy.ScrollBarAlwaysOff)
        self.setFrameShape(QFrame.NoFrame)
        font = QFont("Monospace")
        font.setStyleHint(QFont.StyleHint.Monospace)
        self.setFont(font)
        self._highlight_color = _color("#4A5C7E", 110)
        self._active_color = _color("#D6A853", 170)
        self._spans: SpanList = []
        self.textChanged.connect(self._fit_height)
        self._fit_height()

    def set_highlight_colors(self, normal: str, active: str) -> None:
        self._highlight_color = _color(normal, 110)
        self._active_color = _color(active, 170)
        self._rebuild_extra_selections()

    def set_text_preserving_caret(self, text: str) -> bool:
        text = str(text or "")
        if text == self.toPlainText():
            return False
        caret = self.textCursor().position()
        blocker = self.blockSignals(True)
        try:
            self.setPlainText(text)
            cursor = self.textCursor()
            cursor.setPosition(min(caret, self.document().characterCount() - 1))
            self.setTextCursor(cursor)
        finally:
            self.blockSignals(blocker)
        self._fit_height()
        self._rebuild_extra_selections()
        return True

    def set_search_spans(self, spans: SpanList) -> None:
        spans = sorted(spans)
        if spans == self._spans:
            return
        self._spans = spans
        self._rebuild_extra_selections()

    def search_spans(self) -> SpanList:
        return list(self._spans)

    def qt_position(self, offset: int) -> int:
        return utf16_offset(self.toPlainText(), offset)

    def text_offset(self, position: int) -> int:
        return python_offset(self.toPlainText(), position)

    def reveal_offset(self, offset: int) -> None:
        """Scroll horizontally to ``offset`` without moving the caret."""
        cursor = QTextCursor(self.document())
        cursor.setPosition(max(0, min(self.qt_position(offset), self.document().characterCount() - 1)))
        rect = self.cursorRect(cursor)
        bar = self.horizontalScrollBar()
        if rect.left() < 0 or rect.right() > self.viewport().width():
            bar.setValue(bar.value() + rect.left() - self.viewport().width() // 2)

    def _rebuild_extra_selections(self) -> None:
        length = max(0, self.document().characterCount() - 1)
        text = self.toPlainText()
        selections: list[QTextEdit.ExtraSelection] = []
        for offset, end_offset, active in self._spans:
            start = utf16_offset(text, offset)
            end = utf16_offset(text, end_offset)
            if start >= length or end <= start:
                continue
            sel = QTextEdit.ExtraSelection()
            cur = QTextCursor(self.document())
            cur.setPosition(start)
            cur.setPosition(min(end, length), QTextCursor.KeepAnchor)
            sel.cursor = cur
            sel.format.setBackground(self._active_color if active else self._highlight_color)
            selections.append(sel)
        self.setExtraSelections(selections)

    def _fit_height(self) -> None:
        lines = max(1, self.document().blockCount())
        line_height = self.fontMetrics().lineSpacing()
        margins = self.contentsMargins()
        doc_margin = int(self.document().documentMargin()) * 2
        extra = self.horizontalScrollBar().sizeHint().height() if not self.isReadOnly() else 0
        self.setFixedHeight(lines * line_height + doc_margin + margins.top() + margins.bottom() + extra + 2)


class _PromptLabel(QLabel):
    clicked = Signal(bool)

    def mousePressEvent(self, event):
        extend = bool(event.modifiers() & Qt.ShiftModifier)
        self.clicked.emit(extend)
        event.accept()


class CellWidget(QFrame):
    """Prompt, source editor, rendered markdown and outputs of one cell."""

    def __init__(self, view: "NotebookView", cell: Cell):
        super().__init__(view.container)
        self._view = view
        self.cell_id = cell.cell_id
        self.setObjectName("notebookCell")

        self.prompt = _PromptLabel(self)
        self.prompt.setFixedWidth(56)
        self.prompt.setAlignment(Qt.AlignRight | Qt.AlignTop)
        self.prompt.setCursor(Qt.PointingHandCursor)

        self.editor = CellEditor(self)
        self.editor.setObjectName("cellSource")
        self.editor.installEventFilter(view)
        self.rendered_view = CellEditor(self, read_only=True)
        self.rendered_view.setObjectName("cellRendered")
        self.rendered_view.viewport().installEventFilter(view)
        self.outputs_box = QWidget(self)
        self.outputs_lay = QVBoxLayout(self.outputs_box)
        self.outputs_lay.setContentsMargins(0, 0, 0, 0)
        self.outputs_lay.setSpacing(2)
        self.output_views: list[CellEditor] = []

        body = QVBoxLayout()
        body.setContentsMargins(0, 0, 0, 0)
        body.setSpacing(2)
        body.addWidget(self.editor)
        body.addWidget(self.rendered_view)
        body.addWidget(self.outputs_box)

        lay = QHBoxLayout(self)
        lay.setContentsMargins(4, 4, 4, 4)
        lay.setSpacing(6)
        lay.addWidget(self.prompt)
        lay.addLayout(body, 1)

        self.set_selected(False, False)
        self.refresh(cell)

    def text_view(self, unit: MatchUnit, output_index: int = -1) -> CellEditor | None:
        if unit is MatchUnit.OUTPUT:
            if 0 <= output_index < len(self.output_views):
                return self.output_views[output_index]
            return None
        return self.editor if self.rendered_view.isHidden() else self.rendered_view

    def all_text_views(self) -> list[CellEditor]:
        return [self.editor, self.rendered_view, *self.output_views]

    def refresh(self, cell: Cell) -> None:
        if cell.kind is CellKind.CODE:
            count = "" if cell.execution_count is None else str(cell.execution_count)
            self.prompt.setText(f"[{count or ' '}]:")
        else:
            self.prompt.setText("")
        rendered = cell.shows_rendered_text
        self.editor.setVisible(not rendered)
        self.rendered_view.setVisible(rendered)
        if rendered:
            self.rendered_view.set_text_preserving_caret(cell.searchable_source())
        self.editor.set_text_preserving_caret(cell.source)
        self.refresh_outputs(cell.outputs)

    def refresh_outputs(self, outputs: Iterable[str]) -> None:
        outputs = list(outputs)
        while len(self.output_views) > len(outputs):
            view = self.output_views.pop()
            self.outputs_lay.removeWidget(view)
            view.deleteLater()
        while len(self.output_views) < len(outputs):
            view = CellEditor(self.outputs_box, read_only=True)
            view.setObjectName("cellOutput")
            view.set_highlight_colors(*self._view.highlight_colors)
            self.outputs_lay.addWidget(view)
            self.output_views.append(view)
        for view, text in zip(self.output_views, outputs):
            view.set_text_preserving_caret(text)
        self.outputs_box.setVisible(bool(outputs))

    def set_selected(self, selected: bool, active: bool) -> None:
        if active:
            border = "#3d8fd6"
        elif selected:
            border = "#2d5f8a"
        else:
            border = "transparent"
        self.setStyleSheet(f"QFrame#notebookCell {{ border-left: 3px solid {border}; }}")


class NotebookView(QScrollArea):
    """Scrollable notebook with Jupyter-style command and edit modes."""

    runRequested = Signal(int)

    def __init__(
        self,
        notebook: Notebook,
        parent: QWidget | None = None,
        *,
        keybindings: Mapping[str, Mapping[str, list[str]]] | None = None,
        highlight_color: str = "#4A5C7E",
        active_highlight_color: str = "#D6A853",
    ):
        super().__init__(parent)
        self._notebook = notebook
        self._shortcuts = ActionShortcuts(keybindings, "notebook")
        self.highlight_colors = (highlight_color, active_highlight_color)
        self._cell_widgets: list[CellWidget] = []
        self._syncing_source = False
        self._highlights: list[Highlight] = []

        self.setWidgetResizable(True)
        self.setFocusPolicy(Qt.StrongFocus)
        self.container = QWidget(self)
        self._lay = QVBoxLayout(self.container)
        self._lay.setContentsMargins(8, 8, 8, 8)
        self._lay.setSpacing(6)
        self._lay.addStretch(1)
        self.setWidget(self.container)

        self._unsubscribe = notebook.subscribe(self._on_notebook_changed)
        self.destroyed.connect(lambda *_: self._unsubscribe())
        self._rebuild()

    @property
    def notebook(self) -> Notebook:
        return self._notebook

    def cell_widget(self, index: int) -> CellWidget | None:
        if 0 <= index < len(self._cell_widgets):
            return self._cell_widgets[index]
        return None

    def cell_widget_for_id(self, cell_id: str) -> CellWidget | None:
        for widget in self._cell_widgets:
            if widget.cell_id == cell_id:
                return widget
        return None

    def set_keybindings(self, keybindings: Mapping[str, Mapping[str, list[str]]] | None) -> None:
        self._shortcuts.set_keybindings(keybindings)

    # --------- building ---------
    def _rebuild(self) -> None:
        for widget in self._cell_widgets:
            self._lay.removeWidget(widget)
            widget.deleteLater()
        self._cell_widgets = []
        for index, cell in enumerate(self._notebook.cells):
            widget = self._make_cell_widget(cell)
            self._lay.insertWidget(index, widget)
            self._cell_widgets.append(widget)
        self._refresh_selection()
        self.apply_highlights(self._highlights)
        logger.debug("notebook_view.rebuild", cells=len(self._cell_widgets))

    def _make_cell_widget(self, cell: Cell) -> CellWidget:
        widget = CellWidget(self, cell)
        for view in widget.all_text_views():
            view.set_highlight_colors(*self.highlight_colors)
        widget.editor.textChanged.connect(lambda w=widget: self._on_editor_text_changed(w))
        widget.editor.cursorPositionChanged.connect(lambda w=widget: self._on_editor_cursor_changed(w))
        widget.editor.selectionChanged.connect(lambda w=widget: self._on_editor_cursor_changed(w))
        widget.prompt.clicked.connect(lambda extend, w=widget: self._on_prompt_clicked(w, extend))
        return widget

    def _index_of_widget(self, widget: CellWidget) -> int:
        try:
            return self._cell_widgets.index(widget)
        except ValueError:
            return -1

    # --------- notebook -> widgets ---------
    def _on_notebook_changed(self, change: NotebookChange) -> None:
        if change.kind in (ChangeKind.INSERTED, ChangeKind.DELETED):
            self._rebuild()
            return
        widget = self.cell_widget(change.index)
        if change.kind is ChangeKind.SELECTION:
            self._refresh_selection()
            if not self._notebook.editing and self._editor_has_focus():
                self.setFocus()
            return
        if widget is None:
            return
        cell = self._notebook.cell(change.index)
        if change.kind is ChangeKind.SOURCE and self._syncing_source:
            return
        widget.refresh(cell)

    def _refresh_selection(self) -> None:
        selected = set(self._notebook.selected_indices())
        active = self._notebook.active_index
        for index, widget in enumerate(self._cell_widgets):
            widget.set_selected(index in selected, index == active)

    def _editor_has_focus(self) -> bool:
        return any(widget.editor.hasFocus() for widget in self._cell_widgets)

    # --------- widgets -> notebook ---------
    def _on_editor_text_changed(self, widget: CellWidget) -> None:
        index = self._index_of_widget(widget)
        if index < 0:
            return
        self._syncing_source = True
        try:
            self._notebook.set_source(index, widget.editor.toPlainText())
        finally:
            self._syncing_source = False

    def _on_editor_cursor_changed(self, widget: CellWidget) -> None:
        editor = widget.editor
        index = self._index_of_widget(widget)
        if index < 0 or not editor.hasFocus() or self._notebook.active_index != index:
            return
        cursor = editor.textCursor()
        if cursor.hasSelection():
            self._notebook.set_text_selection(
                editor.text_offset(cursor.selectionStart()), editor.text_offset(cursor.selectionEnd())
            )
            return
        caret = editor.text_offset(cursor.position())
        if self._notebook.caret != caret or self._notebook.text_selection is not None:
            self._notebook.set_caret(caret)

    def _on_prompt_clicked(self, widget: CellWidget, extend: bool) -> None:
        index = self._index_of_widget(widget)
        if index < 0:
            return
        if extend:
            self._notebook.extend_selection(index - self._notebook.active_index)
        else:
            self._notebook.select_cell(index)
        self.setFocus()

    def eventFilter(self, watched, event):
        if event.type() == QEvent.KeyPress and isinstance(watched, CellEditor) and event.key() == Qt.Key_Escape:
            self.command_mode()
            return True
        if event.type() == QEvent.FocusIn and isinstance(watched, CellEditor):
            widget = watched.parentWidget()
            index = self._index_of_widget(widget) if isinstance(widget, CellWidget) else -1
            if index >= 0 and not (self._notebook.editing and self._notebook.active_index == index):
                self._notebook.enter_edit_mode(index, caret=watched.text_offset(watched.textCursor().position()))
        elif event.type() == QEvent.MouseButtonDblClick:
            for index, widget in enumerate(self._cell_widgets):
                if watched is widget.rendered_view.viewport():
                    self.edit_cell(index)
                    return True
        return super().eventFilter(watched, event)

    # --------- command mode ---------
    def edit_cell(self, index: int | None = None) -> None:
        idx = self._notebook.active_index if index is None else index
        widget = self.cell_widget(idx)
        if widget is None:
            return
        self._notebook.enter_edit_mode(idx, caret=widget.editor.text_offset(widget.editor.textCursor().position()))
        widget.editor.setFocus()

    def command_mode(self) -> None:
        self._notebook.exit_edit_mode()
        self.setFocus()

    def handle_command_key(self, event: QKeyEvent) -> bool:
        action = self._shortcuts.match(event)
        if action is None:
            return self._shortcuts.has_pending
        nb = self._notebook
        if action == "action.extend_selection_above":
            nb.extend_selection(-1)
        elif action == "action.extend_selection_below":
            nb.extend_selection(1)
        elif action == "action.select_cell_above":
            if len(nb):
                nb.select_cell(max(0, nb.active_index - 1))
        elif action == "action.select_cell_below":
            if len(nb):
                nb.select_cell(min(len(nb) - 1, nb.active_index + 1))
        elif action == "action.enter_edit_mode":
            self.edit_cell()
        elif action == "action.insert_cell_below":
            index = nb.active_index + 1
            nb.insert_cell(index)
            nb.select_cell(index)
        elif action == "action.delete_cell":
            if len(nb):
                nb.delete_cell(nb.active_index)
        elif action == "action.run_cell":
            if len(nb):
                self.runRequested.emit(nb.active_index)
        else:
            return False
        self.reveal_cell(nb.active_index)
        return True

    def keyPressEvent(self, event):
        if self.handle_command_key(event):
            event.accept()
            return
        super().keyPressEvent(event)

    # --------- search highlights ---------
    def apply_highlights(self, highlights: Iterable[Highlight]) -> None:
        """Paint ``highlights``; entries for cells that no longer exist are ignored."""
        self._highlights = list(highlights)
        per_view: dict[int, SpanList] = {}
        for hl in self._highlights:
            widget = self.cell_widget_for_id(hl.cell_id)
            if widget is None:
                continue
            view = widget.text_view(hl.unit, hl.output_index)
            if view is None:
                continue
            per_view.setdefault(id(view), []).append((hl.start, hl.end, hl.active))
        for widget in self._cell_widgets:
            for view in widget.all_text_views():
                view.set_search_spans(per_view.get(id(view), []))

    def reveal_cell(self, index: int) -> None:
        widget = self.cell_widget(index)
        if widget is not None:
            self.ensureWidgetVisible(widget, 0, 24)

    def reveal_highlight(self, highlight: Highlight) -> None:
        widget = self.cell_widget_for_id(highlight.cell_id)
        if widget is None:
            return
        view = widget.text_view(highlight.unit, highlight.output_index)
        if view is None:
            self.ensureWidgetVisible(widget, 0, 24)
            return
        cursor = QTextCursor(view.document())
        cursor.setPosition(max(0, min(view.qt_position(highlight.start), view.document().characterCount() - 1)))
        rect = view.cursorRect(cursor)
        top_left = view.viewport().mapTo(self.container, rect.topLeft())
        self.ensureVisible(top_left.x(), top_left.y(), 24, 48)
        view.reveal_offset(highlight.start)

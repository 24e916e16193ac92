from __future__ import annotations

from PySide6.QtCore import QEvent, Qt, Signal
from PySide6.QtGui import QFontMetrics, QTextCursor
from PySide6.QtWidgets import (
    QCheckBox,
    QFrame,
    QHBoxLayout,
    QLabel,
    QPlainTextEdit,
    QPushButton,
    QVBoxLayout,
    QWidget,
)

from notebook_search.services.search_session import SearchStatus

_MAX_VISIBLE_LINES = 4


class SearchTextField(QPlainTextEdit):
    """Single-line looking text field that grows when the query spans lines."""

    def __init__(self, placeholder: str, parent: QWidget | None = None):
        super().__init__(parent)
        self.setPlaceholderText(placeholder)
        self.setAccessibleName(placeholder)
        self.setTabChangesFocus(True)
        self.setLineWrapMode(QPlainTextEdit.LineWrapMode.NoWrap)
        self.setHorizontalScrollBarPolicy(Qt.ScrollBarPolicy.ScrollBarAlwaysOff)
        self.document().setDocumentMargin(2)
        self.textChanged.connect(self._fit_height)
        self._fit_height()

    def text(self) -> str:
        return self.toPlainText()

    def set_text_preserving_caret(self, text: str) -> bool:
        """Write ``text`` only if it differs; returns whether the field changed."""
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
        return True

    def select_all(self) -> None:
        cursor = self.textCursor()
        cursor.select(QTextCursor.SelectionType.Document)
        self.setTextCursor(cursor)

    def _fit_height(self) -> None:
        lines = max(1, min(_MAX_VISIBLE_LINES, self.document().blockCount()))
        line_height = QFontMetrics(self.font()).lineSpacing()
        margins = self.contentsMargins()
        doc_margin = int(self.document().documentMargin()) * 2
        self.setFixedHeight(lines * line_height + doc_margin + margins.top() + margins.bottom() + 4)


class SearchOverlay(QFrame):
    queryChanged = Signal(str)
    nextRequested = Signal()
    previousRequested = Signal()
    closeRequested = Signal()
    regexToggled = Signal(bool)
    caseToggled = Signal(bool)
    wholeWordToggled = Signal(bool)
    searchOutputsToggled = Signal(bool)
    selectionFilterToggled = Signal(bool)
    replaceToggled = Signal(bool)
    filtersToggled = Signal(bool)
    replaceRequested = Signal(str)
    replaceAllRequested = Signal(str)

    def __init__(self, parent: QWidget | None = None):
        super().__init__(parent)
        self.setFrameShape(QFrame.StyledPanel)
        self.setObjectName("notebookSearchOverlay")
        self.setStyleSheet(
            """
            QFrame#notebookSearchOverlay {
                background: #252526;
                border: 1px solid #3a3a3a;
                border-radius: 4px;
            }
            QPlainTextEdit, QPushButton, QCheckBox, QLabel {
                font-size: 10pt;
            }
            QPlainTextEdit {
                border: 1px solid #4a4a4a;
                background: #1e1e1e;
            }
            QPushButton {
                min-height: 24px;
                min-width: 24px;
                padding: 0 6px;
            }
            QPushButton:checked {
                background: #3d5a80;
            }
            QLabel#searchRegexError {
                color: #f48771;
            }
            """
        )

        self.find_edit = SearchTextField("Find", self)
        self.find_edit.installEventFilter(self)
        self.replace_edit = SearchTextField("Replace", self)
        self.replace_edit.installEventFilter(self)

        self.replace_toggle_btn = self._tool_button(">", "Toggle Replace", checkable=True)
        self.regex_btn = self._tool_button(".*", "Use Regular Expression", checkable=True)
        self.case_btn = self._tool_button("Aa", "Match Case", checkable=True)
        self.word_btn = self._tool_button("ab", "Match Whole Word", checkable=True)
        self.prev_btn = self._tool_button("Prev", "Previous Match")
        self.next_btn = self._tool_button("Next", "Next Match")
        self.filters_btn = self._tool_button("Filter", "Show Search Filters", checkable=True)
        self.close_btn = self._tool_button("X", "Close")
        self.replace_btn = QPushButton("Replace", self)
        self.replace_all_btn = QPushButton("Replace All", self)

        self.count_lbl = QLabel("-/-", self)
        self.count_lbl.setObjectName("searchCount")
        self.regex_error_lbl = QLabel("Invalid regular expression", self)
        self.regex_error_lbl.setObjectName("searchRegexError")
        self.regex_error_lbl.setVisible(False)

        self.filters_panel = QFrame(self)
        self.outputs_box = QCheckBox("Search Cell Outputs", self.filters_panel)
        self.selection_box = QCheckBox("Search in 1 Selected Cell", self.filters_panel)
        filters_lay = QVBoxLayout(self.filters_panel)
        filters_lay.setContentsMargins(28, 0, 0, 0)
        filters_lay.setSpacing(2)
        filters_lay.addWidget(self.outputs_box)
        filters_lay.addWidget(self.selection_box)
        self.filters_panel.setVisible(False)

        self.find_edit.textChanged.connect(self._on_find_text_changed)
        self.prev_btn.clicked.connect(self.previousRequested.emit)
        self.next_btn.clicked.connect(self.nextRequested.emit)
        self.close_btn.clicked.connect(self.closeRequested.emit)
        self.regex_btn.toggled.connect(self.regexToggled.emit)
        self.case_btn.toggled.connect(self.caseToggled.emit)
        self.word_btn.toggled.connect(self.wholeWordToggled.emit)
        self.replace_toggle_btn.toggled.connect(self.replaceToggled.emit)
        self.filters_btn.toggled.connect(self.filtersToggled.emit)
        self.outputs_box.toggled.connect(self.searchOutputsToggled.emit)
        self.selection_box.toggled.connect(self.selectionFilterToggled.emit)
        self.replace_btn.clicked.connect(lambda: self.replaceRequested.emit(self.replace_text()))
        self.replace_all_btn.clicked.connect(lambda: self.replaceAllRequested.emit(self.replace_text()))

        find_row = QHBoxLayout()
        find_row.setSpacing(4)
        find_row.addWidget(self.replace_toggle_btn, 0, Qt.AlignmentFlag.AlignTop)
        find_row.addWidget(self.find_edit, 1)
        find_row.addWidget(self.regex_btn, 0, Qt.AlignmentFlag.AlignTop)
        find_row.addWidget(self.case_btn, 0, Qt.AlignmentFlag.AlignTop)
        find_row.addWidget(self.word_btn, 0, Qt.AlignmentFlag.AlignTop)
        find_row.addWidget(self.count_lbl, 0, Qt.AlignmentFlag.AlignTop)
        find_row.addWidget(self.regex_error_lbl, 0, Qt.AlignmentFlag.AlignTop)
        find_row.addWidget(self.prev_btn, 0, Qt.AlignmentFlag.AlignTop)
        find_row.addWidget(self.next_btn, 0, Qt.AlignmentFlag.AlignTop)
        find_row.addWidget(self.filters_btn, 0, Qt.AlignmentFlag.AlignTop)
        find_row.addWidget(self.close_btn, 0, Qt.AlignmentFlag.AlignTop)

        self.replace_row = QWidget(self)
        replace_lay = QHBoxLayout(self.replace_row)
        replace_lay.setContentsMargins(28, 0, 0, 0)
        replace_lay.setSpacing(4)
        replace_lay.addWidget(self.replace_edit, 1)
        replace_lay.addWidget(self.replace_btn, 0, Qt.AlignmentFlag.AlignTop)
        replace_lay.addWidget(self.replace_all_btn, 0, Qt.AlignmentFlag.AlignTop)
        self.replace_row.setVisible(False)

        lay = QVBoxLayout(self)
        lay.setContentsMargins(6, 4, 6, 4)
        lay.setSpacing(4)
        lay.addLayout(find_row)
        lay.addWidget(self.replace_row)
        lay.addWidget(self.filters_panel)

    def _tool_button(self, text: str, title: str, *, checkable: bool = False) -> QPushButton:
        btn = QPushButton(text, self)
        btn.setToolTip(title)
        btn.setAccessibleName(title)
        btn.setCheckable(checkable)
        btn.setFocusPolicy(Qt.FocusPolicy.TabFocus)
        return btn

    def button_titles(self) -> list[str]:
        return [
            btn.toolTip()
            for btn in (
                self.replace_toggle_btn,
                self.regex_btn,
                self.case_btn,
                self.word_btn,
                self.prev_btn,
                self.next_btn,
                self.filters_btn,
                self.close_btn,
            )
        ]

    def query_text(self) -> str:
        return self.find_edit.text()

    def replace_text(self) -> str:
        return self.replace_edit.text()

    def set_query_text(self, text: str, *, select_all: bool = False) -> None:
        self.find_edit.set_text_preserving_caret(text)
        if select_all:
            self.find_edit.select_all()

    def focus_find(self) -> None:
        self.find_edit.setFocus()
        self.find_edit.select_all()

    def apply_status(self, status: SearchStatus) -> None:
        """Mirror session state into the widgets without re-emitting their signals.

        The query text is left alone; it is only written on open so typing in
        progress is never overwritten by a stale status.
        """
        count = status.display_text
        if status.truncated:
            count += "+"
        self.count_lbl.setText(count)
        self.count_lbl.setVisible(not status.has_error)
        self.regex_error_lbl.setVisible(status.has_error)
        self.regex_error_lbl.setToolTip(status.error or "")
        self._set_checked(self.regex_btn, status.use_regex)
        self._set_checked(self.case_btn, status.case_sensitive)
        self._set_checked(self.word_btn, status.whole_word)
        self._set_checked(self.outputs_box, status.search_outputs)
        self._set_checked(self.selection_box, status.selection_filter_active)
        self._set_checked(self.replace_toggle_btn, status.replace_visible)
        self._set_checked(self.filters_btn, status.filters_visible)
        self.selection_box.setText(status.filter_label)
        self.replace_row.setVisible(status.replace_visible)
        self.filters_panel.setVisible(status.filters_visible)
        self.adjustSize()

    @staticmethod
    def _set_checked(widget, checked: bool) -> None:
        if widget.isChecked() == bool(checked):
            return
        blocker = widget.blockSignals(True)
        widget.setChecked(bool(checked))
        widget.blockSignals(blocker)

    def _on_find_text_changed(self) -> None:
        self.queryChanged.emit(self.find_edit.text())

    def eventFilter(self, watched, event):
        if watched in {self.find_edit, self.replace_edit} and event.type() == QEvent.KeyPress:
            key = event.key()
            mods = event.modifiers()
            if key in (Qt.Key_Return, Qt.Key_Enter):
                if mods & Qt.ControlModifier:
                    watched.insertPlainText("\n")
                elif watched is self.replace_edit and not (mods & Qt.ShiftModifier):
                    self.replaceRequested.emit(self.replace_edit.text())
                elif mods & Qt.ShiftModifier:
                    self.previousRequested.emit()
                else:
                    self.nextRequested.emit()
                return True
        return super().eventFilter(watched, event)

"""In-memory notebook document with selection state and change notifications."""

from __future__ import annotations

import enum
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable

import structlog

from notebook_search.notebook.rendering import rendered_markdown_text

logger = structlog.get_logger(__name__)


class NotebookError(LookupError):
    """Raised for cell indices or ids that do not exist in the notebook."""


class CellKind(str, enum.Enum):
    CODE = "code"
    MARKDOWN = "markdown"
    RAW = "raw"


class ChangeKind(str, enum.Enum):
    SOURCE = "source"
    OUTPUTS = "outputs"
    INSERTED = "inserted"
    DELETED = "deleted"
    RENDERED = "rendered"
    SELECTION = "selection"


def _new_cell_id() -> str:
    return uuid.uuid4().hex[:12]


@dataclass(slots=True)
class Cell:
    kind: CellKind
    source: str = ""
    outputs: list[str] = field(default_factory=list)
    rendered: bool = False
    execution_count: int | None = None
    cell_id: str = field(default_factory=_new_cell_id)
    # Loaded JSON for fields the model does not track.
    # raw_outputs is None once outputs come from a run in this session.
    raw: dict[str, Any] = field(default_factory=dict, repr=False, compare=False)
    raw_outputs: list[dict[str, Any]] | None = field(default=None, repr=False, compare=False)

    def __post_init__(self) -> None:
        self.kind = CellKind(self.kind)
        if self.kind is not CellKind.MARKDOWN:
            self.rendered = False

    @property
    def shows_rendered_text(self) -> bool:
        return self.kind is CellKind.MARKDOWN and self.rendered

    def searchable_source(self) -> str:
        if self.shows_rendered_text:
            return rendered_markdown_text(self.source)
        return self.source


@dataclass(frozen=True, slots=True)
class TextRange:
    start: int
    end: int

    @property
    def is_empty(self) -> bool:
        return self.end <= self.start

    def clamped(self, length: int) -> "TextRange":
        start = max(0, min(int(self.start), length))
        end = max(start, min(int(self.end), length))
        return TextRange(start, end)


@dataclass(frozen=True, slots=True)
class NotebookChange:
    kind: ChangeKind
    index: int = -1
    cell_id: str = ""


NotebookListener = Callable[[NotebookChange], None]


class Notebook:
    """Ordered cells plus the cell/text selection a host editor exposes.

    The selected cells are always a contiguous range between ``anchor`` and
    the active cell; a text selection only exists inside the active cell
    while it is in edit mode.
    """

    def __init__(self, cells: Iterable[Cell] | None = None, *, raw: dict[str, Any] | None = None) -> None:
        self._cells: list[Cell] = list(cells or [])
        self.raw: dict[str, Any] = dict(raw or {})
        self._listeners: list[NotebookListener] = []
        self._active_index = 0
        self._anchor_index = 0
        self._editing = False
        self._caret = 0
        self._text_selection: TextRange | None = None

    # --------- cells ---------
    @property
    def cells(self) -> tuple[Cell, ...]:
        return tuple(self._cells)

    def __len__(self) -> int:
        return len(self._cells)

    def cell(self, index: int) -> Cell:
        if index < 0 or index >= len(self._cells):
            raise NotebookError(f"Cell index {index} out of range (0..{len(self._cells) - 1}).")
        return self._cells[index]

    def index_of(self, cell_id: str) -> int:
        for idx, cell in enumerate(self._cells):
            if cell.cell_id == cell_id:
                return idx
        return -1

    def find_cell(self, cell_id: str) -> Cell | None:
        idx = self.index_of(cell_id)
        return self._cells[idx] if idx >= 0 else None

    def set_source(self, index: int, text: str) -> None:
        cell = self.cell(index)
        text = str(text or "")
        if cell.source == text:
            return
        cell.source = text
        if index == self._active_index:
            self._caret = min(self._caret, len(text))
            if self._text_selection is not None:
                self._text_selection = self._text_selection.clamped(len(text))
        self._emit(ChangeKind.SOURCE, index)

    def set_outputs(self, index: int, outputs: Iterable[str], *, execution_count: int | None = None) -> None:
        cell = self.cell(index)
        cell.outputs = [str(item) for item in outputs]
        cell.raw_outputs = None
        if execution_count is not None:
            cell.execution_count = int(execution_count)
        self._emit(ChangeKind.OUTPUTS, index)

    def set_rendered(self, index: int, rendered: bool) -> None:
        cell = self.cell(index)
        if cell.kind is not CellKind.MARKDOWN or cell.rendered == bool(rendered):
            return
        cell.rendered = bool(rendered)
        if cell.rendered and index == self._active_index:
            self._editing = False
            self._text_selection = None
        self._emit(ChangeKind.RENDERED, index)

    def insert_cell(self, index: int, cell: Cell | None = None) -> Cell:
        index = max(0, min(int(index), len(self._cells)))
        new_cell = cell if cell is not None else Cell(CellKind.CODE)
        self._cells.insert(index, new_cell)
        if len(self._cells) > 1:
            if self._active_index >= index:
                self._active_index += 1
            if self._anchor_index >= index:
                self._anchor_index += 1
        self._emit(ChangeKind.INSERTED, index, new_cell.cell_id)
        return new_cell

    def delete_cell(self, index: int) -> Cell:
        cell = self.cell(index)
        del self._cells[index]
        last = max(0, len(self._cells) - 1)
        if self._active_index > index:
            self._active_index -= 1
        self._active_index = min(self._active_index, last)
        self._anchor_index = self._active_index
        self._editing = False
        self._caret = 0
        self._text_selection = None
        self._emit(ChangeKind.DELETED, index, cell.cell_id)
        return cell

    # --------- selection ---------
    @property
    def active_index(self) -> int:
        return self._active_index if self._cells else -1

    @property
    def active_cell(self) -> Cell | None:
        return self._cells[self._active_index] if self._cells else None

    @property
    def editing(self) -> bool:
        return self._editing and bool(self._cells)

    @property
    def caret(self) -> int:
        return self._caret

    @property
    def text_selection(self) -> TextRange | None:
        if not self.editing:
            return None
        return self._text_selection

    def selected_indices(self) -> list[int]:
        if not self._cells:
            return []
        lo = min(self._anchor_index, self._active_index)
        hi = max(self._anchor_index, self._active_index)
        return list(range(lo, hi + 1))

    def selected_text(self) -> str:
        selection = self.text_selection
        cell = self.active_cell
        if selection is None or cell is None or selection.is_empty:
            return ""
        rng = selection.clamped(len(cell.source))
        return cell.source[rng.start:rng.end]

    def select_cell(self, index: int) -> None:
        """Make ``index`` the only selected cell, leaving edit mode."""
        self.cell(index)
        self._active_index = index
        self._anchor_index = index
        self._editing = False
        self._caret = 0
        self._text_selection = None
        self._emit(ChangeKind.SELECTION, index)

    def extend_selection(self, delta: int) -> None:
        if not self._cells:
            return
        target = max(0, min(self._active_index + int(delta), len(self._cells) - 1))
        if target == self._active_index and not self._editing:
            return
        self._active_index = target
        self._editing = False
        self._text_selection = None
        self._emit(ChangeKind.SELECTION, target)

    def enter_edit_mode(self, index: int | None = None, *, caret: int = 0) -> None:
        idx = self._active_index if index is None else index
        cell = self.cell(idx)
        if cell.kind is CellKind.MARKDOWN and cell.rendered:
            cell.rendered = False
            self._emit(ChangeKind.RENDERED, idx)
        self._active_index = idx
        self._anchor_index = idx
        self._editing = True
        self._caret = max(0, min(int(caret), len(cell.source)))
        self._text_selection = None
        self._emit(ChangeKind.SELECTION, idx)

    def exit_edit_mode(self) -> None:
        if not self._editing:
            return
        self._editing = False
        self._text_selection = None
        self._emit(ChangeKind.SELECTION, self._active_index)

    def set_caret(self, caret: int) -> None:
        cell = self.active_cell
        if cell is None:
            return
        self._caret = max(0, min(int(caret), len(cell.source)))
        self._text_selection = None
        self._emit(ChangeKind.SELECTION, self._active_index)

    def set_text_selection(self, start: int, end: int) -> None:
        """Select ``[start, end)`` in the active cell; implies edit mode."""
        cell = self.active_cell
        if cell is None:
            return
        lo, hi = sorted((int(start), int(end)))
        rng = TextRange(lo, hi).clamped(len(cell.source))
        self._editing = True
        self._caret = rng.end
        self._text_selection = None if rng.is_empty else rng
        self._emit(ChangeKind.SELECTION, self._active_index)

    # --------- notifications ---------
    def subscribe(self, listener: NotebookListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            try:
                self._listeners.remove(listener)
            except ValueError:
                pass

        return _unsubscribe

    def _emit(self, kind: ChangeKind, index: int, cell_id: str = "") -> None:
        if not cell_id and 0 <= index < len(self._cells):
            cell_id = self._cells[index].cell_id
        change = NotebookChange(kind=kind, index=index, cell_id=cell_id)
        logger.debug("notebook.change", kind=kind.value, index=index)
        for listener in list(self._listeners):
            listener(change)

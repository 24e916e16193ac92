"""Resolve which cells, or which part of one cell, a search covers."""

from __future__ import annotations

from dataclasses import dataclass

from notebook_search.notebook.model import Notebook, TextRange
from notebook_search.services.match_index import ScopeMode


@dataclass(frozen=True, slots=True)
class CapturedTextSelection:
    """A text selection pinned when the selection filter was switched on."""

    cell_id: str
    start: int
    end: int

    @classmethod
    def from_notebook(cls, notebook: Notebook) -> "CapturedTextSelection | None":
        selection = notebook.text_selection
        cell = notebook.active_cell
        if selection is None or cell is None or selection.is_empty:
            return None
        return cls(cell.cell_id, selection.start, selection.end)

    def remapped(self, old_text: str, new_text: str) -> "CapturedTextSelection":
        """Follow an edit of the captured cell so the range keeps covering the same text."""
        if old_text == new_text:
            return self
        start = remap_offset(old_text, new_text, self.start, stick_to_end=False)
        end = remap_offset(old_text, new_text, self.end, stick_to_end=True)
        return CapturedTextSelection(self.cell_id, start, max(start, end))


@dataclass(frozen=True, slots=True)
class ScopeDescriptor:
    mode: ScopeMode
    cell_ids: frozenset[str] | None = None
    text_cell_id: str = ""
    text_range: TextRange | None = None
    line_count: int = 0

    @property
    def cell_count(self) -> int:
        return len(self.cell_ids or ())

    @property
    def is_empty(self) -> bool:
        if self.mode is ScopeMode.ALL:
            return False
        if self.mode is ScopeMode.SELECTED_TEXT:
            return self.text_range is None or self.text_range.is_empty
        return not self.cell_ids

    @property
    def label(self) -> str:
        if self.mode is ScopeMode.SELECTED_TEXT:
            return lines_label(self.line_count)
        if self.mode is ScopeMode.SELECTED_CELLS:
            return cells_label(self.cell_count)
        return "Search in All Cells"

    def covers_cell(self, cell_id: str) -> bool:
        if self.mode is ScopeMode.ALL:
            return True
        if self.mode is ScopeMode.SELECTED_TEXT:
            return cell_id == self.text_cell_id and not self.is_empty
        return cell_id in (self.cell_ids or ())

    def text_range_for(self, cell_id: str, length: int) -> TextRange | None:
        if self.mode is not ScopeMode.SELECTED_TEXT or cell_id != self.text_cell_id:
            return None
        if self.text_range is None:
            return TextRange(0, 0)
        return self.text_range.clamped(length)


ALL_CELLS = ScopeDescriptor(ScopeMode.ALL)


def _edit_bounds(old_text: str, new_text: str) -> tuple[int, int, int]:
    """Common prefix length and the end of the edited span in the old and new text."""
    limit = min(len(old_text), len(new_text))
    prefix = 0
    while prefix < limit and old_text[prefix] == new_text[prefix]:
        prefix += 1
    suffix = 0
    while suffix < limit - prefix and old_text[-1 - suffix] == new_text[-1 - suffix]:
        suffix += 1
    return prefix, len(old_text) - suffix, len(new_text) - suffix


def remap_offset(old_text: str, new_text: str, offset: int, *, stick_to_end: bool) -> int:
    """Map ``offset`` in ``old_text`` to the same place in ``new_text``.

    Offsets before the edited span stay and offsets after it move by the
    length change. Text inserted exactly at a start offset lands outside the
    range, as does text inserted exactly at an end offset (``stick_to_end``).
    Offsets inside a replaced span are clamped into its replacement.
    """
    prefix, old_end, new_end = _edit_bounds(old_text, new_text)
    if offset < prefix or (stick_to_end and offset == prefix):
        return offset
    if offset >= old_end:
        return offset + (new_end - old_end)
    if stick_to_end:
        return min(offset, new_end)
    return prefix


def cells_label(count: int) -> str:
    return f"Search in {count} Selected Cell{'' if count == 1 else 's'}"


def lines_label(count: int) -> str:
    return f"Search in {count} Selected Line{'' if count == 1 else 's'}"


def line_count(text: str, rng: TextRange) -> int:
    """Lines touched by ``rng``; a range ending at a line start still counts that line."""
    clamped = rng.clamped(len(text))
    if clamped.is_empty:
        return 0
    return text.count("\n", clamped.start, clamped.end) + 1


def resolve_scope(
    notebook: Notebook,
    mode: ScopeMode,
    *,
    captured_text: CapturedTextSelection | None = None,
) -> ScopeDescriptor:
    if mode is ScopeMode.SELECTED_CELLS:
        ids = frozenset(notebook.cell(idx).cell_id for idx in notebook.selected_indices())
        return ScopeDescriptor(ScopeMode.SELECTED_CELLS, cell_ids=ids)

    if mode is ScopeMode.SELECTED_TEXT:
        if captured_text is None:
            return ScopeDescriptor(ScopeMode.SELECTED_TEXT)
        cell = notebook.find_cell(captured_text.cell_id)
        if cell is None:
            return ScopeDescriptor(ScopeMode.SELECTED_TEXT, text_cell_id=captured_text.cell_id)
        text = cell.searchable_source()
        rng = TextRange(captured_text.start, captured_text.end).clamped(len(text))
        return ScopeDescriptor(
            ScopeMode.SELECTED_TEXT,
            cell_ids=frozenset({cell.cell_id}),
            text_cell_id=cell.cell_id,
            text_range=rng,
            line_count=line_count(text, rng),
        )

    return ALL_CELLS


def selection_filter_mode(notebook: Notebook) -> ScopeMode:
    """Scope the "search in selection" filter applies for the current selection."""
    if CapturedTextSelection.from_notebook(notebook) is not None:
        return ScopeMode.SELECTED_TEXT
    return ScopeMode.SELECTED_CELLS


def selection_filter_label(notebook: Notebook) -> str:
    if selection_filter_mode(notebook) is ScopeMode.SELECTED_TEXT:
        selection = notebook.text_selection
        cell = notebook.active_cell
        if selection is not None and cell is not None:
            return lines_label(line_count(cell.source, selection))
    return cells_label(len(notebook.selected_indices()))

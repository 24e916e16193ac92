"""Locate query occurrences across notebook cells and their outputs."""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING

import structlog

from notebook_search.notebook.model import Notebook

if TYPE_CHECKING:
    from notebook_search.services.search_scope import ScopeDescriptor

logger = structlog.get_logger(__name__)

DEFAULT_MAX_MATCHES = 10000


class InvalidPatternError(ValueError):
    """The query is a regular expression that does not compile."""


class ScopeMode(str, enum.Enum):
    ALL = "all"
    SELECTED_CELLS = "selected_cells"
    SELECTED_TEXT = "selected_text"


class MatchUnit(str, enum.Enum):
    SOURCE = "source"
    OUTPUT = "output"


@dataclass(frozen=True, slots=True)
class SearchQuery:
    text: str = ""
    use_regex: bool = False
    case_sensitive: bool = True
    whole_word: bool = False
    search_outputs: bool = False
    scope: ScopeMode = ScopeMode.ALL


@dataclass(frozen=True, slots=True)
class Match:
    cell_id: str
    cell_index: int
    unit: MatchUnit
    output_index: int
    start: int
    end: int
    text: str

    @property
    def key(self) -> tuple[str, str, int, int, int]:
        """Identity that survives re-indexing while the match itself is unchanged."""
        return (self.cell_id, self.unit.value, self.output_index, self.start, self.end)

    @property
    def position(self) -> tuple[int, int, int]:
        return (self.cell_index, unit_order(self.unit, self.output_index), self.start)


@dataclass(frozen=True, slots=True)
class MatchSet:
    matches: tuple[Match, ...] = ()
    error: str | None = None
    truncated: bool = False

    @property
    def total(self) -> int:
        return len(self.matches)

    @property
    def is_invalid(self) -> bool:
        return self.error is not None

    def index_of(self, key: tuple[str, str, int, int, int]) -> int:
        for idx, match in enumerate(self.matches):
            if match.key == key:
                return idx
        return -1


EMPTY_MATCH_SET = MatchSet()


def unit_order(unit: MatchUnit, output_index: int) -> int:
    return 0 if unit is MatchUnit.SOURCE else 1 + int(output_index)


def compile_query(query: SearchQuery) -> re.Pattern[str] | None:
    text = str(query.text or "")
    if not text:
        return None
    pattern_text = text if query.use_regex else re.escape(text)
    if query.whole_word:
        pattern_text = rf"\b(?:{pattern_text})\b"
    flags = 0 if query.case_sensitive else re.IGNORECASE
    if query.use_regex:
        flags |= re.MULTILINE
    try:
        return re.compile(pattern_text, flags)
    except re.error as exc:
        raise InvalidPatternError(str(exc)) from exc


def _scan(
    pattern: re.Pattern[str],
    text: str,
    *,
    lo: int = 0,
    hi: int | None = None,
):
    end_bound = len(text) if hi is None else hi
    for m in pattern.finditer(text, lo, end_bound):
        start = int(m.start())
        end = int(m.end())
        if end <= start:
            continue
        yield start, end, m.group(0)


def compute_matches(
    notebook: Notebook,
    query: SearchQuery,
    scope: "ScopeDescriptor | None" = None,
    *,
    max_matches: int = DEFAULT_MAX_MATCHES,
) -> MatchSet:
    """Ordered matches of ``query`` over the cells ``scope`` covers.

    Order is cell index, then the cell source, then each output in turn,
    then offset. An uncompilable pattern yields an empty set carrying the
    error text instead of raising.
    """
    try:
        pattern = compile_query(query)
    except InvalidPatternError as exc:
        logger.info("search.invalid_pattern", query=query.text, error=str(exc))
        return MatchSet(error=str(exc))
    if pattern is None:
        return EMPTY_MATCH_SET

    limit = max(1, int(max_matches))
    matches: list[Match] = []
    for cell_index, cell in enumerate(notebook.cells):
        if scope is not None and not scope.covers_cell(cell.cell_id):
            continue

        text = cell.searchable_source()
        lo, hi = 0, len(text)
        text_range = scope.text_range_for(cell.cell_id, len(text)) if scope is not None else None
        if text_range is not None:
            lo, hi = text_range.start, text_range.end
        for start, end, found in _scan(pattern, text, lo=lo, hi=hi):
            matches.append(Match(cell.cell_id, cell_index, MatchUnit.SOURCE, -1, start, end, found))
            if len(matches) >= limit:
                return MatchSet(tuple(matches), truncated=True)

        if not query.search_outputs or text_range is not None:
            continue
        for output_index, output in enumerate(cell.outputs):
            for start, end, found in _scan(pattern, output):
                matches.append(Match(cell.cell_id, cell_index, MatchUnit.OUTPUT, output_index, start, end, found))
                if len(matches) >= limit:
                    return MatchSet(tuple(matches), truncated=True)

    return MatchSet(tuple(matches))

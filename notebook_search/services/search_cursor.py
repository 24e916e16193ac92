"""Current-match pointer over a match set."""

from __future__ import annotations

from bisect import bisect_left

from notebook_search.services.match_index import EMPTY_MATCH_SET, Match, MatchSet

Position = tuple[int, int, int]


class SearchCursor:
    """Tracks the current match by identity, falling back to document position.

    ``anchor`` is the document position of the last current match. It
    outlives the match itself so a re-index after the match disappeared can
    land on the nearest surviving match instead of jumping to the top.
    """

    def __init__(self) -> None:
        self._match_set: MatchSet = EMPTY_MATCH_SET
        self._index = -1
        self._key: tuple[str, str, int, int, int] | None = None
        self._anchor: Position | None = None

    @property
    def match_set(self) -> MatchSet:
        return self._match_set

    @property
    def index(self) -> int:
        return self._index

    @property
    def position(self) -> int:
        return self._index + 1 if self._index >= 0 else 0

    @property
    def total(self) -> int:
        return self._match_set.total

    @property
    def anchor(self) -> Position | None:
        return self._anchor

    @property
    def current(self) -> Match | None:
        if 0 <= self._index < self._match_set.total:
            return self._match_set.matches[self._index]
        return None

    def display_text(self) -> str:
        if self._index < 0 or not self._match_set.total:
            return "-/-"
        return f"{self.position}/{self.total}"

    def clear(self) -> None:
        self._match_set = EMPTY_MATCH_SET
        self._index = -1
        self._key = None
        self._anchor = None

    def _select(self, index: int) -> None:
        if 0 <= index < self._match_set.total:
            match = self._match_set.matches[index]
            self._index = index
            self._key = match.key
            self._anchor = match.position
        else:
            self._index = -1
            self._key = None

    def _first_at_or_after(self, anchor: Position) -> int:
        positions = [match.position for match in self._match_set.matches]
        idx = bisect_left(positions, anchor)
        if idx < len(positions):
            return idx
        # Nothing after the anchor: the last match is the nearest one.
        return len(positions) - 1

    def start_from(self, match_set: MatchSet, anchor: Position | None) -> int:
        """Point at the first match at or after ``anchor`` (search from cursor)."""
        self._match_set = match_set
        if not match_set.total:
            self._index = -1
            self._key = None
            if anchor is not None:
                self._anchor = anchor
            return self._index
        self._select(self._first_at_or_after(anchor or (0, 0, 0)))
        return self._index

    def rebase(self, match_set: MatchSet, *, anchor: Position | None = None) -> int:
        """Re-resolve the current match against a recomputed ``match_set``."""
        if self._key is not None:
            idx = match_set.index_of(self._key)
            if idx >= 0:
                self._match_set = match_set
                self._select(idx)
                return self._index
        return self.start_from(match_set, anchor if anchor is not None else self._anchor)

    def next(self) -> Match | None:
        total = self._match_set.total
        if not total:
            return None
        self._select((self._index + 1) % total if self._index >= 0 else 0)
        return self.current

    def previous(self) -> Match | None:
        total = self._match_set.total
        if not total:
            return None
        self._select((self._index - 1) % total if self._index >= 0 else total - 1)
        return self.current

    def select_index(self, index: int) -> Match | None:
        self._select(index)
        return self.current

    def shift_cells(self, index: int, delta: int) -> None:
        """Keep the anchor on the same cell after an insert (+1) or delete (-1) at ``index``."""
        if self._anchor is None:
            return
        cell_index, unit, offset = self._anchor
        if delta < 0 and cell_index == index:
            # The anchored cell is gone; resume at the start of whatever follows it.
            self._anchor = (index, 0, 0)
            self._key = None
        elif cell_index >= index:
            self._anchor = (cell_index + delta, unit, offset)

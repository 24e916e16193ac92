"""
Unit tests for the notebook match index.
"""

import pytest

from notebook_search.notebook import Cell, CellKind, Notebook, TextRange
from notebook_search.services.match_index import (
    InvalidPatternError,
    MatchUnit,
    ScopeMode,
    SearchQuery,
    compile_query,
    compute_matches,
)
from notebook_search.services.search_scope import ScopeDescriptor


class TestCompileQuery:
    def test_empty_text_compiles_to_none(self):
        assert compile_query(SearchQuery(text="")) is None

    def test_literal_text_is_escaped(self):
        pattern = compile_query(SearchQuery(text="a.b"))
        assert pattern.search("a.b")
        assert not pattern.search("axb")

    def test_invalid_regex_raises(self):
        with pytest.raises(InvalidPatternError):
            compile_query(SearchQuery(text="test\\", use_regex=True))

    def test_whole_word_wraps_pattern(self):
        pattern = compile_query(SearchQuery(text="with", whole_word=True))
        assert pattern.search("go with it")
        assert not pattern.search("withr")


class TestComputeMatches:
    def test_counts_across_fixture(self, notebook):
        result = compute_matches(notebook, SearchQuery(text="with"))

        assert result.total == 21
        assert result.error is None
        per_cell = [sum(1 for m in result.matches if m.cell_index == idx) for idx in range(len(notebook))]
        assert per_cell == [4, 5, 10, 0, 0, 2]

    def test_matches_are_in_document_order(self, notebook):
        result = compute_matches(notebook, SearchQuery(text="with", search_outputs=True))
        positions = [m.position for m in result.matches]

        assert positions == sorted(positions)

    def test_outputs_only_when_requested(self, notebook):
        without = compute_matches(notebook, SearchQuery(text="with"))
        with_outputs = compute_matches(notebook, SearchQuery(text="with", search_outputs=True))

        assert without.total == 21
        assert with_outputs.total == 29
        assert {m.unit for m in with_outputs.matches} == {MatchUnit.SOURCE, MatchUnit.OUTPUT}

    def test_literal_search_is_case_sensitive_by_default(self, notebook):
        assert compute_matches(notebook, SearchQuery(text="test")).total == 2
        assert compute_matches(notebook, SearchQuery(text="test", case_sensitive=False)).total == 4

    def test_multiline_literal(self, notebook):
        result = compute_matches(notebook, SearchQuery(text="one notebook withr\n\n\nThis is a multi"))

        assert result.total == 1
        assert result.matches[0].cell_index == 0

    def test_invalid_pattern_gives_error_not_exception(self, notebook):
        result = compute_matches(notebook, SearchQuery(text="test\\", use_regex=True))

        assert result.is_invalid
        assert result.total == 0

    def test_zero_length_regex_matches_are_skipped(self):
        nb = Notebook([Cell(CellKind.CODE, "abc")])

        assert compute_matches(nb, SearchQuery(text="x*", use_regex=True)).total == 0

    def test_regex_anchors_apply_per_line(self):
        nb = Notebook([Cell(CellKind.CODE, "import os\nimport re\nx = 1")])

        result = compute_matches(nb, SearchQuery(text="^import", use_regex=True))

        assert [m.start for m in result.matches] == [0, 10]

    def test_truncated_at_limit(self, notebook):
        result = compute_matches(notebook, SearchQuery(text="with"), max_matches=5)

        assert result.total == 5
        assert result.truncated

    def test_rendered_markdown_searches_rendered_text(self):
        cell = Cell(CellKind.MARKDOWN, "# Title **bold**", rendered=True)
        nb = Notebook([cell])

        assert compute_matches(nb, SearchQuery(text="#")).total == 0
        assert compute_matches(nb, SearchQuery(text="Title bold")).total == 1

    def test_selected_cells_scope(self, notebook):
        ids = frozenset(notebook.cell(i).cell_id for i in (1, 2))
        scope = ScopeDescriptor(ScopeMode.SELECTED_CELLS, cell_ids=ids)

        assert compute_matches(notebook, SearchQuery(text="with"), scope).total == 15

    def test_selected_text_scope_limits_range(self, notebook):
        cell = notebook.cell(2)
        end = cell.source.index("with open")
        scope = ScopeDescriptor(
            ScopeMode.SELECTED_TEXT,
            cell_ids=frozenset({cell.cell_id}),
            text_cell_id=cell.cell_id,
            text_range=TextRange(0, end),
        )

        result = compute_matches(notebook, SearchQuery(text="text/"), scope)

        assert result.total == 2
        assert all(m.end <= end for m in result.matches)

    def test_match_key_is_stable_for_same_text(self, notebook):
        first = compute_matches(notebook, SearchQuery(text="with"))
        second = compute_matches(notebook, SearchQuery(text="with"))

        assert [m.key for m in first.matches] == [m.key for m in second.matches]
        assert second.index_of(first.matches[3].key) == 3

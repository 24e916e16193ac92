"""
Unit tests for the current-match cursor.
"""

from notebook_search.services.match_index import EMPTY_MATCH_SET, SearchQuery, compute_matches
from notebook_search.services.search_cursor import SearchCursor


def _with_matches(notebook):
    return compute_matches(notebook, SearchQuery(text="with"))


def test_empty_cursor_display():
    cursor = SearchCursor()
    cursor.start_from(EMPTY_MATCH_SET, None)

    assert cursor.display_text() == "-/-"
    assert cursor.current is None
    assert cursor.next() is None


def test_start_from_top(notebook):
    cursor = SearchCursor()
    cursor.start_from(_with_matches(notebook), (0, 0, 0))

    assert cursor.display_text() == "1/21"


def test_start_from_anchor_in_later_cell(notebook):
    cursor = SearchCursor()
    cursor.start_from(_with_matches(notebook), (5, 0, 0))

    assert cursor.display_text() == "20/21"
    assert cursor.current.cell_index == 5


def test_anchor_past_last_match_falls_back_to_last(notebook):
    cursor = SearchCursor()
    cursor.start_from(_with_matches(notebook), (5, 9, 0))

    assert cursor.display_text() == "21/21"


def test_next_and_previous_wrap(notebook):
    cursor = SearchCursor()
    cursor.start_from(_with_matches(notebook), (0, 0, 0))

    cursor.previous()
    assert cursor.display_text() == "21/21"
    cursor.next()
    assert cursor.display_text() == "1/21"
    for _ in range(4):
        cursor.next()
    assert cursor.display_text() == "5/21"
    assert cursor.current.cell_index == 1


def test_rebase_keeps_identity(notebook):
    cursor = SearchCursor()
    cursor.start_from(_with_matches(notebook), (0, 0, 0))
    cursor.select_index(6)
    key = cursor.current.key

    notebook.delete_cell(5)
    cursor.shift_cells(5, -1)
    cursor.rebase(_with_matches(notebook))

    assert cursor.current.key == key
    assert cursor.display_text() == "7/19"


def test_rebase_falls_back_to_anchor(notebook):
    cursor = SearchCursor()
    cursor.start_from(_with_matches(notebook), (2, 0, 0))
    assert cursor.current.cell_index == 2

    source = notebook.cell(2).source
    notebook.set_source(2, source.replace("join_with", "join", 1))
    cursor.rebase(_with_matches(notebook))

    # The first match of cell 2 is gone; the next one in the same cell takes over.
    assert cursor.current.cell_index == 2
    assert cursor.display_text() == "10/20"


def test_shift_cells_on_delete_of_anchored_cell(notebook):
    cursor = SearchCursor()
    cursor.start_from(_with_matches(notebook), (2, 0, 0))

    notebook.delete_cell(2)
    cursor.shift_cells(2, -1)
    cursor.rebase(_with_matches(notebook))

    assert cursor.anchor[0] == 4
    assert cursor.current.cell_index == 4


def test_shift_cells_on_insert_before_anchor(notebook):
    cursor = SearchCursor()
    cursor.start_from(_with_matches(notebook), (2, 0, 0))
    key = cursor.current.key

    notebook.insert_cell(0)
    cursor.shift_cells(0, 1)
    cursor.rebase(_with_matches(notebook))

    assert cursor.current.key == key
    assert cursor.current.cell_index == 3
    assert cursor.display_text() == "10/21"

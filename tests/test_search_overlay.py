"""
Widget tests for the search overlay.
"""

import pytest
from PySide6.QtCore import Qt
from PySide6.QtTest import QTest

from notebook_search.ui.widgets.search_overlay import SearchOverlay


@pytest.fixture
def overlay(qapp):
    widget = SearchOverlay()
    yield widget
    widget.deleteLater()


def test_button_titles(overlay):
    assert overlay.button_titles() == [
        "Toggle Replace",
        "Use Regular Expression",
        "Match Case",
        "Match Whole Word",
        "Previous Match",
        "Next Match",
        "Show Search Filters",
        "Close",
    ]


def test_typing_with_caret_moves(overlay):
    seen = []
    overlay.queryChanged.connect(seen.append)

    QTest.keyClicks(overlay.find_edit, "14")
    QTest.keyClick(overlay.find_edit, Qt.Key_Left)
    QTest.keyClicks(overlay.find_edit, "23")

    assert overlay.query_text() == "1234"
    assert seen[-1] == "1234"


def test_enter_and_shift_enter(overlay):
    calls = []
    overlay.nextRequested.connect(lambda: calls.append("next"))
    overlay.previousRequested.connect(lambda: calls.append("previous"))

    QTest.keyClick(overlay.find_edit, Qt.Key_Return)
    QTest.keyClick(overlay.find_edit, Qt.Key_Return, Qt.ShiftModifier)
    QTest.keyClick(overlay.find_edit, Qt.Key_Enter)

    assert calls == ["next", "previous", "next"]
    assert overlay.query_text() == ""


def test_ctrl_enter_inserts_newline(overlay):
    QTest.keyClicks(overlay.find_edit, "a")
    QTest.keyClick(overlay.find_edit, Qt.Key_Return, Qt.ControlModifier)
    QTest.keyClicks(overlay.find_edit, "b")

    assert overlay.query_text() == "a\nb"


def test_enter_in_replace_field_replaces(overlay):
    replaced = []
    overlay.replaceRequested.connect(replaced.append)

    QTest.keyClicks(overlay.replace_edit, "new")
    QTest.keyClick(overlay.replace_edit, Qt.Key_Return)

    assert replaced == ["new"]


def test_status_shows_count(overlay, session):
    session.open()
    session.set_query_text("with")

    overlay.apply_status(session.status())

    assert overlay.count_lbl.text() == "1/21"
    assert overlay.regex_error_lbl.isHidden()
    assert overlay.case_btn.isChecked()
    assert overlay.selection_box.text() == "Search in 1 Selected Cell"


def test_status_shows_regex_error(overlay, session):
    session.open()
    session.set_use_regex(True)
    session.set_query_text("test\\")

    overlay.apply_status(session.status())

    assert not overlay.regex_error_lbl.isHidden()
    assert overlay.count_lbl.isHidden()
    assert overlay.regex_btn.isChecked()


def test_status_does_not_emit_toggles(overlay, session):
    toggled = []
    overlay.regexToggled.connect(toggled.append)
    session.open()
    session.set_use_regex(True)

    overlay.apply_status(session.status())

    assert toggled == []


def test_status_does_not_touch_query(overlay, session):
    QTest.keyClicks(overlay.find_edit, "typing")
    session.open()
    session.set_query_text("with")

    overlay.apply_status(session.status())

    assert overlay.query_text() == "typing"


def test_replace_row_follows_status(overlay, session):
    session.open()
    session.set_replace_visible(True)
    session.set_filters_visible(True)

    overlay.apply_status(session.status())

    assert not overlay.replace_row.isHidden()
    assert not overlay.filters_panel.isHidden()
    assert overlay.replace_toggle_btn.isChecked()

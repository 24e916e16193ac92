"""
Unit tests for the overlay focus state machine.
"""

import pytest

from notebook_search.core.focus_state import EscapeAction, FocusEvent, FocusState, FocusStateMachine


def test_starts_closed():
    fsm = FocusStateMachine()

    assert fsm.state is FocusState.CLOSED
    assert not fsm.is_open


def test_open_focuses_search():
    fsm = FocusStateMachine()

    assert fsm.dispatch(FocusEvent.OPEN) is FocusState.OPEN_FOCUSED
    assert fsm.is_open


@pytest.mark.parametrize(
    "events, expected",
    [
        ([FocusEvent.OPEN, FocusEvent.FOCUS_NOTEBOOK], FocusState.OPEN_UNFOCUSED),
        ([FocusEvent.OPEN, FocusEvent.FOCUS_NOTEBOOK, FocusEvent.FOCUS_SEARCH], FocusState.OPEN_FOCUSED),
        ([FocusEvent.OPEN, FocusEvent.ENTER_CELL_EDIT], FocusState.CELL_EDITING),
        ([FocusEvent.OPEN, FocusEvent.ENTER_CELL_EDIT, FocusEvent.EXIT_CELL_EDIT], FocusState.OPEN_UNFOCUSED),
        ([FocusEvent.OPEN, FocusEvent.ENTER_CELL_EDIT, FocusEvent.CLOSE], FocusState.CLOSED),
        ([FocusEvent.FOCUS_SEARCH], FocusState.CLOSED),
        ([FocusEvent.ENTER_CELL_EDIT], FocusState.CLOSED),
    ],
)
def test_transitions(events, expected):
    fsm = FocusStateMachine()
    for event in events:
        fsm.dispatch(event)

    assert fsm.state is expected


def test_two_stage_escape_from_cell_editing():
    fsm = FocusStateMachine(FocusState.CELL_EDITING)

    assert fsm.escape() is EscapeAction.EXIT_CELL_EDIT
    assert fsm.state is FocusState.OPEN_UNFOCUSED
    assert fsm.escape() is EscapeAction.CLOSE_SEARCH
    assert fsm.state is FocusState.CLOSED


def test_escape_from_search_box_closes():
    fsm = FocusStateMachine(FocusState.OPEN_FOCUSED)

    assert fsm.escape() is EscapeAction.CLOSE_SEARCH
    assert fsm.state is FocusState.CLOSED


def test_escape_when_closed():
    fsm = FocusStateMachine()

    assert fsm.escape() is EscapeAction.IGNORED
    assert fsm.state is FocusState.CLOSED


def test_accepts_state_values():
    assert FocusStateMachine("open_focused").state is FocusState.OPEN_FOCUSED

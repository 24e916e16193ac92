"""Focus and mode state of the search overlay relative to the notebook."""

from __future__ import annotations

import enum


class FocusState(str, enum.Enum):
    CLOSED = "closed"
    OPEN_UNFOCUSED = "open_unfocused"
    OPEN_FOCUSED = "open_focused"
    CELL_EDITING = "cell_editing_search_open"


class FocusEvent(str, enum.Enum):
    OPEN = "open"
    CLOSE = "close"
    FOCUS_SEARCH = "focus_search"
    FOCUS_NOTEBOOK = "focus_notebook"
    ENTER_CELL_EDIT = "enter_cell_edit"
    EXIT_CELL_EDIT = "exit_cell_edit"
    ESCAPE = "escape"


class EscapeAction(str, enum.Enum):
    IGNORED = "ignored"
    EXIT_CELL_EDIT = "exit_cell_edit"
    CLOSE_SEARCH = "close_search"


_S = FocusState
_E = FocusEvent

_TRANSITIONS: dict[tuple[FocusState, FocusEvent], FocusState] = {
    (_S.CLOSED, _E.OPEN): _S.OPEN_FOCUSED,
    (_S.OPEN_UNFOCUSED, _E.OPEN): _S.OPEN_FOCUSED,
    (_S.OPEN_FOCUSED, _E.OPEN): _S.OPEN_FOCUSED,
    (_S.CELL_EDITING, _E.OPEN): _S.OPEN_FOCUSED,
    (_S.OPEN_UNFOCUSED, _E.FOCUS_SEARCH): _S.OPEN_FOCUSED,
    (_S.CELL_EDITING, _E.FOCUS_SEARCH): _S.OPEN_FOCUSED,
    (_S.OPEN_FOCUSED, _E.FOCUS_NOTEBOOK): _S.OPEN_UNFOCUSED,
    (_S.OPEN_FOCUSED, _E.ENTER_CELL_EDIT): _S.CELL_EDITING,
    (_S.OPEN_UNFOCUSED, _E.ENTER_CELL_EDIT): _S.CELL_EDITING,
    (_S.CELL_EDITING, _E.EXIT_CELL_EDIT): _S.OPEN_UNFOCUSED,
    (_S.CELL_EDITING, _E.FOCUS_NOTEBOOK): _S.OPEN_UNFOCUSED,
    (_S.CELL_EDITING, _E.ESCAPE): _S.OPEN_UNFOCUSED,
    (_S.OPEN_FOCUSED, _E.ESCAPE): _S.CLOSED,
    (_S.OPEN_UNFOCUSED, _E.ESCAPE): _S.CLOSED,
    (_S.OPEN_FOCUSED, _E.CLOSE): _S.CLOSED,
    (_S.OPEN_UNFOCUSED, _E.CLOSE): _S.CLOSED,
    (_S.CELL_EDITING, _E.CLOSE): _S.CLOSED,
}

_ESCAPE_ACTIONS: dict[FocusState, EscapeAction] = {
    _S.CLOSED: EscapeAction.IGNORED,
    _S.CELL_EDITING: EscapeAction.EXIT_CELL_EDIT,
    _S.OPEN_FOCUSED: EscapeAction.CLOSE_SEARCH,
    _S.OPEN_UNFOCUSED: EscapeAction.CLOSE_SEARCH,
}


class FocusStateMachine:
    """Two-stage Escape: leave cell editing first, close the overlay on the next press."""

    def __init__(self, state: FocusState = FocusState.CLOSED) -> None:
        self._state = FocusState(state)

    @property
    def state(self) -> FocusState:
        return self._state

    @property
    def is_open(self) -> bool:
        return self._state is not FocusState.CLOSED

    def dispatch(self, event: FocusEvent) -> FocusState:
        self._state = _TRANSITIONS.get((self._state, FocusEvent(event)), self._state)
        return self._state

    def escape(self) -> EscapeAction:
        action = _ESCAPE_ACTIONS[self._state]
        self.dispatch(FocusEvent.ESCAPE)
        return action

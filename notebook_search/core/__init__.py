"""Keybindings and overlay focus state."""

from .focus_state import EscapeAction, FocusEvent, FocusState, FocusStateMachine

__all__ = [
    "EscapeAction",
    "FocusEvent",
    "FocusState",
    "FocusStateMachine",
]

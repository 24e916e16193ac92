"""Match key events against configured keybinding sequences."""

from __future__ import annotations

from typing import Mapping

from PySide6.QtCore import Qt
from PySide6.QtGui import QKeyEvent, QKeySequence

from notebook_search.core.keybindings import get_action_sequence, keybinding_actions_for_scope

_MODIFIER_MASK = (
    Qt.KeyboardModifier.ControlModifier
    | Qt.KeyboardModifier.AltModifier
    | Qt.KeyboardModifier.ShiftModifier
    | Qt.KeyboardModifier.MetaModifier
)

_MODIFIER_KEYS = {Qt.Key_Shift, Qt.Key_Control, Qt.Key_Alt, Qt.Key_Meta, Qt.Key_AltGr}


def _pressed_sequence(event: QKeyEvent) -> QKeySequence | None:
    key = int(event.key())
    if not key or key in _MODIFIER_KEYS:
        return None
    mods = event.modifiers() & _MODIFIER_MASK
    # Keypad Enter behaves like Return for every binding.
    if key == int(Qt.Key_Enter):
        key = int(Qt.Key_Return)
    try:
        return QKeySequence(int(mods) | key)
    except (TypeError, ValueError):
        return None


def event_matches_chord(event: QKeyEvent, chord: str) -> bool:
    chord = str(chord or "").strip()
    if not chord:
        return False
    target = QKeySequence(chord)
    if target.isEmpty():
        return False
    pressed = _pressed_sequence(event)
    if pressed is None:
        return False
    return bool(pressed.matches(target) == QKeySequence.SequenceMatch.ExactMatch)


def is_modifier_only(event: QKeyEvent) -> bool:
    return int(event.key()) in _MODIFIER_KEYS


class ActionShortcuts:
    """Resolve key events to action ids for one keybinding scope.

    Multi-chord sequences such as ``D, D`` are tracked across calls to
    :meth:`match`; any key that does not continue a pending sequence resets it.
    """

    def __init__(self, keybindings: Mapping[str, Mapping[str, list[str]]] | None, scope: str) -> None:
        self._keybindings = keybindings
        self._scope = scope
        self._sequences: dict[str, list[str]] = {}
        self._pending: list[str] = []
        self.set_keybindings(keybindings)

    def set_keybindings(self, keybindings: Mapping[str, Mapping[str, list[str]]] | None) -> None:
        self._keybindings = keybindings
        self._sequences = {
            action.action_id: get_action_sequence(keybindings, scope=self._scope, action_id=action.action_id)
            for action in keybinding_actions_for_scope(self._scope)
        }
        self._pending = []

    def sequence(self, action_id: str) -> list[str]:
        return list(self._sequences.get(action_id, []))

    def matches(self, event: QKeyEvent, action_id: str) -> bool:
        """Single-chord check that leaves pending multi-chord state alone."""
        sequence = self._sequences.get(action_id) or []
        return len(sequence) == 1 and event_matches_chord(event, sequence[0])

    def match(self, event: QKeyEvent) -> str | None:
        if is_modifier_only(event):
            return None
        pending = self._pending
        self._pending = []
        if pending:
            depth = len(pending)
            for action_id, sequence in self._sequences.items():
                if len(sequence) > depth and sequence[:depth] == pending and event_matches_chord(event, sequence[depth]):
                    if len(sequence) == depth + 1:
                        return action_id
                    self._pending = pending + [sequence[depth]]
                    return None
        for action_id, sequence in self._sequences.items():
            if len(sequence) == 1 and event_matches_chord(event, sequence[0]):
                return action_id
        for action_id, sequence in self._sequences.items():
            if len(sequence) > 1 and event_matches_chord(event, sequence[0]):
                self._pending = [sequence[0]]
                return None
        return None

    @property
    def has_pending(self) -> bool:
        return bool(self._pending)

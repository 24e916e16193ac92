"""Shortcut tables for the search overlay and the notebook command mode."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from PySide6.QtGui import QKeySequence

KeybindingScope = str
KeybindingMap = Mapping[str, Mapping[str, list[str]]]


@dataclass(frozen=True, slots=True)
class KeybindingAction:
    scope: KeybindingScope
    action_id: str
    action_name: str
    default_sequence: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class KeybindingConflict:
    """Two or more actions bound to the same key sequence."""

    sequence_text: str
    actions: tuple[tuple[KeybindingScope, str], ...]


# A sequence is a tuple of chords pressed one after another ("D", "D").
KEYBINDING_ACTIONS: tuple[KeybindingAction, ...] = (
    KeybindingAction("search", "action.find", "Find", ("Ctrl+F",)),
    KeybindingAction("search", "action.find_next", "Next Match", ("Ctrl+G",)),
    KeybindingAction("search", "action.find_previous", "Previous Match", ("Ctrl+Shift+G",)),
    KeybindingAction("search", "action.close_search", "Close Search", ("Escape",)),
    KeybindingAction("search", "action.toggle_replace", "Toggle Replace", ("Ctrl+H",)),
    KeybindingAction("notebook", "action.delete_cell", "Delete Cell", ("D", "D")),
    KeybindingAction("notebook", "action.extend_selection_above", "Extend Selection Above", ("Shift+Up",)),
    KeybindingAction("notebook", "action.extend_selection_below", "Extend Selection Below", ("Shift+Down",)),
    KeybindingAction("notebook", "action.select_cell_above", "Select Cell Above", ("Up",)),
    KeybindingAction("notebook", "action.select_cell_below", "Select Cell Below", ("Down",)),
    KeybindingAction("notebook", "action.enter_edit_mode", "Edit Cell", ("Return",)),
    KeybindingAction("notebook", "action.insert_cell_below", "Insert Cell Below", ("B",)),
    KeybindingAction("notebook", "action.run_cell", "Run Cell", ("Shift+Return",)),
)

_MODIFIER_ORDER = ("Ctrl", "Alt", "Shift", "Meta")
_MODIFIER_ALIASES = {
    "ctrl": "Ctrl",
    "control": "Ctrl",
    "alt": "Alt",
    "shift": "Shift",
    "meta": "Meta",
    "cmd": "Meta",
    "command": "Meta",
    "super": "Meta",
    "win": "Meta",
}
_KEY_ALIASES = {"esc": "Esc", "escape": "Esc", "enter": "Return", "return": "Return"}


def default_keybindings() -> dict[str, dict[str, list[str]]]:
    out: dict[str, dict[str, list[str]]] = {"search": {}, "notebook": {}}
    for action in KEYBINDING_ACTIONS:
        out.setdefault(action.scope, {})[action.action_id] = list(action.default_sequence)
    return out


def keybinding_actions_for_scope(scope: KeybindingScope) -> list[KeybindingAction]:
    target = str(scope or "").strip().lower()
    return [entry for entry in KEYBINDING_ACTIONS if entry.scope == target]


def _chords(text: str) -> list[str]:
    return [part.strip() for part in str(text or "").split(",") if part.strip()]


def _ordered_chord(text: str) -> str:
    """Sort modifiers into one fixed order and spell the key the same way every time."""
    modifiers: set[str] = set()
    key = ""
    for part in (piece.strip() for piece in str(text or "").split("+")):
        if not part:
            continue
        alias = _MODIFIER_ALIASES.get(part.lower())
        if alias:
            modifiers.add(alias)
        else:
            key = part
    if not key:
        return ""
    key = _KEY_ALIASES.get(key.lower(), key.upper() if len(key) == 1 and key.isalpha() else key)
    return "+".join([name for name in _MODIFIER_ORDER if name in modifiers] + [key])


def canonicalize_chord_text(text: str) -> str:
    raw = str(text or "").strip()
    if not raw:
        return ""
    portable = QKeySequence(raw).toString(QKeySequence.PortableText).strip()
    if not portable:
        return _ordered_chord(raw) or raw
    first = _chords(portable)[0] if "," in portable else portable
    return _ordered_chord(first) or first


def normalize_sequence(value: Any) -> list[str]:
    if isinstance(value, str):
        items = [value]
    elif isinstance(value, (list, tuple)):
        items = [item for item in value if isinstance(item, str)]
    else:
        return []
    chords = (canonicalize_chord_text(chord) for item in items for chord in _chords(item))
    return [chord for chord in chords if chord]


def sequence_to_text(sequence: list[str] | tuple[str, ...]) -> str:
    return ", ".join(normalize_sequence(list(sequence)))


def normalize_keybindings(raw: Any) -> dict[str, dict[str, list[str]]]:
    """Defaults with the valid parts of ``raw`` laid over them."""
    merged = default_keybindings()
    if not isinstance(raw, Mapping):
        return merged
    for scope_key, overrides in raw.items():
        scope = str(scope_key or "").strip().lower()
        if not scope or not isinstance(overrides, Mapping):
            continue
        for action_key, value in overrides.items():
            action_id = str(action_key or "").strip()
            sequence = normalize_sequence(value)
            if action_id and sequence:
                merged.setdefault(scope, {})[action_id] = sequence
    return merged


def get_action_sequence(
    keybindings: KeybindingMap | None,
    *,
    scope: KeybindingScope,
    action_id: str,
) -> list[str]:
    scope_map = normalize_keybindings(keybindings).get(str(scope or "").strip().lower(), {})
    return normalize_sequence(scope_map.get(str(action_id or "").strip(), []))


def find_conflicts(keybindings: KeybindingMap | None) -> list[KeybindingConflict]:
    """Sequences used by more than one known action.

    The search and notebook scopes are live in the same window, so a sequence
    shared across them conflicts as well.
    """
    normalized = normalize_keybindings(keybindings)
    by_sequence: dict[tuple[str, ...], list[tuple[KeybindingScope, str]]] = {}
    for action in KEYBINDING_ACTIONS:
        sequence = tuple(normalized.get(action.scope, {}).get(action.action_id, []))
        if sequence:
            by_sequence.setdefault(sequence, []).append((action.scope, action.action_id))
    return [
        KeybindingConflict(sequence_to_text(list(sequence)), tuple(actions))
        for sequence, actions in by_sequence.items()
        if len(actions) > 1
    ]


__all__ = [
    "KeybindingScope",
    "KeybindingAction",
    "KeybindingConflict",
    "KEYBINDING_ACTIONS",
    "default_keybindings",
    "keybinding_actions_for_scope",
    "canonicalize_chord_text",
    "normalize_sequence",
    "sequence_to_text",
    "normalize_keybindings",
    "get_action_sequence",
    "find_conflicts",
]

"""
Unit tests for keybinding normalization and lookup.
"""

from notebook_search.core.keybindings import (
    default_keybindings,
    find_conflicts,
    get_action_sequence,
    normalize_keybindings,
    normalize_sequence,
    sequence_to_text,
)


def test_defaults_cover_both_scopes():
    defaults = default_keybindings()

    assert defaults["search"]["action.find"] == ["Ctrl+F"]
    assert defaults["notebook"]["action.delete_cell"] == ["D", "D"]


def test_normalize_sequence_from_text():
    assert normalize_sequence("ctrl+shift+g") == ["Ctrl+Shift+G"]
    assert normalize_sequence("D, D") == ["D", "D"]
    assert normalize_sequence(["escape"]) == ["Esc"]


def test_sequence_to_text():
    assert sequence_to_text(["D", "D"]) == "D, D"


def test_user_override_is_merged():
    merged = normalize_keybindings({"search": {"action.find": "Ctrl+K"}})

    assert merged["search"]["action.find"] == ["Ctrl+K"]
    assert merged["search"]["action.find_next"] == ["Ctrl+G"]


def test_garbage_is_ignored():
    merged = normalize_keybindings({"search": {"action.find": 42}, "": {}, "notebook": "nope"})

    assert merged == default_keybindings()


def test_get_action_sequence_falls_back_to_default():
    assert get_action_sequence(None, scope="search", action_id="action.toggle_replace") == ["Ctrl+H"]
    assert get_action_sequence(None, scope="search", action_id="action.unknown") == []


def test_defaults_have_no_conflicts(qapp):
    assert find_conflicts(None) == []


def test_conflicts_across_scopes(qapp):
    conflicts = find_conflicts({"notebook": {"action.insert_cell_below": "ctrl+f"}})

    assert len(conflicts) == 1
    assert conflicts[0].sequence_text == "Ctrl+F"
    assert conflicts[0].actions == (("search", "action.find"), ("notebook", "action.insert_cell_below"))


def test_multi_chord_sequences_conflict_only_when_equal(qapp):
    conflicts = find_conflicts({"notebook": {"action.insert_cell_below": "D"}})

    assert conflicts == []

"""
Unit tests for the JSON settings store.
"""

import json

import pytest
from structlog.testing import capture_logs

from notebook_search.settings_models import default_search_settings
from notebook_search.settings_store import (
    JsonSettingsStore,
    deep_merge_defaults,
    dot_get,
    dot_set,
    normalize_search_settings,
)


def test_missing_file_loads_defaults(tmp_path):
    store = JsonSettingsStore.for_app_dir(tmp_path)

    data = store.load()

    assert data["search"] == default_search_settings()
    assert store.dirty
    assert store.last_error is None


def test_save_and_reload(tmp_path):
    store = JsonSettingsStore.for_app_dir(tmp_path)
    store.load()
    store.set("search.use_regex", True)
    store.set("keybindings.search.action.find", ["ctrl+k"])
    store.save()

    reloaded = JsonSettingsStore.for_app_dir(tmp_path)
    reloaded.load()

    assert reloaded.get("search.use_regex") is True
    assert reloaded.get("search.case_sensitive") is True
    assert not reloaded.dirty
    assert store.path.name == "search-settings.json"


def test_keybindings_normalized_on_load(qapp, tmp_path):
    path = tmp_path / "search-settings.json"
    path.write_text(json.dumps({"keybindings": {"search": {"action.find": "ctrl+k"}}}), encoding="utf-8")
    store = JsonSettingsStore.for_app_dir(tmp_path)

    store.load()

    assert store.get("keybindings")["search"]["action.find"] == ["Ctrl+K"]
    assert store.get("keybindings")["notebook"]["action.delete_cell"] == ["D", "D"]


def test_keybinding_conflicts_reported_on_load(qapp, tmp_path):
    path = tmp_path / "search-settings.json"
    path.write_text(json.dumps({"keybindings": {"notebook": {"action.run_cell": "Ctrl+G"}}}), encoding="utf-8")
    store = JsonSettingsStore.for_app_dir(tmp_path)

    with capture_logs() as logs:
        store.load()

    assert [c.actions for c in store.keybinding_conflicts] == [
        (("search", "action.find_next"), ("notebook", "action.run_cell"))
    ]
    assert any(entry["event"] == "settings.keybinding_conflict" for entry in logs)


def test_invalid_json_keeps_defaults(tmp_path):
    path = tmp_path / "search-settings.json"
    path.write_text("{not json", encoding="utf-8")
    store = JsonSettingsStore.for_app_dir(tmp_path)

    data = store.load()

    assert store.last_error
    assert data["search"]["max_matches"] == 10000
    assert path.read_text(encoding="utf-8") == "{not json"


def test_non_object_root_is_reported(tmp_path):
    (tmp_path / "search-settings.json").write_text("[1, 2]", encoding="utf-8")
    store = JsonSettingsStore.for_app_dir(tmp_path)

    store.load()

    assert "must be a JSON object" in store.last_error


def test_non_persistent_store_never_writes(tmp_path):
    store = JsonSettingsStore.for_app_dir(tmp_path, persistent=False)
    store.load()
    store.set("search.whole_word", True)

    store.save()

    assert not store.path.exists()
    assert not store.dirty


def test_set_reports_change(tmp_path):
    store = JsonSettingsStore.for_app_dir(tmp_path)
    store.load()

    assert store.set("search.whole_word", True)
    assert not store.set("search.whole_word", True)


def test_restore_defaults(tmp_path):
    store = JsonSettingsStore.for_app_dir(tmp_path)
    store.load()
    store.set("search.use_regex", True)

    store.restore_defaults()

    assert store.get("search.use_regex") is False


def test_search_settings_are_normalized(tmp_path):
    store = JsonSettingsStore.for_app_dir(tmp_path)
    store.load()
    store.set("search.max_matches", "lots")
    store.set("search.refresh_debounce_ms", -5)
    store.set("search.highlight_color", "  ")

    settings = store.search_settings()

    assert settings["max_matches"] == 10000
    assert settings["refresh_debounce_ms"] == 0
    assert settings["highlight_color"] == "#4A5C7E"


def test_normalize_accepts_none():
    assert normalize_search_settings(None) == default_search_settings()


def test_deep_merge_keeps_explicit_values():
    merged = deep_merge_defaults({"a": {"b": 1}}, {"a": {"b": 2, "c": 3}, "d": 4})

    assert merged == {"a": {"b": 1, "c": 3}, "d": 4}


def test_dot_helpers():
    data = {}
    dot_set(data, "a.b.c", 1)

    assert dot_get(data, "a.b.c") == 1
    assert dot_get(data, "a.x", "fallback") == "fallback"
    with pytest.raises(ValueError):
        dot_set(data, "", 1)

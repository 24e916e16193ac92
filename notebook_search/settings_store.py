from __future__ import annotations

import json
from copy import deepcopy
from pathlib import Path
from typing import Any, Mapping

import structlog

from notebook_search.core.keybindings import KeybindingConflict, find_conflicts, normalize_keybindings
from notebook_search.services import file_io
from notebook_search.settings_models import (
    SearchSettings,
    SettingsPaths,
    default_app_dir,
    default_app_settings,
    default_search_settings,
)

logger = structlog.get_logger(__name__)


class SettingsStoreError(RuntimeError):
    """Raised when a settings file cannot be saved."""


def deep_merge_defaults(data: Mapping[str, Any], defaults: Mapping[str, Any]) -> dict[str, Any]:
    """Merge defaults into data without overwriting explicitly provided values."""
    merged = deepcopy(dict(data))
    for key, default_value in defaults.items():
        if key not in merged:
            merged[key] = deepcopy(default_value)
            continue
        current = merged[key]
        if isinstance(current, dict) and isinstance(default_value, dict):
            merged[key] = deep_merge_defaults(current, default_value)
    return merged


def dot_get(data: Mapping[str, Any], key: str, default: Any = None) -> Any:
    if not key:
        return data
    current: Any = data
    for part in key.split("."):
        if not isinstance(current, Mapping) or part not in current:
            return default
        current = current[part]
    return current


def dot_set(data: dict[str, Any], key: str, value: Any) -> None:
    if not key:
        raise ValueError("Key cannot be empty.")
    current: dict[str, Any] = data
    parts = key.split(".")
    for part in parts[:-1]:
        next_value = current.get(part)
        if not isinstance(next_value, dict):
            next_value = {}
            current[part] = next_value
        current = next_value
    current[parts[-1]] = value


class JsonSettingsStore:
    """JSON-backed mutable store with defaults and dot-key helpers."""

    def __init__(self, path: Path, defaults: Mapping[str, Any], *, persistent: bool = True) -> None:
        self.path = Path(path)
        self.defaults: dict[str, Any] = deepcopy(dict(defaults))
        self.data: dict[str, Any] = deep_merge_defaults({}, self.defaults)
        self.dirty: bool = False
        self.last_error: str | None = None
        self.keybinding_conflicts: list[KeybindingConflict] = []
        self.persistent: bool = bool(persistent)

    @classmethod
    def for_app_dir(cls, app_dir: Path | str | None = None, *, persistent: bool = True) -> "JsonSettingsStore":
        paths = SettingsPaths(app_dir=Path(app_dir) if app_dir else default_app_dir())
        return cls(paths.settings_file, default_app_settings(), persistent=persistent)

    def load(self) -> dict[str, Any]:
        if not self.persistent:
            self.data = deep_merge_defaults({}, self.defaults)
            self.dirty = False
            self.last_error = None
            return self.data

        missing = not self.path.exists()
        loaded: dict[str, Any] = {}
        self.last_error = None

        if not missing:
            try:
                raw = json.loads(file_io.read_text(str(self.path)))
            except (OSError, ValueError) as exc:
                # Keep the app usable without mutating the invalid source file.
                self.last_error = str(exc)
                raw = {}
            if isinstance(raw, dict):
                loaded = raw
            elif self.last_error is None:
                self.last_error = (
                    f"Settings root in '{self.path}' must be a JSON object, "
                    f"found {type(raw).__name__}."
                )
            if self.last_error:
                logger.warning("settings.load_failed", path=str(self.path), error=self.last_error)

        self.data = deep_merge_defaults(loaded, self.defaults)
        if isinstance(self.data.get("keybindings"), Mapping):
            self.data["keybindings"] = normalize_keybindings(self.data["keybindings"])
        self.keybinding_conflicts = find_conflicts(self.data.get("keybindings"))
        for conflict in self.keybinding_conflicts:
            logger.warning(
                "settings.keybinding_conflict",
                sequence=conflict.sequence_text,
                actions=[f"{scope}:{action_id}" for scope, action_id in conflict.actions],
            )
        self.dirty = missing
        return self.data

    def save(self) -> None:
        if not self.persistent:
            self.dirty = False
            return
        try:
            file_io.atomic_write_text(str(self.path), json.dumps(self.data, indent=2, sort_keys=True))
        except OSError as exc:
            raise SettingsStoreError(f"Could not write settings file '{self.path}': {exc}") from exc
        self.dirty = False
        self.last_error = None

    def get(self, key: str, default: Any = None) -> Any:
        return dot_get(self.data, key, default)

    def set(self, key: str, value: Any) -> bool:
        current = self.get(key)
        if current == value:
            return False
        dot_set(self.data, key, value)
        self.dirty = True
        return True

    def restore_defaults(self) -> None:
        self.data = deepcopy(self.defaults)
        self.dirty = True

    def search_settings(self) -> SearchSettings:
        raw = self.get("search", {})
        merged = deep_merge_defaults(raw if isinstance(raw, Mapping) else {}, default_search_settings())
        return normalize_search_settings(merged)


def normalize_search_settings(raw: Mapping[str, Any] | None) -> SearchSettings:
    defaults = default_search_settings()
    source = dict(raw or {})
    out: SearchSettings = {}
    for key in ("case_sensitive", "use_regex", "whole_word", "search_outputs", "restore_last_query", "render_markdown_on_open"):
        out[key] = bool(source.get(key, defaults[key]))
    for key, minimum in (("max_matches", 1), ("refresh_debounce_ms", 0)):
        try:
            out[key] = max(minimum, int(source.get(key, defaults[key])))
        except (TypeError, ValueError):
            out[key] = defaults[key]
    for key in ("highlight_color", "active_highlight_color"):
        text = str(source.get(key) or "").strip()
        out[key] = text or defaults[key]
    return out

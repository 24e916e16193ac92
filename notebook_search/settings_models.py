from __future__ import annotations

import os
from copy import deepcopy
from dataclasses import dataclass, field
from pathlib import Path
from typing import TypedDict

from notebook_search.core.keybindings import default_keybindings

APP_DIR_ENV = "NOTEBOOK_SEARCH_APP_DIR"
APP_DIRNAME = ".notebook_search"


class SearchSettings(TypedDict, total=False):
    case_sensitive: bool
    use_regex: bool
    whole_word: bool
    search_outputs: bool
    max_matches: int
    refresh_debounce_ms: int
    highlight_color: str
    active_highlight_color: str
    restore_last_query: bool
    render_markdown_on_open: bool


class AppSettings(TypedDict, total=False):
    search: SearchSettings
    keybindings: dict[str, dict[str, list[str]]]
    recent_notebooks: list[str]


@dataclass(frozen=True)
class SettingsPaths:
    app_dir: Path
    settings_filename: str = "search-settings.json"
    settings_file: Path = field(init=False)

    def __post_init__(self) -> None:
        app_dir = Path(self.app_dir).expanduser().resolve()
        object.__setattr__(self, "app_dir", app_dir)
        object.__setattr__(self, "settings_file", app_dir / self.settings_filename)


def default_app_dir() -> Path:
    override = os.environ.get(APP_DIR_ENV, "").strip()
    if override:
        return Path(override).expanduser()
    return Path.home() / APP_DIRNAME


def default_search_settings() -> SearchSettings:
    return {
        "case_sensitive": True,
        "use_regex": False,
        "whole_word": False,
        "search_outputs": False,
        "max_matches": 10000,
        "refresh_debounce_ms": 80,
        "highlight_color": "#4A5C7E",
        "active_highlight_color": "#D6A853",
        "restore_last_query": True,
        "render_markdown_on_open": False,
    }


def default_app_settings() -> AppSettings:
    defaults: AppSettings = {
        "search": default_search_settings(),
        "keybindings": default_keybindings(),
        "recent_notebooks": [],
    }
    return deepcopy(defaults)

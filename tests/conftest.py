from __future__ import annotations

import os
from pathlib import Path

import pytest

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

NOTEBOOKS_DIR = Path(__file__).parent / "notebooks"


@pytest.fixture
def notebook_path() -> Path:
    return NOTEBOOKS_DIR / "search.ipynb"


@pytest.fixture
def notebook(notebook_path):
    from notebook_search.notebook import load_notebook

    return load_notebook(str(notebook_path))


@pytest.fixture
def session(notebook):
    from notebook_search.services.search_session import NotebookSearchSession

    return NotebookSearchSession(notebook, {"restore_last_query": True})


@pytest.fixture(scope="session")
def qapp():
    from PySide6.QtWidgets import QApplication

    app = QApplication.instance() or QApplication([])
    yield app


@pytest.fixture
def settings_store(tmp_path):
    from notebook_search.settings_store import JsonSettingsStore

    store = JsonSettingsStore.for_app_dir(tmp_path)
    store.load()
    store.set("search.refresh_debounce_ms", 0)
    return store

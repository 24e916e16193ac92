"""Application entry point for the notebook search window."""

from __future__ import annotations

import sys

import structlog
from PySide6.QtWidgets import QApplication

from notebook_search.logging_config import configure_logging
from notebook_search.settings_store import JsonSettingsStore
from notebook_search.ui.main_window import NotebookSearchWindow

logger = structlog.get_logger(__name__)


def run(argv: list[str] | None = None) -> int:
    argv = list(sys.argv if argv is None else argv)
    configure_logging()

    app = QApplication.instance() or QApplication(argv)
    app.setApplicationName("Notebook Search")

    store = JsonSettingsStore.for_app_dir()
    store.load()

    window = NotebookSearchWindow(store)
    paths = [arg for arg in argv[1:] if not arg.startswith("-")]
    if paths:
        window.open_notebook(paths[0])
    window.show()
    return app.exec()

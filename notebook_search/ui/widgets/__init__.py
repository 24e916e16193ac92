from .notebook_view import CellEditor, CellWidget, NotebookView
from .search_overlay import SearchOverlay, SearchTextField

__all__ = [
    "CellEditor",
    "CellWidget",
    "NotebookView",
    "SearchOverlay",
    "SearchTextField",
]

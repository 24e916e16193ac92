"""Qt-aware controllers used by the notebook window."""

from .cell_runner import CellRunner
from .search_controller import SearchController

__all__ = ["CellRunner", "SearchController"]

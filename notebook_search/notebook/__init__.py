"""Notebook document model and file format helpers."""

from .ipynb_io import NotebookFormatError, load_notebook, notebook_from_dict, notebook_to_dict, save_notebook
from .model import Cell, CellKind, ChangeKind, Notebook, NotebookChange, NotebookError, TextRange

__all__ = [
    "Cell",
    "CellKind",
    "ChangeKind",
    "Notebook",
    "NotebookChange",
    "NotebookError",
    "NotebookFormatError",
    "TextRange",
    "load_notebook",
    "notebook_from_dict",
    "notebook_to_dict",
    "save_notebook",
]

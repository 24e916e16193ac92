"""Read and write nbformat 4 ``.ipynb`` files."""

from __future__ import annotations

import json
from copy import deepcopy
from typing import Any, Mapping

import structlog

from notebook_search.notebook.model import Cell, CellKind, Notebook
from notebook_search.services import file_io

logger = structlog.get_logger(__name__)

_TEXT_MIME = "text/plain"


class NotebookFormatError(ValueError):
    """Raised when a payload is not a usable nbformat 4 notebook."""


def _join_source(value: object) -> str:
    if isinstance(value, list):
        return "".join(str(part) for part in value)
    return str(value or "")


def _split_source(text: str) -> list[str]:
    return text.splitlines(keepends=True)


def output_text(output: Mapping[str, Any]) -> str:
    """Text fragment a reader sees for one output entry."""
    output_type = str(output.get("output_type") or "")
    if output_type == "stream":
        return _join_source(output.get("text"))
    if output_type in {"execute_result", "display_data"}:
        data = output.get("data")
        if isinstance(data, Mapping):
            return _join_source(data.get(_TEXT_MIME))
        return ""
    if output_type == "error":
        ename = str(output.get("ename") or "")
        evalue = str(output.get("evalue") or "")
        return f"{ename}: {evalue}" if ename else evalue
    return ""


def notebook_from_dict(payload: object, *, render_markdown: bool = False) -> Notebook:
    if not isinstance(payload, Mapping):
        raise NotebookFormatError("Notebook root must be a JSON object.")
    raw_cells = payload.get("cells")
    if not isinstance(raw_cells, list):
        raise NotebookFormatError("Notebook has no 'cells' list.")

    cells: list[Cell] = []
    for position, raw in enumerate(raw_cells):
        if not isinstance(raw, Mapping):
            raise NotebookFormatError(f"Cell {position} is not an object.")
        try:
            kind = CellKind(str(raw.get("cell_type") or ""))
        except ValueError as exc:
            raise NotebookFormatError(f"Cell {position} has unknown type {raw.get('cell_type')!r}.") from exc
        raw_outputs = [deepcopy(dict(item)) for item in (raw.get("outputs") or []) if isinstance(item, Mapping)]
        outputs = [output_text(item) for item in raw_outputs]
        cell = Cell(
            kind=kind,
            source=_join_source(raw.get("source")),
            outputs=[text for text in outputs if text],
            rendered=render_markdown and kind is CellKind.MARKDOWN,
            execution_count=raw.get("execution_count") if kind is CellKind.CODE else None,
            raw=deepcopy(dict(raw)),
            raw_outputs=raw_outputs if kind is CellKind.CODE else None,
        )
        if isinstance(raw.get("id"), str) and raw["id"]:
            cell.cell_id = raw["id"]
        cells.append(cell)
    document = {key: deepcopy(value) for key, value in payload.items() if key != "cells"}
    return Notebook(cells, raw=document)


def _cell_to_dict(cell: Cell) -> dict[str, Any]:
    entry = deepcopy(cell.raw)
    entry.update(cell_type=cell.kind.value, id=cell.cell_id, source=_split_source(cell.source))
    entry.setdefault("metadata", {})
    if cell.kind is not CellKind.CODE:
        entry.pop("outputs", None)
        entry.pop("execution_count", None)
        return entry
    entry["execution_count"] = cell.execution_count
    if cell.raw_outputs is not None:
        entry["outputs"] = deepcopy(cell.raw_outputs)
    else:
        entry["outputs"] = [
            {"output_type": "stream", "name": "stdout", "text": _split_source(text)} for text in cell.outputs
        ]
    return entry


def notebook_to_dict(notebook: Notebook) -> dict[str, Any]:
    """nbformat payload; keys loaded from the file are written back untouched."""
    payload = deepcopy(notebook.raw)
    payload["cells"] = [_cell_to_dict(cell) for cell in notebook.cells]
    payload.setdefault("metadata", {})
    payload["nbformat"] = 4
    # Cell ids need minor version 5.
    minor = payload.get("nbformat_minor")
    payload["nbformat_minor"] = max(minor, 5) if isinstance(minor, int) else 5
    return payload


def load_notebook(path: str, *, render_markdown: bool = False) -> Notebook:
    try:
        payload = json.loads(file_io.read_text(path))
    except ValueError as exc:
        raise NotebookFormatError(f"'{path}' is not valid JSON: {exc}") from exc
    notebook = notebook_from_dict(payload, render_markdown=render_markdown)
    logger.debug("notebook.loaded", path=path, cells=len(notebook))
    return notebook


def save_notebook(notebook: Notebook, path: str) -> None:
    file_io.atomic_write_text(path, json.dumps(notebook_to_dict(notebook), indent=1) + "\n")
    logger.debug("notebook.saved", path=path, cells=len(notebook))

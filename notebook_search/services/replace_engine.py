"""Apply replacements for matches back onto notebook cell sources."""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from typing import Iterable

import structlog

from notebook_search.notebook.model import Notebook
from notebook_search.services.match_index import Match, MatchSet, MatchUnit

logger = structlog.get_logger(__name__)


@dataclass(frozen=True, slots=True)
class ReplaceResult:
    replaced: int = 0
    skipped: int = 0
    changed_cell_ids: tuple[str, ...] = ()


def is_replaceable(notebook: Notebook, match: Match) -> bool:
    """Only source text shown as source can be edited; outputs and rendered markdown are read-only."""
    if match.unit is not MatchUnit.SOURCE:
        return False
    cell = notebook.find_cell(match.cell_id)
    if cell is None or cell.shows_rendered_text:
        return False
    return cell.source[match.start:match.end] == match.text


def _apply(notebook: Notebook, matches: Iterable[Match], replacement: str) -> ReplaceResult:
    by_cell: dict[str, list[Match]] = defaultdict(list)
    skipped = 0
    for match in matches:
        if is_replaceable(notebook, match):
            by_cell[match.cell_id].append(match)
        else:
            skipped += 1

    replaced = 0
    changed: list[str] = []
    for cell_id, cell_matches in by_cell.items():
        index = notebook.index_of(cell_id)
        if index < 0:
            skipped += len(cell_matches)
            continue
        text = notebook.cell(index).source
        last_start = len(text) + 1
        # Right to left keeps earlier offsets valid; overlapping spans are dropped.
        for match in sorted(cell_matches, key=lambda m: m.start, reverse=True):
            if match.end > last_start:
                skipped += 1
                continue
            text = text[:match.start] + replacement + text[match.end:]
            last_start = match.start
            replaced += 1
        notebook.set_source(index, text)
        changed.append(cell_id)

    return ReplaceResult(replaced=replaced, skipped=skipped, changed_cell_ids=tuple(changed))


def replace_current(notebook: Notebook, match: Match | None, replacement: str) -> ReplaceResult:
    if match is None:
        return ReplaceResult()
    result = _apply(notebook, [match], str(replacement or ""))
    logger.debug("search.replace_current", cell_id=match.cell_id, replaced=result.replaced)
    return result


def replace_all(notebook: Notebook, match_set: MatchSet, replacement: str) -> ReplaceResult:
    """Replace every editable match, one source mutation per touched cell."""
    result = _apply(notebook, match_set.matches, str(replacement or ""))
    logger.debug(
        "search.replace_all",
        replaced=result.replaced,
        skipped=result.skipped,
        cells=len(result.changed_cell_ids),
    )
    return result

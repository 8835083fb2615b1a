"""
Table grid reconstruction — sparse analyzer cells → Markdown.

The layout model reports a table as a list of cells, each anchored at its
top-left (row, col) with optional row/column spans. Markdown needs a dense
rectangle, so we:

  1. Allocate a row_count × col_count grid of "" and a parallel boolean
     "claimed" matrix (row-major, one flat list each).
  2. Walk the cells. A cell whose origin is already claimed by an earlier
     span is dropped; otherwise its content is written at the origin and
     every other position under its span is claimed and left blank.
  3. Mark header rows: every row touched by a columnHeader cell.
  4. Emit one Markdown row per grid row, and a single `| --- |` separator
     after the first contiguous run of header rows ends.

Embedded line breaks become " <br> " so a multi-line cell never splits a
Markdown row.
"""

from __future__ import annotations

import logging
import re

from docsynth.models.documents import CellKind, Table

logger = logging.getLogger(__name__)

LINE_BREAK_TOKEN = " <br> "
SEPARATOR_CELL   = "---"

_NEWLINE_RE = re.compile(r"\r?\n")


def _cell_text(content: str) -> str:
    return _NEWLINE_RE.sub(LINE_BREAK_TOKEN, content) if content else " "


def build_grid(table: Table) -> list[list[str]]:
    """Dense grid of cell text; positions covered by a span are blank."""
    rows, cols = table.row_count, table.col_count
    if rows <= 0 or cols <= 0:
        return []

    values:  list[str]  = [""] * (rows * cols)
    claimed: list[bool] = [False] * (rows * cols)

    for cell in table.cells:
        if not (0 <= cell.row < rows and 0 <= cell.col < cols):
            logger.warning(
                "TableGrid | cell origin out of bounds row=%d col=%d grid=%dx%d",
                cell.row, cell.col, rows, cols,
            )
            continue

        origin = cell.row * cols + cell.col
        # First cell at a position wins, including a repeated origin.
        if claimed[origin]:
            continue

        values[origin]  = _cell_text(cell.content)
        claimed[origin] = True

        for r in range(cell.row, min(cell.row + cell.row_span, rows)):
            for c in range(cell.col, min(cell.col + cell.col_span, cols)):
                idx = r * cols + c
                if idx == origin:
                    continue
                claimed[idx] = True
                values[idx]  = ""

    return [values[r * cols:(r + 1) * cols] for r in range(rows)]


def header_rows(table: Table) -> set[int]:
    """Row indices touched by any columnHeader cell, expanded through its row span."""
    found: set[int] = set()
    for cell in table.cells:
        if cell.kind is CellKind.COLUMN_HEADER:
            found.update(range(cell.row, cell.row + cell.row_span))
    return {r for r in found if 0 <= r < table.row_count}


def format_table_markdown(table: Table) -> str:
    """Render a table as Markdown, followed by one blank line. Empty tables render as ""."""
    grid = build_grid(table)
    if not grid:
        return ""

    headers   = header_rows(table)
    separator = "| " + " | ".join([SEPARATOR_CELL] * table.col_count) + " |"
    lines: list[str] = []
    separator_emitted = False

    for i, row in enumerate(grid):
        lines.append("| " + " | ".join(value or " " for value in row) + " |")

        closes_header_run = i in headers and (i + 1 not in headers or i == table.row_count - 1)
        if closes_header_run and not separator_emitted:
            lines.append(separator)
            separator_emitted = True

    return "\n".join(lines) + "\n\n"

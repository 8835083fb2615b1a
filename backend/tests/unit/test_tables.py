"""
Unit Tests — Table grid reconstruction
═══════════════════════════════════════

Coverage targets:
  ✅ R×C table without spans → R rows of C cells, cells verbatim
  ✅ 2×2 span → origin holds content, three covered positions blank
  ✅ A cell whose origin is already covered is dropped
  ✅ Header separator emitted at most once, after the first header run
  ✅ Multi-row header → one separator after the last header row
  ✅ Embedded newlines → " <br> "
  ✅ Empty table → ""
  ✅ Out-of-bounds cells are skipped, never raise
"""

from __future__ import annotations

import pytest

from docsynth.models.documents import CellKind, Table, TableCell
from docsynth.processing.tables import build_grid, format_table_markdown, header_rows


def _cell(row, col, content="", kind=CellKind.BODY, row_span=1, col_span=1) -> TableCell:
    return TableCell(row=row, col=col, content=content, kind=kind, row_span=row_span, col_span=col_span)


def _rows(markdown: str) -> list[str]:
    return [line for line in markdown.split("\n") if line]


@pytest.mark.unit
@pytest.mark.tables
class TestBuildGrid:

    def test_no_spans_is_dense_and_verbatim(self):
        cells = tuple(_cell(r, c, f"r{r}c{c}") for r in range(3) for c in range(2))
        grid  = build_grid(Table(row_count=3, col_count=2, cells=cells))

        assert grid == [
            ["r0c0", "r0c1"],
            ["r1c0", "r1c1"],
            ["r2c0", "r2c1"],
        ]

    def test_two_by_two_span_blanks_covered_positions(self):
        cells = (
            _cell(0, 0, "merged", row_span=2, col_span=2),
            _cell(0, 2, "x"),
            _cell(1, 2, "y"),
        )
        grid = build_grid(Table(row_count=2, col_count=3, cells=cells))

        assert grid[0][0] == "merged"
        assert grid[0][1] == ""
        assert grid[1][0] == ""
        assert grid[1][1] == ""
        assert grid[0][2] == "x"
        assert grid[1][2] == "y"

    def test_cell_under_existing_span_is_dropped(self):
        cells = (
            _cell(0, 0, "wide", col_span=2),
            _cell(0, 1, "intruder"),
        )
        grid = build_grid(Table(row_count=1, col_count=2, cells=cells))

        assert grid == [["wide", ""]]

    def test_duplicate_origin_keeps_first_cell(self):
        cells = (_cell(0, 0, "first"), _cell(0, 0, "second"))
        grid  = build_grid(Table(row_count=1, col_count=1, cells=cells))

        assert grid == [["first"]]

    def test_span_past_the_edge_is_clipped(self):
        cells = (_cell(1, 1, "tall", row_span=5, col_span=5),)
        grid  = build_grid(Table(row_count=2, col_count=2, cells=cells))

        assert grid == [["", ""], ["", "tall"]]

    def test_out_of_bounds_origin_is_skipped(self):
        cells = (_cell(0, 0, "ok"), _cell(4, 0, "ghost"), _cell(0, 9, "ghost"))
        grid  = build_grid(Table(row_count=1, col_count=1, cells=cells))

        assert grid == [["ok"]]

    def test_newlines_become_br_tokens(self):
        cells = (_cell(0, 0, "line one\nline two\r\nline three"),)
        grid  = build_grid(Table(row_count=1, col_count=1, cells=cells))

        assert grid == [["line one <br> line two <br> line three"]]

    def test_empty_content_renders_as_space(self):
        grid = build_grid(Table(row_count=1, col_count=2, cells=(_cell(0, 0, ""),)))

        assert grid[0][0] == " "
        assert grid[0][1] == ""

    @pytest.mark.parametrize("rows, cols", [(0, 3), (3, 0), (0, 0)])
    def test_degenerate_dimensions_give_empty_grid(self, rows, cols):
        assert build_grid(Table(row_count=rows, col_count=cols)) == []


@pytest.mark.unit
@pytest.mark.tables
class TestHeaderRows:

    def test_column_header_rows_expand_through_row_span(self):
        cells = (
            _cell(0, 0, "Metric", kind=CellKind.COLUMN_HEADER, row_span=2),
            _cell(0, 1, "2024", kind=CellKind.COLUMN_HEADER),
            _cell(2, 0, "Revenue"),
        )
        assert header_rows(Table(row_count=3, col_count=2, cells=cells)) == {0, 1}

    def test_row_headers_do_not_count(self):
        cells = (_cell(0, 0, "Revenue", kind=CellKind.ROW_HEADER),)
        assert header_rows(Table(row_count=1, col_count=1, cells=cells)) == set()


@pytest.mark.unit
@pytest.mark.tables
class TestFormatTableMarkdown:

    def test_simple_table_with_header(self):
        cells = (
            _cell(0, 0, "A", kind=CellKind.COLUMN_HEADER),
            _cell(0, 1, "B", kind=CellKind.COLUMN_HEADER),
            _cell(1, 0, "1"),
            _cell(1, 1, "2"),
        )
        md = format_table_markdown(Table(row_count=2, col_count=2, cells=cells))

        assert md == "| A | B |\n| --- | --- |\n| 1 | 2 |\n\n"

    def test_no_header_means_no_separator(self):
        cells = (_cell(0, 0, "1"), _cell(0, 1, "2"))
        md = format_table_markdown(Table(row_count=1, col_count=2, cells=cells))

        assert md == "| 1 | 2 |\n\n"
        assert "---" not in md

    def test_separator_after_last_row_of_multi_row_header(self):
        cells = (
            _cell(0, 0, "Group", kind=CellKind.COLUMN_HEADER, col_span=2),
            _cell(1, 0, "Q1", kind=CellKind.COLUMN_HEADER),
            _cell(1, 1, "Q2", kind=CellKind.COLUMN_HEADER),
            _cell(2, 0, "10"),
            _cell(2, 1, "20"),
        )
        rows = _rows(format_table_markdown(Table(row_count=3, col_count=2, cells=cells)))

        assert rows == [
            "| Group |   |",
            "| Q1 | Q2 |",
            "| --- | --- |",
            "| 10 | 20 |",
        ]

    def test_separator_emitted_at_most_once(self):
        # Two disjoint header runs: rows 0 and 2.
        cells = (
            _cell(0, 0, "H1", kind=CellKind.COLUMN_HEADER),
            _cell(1, 0, "body"),
            _cell(2, 0, "H2", kind=CellKind.COLUMN_HEADER),
            _cell(3, 0, "body"),
        )
        rows = _rows(format_table_markdown(Table(row_count=4, col_count=1, cells=cells)))

        assert rows.count("| --- |") == 1
        assert rows.index("| --- |") == 1

    def test_header_only_table_gets_trailing_separator(self):
        cells = (_cell(0, 0, "Only", kind=CellKind.COLUMN_HEADER),)
        rows = _rows(format_table_markdown(Table(row_count=1, col_count=1, cells=cells)))

        assert rows == ["| Only |", "| --- |"]

    def test_every_row_has_col_count_cells(self):
        cells = (_cell(0, 0, "x", row_span=2, col_span=3), _cell(2, 1, "y"))
        rows = _rows(format_table_markdown(Table(row_count=3, col_count=3, cells=cells)))

        assert len(rows) == 3
        for row in rows:
            assert row.startswith("| ") and row.endswith(" |")
            assert row.count(" | ") == 2

    def test_empty_table_renders_nothing(self):
        assert format_table_markdown(Table(row_count=0, col_count=0)) == ""

    def test_from_payload_round_trip_of_wire_fields(self):
        table = Table.from_payload({
            "rowCount": 2,
            "columnCount": 1,
            "boundingRegions": [{"pageNumber": 4}],
            "cells": [
                {"rowIndex": 0, "columnIndex": 0, "content": "Head", "kind": "columnHeader"},
                {"rowIndex": 1, "columnIndex": 0, "content": "Val"},
            ],
        })

        assert table.page_number == 4
        assert table.cells[0].kind is CellKind.COLUMN_HEADER
        assert table.cells[1].kind is CellKind.BODY
        assert format_table_markdown(table) == "| Head |\n| --- |\n| Val |\n\n"

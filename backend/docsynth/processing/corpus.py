"""
Corpus assembly — per-document results → the synthesis input text.

Section layout (one per input document, in input order)::

    ## File: report.pdf
    Pages: 3

    ### Extracted Tables

    **Table 1 (Page: 2)**

    | A | B |
    | --- | --- |
    | 1 | 2 |

    <body text>

    ---

Failed documents contribute a single marker line instead, and documents
that analysed cleanly but yielded no text get a placeholder, so the model
can still reference (or skip) every file by name.
"""

from __future__ import annotations

from docsynth.models.documents import SECTION_SEPARATOR, DocumentSection, StageResult
from docsynth.processing.tables import format_table_markdown

NOT_AVAILABLE = "N/A"


def no_content_message(file_name: str) -> str:
    return f"No text content extracted from {file_name}."


def render_section(section: DocumentSection) -> str:
    if not section.has_content:
        return (
            f"{no_content_message(section.source_name)} The document might be empty "
            f"or an unrecoverable error occurred during text extraction.\n\n{SECTION_SEPARATOR}"
        )

    parts = [
        f"## File: {section.source_name}\n",
        f"Pages: {section.page_count if section.page_count is not None else NOT_AVAILABLE}\n\n",
    ]
    if section.tables:
        parts.append("### Extracted Tables\n\n")
        for index, table in enumerate(section.tables, start=1):
            page = table.page_number if table.page_number is not None else NOT_AVAILABLE
            parts.append(f"**Table {index} (Page: {page})**\n\n")
            parts.append(format_table_markdown(table))
    parts.append(section.body_text.strip() + "\n\n")
    parts.append(SECTION_SEPARATOR)
    return "".join(parts)


def render_stage_result(result: StageResult) -> str:
    if result.error is not None:
        return f"{result.error.marker()}\n\n{SECTION_SEPARATOR}"
    assert result.section is not None
    return render_section(result.section)


class Corpus:
    """Append-only, input-ordered buffer of rendered stage results."""

    def __init__(self) -> None:
        self._results: list[StageResult] = []
        self._chunks:  list[str]         = []

    def append(self, result: StageResult) -> None:
        self._results.append(result)
        self._chunks.append(render_stage_result(result))

    @property
    def results(self) -> tuple[StageResult, ...]:
        return tuple(self._results)

    @property
    def file_names(self) -> list[str]:
        return [r.file_name for r in self._results]

    @property
    def failed(self) -> list[StageResult]:
        return [r for r in self._results if not r.ok]

    @property
    def text(self) -> str:
        return "".join(self._chunks)

    def __len__(self) -> int:
        return len(self._results)

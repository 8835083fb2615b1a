"""
Domain records for one pipeline invocation.

Everything here is an immutable value: inputs are owned by the caller,
analysis results are parsed once from the analyzer payload, and sections
are appended to the corpus in input order and never touched again.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union

from docsynth.core.exceptions import DocumentProcessingError


# ---------------------------------------------------------------------------
# Inputs
# ---------------------------------------------------------------------------

OFFICE_EXTENSIONS: frozenset[str] = frozenset({".docx", ".pptx", ".xlsx"})


@dataclass(frozen=True)
class Document:
    """A document supplied inline (multipart upload)."""
    name:    str
    content: bytes = field(repr=False)


@dataclass(frozen=True)
class DocumentReference:
    """A document supplied as a blob URL; bytes are fetched per file."""
    name: str
    url:  str


DocumentInput = Union[Document, DocumentReference]


def is_office_document(file_name: str) -> bool:
    return file_name.lower().endswith(tuple(OFFICE_EXTENSIONS))


# ---------------------------------------------------------------------------
# Analysis job
# ---------------------------------------------------------------------------

class JobState(str, Enum):
    """
    Transitions (owned by JobPoller):
      SUBMITTED → POLLING → SUCCEEDED | FAILED | TIMED_OUT | NETWORK_ERROR
    """
    SUBMITTED     = "submitted"
    POLLING       = "polling"
    SUCCEEDED     = "succeeded"
    FAILED        = "failed"
    TIMED_OUT     = "timed_out"
    NETWORK_ERROR = "network_error"

    @property
    def is_terminal(self) -> bool:
        return self not in (JobState.SUBMITTED, JobState.POLLING)


@dataclass(frozen=True)
class AnalyzeOptions:
    high_resolution_ocr: bool = True

    @classmethod
    def for_file(cls, file_name: str) -> "AnalyzeOptions":
        # ocrHighResolution is not supported for Office formats.
        return cls(high_resolution_ocr=not is_office_document(file_name))


@dataclass(frozen=True)
class JobHandle:
    """Opaque reference returned on submission (the Operation-Location URL)."""
    operation_location: str
    file_name:          str


@dataclass
class AnalysisJob:
    handle:       JobHandle
    state:        JobState = JobState.SUBMITTED
    submitted_at: float    = field(default_factory=time.monotonic)


# ---------------------------------------------------------------------------
# Analyzer output
# ---------------------------------------------------------------------------

class CellKind(str, Enum):
    BODY          = "content"
    COLUMN_HEADER = "columnHeader"
    ROW_HEADER    = "rowHeader"
    OTHER         = "other"

    @classmethod
    def parse(cls, raw: str | None) -> "CellKind":
        if raw is None:
            return cls.BODY
        for kind in cls:
            if kind.value == raw:
                return kind
        return cls.OTHER   # stubHead, description, …


@dataclass(frozen=True)
class TableCell:
    row:      int
    col:      int
    content:  str      = ""
    row_span: int      = 1
    col_span: int      = 1
    kind:     CellKind = CellKind.BODY

    @classmethod
    def from_payload(cls, raw: dict[str, Any]) -> "TableCell":
        return cls(
            row=int(raw.get("rowIndex", 0)),
            col=int(raw.get("columnIndex", 0)),
            content=raw.get("content") or "",
            row_span=max(1, int(raw.get("rowSpan") or 1)),
            col_span=max(1, int(raw.get("columnSpan") or 1)),
            kind=CellKind.parse(raw.get("kind")),
        )


@dataclass(frozen=True)
class Table:
    row_count:   int
    col_count:   int
    cells:       tuple[TableCell, ...] = ()
    page_number: int | None            = None

    @classmethod
    def from_payload(cls, raw: dict[str, Any]) -> "Table":
        regions = raw.get("boundingRegions") or []
        page    = regions[0].get("pageNumber") if regions else None
        return cls(
            row_count=int(raw.get("rowCount", 0)),
            col_count=int(raw.get("columnCount", 0)),
            cells=tuple(TableCell.from_payload(c) for c in raw.get("cells") or []),
            page_number=page,
        )


@dataclass(frozen=True)
class Page:
    page_number: int
    lines:       tuple[str, ...] = ()


@dataclass(frozen=True)
class AnalyzeResult:
    """Parsed ``analyzeResult`` of a succeeded layout operation."""
    content: str | None         = None
    pages:   tuple[Page, ...]   = ()
    tables:  tuple[Table, ...]  = ()

    @property
    def page_count(self) -> int | None:
        return len(self.pages) or None

    def body_text(self) -> str:
        """Consolidated ``content`` if present, else per-page lines in page order."""
        if self.content:
            return self.content
        return "".join(
            f"{line}\n"
            for page in sorted(self.pages, key=lambda p: p.page_number)
            for line in page.lines
        )

    @classmethod
    def from_payload(cls, raw: dict[str, Any] | None) -> "AnalyzeResult":
        raw = raw or {}
        pages = tuple(
            Page(
                page_number=int(p.get("pageNumber", i + 1)),
                lines=tuple(line.get("content") or "" for line in p.get("lines") or []),
            )
            for i, p in enumerate(raw.get("pages") or [])
        )
        return cls(
            content=raw.get("content"),
            pages=pages,
            tables=tuple(Table.from_payload(t) for t in raw.get("tables") or []),
        )


# ---------------------------------------------------------------------------
# Corpus sections
# ---------------------------------------------------------------------------

SECTION_SEPARATOR = "---\n\n"


@dataclass(frozen=True)
class DocumentSection:
    source_name: str
    page_count:  int | None
    tables:      tuple[Table, ...]
    body_text:   str

    @property
    def has_content(self) -> bool:
        return bool(self.body_text.strip())


@dataclass(frozen=True)
class StageResult:
    """Ok(section) | Err(error) for one document."""
    file_name: str
    section:   DocumentSection | None         = None
    error:     DocumentProcessingError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


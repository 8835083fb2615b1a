"""
Document Processing Package
════════════════════════════

Drives each document through remote layout analysis and renders the result
into the synthesis corpus:

  acquire bytes → submit job → poll to terminal state → tables + text → corpus

Modules
───────
  analyzer.py   Document Intelligence REST client (submit / poll)
  poller.py     JobPoller state machine, fixed interval + wall-clock budget
  stage.py      DocumentStageRunner: one document, failures folded into StageResult
  tables.py     Sparse table cells → dense grid → Markdown
  corpus.py     Section rendering and the ordered Corpus buffer

Design principles
─────────────────
  • Documents are processed one at a time, in input order.
  • A failing document never aborts the batch; it leaves an inline marker.
  • Every step emits progress events and structured log lines.
"""

from docsynth.processing.analyzer import AnalysisJobClient, DocumentIntelligenceClient, PollResponse
from docsynth.processing.corpus import Corpus, render_section, render_stage_result
from docsynth.processing.poller import JobPoller, PollOutcome
from docsynth.processing.stage import DocumentStageRunner
from docsynth.processing.tables import build_grid, format_table_markdown

__all__ = [
    "AnalysisJobClient",
    "DocumentIntelligenceClient",
    "PollResponse",
    "Corpus",
    "render_section",
    "render_stage_result",
    "JobPoller",
    "PollOutcome",
    "DocumentStageRunner",
    "build_grid",
    "format_table_markdown",
]

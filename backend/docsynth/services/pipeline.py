"""
Pipeline Orchestrator

Runs one document-synthesis request end to end:
  1. Pre-flight: collaborator credentials, non-empty inputs, consistent
     file-name / blob-URL arrays, non-empty system prompt.
  2. Document Intelligence stage: one document at a time, in input order,
     each through DocumentStageRunner (acquire → submit → poll → extract).
  3. Corpus assembly: rendered sections and inline error markers, in order.
  4. Synthesis: one Azure OpenAI call with the prompt + recap block.
  5. Result event with the analysis and token usage.

Failure policy:
  - Pre-flight failures emit exactly one terminal error event and no
    per-document events.
  - Per-document failures are isolated: an error event naming the file, an
    inline marker in the corpus, and the loop moves on.
  - An unexpected exception escaping the loop, or a synthesis failure, is
    terminal: one error event without a `file`, and the run stops.

Events emitted (in order, happy path):
  status   "Document processing initiated."
  status   docIntel "Starting Document Intelligence for N file(s)..."
  …        per-document progress (see DocumentStageRunner / JobPoller)
  status   docIntel "All files processed by Document Intelligence."
  status   openai   "Preparing data for AI analysis..."
  status   openai   "Sending data to Azure OpenAI for final analysis..."
  status   openai   "AI analysis complete."
  result   {analysis, tokenUsage}
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Sequence

from docsynth.core.config import Settings, validate_settings
from docsynth.core.exceptions import ConfigurationError, InputValidationError, SynthesisError
from docsynth.llm.synthesis import SynthesisStep
from docsynth.models.documents import Document, DocumentInput, DocumentReference
from docsynth.processing.analyzer import AnalysisJobClient, DocumentIntelligenceClient
from docsynth.processing.corpus import Corpus
from docsynth.processing.poller import JobPoller
from docsynth.processing.stage import DocumentStageRunner
from docsynth.schemas.progress import Stage, TokenUsage
from docsynth.services.progress import ProgressEmitter
from docsynth.storage.sources import BlobSource, RoutingBlobSource

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Request / result
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PipelineRequest:
    """
    Raw inputs for one run. Inline uploads and blob references may be mixed;
    inline documents come first, then references, each group in the order
    received. Consistency is checked by the orchestrator, not here, so a bad
    request still produces a streamed error event.
    """
    system_prompt:  str
    documents:      Sequence[Document] = ()
    file_names:     Sequence[str]      = ()
    blob_urls:      Sequence[str]      = ()
    user_directive: str | None         = None

    def resolve_inputs(self) -> list[DocumentInput]:
        if len(self.file_names) != len(self.blob_urls):
            raise InputValidationError(
                f"Mismatched file inputs: {len(self.file_names)} file name(s) "
                f"but {len(self.blob_urls)} blob URL(s)."
            )
        references = [
            DocumentReference(name=name, url=url)
            for name, url in zip(self.file_names, self.blob_urls)
        ]
        inputs: list[DocumentInput] = [*self.documents, *references]
        if not inputs:
            raise InputValidationError("No files were uploaded.")
        return inputs


@dataclass(frozen=True)
class PipelineResult:
    success:      bool
    analysis:     str | None        = None
    error:        str | None        = None
    token_usage:  TokenUsage | None = None
    failed_files: list[str]         = field(default_factory=list)
    corpus:       str               = ""


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------

class PipelineOrchestrator:
    """
    One instance can serve many runs; per-run collaborators (analyzer client,
    poller, stage runner) are built inside run() around the caller's emitter.

    Injected collaborators are never closed by the orchestrator; ones it
    builds from settings are closed at the end of each run.
    """

    def __init__(
        self,
        settings:  Settings,
        *,
        analyzer:  AnalysisJobClient | None = None,
        source:    BlobSource | None        = None,
        synthesis: SynthesisStep | None     = None,
        clock:     Callable[[], float]                = time.monotonic,
        sleep:     Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._settings  = settings
        self._analyzer  = analyzer
        self._source    = source
        self._synthesis = synthesis
        self._clock     = clock
        self._sleep     = sleep

    # ------------------------------------------------------------------
    # Pre-flight
    # ------------------------------------------------------------------

    def _preflight(self, request: PipelineRequest) -> list[DocumentInput]:
        """Raises ConfigurationError or InputValidationError. Emits nothing."""
        validate_settings(self._settings)
        inputs = request.resolve_inputs()
        if not request.system_prompt or not request.system_prompt.strip():
            raise InputValidationError("System prompt is required.")
        return inputs

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    async def run(self, request: PipelineRequest, emitter: ProgressEmitter) -> PipelineResult:
        emitter.status("Document processing initiated.")

        try:
            inputs = self._preflight(request)
        except (ConfigurationError, InputValidationError) as exc:
            logger.warning("Pipeline | pre-flight rejected: %s", exc)
            emitter.fatal(str(exc))
            return PipelineResult(success=False, error=str(exc))

        total = len(inputs)
        logger.info(
            "Pipeline | start files=%d inline=%d referenced=%d",
            total, len(request.documents), len(request.blob_urls),
        )

        owned: list[DocumentIntelligenceClient | RoutingBlobSource] = []
        analyzer = self._analyzer
        if analyzer is None:
            analyzer = DocumentIntelligenceClient.from_settings(self._settings)
            owned.append(analyzer)
        source = self._source
        if source is None and request.blob_urls:
            source = RoutingBlobSource.from_settings(self._settings)
            owned.append(source)

        try:
            try:
                corpus = await self._extract(inputs, analyzer, source, emitter)
            except Exception as exc:
                message = f"Failed during data extraction: {str(exc) or type(exc).__name__}"
                logger.exception("Pipeline | extraction aborted")
                emitter.fatal(message, stage=Stage.DOC_INTEL)
                return PipelineResult(success=False, error=message)
            return await self._synthesize(request, corpus, emitter)
        finally:
            for resource in owned:
                await resource.aclose()

    async def _extract(
        self,
        inputs:   list[DocumentInput],
        analyzer: AnalysisJobClient,
        source:   BlobSource | None,
        emitter:  ProgressEmitter,
    ) -> Corpus:
        total  = len(inputs)
        poller = JobPoller(
            analyzer,
            emitter,
            interval=self._settings.poll_interval_seconds,
            timeout=self._settings.poll_timeout_seconds,
            clock=self._clock,
            sleep=self._sleep,
        )
        runner = DocumentStageRunner(analyzer, poller, emitter, source)
        corpus = Corpus()

        emitter.status(
            f"Starting Document Intelligence for {total} file(s)...",
            stage=Stage.DOC_INTEL,
            total_files=total,
        )
        for index, document in enumerate(inputs):
            corpus.append(await runner.run(document, index, total))

        emitter.status("All files processed by Document Intelligence.", stage=Stage.DOC_INTEL)
        logger.info("Pipeline | extraction done files=%d failed=%d", len(corpus), len(corpus.failed))
        return corpus

    async def _synthesize(self, request: PipelineRequest, corpus: Corpus, emitter: ProgressEmitter) -> PipelineResult:
        failed = [r.file_name for r in corpus.failed]
        step   = self._synthesis or SynthesisStep.from_settings(self._settings)

        emitter.status("Preparing data for AI analysis...", stage=Stage.OPENAI)
        emitter.status("Sending data to Azure OpenAI for final analysis...", stage=Stage.OPENAI)
        try:
            output = await step.run(corpus.text, request.system_prompt, corpus.file_names, request.user_directive)
        except SynthesisError as exc:
            message = f"AI analysis failed: {exc}"
            logger.error("Pipeline | %s", message)
            emitter.fatal(message, stage=Stage.OPENAI)
            return PipelineResult(success=False, error=message, failed_files=failed, corpus=corpus.text)

        emitter.status("AI analysis complete.", stage=Stage.OPENAI)
        emitter.result(output.analysis, output.token_usage)
        logger.info(
            "Pipeline | done files=%d failed=%d tokens=%d",
            len(corpus), len(failed), output.token_usage.total_tokens,
        )
        return PipelineResult(
            success=True,
            analysis=output.analysis,
            token_usage=output.token_usage,
            failed_files=failed,
            corpus=corpus.text,
        )

"""
DocumentStageRunner — one document through acquire → submit → poll → extract.

Every expected failure is caught here and returned as StageResult(error=…);
nothing recoverable escapes to the orchestrator's loop.

    acquire   inline bytes, or BlobSource.download(url)     DownloadError
    submit    AnalysisJobClient.submit(bytes, options)      SubmissionError
    poll      JobPoller.run(job)                            PollingTransportError
                                                             RemoteAnalysisFailedError
                                                             PollingTimeoutError
    extract   tables (in order) + body text → DocumentSection
"""

from __future__ import annotations

import logging

from docsynth.core.exceptions import (
    DocumentProcessingError,
    DownloadError,
    PollingTimeoutError,
    PollingTransportError,
    RemoteAnalysisFailedError,
)
from docsynth.models.documents import (
    AnalysisJob,
    AnalyzeOptions,
    AnalyzeResult,
    Document,
    DocumentInput,
    DocumentSection,
    JobState,
    StageResult,
)
from docsynth.processing.analyzer import AnalysisJobClient
from docsynth.processing.corpus import no_content_message
from docsynth.processing.poller import JobPoller
from docsynth.services.progress import ProgressEmitter
from docsynth.storage.sources import BlobSource

logger = logging.getLogger(__name__)

_STATE_ERRORS: dict[JobState, type[DocumentProcessingError]] = {
    JobState.FAILED:        RemoteAnalysisFailedError,
    JobState.NETWORK_ERROR: PollingTransportError,
    JobState.TIMED_OUT:     PollingTimeoutError,
}


def build_section(file_name: str, result: AnalyzeResult) -> DocumentSection:
    return DocumentSection(
        source_name=file_name,
        page_count=result.page_count,
        tables=result.tables,
        body_text=result.body_text(),
    )


class DocumentStageRunner:

    def __init__(
        self,
        client:  AnalysisJobClient,
        poller:  JobPoller,
        emitter: ProgressEmitter,
        source:  BlobSource | None = None,
    ) -> None:
        self._client  = client
        self._poller  = poller
        self._emitter = emitter
        self._source  = source

    async def _acquire(self, document: DocumentInput) -> bytes:
        if isinstance(document, Document):
            return document.content
        if self._source is None:
            raise DownloadError(document.name, "No blob source configured for URL inputs")
        return await self._source.download(document.url, file_name=document.name)

    def _failed(self, error: DocumentProcessingError, announce: str | None = None) -> StageResult:
        if announce:
            self._emitter.file_error(error.file_name, f"{announce}: {error.detail}")
        logger.warning("StageRunner | file=%s failed: %s", error.file_name, error.detail)
        return StageResult(file_name=error.file_name, error=error)

    async def run(self, document: DocumentInput, index: int, total: int) -> StageResult:
        name = document.name
        self._emitter.progress(
            f"Processing file {index + 1} of {total}: {name}",
            file=name,
            current_file_index=index,
            total_files=total,
        )

        try:
            content = await self._acquire(document)
        except DocumentProcessingError as exc:
            return self._failed(exc, "Error downloading file")

        self._emitter.progress(
            f"Using '{self._client.model_id}' model. Submitting to Document Intelligence...",
            file=name,
        )
        try:
            handle = await self._client.submit(content, AnalyzeOptions.for_file(name), file_name=name)
        except DocumentProcessingError as exc:
            return self._failed(exc, "Error starting analysis")

        outcome = await self._poller.run(AnalysisJob(handle=handle, submitted_at=self._poller.now()))

        if outcome.state is not JobState.SUCCEEDED:
            # The poller already emitted the state-specific error event.
            error_cls = _STATE_ERRORS[outcome.state]
            return self._failed(error_cls(name, outcome.detail or outcome.state.value))

        section = build_section(name, outcome.result or AnalyzeResult())
        if section.has_content:
            self._emitter.progress(
                f"Content extracted (length: {len(section.body_text.strip())}).",
                file=name,
            )
        else:
            self._emitter.status(no_content_message(name), file=name)
        return StageResult(file_name=name, section=section)

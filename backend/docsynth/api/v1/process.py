"""
Document Processing API Router
POST /api/v1/process/stream   (Server-Sent Events)
POST /api/v1/process          (single JSON response)

Both accept multipart/form-data:

  files[]               inline document uploads (0..n)
  fileNames[]           names of documents already in blob storage
  blobUrls[]            matching URLs (https SAS / presigned, or s3://)
  systemPromptContent   analysis prompt template (required)
  optionalUserInput     ad-hoc directive for this run

Request lifecycle (stream):
  ┌─────────────────────────────────────────────────────────┐
  │ 1. Form parsed; missing systemPromptContent → 400 JSON  │
  │    (nothing is streamed)                                │
  │ 2. "Stream connection established..." status event      │
  │ 3. PipelineOrchestrator.run() as a background task,     │
  │    emitting into a bounded ProgressChannel              │
  │ 4. Generator drains the channel as `data: <json>\\n\\n`  │
  │    until a terminal event (result, or error w/o file)   │
  │ 5. Client disconnect → task cancelled, polling stops    │
  └─────────────────────────────────────────────────────────┘
"""

from __future__ import annotations

import asyncio
import logging
from typing import AsyncGenerator, Optional

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile, status
from fastapi.responses import JSONResponse, StreamingResponse

from docsynth.core.config import Settings, get_settings
from docsynth.models.documents import Document
from docsynth.schemas.api import ErrorResponse, ProcessResponse
from docsynth.schemas.progress import EventType, ProgressEvent
from docsynth.services.pipeline import PipelineOrchestrator, PipelineRequest, PipelineResult
from docsynth.services.progress import ProgressChannel, ProgressEmitter, encode_sse

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/process",
    tags=["Document Processing"],
)

STREAM_ESTABLISHED_MESSAGE = "Stream connection established. Starting document processing..."

SSE_HEADERS = {
    "Cache-Control":     "no-cache, no-transform",
    "Connection":        "keep-alive",
    "X-Accel-Buffering": "no",    # disable nginx buffering for SSE
}


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------

def get_orchestrator(settings: Settings = Depends(get_settings)) -> PipelineOrchestrator:
    return PipelineOrchestrator(settings)


# ---------------------------------------------------------------------------
# Form → PipelineRequest
# ---------------------------------------------------------------------------

def _missing_prompt_response(request: Request) -> JSONResponse:
    body = ErrorResponse(
        error_code="MISSING_SYSTEM_PROMPT",
        message="systemPromptContent is missing",
        request_id=request.headers.get("X-Request-ID"),
    )
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=body.model_dump(mode="json"))


async def _read_uploads(files: list[UploadFile] | None) -> list[Document]:
    documents = []
    for index, upload in enumerate(files or []):
        content = await upload.read()
        documents.append(Document(name=upload.filename or f"document-{index + 1}", content=content))
    return documents


async def _build_request(
    files:         list[UploadFile] | None,
    file_names:    list[str] | None,
    blob_urls:     list[str] | None,
    system_prompt: str,
    directive:     str | None,
) -> PipelineRequest:
    return PipelineRequest(
        system_prompt=system_prompt,
        documents=await _read_uploads(files),
        file_names=list(file_names or []),
        blob_urls=list(blob_urls or []),
        user_directive=directive or None,
    )


def _closing_event(result: PipelineResult) -> ProgressEvent:
    """Terminal event synthesized from the run result when the channel lost it."""
    if result.success:
        return ProgressEvent(type=EventType.RESULT, analysis=result.analysis, token_usage=result.token_usage)
    return ProgressEvent(type=EventType.ERROR, error=result.error or "Processing failed.")


# ---------------------------------------------------------------------------
# POST /process/stream
# ---------------------------------------------------------------------------

@router.post(
    "/stream",
    summary="Process documents and stream progress (SSE)",
    description=(
        "Runs extraction for every document, then one synthesis call. "
        "Each event is `data: <json>`; the stream ends after a `result` event "
        "or an `error` event without a `file` field."
    ),
    response_class=StreamingResponse,
)
async def process_stream(
    request:       Request,
    files:         Optional[list[UploadFile]] = File(None),
    file_names:    Optional[list[str]]        = Form(None, alias="fileNames"),
    blob_urls:     Optional[list[str]]        = Form(None, alias="blobUrls"),
    system_prompt: Optional[str]              = Form(None, alias="systemPromptContent"),
    directive:     Optional[str]              = Form(None, alias="optionalUserInput"),
    orchestrator:  PipelineOrchestrator       = Depends(get_orchestrator),
    settings:      Settings                   = Depends(get_settings),
):
    if not system_prompt:
        logger.warning("ProcessStream | systemPromptContent missing")
        return _missing_prompt_response(request)

    pipeline_request = await _build_request(files, file_names, blob_urls, system_prompt, directive)

    async def event_generator() -> AsyncGenerator[str, None]:
        channel = ProgressChannel(maxsize=settings.progress_queue_size)
        emitter = ProgressEmitter(channel)
        emitter.status(STREAM_ESTABLISHED_MESSAGE)

        task = asyncio.create_task(orchestrator.run(pipeline_request, emitter))
        terminal_sent = False
        try:
            while True:
                event = channel.get_nowait()
                if event is None:
                    if task.done():
                        break
                    getter = asyncio.ensure_future(channel.get())
                    await asyncio.wait({getter, task}, return_when=asyncio.FIRST_COMPLETED)
                    if not getter.done():
                        getter.cancel()
                        continue
                    event = getter.result()

                yield encode_sse(event)
                if event.is_terminal:
                    terminal_sent = True
                    break

            if not terminal_sent:
                if task.exception() is not None:
                    logger.error("ProcessStream | pipeline crashed", exc_info=task.exception())
                    closing = ProgressEvent(type=EventType.ERROR, error=f"Processing failed: {task.exception()}")
                else:
                    closing = _closing_event(task.result())
                yield encode_sse(closing)
        finally:
            if not task.done():
                logger.info("ProcessStream | client disconnected, cancelling pipeline")
                task.cancel()
            if channel.dropped:
                logger.warning("ProcessStream | %d progress event(s) dropped", channel.dropped)

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


# ---------------------------------------------------------------------------
# POST /process
# ---------------------------------------------------------------------------

@router.post(
    "",
    summary="Process documents and return the analysis",
    response_model=ProcessResponse,
    response_model_by_alias=True,
)
async def process(
    request:       Request,
    files:         Optional[list[UploadFile]] = File(None),
    file_names:    Optional[list[str]]        = Form(None, alias="fileNames"),
    blob_urls:     Optional[list[str]]        = Form(None, alias="blobUrls"),
    system_prompt: Optional[str]              = Form(None, alias="systemPromptContent"),
    directive:     Optional[str]              = Form(None, alias="optionalUserInput"),
    orchestrator:  PipelineOrchestrator       = Depends(get_orchestrator),
):
    if not system_prompt:
        return _missing_prompt_response(request)

    pipeline_request = await _build_request(files, file_names, blob_urls, system_prompt, directive)
    result = await orchestrator.run(pipeline_request, ProgressEmitter())

    return ProcessResponse(
        success=result.success,
        analysis=result.analysis,
        error=result.error,
        token_usage=result.token_usage,
        failed_files=result.failed_files,
    )

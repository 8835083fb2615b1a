"""
Remote document analysis — Azure AI Document Intelligence (layout model).

Long-running operation protocol
───────────────────────────────
  1. POST {endpoint}/documentintelligence/documentModels/{model}:analyze
        ?api-version=…[&features=ocrHighResolution]
     body: {"base64Source": "<bytes>"}
     → 202 Accepted, header Operation-Location: <url>

  2. GET <Operation-Location>
     → {"status": "notStarted" | "running" | "succeeded" | "failed", …}
       succeeded → "analyzeResult": {content, pages[], tables[]}
       failed    → "error": {code, message}

This module only speaks the wire protocol. It raises SubmissionError or
PollingTransportError at the transport boundary and returns the raw remote
status otherwise; the state machine lives in JobPoller.

Both calls authenticate with the Ocp-Apim-Subscription-Key header.
"""

from __future__ import annotations

import base64
import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

import httpx

from docsynth.core.config import Settings
from docsynth.core.exceptions import PollingTransportError, SubmissionError
from docsynth.models.documents import AnalyzeOptions, AnalyzeResult, JobHandle

logger = logging.getLogger(__name__)

HIGH_RESOLUTION_FEATURE = "ocrHighResolution"
_MAX_ERROR_BODY_CHARS   = 500


@dataclass(frozen=True)
class PollResponse:
    """One poll of an operation. `status` is the remote value, verbatim."""
    status:        str
    result:        AnalyzeResult | None = None
    error_message: str | None           = None


# ---------------------------------------------------------------------------
# Abstract client
# ---------------------------------------------------------------------------

class AnalysisJobClient(ABC):
    """
    Boundary to the remote analyzer.

    submit() → JobHandle      | SubmissionError
    poll()   → PollResponse   | PollingTransportError
    """

    @abstractmethod
    async def submit(self, content: bytes, options: AnalyzeOptions, *, file_name: str) -> JobHandle:
        """Start an analysis job for one document."""

    @abstractmethod
    async def poll(self, handle: JobHandle) -> PollResponse:
        """Fetch the current state of a previously submitted job."""

    @property
    def model_id(self) -> str:
        return "prebuilt-layout"


# ---------------------------------------------------------------------------
# REST implementation
# ---------------------------------------------------------------------------

def _body_excerpt(response: httpx.Response) -> str:
    try:
        body = json.dumps(response.json())
    except ValueError:
        body = response.text
    return body[:_MAX_ERROR_BODY_CHARS]


def _remote_error_message(body: dict[str, Any]) -> str | None:
    """`error.message` of a failed operation; a bare string error is taken as-is."""
    error = body.get("error")
    if isinstance(error, dict):
        message = error.get("message")
        return str(message) if message else None
    if isinstance(error, str) and error.strip():
        return error
    return None


class DocumentIntelligenceClient(AnalysisJobClient):
    """
    httpx-based client for the Document Intelligence REST API.

    One instance per pipeline run; the underlying AsyncClient is either
    injected (tests use httpx.MockTransport) or owned and closed by aclose().
    """

    def __init__(
        self,
        endpoint:    str,
        api_key:     str,
        *,
        model_id:    str = "prebuilt-layout",
        api_version: str = "2024-11-30",
        timeout:     float = 30.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._endpoint    = endpoint.rstrip("/")
        self._api_key     = api_key
        self._model_id    = model_id
        self._api_version = api_version
        self._owns_client = http_client is None
        self._http        = http_client or httpx.AsyncClient(timeout=timeout)

    @classmethod
    def from_settings(cls, settings: Settings, http_client: httpx.AsyncClient | None = None) -> "DocumentIntelligenceClient":
        return cls(
            endpoint=settings.document_intelligence_endpoint,
            api_key=settings.document_intelligence_key,
            model_id=settings.document_intelligence_model,
            api_version=settings.document_intelligence_api_version,
            timeout=settings.http_timeout_seconds,
            http_client=http_client,
        )

    @property
    def model_id(self) -> str:
        return self._model_id

    def _headers(self) -> dict[str, str]:
        return {
            "Ocp-Apim-Subscription-Key": self._api_key,
            "Content-Type":              "application/json",
        }

    def analyze_url(self) -> str:
        return f"{self._endpoint}/documentintelligence/documentModels/{self._model_id}:analyze"

    # ------------------------------------------------------------------
    # Submit
    # ------------------------------------------------------------------

    async def submit(self, content: bytes, options: AnalyzeOptions, *, file_name: str) -> JobHandle:
        params: dict[str, str] = {"api-version": self._api_version}
        if options.high_resolution_ocr:
            params["features"] = HIGH_RESOLUTION_FEATURE

        payload = {"base64Source": base64.b64encode(content).decode("ascii")}

        try:
            response = await self._http.post(
                self.analyze_url(),
                params=params,
                json=payload,
                headers=self._headers(),
            )
        except httpx.HTTPError as exc:
            raise SubmissionError(file_name, f"Request failed - {type(exc).__name__}: {exc}") from exc

        if response.is_error:
            raise SubmissionError(file_name, f"HTTP {response.status_code} - {_body_excerpt(response)}")

        if response.status_code != 202:
            logger.warning(
                "DocIntel | unexpected submit status file=%s status=%d (expected 202)",
                file_name, response.status_code,
            )

        operation_location = response.headers.get("operation-location")
        if not operation_location:
            raise SubmissionError(
                file_name,
                f"Missing operation-location header (Status: {response.status_code})",
            )

        logger.info(
            "DocIntel | submitted file=%s bytes=%d model=%s ocr_high_res=%s",
            file_name, len(content), self._model_id, options.high_resolution_ocr,
        )
        return JobHandle(operation_location=operation_location, file_name=file_name)

    # ------------------------------------------------------------------
    # Poll
    # ------------------------------------------------------------------

    async def poll(self, handle: JobHandle) -> PollResponse:
        try:
            response = await self._http.get(handle.operation_location, headers=self._headers())
        except httpx.HTTPError as exc:
            raise PollingTransportError(
                handle.file_name, f"Network error - {type(exc).__name__}: {exc}",
            ) from exc

        if response.is_error:
            raise PollingTransportError(
                handle.file_name, f"HTTP {response.status_code} - {_body_excerpt(response)}",
            )

        try:
            body = response.json()
        except ValueError as exc:
            raise PollingTransportError(
                handle.file_name, f"Unreadable response body from poll. HTTP Status: {response.status_code}",
            ) from exc
        if not isinstance(body, dict):
            raise PollingTransportError(
                handle.file_name, f"Null response body from poll. HTTP Status: {response.status_code}",
            )

        status = str(body.get("status", ""))
        result = None
        if status == "succeeded":
            try:
                result = AnalyzeResult.from_payload(body.get("analyzeResult"))
            except (TypeError, ValueError, AttributeError) as exc:
                raise PollingTransportError(
                    handle.file_name, f"Malformed analyze payload: {type(exc).__name__}: {exc}",
                ) from exc
        error = _remote_error_message(body) if status == "failed" else None
        return PollResponse(status=status, result=result, error_message=error)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http.aclose()

"""
Domain exceptions for the document synthesis pipeline.

Two families:

  Fatal       — ConfigurationError, InputValidationError, SynthesisError.
                Abort the run; the orchestrator emits one terminal error event.

  Per-document — DocumentProcessingError subclasses.
                Caught by the stage runner and folded into the corpus as
                "Error processing {name}: {detail}"; the loop moves on.
"""

from __future__ import annotations


class PipelineError(Exception):
    """Base for everything the pipeline raises on purpose."""


class ConfigurationError(PipelineError):
    """A required endpoint or credential is missing (pre-flight, fatal)."""

    def __init__(self, message: str, missing: list[str] | None = None) -> None:
        super().__init__(message)
        self.missing = missing or []


class InputValidationError(PipelineError):
    """Empty or inconsistent request inputs (pre-flight, fatal)."""


class SynthesisError(PipelineError):
    """The language-model call failed. Never retried."""


class DocumentProcessingError(PipelineError):
    """A single document could not be processed. Recoverable."""

    def __init__(self, file_name: str, detail: str) -> None:
        super().__init__(f"{file_name}: {detail}")
        self.file_name = file_name
        self.detail    = detail

    def marker(self) -> str:
        return f"Error processing {self.file_name}: {self.detail}"


class DownloadError(DocumentProcessingError):
    """Document bytes could not be fetched from the blob source."""


class SubmissionError(DocumentProcessingError):
    """The analyzer rejected the job or returned no operation handle."""


class PollingTransportError(DocumentProcessingError):
    """Non-2xx, connection failure, or unreadable body while polling."""


class RemoteAnalysisFailedError(DocumentProcessingError):
    """The analyzer reported status=failed or an unrecognised status."""


class PollingTimeoutError(DocumentProcessingError):
    """The job did not reach a terminal status within the polling budget."""

"""
Pydantic request/response schemas for the HTTP API.

Request validation happens at the API boundary; the pipeline receives a
PipelineRequest built from these and re-checks consistency itself so the
streaming endpoint can report problems as events.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from docsynth.schemas.progress import TokenUsage


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Process
# ---------------------------------------------------------------------------

class ProcessResponse(_CamelModel):
    """Body of the non-streaming POST /process."""
    success:      bool
    analysis:     str | None        = None
    error:        str | None        = None
    token_usage:  TokenUsage | None = None
    failed_files: list[str]         = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Prompts
# ---------------------------------------------------------------------------

class DefaultPromptResponse(_CamelModel):
    prompt: str


class PromptAssistRequest(_CamelModel):
    user_input: str = Field(..., description="Raw ideas or notes to turn into a system prompt")


class PromptAssistResponse(_CamelModel):
    success: bool
    prompt:  str | None = None
    error:   str | None = None


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class ErrorDetail(BaseModel):
    """Single structured error — may appear in a list."""
    field:   str | None = Field(None, description="Request field that caused the error, if applicable")
    message: str
    code:    str        = Field(..., description="Machine-readable error code for client handling")


class ErrorResponse(BaseModel):
    """
    Uniform error envelope for all 4xx/5xx responses.
    Clients should check `error_code` for programmatic handling.
    """
    error_code: str               = Field(..., description="Stable machine-readable code")
    message:    str               = Field(..., description="Human-readable summary")
    details:    list[ErrorDetail] = Field(default_factory=list)
    request_id: str | None        = Field(None, description="Trace ID for log correlation")

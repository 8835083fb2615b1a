"""
Progress event payloads — streamed to EventSource clients.

Every pipeline state transition becomes one ProgressEvent. On the wire it
is camelCase JSON with unset fields omitted::

    data: {"type":"progress","stage":"docIntel","file":"q3.pdf","message":"Status: running (attempt 2)","progressPercent":20}

Terminal events close the stream:
  - type=result                 (synthesis finished)
  - type=error with no `file`   (fatal pipeline error)
Per-file errors carry `file` and are informational; the run continues.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class EventType(str, Enum):
    STATUS   = "status"
    PROGRESS = "progress"
    RESULT   = "result"
    ERROR    = "error"


class Stage(str, Enum):
    DOC_INTEL = "docIntel"
    OPENAI    = "openai"


class TokenUsage(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    prompt_tokens:     int = 0
    completion_tokens: int = 0
    total_tokens:      int = 0


class ProgressEvent(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=True,
    )

    type:               EventType
    stage:              Stage | None      = None
    file:               str | None        = None
    message:            str | None        = None
    progress_percent:   int | None        = Field(None, ge=0, le=100)
    total_files:        int | None        = Field(None, ge=0)
    current_file_index: int | None        = Field(None, ge=0)
    analysis:           str | None        = None
    error:              str | None        = None
    token_usage:        TokenUsage | None = None

    @property
    def is_terminal(self) -> bool:
        return self.type == EventType.RESULT.value or (
            self.type == EventType.ERROR.value and self.file is None
        )

    def to_wire(self) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True)

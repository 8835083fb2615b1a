"""
SynthesisStep — the single language-model call at the end of a run.

System message = caller's prompt template + contextual recap block:

    <template>

    --- Contextual Information Recap ---
    <fileCount>3</fileCount>
    <allFileNames>a.pdf, b.docx, c.png</allFileNames>
    <optionalUserInput>focus on Q3</optionalUserInput>
    --- End of Contextual Information Recap ---

The template is treated as read-only; it may reference the three tags by
name and the recap supplies their values. Absent or blank values render as
N/A. The user message is the corpus, verbatim.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Sequence

from docsynth.core.config import Settings
from docsynth.core.exceptions import SynthesisError
from docsynth.llm.gateway import LLMGateway
from docsynth.schemas.progress import TokenUsage

logger = logging.getLogger(__name__)

NOT_AVAILABLE = "N/A"

RECAP_HEADER = "--- Contextual Information Recap ---"
RECAP_FOOTER = "--- End of Contextual Information Recap ---"


def _or_na(value: str | None) -> str:
    return value if value and value.strip() else NOT_AVAILABLE


def build_recap_block(file_names: Sequence[str], directive: str | None = None) -> str:
    file_count = str(len(file_names)) if file_names else NOT_AVAILABLE
    return (
        "\n\n"
        f"{RECAP_HEADER}\n"
        f"<fileCount>{file_count}</fileCount>\n"
        f"<allFileNames>{_or_na(', '.join(file_names))}</allFileNames>\n"
        f"<optionalUserInput>{_or_na(directive)}</optionalUserInput>\n"
        f"{RECAP_FOOTER}"
    )


def build_system_message(system_prompt: str, file_names: Sequence[str], directive: str | None = None) -> str:
    return system_prompt + build_recap_block(file_names, directive)


@dataclass(frozen=True)
class SynthesisOutput:
    analysis:    str
    token_usage: TokenUsage


class SynthesisStep:

    def __init__(self, gateway: LLMGateway, *, max_tokens: int = 32_768, temperature: float = 0.3) -> None:
        self._gateway     = gateway
        self._max_tokens  = max_tokens
        self._temperature = temperature

    @classmethod
    def from_settings(cls, settings: Settings, gateway: LLMGateway | None = None) -> "SynthesisStep":
        return cls(
            gateway or LLMGateway.from_settings(settings),
            max_tokens=settings.llm_max_tokens,
            temperature=settings.llm_temperature,
        )

    async def run(
        self,
        corpus:        str,
        system_prompt: str,
        file_names:    Sequence[str],
        directive:     str | None = None,
    ) -> SynthesisOutput:
        """Raises SynthesisError; the caller turns it into the terminal error event."""
        system = build_system_message(system_prompt, file_names, directive)
        logger.info(
            "SynthesisStep | files=%d system_chars=%d corpus_chars=%d",
            len(file_names), len(system), len(corpus),
        )

        result = await self._gateway.generate(
            system,
            corpus,
            max_tokens=self._max_tokens,
            temperature=self._temperature,
        )
        if not isinstance(result.text, str):
            raise SynthesisError("Model returned no text")
        return SynthesisOutput(analysis=result.text, token_usage=result.usage)

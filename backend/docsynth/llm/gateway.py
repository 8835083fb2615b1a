"""
LLM Gateway — single call site for Azure OpenAI chat completions.

  ┌─────────────────────────────────────────────────────┐
  │  LLMGateway.generate(system, user, …)               │
  │       │                                             │
  │       ▼                                             │
  │  AzureChatOpenAI.ainvoke([System, Human])           │
  │       │                                             │
  │       ▼                                             │
  │  token usage: usage_metadata → response_metadata    │
  │               → 4-chars-per-token estimate          │
  │       │                                             │
  │       ▼                                             │
  │  GenerationResult(text, usage)                      │
  └─────────────────────────────────────────────────────┘

Every provider failure is re-raised as SynthesisError with the provider's
message. There is no retry and no fallback provider.

Usage::

    gateway = LLMGateway.from_settings(get_settings())
    result  = await gateway.generate(system_prompt, corpus, max_tokens=32_768, temperature=0.3)
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import BaseMessage, HumanMessage, SystemMessage

from docsynth.core.config import Settings
from docsynth.core.exceptions import SynthesisError
from docsynth.schemas.progress import TokenUsage

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Token usage
# ---------------------------------------------------------------------------

def _estimate_tokens(text: str) -> int:
    """Rough token count: 4 chars ≈ 1 token. Only used when the provider reports nothing."""
    return max(1, len(text) // 4)


def extract_usage(response: Any, messages: list[BaseMessage]) -> TokenUsage:
    """Pull token counts off an AIMessage, preferring provider-reported numbers."""
    usage_metadata = getattr(response, "usage_metadata", None) or {}
    if usage_metadata:
        prompt     = int(usage_metadata.get("input_tokens", 0))
        completion = int(usage_metadata.get("output_tokens", 0))
        total      = int(usage_metadata.get("total_tokens", prompt + completion))
        return TokenUsage(prompt_tokens=prompt, completion_tokens=completion, total_tokens=total)

    reported = (getattr(response, "response_metadata", None) or {}).get("token_usage") or {}
    if reported:
        prompt     = int(reported.get("prompt_tokens", 0))
        completion = int(reported.get("completion_tokens", 0))
        total      = int(reported.get("total_tokens", prompt + completion))
        return TokenUsage(prompt_tokens=prompt, completion_tokens=completion, total_tokens=total)

    prompt     = sum(_estimate_tokens(m.content) for m in messages if isinstance(m.content, str))
    completion = _estimate_tokens(_content_text(response))
    return TokenUsage(prompt_tokens=prompt, completion_tokens=completion, total_tokens=prompt + completion)


def _content_text(response: Any) -> str:
    content = getattr(response, "content", "")
    if isinstance(content, str):
        return content
    # Multi-part content: keep text parts only.
    parts = []
    for part in content or []:
        if isinstance(part, str):
            parts.append(part)
        elif isinstance(part, dict) and part.get("type") == "text":
            parts.append(str(part.get("text", "")))
    return "".join(parts)


@dataclass(frozen=True)
class GenerationResult:
    text:       str
    usage:      TokenUsage
    latency_ms: float = 0.0


# ---------------------------------------------------------------------------
# LLMGateway
# ---------------------------------------------------------------------------

class LLMGateway:
    """
    Thin wrapper over a LangChain chat model.

    The Azure model is built per call from settings so the API process can
    boot without credentials. An injected BaseChatModel is used as-is, with
    its own generation parameters.
    """

    def __init__(self, settings: Settings | None = None, *, model: BaseChatModel | None = None) -> None:
        self._settings = settings
        self._model    = model

    @classmethod
    def from_settings(cls, settings: Settings) -> "LLMGateway":
        return cls(settings)

    def _chat_model(self, max_tokens: int, temperature: float) -> BaseChatModel:
        if self._model is not None:
            return self._model

        from langchain_openai import AzureChatOpenAI

        settings = self._settings
        if settings is None:
            raise SynthesisError("No chat model configured")
        return AzureChatOpenAI(
            azure_endpoint=settings.azure_openai_endpoint,
            api_key=settings.azure_openai_api_key,
            azure_deployment=settings.azure_openai_deployment,
            api_version=settings.azure_openai_api_version,
            max_tokens=max_tokens,
            temperature=temperature,
            max_retries=0,
        )

    @staticmethod
    def build_messages(system_prompt: str, user_prompt: str) -> list[BaseMessage]:
        messages: list[BaseMessage] = []
        if system_prompt:
            messages.append(SystemMessage(content=system_prompt))
        messages.append(HumanMessage(content=user_prompt))
        return messages

    async def generate(
        self,
        system:      str,
        user:        str,
        *,
        max_tokens:  int,
        temperature: float,
    ) -> GenerationResult:
        """
        One non-streaming completion.

        Args:
            system:      System message; omitted from the request when empty.
            user:        User message, sent verbatim.
            max_tokens:  Completion budget.
            temperature: Sampling temperature.

        Raises:
            SynthesisError: on any provider or transport failure.
        """
        messages = self.build_messages(system, user)
        t0       = time.perf_counter()
        try:
            model    = self._chat_model(max_tokens, temperature)
            response = await model.ainvoke(messages)
        except SynthesisError:
            raise
        except Exception as exc:
            logger.error("LLMGateway | generation failed: %s", exc)
            raise SynthesisError(str(exc) or type(exc).__name__) from exc

        latency = (time.perf_counter() - t0) * 1000
        text    = _content_text(response)
        usage   = extract_usage(response, messages)

        logger.info(
            "LLMGateway | system_chars=%d user_chars=%d tokens_in=%d tokens_out=%d latency_ms=%.1f",
            len(system), len(user), usage.prompt_tokens, usage.completion_tokens, latency,
        )
        return GenerationResult(text=text, usage=usage, latency_ms=latency)

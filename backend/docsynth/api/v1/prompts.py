"""
Prompt Authoring API Router

GET  /api/v1/prompts/default     built-in analysis prompt template
POST /api/v1/prompts/generate    raw idea  → system prompt
POST /api/v1/prompts/structure   raw notes → system prompt using the
                                 <fileCount/>, <allFileNames/>,
                                 <optionalUserInput/> runtime tags

Failures are reported in the body (success=false, error=…) with a 4xx/5xx
status, mirroring the process endpoints.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from docsynth.core.config import Settings, get_settings, missing_required_settings
from docsynth.core.exceptions import InputValidationError, SynthesisError
from docsynth.llm.gateway import LLMGateway
from docsynth.llm.prompt_assist import (
    DEFAULT_ANALYSIS_PROMPT_TEMPLATE,
    generate_system_prompt,
    structure_user_inputs,
)
from docsynth.schemas.api import DefaultPromptResponse, PromptAssistRequest, PromptAssistResponse

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/prompts",
    tags=["Prompts"],
)


def get_gateway(settings: Settings = Depends(get_settings)) -> LLMGateway:
    return LLMGateway.from_settings(settings)


def _failure(status_code: int, message: str) -> JSONResponse:
    body = PromptAssistResponse(success=False, error=message)
    return JSONResponse(status_code=status_code, content=body.model_dump(by_alias=True, exclude_none=True))


def _openai_configured(settings: Settings) -> bool:
    return not any(name.startswith("azure_openai") for name in missing_required_settings(settings))


@router.get("/default", response_model=DefaultPromptResponse, summary="Default analysis prompt")
async def default_prompt() -> DefaultPromptResponse:
    return DefaultPromptResponse(prompt=DEFAULT_ANALYSIS_PROMPT_TEMPLATE)


@router.post("/generate", response_model=PromptAssistResponse, summary="Generate a system prompt from an idea")
async def generate_prompt(
    body:     PromptAssistRequest,
    gateway:  LLMGateway = Depends(get_gateway),
    settings: Settings   = Depends(get_settings),
):
    if not _openai_configured(settings):
        return _failure(status.HTTP_503_SERVICE_UNAVAILABLE, "Azure OpenAI credentials for prompt generation are missing.")
    try:
        prompt = await generate_system_prompt(gateway, body.user_input)
    except InputValidationError as exc:
        return _failure(status.HTTP_400_BAD_REQUEST, str(exc))
    except SynthesisError as exc:
        logger.error("Prompts | generate failed: %s", exc)
        return _failure(status.HTTP_502_BAD_GATEWAY, f"AI prompt generation failed: {exc}")
    return PromptAssistResponse(success=True, prompt=prompt)


@router.post("/structure", response_model=PromptAssistResponse, summary="Structure notes into a system prompt")
async def structure_prompt(
    body:     PromptAssistRequest,
    gateway:  LLMGateway = Depends(get_gateway),
    settings: Settings   = Depends(get_settings),
):
    if not _openai_configured(settings):
        return _failure(status.HTTP_503_SERVICE_UNAVAILABLE, "Configuration error for AI-assisted prompt structuring.")
    try:
        prompt = await structure_user_inputs(gateway, body.user_input)
    except InputValidationError as exc:
        return _failure(status.HTTP_400_BAD_REQUEST, str(exc))
    except SynthesisError as exc:
        logger.error("Prompts | structure failed: %s", exc)
        return _failure(status.HTTP_502_BAD_GATEWAY, str(exc))
    return PromptAssistResponse(success=True, prompt=prompt)

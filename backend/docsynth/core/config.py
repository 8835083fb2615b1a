"""
Application configuration via environment variables (12-factor).
Pydantic BaseSettings validates and coerces all values at startup.

Credentials default to empty strings so the API process can boot without
them; every pipeline run re-checks them up front (see
``missing_required_settings``) and refuses to start a partial run.
"""

from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

from docsynth.core.exceptions import ConfigurationError


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Azure AI Document Intelligence
    # ------------------------------------------------------------------
    document_intelligence_endpoint:    str = ""   # https://<resource>.cognitiveservices.azure.com
    document_intelligence_key:         str = ""
    document_intelligence_model:       str = "prebuilt-layout"
    document_intelligence_api_version: str = "2024-11-30"

    poll_interval_seconds: float = 5.0
    poll_timeout_seconds:  float = 300.0    # per document, measured from submission

    # ------------------------------------------------------------------
    # Azure OpenAI (synthesis)
    # ------------------------------------------------------------------
    azure_openai_endpoint:    str = ""
    azure_openai_api_key:     str = ""
    azure_openai_deployment:  str = ""
    azure_openai_api_version: str = "2024-08-01-preview"

    llm_max_tokens:  int   = 32_768
    llm_temperature: float = 0.3

    # ------------------------------------------------------------------
    # Blob sources
    # ------------------------------------------------------------------
    aws_region:            str   = "us-east-1"
    http_timeout_seconds:  float = 30.0

    # ------------------------------------------------------------------
    # Application
    # ------------------------------------------------------------------
    app_env: str = "development"   # development | staging | production
    debug:   bool = False

    cors_origins: list[str] = ["*"]   # JSON list in env, e.g. '["https://app.example.com"]'

    progress_queue_size: int = 1_000   # bounded SSE channel; overflow drops events

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"


# ---------------------------------------------------------------------------
# Pre-flight validation
# ---------------------------------------------------------------------------

_DOCUMENT_INTELLIGENCE_FIELDS = (
    "document_intelligence_endpoint",
    "document_intelligence_key",
)

_AZURE_OPENAI_FIELDS = (
    "azure_openai_endpoint",
    "azure_openai_api_key",
    "azure_openai_deployment",
)


def missing_required_settings(settings: Settings) -> list[str]:
    """Names of required settings that are unset or blank, in declaration order."""
    return [
        name
        for name in (*_DOCUMENT_INTELLIGENCE_FIELDS, *_AZURE_OPENAI_FIELDS)
        if not str(getattr(settings, name, "") or "").strip()
    ]


def validate_settings(settings: Settings) -> None:
    """
    Raise ConfigurationError if any collaborator credential is missing.

    The message names the collaborator, not the secret, so it is safe to
    stream back to the browser.
    """
    missing = set(missing_required_settings(settings))
    if missing & set(_DOCUMENT_INTELLIGENCE_FIELDS):
        raise ConfigurationError(
            "Azure Document Intelligence credentials missing.",
            missing=sorted(missing),
        )
    if missing & set(_AZURE_OPENAI_FIELDS):
        raise ConfigurationError(
            "Azure OpenAI credentials missing (Endpoint, Key, or Deployment Name).",
            missing=sorted(missing),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()

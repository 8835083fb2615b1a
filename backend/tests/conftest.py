"""
Root conftest.py — Shared fixtures for ALL tests (unit + integration)

Fixture hierarchy:
  function-scoped : settings, recorder, emitter, fake_clock, analyzer,
                    gateway, make_orchestrator, async_client

Environment strategy:
  - No test talks to Azure or S3. The analyzer, blob source and chat model
    are replaced by scripted fakes; httpx-level tests use httpx.MockTransport.
  - Polling never sleeps for real: FakeClock.sleep advances a virtual clock.

How to run:
  pytest                          # all tests
  pytest -m unit                  # unit tests only (fast, no I/O)
  pytest -m integration           # ASGI-level API tests
  pytest backend/tests/unit/test_tables.py
"""

from __future__ import annotations

import os
from typing import Any, AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# ─────────────────────────────────────────────────────────────────────────────
# Patch settings BEFORE any app imports so modules read test config
# ─────────────────────────────────────────────────────────────────────────────

os.environ.setdefault("DOCUMENT_INTELLIGENCE_ENDPOINT", "https://docintel.test")
os.environ.setdefault("DOCUMENT_INTELLIGENCE_KEY",      "di-test-key")
os.environ.setdefault("AZURE_OPENAI_ENDPOINT",          "https://openai.test")
os.environ.setdefault("AZURE_OPENAI_API_KEY",           "aoai-test-key")
os.environ.setdefault("AZURE_OPENAI_DEPLOYMENT",        "gpt-test")
os.environ.setdefault("AWS_REGION",                     "us-east-1")
os.environ.setdefault("APP_ENV",                        "development")
os.environ.setdefault("DEBUG",                          "true")

from docsynth.core.config import Settings  # noqa: E402
from docsynth.core.exceptions import PollingTransportError, SubmissionError, SynthesisError  # noqa: E402
from docsynth.llm.gateway import GenerationResult  # noqa: E402
from docsynth.models.documents import AnalyzeOptions, AnalyzeResult, JobHandle  # noqa: E402
from docsynth.processing.analyzer import AnalysisJobClient, PollResponse  # noqa: E402
from docsynth.schemas.progress import ProgressEvent, TokenUsage  # noqa: E402
from docsynth.services.progress import ProgressEmitter  # noqa: E402


# ─────────────────────────────────────────────────────────────────────────────
# Settings
# ─────────────────────────────────────────────────────────────────────────────

TEST_SETTINGS: dict[str, Any] = {
    "document_intelligence_endpoint": "https://docintel.test",
    "document_intelligence_key":      "di-test-key",
    "azure_openai_endpoint":          "https://openai.test",
    "azure_openai_api_key":           "aoai-test-key",
    "azure_openai_deployment":        "gpt-test",
    "poll_interval_seconds":          5.0,
    "poll_timeout_seconds":           300.0,
}


@pytest.fixture
def make_settings():
    """Factory: Settings with test credentials, ignoring any local .env file."""
    def _build(**overrides: Any) -> Settings:
        return Settings(_env_file=None, **{**TEST_SETTINGS, **overrides})
    return _build


@pytest.fixture
def settings(make_settings) -> Settings:
    return make_settings()


# ─────────────────────────────────────────────────────────────────────────────
# Progress recording
# ─────────────────────────────────────────────────────────────────────────────

class EventRecorder:
    """Sink that keeps every event, with small query helpers."""

    def __init__(self) -> None:
        self.events: list[ProgressEvent] = []

    def __call__(self, event: ProgressEvent) -> None:
        self.events.append(event)

    def of_type(self, event_type: str) -> list[ProgressEvent]:
        return [e for e in self.events if e.type == event_type]

    def for_file(self, name: str) -> list[ProgressEvent]:
        return [e for e in self.events if e.file == name]

    def messages(self) -> list[str]:
        return [e.message or e.error or "" for e in self.events]

    @property
    def terminal(self) -> list[ProgressEvent]:
        return [e for e in self.events if e.is_terminal]


@pytest.fixture
def recorder() -> EventRecorder:
    return EventRecorder()


@pytest.fixture
def emitter(recorder) -> ProgressEmitter:
    return ProgressEmitter(recorder)


# ─────────────────────────────────────────────────────────────────────────────
# Virtual time
# ─────────────────────────────────────────────────────────────────────────────

class FakeClock:
    """monotonic() + sleep() pair; sleep advances time instantly."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.now    = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


# ─────────────────────────────────────────────────────────────────────────────
# Scripted analyzer
# ─────────────────────────────────────────────────────────────────────────────

def running(status: str = "running") -> PollResponse:
    return PollResponse(status=status)


def succeeded(content: str | None = "body text", **result_fields: Any) -> PollResponse:
    return PollResponse(status="succeeded", result=AnalyzeResult(content=content, **result_fields))


def failed(message: str = "Invalid document") -> PollResponse:
    return PollResponse(status="failed", error_message=message)


class ScriptedAnalyzer(AnalysisJobClient):
    """
    Fake remote analyzer.

    `scripts[file_name]` is the sequence of poll outcomes for that file: a
    PollResponse or an exception instance to raise. The last entry repeats
    once the script is exhausted. `submit_errors[file_name]` makes submit
    raise SubmissionError with that detail.
    """

    def __init__(self) -> None:
        self.scripts:       dict[str, list[PollResponse | Exception]] = {}
        self.submit_errors: dict[str, str]                            = {}
        self.submitted:     list[tuple[str, AnalyzeOptions, bytes]]   = []
        self.polls:         list[str]                                 = []

    def script(self, file_name: str, *steps: PollResponse | Exception) -> None:
        self.scripts[file_name] = list(steps)

    async def submit(self, content: bytes, options: AnalyzeOptions, *, file_name: str) -> JobHandle:
        if file_name in self.submit_errors:
            raise SubmissionError(file_name, self.submit_errors[file_name])
        self.submitted.append((file_name, options, content))
        return JobHandle(operation_location=f"https://docintel.test/operations/{file_name}", file_name=file_name)

    async def poll(self, handle: JobHandle) -> PollResponse:
        self.polls.append(handle.file_name)
        steps = self.scripts.get(handle.file_name) or [succeeded()]
        step  = steps.pop(0) if len(steps) > 1 else steps[0]
        if isinstance(step, Exception):
            raise step
        return step


@pytest.fixture
def analyzer() -> ScriptedAnalyzer:
    return ScriptedAnalyzer()


def transport_error(file_name: str, detail: str = "Network error - ConnectError: refused") -> PollingTransportError:
    return PollingTransportError(file_name, detail)


# ─────────────────────────────────────────────────────────────────────────────
# Fake LLM gateway
# ─────────────────────────────────────────────────────────────────────────────

class FakeGateway:
    """Records generate() calls; returns a canned result or raises."""

    def __init__(self, text: str = "## Analysis\nAll good.", error: Exception | None = None) -> None:
        self.text  = text
        self.error = error
        self.calls: list[dict[str, Any]] = []

    async def generate(self, system: str, user: str, *, max_tokens: int, temperature: float) -> GenerationResult:
        self.calls.append({
            "system": system, "user": user,
            "max_tokens": max_tokens, "temperature": temperature,
        })
        if self.error is not None:
            raise self.error
        return GenerationResult(
            text=self.text,
            usage=TokenUsage(prompt_tokens=120, completion_tokens=30, total_tokens=150),
        )


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def failing_gateway() -> FakeGateway:
    return FakeGateway(error=SynthesisError("Rate limit exceeded"))


# ─────────────────────────────────────────────────────────────────────────────
# Orchestrator factory
# ─────────────────────────────────────────────────────────────────────────────

@pytest.fixture
def make_orchestrator(settings, analyzer, gateway, fake_clock):
    """Factory: PipelineOrchestrator wired to fakes and virtual time."""
    def _build(*, settings_=None, analyzer_=None, gateway_=None, source=None):
        from docsynth.llm.synthesis import SynthesisStep
        from docsynth.services.pipeline import PipelineOrchestrator

        cfg = settings_ or settings
        return PipelineOrchestrator(
            cfg,
            analyzer=analyzer_ or analyzer,
            source=source,
            synthesis=SynthesisStep(
                gateway_ or gateway,
                max_tokens=cfg.llm_max_tokens,
                temperature=cfg.llm_temperature,
            ),
            clock=fake_clock,
            sleep=fake_clock.sleep,
        )
    return _build


# ─────────────────────────────────────────────────────────────────────────────
# ASGI client
# ─────────────────────────────────────────────────────────────────────────────

@pytest_asyncio.fixture
async def app(make_orchestrator, settings, gateway):
    from docsynth.api.v1.process import get_orchestrator
    from docsynth.api.v1.prompts import get_gateway
    from docsynth.core.config import get_settings
    from docsynth.main import create_app

    application = create_app()
    application.dependency_overrides[get_orchestrator] = lambda: make_orchestrator()
    application.dependency_overrides[get_gateway]      = lambda: gateway
    application.dependency_overrides[get_settings]     = lambda: settings
    yield application
    application.dependency_overrides.clear()


@pytest_asyncio.fixture
async def async_client(app) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

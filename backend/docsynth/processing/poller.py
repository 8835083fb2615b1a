"""
JobPoller — drives one submitted analysis job to a terminal state.

State machine (initial: SUBMITTED, entered by the stage runner after a
successful submit):

    SUBMITTED ──► POLLING ──┬─► SUCCEEDED       status == succeeded
                   ▲   │    ├─► FAILED          status == failed / unrecognised
                   └───┘    ├─► NETWORK_ERROR   PollingTransportError
       notStarted|running|  └─► TIMED_OUT       budget exhausted (checked
       processing → sleep                        before every attempt)

Polling uses a fixed interval (no backoff) and a wall-clock budget measured
from submission. There is no resubmission: every terminal state ends the
loop. The clock and sleep are injectable so tests never wait for real.

Progress while polling is min(90, attempt × 10) percent. It is cosmetic, not
a completion estimate.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable

from docsynth.core.exceptions import PollingTransportError
from docsynth.models.documents import AnalysisJob, AnalyzeResult, JobState
from docsynth.processing.analyzer import AnalysisJobClient
from docsynth.services.progress import ProgressEmitter

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL_SECONDS = 5.0
DEFAULT_POLL_TIMEOUT_SECONDS  = 300.0

IN_PROGRESS_STATUSES: frozenset[str] = frozenset({"notStarted", "running", "processing"})

POLLING_PERCENT_CAP  = 90
POLLING_PERCENT_STEP = 10


@dataclass(frozen=True)
class PollOutcome:
    state:    JobState
    attempts: int
    result:   AnalyzeResult | None = None
    detail:   str | None           = None   # human-readable reason for non-success states


def polling_percent(attempt: int) -> int:
    return min(POLLING_PERCENT_CAP, attempt * POLLING_PERCENT_STEP)


class JobPoller:

    def __init__(
        self,
        client:   AnalysisJobClient,
        emitter:  ProgressEmitter,
        *,
        interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
        timeout:  float = DEFAULT_POLL_TIMEOUT_SECONDS,
        clock:    Callable[[], float] = time.monotonic,
        sleep:    Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._client   = client
        self._emitter  = emitter
        self._interval = interval
        self._timeout  = timeout
        self._clock    = clock
        self._sleep    = sleep

    @property
    def timeout(self) -> float:
        return self._timeout

    def now(self) -> float:
        """Current time on the poller's clock; job submission times must use it too."""
        return self._clock()

    def _finish(self, job: AnalysisJob, state: JobState, attempts: int, **kwargs) -> PollOutcome:
        job.state = state
        logger.info(
            "JobPoller | file=%s state=%s attempts=%d",
            job.handle.file_name, state.value, attempts,
        )
        return PollOutcome(state=state, attempts=attempts, **kwargs)

    async def run(self, job: AnalysisJob) -> PollOutcome:
        """Poll until a terminal state. Never raises for remote or transport failures."""
        file_name = job.handle.file_name
        job.state = JobState.POLLING
        attempt   = 0

        self._emitter.progress("Polling Document Intelligence results...", file=file_name)

        while True:
            if self._clock() - job.submitted_at >= self._timeout:
                detail = f"Analysis timed out after {self._timeout:g}s."
                self._emitter.file_error(file_name, detail)
                return self._finish(job, JobState.TIMED_OUT, attempt, detail=detail)

            attempt += 1
            try:
                response = await self._client.poll(job.handle)
            except PollingTransportError as exc:
                self._emitter.file_error(file_name, f"Polling error: {exc.detail}")
                return self._finish(job, JobState.NETWORK_ERROR, attempt, detail=exc.detail)

            if response.status == "succeeded":
                self._emitter.progress(
                    "Analysis successful. Extracting content.",
                    file=file_name,
                    progress_percent=100,
                )
                return self._finish(job, JobState.SUCCEEDED, attempt, result=response.result or AnalyzeResult())

            if response.status == "failed":
                detail = f"Analysis failed. {response.error_message or 'No error message returned.'}"
                self._emitter.file_error(file_name, detail)
                return self._finish(job, JobState.FAILED, attempt, detail=detail)

            if response.status not in IN_PROGRESS_STATUSES:
                detail = f"Unexpected status {response.status or '<empty>'}"
                self._emitter.file_error(file_name, detail)
                return self._finish(job, JobState.FAILED, attempt, detail=detail)

            self._emitter.progress(
                f"Status: {response.status} (attempt {attempt})",
                file=file_name,
                progress_percent=polling_percent(attempt),
            )
            await self._sleep(self._interval)

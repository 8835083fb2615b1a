"""
Unit Tests — progress events, emitter and SSE channel

Coverage targets:
  ✅ Wire format: camelCase keys, unset fields omitted, enum values as strings
  ✅ Terminal detection: result, fatal error; per-file error is not terminal
  ✅ Emitter swallows sink failures and never raises
  ✅ Channel keeps order, drops (and counts) on overflow
"""

from __future__ import annotations

import json

import pytest

from docsynth.schemas.progress import ProgressEvent, TokenUsage
from docsynth.services.progress import ProgressChannel, ProgressEmitter, encode_sse


@pytest.mark.unit
class TestProgressEventWire:

    def test_camel_case_and_exclude_none(self):
        event = ProgressEvent(
            type="progress", stage="docIntel", file="q3.pdf",
            message="Status: running (attempt 2)", progress_percent=20,
        )

        assert json.loads(event.to_wire()) == {
            "type": "progress",
            "stage": "docIntel",
            "file": "q3.pdf",
            "message": "Status: running (attempt 2)",
            "progressPercent": 20,
        }

    def test_result_carries_token_usage(self):
        event = ProgressEvent(
            type="result", analysis="report",
            token_usage=TokenUsage(prompt_tokens=1, completion_tokens=2, total_tokens=3),
        )

        payload = json.loads(event.to_wire())
        assert payload["tokenUsage"] == {"promptTokens": 1, "completionTokens": 2, "totalTokens": 3}

    def test_encode_sse_frame(self):
        frame = encode_sse(ProgressEvent(type="status", message="hi"))

        assert frame == 'data: {"type":"status","message":"hi"}\n\n'

    @pytest.mark.parametrize("event, terminal", [
        (ProgressEvent(type="result", analysis="x"), True),
        (ProgressEvent(type="error", error="fatal"), True),
        (ProgressEvent(type="error", file="a.pdf", message="bad"), False),
        (ProgressEvent(type="status", message="ok"), False),
    ])
    def test_is_terminal(self, event, terminal):
        assert event.is_terminal is terminal

    def test_percent_out_of_range_rejected(self):
        with pytest.raises(ValueError):
            ProgressEvent(type="progress", progress_percent=101)


@pytest.mark.unit
class TestProgressEmitter:

    def test_builders(self, emitter, recorder):
        emitter.status("Document processing initiated.")
        emitter.file_error("a.pdf", "Error starting analysis: HTTP 400")
        emitter.fatal("No files were uploaded.")

        assert [e.type for e in recorder.events] == ["status", "error", "error"]
        assert recorder.events[1].file == "a.pdf"
        assert recorder.events[1].stage == "docIntel"
        assert recorder.events[2].error == "No files were uploaded."
        assert recorder.events[2].is_terminal

    def test_failing_sink_is_ignored(self):
        def broken(event):
            raise RuntimeError("client went away")

        ProgressEmitter(broken).status("still fine")

    def test_no_sink_is_a_no_op(self):
        ProgressEmitter().result("analysis")


@pytest.mark.unit
class TestProgressChannel:

    async def test_preserves_order(self):
        channel = ProgressChannel()
        emitter = ProgressEmitter(channel)

        for i in range(3):
            emitter.status(f"step {i}")

        received = [(await channel.get()).message for _ in range(3)]
        assert received == ["step 0", "step 1", "step 2"]
        assert channel.empty()

    def test_overflow_drops_and_counts(self):
        channel = ProgressChannel(maxsize=2)
        emitter = ProgressEmitter(channel)

        for i in range(5):
            emitter.status(f"step {i}")

        assert channel.dropped == 3
        assert channel.get_nowait().message == "step 0"
        assert channel.get_nowait().message == "step 1"
        assert channel.get_nowait() is None

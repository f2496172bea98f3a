"""Tests for SubmissionStream and submit()."""

from __future__ import annotations

import datetime as dt
from pathlib import Path

import pytest

from noter.core.models import SubmissionResult, SubmissionStatus
from noter.core.result import ExecutionError, SpawnError
from noter.core.submission import CANCELLED_MESSAGE, submit
from tests.mocks.fake_runner import FakeProcess, FakeRunner

NOW = dt.datetime(2025, 3, 14, 9, 26)


async def _start(runner: FakeRunner, vault: Path, text: str = "Buy milk"):
    return await submit(text, vault, "/bin/oc", "m", runner=runner, now=NOW)


class TestStreaming:
    @pytest.mark.asyncio
    async def test_chunks_arrive_in_order_and_join_to_output(self, vault: Path) -> None:
        runner = FakeRunner(FakeProcess(["Add", "ing...", "Done"]))
        stream = await _start(runner, vault)

        received = [chunk async for chunk in stream.chunks]
        result = await stream.result()

        assert received == ["Add", "ing...", "Done"]
        assert result.output == "Adding...Done"
        assert result.status is SubmissionStatus.COMPLETED
        assert result.error is None
        assert result.succeeded

    @pytest.mark.asyncio
    async def test_invocation_uses_run_model_and_prompt(self, vault: Path) -> None:
        runner = FakeRunner.succeeding()
        stream = await _start(runner, vault, text="Call the dentist")
        await stream.collect()

        call = runner.calls[0]
        assert call.executable == "/bin/oc"
        assert call.cwd == vault
        assert call.args[:3] == ["run", "--model", "m"]
        assert len(call.args) == 4
        assert "Call the dentist" in call.args[3]
        assert "2025-03-14" in call.args[3]
        assert "09:26" in call.args[3]

    @pytest.mark.asyncio
    async def test_chunks_can_only_be_consumed_once(self, vault: Path) -> None:
        stream = await _start(FakeRunner.succeeding(), vault)
        _ = stream.chunks

        with pytest.raises(RuntimeError):
            _ = stream.chunks

    @pytest.mark.asyncio
    async def test_stream_is_async_iterable(self, vault: Path) -> None:
        stream = await _start(FakeRunner.succeeding(["a", "b"]), vault)

        assert [chunk async for chunk in stream] == ["a", "b"]

    @pytest.mark.asyncio
    async def test_empty_output_completes(self, vault: Path) -> None:
        stream = await _start(FakeRunner(FakeProcess([])), vault)

        result = await stream.collect()

        assert result.output == ""
        assert result.status is SubmissionStatus.COMPLETED


class TestFailure:
    @pytest.mark.asyncio
    async def test_nonzero_exit_raises_execution_error_after_output(self, vault: Path) -> None:
        runner = FakeRunner(FakeProcess(["partial"], exit_code=2, stderr="bad model\n"))
        stream = await _start(runner, vault)

        received: list[str] = []
        with pytest.raises(ExecutionError) as excinfo:
            async for chunk in stream.chunks:
                received.append(chunk)

        assert received == ["partial"]
        assert "bad model" in str(excinfo.value)
        assert excinfo.value.exit_code == 2

        result = await stream.result()
        assert result.status is SubmissionStatus.FAILED
        assert result.output == "partial"
        assert result.error is not None
        assert "bad model" in result.error

    @pytest.mark.asyncio
    async def test_empty_stderr_reports_exit_status(self, vault: Path) -> None:
        stream = await _start(FakeRunner.failing(stderr="", exit_code=7), vault)

        result = await stream.collect()

        assert result.error == "opencode execution failed: exited with status 7"

    @pytest.mark.asyncio
    async def test_collect_swallows_execution_error(self, vault: Path) -> None:
        stream = await _start(FakeRunner.failing(stderr="boom"), vault)

        result = await stream.collect()

        assert result.status is SubmissionStatus.FAILED
        assert not result.succeeded

    @pytest.mark.asyncio
    async def test_spawn_error_raised_before_any_stream(self, vault: Path) -> None:
        runner = FakeRunner(SpawnError("Executable not found", context={"path": "/bin/oc"}))

        with pytest.raises(SpawnError, match="Executable not found"):
            await _start(runner, vault)


class TestCancellation:
    @pytest.mark.asyncio
    async def test_cancel_mid_stream_ends_chunks_without_error(self, vault: Path) -> None:
        runner = FakeRunner(FakeProcess(["first", "second"], hold=True))
        stream = await _start(runner, vault)

        received: list[str] = []
        async for chunk in stream.chunks:
            received.append(chunk)
            stream.handle.cancel()

        result = await stream.result()

        assert received == ["first"]
        assert result.status is SubmissionStatus.CANCELLED
        assert result.cancelled
        assert result.error == CANCELLED_MESSAGE
        assert result.output == "first"
        assert stream.handle.cancelled

    @pytest.mark.asyncio
    async def test_cancel_is_idempotent(self, vault: Path) -> None:
        runner = FakeRunner(FakeProcess(["x"], hold=True))
        stream = await _start(runner, vault)

        stream.handle.cancel()
        stream.handle.cancel()
        result = await stream.collect()

        assert result.cancelled
        assert runner.processes[0].terminate_calls == 2
        assert stream.handle.cancelled

    @pytest.mark.asyncio
    async def test_cancel_after_exit_has_no_effect(self, vault: Path) -> None:
        stream = await _start(FakeRunner.succeeding(["done"]), vault)
        result = await stream.collect()

        stream.handle.cancel()

        assert result.status is SubmissionStatus.COMPLETED
        assert not stream.handle.cancelled
        assert (await stream.result()).status is SubmissionStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_abandoned_iteration_terminates_process(self, vault: Path) -> None:
        runner = FakeRunner(FakeProcess(["one", "two"], hold=True))
        stream = await _start(runner, vault)

        chunks = stream.chunks
        assert await chunks.__anext__() == "one"
        await chunks.aclose()

        result = await stream.result()
        assert runner.processes[0].terminated
        assert result.status is SubmissionStatus.CANCELLED


class TestCompletionHook:
    @pytest.mark.asyncio
    async def test_hook_receives_result_once(self, vault: Path) -> None:
        seen: list[SubmissionResult] = []

        async def hook(result: SubmissionResult) -> None:
            seen.append(result)

        stream = await submit(
            "note", vault, "/bin/oc", "m", runner=FakeRunner.succeeding(["ok"]), on_complete=hook
        )
        result = await stream.collect()
        await stream.result()

        assert seen == [result]

"""Unit tests for run-to-completion, streaming, timeout and cancellation."""

from __future__ import annotations

import asyncio
import json
import os
import time
from pathlib import Path

from workflow_studio.orchestrator.generation.models import (
    ExecutionResult,
    GenerationRequest,
    StreamChunk,
)
from workflow_studio.orchestrator.generation.service import GenerationService

WORKFLOW = {"name": "generated", "nodes": [{"id": "n1"}], "edges": []}


def _request(prompt: str, **kwargs: object) -> GenerationRequest:
    return GenerationRequest(request_id=kwargs.pop("request_id", "req-1"), prompt=prompt, **kwargs)


def test_execute_extracts_fenced_json(fake_cli: list[str]) -> None:
    async def scenario() -> ExecutionResult:
        service = GenerationService(command=fake_cli)
        result = await service.execute(_request("json:" + json.dumps(WORKFLOW)))
        assert len(service.registry) == 0
        return result

    result = asyncio.run(scenario())

    assert result.success is True
    assert result.error is None
    assert result.parsed == WORKFLOW
    assert result.output is not None and "```json" in result.output
    assert result.execution_time_ms >= 0


def test_execute_passes_model_tools_and_cwd(fake_cli: list[str], tmp_path: Path) -> None:
    request = _request(
        "echo-args",
        model="opus",
        allowed_tools=["Read", "Grep"],
        working_directory=tmp_path,
    )
    result = asyncio.run(GenerationService(command=fake_cli).execute(request))

    assert result.success is True
    argv = result.parsed["argv"]
    assert argv[argv.index("--model") + 1] == "opus"
    assert argv[argv.index("--allowedTools") + 1] == "Read,Grep"
    assert argv[argv.index("--output-format") + 1] == "text"
    assert os.path.realpath(result.parsed["cwd"]) == os.path.realpath(tmp_path)


def test_unparseable_output_is_parse_error(fake_cli: list[str]) -> None:
    result = asyncio.run(GenerationService(command=fake_cli).execute(_request("garbage")))

    assert result.success is False
    assert result.error is not None
    assert result.error.code == "PARSE_ERROR"
    assert result.output is not None and "not json at all" in result.output


def test_abnormal_exit_is_unknown_error_with_stderr(fake_cli: list[str]) -> None:
    result = asyncio.run(GenerationService(command=fake_cli).execute(_request("fail")))

    assert result.success is False
    assert result.error is not None
    assert result.error.code == "UNKNOWN_ERROR"
    assert result.error.details is not None and "boom" in result.error.details


def test_missing_command_is_command_not_found() -> None:
    service = GenerationService(command=["/nonexistent/assistant-cli"])
    result = asyncio.run(service.execute(_request("hi")))

    assert result.success is False
    assert result.error is not None
    assert result.error.code == "COMMAND_NOT_FOUND"
    assert len(service.registry) == 0


def test_unstartable_command_is_command_not_found(tmp_path: Path) -> None:
    script = tmp_path / "assistant-cli"
    script.write_text("#!/bin/sh\necho '{}'\n", encoding="utf-8")
    script.chmod(0o644)

    result = asyncio.run(GenerationService(command=[str(script)]).execute(_request("hi")))

    assert result.error is not None
    assert result.error.code == "COMMAND_NOT_FOUND"


def test_timeout_cancels_and_leaves_no_record(fake_cli: list[str]) -> None:
    async def scenario() -> tuple[ExecutionResult, float, GenerationService]:
        service = GenerationService(command=fake_cli)
        started = time.monotonic()
        result = await service.execute(_request("hang", timeout_ms=50))
        elapsed = time.monotonic() - started
        await service.registry.drain()
        return result, elapsed, service

    result, elapsed, service = asyncio.run(scenario())

    assert result.success is False
    assert result.error is not None
    assert result.error.code == "TIMEOUT"
    assert elapsed < 1.1
    assert len(service.registry) == 0


def test_streaming_delivers_chunks_in_order(fake_cli: list[str]) -> None:
    chunks: list[StreamChunk] = []

    async def scenario() -> ExecutionResult:
        service = GenerationService(command=fake_cli)
        return await service.execute_streaming(
            _request("json:" + json.dumps(WORKFLOW)), chunks.append
        )

    result = asyncio.run(scenario())

    assert result.success is True
    assert result.parsed == WORKFLOW
    assert [c.content_type for c in chunks] == ["tool_use", "text"]
    assert result.output == chunks[-1].display_text
    assert result.output is not None and result.output.startswith("[tool] Read: /tmp/a.json\n")
    assert chunks[0].text == "[tool] Read: /tmp/a.json\n"
    assert "[tool]" in chunks[-1].display_text
    assert "[tool]" not in chunks[-1].explanatory_text
    assert chunks[-1].explanatory_text.startswith("Here is the workflow.")


def test_streaming_without_result_event_uses_display_text(fake_cli: list[str]) -> None:
    chunks: list[StreamChunk] = []
    service = GenerationService(command=fake_cli)
    request = _request("stream-no-result:" + json.dumps({"a": 1}))

    result = asyncio.run(service.execute_streaming(request, chunks.append))

    assert result.success is True
    assert result.parsed == {"a": 1}
    assert result.output == "[tool] Grep: x\n```json\n{\"a\": 1}\n```"
    assert result.output == chunks[-1].display_text


def test_failing_progress_callback_stops_the_run(fake_cli: list[str]) -> None:
    def on_progress(chunk: StreamChunk) -> None:
        raise RuntimeError("renderer crashed")

    async def scenario() -> tuple[ExecutionResult, set[str], GenerationService]:
        service = GenerationService(command=fake_cli)
        result = await service.execute_streaming(_request("chatty:"), on_progress)
        # Only force-kill escalations may outlive the run; the pipe readers must not.
        leftover = {
            task.get_name()
            for task in asyncio.all_tasks()
            if task is not asyncio.current_task() and not task.done()
        }
        await service.registry.drain()
        return result, leftover, service

    result, leftover, service = asyncio.run(scenario())

    assert result.error is not None
    assert result.error.code == "UNKNOWN_ERROR"
    assert result.error.details == "renderer crashed"
    assert all(name.startswith("force-kill-") for name in leftover)
    assert len(service.registry) == 0


def test_cancel_during_stream_yields_single_cancelled_result(fake_cli: list[str]) -> None:
    seen: list[str] = []

    async def scenario() -> tuple[ExecutionResult, GenerationService, int | None]:
        service = GenerationService(command=fake_cli)
        cancel_results = []

        def on_progress(chunk: StreamChunk) -> None:
            seen.append(chunk.text)
            # The fake CLI prints "ready" once SIGTERM is ignored.
            cancel_results.append(service.cancel_generation("req-1"))

        result = await service.execute_streaming(_request("ignore-term"), on_progress)
        await service.registry.drain()
        assert [c.cancelled for c in cancel_results] == [True]
        return result, service, cancel_results[0].execution_time_ms

    result, service, cancel_elapsed = asyncio.run(scenario())

    assert seen == ["ready\n"]
    assert result.success is False
    assert result.error is not None
    assert result.error.code == "CANCELLED"
    assert cancel_elapsed is not None
    assert len(service.registry) == 0


def test_duplicate_request_id_while_in_flight(fake_cli: list[str]) -> None:
    async def scenario() -> tuple[ExecutionResult, ExecutionResult]:
        service = GenerationService(command=fake_cli)
        first = asyncio.create_task(service.execute(_request("hang", timeout_ms=10000)))
        while "req-1" not in service.registry:
            await asyncio.sleep(0.01)

        second = await service.execute(_request("json:{}"))
        assert service.cancel_refinement("req-1").cancelled is True
        first_result = await first
        await service.registry.drain()
        return first_result, second

    first_result, second = asyncio.run(scenario())

    assert second.success is False
    assert second.error is not None
    assert "already" in second.error.message
    assert first_result.error is not None
    assert first_result.error.code == "CANCELLED"


def test_cancel_after_completion_is_a_no_op(fake_cli: list[str]) -> None:
    async def scenario() -> None:
        service = GenerationService(command=fake_cli)
        result = await service.execute(_request("json:{}"))
        assert result.success is True
        assert service.cancel_generation("req-1").cancelled is False

    asyncio.run(scenario())


def test_caller_cancellation_stops_the_process(fake_cli: list[str]) -> None:
    async def scenario() -> None:
        service = GenerationService(command=fake_cli)
        task = asyncio.create_task(service.execute(_request("hang", timeout_ms=10000)))
        while "req-1" not in service.registry:
            await asyncio.sleep(0.01)
        record = service.registry.get("req-1")

        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        else:
            raise AssertionError("task should have been cancelled")

        assert len(service.registry) == 0
        await service.registry.drain()
        assert record is not None and record.process.returncode is not None

    asyncio.run(scenario())

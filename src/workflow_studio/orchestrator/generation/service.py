"""Run the assistant CLI for generation and refinement requests.

Each request runs through `Pending -> Running -> {Completed, TimedOut,
Cancelled, Failed}`. Exactly one terminal outcome is produced: whichever of
natural completion, timeout or cancellation removes the registry record first
wins, and the others are dropped.
"""

from __future__ import annotations

import asyncio
import codecs
import contextlib
import logging
import time
from collections.abc import Callable, Sequence

from workflow_studio.orchestrator.generation.decoder import StreamDecoder
from workflow_studio.orchestrator.generation.extractor import extract_json
from workflow_studio.orchestrator.generation.models import (
    CancelResult,
    ExecutionResult,
    GenerationRequest,
    StreamChunk,
)
from workflow_studio.orchestrator.generation.process_registry import (
    ProcessRecord,
    ProcessRegistry,
    SpawnError,
    build_cli_args,
)

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[StreamChunk], None]

_READ_SIZE = 4096
_STDERR_DETAIL_LIMIT = 2000


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)


class GenerationService:
    """Generation orchestrator over a shared :class:`ProcessRegistry`."""

    def __init__(
        self,
        *,
        command: Sequence[str],
        registry: ProcessRegistry | None = None,
    ) -> None:
        if not command:
            raise ValueError("command must not be empty")
        self._command = list(command)
        self.registry = registry or ProcessRegistry()

    async def execute(self, request: GenerationRequest) -> ExecutionResult:
        """Run to completion and return the extracted result."""

        return await self._run(request, on_progress=None)

    async def execute_streaming(
        self, request: GenerationRequest, on_progress: ProgressCallback
    ) -> ExecutionResult:
        """Run with stream-json output, calling ``on_progress`` per decoded chunk."""

        return await self._run(request, on_progress=on_progress)

    def cancel_generation(self, request_id: str) -> CancelResult:
        logger.info("Generation cancel requested", extra={"request_id": request_id})
        return self.registry.cancel(request_id)

    def cancel_refinement(self, request_id: str) -> CancelResult:
        logger.info("Refinement cancel requested", extra={"request_id": request_id})
        return self.registry.cancel(request_id)

    async def _run(
        self, request: GenerationRequest, *, on_progress: ProgressCallback | None
    ) -> ExecutionResult:
        started = time.monotonic()
        streaming = on_progress is not None
        command = [*self._command, *build_cli_args(request, streaming=streaming)]

        try:
            record = await self.registry.spawn(
                request.request_id, command, cwd=request.working_directory
            )
        except SpawnError as e:
            logger.error(
                "CLI spawn failed", extra={"request_id": request.request_id, "error": e.message}
            )
            return ExecutionResult.failure(
                code=e.code,
                message=e.message,
                details=repr(e.__cause__) if e.__cause__ is not None else None,
                execution_time_ms=_elapsed_ms(started),
            )

        # Timeouts are measured from spawn.
        started = record.started_at
        decoder = StreamDecoder() if streaming else None
        stdout_parts: list[str] = []
        stderr_parts: list[str] = []

        def deliver(chunks: list[StreamChunk]) -> None:
            if on_progress is None:
                return
            for chunk in chunks:
                # Chunks arriving after cancellation are dropped.
                if not self.registry.is_active(record):
                    return
                on_progress(chunk)

        async def pump_stdout() -> None:
            assert record.process.stdout is not None
            utf8 = codecs.getincrementaldecoder("utf-8")(errors="replace")
            while True:
                data = await record.process.stdout.read(_READ_SIZE)
                if not data:
                    break
                text = utf8.decode(data)
                stdout_parts.append(text)
                if decoder is not None:
                    deliver(decoder.feed(text))
            tail = utf8.decode(b"", final=True)
            stdout_parts.append(tail)
            if decoder is not None:
                deliver(decoder.feed(tail))
                deliver(decoder.flush())

        async def pump_stderr() -> None:
            assert record.process.stderr is not None
            data = await record.process.stderr.read()
            stderr_parts.append(data.decode("utf-8", errors="replace"))

        async def write_prompt() -> None:
            assert record.process.stdin is not None
            stdin = record.process.stdin
            try:
                stdin.write(request.prompt.encode("utf-8"))
                await stdin.drain()
            except (BrokenPipeError, ConnectionResetError):
                logger.debug(
                    "CLI closed stdin before reading the prompt",
                    extra={"request_id": request.request_id},
                )
            finally:
                with contextlib.suppress(BrokenPipeError, ConnectionResetError):
                    stdin.close()

        async def communicate() -> int:
            # A failing pump (or progress callback) cancels its siblings.
            async with asyncio.TaskGroup() as tg:
                tg.create_task(write_prompt())
                tg.create_task(pump_stdout())
                tg.create_task(pump_stderr())
            return await record.process.wait()

        timeout_seconds = request.timeout_ms / 1000
        remaining = timeout_seconds - (time.monotonic() - started)
        try:
            returncode = await asyncio.wait_for(communicate(), timeout=max(remaining, 0.0))
        except TimeoutError:
            return self._timed_out(request, record, started)
        except asyncio.CancelledError:
            self.registry.cancel(request.request_id, record=record)
            raise
        except Exception as e:
            cancelled = self.registry.cancel(request.request_id, record=record)
            if not cancelled.cancelled:
                return self._cancelled(request, started)
            logger.exception("CLI run failed", extra={"request_id": request.request_id})
            cause: BaseException = e
            if isinstance(e, ExceptionGroup) and len(e.exceptions) == 1:
                cause = e.exceptions[0]
            return ExecutionResult.failure(
                code="UNKNOWN_ERROR",
                message="Assistant CLI run failed",
                details=str(cause),
                execution_time_ms=_elapsed_ms(started),
            )

        if not self.registry.complete(record):
            return self._cancelled(request, started)

        stderr = "".join(stderr_parts)
        output = "".join(stdout_parts)
        fallback: str | None = None
        if decoder is not None:
            output = decoder.display_text
            # The result event repeats the final answer without tool annotations.
            fallback = decoder.result_text

        return self._finish(
            request,
            output=output,
            fallback=fallback,
            stderr=stderr,
            returncode=returncode,
            started=started,
        )

    def _timed_out(
        self, request: GenerationRequest, record: ProcessRecord, started: float
    ) -> ExecutionResult:
        cancelled = self.registry.cancel(request.request_id, record=record)
        if not cancelled.cancelled:
            # A user cancel got there first.
            return self._cancelled(request, started)
        logger.warning(
            "CLI run timed out",
            extra={"request_id": request.request_id, "timeout_ms": request.timeout_ms},
        )
        return ExecutionResult.failure(
            code="TIMEOUT",
            message=f"Assistant CLI timed out after {request.timeout_ms} ms",
            execution_time_ms=_elapsed_ms(started),
        )

    def _cancelled(self, request: GenerationRequest, started: float) -> ExecutionResult:
        logger.info("CLI run ended by cancellation", extra={"request_id": request.request_id})
        return ExecutionResult.failure(
            code="CANCELLED",
            message="Request was cancelled",
            execution_time_ms=_elapsed_ms(started),
        )

    def _finish(
        self,
        request: GenerationRequest,
        *,
        output: str,
        fallback: str | None,
        stderr: str,
        returncode: int,
        started: float,
    ) -> ExecutionResult:
        execution_time_ms = _elapsed_ms(started)
        extracted = extract_json(output)
        if extracted is None and fallback is not None:
            extracted = extract_json(fallback)

        if extracted is None:
            if returncode != 0:
                logger.error(
                    "CLI exited abnormally",
                    extra={"request_id": request.request_id, "returncode": returncode},
                )
                return ExecutionResult.failure(
                    code="UNKNOWN_ERROR",
                    message=f"Assistant CLI exited with code {returncode}",
                    details=stderr[:_STDERR_DETAIL_LIMIT] or None,
                    output=output or None,
                    execution_time_ms=execution_time_ms,
                )
            logger.warning(
                "CLI output contained no JSON", extra={"request_id": request.request_id}
            )
            return ExecutionResult.failure(
                code="PARSE_ERROR",
                message="Failed to parse assistant CLI output as JSON",
                output=output,
                execution_time_ms=execution_time_ms,
            )

        logger.info(
            "CLI run completed",
            extra={
                "request_id": request.request_id,
                "returncode": returncode,
                "strategy": extracted.strategy,
                "elapsed_ms": execution_time_ms,
            },
        )
        return ExecutionResult(
            success=True,
            output=output,
            parsed=extracted.value,
            execution_time_ms=execution_time_ms,
        )

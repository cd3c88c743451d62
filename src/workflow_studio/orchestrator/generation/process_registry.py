"""Registry of running assistant CLI processes, keyed by request id.

A record exists from spawn until the run completes or is cancelled. Cancelling
removes the record immediately (the record means "in flight", not "alive"),
sends a graceful termination signal and escalates to a forced kill if the
process is still running after the grace period.

All registry mutations happen under a lock with no await in between, so the
registry stays consistent whether callers share one event loop or not.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import shlex
import shutil
import threading
import time
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path

from workflow_studio.orchestrator.generation.models import (
    CancelResult,
    ErrorCode,
    GenerationRequest,
)

logger = logging.getLogger(__name__)

FORCE_KILL_GRACE_SECONDS = 0.5


class SpawnError(Exception):
    """The CLI process could not be started for a request."""

    code: ErrorCode = "UNKNOWN_ERROR"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class CommandNotFoundError(SpawnError):
    code: ErrorCode = "COMMAND_NOT_FOUND"


def resolve_cli_command(configured: str) -> list[str]:
    """Split the configured command line, falling back to ``npx claude``.

    The fallback only applies when the command is the bare ``claude`` executable
    and it is not on PATH while ``npx`` is.
    """

    parts = shlex.split(configured)
    if not parts:
        raise ValueError("CLI command must not be empty")
    if parts[0] == "claude" and shutil.which("claude") is None and shutil.which("npx"):
        return ["npx", *parts]
    return parts


def build_cli_args(request: GenerationRequest, *, streaming: bool) -> list[str]:
    """Arguments after the executable. The prompt itself is written to stdin."""

    args = ["-p", "--output-format"]
    if streaming:
        # stream-json in print mode requires --verbose.
        args += ["stream-json", "--verbose"]
    else:
        args.append("text")
    args += ["--model", request.model]
    if request.allowed_tools:
        args += ["--allowedTools", ",".join(request.allowed_tools)]
    return args


@dataclass(eq=False)
class ProcessRecord:
    request_id: str
    process: asyncio.subprocess.Process
    started_at: float = field(default_factory=time.monotonic)

    @property
    def pid(self) -> int:
        return self.process.pid

    def elapsed_ms(self) -> int:
        return int((time.monotonic() - self.started_at) * 1000)


class ProcessRegistry:
    def __init__(self, *, grace_period_seconds: float = FORCE_KILL_GRACE_SECONDS) -> None:
        self._grace_period_seconds = grace_period_seconds
        self._lock = threading.Lock()
        self._records: dict[str, ProcessRecord] = {}
        self._kill_tasks: set[asyncio.Task[None]] = set()

    def __contains__(self, request_id: object) -> bool:
        with self._lock:
            return request_id in self._records

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def get(self, request_id: str) -> ProcessRecord | None:
        with self._lock:
            return self._records.get(request_id)

    def is_active(self, record: ProcessRecord) -> bool:
        with self._lock:
            return self._records.get(record.request_id) is record

    async def spawn(
        self,
        request_id: str,
        command: Sequence[str],
        *,
        cwd: Path | None = None,
    ) -> ProcessRecord:
        """Start ``command`` with piped stdio and register it under ``request_id``.

        Raises:
            SpawnError: If ``request_id`` is already in flight.
            CommandNotFoundError: If the executable cannot be found or started.
        """

        if request_id in self:
            raise SpawnError(f"Request {request_id!r} already has a running process")

        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=str(cwd) if cwd is not None else None,
            )
        except FileNotFoundError as e:
            raise CommandNotFoundError(f"CLI command not found: {command[0]}") from e
        except OSError as e:
            # Present but not startable (permissions, bad interpreter).
            raise CommandNotFoundError(
                f"CLI command could not be started: {command[0]}: {e}"
            ) from e

        record = ProcessRecord(request_id=request_id, process=process)
        with self._lock:
            conflict = request_id in self._records
            if not conflict:
                self._records[request_id] = record

        if conflict:
            # Lost a spawn race for the same id; the loser never becomes visible.
            with contextlib.suppress(ProcessLookupError):
                process.kill()
            await process.wait()
            raise SpawnError(f"Request {request_id!r} already has a running process")

        logger.info(
            "CLI process started",
            extra={"request_id": request_id, "pid": process.pid, "cwd": str(cwd or Path.cwd())},
        )
        return record

    def complete(self, record: ProcessRecord) -> bool:
        """Remove ``record`` after natural completion.

        Returns False if the record was already removed (cancelled first).
        """

        with self._lock:
            if self._records.get(record.request_id) is not record:
                return False
            del self._records[record.request_id]
            return True

    def cancel(self, request_id: str, *, record: ProcessRecord | None = None) -> CancelResult:
        """Cancel the process registered under ``request_id``.

        Not-found is not an error: callers may cancel speculatively. When
        ``record`` is given, only that exact record is cancelled.
        """

        with self._lock:
            current = self._records.get(request_id)
            if current is None or (record is not None and current is not record):
                current = None
            else:
                del self._records[request_id]

        if current is None:
            logger.warning("No active process for request", extra={"request_id": request_id})
            return CancelResult(cancelled=False)

        elapsed_ms = current.elapsed_ms()
        logger.info(
            "Cancelling CLI process",
            extra={"request_id": request_id, "pid": current.pid, "elapsed_ms": elapsed_ms},
        )
        self._terminate(current)
        return CancelResult(cancelled=True, execution_time_ms=elapsed_ms)

    def _terminate(self, record: ProcessRecord) -> None:
        if record.process.returncode is not None:
            return
        with contextlib.suppress(ProcessLookupError):
            record.process.terminate()
        task = asyncio.get_running_loop().create_task(
            self._force_kill_after_grace(record),
            name=f"force-kill-{record.request_id}",
        )
        self._kill_tasks.add(task)
        task.add_done_callback(self._kill_tasks.discard)

    async def _force_kill_after_grace(self, record: ProcessRecord) -> None:
        # Exiting within the grace period ends this task without a kill.
        try:
            await asyncio.wait_for(record.process.wait(), timeout=self._grace_period_seconds)
        except TimeoutError:
            if record.process.returncode is None:
                with contextlib.suppress(ProcessLookupError):
                    record.process.kill()
                logger.warning(
                    "Forcefully killed CLI process",
                    extra={"request_id": record.request_id, "pid": record.pid},
                )
                await record.process.wait()

    async def drain(self) -> None:
        """Wait for pending escalations (terminated processes being reaped)."""

        while self._kill_tasks:
            await asyncio.gather(*list(self._kill_tasks), return_exceptions=True)

    async def shutdown(self) -> None:
        """Cancel every in-flight process and wait until they are gone."""

        with self._lock:
            request_ids = list(self._records)
        for request_id in request_ids:
            self.cancel(request_id)
        await self.drain()

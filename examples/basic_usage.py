#!/usr/bin/env python3
"""Programmatic workflow generation example.

This demonstrates using the orchestrator components directly:

* load settings from `.env`
* ask the assistant CLI for a workflow, printing progress as it streams
* save the generated document to the active storage root

The prompt and workflow name are passed as arguments.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
import uuid
from typing import Sequence

from workflow_studio.orchestrator.config import OrchestratorSettings
from workflow_studio.orchestrator.generation import (
    GenerationRequest,
    GenerationService,
    StreamChunk,
    resolve_cli_command,
)
from workflow_studio.orchestrator.logging import configure_logging
from workflow_studio.orchestrator.storage import WorkflowStore


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Generate and save a workflow (example).")
    parser.add_argument("--name", required=True, help="Workflow name to save under")
    parser.add_argument("--prompt", required=True, help="Describe the workflow to generate")
    parser.add_argument(
        "--tools",
        default="Read,Grep,Glob",
        help='Comma-separated tool allow-list, e.g. "Read,Grep" (optional)',
    )
    return parser.parse_args(argv)


def _show(chunk: StreamChunk) -> None:
    sys.stderr.write(chunk.text)


async def _run(args: argparse.Namespace, settings: OrchestratorSettings) -> int:
    tools = [tool.strip() for tool in args.tools.split(",") if tool.strip()]
    service = GenerationService(command=resolve_cli_command(settings.cli_command))
    request = GenerationRequest(
        request_id=uuid.uuid4().hex,
        prompt=args.prompt,
        timeout_ms=settings.default_timeout_ms,
        model=settings.default_model,
        allowed_tools=tools or None,
    )

    try:
        result = await service.execute_streaming(request, _show)
    finally:
        await service.registry.shutdown()

    if not result.success or not isinstance(result.parsed, dict):
        reason = result.error.message if result.error else "output was not a JSON object"
        print(f"Generation failed: {reason}")
        return 1

    store = WorkflowStore.from_settings(settings)
    path = await store.save(args.name, {"name": args.name, **result.parsed})
    print(f"Generated in {result.execution_time_ms} ms")
    print(f"Saved to: {path}")
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)

    settings = OrchestratorSettings()
    configure_logging(settings.log_level)

    return asyncio.run(_run(args, settings))


if __name__ == "__main__":
    raise SystemExit(main())

"""CLI entrypoint for the workflow studio backend."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
import uuid
from pathlib import Path

from pydantic import ValidationError

from workflow_studio import __version__
from workflow_studio.orchestrator.config import OrchestratorSettings
from workflow_studio.orchestrator.generation.models import (
    ExecutionResult,
    GenerationRequest,
    StreamChunk,
)
from workflow_studio.orchestrator.generation.process_registry import resolve_cli_command
from workflow_studio.orchestrator.generation.service import GenerationService
from workflow_studio.orchestrator.logging import configure_logging
from workflow_studio.orchestrator.storage.file_service import FileOperationError
from workflow_studio.orchestrator.storage.workflow_store import (
    InvalidWorkflowName,
    LoadedWorkflow,
    WorkflowNotFound,
    WorkflowStore,
)

logger = logging.getLogger(__name__)


def _parse_tools(value: str | None) -> list[str] | None:
    if value is None:
        return None
    tools = [p.strip() for p in value.split(",") if p.strip()]
    return tools or None


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="workflow-studio",
        description="Generate and manage AI-assisted workflow documents",
    )
    parser.add_argument("--version", action="version", version=f"workflow-studio {__version__}")

    subparsers = parser.add_subparsers(dest="command", required=True)

    generate = subparsers.add_parser("generate", help="Run the assistant CLI for one prompt")
    prompt_source = generate.add_mutually_exclusive_group(required=True)
    prompt_source.add_argument("--prompt", help="Prompt text")
    prompt_source.add_argument("--prompt-file", type=Path, help="Read the prompt from a file")
    generate.add_argument(
        "--model",
        choices=["sonnet", "opus", "haiku"],
        default=None,
        help="Model alias (defaults to WORKFLOW_STUDIO_DEFAULT_MODEL)",
    )
    generate.add_argument(
        "--timeout-ms",
        type=int,
        default=None,
        help="Timeout in milliseconds (defaults to WORKFLOW_STUDIO_DEFAULT_TIMEOUT_MS)",
    )
    generate.add_argument(
        "--allowed-tools",
        default=None,
        help="Comma-separated tool allow-list, e.g. 'Read,Grep,Glob'",
    )
    generate.add_argument("--cwd", type=Path, default=None, help="Working directory for the CLI")
    generate.add_argument(
        "--stream",
        action="store_true",
        help="Stream progress to stderr while the CLI runs",
    )

    subparsers.add_parser("list-workflows", help="List workflows from every storage root")

    load = subparsers.add_parser("load-workflow", help="Print a workflow document")
    load.add_argument("name", help="Workflow name (file name without .json)")

    save = subparsers.add_parser("save-workflow", help="Save a workflow document")
    save.add_argument("name", help="Workflow name (file name without .json)")
    save.add_argument("--file", type=Path, required=True, help="JSON document to save")

    subparsers.add_parser("show-config", help="Print resolved storage configuration")

    return parser


def _print_progress(chunk: StreamChunk) -> None:
    sys.stderr.write(chunk.text)
    sys.stderr.flush()


async def _generate(args: argparse.Namespace, settings: OrchestratorSettings) -> ExecutionResult:
    prompt = args.prompt
    if prompt is None:
        prompt = args.prompt_file.read_text(encoding="utf-8")

    request = GenerationRequest(
        request_id=uuid.uuid4().hex,
        prompt=prompt,
        timeout_ms=args.timeout_ms or settings.default_timeout_ms,
        model=args.model or settings.default_model,
        working_directory=args.cwd,
        allowed_tools=_parse_tools(args.allowed_tools),
    )
    service = GenerationService(command=resolve_cli_command(settings.cli_command))
    try:
        if args.stream:
            return await service.execute_streaming(request, _print_progress)
        return await service.execute(request)
    finally:
        await service.registry.shutdown()


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = OrchestratorSettings()
    except ValidationError as e:
        # Logging isn't configured yet; keep it simple and actionable.
        print("Configuration error (check your .env):", file=sys.stderr)
        print(e, file=sys.stderr)
        return 2

    configure_logging(settings.log_level)
    store = WorkflowStore.from_settings(settings)

    try:
        if args.command == "generate":
            result = asyncio.run(_generate(args, settings))
            if not result.success:
                assert result.error is not None
                print(f"{result.error.code}: {result.error.message}", file=sys.stderr)
                if result.error.details:
                    print(result.error.details, file=sys.stderr)
                return 3
            print(json.dumps(result.parsed, indent=2, ensure_ascii=False))
            return 0

        if args.command == "list-workflows":
            summaries = asyncio.run(store.list_all())
            for s in summaries:
                print(f"{s.id}\t{s.updatedAt}\t{s.source}\t{s.name}")
            return 0

        if args.command == "load-workflow":
            loaded = asyncio.run(store.load(args.name))
            if isinstance(loaded, WorkflowNotFound):
                print(loaded.message, file=sys.stderr)
                return 4
            if not isinstance(loaded, LoadedWorkflow):
                print(f"{loaded.code}: {loaded.message}", file=sys.stderr)
                return 1
            document = loaded.document.model_dump(mode="json")
            print(json.dumps(document, indent=2, ensure_ascii=False))
            return 0

        if args.command == "save-workflow":
            document = json.loads(args.file.read_text(encoding="utf-8"))
            path = asyncio.run(store.save(args.name, document))
            print(f"Saved workflow {args.name!r} to {path}")
            return 0

        if args.command == "show-config":
            print(f"offline: {settings.offline.is_offline}")
            print(f"cloud features disabled: {settings.offline.cloud_features_disabled}")
            print(f"active root: {store.active_root}")
            for root in store.layout.read_roots:
                print(f"read root [{root.label}]: {root.path}")
            return 0

        parser.error(f"Unknown command: {args.command}")
        return 2

    except (InvalidWorkflowName, ValidationError, json.JSONDecodeError) as e:
        print(f"Invalid input: {e}", file=sys.stderr)
        return 2
    except FileOperationError as e:
        logger.error("File operation failed", extra={"path": str(e.path)})
        print(str(e), file=sys.stderr)
        return 1
    except Exception:
        logger.exception("Command failed", extra={"command": args.command})
        return 1


if __name__ == "__main__":
    raise SystemExit(main())

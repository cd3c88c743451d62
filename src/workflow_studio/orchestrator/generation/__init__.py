"""Assistant CLI orchestration: spawn, stream, cancel and parse."""

from workflow_studio.orchestrator.generation.decoder import StreamDecoder
from workflow_studio.orchestrator.generation.extractor import extract_json, parse_cli_output
from workflow_studio.orchestrator.generation.models import (
    CancelResult,
    ExecutionError,
    ExecutionResult,
    GenerationRequest,
    StreamChunk,
)
from workflow_studio.orchestrator.generation.process_registry import (
    CommandNotFoundError,
    ProcessRegistry,
    SpawnError,
    resolve_cli_command,
)
from workflow_studio.orchestrator.generation.service import GenerationService, ProgressCallback

__all__ = [
    "CancelResult",
    "CommandNotFoundError",
    "ExecutionError",
    "ExecutionResult",
    "GenerationRequest",
    "GenerationService",
    "ProcessRegistry",
    "ProgressCallback",
    "SpawnError",
    "StreamChunk",
    "StreamDecoder",
    "extract_json",
    "parse_cli_output",
    "resolve_cli_command",
]

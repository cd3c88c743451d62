"""Request/result models for assistant CLI runs."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field

from workflow_studio.orchestrator.config import ClaudeModel

ErrorCode = Literal["COMMAND_NOT_FOUND", "TIMEOUT", "PARSE_ERROR", "CANCELLED", "UNKNOWN_ERROR"]
ContentType = Literal["tool_use", "text"]


class GenerationRequest(BaseModel):
    """One logical generation or refinement request.

    ``request_id`` is unique among in-flight requests; it is the cancellation handle.
    """

    request_id: str = Field(min_length=1)
    prompt: str
    timeout_ms: int = Field(default=60000, gt=0)
    model: ClaudeModel = "sonnet"
    working_directory: Path | None = None
    allowed_tools: list[str] | None = None


class ExecutionError(BaseModel):
    code: ErrorCode
    message: str
    details: str | None = None


class ExecutionResult(BaseModel):
    """Terminal value of a run. Exactly one is produced per request."""

    success: bool
    output: str | None = None
    parsed: Any = None
    error: ExecutionError | None = None
    execution_time_ms: int

    @classmethod
    def failure(
        cls,
        *,
        code: ErrorCode,
        message: str,
        execution_time_ms: int,
        details: str | None = None,
        output: str | None = None,
    ) -> ExecutionResult:
        return cls(
            success=False,
            output=output,
            error=ExecutionError(code=code, message=message, details=details),
            execution_time_ms=execution_time_ms,
        )


class CancelResult(BaseModel):
    cancelled: bool
    execution_time_ms: int | None = None


@dataclass(frozen=True, slots=True)
class StreamChunk:
    """A classified unit of streamed output plus both accumulators at that point."""

    content_type: ContentType
    text: str
    display_text: str
    explanatory_text: str

    def to_json(self) -> dict[str, object]:
        return {
            "contentType": self.content_type,
            "chunk": self.text,
            "displayText": self.display_text,
            "explanatoryText": self.explanatory_text,
        }

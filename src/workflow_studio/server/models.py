"""Pydantic models for the REST server."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

from workflow_studio.orchestrator.config import ClaudeModel
from workflow_studio.orchestrator.storage.models import WorkflowDocument, WorkflowSummary


class GenerateRequestBody(BaseModel):
    requestId: str = Field(min_length=1)
    prompt: str
    timeoutMs: int | None = Field(default=None, gt=0)
    model: ClaudeModel | None = None
    workingDirectory: Path | None = None
    allowedTools: list[str] | None = None


class OfflineConfigPayload(BaseModel):
    isOffline: bool
    disableCloudApi: bool
    localStoragePath: str


class WorkflowListPayload(BaseModel):
    workflows: list[WorkflowSummary]


class LoadWorkflowPayload(BaseModel):
    workflow: WorkflowDocument
    source: str


class SaveWorkflowPayload(BaseModel):
    name: str
    path: str


class ApiError(BaseModel):
    code: str
    message: str
    details: Any = None

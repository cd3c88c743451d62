"""Workflow document models.

Field names are camelCase because the documents are shared with the editor UI.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class WorkflowDocument(BaseModel):
    """A persisted workflow: metadata plus an opaque node/edge graph."""

    model_config = ConfigDict(extra="allow")

    name: str
    description: str | None = None
    version: str | None = None
    schemaVersion: str | None = None
    nodes: list[dict[str, Any]] = Field(default_factory=list)
    edges: list[dict[str, Any]] = Field(default_factory=list)
    createdAt: str | None = None
    updatedAt: str | None = None


class WorkflowSummary(BaseModel):
    """Listing entry; ``source`` is the label of the root it was read from."""

    id: str
    name: str
    description: str | None = None
    updatedAt: str
    source: str

"""FastAPI server adapter for workflow-studio.

Design intent:
- Keep generation and storage logic in `workflow_studio.orchestrator.*`
- Keep transport concerns (routing, CORS, NDJSON streaming) here

Run with `uvicorn workflow_studio.server:create_app --factory`.
"""

from __future__ import annotations

__all__ = ["create_app"]

from workflow_studio.server.app import create_app

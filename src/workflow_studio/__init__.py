"""Workflow Studio.

Backend core for AI-assisted workflow authoring:
- spawns the assistant CLI per request, streams and parses its output
- persists workflow documents across workspace and offline storage roots
"""

__version__ = "0.1.0"

from workflow_studio.orchestrator.config import OrchestratorSettings

__all__ = ["__version__", "OrchestratorSettings"]

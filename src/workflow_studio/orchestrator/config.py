"""Configuration for the workflow studio backend.

Configuration is loaded from:
- environment variables
- and a local `.env` file (if present)

Offline mode decides where workflow documents are written: the user-global
offline directory when offline, the workspace directory otherwise.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

ClaudeModel = Literal["sonnet", "opus", "haiku"]


def expand_home(raw: str) -> Path:
    """Expand a leading ``~`` or ``~/`` against the current user's home directory.

    Other forms (including ``~user``) are returned unchanged.
    """

    if raw == "~":
        return Path.home()
    if raw.startswith("~/"):
        return Path.home() / raw[2:]
    return Path(raw)


class OfflineSettings(BaseSettings):
    """Offline/online mode flags shared with the editor UI."""

    is_offline: bool = Field(
        default=True,
        description="Write workflows to the user-global offline directory",
    )
    disable_cloud_api: bool = Field(
        default=True,
        description="Hide features that call hosted APIs",
    )
    local_storage_path: str = Field(
        default="~/.workflow-studio/workflows",
        description="Offline workflow directory (leading '~' is expanded)",
    )

    model_config = SettingsConfigDict(
        env_prefix="WORKFLOW_STUDIO_OFFLINE_",
        env_file=".env",
        extra="ignore",
    )

    @property
    def cloud_features_disabled(self) -> bool:
        return self.is_offline and self.disable_cloud_api


class OrchestratorSettings(BaseSettings):
    """Settings for the orchestrator.

    Environment variables:
    - WORKFLOW_STUDIO_LOG_LEVEL           (optional)
    - WORKFLOW_STUDIO_CLI_COMMAND         (optional, default ``claude``)
    - WORKFLOW_STUDIO_DEFAULT_TIMEOUT_MS  (optional)
    - WORKFLOW_STUDIO_DEFAULT_MODEL       (optional)
    - WORKFLOW_STUDIO_WORKSPACE_PATH      (optional)
    - WORKFLOW_STUDIO_WORKFLOWS_DIR       (optional)
    - WORKFLOW_STUDIO_OFFLINE_*           (see :class:`OfflineSettings`)

    Notes:
        Pydantic-settings supports overriding the env file in tests via:
        `OrchestratorSettings(_env_file=path_to_env)`.
    """

    log_level: str = Field(
        default="INFO",
        description="Root logging level",
    )

    cli_command: str = Field(
        default="claude",
        description="Assistant CLI command line (shell-style split, prompt goes to stdin)",
    )
    default_timeout_ms: int = Field(
        default=60000,
        gt=0,
        description="Timeout applied when a request does not specify one",
    )
    default_model: ClaudeModel = Field(
        default="sonnet",
        description="Model alias passed to the CLI when a request does not specify one",
    )

    workspace_path: Path = Field(
        default=Path("."),
        description="Workspace root; the legacy workflow directory lives below it",
    )
    workflows_dir: Path = Field(
        default=Path(".vscode/workflows"),
        description="Workflow directory relative to the workspace root",
    )

    offline: OfflineSettings = Field(
        default_factory=OfflineSettings,
        description="Offline mode configuration",
    )

    model_config = SettingsConfigDict(
        env_prefix="WORKFLOW_STUDIO_",
        env_file=".env",
        extra="ignore",
    )

    @property
    def workspace_workflows_dir(self) -> Path:
        """Workspace-scoped workflow directory (active when online, legacy otherwise)."""

        return self.workspace_path / self.workflows_dir

    @property
    def offline_workflows_dir(self) -> Path:
        """User-global workflow directory used in offline mode."""

        return expand_home(self.offline.local_storage_path)

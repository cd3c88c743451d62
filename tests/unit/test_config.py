"""Unit tests for configuration."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from workflow_studio.orchestrator.config import (
    OfflineSettings,
    OrchestratorSettings,
    expand_home,
)


def test_offline_settings_defaults() -> None:
    """Offline mode is on by default and hides hosted features."""
    config = OfflineSettings()

    assert config.is_offline is True
    assert config.disable_cloud_api is True
    assert config.local_storage_path == "~/.workflow-studio/workflows"
    assert config.cloud_features_disabled is True


def test_cloud_features_need_both_flags() -> None:
    assert OfflineSettings(is_offline=False).cloud_features_disabled is False
    assert OfflineSettings(disable_cloud_api=False).cloud_features_disabled is False


def test_orchestrator_settings_defaults() -> None:
    config = OrchestratorSettings()

    assert config.cli_command == "claude"
    assert config.default_timeout_ms == 60000
    assert config.default_model == "sonnet"
    assert config.workflows_dir == Path(".vscode/workflows")
    assert isinstance(config.offline, OfflineSettings)


def test_settings_from_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("WORKFLOW_STUDIO_WORKSPACE_PATH", str(tmp_path))
    monkeypatch.setenv("WORKFLOW_STUDIO_DEFAULT_MODEL", "haiku")
    monkeypatch.setenv("WORKFLOW_STUDIO_OFFLINE_IS_OFFLINE", "false")

    config = OrchestratorSettings()

    assert config.default_model == "haiku"
    assert config.offline.is_offline is False
    assert config.workspace_workflows_dir == tmp_path / ".vscode" / "workflows"


def test_invalid_values_are_rejected() -> None:
    with pytest.raises(ValidationError):
        OrchestratorSettings(default_timeout_ms=0)
    with pytest.raises(ValidationError):
        OrchestratorSettings(default_model="gpt-4")


def test_expand_home(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("HOME", str(tmp_path))

    assert expand_home("~") == tmp_path
    assert expand_home("~/wf") == tmp_path / "wf"
    assert expand_home("~other/wf") == Path("~other/wf")
    assert expand_home("/abs/~/wf") == Path("/abs/~/wf")


def test_offline_workflows_dir_expands_home(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    monkeypatch.setenv("HOME", str(tmp_path))
    config = OrchestratorSettings(offline=OfflineSettings(local_storage_path="~/flows"))

    assert config.offline_workflows_dir == tmp_path / "flows"

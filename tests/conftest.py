"""Test configuration and fixtures."""

from __future__ import annotations

import shlex
import sys
from pathlib import Path

import pytest

from workflow_studio.orchestrator.config import OfflineSettings, OrchestratorSettings

# Stands in for the assistant CLI. Behaviour is selected by the prompt prefix.
FAKE_CLI_SOURCE = r'''
import json
import os
import signal
import sys
import time

args = sys.argv[1:]
prompt = sys.stdin.read()
streaming = "stream-json" in args


def emit(event):
    sys.stdout.write(json.dumps(event) + "\n")
    sys.stdout.flush()


if prompt.startswith("hang"):
    time.sleep(30)
elif prompt.startswith("ignore-term"):
    signal.signal(signal.SIGTERM, signal.SIG_IGN)
    sys.stdout.write("ready\n")
    sys.stdout.flush()
    time.sleep(30)
elif prompt.startswith("fail"):
    sys.stderr.write("boom\n")
    sys.exit(3)
elif prompt.startswith("garbage"):
    print("not json at all")
elif prompt.startswith("echo-args"):
    print(json.dumps({"argv": args, "cwd": os.getcwd()}))
elif prompt.startswith("stream-no-result:"):
    payload = prompt[len("stream-no-result:"):]
    emit({
        "type": "assistant",
        "message": {"content": [{"type": "tool_use", "name": "Grep", "input": {"pattern": "x"}}]},
    })
    emit({
        "type": "assistant",
        "message": {"content": [{"type": "text", "text": "```json\n" + payload + "\n```"}]},
    })
elif prompt.startswith("chatty:"):
    sys.stdout.write("step one\n")
    sys.stdout.flush()
    time.sleep(30)
elif prompt.startswith("json:"):
    payload = prompt[len("json:"):]
    if streaming:
        emit({"type": "system", "subtype": "init"})
        emit({
            "type": "assistant",
            "message": {"content": [
                {"type": "tool_use", "name": "Read", "input": {"file_path": "/tmp/a.json"}},
            ]},
        })
        text = "Here is the workflow.\n```json\n" + payload + "\n```"
        emit({"type": "assistant", "message": {"content": [{"type": "text", "text": text}]}})
        emit({"type": "result", "subtype": "success", "result": text})
    else:
        print("Here is the workflow.\n```json\n" + payload + "\n```")
else:
    print(prompt)
'''


@pytest.fixture
def fake_cli(tmp_path: Path) -> list[str]:
    """Command line that runs the fake assistant CLI."""
    script = tmp_path / "fake_cli.py"
    script.write_text(FAKE_CLI_SOURCE, encoding="utf-8")
    return [sys.executable, str(script)]


@pytest.fixture
def workspace_dir(tmp_path: Path) -> Path:
    workspace = tmp_path / "workspace"
    workspace.mkdir()
    return workspace


@pytest.fixture
def offline_dir(tmp_path: Path) -> Path:
    return tmp_path / "offline" / "workflows"


@pytest.fixture
def offline_settings(
    workspace_dir: Path, offline_dir: Path, fake_cli: list[str]
) -> OrchestratorSettings:
    """Offline-mode settings with both roots under tmp_path."""
    return OrchestratorSettings(
        log_level="DEBUG",
        cli_command=shlex.join(fake_cli),
        workspace_path=workspace_dir,
        offline=OfflineSettings(is_offline=True, local_storage_path=str(offline_dir)),
    )


@pytest.fixture
def online_settings(workspace_dir: Path, offline_dir: Path) -> OrchestratorSettings:
    return OrchestratorSettings(
        workspace_path=workspace_dir,
        offline=OfflineSettings(is_offline=False, local_storage_path=str(offline_dir)),
    )

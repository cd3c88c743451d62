"""Console-script shim; the CLI lives in `workflow_studio.orchestrator.main`."""

from __future__ import annotations

from workflow_studio.orchestrator.main import main

__all__ = ["main"]


if __name__ == "__main__":
    raise SystemExit(main())

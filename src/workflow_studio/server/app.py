"""FastAPI app factory.

Endpoints are intentionally thin wrappers over the orchestrator services.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from workflow_studio import __version__
from workflow_studio.orchestrator.config import OrchestratorSettings
from workflow_studio.orchestrator.generation.process_registry import resolve_cli_command
from workflow_studio.orchestrator.generation.service import GenerationService
from workflow_studio.orchestrator.storage.workflow_store import WorkflowStore
from workflow_studio.server.config import ServerSettings
from workflow_studio.server.studio_router import router as studio_router

logger = logging.getLogger(__name__)


def create_app(
    settings: OrchestratorSettings | None = None,
    server_settings: ServerSettings | None = None,
) -> FastAPI:
    settings = settings or OrchestratorSettings()
    server_settings = server_settings or ServerSettings()

    service = GenerationService(command=resolve_cli_command(settings.cli_command))
    store = WorkflowStore.from_settings(settings)

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        yield
        # In-flight requests do not survive a restart; stop their processes.
        await service.registry.shutdown()

    app = FastAPI(
        title="Workflow Studio",
        version=__version__,
        description="REST API over the workflow-studio generation and storage services.",
        openapi_url="/api/openapi.json",
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        lifespan=lifespan,
    )

    app.state.orchestrator_settings = settings
    app.state.server_settings = server_settings
    app.state.generation_service = service
    app.state.workflow_store = store

    app.add_middleware(
        CORSMiddleware,
        allow_origins=server_settings.parsed_cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/api/health")
    def health() -> dict[str, object]:
        return {
            "status": "ok",
            "version": __version__,
            "offline": settings.offline.is_offline,
            "activeRoot": str(store.active_root),
        }

    app.include_router(studio_router, prefix="/api")

    logger.info(
        "Server app created",
        extra={"active_root": str(store.active_root), "offline": settings.offline.is_offline},
    )
    return app

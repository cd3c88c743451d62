"""Generation and workflow endpoints used by the editor UI.

All routes are mounted under `/api`.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncIterator
from typing import Any

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import StreamingResponse

from workflow_studio.orchestrator.config import OrchestratorSettings
from workflow_studio.orchestrator.generation.models import (
    CancelResult,
    ExecutionResult,
    GenerationRequest,
    StreamChunk,
)
from workflow_studio.orchestrator.generation.service import GenerationService
from workflow_studio.orchestrator.storage.file_service import FileOperationError
from workflow_studio.orchestrator.storage.models import WorkflowDocument
from workflow_studio.orchestrator.storage.workflow_store import (
    InvalidWorkflowName,
    LoadedWorkflow,
    WorkflowNotFound,
    WorkflowStore,
)
from workflow_studio.server.models import (
    ApiError,
    GenerateRequestBody,
    LoadWorkflowPayload,
    OfflineConfigPayload,
    SaveWorkflowPayload,
    WorkflowListPayload,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _settings(request: Request) -> OrchestratorSettings:
    settings = getattr(request.app.state, "orchestrator_settings", None)
    if not isinstance(settings, OrchestratorSettings):
        # This should never happen for the real app, but keeps the API fail-fast.
        raise HTTPException(status_code=500, detail="Orchestrator settings not configured")
    return settings


def _service(request: Request) -> GenerationService:
    service = getattr(request.app.state, "generation_service", None)
    if not isinstance(service, GenerationService):
        raise HTTPException(status_code=500, detail="Generation service not configured")
    return service


def _store(request: Request) -> WorkflowStore:
    store = getattr(request.app.state, "workflow_store", None)
    if not isinstance(store, WorkflowStore):
        raise HTTPException(status_code=500, detail="Workflow store not configured")
    return store


def _error(status_code: int, code: str, message: str, details: Any = None) -> HTTPException:
    return HTTPException(
        status_code=status_code,
        detail=ApiError(code=code, message=message, details=details).model_dump(mode="json"),
    )


def _to_generation_request(
    body: GenerateRequestBody, settings: OrchestratorSettings
) -> GenerationRequest:
    return GenerationRequest(
        request_id=body.requestId,
        prompt=body.prompt,
        timeout_ms=body.timeoutMs or settings.default_timeout_ms,
        model=body.model or settings.default_model,
        working_directory=body.workingDirectory,
        allowed_tools=body.allowedTools,
    )


@router.get("/offline-config", response_model=OfflineConfigPayload)
def offline_config(request: Request) -> OfflineConfigPayload:
    offline = _settings(request).offline
    return OfflineConfigPayload(
        isOffline=offline.is_offline,
        disableCloudApi=offline.disable_cloud_api,
        localStoragePath=offline.local_storage_path,
    )


@router.post("/generations", response_model=ExecutionResult)
async def generate(body: GenerateRequestBody, request: Request) -> ExecutionResult:
    gen_request = _to_generation_request(body, _settings(request))
    return await _service(request).execute(gen_request)


@router.post("/generations/stream")
async def generate_stream(body: GenerateRequestBody, request: Request) -> StreamingResponse:
    """Stream NDJSON: one `progress` line per chunk, then a single `result` line."""

    gen_request = _to_generation_request(body, _settings(request))
    service = _service(request)

    async def events() -> AsyncIterator[str]:
        queue: asyncio.Queue[dict[str, object] | None] = asyncio.Queue()

        def on_progress(chunk: StreamChunk) -> None:
            queue.put_nowait({"type": "progress", "requestId": body.requestId, **chunk.to_json()})

        async def run() -> None:
            try:
                result = await service.execute_streaming(gen_request, on_progress)
                queue.put_nowait(
                    {
                        "type": "result",
                        "requestId": body.requestId,
                        "result": result.model_dump(mode="json"),
                    }
                )
            finally:
                queue.put_nowait(None)

        task = asyncio.create_task(run())
        try:
            while True:
                item = await queue.get()
                if item is None:
                    break
                yield json.dumps(item, ensure_ascii=False) + "\n"
            await task
        finally:
            if not task.done():
                # Client went away mid-stream.
                task.cancel()

    return StreamingResponse(events(), media_type="application/x-ndjson")


@router.post("/generations/{request_id}/cancel", response_model=CancelResult)
def cancel_generation(request_id: str, request: Request) -> CancelResult:
    return _service(request).cancel_generation(request_id)


@router.post("/refinements/{request_id}/cancel", response_model=CancelResult)
def cancel_refinement(request_id: str, request: Request) -> CancelResult:
    return _service(request).cancel_refinement(request_id)


@router.get("/workflows", response_model=WorkflowListPayload)
async def list_workflows(request: Request) -> WorkflowListPayload:
    return WorkflowListPayload(workflows=await _store(request).list_all())


@router.get("/workflows/{name}", response_model=LoadWorkflowPayload)
async def load_workflow(name: str, request: Request) -> LoadWorkflowPayload:
    try:
        loaded = await _store(request).load(name)
    except InvalidWorkflowName as e:
        raise _error(400, "INVALID_NAME", str(e)) from e

    if isinstance(loaded, WorkflowNotFound):
        raise _error(
            404,
            loaded.code,
            loaded.message,
            details={"checked": [r.label for r in loaded.checked]},
        )
    if not isinstance(loaded, LoadedWorkflow):
        raise _error(500, loaded.code, loaded.message)
    return LoadWorkflowPayload(workflow=loaded.document, source=loaded.source.label)


@router.put("/workflows/{name}", response_model=SaveWorkflowPayload)
async def save_workflow(
    name: str, document: WorkflowDocument, request: Request
) -> SaveWorkflowPayload:
    try:
        path = await _store(request).save(name, document)
    except InvalidWorkflowName as e:
        raise _error(400, "INVALID_NAME", str(e)) from e
    except FileOperationError as e:
        raise _error(500, e.code, str(e)) from e
    return SaveWorkflowPayload(name=name, path=str(path))

"""Workflow document persistence across workspace and offline roots."""

from workflow_studio.orchestrator.storage.file_service import (
    DirectoryEntry,
    FileOperationError,
    FileSystem,
    LocalFileSystem,
)
from workflow_studio.orchestrator.storage.migration import CURRENT_SCHEMA_VERSION, migrate_workflow
from workflow_studio.orchestrator.storage.models import WorkflowDocument, WorkflowSummary
from workflow_studio.orchestrator.storage.workflow_store import (
    InvalidWorkflowName,
    LoadedWorkflow,
    LoadResult,
    StorageLayout,
    StorageRoot,
    WorkflowLoadFailed,
    WorkflowNotFound,
    WorkflowStore,
    resolve_active_root,
)

__all__ = [
    "CURRENT_SCHEMA_VERSION",
    "DirectoryEntry",
    "FileOperationError",
    "FileSystem",
    "InvalidWorkflowName",
    "LoadResult",
    "LoadedWorkflow",
    "LocalFileSystem",
    "StorageLayout",
    "StorageRoot",
    "WorkflowDocument",
    "WorkflowLoadFailed",
    "WorkflowNotFound",
    "WorkflowStore",
    "WorkflowSummary",
    "migrate_workflow",
    "resolve_active_root",
]

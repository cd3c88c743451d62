"""Workflow persistence across several storage roots.

Writes always go to the active root (the offline directory in offline mode,
the workspace directory otherwise). Reads consult the roots in precedence
order: active, then the offline directory when offline, then the workspace
directory kept for workflows saved by older versions.

The same workflow name may exist in several roots. Those files are separate
documents; they are only merged when presenting the list.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Literal

from pydantic import ValidationError

from workflow_studio.orchestrator.config import OrchestratorSettings
from workflow_studio.orchestrator.storage.file_service import (
    FileOperationError,
    FileSystem,
    LocalFileSystem,
)
from workflow_studio.orchestrator.storage.migration import migrate_workflow
from workflow_studio.orchestrator.storage.models import WorkflowDocument, WorkflowSummary

logger = logging.getLogger(__name__)

WORKFLOW_SUFFIX = ".json"

RootLabel = Literal["current", "offline", "workspace"]


class InvalidWorkflowName(ValueError):
    pass


@dataclass(frozen=True, slots=True)
class StorageRoot:
    label: RootLabel
    path: Path


@dataclass(frozen=True, slots=True)
class StorageLayout:
    """The active (write) root plus the de-duplicated read roots in precedence order."""

    active: StorageRoot
    read_roots: tuple[StorageRoot, ...]

    @classmethod
    def from_settings(cls, settings: OrchestratorSettings) -> StorageLayout:
        workspace = settings.workspace_workflows_dir
        offline = settings.offline_workflows_dir
        is_offline = settings.offline.is_offline

        active = StorageRoot("current", offline if is_offline else workspace)
        candidates = [active]
        if is_offline:
            candidates.append(StorageRoot("offline", offline))
        candidates.append(StorageRoot("workspace", workspace))
        return cls(active=active, read_roots=dedupe_roots(candidates))


def dedupe_roots(roots: list[StorageRoot]) -> tuple[StorageRoot, ...]:
    seen: set[Path] = set()
    unique: list[StorageRoot] = []
    for root in roots:
        key = root.path.resolve()
        if key in seen:
            continue
        seen.add(key)
        unique.append(root)
    return tuple(unique)


def resolve_active_root(settings: OrchestratorSettings) -> Path:
    return StorageLayout.from_settings(settings).active.path


def validate_workflow_name(name: str) -> str:
    if not name or not name.strip():
        raise InvalidWorkflowName("Workflow name must not be empty")
    if "/" in name or "\\" in name or name in {".", ".."}:
        raise InvalidWorkflowName(f"Invalid workflow name: {name!r}")
    return name


def workflow_file_path(root: Path, name: str) -> Path:
    return root / f"{validate_workflow_name(name)}{WORKFLOW_SUFFIX}"


def _utc_now_iso() -> str:
    return datetime.now(tz=UTC).isoformat()


def _updated_sort_key(value: str) -> datetime:
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return datetime.min.replace(tzinfo=UTC)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def _summarize(workflow_id: str, raw: object, root: StorageRoot) -> WorkflowSummary:
    data: dict[str, Any] = raw if isinstance(raw, dict) else {}
    name = data.get("name")
    description = data.get("description")
    updated_at = data.get("updatedAt")
    return WorkflowSummary(
        id=workflow_id,
        name=name if isinstance(name, str) and name else workflow_id,
        description=description if isinstance(description, str) else None,
        updatedAt=updated_at if isinstance(updated_at, str) and updated_at else _utc_now_iso(),
        source=root.label,
    )


@dataclass(frozen=True, slots=True)
class LoadedWorkflow:
    document: WorkflowDocument
    source: StorageRoot
    path: Path

    ok = True


@dataclass(frozen=True, slots=True)
class WorkflowNotFound:
    name: str
    checked: tuple[StorageRoot, ...]

    ok = False
    code = "NOT_FOUND"

    @property
    def message(self) -> str:
        where = ", ".join(f"{r.label} ({r.path})" for r in self.checked)
        return f'Workflow "{self.name}" not found in any storage location: {where}'


@dataclass(frozen=True, slots=True)
class WorkflowLoadFailed:
    name: str
    path: Path
    code: Literal["IO_ERROR", "PARSE_ERROR"]
    message: str

    ok = False


LoadResult = LoadedWorkflow | WorkflowNotFound | WorkflowLoadFailed


class WorkflowStore:
    def __init__(self, layout: StorageLayout, files: FileSystem | None = None) -> None:
        self.layout = layout
        self._files: FileSystem = files or LocalFileSystem()

    @classmethod
    def from_settings(
        cls, settings: OrchestratorSettings, files: FileSystem | None = None
    ) -> WorkflowStore:
        return cls(StorageLayout.from_settings(settings), files)

    @property
    def active_root(self) -> Path:
        return self.layout.active.path

    async def ensure_root(self, root: Path) -> None:
        if not await self._files.exists(root):
            await self._files.create_directory(root)

    async def save(self, name: str, document: WorkflowDocument | dict[str, Any]) -> Path:
        """Write ``document`` to the active root, overwriting any existing file.

        Raises:
            InvalidWorkflowName: If ``name`` cannot be used as a file name.
            FileOperationError: If the directory or file cannot be written.
        """

        path = workflow_file_path(self.active_root, name)
        doc = (
            document
            if isinstance(document, WorkflowDocument)
            else WorkflowDocument.model_validate(document)
        )
        if doc.updatedAt is None:
            doc = doc.model_copy(update={"updatedAt": _utc_now_iso()})

        await self.ensure_root(self.active_root)
        payload = json.dumps(doc.model_dump(mode="json"), indent=2, ensure_ascii=False) + "\n"
        await self._files.write(path, payload.encode("utf-8"))
        logger.info("Workflow saved", extra={"workflow": name, "path": str(path)})
        return path

    async def load(self, name: str) -> LoadResult:
        """Load ``name`` from the first root that has it, migrated to the current schema."""

        validate_workflow_name(name)
        checked: list[StorageRoot] = []
        found: tuple[StorageRoot, Path] | None = None
        for root in self.layout.read_roots:
            checked.append(root)
            path = workflow_file_path(root.path, name)
            try:
                present = await self._files.exists(path)
            except FileOperationError:
                # An unreachable root is treated like one without the file.
                logger.warning(
                    "Failed to check workflow file",
                    extra={"workflow": name, "root": root.label, "path": str(path)},
                    exc_info=True,
                )
                continue
            if present:
                found = (root, path)
                break

        if found is None:
            not_found = WorkflowNotFound(name=name, checked=tuple(checked))
            logger.info(not_found.message, extra={"workflow": name})
            return not_found

        root, path = found
        try:
            data = await self._files.read(path)
        except FileOperationError as e:
            logger.error("Failed to read workflow", extra={"workflow": name, "path": str(path)})
            return WorkflowLoadFailed(name=name, path=path, code="IO_ERROR", message=str(e))

        try:
            raw = json.loads(data.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            return WorkflowLoadFailed(name=name, path=path, code="PARSE_ERROR", message=str(e))

        migrated = migrate_workflow(raw)
        if not isinstance(migrated.get("name"), str) or not migrated["name"]:
            migrated["name"] = name
        try:
            document = WorkflowDocument.model_validate(migrated)
        except ValidationError as e:
            return WorkflowLoadFailed(name=name, path=path, code="PARSE_ERROR", message=str(e))

        logger.info(
            "Workflow loaded",
            extra={"workflow": name, "source": root.label, "path": str(path)},
        )
        return LoadedWorkflow(document=document, source=root, path=path)

    async def list_all(self) -> list[WorkflowSummary]:
        """Summaries from every read root, newest first.

        A name claimed by an earlier root is never re-added by a later one.
        Missing or unreadable roots contribute nothing.
        """

        summaries: list[WorkflowSummary] = []
        seen: set[str] = set()
        for root in self.layout.read_roots:
            summaries.extend(await self._list_root(root, seen))

        # sort() is stable with reverse=True: ties keep scan order.
        summaries.sort(key=lambda s: _updated_sort_key(s.updatedAt), reverse=True)
        logger.info(
            "Workflow list loaded",
            extra={"count": len(summaries), "roots": [r.label for r in self.layout.read_roots]},
        )
        return summaries

    async def _list_root(self, root: StorageRoot, seen: set[str]) -> list[WorkflowSummary]:
        try:
            if not await self._files.exists(root.path):
                logger.info(
                    "No workflows directory", extra={"root": root.label, "path": str(root.path)}
                )
                return []
            entries = await self._files.read_directory(root.path)
        except Exception:
            logger.warning(
                "Failed to enumerate workflows directory",
                extra={"root": root.label, "path": str(root.path)},
                exc_info=True,
            )
            return []

        summaries: list[WorkflowSummary] = []
        for entry in entries:
            if not entry.is_file or not entry.name.endswith(WORKFLOW_SUFFIX):
                continue
            workflow_id = entry.name[: -len(WORKFLOW_SUFFIX)]
            if not workflow_id or workflow_id in seen:
                continue
            path = root.path / entry.name
            try:
                raw = json.loads((await self._files.read(path)).decode("utf-8"))
            except (FileOperationError, UnicodeDecodeError, json.JSONDecodeError):
                logger.error(
                    "Failed to parse workflow file",
                    extra={"root": root.label, "path": str(path)},
                    exc_info=True,
                )
                continue
            summaries.append(_summarize(workflow_id, raw, root))
            seen.add(workflow_id)
        return summaries

"""Async file primitives used by the workflow store.

The store only talks to a :class:`FileSystem`; an editor host can provide its
own. :class:`LocalFileSystem` runs pathlib calls in worker threads so the
event loop never blocks on disk I/O.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

logger = logging.getLogger(__name__)


class FileOperationError(Exception):
    """A file-system operation failed; carries the operation and path."""

    code = "IO_ERROR"

    def __init__(self, operation: str, path: Path, message: str) -> None:
        super().__init__(f"{operation} failed for {path}: {message}")
        self.operation = operation
        self.path = path
        self.message = message


@dataclass(frozen=True, slots=True)
class DirectoryEntry:
    name: str
    is_file: bool


class FileSystem(Protocol):
    async def read(self, path: Path) -> bytes: ...

    async def write(self, path: Path, data: bytes) -> None: ...

    async def exists(self, path: Path) -> bool: ...

    async def create_directory(self, path: Path) -> None: ...

    async def read_directory(self, path: Path) -> list[DirectoryEntry]: ...


def _list_entries(path: Path) -> list[DirectoryEntry]:
    return [DirectoryEntry(name=p.name, is_file=p.is_file()) for p in sorted(path.iterdir())]


class LocalFileSystem:
    async def read(self, path: Path) -> bytes:
        try:
            data = await asyncio.to_thread(path.read_bytes)
        except OSError as e:
            raise FileOperationError("read file", path, str(e)) from e
        logger.debug("Read file", extra={"path": str(path), "bytes": len(data)})
        return data

    async def write(self, path: Path, data: bytes) -> None:
        try:
            await asyncio.to_thread(path.write_bytes, data)
        except OSError as e:
            raise FileOperationError("write file", path, str(e)) from e
        logger.debug("Wrote file", extra={"path": str(path), "bytes": len(data)})

    async def exists(self, path: Path) -> bool:
        try:
            return await asyncio.to_thread(path.exists)
        except OSError as e:
            raise FileOperationError("stat", path, str(e)) from e

    async def create_directory(self, path: Path) -> None:
        try:
            await asyncio.to_thread(path.mkdir, parents=True, exist_ok=True)
        except OSError as e:
            raise FileOperationError("create directory", path, str(e)) from e
        logger.debug("Created directory", extra={"path": str(path)})

    async def read_directory(self, path: Path) -> list[DirectoryEntry]:
        try:
            return await asyncio.to_thread(_list_entries, path)
        except OSError as e:
            raise FileOperationError("read directory", path, str(e)) from e

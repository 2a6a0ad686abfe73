"""
Blob storage for event and background images.

The repository only talks to ``BlobStore``; ``LocalBlobStore`` keeps blobs on
the local filesystem and serves them under ``MEDIA_BASE_URL``.
"""

import asyncio
from abc import ABC, abstractmethod
from pathlib import Path, PurePosixPath

from timeline_studio.errors import BlobStoreError
from timeline_studio.logging import get_logger

logger = get_logger('services.blob_store')


class BlobStore(ABC):
    """Storage collaborator keyed by slash-separated paths."""

    @abstractmethod
    async def put(self, path: str, data: bytes, content_type: str | None = None) -> str:
        """Store ``data`` at ``path`` and return a retrievable URL."""

    @abstractmethod
    async def url_for(self, path: str) -> str:
        """Return the retrievable URL of a stored path."""

    @abstractmethod
    async def delete(self, path: str) -> None:
        """Delete ``path``. Deleting a missing path is not an error."""

    @abstractmethod
    async def exists(self, path: str) -> bool:
        """Whether a blob is stored at ``path``."""

    @abstractmethod
    async def list(self, prefix: str) -> list[str]:
        """Stored paths starting with ``prefix``, sorted."""


class LocalBlobStore(BlobStore):
    """Filesystem-backed blob store."""

    def __init__(self, root: str, base_url: str = "/media"):
        self.root = Path(root).resolve()
        self.base_url = base_url.rstrip("/")
        self.root.mkdir(parents=True, exist_ok=True)

    def _resolve(self, path: str) -> Path:
        relative = PurePosixPath(path)
        if relative.is_absolute() or ".." in relative.parts or not relative.parts:
            raise ValueError(f"Invalid blob path: {path!r}")
        target = (self.root / relative).resolve()
        if self.root not in target.parents:
            raise ValueError(f"Blob path escapes storage root: {path!r}")
        return target

    async def put(self, path: str, data: bytes, content_type: str | None = None) -> str:
        target = self._resolve(path)

        def _write() -> None:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)

        try:
            await asyncio.to_thread(_write)
        except OSError as exc:
            raise BlobStoreError(f"Failed to store {path}: {exc}") from exc

        logger.debug(f"Stored blob {path} ({len(data)} bytes)")
        return await self.url_for(path)

    async def url_for(self, path: str) -> str:
        self._resolve(path)
        return f"{self.base_url}/{path}"

    async def delete(self, path: str) -> None:
        target = self._resolve(path)
        try:
            await asyncio.to_thread(target.unlink, missing_ok=True)
        except OSError as exc:
            raise BlobStoreError(f"Failed to delete {path}: {exc}") from exc
        logger.debug(f"Deleted blob {path}")

    async def exists(self, path: str) -> bool:
        target = self._resolve(path)
        return await asyncio.to_thread(target.is_file)

    async def list(self, prefix: str) -> list[str]:
        def _walk() -> list[str]:
            paths = []
            for file_path in self.root.rglob("*"):
                if not file_path.is_file():
                    continue
                relative = file_path.relative_to(self.root).as_posix()
                if relative.startswith(prefix):
                    paths.append(relative)
            return sorted(paths)

        try:
            return await asyncio.to_thread(_walk)
        except OSError as exc:
            raise BlobStoreError(f"Failed to list {prefix}: {exc}") from exc

"""Object storage for listing photos and profile avatars.

Objects are addressed by path (``listings/{listingId}.{ext}``,
``users/{uid}.{ext}``) and referenced from documents by their public URL.
"""

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

from krishisetu.services.exceptions import BackendError

logger = logging.getLogger(__name__)


def object_path(prefix: str, owner_id: str, filename: Optional[str]) -> str:
    """Build the storage path for an upload, keeping the original extension."""
    ext = "jpg"
    if filename and "." in filename:
        candidate = filename.rsplit(".", 1)[-1].lower()
        if candidate.isalnum():
            ext = candidate
    safe_id = owner_id.replace("/", "_").replace("\\", "_")
    return f"{prefix}/{safe_id}.{ext}"


class ObjectStorage(ABC):
    """Binary blob storage with public URLs."""

    @abstractmethod
    async def put(self, path: str, content: bytes, content_type: Optional[str] = None) -> str:
        """Store content under path and return its public URL."""

    @abstractmethod
    async def delete_by_url(self, url: str) -> None:
        """Delete the object a public URL points at. Raises BackendError on failure."""


class LocalObjectStorage(ObjectStorage):
    """Stores objects on disk below ``root``; the app serves them at ``/uploads``."""

    def __init__(self, root: str | Path, public_base_url: str):
        self.root = Path(root)
        self.public_prefix = f"{public_base_url.rstrip('/')}/uploads/"

    def _resolve(self, path: str) -> Path:
        target = (self.root / path).resolve()
        if self.root.resolve() not in target.parents:
            raise BackendError(f"Refusing to touch {path!r} outside the uploads directory")
        return target

    async def put(self, path: str, content: bytes, content_type: Optional[str] = None) -> str:
        target = self._resolve(path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(content)
        except OSError as e:
            raise BackendError(f"Failed to store {path}: {e}") from e
        logger.info("Stored object %s (%d bytes)", path, len(content))
        return self.public_prefix + path

    async def delete_by_url(self, url: str) -> None:
        if not url.startswith(self.public_prefix):
            raise BackendError(f"URL is not served by this storage: {url}")
        target = self._resolve(url[len(self.public_prefix):])
        try:
            target.unlink()
        except OSError as e:
            raise BackendError(f"Failed to delete {url}: {e}") from e


class MemoryObjectStorage(ObjectStorage):
    """Dict-backed storage for tests and demo mode."""

    def __init__(self, public_base_url: str = "memory://"):
        self.public_prefix = public_base_url.rstrip("/") + "/"
        self.objects: dict[str, tuple[bytes, Optional[str]]] = {}

    async def put(self, path: str, content: bytes, content_type: Optional[str] = None) -> str:
        self.objects[path] = (content, content_type)
        return self.public_prefix + path

    async def delete_by_url(self, url: str) -> None:
        path = url[len(self.public_prefix):] if url.startswith(self.public_prefix) else url
        if self.objects.pop(path, None) is None:
            raise BackendError(f"No object at {url}")

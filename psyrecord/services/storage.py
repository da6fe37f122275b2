"""
Binary object storage for session documents.

``BlobStore`` is the narrow interface the repository depends on; the local
implementation keeps encrypted files under a root directory, namespaced by
owning user and session.
"""

from __future__ import annotations

import logging
import os
import re
import time
from pathlib import Path
from typing import Protocol
from uuid import UUID

from psyrecord.config import settings
from psyrecord.errors import StorageError
from psyrecord.services.encryption import EncryptionService

logger = logging.getLogger(__name__)


class BlobStore(Protocol):
    def store(self, path: str, data: bytes) -> None: ...

    def fetch(self, path: str) -> bytes: ...

    def delete(self, path: str) -> None: ...


def build_document_path(user_id: UUID, session_id: UUID, filename: str, index: int = 0) -> str:
    """``<user>/<session>/<ms-timestamp>-<n>.<ext>``; the original name is not kept."""
    ext = re.sub(r"[^a-z0-9]", "", Path(filename or "").suffix.lower()) or "bin"
    return f"{user_id}/{session_id}/{int(time.time() * 1000)}-{index}.{ext}"


class LocalBlobStore:
    def __init__(self, root: str | os.PathLike, encryption: EncryptionService):
        self.root = Path(root).resolve()
        self.encryption = encryption

    def _resolve(self, path: str) -> Path:
        target = (self.root / path).resolve()
        if target == self.root or self.root not in target.parents:
            raise StorageError(f"Invalid storage path: {path}")
        return target

    def store(self, path: str, data: bytes) -> None:
        target = self._resolve(path)
        if target.exists():
            raise StorageError(f"Object already exists: {path}")
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(self.encryption.encrypt(data))
        except OSError as exc:
            raise StorageError(f"Could not store {path}: {exc}") from exc
        logger.info("Stored object %s (%d bytes)", path, len(data))

    def fetch(self, path: str) -> bytes:
        target = self._resolve(path)
        try:
            return self.encryption.decrypt(target.read_bytes())
        except FileNotFoundError as exc:
            raise StorageError(f"Object not found: {path}") from exc
        except OSError as exc:
            raise StorageError(f"Could not read {path}: {exc}") from exc

    def delete(self, path: str) -> None:
        target = self._resolve(path)
        try:
            target.unlink(missing_ok=True)
        except OSError as exc:
            raise StorageError(f"Could not delete {path}: {exc}") from exc
        logger.info("Deleted object %s", path)


_default_store: LocalBlobStore | None = None


def get_blob_store() -> BlobStore:
    """FastAPI dependency returning the process-wide blob store."""
    global _default_store
    if _default_store is None:
        _default_store = LocalBlobStore(
            settings.STORAGE_ROOT, EncryptionService(settings.STORAGE_ENCRYPTION_KEY)
        )
    return _default_store

"""Blob storage for uploaded invoice PDFs.

The services need ``store(data, filename, content_type) -> url`` and
``delete(url)`` to drop a blob whose database write was rolled back. The
local implementation writes into ``BLOB_STORE_DIR`` under a random key and
returns a URL rooted at ``BLOB_PUBLIC_BASE_URL``; any storage failure is
surfaced as ``UploadFailed``.
"""
from __future__ import annotations

import uuid
from pathlib import Path
from typing import Optional, Protocol

from creator_rewards.config import BLOB_PUBLIC_BASE_URL, BLOB_STORE_DIR
from creator_rewards.errors import UploadFailed
from creator_rewards.utils import get_logger

logger = get_logger(__name__)


class BlobStore(Protocol):
    def store(self, data: bytes, filename: str, content_type: str) -> str: ...

    def delete(self, url: str) -> None: ...


class LocalBlobStore:
    def __init__(self, base_dir: Optional[str] = None, base_url: Optional[str] = None):
        self.base_dir = Path(base_dir or BLOB_STORE_DIR)
        self.base_url = (base_url or BLOB_PUBLIC_BASE_URL).rstrip("/")

    def store(self, data: bytes, filename: str, content_type: str) -> str:
        suffix = Path(filename).suffix.lower() or ".bin"
        key = f"invoices/{uuid.uuid4().hex}{suffix}"
        target = self.base_dir / key
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        except OSError as e:
            logger.error("Blob upload failed", key=key, error=str(e), exc_info=True)
            raise UploadFailed("Could not store the uploaded file") from e
        logger.info("Blob stored", key=key, size_bytes=len(data), content_type=content_type)
        return f"{self.base_url}/{key}"

    def delete(self, url: str) -> None:
        """Remove a stored blob; a missing file is ignored."""
        if not url.startswith(self.base_url + "/"):
            logger.warning("Blob delete skipped: foreign url", url=url)
            return
        key = url[len(self.base_url) + 1:]
        try:
            (self.base_dir / key).unlink(missing_ok=True)
        except OSError as e:
            logger.error("Blob delete failed", key=key, error=str(e))
            return
        logger.info("Blob deleted", key=key)


_default_store: Optional[BlobStore] = None


def get_blob_store() -> BlobStore:
    global _default_store
    if _default_store is None:
        _default_store = LocalBlobStore()
    return _default_store


__all__ = ["BlobStore", "LocalBlobStore", "get_blob_store"]

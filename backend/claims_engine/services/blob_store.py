"""
Attachment blob store.

The engine treats stored files as opaque handles. LocalBlobStore keeps
them on disk under `blob_storage_dir`; file I/O runs in a worker thread.
"""

import asyncio
import logging
from pathlib import Path
from typing import Protocol
from uuid import uuid4

from claims_engine.config import settings
from claims_engine.domain import AttachmentRef
from claims_engine.errors import ValidationError

logger = logging.getLogger(__name__)


class BlobStore(Protocol):
    async def put(self, filename: str, content_type: str, data: bytes, document_type: str) -> AttachmentRef: ...


def check_upload(field: str, filename: str | None, content_type: str | None, data: bytes) -> dict[str, str]:
    """Return per-field errors for one uploaded file (empty when acceptable)."""
    errors: dict[str, str] = {}
    name = filename or "upload"
    if content_type not in settings.attachment_types:
        errors[field] = f"{name}: unsupported file type {content_type or 'unknown'}"
    elif not data:
        errors[field] = f"{name}: file is empty"
    elif len(data) > settings.max_attachment_bytes:
        limit_mb = settings.max_attachment_bytes / (1024 * 1024)
        errors[field] = f"{name}: exceeds the {limit_mb:g} MB limit"
    return errors


class LocalBlobStore:
    def __init__(self, root: str | Path | None = None):
        self.root = Path(root or settings.blob_storage_dir)

    def _write(self, handle: str, data: bytes) -> None:
        path = self.root / handle
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)

    async def put(self, filename: str, content_type: str, data: bytes, document_type: str) -> AttachmentRef:
        # Handles never contain caller-controlled path segments
        suffix = Path(filename).suffix.lower()[:10]
        handle = f"{uuid4().hex[:2]}/{uuid4().hex}{suffix}"
        await asyncio.to_thread(self._write, handle, data)
        logger.debug("Stored %s (%d bytes) as %s", filename, len(data), handle)
        return AttachmentRef(
            filename=Path(filename).name[:255] or "upload",
            content_type=content_type,
            storage_handle=handle,
            document_type=document_type,
            size_bytes=len(data),
        )

    async def get(self, handle: str) -> bytes:
        path = (self.root / handle).resolve()
        if self.root.resolve() not in path.parents:
            raise ValidationError("Invalid storage handle", {"handle": "outside blob store"})
        return await asyncio.to_thread(path.read_bytes)

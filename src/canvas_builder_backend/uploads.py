"""
Storage for images uploaded alongside image elements.

Persistent deployments write uploads under the configured upload directory;
stateless deployments (no writable disk) keep the raw bytes in memory for
the lifetime of the process.
"""

from __future__ import annotations

import logging
import secrets
import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional
from uuid import uuid4

from omegaconf import DictConfig

from .models import StoredImage
from .utils import ensure_directory, sanitize_filename

logger = logging.getLogger(__name__)


class UploadStore(ABC):
    @abstractmethod
    def save(self, data: bytes, filename: str, content_type: Optional[str] = None) -> StoredImage:
        """Persist an uploaded image and return a reference to it."""

    @abstractmethod
    def read(self, stored: StoredImage) -> Optional[bytes]:
        """Return the bytes behind ``stored``, or None if this store cannot resolve it."""


class DiskUploadStore(UploadStore):
    def __init__(self, upload_root: Path) -> None:
        self.upload_root = ensure_directory(Path(upload_root))

    def save(self, data: bytes, filename: str, content_type: Optional[str] = None) -> StoredImage:
        upload_dir = ensure_directory(self.upload_root / uuid4().hex)
        destination = upload_dir / sanitize_filename(filename or "image")
        destination.write_bytes(data)
        logger.info(f"Stored upload {filename!r} at {destination} ({len(data)} bytes)")
        return StoredImage(storage="disk", path=str(destination), mimetype=content_type, filename=filename)

    def read(self, stored: StoredImage) -> Optional[bytes]:
        if stored.storage != "disk" or not stored.path:
            return None
        return Path(stored.path).resolve().read_bytes()


class MemoryUploadStore(UploadStore):
    def __init__(self) -> None:
        self._buffers: Dict[str, bytes] = {}

    def save(self, data: bytes, filename: str, content_type: Optional[str] = None) -> StoredImage:
        buffer_id = f"mem_{int(time.time() * 1000)}_{secrets.token_hex(4)}"
        self._buffers[buffer_id] = data
        logger.info(f"Stored upload {filename!r} in memory as {buffer_id} ({len(data)} bytes)")
        return StoredImage(storage="memory", id=buffer_id, mimetype=content_type, filename=filename)

    def read(self, stored: StoredImage) -> Optional[bytes]:
        if stored.storage != "memory" or not stored.id:
            return None
        return self._buffers.get(stored.id)


def build_upload_store(settings: DictConfig) -> UploadStore:
    if settings.deployment.stateless:
        return MemoryUploadStore()
    return DiskUploadStore(Path(settings.uploads.dir))

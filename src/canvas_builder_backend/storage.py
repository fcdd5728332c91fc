"""
Canvas record storage.

A ``CanvasStore`` owns the create/get/append contract for canvas records and
delegates persistence to a pluggable backend:

- ``JsonFileBackend``: one JSON file per canvas identifier (durable)
- ``MemoryBackend``: an in-process dictionary (lost on process exit)
- ``SqliteBackend``: one SQLite row per canvas (see ``database``)

Every mutation is a full read-modify-write of the record; no partial updates.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from threading import Lock
from typing import Any, Dict, Optional

from omegaconf import DictConfig

from .errors import CanvasNotFoundError
from .models import Canvas, Element, StorageBackend
from .utils import ensure_directory, sanitize_filename

logger = logging.getLogger(__name__)


class CanvasBackend(ABC):
    """Medium holding raw canvas records keyed by canvas identifier."""

    name: str = "abstract"

    @abstractmethod
    def load(self, canvas_id: str) -> Optional[Dict[str, Any]]:
        """Return the stored record, or None if there is none."""

    @abstractmethod
    def save(self, canvas_id: str, record: Dict[str, Any]) -> None:
        """Replace the whole record for ``canvas_id``."""


class MemoryBackend(CanvasBackend):
    name = StorageBackend.MEMORY.value

    def __init__(self) -> None:
        # Records are kept serialized so callers never share mutable state
        self._records: Dict[str, str] = {}

    def load(self, canvas_id: str) -> Optional[Dict[str, Any]]:
        raw = self._records.get(canvas_id)
        return json.loads(raw) if raw is not None else None

    def save(self, canvas_id: str, record: Dict[str, Any]) -> None:
        self._records[canvas_id] = json.dumps(record)


class JsonFileBackend(CanvasBackend):
    name = StorageBackend.FILE.value

    def __init__(self, data_dir: Path) -> None:
        self.data_dir = ensure_directory(Path(data_dir))

    def _path(self, canvas_id: str) -> Path:
        return self.data_dir / f"{sanitize_filename(canvas_id, fallback='canvas')}.json"

    def load(self, canvas_id: str) -> Optional[Dict[str, Any]]:
        path = self._path(canvas_id)
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning(f"Could not read canvas record {path}: {exc}")
            return None

    def save(self, canvas_id: str, record: Dict[str, Any]) -> None:
        path = self._path(canvas_id)
        ensure_directory(path.parent)
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.stem}-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(record, handle)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise


class CanvasStore:
    """
    Keyed store of canvases with create/get/append semantics.

    Thread Safety:
        ``create`` and ``append`` hold a lock across the read-modify-write so
        concurrent requests in one process never drop an appended element.
        Separate processes sharing the same medium are still last-write-wins.
    """

    def __init__(self, backend: CanvasBackend) -> None:
        self.backend = backend
        self._lock = Lock()

    def create(self, canvas_id: str, width: int, height: int) -> Canvas:
        canvas = Canvas(width=width, height=height, elements=[])
        with self._lock:
            self.backend.save(canvas_id, canvas.to_record())
        logger.info(f"Created canvas {canvas_id} ({width}x{height}) in {self.backend.name} store")
        return canvas

    def get(self, canvas_id: str) -> Optional[Canvas]:
        record = self.backend.load(canvas_id)
        if record is None:
            return None
        return Canvas.model_validate(record)

    def append(self, canvas_id: str, element: Element) -> Canvas:
        with self._lock:
            canvas = self.get(canvas_id)
            if canvas is None:
                raise CanvasNotFoundError(canvas_id)
            canvas.elements.append(element)
            self.backend.save(canvas_id, canvas.to_record())
        logger.debug(f"Appended {element.type} element #{len(canvas.elements)} to canvas {canvas_id}")
        return canvas


def build_backend(settings: DictConfig) -> CanvasBackend:
    backend = StorageBackend(settings.storage.backend)
    if backend is StorageBackend.MEMORY:
        return MemoryBackend()
    if backend is StorageBackend.SQLITE:
        from .database import SqliteBackend

        return SqliteBackend(Path(settings.storage.db_path))
    return JsonFileBackend(Path(settings.storage.data_dir))

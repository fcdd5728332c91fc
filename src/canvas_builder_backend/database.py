"""
SQLite database for persistent canvas storage.

This module provides a SQLite-based backend for the canvas store, ensuring
canvases survive server restarts without relying on one JSON file per canvas.
"""

import json
import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from .models import StorageBackend
from .storage import CanvasBackend

logger = logging.getLogger(__name__)

# Default database path
DEFAULT_DB_PATH = Path("data/canvas.db")


def _ensure_db_dir(db_path: Path) -> None:
    """Ensure the database directory exists."""
    db_path.parent.mkdir(parents=True, exist_ok=True)


class SqliteBackend(CanvasBackend):
    """
    SQLite medium for canvas records.

    Each canvas is a single row; saving replaces the whole row inside one
    transaction, so a record is never left half written.
    """

    name = StorageBackend.SQLITE.value

    def __init__(self, db_path: Path = DEFAULT_DB_PATH):
        self.db_path = db_path
        _ensure_db_dir(db_path)
        self._init_db()

    @contextmanager
    def _get_connection(self):
        """Get a database connection with proper settings."""
        conn = sqlite3.connect(str(self.db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_db(self) -> None:
        """Initialize database schema."""
        with self._get_connection() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS canvases (
                    id TEXT PRIMARY KEY,
                    width INTEGER NOT NULL,
                    height INTEGER NOT NULL,
                    elements TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)

    def save(self, canvas_id: str, record: Dict[str, Any]) -> None:
        with self._get_connection() as conn:
            conn.execute("""
                INSERT OR REPLACE INTO canvases (id, width, height, elements, updated_at)
                VALUES (?, ?, ?, ?, ?)
            """, (
                canvas_id,
                record["width"],
                record["height"],
                json.dumps(record.get("elements", [])),
                datetime.now(timezone.utc).isoformat(),
            ))

    def load(self, canvas_id: str) -> Optional[Dict[str, Any]]:
        """
        Retrieve a canvas record by ID.

        Returns:
            Canvas record dictionary, or None if not found or the database
            cannot be read
        """
        try:
            with self._get_connection() as conn:
                row = conn.execute(
                    "SELECT width, height, elements FROM canvases WHERE id = ?", (canvas_id,)
                ).fetchone()
        except sqlite3.Error as exc:
            logger.warning(f"Could not read canvas {canvas_id} from {self.db_path}: {exc}")
            return None

        if not row:
            return None

        return {
            "width": row["width"],
            "height": row["height"],
            "elements": json.loads(row["elements"] or "[]"),
        }


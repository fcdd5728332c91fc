"""
Pytest configuration and fixtures for Canvas Builder Backend tests.
"""

import os
import shutil
import tempfile
from io import BytesIO

import pytest
from fastapi.testclient import TestClient
from PIL import Image

# Set test environment variables before importing the app
os.environ["CANVAS_DATA_DIR"] = tempfile.mkdtemp(prefix="canvas_test_data_")
os.environ["UPLOAD_DIR"] = tempfile.mkdtemp(prefix="canvas_test_uploads_")
os.environ["CANVAS_STORAGE_BACKEND"] = "file"
os.environ["CANVAS_RENDER_MODE"] = "raster"
os.environ["APP_ENV"] = "test"

from canvas_builder_backend.configuration import make_settings
from canvas_builder_backend.main import app, create_app


@pytest.fixture(scope="session", autouse=True)
def test_dirs():
    """Cleanup the directories used by the module-level app."""
    data_dir = os.environ["CANVAS_DATA_DIR"]
    upload_dir = os.environ["UPLOAD_DIR"]

    yield {
        "data": data_dir,
        "upload": upload_dir,
    }

    shutil.rmtree(data_dir, ignore_errors=True)
    shutil.rmtree(upload_dir, ignore_errors=True)


@pytest.fixture
def settings_factory(tmp_path):
    """Build isolated settings rooted in a per-test temporary directory."""

    def _make(**overrides):
        base = {
            "storage.data_dir": str(tmp_path / "data"),
            "storage.db_path": str(tmp_path / "data" / "canvas.db"),
            "uploads.dir": str(tmp_path / "uploads"),
            "deployment.environment": "test",
        }
        base.update(overrides)
        return make_settings(overrides=base, environ={})

    return _make


@pytest.fixture
def client(settings_factory):
    """Create a test client for a fresh app with file storage and raster export."""
    return TestClient(create_app(settings_factory()))


@pytest.fixture
def module_client():
    """Test client for the module-level app used by uvicorn."""
    return TestClient(app)


@pytest.fixture
def png_bytes():
    """A 4x4 opaque green PNG."""
    buffer = BytesIO()
    Image.new("RGB", (4, 4), (0, 255, 0)).save(buffer, format="PNG")
    return buffer.getvalue()

"""
Tests for settings loading.
"""

import pytest

from canvas_builder_backend.configuration import make_settings


def test_defaults_without_environment():
    settings = make_settings(environ={})
    assert settings.canvas.default_id == "default_canvas"
    assert settings.storage.backend == "file"
    assert settings.render.mode == "raster"
    assert settings.deployment.stateless is False
    assert list(settings.server.cors_origins) == ["http://localhost:3000"]


def test_environment_overrides():
    settings = make_settings(
        environ={
            "CANVAS_STORAGE_BACKEND": "SQLite",
            "CANVAS_RENDER_MODE": "text",
            "CANVAS_IMAGE_TIMEOUT": "2.5",
            "FRONTEND_URL": "https://a.example, https://b.example",
            "LOG_LEVEL": "debug",
        }
    )
    assert settings.storage.backend == "sqlite"
    assert settings.render.mode == "text"
    assert settings.render.image_timeout == 2.5
    assert list(settings.server.cors_origins) == ["https://a.example", "https://b.example"]
    assert settings.logging.level == "DEBUG"


@pytest.mark.parametrize("environ", [{"VERCEL": "1"}, {"VERCEL_URL": "canvas.vercel.app"}, {"CANVAS_STATELESS": "true"}])
def test_stateless_deployment_detection(environ):
    assert make_settings(environ=environ).deployment.stateless is True


def test_explicit_overrides_win_over_environment():
    settings = make_settings(overrides={"render.mode": "raster"}, environ={"CANVAS_RENDER_MODE": "text"})
    assert settings.render.mode == "raster"


def test_yaml_config_file(tmp_path):
    config_path = tmp_path / "config.yaml"
    config_path.write_text("storage:\n  backend: memory\ncanvas:\n  default_id: poster\n", encoding="utf-8")
    settings = make_settings(config_path=config_path, environ={})
    assert settings.storage.backend == "memory"
    assert settings.canvas.default_id == "poster"
    assert settings.render.mode == "raster"


@pytest.mark.parametrize("environ", [{"CANVAS_STORAGE_BACKEND": "redis"}, {"CANVAS_RENDER_MODE": "svg"}, {"CANVAS_IMAGE_TIMEOUT": "soon"}])
def test_invalid_values_are_rejected(environ):
    with pytest.raises(ValueError):
        make_settings(environ=environ)

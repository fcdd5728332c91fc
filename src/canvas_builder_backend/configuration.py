from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

from dotenv import load_dotenv
from omegaconf import DictConfig, OmegaConf

from .models import RenderMode, StorageBackend

load_dotenv()

_HERE = Path(__file__).resolve()
_CANDIDATE_CONFIG_PATHS = [parent / "config/config.yaml" for parent in _HERE.parents[:5]]

DEFAULTS: Dict[str, Any] = {
    "canvas": {"default_id": "default_canvas"},
    "storage": {
        "backend": StorageBackend.FILE.value,
        "data_dir": "data",
        "db_path": "data/canvas.db",
    },
    "uploads": {"dir": "uploads"},
    "render": {
        "mode": RenderMode.RASTER.value,
        "font_path": None,
        "image_timeout": 10.0,
    },
    "deployment": {"stateless": False, "environment": "development"},
    "server": {"cors_origins": ["http://localhost:3000"]},
    "logging": {"level": "INFO"},
}


def _as_bool(value: str) -> bool:
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _as_list(value: str) -> List[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


# env var -> (dotted config key, converter)
ENV_OVERRIDES: Dict[str, Tuple[str, Callable[[str], Any]]] = {
    "CANVAS_ID": ("canvas.default_id", str),
    "CANVAS_STORAGE_BACKEND": ("storage.backend", str.lower),
    "CANVAS_DATA_DIR": ("storage.data_dir", str),
    "CANVAS_DB_PATH": ("storage.db_path", str),
    "UPLOAD_DIR": ("uploads.dir", str),
    "CANVAS_RENDER_MODE": ("render.mode", str.lower),
    "CANVAS_FONT_PATH": ("render.font_path", str),
    "CANVAS_IMAGE_TIMEOUT": ("render.image_timeout", float),
    "CANVAS_STATELESS": ("deployment.stateless", _as_bool),
    "NODE_ENV": ("deployment.environment", str.lower),
    "APP_ENV": ("deployment.environment", str.lower),
    "FRONTEND_URL": ("server.cors_origins", _as_list),
    "LOG_LEVEL": ("logging.level", str.upper),
}


def find_config_file() -> Optional[Path]:
    return next((path for path in _CANDIDATE_CONFIG_PATHS if path.exists()), None)


def _env_overrides(environ: Dict[str, str]) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    # Vercel marks its serverless runtime with these variables
    if environ.get("VERCEL") == "1" or environ.get("VERCEL_URL"):
        overrides["deployment.stateless"] = True
    for name, (key, convert) in ENV_OVERRIDES.items():
        raw = environ.get(name)
        if raw is None or raw == "":
            continue
        try:
            overrides[key] = convert(raw)
        except ValueError as exc:
            raise ValueError(f"Invalid value for {name}: {raw!r}") from exc
    return overrides


def _validate(config: DictConfig) -> None:
    backends = {backend.value for backend in StorageBackend}
    if config.storage.backend not in backends:
        raise ValueError(f"storage.backend must be one of {sorted(backends)}, got {config.storage.backend!r}")
    modes = {mode.value for mode in RenderMode}
    if config.render.mode not in modes:
        raise ValueError(f"render.mode must be one of {sorted(modes)}, got {config.render.mode!r}")


def make_settings(
    overrides: Optional[Dict[str, Any]] = None,
    config_path: Optional[Path] = None,
    environ: Optional[Dict[str, str]] = None,
) -> DictConfig:
    """
    Build the runtime settings.

    Layers, lowest precedence first: built-in defaults, the YAML config file,
    environment variables, then explicit dotted-key ``overrides``.
    """
    base = OmegaConf.create(DEFAULTS)
    OmegaConf.set_struct(base, True)

    layers = []
    path = config_path or find_config_file()
    if path is not None:
        layers.append(OmegaConf.load(path))

    env = dict(os.environ) if environ is None else environ
    for key, value in {**_env_overrides(env), **(overrides or {})}.items():
        dotted = OmegaConf.create()
        OmegaConf.update(dotted, key, value, force_add=True)
        layers.append(dotted)

    merged = DictConfig(OmegaConf.merge(base, *layers))
    _validate(merged)
    return merged


@lru_cache(maxsize=1)
def load_settings() -> DictConfig:
    return make_settings()


def settings_summary(settings: DictConfig) -> Dict[str, Any]:
    return OmegaConf.to_container(settings, resolve=True, enum_to_str=True)  # type: ignore[return-value]

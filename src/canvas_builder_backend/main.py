from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse, Response
from fastapi.staticfiles import StaticFiles
from omegaconf import DictConfig
from starlette.concurrency import run_in_threadpool
from starlette.datastructures import UploadFile

from .canvas_service import CanvasService, UploadedImage
from .configuration import load_settings, settings_summary
from .errors import CanvasNotFoundError, InvalidCanvasError, InvalidElementError
from .middleware import RequestLoggingMiddleware
from .models import Canvas, CanvasCreated, ElementAdded, HealthStatus, RenderMode, StorageBackend
from .utils import ensure_directory

logger = logging.getLogger(__name__)

UPLOAD_FIELD = "imageFile"

router = APIRouter(prefix="/api/canvas", tags=["canvas"])


def get_canvas_service(request: Request) -> CanvasService:
    return request.app.state.canvas_service


async def _read_payload(request: Request) -> Tuple[Dict[str, Any], Optional[UploadedImage]]:
    """Accept either a JSON body or a (multipart) form with an optional image upload."""
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("application/json"):
        try:
            payload = await request.json()
        # Covers malformed JSON and bodies that are not valid UTF-8
        except ValueError as exc:  # noqa: BLE001
            raise HTTPException(status_code=400, detail="Invalid JSON payload") from exc
        if not isinstance(payload, dict):
            raise HTTPException(status_code=400, detail="JSON payload must be an object")
        return payload, None

    form = await request.form()
    payload = {key: value for key, value in form.items() if not isinstance(value, UploadFile)}
    upload = None
    file = form.get(UPLOAD_FIELD)
    if isinstance(file, UploadFile):
        data = await file.read()
        await file.close()
        if data:
            upload = UploadedImage(data=data, filename=file.filename or "image", content_type=file.content_type)
    return payload, upload


@router.post("/create", response_model=CanvasCreated)
async def create_canvas(request: Request, service: CanvasService = Depends(get_canvas_service)) -> CanvasCreated:
    payload, _ = await _read_payload(request)
    try:
        canvas = await run_in_threadpool(service.create_canvas, payload)
    except InvalidCanvasError as exc:  # noqa: BLE001
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return CanvasCreated(width=canvas.width, height=canvas.height)


@router.post("/add", response_model=ElementAdded)
async def add_element(request: Request, service: CanvasService = Depends(get_canvas_service)) -> ElementAdded:
    payload, upload = await _read_payload(request)
    try:
        element = await run_in_threadpool(service.add_element, payload, upload)
    except (CanvasNotFoundError, InvalidElementError) as exc:  # noqa: BLE001
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return ElementAdded(element=element.to_record())


@router.get("/export")
async def export_pdf(service: CanvasService = Depends(get_canvas_service)) -> Response:
    try:
        pdf = await service.export_pdf()
    except CanvasNotFoundError as exc:  # noqa: BLE001
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": "attachment; filename=canvas.pdf"},
    )


@router.get("", response_model=Canvas, response_model_by_alias=True)
def get_canvas(service: CanvasService = Depends(get_canvas_service)) -> Canvas:
    canvas = service.get_canvas()
    if canvas is None:
        raise HTTPException(status_code=404, detail="Canvas not found")
    return canvas


def create_app(settings: Optional[DictConfig] = None, service: Optional[CanvasService] = None) -> FastAPI:
    settings = settings if settings is not None else load_settings()
    logging.basicConfig(
        level=settings.logging.level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(title="Canvas Builder API", version="0.1.0")
    app.state.settings = settings
    app.state.canvas_service = service or CanvasService.from_settings(settings)

    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.server.cors_origins),
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Origin", "X-Requested-With", "Content-Type", "Accept", "Authorization"],
    )

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=exc)
        content: Dict[str, Any] = {"detail": "Server error"}
        if settings.deployment.environment != "production":
            content.update(error=str(exc), path=request.url.path, method=request.method)
        return JSONResponse(status_code=500, content=content)

    @app.get("/", response_class=PlainTextResponse)
    def index() -> str:
        return "Canvas Builder API is running"

    @app.get("/healthz", response_model=HealthStatus)
    def healthcheck() -> HealthStatus:
        return HealthStatus(
            status="ok",
            environment=settings.deployment.environment,
            render_mode=RenderMode(settings.render.mode),
            storage_backend=StorageBackend(settings.storage.backend),
        )

    app.include_router(router)
    if not settings.deployment.stateless:
        uploads_dir = ensure_directory(Path(settings.uploads.dir))
        app.mount("/uploads", StaticFiles(directory=str(uploads_dir)), name="uploads")
    logger.info(f"Canvas Builder API configured: {settings_summary(settings)}")
    return app


app = create_app()

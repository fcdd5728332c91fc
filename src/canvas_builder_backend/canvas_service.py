"""
Canvas lifecycle coordination.

This module ties the pieces of the export pipeline together:
- Canvas creation and element appends through the canvas store
- Saving uploaded images through the upload store
- Rendering and PDF export, with a text fallback when rasterization is off

The CanvasService class is the single object request handlers talk to; it is
built once per application from the runtime settings.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from omegaconf import DictConfig
from starlette.concurrency import run_in_threadpool

from . import exporter
from .errors import CanvasNotFoundError
from .ingestion import normalize_element, parse_dimensions
from .models import Canvas, Element, RenderMode
from .renderer import RenderEngine
from .storage import CanvasStore, build_backend
from .uploads import UploadStore, build_upload_store

logger = logging.getLogger(__name__)


@dataclass
class UploadedImage:
    """Raw image file received with an element payload."""

    data: bytes
    filename: str
    content_type: Optional[str] = None


class CanvasService:
    """
    Central coordinator for the single-canvas workflow.

    Attributes:
        store: Canvas record store
        uploads: Store for uploaded image files
        renderer: Raster render engine (unused in text render mode)
        render_mode: Whether exports rasterize or fall back to a text listing
        canvas_id: Identifier of the canvas every request operates on
    """

    def __init__(
        self,
        store: CanvasStore,
        uploads: UploadStore,
        renderer: RenderEngine,
        render_mode: RenderMode = RenderMode.RASTER,
        canvas_id: str = "default_canvas",
    ) -> None:
        self.store = store
        self.uploads = uploads
        self.renderer = renderer
        self.render_mode = render_mode
        self.canvas_id = canvas_id

    @classmethod
    def from_settings(cls, settings: DictConfig) -> "CanvasService":
        uploads = build_upload_store(settings)
        renderer = RenderEngine(
            uploads,
            font_path=settings.render.font_path,
            image_timeout=float(settings.render.image_timeout),
        )
        return cls(
            store=CanvasStore(build_backend(settings)),
            uploads=uploads,
            renderer=renderer,
            render_mode=RenderMode(settings.render.mode),
            canvas_id=settings.canvas.default_id,
        )

    def create_canvas(self, payload: Mapping[str, Any]) -> Canvas:
        """
        Create (or replace) the canvas from a ``{width, height}`` payload.

        Raises:
            InvalidCanvasError: If either dimension is missing or not positive
        """
        width, height = parse_dimensions(payload)
        return self.store.create(self.canvas_id, width, height)

    def get_canvas(self) -> Optional[Canvas]:
        return self.store.get(self.canvas_id)

    def require_canvas(self) -> Canvas:
        canvas = self.get_canvas()
        if canvas is None:
            raise CanvasNotFoundError(self.canvas_id)
        return canvas

    def add_element(self, payload: Mapping[str, Any], upload: Optional[UploadedImage] = None) -> Element:
        """
        Normalize a payload into an element and append it to the canvas.

        The canvas and the element type are checked before an upload is
        stored, so a rejected request leaves no orphaned file behind.

        Raises:
            CanvasNotFoundError: If no canvas has been created
            InvalidElementError: If the payload has no ``type``
        """
        self.require_canvas()
        normalize_element(payload)

        stored_image = None
        if upload is not None and upload.data:
            stored_image = self.uploads.save(upload.data, upload.filename, upload.content_type)

        element = normalize_element(payload, stored_image)
        self.store.append(self.canvas_id, element)
        return element

    async def export_pdf(self) -> bytes:
        canvas = await run_in_threadpool(self.require_canvas)
        if self.render_mode is RenderMode.TEXT:
            logger.info(f"Exporting canvas {self.canvas_id} as text summary ({len(canvas.elements)} elements)")
            return await run_in_threadpool(exporter.export_summary, canvas)

        logger.info(f"Rendering canvas {self.canvas_id} ({canvas.width}x{canvas.height}, {len(canvas.elements)} elements)")
        image = await self.renderer.render(canvas)
        return await run_in_threadpool(exporter.export_raster, image, canvas.width, canvas.height)

"""
Raster render engine.

Replays a canvas's elements, in insertion order, onto a white Pillow surface
of exactly the canvas size. Later elements paint over earlier ones. Drawing
is best effort: an element that fails (unreachable URL, undecodable image,
unknown colour) is logged and skipped and the replay carries on.

Only remote fetches run on the event loop. Local reads, decoding and drawing
are handed to the threadpool one element at a time, so insertion order holds.
"""

from __future__ import annotations

import base64
import binascii
import logging
import os
from io import BytesIO
from pathlib import Path
from typing import Dict, Optional, Tuple, Union

import httpx
from PIL import Image, ImageColor, ImageDraw, ImageFont
from starlette.concurrency import run_in_threadpool

from .models import Canvas, Element, ElementType
from .uploads import UploadStore

logger = logging.getLogger(__name__)

BACKGROUND = (255, 255, 255)

# Generic sans-serif faces, first match wins
SANS_FONT_CANDIDATES = [
    "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf",
    "/usr/share/fonts/dejavu/DejaVuSans.ttf",
    "/usr/share/fonts/truetype/liberation/LiberationSans-Regular.ttf",
    "/usr/share/fonts/liberation-sans/LiberationSans-Regular.ttf",
    "/System/Library/Fonts/Helvetica.ttc",
    "/Library/Fonts/Arial.ttf",
    "C:\\Windows\\Fonts\\arial.ttf",
]

FontType = Union[ImageFont.FreeTypeFont, ImageFont.ImageFont]


class RenderEngine:
    """
    Turns a ``Canvas`` into a flattened RGB image.

    Args:
        upload_store: Resolves uploaded-file references on image elements
        font_path: TrueType font to use for text; system sans fonts otherwise
        image_timeout: Seconds allowed for fetching one remote image
        transport: Optional httpx transport (used by tests to stub the network)
    """

    def __init__(
        self,
        upload_store: UploadStore,
        font_path: Optional[str] = None,
        image_timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.upload_store = upload_store
        self.image_timeout = image_timeout
        self._transport = transport
        self._font_path = font_path or next((path for path in SANS_FONT_CANDIDATES if os.path.exists(path)), None)
        self._font_cache: Dict[int, FontType] = {}

    async def render(self, canvas: Canvas) -> Image.Image:
        surface = Image.new("RGB", (canvas.width, canvas.height), BACKGROUND)
        # RGBA draw mode blends translucent fills into the opaque surface
        draw = ImageDraw.Draw(surface, "RGBA")

        async with httpx.AsyncClient(
            timeout=self.image_timeout,
            transport=self._transport,
            follow_redirects=True,
        ) as client:
            for index, element in enumerate(canvas.elements):
                try:
                    await self._draw_element(surface, draw, element, client)
                except Exception as exc:  # noqa: BLE001
                    logger.warning(f"Skipping element {index} ({element.type}): {exc}")

        return surface

    async def _draw_element(
        self,
        surface: Image.Image,
        draw: ImageDraw.ImageDraw,
        element: Element,
        client: httpx.AsyncClient,
    ) -> None:
        if element.type == ElementType.RECTANGLE:
            await run_in_threadpool(self._draw_rectangle, draw, element)
        elif element.type == ElementType.CIRCLE:
            await run_in_threadpool(self._draw_circle, draw, element)
        elif element.type == ElementType.TEXT:
            await run_in_threadpool(self._draw_text, draw, element)
        elif element.type == ElementType.IMAGE:
            await self._draw_image(surface, element, client)
        else:
            logger.debug(f"Ignoring element with unsupported type {element.type!r}")

    def _draw_rectangle(self, draw: ImageDraw.ImageDraw, element: Element) -> None:
        if not element.width or not element.height:
            return
        x0, x1 = sorted((element.x, element.x + element.width))
        y0, y1 = sorted((element.y, element.y + element.height))
        # Pillow includes the far edge; a canvas box of width w covers w pixels
        draw.rectangle([x0, y0, max(x0, x1 - 1), max(y0, y1 - 1)], fill=parse_color(element.color))

    def _draw_circle(self, draw: ImageDraw.ImageDraw, element: Element) -> None:
        radius = element.radius
        if radius <= 0:
            return
        box = [element.x - radius, element.y - radius, element.x + radius, element.y + radius]
        draw.ellipse(box, fill=parse_color(element.color))

    def _draw_text(self, draw: ImageDraw.ImageDraw, element: Element) -> None:
        if not element.text:
            return
        font = self._font(element.font_size)
        anchor = "la" if isinstance(font, ImageFont.FreeTypeFont) else None
        draw.text((element.x, element.y), element.text, fill=parse_color(element.color), font=font, anchor=anchor)

    def _font(self, size: float) -> FontType:
        pixels = max(1, int(round(size)))
        if pixels not in self._font_cache:
            if self._font_path:
                self._font_cache[pixels] = ImageFont.truetype(self._font_path, pixels)
            else:
                self._font_cache[pixels] = ImageFont.load_default(size=pixels)
        return self._font_cache[pixels]

    async def _draw_image(self, surface: Image.Image, element: Element, client: httpx.AsyncClient) -> None:
        data = await self._load_image_bytes(element, client)
        if data is None:
            logger.debug("Image element has no resolvable source; skipping")
            return

        await run_in_threadpool(self._paste_image, surface, element, data)

    def _paste_image(self, surface: Image.Image, element: Element, data: bytes) -> None:
        with Image.open(BytesIO(data)) as source:
            image = source.convert("RGBA")

        width = int(round(element.width)) if element.width else image.width
        height = int(round(element.height)) if element.height else image.height
        if width <= 0 or height <= 0:
            logger.debug(f"Image element has non-positive size {width}x{height}; skipping")
            return
        if (width, height) != image.size:
            image = image.resize((width, height), Image.Resampling.LANCZOS)

        surface.paste(image, (int(round(element.x)), int(round(element.y))), image)

    async def _load_image_bytes(self, element: Element, client: httpx.AsyncClient) -> Optional[bytes]:
        """Resolve an image element's pixels: remote URL, then uploaded file, then legacy path."""
        if element.image_url:
            if element.image_url.startswith("data:"):
                return decode_data_url(element.image_url)
            response = await client.get(element.image_url)
            response.raise_for_status()
            return response.content

        return await run_in_threadpool(self._read_local_image, element)

    def _read_local_image(self, element: Element) -> Optional[bytes]:
        if element.file_data is not None:
            data = self.upload_store.read(element.file_data)
            if data is not None:
                return data

        if element.file_path:
            return Path(element.file_path).resolve().read_bytes()

        return None


def parse_color(value: str) -> Tuple[int, ...]:
    """Parse a CSS colour string (hex, rgb(), hsl() or a named colour)."""
    try:
        rgb = ImageColor.getrgb(value.strip())
    except ValueError as exc:
        raise ValueError(f"Unsupported color {value!r}") from exc
    return rgb if len(rgb) == 4 else (*rgb, 255)


def decode_data_url(url: str) -> bytes:
    header, _, payload = url.partition(",")
    if not header.endswith(";base64"):
        raise ValueError("Only base64 data URLs are supported")
    try:
        return base64.b64decode(payload, validate=True)
    except binascii.Error as exc:
        raise ValueError(f"Invalid base64 image data: {exc}") from exc

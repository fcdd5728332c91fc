"""
PDF export of a canvas.

Two renditions are available:

- ``export_raster``: a single page exactly the canvas size in points, holding
  the rendered raster at the origin.
- ``export_summary``: the text fallback used when rasterization is not
  available. It lists every field of every element instead of drawing them.

Documents are written with reportlab's ``invariant`` flag so exporting an
unchanged canvas twice yields identical bytes.
"""

from __future__ import annotations

import textwrap
from io import BytesIO
from typing import List, Tuple

from PIL import Image
from reportlab.lib import colors
from reportlab.lib.pagesizes import LETTER
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen.canvas import Canvas as PdfCanvas

from .models import Canvas, Element, ElementType
from .utils import format_number

FALLBACK_NOTE = (
    "Note: Visual rendering is not available in this deployment. "
    "This is a text representation of your canvas."
)
EMPTY_CANVAS_TEXT = "No elements added to canvas"

MARGIN = 72
WRAP_CHARS = 90

# (font size, line height) per text role
STYLES = {
    "title": (20, 30),
    "body": (12, 18),
    "heading": (16, 24),
    "element": (14, 20),
    "detail": (10, 14),
}


def _new_canvas(buffer: BytesIO, pagesize: Tuple[float, float]) -> PdfCanvas:
    pdf = PdfCanvas(buffer, pagesize=pagesize, invariant=1, pageCompression=0)
    pdf.setTitle("Canvas Export")
    pdf.setCreator("canvas-builder-backend")
    return pdf


def export_raster(image: Image.Image, width: int, height: int) -> bytes:
    buffer = BytesIO()
    pdf = _new_canvas(buffer, (width, height))
    pdf.drawImage(ImageReader(image), 0, 0, width=width, height=height)
    pdf.showPage()
    pdf.save()
    return buffer.getvalue()


def describe_element(index: int, element: Element) -> List[Tuple[str, str]]:
    """Return the (style, text) lines describing one element."""
    lines = [
        ("element", f"Element {index}: {element.type}"),
        ("detail", f"Position: ({format_number(element.x)}, {format_number(element.y)})"),
    ]
    if element.type == ElementType.RECTANGLE:
        lines.append(("detail", f"Size: {format_number(element.width)} x {format_number(element.height)}"))
    elif element.type == ElementType.CIRCLE:
        lines.append(("detail", f"Radius: {format_number(element.radius)}"))
    elif element.type == ElementType.TEXT:
        lines.append(("detail", f'Text: "{element.text}"'))
        lines.append(("detail", f"Font Size: {format_number(element.font_size)}"))
    elif element.type == ElementType.IMAGE:
        if element.width or element.height:
            lines.append(("detail", f"Size: {format_number(element.width)} x {format_number(element.height)}"))
        else:
            lines.append(("detail", "Size: natural"))
        if element.image_url:
            source = element.image_url if not element.image_url.startswith("data:") else "embedded data URL"
            lines.append(("detail", f"Image URL: {source}"))
        elif element.file_data is not None:
            name = element.file_data.filename or element.file_data.path or element.file_data.id
            lines.append(("detail", f"Uploaded file: {name} ({element.file_data.storage})"))
        elif element.file_path:
            lines.append(("detail", f"File path: {element.file_path}"))
        else:
            lines.append(("detail", "Image source: none"))
    lines.append(("detail", f"Color: {element.color}"))
    return lines


def summary_lines(canvas: Canvas) -> List[Tuple[str, str]]:
    lines = [
        ("title", "Canvas Export"),
        ("body", f"Canvas Size: {canvas.width} x {canvas.height}"),
        ("heading", "Elements:"),
    ]
    if not canvas.elements:
        lines.append(("body", EMPTY_CANVAS_TEXT))
    for index, element in enumerate(canvas.elements, start=1):
        lines.extend(describe_element(index, element))
        lines.append(("gap", ""))
    lines.append(("note", FALLBACK_NOTE))
    return lines


def _wrap(text: str, width: int = WRAP_CHARS) -> List[str]:
    return textwrap.wrap(text, width, break_long_words=True) or [text]


def export_summary(canvas: Canvas) -> bytes:
    buffer = BytesIO()
    page_width, page_height = LETTER
    pdf = _new_canvas(buffer, LETTER)
    y = page_height - MARGIN

    for style, text in summary_lines(canvas):
        if style == "gap":
            y -= STYLES["detail"][1]
            continue

        if style == "note":
            pdf.setFillColor(colors.gray)
            font_size, line_height = STYLES["detail"]
        else:
            pdf.setFillColor(colors.black)
            font_size, line_height = STYLES[style]
        font = "Helvetica-Bold" if style in {"title", "heading", "element"} else "Helvetica"

        for chunk in _wrap(text):
            if y - line_height < MARGIN:
                pdf.showPage()
                y = page_height - MARGIN
                pdf.setFillColor(colors.gray if style == "note" else colors.black)
            pdf.setFont(font, font_size)
            if style in {"title", "note"}:
                pdf.drawCentredString(page_width / 2, y - font_size, chunk)
            else:
                pdf.drawString(MARGIN, y - font_size, chunk)
            y -= line_height

    pdf.showPage()
    pdf.save()
    return buffer.getvalue()

"""
Normalization of client payloads into canvas dimensions and elements.

Clients send loosely typed values (form fields arrive as strings, numeric
fields may be blank). Coercion here is deliberately lenient: anything that
is not a usable non-zero number becomes the field's default instead of a
validation error. Only ``width``/``height`` on create and ``type`` on add
are required.

The legacy ``filePath`` field is never taken from a client payload; it only
appears in records written by older deployments.
"""

from __future__ import annotations

import math
from typing import Any, Mapping, Optional, Tuple

from .errors import InvalidCanvasError, InvalidElementError
from .models import Element, StoredImage

DEFAULT_COLOR = "#000000"
DEFAULT_FONT_SIZE = 16.0

NUMERIC_FIELDS = ("x", "y", "width", "height", "radius")


def coerce_number(value: Any, default: float = 0.0) -> float:
    """
    Convert ``value`` to a float, falling back to ``default``.

    None, blank or non-numeric strings, NaN/infinity and zero all yield the
    default, so ``coerce_number("0", 16)`` is 16.
    """
    if value is None:
        return default
    if isinstance(value, bool):
        number = float(value)
    elif isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip()) if value.strip() else 0.0
        except ValueError:
            return default
    else:
        return default
    if not math.isfinite(number) or number == 0:
        return default
    return number


def _text(value: Any, default: str = "") -> str:
    if value is None:
        return default
    text = str(value)
    return text if text else default


def parse_dimensions(payload: Mapping[str, Any]) -> Tuple[int, int]:
    width = coerce_number(payload.get("width"))
    height = coerce_number(payload.get("height"))
    if not width or not height:
        raise InvalidCanvasError("width and height required")
    width_px, height_px = int(round(width)), int(round(height))
    if width_px <= 0 or height_px <= 0:
        raise InvalidCanvasError("width and height must be positive")
    return width_px, height_px


def normalize_element(payload: Mapping[str, Any], stored_image: Optional[StoredImage] = None) -> Element:
    element_type = _text(payload.get("type")).strip()
    if not element_type:
        raise InvalidElementError("type is required")

    numbers = {name: coerce_number(payload.get(name)) for name in NUMERIC_FIELDS}

    return Element(
        type=element_type,
        **numbers,
        text=_text(payload.get("text")),
        color=_text(payload.get("color"), DEFAULT_COLOR),
        font_size=coerce_number(payload.get("fontSize"), DEFAULT_FONT_SIZE),
        image_url=_text(payload.get("imageUrl")).strip(),
        file_data=stored_image,
    )

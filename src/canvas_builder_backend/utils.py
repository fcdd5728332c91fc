"""
Utility functions for file system operations and value formatting.

This module provides helper functions for:
- Sanitizing uploaded filenames for safe filesystem usage
- Ensuring directory creation with proper error handling
- Formatting element numbers the way clients sent them
"""

from __future__ import annotations

import re
from pathlib import Path

# Pattern to match characters that are not safe for filesystem paths
# Allows: alphanumeric characters, dots, underscores, and hyphens
SANITIZE_PATTERN = re.compile(r"[^a-zA-Z0-9._-]+")

IMAGE_EXTENSIONS = {".png", ".jpg", ".jpeg", ".gif", ".bmp", ".webp"}


def sanitize_filename(filename: str, fallback: str = "image") -> str:
    """
    Generate a filesystem-safe filename from an uploaded file's name.

    Unsafe characters in the stem are replaced with hyphens and the extension
    is kept only when it is a known image extension.

    Args:
        filename: The original filename (may include a client-side path)
        fallback: Stem to use if sanitization results in an empty string

    Returns:
        A lowercase, filesystem-safe filename

    Example:
        >>> sanitize_filename("My Photo!.PNG")
        "my-photo.png"
        >>> sanitize_filename("@#$")
        "image"
    """
    stem, suffix = split_extension(filename)
    cleaned = SANITIZE_PATTERN.sub("-", stem.strip())
    cleaned = cleaned.strip("-_.").lower() or fallback
    suffix = suffix.lower()
    if suffix not in IMAGE_EXTENSIONS:
        suffix = ""
    return f"{cleaned}{suffix}"


def ensure_directory(path: Path) -> Path:
    """
    Create a directory if it doesn't exist, including parent directories.

    Args:
        path: The directory path to create

    Returns:
        The same path object for chaining

    Raises:
        OSError: If directory creation fails due to permissions or other I/O errors
    """
    path.mkdir(parents=True, exist_ok=True)
    return path


def split_extension(filename: str) -> tuple[str, str]:
    """
    Split a filename into stem and extension components.

    Example:
        >>> split_extension("photo.png")
        ("photo", ".png")
    """
    path = Path(filename)
    return path.stem, path.suffix


def format_number(value: float) -> str:
    """Render 10.0 as "10" and 2.5 as "2.5"."""
    if float(value).is_integer():
        return str(int(value))
    return f"{value:g}"

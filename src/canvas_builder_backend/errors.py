"""
Exceptions raised by the canvas core and translated to HTTP responses in main.
"""


class CanvasNotFoundError(LookupError):
    """Raised when an operation needs a canvas that has not been created."""

    def __init__(self, canvas_id: str) -> None:
        super().__init__(f"Canvas '{canvas_id}' not initialized. Please create a canvas first.")
        self.canvas_id = canvas_id


class InvalidCanvasError(ValueError):
    """Raised when canvas dimensions are missing or unusable."""


class InvalidElementError(ValueError):
    """Raised when an element payload lacks a required field."""

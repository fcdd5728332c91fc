from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class ElementType(str, Enum):
    RECTANGLE = "rectangle"
    CIRCLE = "circle"
    TEXT = "text"
    IMAGE = "image"


class RenderMode(str, Enum):
    RASTER = "raster"
    TEXT = "text"


class StorageBackend(str, Enum):
    FILE = "file"
    MEMORY = "memory"
    SQLITE = "sqlite"


class StoredImage(BaseModel):
    """Reference to an uploaded image held by an upload store."""

    storage: Literal["disk", "memory"]
    path: Optional[str] = None
    id: Optional[str] = None
    mimetype: Optional[str] = None
    filename: Optional[str] = None


class Element(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: str
    x: float = 0
    y: float = 0
    width: float = 0
    height: float = 0
    radius: float = 0
    text: str = ""
    color: str = "#000000"
    font_size: float = Field(16, alias="fontSize")
    image_url: str = Field("", alias="imageUrl")
    file_data: Optional[StoredImage] = Field(None, alias="fileData")
    file_path: Optional[str] = Field(None, alias="filePath")

    @property
    def image_source(self) -> Optional[str]:
        if self.image_url:
            return "url"
        if self.file_data is not None:
            return self.file_data.storage
        if self.file_path:
            return "path"
        return None

    def to_record(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


class Canvas(BaseModel):
    width: int
    height: int
    elements: List[Element] = Field(default_factory=list)

    def to_record(self) -> Dict[str, Any]:
        return {
            "width": self.width,
            "height": self.height,
            "elements": [element.to_record() for element in self.elements],
        }


class CanvasCreated(BaseModel):
    message: str = "Canvas created"
    width: int
    height: int


class ElementAdded(BaseModel):
    message: str = "Element added"
    element: Dict[str, Any]


class HealthStatus(BaseModel):
    status: str
    environment: str
    render_mode: RenderMode
    storage_backend: StorageBackend

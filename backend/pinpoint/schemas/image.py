"""Image request/response schemas."""

import uuid
from datetime import datetime
from typing import Any, List

from pydantic import Field, StrictInt

from pinpoint.schemas.common import CamelModel


class ImageOut(CamelModel):
    id: uuid.UUID
    user_id: uuid.UUID
    extension: str
    x: int
    y: int
    created_at: datetime
    updated_at: datetime


class AddImageInput(CamelModel):
    extension: str = Field(min_length=1, description="jpg, jpeg, png or gif")
    x: StrictInt = 0
    y: StrictInt = 0


class PositionPatch(CamelModel):
    """
    PATCH body for images and markers.

    Deliberately untyped: the store applies numeric values and ignores
    anything else, so `{"x": "left"}` is a no-op rather than a 400.
    """
    x: Any = None
    y: Any = None


class ImageOutput(CamelModel):
    image: ImageOut


class ImageListOutput(CamelModel):
    images: List[ImageOut]

"""
Marker & Comment request/response schemas.

A marker without an image serializes without `imageId`; marker routes and
realtime events dump with exclude_none.
"""

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import Field, StrictInt

from pinpoint.schemas.common import CamelModel


class MarkerOut(CamelModel):
    id: uuid.UUID
    image_id: Optional[uuid.UUID] = None
    x: int
    y: int
    created_at: datetime
    updated_at: datetime


class CommentOut(CamelModel):
    id: uuid.UUID
    marker_id: uuid.UUID
    user_id: uuid.UUID
    text: str
    created_at: datetime
    updated_at: datetime


class AddMarkerInput(CamelModel):
    """POST /api/Marker body: the marker plus its seed comment text."""
    image_id: Optional[uuid.UUID] = None
    x: StrictInt = 0
    y: StrictInt = 0
    text: str = Field(min_length=1)


class AddMarkerOutput(CamelModel):
    marker: MarkerOut
    comment: CommentOut


class MarkerOutput(CamelModel):
    marker: MarkerOut


class MarkerListOutput(CamelModel):
    markers: List[MarkerOut]


class AddCommentInput(CamelModel):
    text: str = Field(min_length=1)


class CommentOutput(CamelModel):
    comment: CommentOut


class CommentListOutput(CamelModel):
    comments: List[CommentOut]

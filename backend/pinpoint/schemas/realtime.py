"""
Realtime wire messages.

Server → client:
    {"event": "saved",   "data": {"image"|"marker"|"comment": {...}}}
    {"event": "removed", "data": {"imageId"|"markerId"|"commentId": "..."}}

Client → server:
    {"event": "subscribeMarker"|"unsubscribeMarker", "markerId": "..."}
"""

import uuid
from typing import Literal, Optional

from pinpoint.schemas.common import CamelModel
from pinpoint.schemas.image import ImageOut
from pinpoint.schemas.marker import CommentOut, MarkerOut


class Saved(CamelModel):
    image: Optional[ImageOut] = None
    marker: Optional[MarkerOut] = None
    comment: Optional[CommentOut] = None


class Removed(CamelModel):
    image_id: Optional[uuid.UUID] = None
    marker_id: Optional[uuid.UUID] = None
    comment_id: Optional[uuid.UUID] = None


class ClientMessage(CamelModel):
    event: Literal["subscribeMarker", "unsubscribeMarker"]
    marker_id: str


def wire(event: str, data: CamelModel) -> dict:
    """Envelope a payload for the socket, camelCase and without empty fields."""
    return {
        "event": event,
        "data": data.model_dump(mode="json", by_alias=True, exclude_none=True),
    }

"""ORM models; importing this package registers every table on Base.metadata."""

from pinpoint.models.comment import Comment
from pinpoint.models.image import EXTENSIONS, Image
from pinpoint.models.marker import Marker, topic_for_marker
from pinpoint.models.user import User

__all__ = ["Comment", "EXTENSIONS", "Image", "Marker", "User", "topic_for_marker"]

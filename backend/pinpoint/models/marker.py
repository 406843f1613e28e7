"""
Pinpoint Backend — Marker SQLAlchemy Model
===========================================

What:  The `markers` table: a positioned annotation point, optionally placed
       on an image (`image_id` NULL means the free-floating canvas).

Invariant (kept by EntityStore, not by the schema): a marker always has at
least one comment. Deleting a marker deletes its comments; deleting the
last comment deletes the marker.
"""

import uuid
from typing import Optional

from sqlalchemy import CheckConstraint, Integer, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column

from pinpoint.database import Base
from pinpoint.models.common import TimestampMixin


class Marker(TimestampMixin, Base):
    __tablename__ = "markers"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    # placed on
    image_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True, index=True)

    x: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default=text("0"))
    y: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default=text("0"))

    __table_args__ = (
        CheckConstraint("x >= 0", name="ck_markers_x_non_negative"),
        CheckConstraint("y >= 0", name="ck_markers_y_non_negative"),
    )

    @property
    def topic(self) -> str:
        """Realtime topic carrying this marker's comment thread."""
        return topic_for_marker(self.id)

    def __repr__(self) -> str:
        return f"<Marker(id={self.id}, image_id={self.image_id})>"


def topic_for_marker(marker_id: uuid.UUID) -> str:
    return f"Marker/{marker_id}/Comment"

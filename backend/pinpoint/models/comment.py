"""
Pinpoint Backend — Comment SQLAlchemy Model
============================================

What:  The `comments` table: one text entry in a marker's thread.

Both `marker_id` and `user_id` are validated by the store when the comment
is written. Listing a thread orders by `created_at` ascending.
"""

import uuid

from sqlalchemy import CheckConstraint, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from pinpoint.database import Base
from pinpoint.models.common import TimestampMixin


class Comment(TimestampMixin, Base):
    __tablename__ = "comments"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    # marker thread
    marker_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)

    # commenter
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)

    text: Mapped[str] = mapped_column(Text, nullable=False)

    __table_args__ = (
        CheckConstraint("length(text) >= 1", name="ck_comments_text_not_empty"),
    )

    def __repr__(self) -> str:
        return f"<Comment(id={self.id}, marker_id={self.marker_id})>"

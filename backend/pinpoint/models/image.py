"""
Pinpoint Backend — Image SQLAlchemy Model
==========================================

What:  The `images` table: owner, file extension and canvas position.

`user_id` is a weak reference: the store checks the user exists when the
image is written; there is no foreign key. The blob itself lives on disk at
`<upload_root>/<id>.<extension>`.
"""

import uuid

from sqlalchemy import CheckConstraint, Integer, String, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column

from pinpoint.database import Base
from pinpoint.models.common import TimestampMixin

EXTENSIONS = ("jpg", "jpeg", "png", "gif")


class Image(TimestampMixin, Base):
    __tablename__ = "images"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    # uploader
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)

    extension: Mapped[str] = mapped_column(String(8), nullable=False, index=True)

    x: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default=text("0"))
    y: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default=text("0"))

    __table_args__ = (
        CheckConstraint(
            "extension IN (" + ", ".join(f"'{ext}'" for ext in EXTENSIONS) + ")",
            name="ck_images_extension",
        ),
    )

    @property
    def blob_name(self) -> str:
        return f"{self.id}.{self.extension}"

    def __repr__(self) -> str:
        return f"<Image(id={self.id}, extension='{self.extension}')>"

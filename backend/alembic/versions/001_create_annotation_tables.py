"""Create users, images, markers and comments tables

Revision ID: 001
Revises: None
Create Date: 2026-10-19 00:00:00.000000+00:00

What:  Initial schema. Cross-entity ids (`images.user_id`, `markers.image_id`,
       `comments.marker_id`, `comments.user_id`) are plain indexed UUID
       columns without foreign keys; the store validates them on write and
       runs the marker/comment cascade itself.

Rollback: downgrade() drops all four tables (destructive).
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("username", sa.String(320), nullable=False, comment="E-mail address"),
        sa.Column("password_salt", sa.LargeBinary(16), nullable=False),
        sa.Column(
            "password_derived_key",
            sa.LargeBinary(64),
            nullable=False,
            comment="scrypt output; also the HMAC key of the user's session tokens",
        ),
        sa.Column("password_hashed_at", sa.DateTime(timezone=True), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_users"),
        sa.CheckConstraint("length(username) >= 3", name="ck_users_username_len"),
        sa.CheckConstraint("length(password_salt) = 16", name="ck_users_salt_len"),
        sa.CheckConstraint("length(password_derived_key) = 64", name="ck_users_derived_key_len"),
    )
    # The only duplicate-username guard
    op.create_index("uq_users_username", "users", ["username"], unique=True)
    op.create_index("ix_users_name", "users", ["name"])
    op.create_index("ix_users_created_at", "users", ["created_at"])
    op.create_index("ix_users_updated_at", "users", ["updated_at"])

    op.create_table(
        "images",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=False, comment="Uploader"),
        sa.Column("extension", sa.String(8), nullable=False),
        sa.Column("x", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("y", sa.Integer(), nullable=False, server_default=sa.text("0")),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_images"),
        sa.CheckConstraint(
            "extension IN ('jpg', 'jpeg', 'png', 'gif')", name="ck_images_extension"
        ),
    )
    op.create_index("ix_images_user_id", "images", ["user_id"])
    op.create_index("ix_images_extension", "images", ["extension"])
    op.create_index("ix_images_created_at", "images", ["created_at"])
    op.create_index("ix_images_updated_at", "images", ["updated_at"])

    op.create_table(
        "markers",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("image_id", sa.Uuid(), nullable=True, comment="NULL: free-floating canvas"),
        sa.Column("x", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("y", sa.Integer(), nullable=False, server_default=sa.text("0")),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_markers"),
        sa.CheckConstraint("x >= 0", name="ck_markers_x_non_negative"),
        sa.CheckConstraint("y >= 0", name="ck_markers_y_non_negative"),
    )
    op.create_index("ix_markers_image_id", "markers", ["image_id"])
    op.create_index("ix_markers_created_at", "markers", ["created_at"])
    op.create_index("ix_markers_updated_at", "markers", ["updated_at"])

    op.create_table(
        "comments",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("marker_id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("text", sa.Text(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_comments"),
        sa.CheckConstraint("length(text) >= 1", name="ck_comments_text_not_empty"),
    )
    op.create_index("ix_comments_marker_id", "comments", ["marker_id"])
    op.create_index("ix_comments_user_id", "comments", ["user_id"])
    op.create_index("ix_comments_created_at", "comments", ["created_at"])
    op.create_index("ix_comments_updated_at", "comments", ["updated_at"])


def downgrade() -> None:
    op.drop_table("comments")
    op.drop_table("markers")
    op.drop_table("images")
    op.drop_table("users")

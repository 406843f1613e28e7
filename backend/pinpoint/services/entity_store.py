"""
Pinpoint Backend — Entity Store
================================

What:  Persistence for users, images, markers and comments, with the
       referential and cascade rules between them.
How:   Every mutation validates its weak references (user, image, marker
       must exist at write time), runs as one database transaction, and
       notifies realtime clients only after the commit succeeded.
Who:   Route handlers and UserService; each call receives the request's
       AsyncSession as its first argument.

Cascade rules:
    delete_marker(m)   → delete every comment of m, then m
    delete_comment(c)  → delete c; if c's marker has no comments left,
                         delete the marker as well

Both lock the marker row before touching its comments (`FOR UPDATE` on
PostgreSQL; SQLite serializes writers on its file lock) so two concurrent
sibling deletes cannot each see "one comment left" and strand a marker.
create_comment takes the same lock, and re-checks the marker after its INSERT,
so a reply cannot land on a marker that a concurrent cascade just removed.

Partial updates:
    Only `x` and `y` can be patched. A present numeric value is applied;
    anything else (missing, null, strings, booleans) is ignored. A numeric
    value that is not a whole number, or a negative marker coordinate, is a
    ValidationError.
"""

import logging
import uuid
from typing import Any, List, Mapping, Optional, Tuple

from email_validator import EmailNotValidError, validate_email
from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from pinpoint.exceptions import (
    DatabaseError,
    DuplicateKeyError,
    NotFoundError,
    ValidationError,
)
from pinpoint.models import EXTENSIONS, Comment, Image, Marker, User
from pinpoint.models.user import USERNAME_MIN_LEN
from pinpoint.security.credentials import CredentialHasher
from pinpoint.services.realtime_service import RealtimeHub

logger = logging.getLogger(__name__)


def _is_number(value: Any) -> bool:
    # bool is an int subclass but never a coordinate
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _as_coordinate(value: Any, field: str, allow_negative: bool) -> int:
    """Coerce a numeric coordinate to int or raise ValidationError."""
    if isinstance(value, float):
        if not value.is_integer():
            raise ValidationError(message=f"'{field}' must be an integer", field=field)
        value = int(value)
    if not isinstance(value, int) or isinstance(value, bool):
        raise ValidationError(message=f"'{field}' must be an integer", field=field)
    if not allow_negative and value < 0:
        raise ValidationError(message=f"'{field}' must not be negative", field=field)
    return value


def _require_text(value: Any, field: str) -> str:
    if not isinstance(value, str) or not value:
        raise ValidationError(message=f"'{field}' must not be empty", field=field)
    return value


def normalize_username(username: str) -> str:
    """
    The form a username is stored and looked up in: the e-mail address with
    its domain lowercased. Sign-up and sign-in both go through here.
    """
    try:
        return validate_email(username, check_deliverability=False).normalized
    except EmailNotValidError as e:
        raise ValidationError(
            message=f"'username' must be an e-mail address: {e}",
            field="username",
        ) from e


class EntityStore:
    """
    The only component that writes User, Image, Marker and Comment rows.

    Stateless apart from its collaborators: the credential hasher (user
    credentials) and the realtime hub (post-commit notifications).
    """

    def __init__(self, hasher: CredentialHasher, realtime: RealtimeHub):
        self.hasher = hasher
        self.realtime = realtime

    async def _commit(self, db: AsyncSession, operation: str) -> None:
        try:
            await db.commit()
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error("Database error during %s: %s", operation, e, exc_info=True)
            raise DatabaseError(context={"operation": operation, "error": str(e)}) from e

    async def _flush(self, db: AsyncSession, operation: str) -> None:
        try:
            await db.flush()
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error("Database error during %s: %s", operation, e, exc_info=True)
            raise DatabaseError(context={"operation": operation, "error": str(e)}) from e

    # ── Users ─────────────────────────────────────────────────────────────
    async def create_user(
        self,
        db: AsyncSession,
        name: str,
        username: str,
        password: str,
    ) -> User:
        """
        Sign-up: derive a credential and insert the user.

        Raises:
            ValidationError: empty name or a username that is not an e-mail
            InvalidInputError: empty password
            DuplicateKeyError: the username's unique index rejected the insert
        """
        name = _require_text(name, "name")
        username = _require_text(username, "username")
        if len(username) < USERNAME_MIN_LEN:
            raise ValidationError(
                message=f"'username' must be at least {USERNAME_MIN_LEN} characters",
                field="username",
            )
        username = normalize_username(username)

        credential = await self.hasher.derive(password)

        user = User(name=name, username=username)
        user.credential = credential
        db.add(user)
        try:
            await db.commit()
        except IntegrityError as e:
            await db.rollback()
            logger.info("Sign-up rejected, username '%s' already exists", username)
            raise DuplicateKeyError(field="username", value=username) from e
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error("Database error creating user: %s", e, exc_info=True)
            raise DatabaseError(context={"operation": "create_user", "error": str(e)}) from e

        logger.info("User created: %s", user.id)
        return user

    async def reset_password(self, db: AsyncSession, user: User, password: str) -> User:
        """Re-derive the user's credential; every earlier session token stops validating."""
        user.credential = await self.hasher.derive(password)
        await self._commit(db, "reset_password")
        logger.info("Credential rotated for user %s", user.id)
        return user

    async def get_user(self, db: AsyncSession, user_id: uuid.UUID) -> Optional[User]:
        return await db.get(User, user_id)

    async def get_user_by_username(self, db: AsyncSession, username: str) -> Optional[User]:
        result = await db.execute(select(User).where(User.username == username))
        return result.scalar_one_or_none()

    async def _require_user(self, db: AsyncSession, user_id: Any) -> uuid.UUID:
        if not isinstance(user_id, uuid.UUID) or await db.get(User, user_id) is None:
            raise ValidationError(message=f"User '{user_id}' does not exist", field="userId")
        return user_id

    # ── Images ────────────────────────────────────────────────────────────
    async def create_image(
        self,
        db: AsyncSession,
        user_id: uuid.UUID,
        extension: str,
        x: Any = 0,
        y: Any = 0,
    ) -> Image:
        await self._require_user(db, user_id)
        if extension not in EXTENSIONS:
            raise ValidationError(
                message=f"Extension '{extension}' is not supported. Allowed: {', '.join(EXTENSIONS)}",
                field="extension",
            )
        image = Image(
            user_id=user_id,
            extension=extension,
            x=_as_coordinate(x, "x", allow_negative=True),
            y=_as_coordinate(y, "y", allow_negative=True),
        )
        db.add(image)
        await self._commit(db, "create_image")

        await self.realtime.emit_saved(image=image)
        return image

    async def get_image(self, db: AsyncSession, image_id: uuid.UUID) -> Image:
        image = await db.get(Image, image_id)
        if image is None:
            raise NotFoundError(resource="Image", resource_id=str(image_id))
        return image

    async def list_images(self, db: AsyncSession) -> List[Image]:
        result = await db.execute(select(Image).order_by(Image.created_at.asc()))
        return list(result.scalars().all())

    async def update_image(self, db: AsyncSession, image: Image, patch: Mapping[str, Any]) -> Image:
        for field in ("x", "y"):
            value = patch.get(field)
            if _is_number(value):
                setattr(image, field, _as_coordinate(value, field, allow_negative=True))
        await self._commit(db, "update_image")

        await self.realtime.emit_saved(image=image)
        return image

    # ── Markers ───────────────────────────────────────────────────────────
    async def _new_marker(
        self,
        db: AsyncSession,
        image_id: Optional[uuid.UUID],
        x: Any,
        y: Any,
    ) -> Marker:
        if image_id is not None:
            if not isinstance(image_id, uuid.UUID) or await db.get(Image, image_id) is None:
                raise ValidationError(message=f"Image '{image_id}' does not exist", field="imageId")
        marker = Marker(
            id=uuid.uuid4(),
            image_id=image_id,
            x=_as_coordinate(x, "x", allow_negative=False),
            y=_as_coordinate(y, "y", allow_negative=False),
        )
        db.add(marker)
        return marker

    async def create_marker(
        self,
        db: AsyncSession,
        image_id: Optional[uuid.UUID] = None,
        x: Any = 0,
        y: Any = 0,
    ) -> Marker:
        """
        Insert a bare marker.

        Callers are responsible for giving it a comment; the API only ever
        uses create_marker_with_comment().
        """
        marker = await self._new_marker(db, image_id, x, y)
        await self._commit(db, "create_marker")

        await self.realtime.emit_saved(marker=marker)
        return marker

    async def create_marker_with_comment(
        self,
        db: AsyncSession,
        image_id: Optional[uuid.UUID],
        x: Any,
        y: Any,
        user_id: uuid.UUID,
        text: str,
    ) -> Tuple[Marker, Comment]:
        """Marker plus its seed comment, committed together or not at all."""
        await self._require_user(db, user_id)
        text = _require_text(text, "text")

        marker = await self._new_marker(db, image_id, x, y)
        comment = Comment(marker_id=marker.id, user_id=user_id, text=text)
        db.add(comment)
        await self._commit(db, "create_marker_with_comment")

        logger.info("Marker %s created with comment %s", marker.id, comment.id)
        await self.realtime.emit_saved(marker=marker)
        await self.realtime.emit_saved(comment=comment)
        return marker, comment

    async def get_marker(self, db: AsyncSession, marker_id: uuid.UUID) -> Marker:
        marker = await db.get(Marker, marker_id)
        if marker is None:
            raise NotFoundError(resource="Marker", resource_id=str(marker_id))
        return marker

    async def list_markers(self, db: AsyncSession) -> List[Marker]:
        result = await db.execute(select(Marker).order_by(Marker.created_at.asc()))
        return list(result.scalars().all())

    async def update_marker(self, db: AsyncSession, marker: Marker, patch: Mapping[str, Any]) -> Marker:
        for field in ("x", "y"):
            value = patch.get(field)
            if _is_number(value):
                setattr(marker, field, _as_coordinate(value, field, allow_negative=False))
        await self._commit(db, "update_marker")

        await self.realtime.emit_saved(marker=marker)
        return marker

    async def _lock_marker(self, db: AsyncSession, marker_id: uuid.UUID) -> Optional[Marker]:
        result = await db.execute(
            select(Marker).where(Marker.id == marker_id).with_for_update()
        )
        return result.scalar_one_or_none()

    async def delete_marker(self, db: AsyncSession, marker: Marker) -> None:
        """Delete the marker's comments, then the marker. Zero comments is fine."""
        marker_id = marker.id
        await self._lock_marker(db, marker_id)
        removed = await db.execute(delete(Comment).where(Comment.marker_id == marker_id))
        await db.execute(delete(Marker).where(Marker.id == marker_id))
        await self._commit(db, "delete_marker")

        logger.info("Marker %s deleted with %d comments", marker_id, removed.rowcount)
        await self.realtime.emit_removed(marker_id=marker_id)

    # ── Comments ──────────────────────────────────────────────────────────
    async def create_comment(
        self,
        db: AsyncSession,
        marker: Marker,
        user_id: uuid.UUID,
        text: str,
    ) -> Comment:
        await self._require_user(db, user_id)
        text = _require_text(text, "text")
        missing = ValidationError(message=f"Marker '{marker.id}' does not exist", field="markerId")
        if await self._lock_marker(db, marker.id) is None:
            raise missing

        comment = Comment(marker_id=marker.id, user_id=user_id, text=text)
        db.add(comment)
        await self._flush(db, "create_comment")
        # SQLite ignores FOR UPDATE; the flushed INSERT holds its write lock, so
        # a marker still present now outlives this transaction
        if await db.scalar(select(Marker.id).where(Marker.id == marker.id)) is None:
            await db.rollback()
            raise missing
        await self._commit(db, "create_comment")

        await self.realtime.emit_saved(comment=comment)
        return comment

    async def get_comment(self, db: AsyncSession, comment_id: uuid.UUID, marker: Marker) -> Comment:
        """Find a comment within `marker`'s thread; comments of other markers are not found."""
        result = await db.execute(
            select(Comment).where(Comment.id == comment_id, Comment.marker_id == marker.id)
        )
        comment = result.scalar_one_or_none()
        if comment is None:
            raise NotFoundError(resource="Comment", resource_id=str(comment_id))
        return comment

    async def list_comments(self, db: AsyncSession, marker: Marker) -> List[Comment]:
        result = await db.execute(
            select(Comment)
            .where(Comment.marker_id == marker.id)
            .order_by(Comment.created_at.asc())
        )
        return list(result.scalars().all())

    async def delete_comment(self, db: AsyncSession, comment: Comment) -> bool:
        """
        Delete a comment, and its marker too when it was the last one.

        Returns:
            True when the marker was removed along with the comment.
        """
        comment_id = comment.id
        marker_id = comment.marker_id

        await self._lock_marker(db, marker_id)
        await db.execute(delete(Comment).where(Comment.id == comment_id))
        remaining = await db.scalar(
            select(func.count()).select_from(Comment).where(Comment.marker_id == marker_id)
        )
        marker_removed = not remaining
        if marker_removed:
            await db.execute(delete(Marker).where(Marker.id == marker_id))
        await self._commit(db, "delete_comment")

        await self.realtime.emit_removed(comment_id=comment_id, comment_marker_id=marker_id)
        if marker_removed:
            logger.info("Last comment of marker %s deleted, marker removed", marker_id)
            await self.realtime.emit_removed(marker_id=marker_id)
        return marker_removed

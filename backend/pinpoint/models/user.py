"""
Pinpoint Backend — User SQLAlchemy Model
=========================================

What:  The `users` table: display name, unique e-mail username and the
       scrypt credential (salt, derived key, derivation time).
How:   The credential columns are guarded twice: CHECK constraints on the
       byte lengths in the database, and `@validates` hooks that reject bad
       values before they are flushed.

The unique index on `username` is the only duplicate guard. Sign-up never
checks-then-inserts; a concurrent duplicate fails with IntegrityError at
flush time and the store reports DuplicateKeyError.
"""

import uuid
from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, Index, LargeBinary, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, validates

from pinpoint.database import Base
from pinpoint.exceptions import ValidationError
from pinpoint.models.common import TimestampMixin, as_utc, utcnow
from pinpoint.security.credentials import KEY_LEN, SALT_LEN, Credential

USERNAME_MIN_LEN = 3


class User(TimestampMixin, Base):
    """
    A person who can sign in.

    Lifecycle:
        1. Created on sign-up with a freshly derived credential
        2. Credential replaced only by the store's reset_password()
        3. Never deleted by the API
    """

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)

    username: Mapped[str] = mapped_column(String(320), nullable=False)

    password_salt: Mapped[bytes] = mapped_column(LargeBinary(SALT_LEN), nullable=False)
    password_derived_key: Mapped[bytes] = mapped_column(LargeBinary(KEY_LEN), nullable=False)
    password_hashed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    __table_args__ = (
        Index("uq_users_username", "username", unique=True),
        CheckConstraint(
            f"length(username) >= {USERNAME_MIN_LEN}", name="ck_users_username_len"
        ),
        CheckConstraint(f"length(password_salt) = {SALT_LEN}", name="ck_users_salt_len"),
        CheckConstraint(
            f"length(password_derived_key) = {KEY_LEN}", name="ck_users_derived_key_len"
        ),
    )

    @validates("password_salt")
    def _validate_salt(self, key: str, value: bytes) -> bytes:
        if not isinstance(value, (bytes, bytearray)) or len(value) != SALT_LEN:
            raise ValidationError(message=f"Password salt must be {SALT_LEN} bytes", field=key)
        return bytes(value)

    @validates("password_derived_key")
    def _validate_derived_key(self, key: str, value: bytes) -> bytes:
        if not isinstance(value, (bytes, bytearray)) or len(value) != KEY_LEN:
            raise ValidationError(message=f"Derived key must be {KEY_LEN} bytes", field=key)
        return bytes(value)

    @validates("password_hashed_at")
    def _validate_hashed_at(self, key: str, value: datetime) -> datetime:
        if not isinstance(value, datetime) or as_utc(value) > utcnow():
            raise ValidationError(message="Password timestamp must not be in the future", field=key)
        return value

    @property
    def credential(self) -> Credential:
        return Credential(
            salt=self.password_salt,
            derived_key=self.password_derived_key,
            timestamp=as_utc(self.password_hashed_at),
        )

    @credential.setter
    def credential(self, value: Credential) -> None:
        self.password_salt = value.salt
        self.password_derived_key = value.derived_key
        self.password_hashed_at = value.timestamp

    def __repr__(self) -> str:
        return f"<User(id={self.id}, username='{self.username}')>"

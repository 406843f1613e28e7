"""
Pinpoint Backend — User Service
================================

What:  Sign-up, sign-in and session-token authentication.
How:   Composes the EntityStore (user rows), the CredentialHasher (password
       check) and the TokenCodec (session tokens keyed by the user's
       derived key).
Who:   /api/User and /api/Me routes, and the `get_current_user` dependency.

Sign-in flow (PUT /api/Me):
    ┌──────────┐    ┌──────────────┐    ┌──────────────┐    ┌─────────┐
    │ username │───▶│ find user by │───▶│ scrypt verify│───▶│  issue  │
    │ password │    │  username    │    │ (thread)     │    │  token  │
    └──────────┘    └──────────────┘    └──────────────┘    └─────────┘
    Unknown user and wrong password fail with the same SignInError.
"""

import logging
import uuid
from typing import Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from pinpoint.exceptions import SignInError, ValidationError
from pinpoint.models import User
from pinpoint.security.credentials import CredentialHasher
from pinpoint.security.tokens import TokenCodec
from pinpoint.services.entity_store import EntityStore, normalize_username

logger = logging.getLogger(__name__)


class UserService:
    def __init__(self, store: EntityStore, hasher: CredentialHasher, codec: TokenCodec):
        self.store = store
        self.hasher = hasher
        self.codec = codec

    async def sign_up(self, db: AsyncSession, name: str, username: str, password: str) -> User:
        return await self.store.create_user(db, name=name, username=username, password=password)

    def issue_token(self, user: User) -> str:
        return self.codec.issue(user.id, user.username, user.password_derived_key)

    async def sign_in(self, db: AsyncSession, username: str, password: str) -> Tuple[User, str]:
        """
        Check credentials and issue a session token.

        Raises:
            SignInError: unknown username or wrong password
        """
        try:
            lookup_name = normalize_username(username)
        except ValidationError:
            # never stored, so it cannot name a user
            logger.warning("Sign-in failed: username '%s' is not an e-mail address", username)
            raise SignInError(username) from None

        user = await self.store.get_user_by_username(db, lookup_name)
        if user is None:
            logger.warning("Sign-in failed: unknown username '%s'", username)
            raise SignInError(username)

        if not await self.hasher.verify(password, user.credential):
            logger.warning("Sign-in failed: wrong password for user %s", user.id)
            raise SignInError(username)

        token = self.issue_token(user)
        logger.info("User %s signed in", user.id)
        return user, token

    async def authenticate(self, db: AsyncSession, token: Optional[str]) -> Optional[User]:
        """Resolve a session token to its user; None for anonymous or invalid tokens."""

        async def lookup(user_id: uuid.UUID) -> Optional[Tuple[User, bytes]]:
            user = await self.store.get_user(db, user_id)
            if user is None:
                return None
            return user, user.password_derived_key

        return await self.codec.validate(token, lookup)

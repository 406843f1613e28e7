"""
Pinpoint Backend — Session Token Codec
=======================================

What:  Issues and validates the signed, expiring bearer tokens that carry a
       user's identity (cookie `CYToken` or `Authorization: Bearer …`).
How:   HS256 JWTs (PyJWT). The HMAC secret is the user's current scrypt
       derived key, so re-deriving the password invalidates every token
       issued before, with no revocation list.

Validation is two-phase:
    1. Decode WITHOUT verifying the signature and check the claim shape
       (issuer, audience, subject is a UUID, username non-empty). This is
       how the codec learns whose secret to fetch.
    2. Fetch that user's secret and verify signature, expiry, audience and
       issuer; re-check the shape of the verified claims.

Every failure ends as `None` plus a WARNING log line. The two phases fail
at different speeds, so a caller timing responses can tell "malformed"
from "bad signature"; accepted, see DESIGN.md.
"""

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Literal, Optional, Tuple, TypeVar

import jwt
from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from pinpoint.exceptions import SigningError
from pinpoint.security.credentials import KEY_LEN

logger = logging.getLogger(__name__)

TOKEN_AUDIENCE = "user"

T = TypeVar("T")

# user id → (user, that user's current derived key), or None when unknown
SecretLookup = Callable[[uuid.UUID], Awaitable[Optional[Tuple[T, bytes]]]]


class TokenClaims(BaseModel):
    """Shape every session token's payload must have."""

    iss: str = Field(min_length=1)
    sub: uuid.UUID
    aud: Literal["user"]
    username: str = Field(min_length=1)


def _is_secret(secret: Any) -> bool:
    return isinstance(secret, (bytes, bytearray)) and len(secret) == KEY_LEN


class TokenCodec:
    """Signs and verifies session tokens for one service (the `iss` claim)."""

    algorithm = "HS256"

    def __init__(
        self,
        service_name: str,
        expires_in: timedelta = timedelta(hours=8),
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.service_name = service_name
        self.expires_in = expires_in
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def issue(self, user_id: uuid.UUID, username: str, secret: bytes) -> str:
        """
        Sign a token for `user_id`.

        Raises:
            SigningError: the secret is missing or not a 64-byte key.
        """
        if not _is_secret(secret):
            raise SigningError(context={"user_id": str(user_id)})

        now = self._clock()
        claims = {
            "iss": self.service_name,
            "sub": str(user_id),
            "aud": TOKEN_AUDIENCE,
            "username": username,
            "iat": now,
            "exp": now + self.expires_in,
        }
        try:
            return jwt.encode(claims, bytes(secret), algorithm=self.algorithm)
        except jwt.PyJWTError as e:
            raise SigningError(context={"user_id": str(user_id), "error": str(e)}) from e

    def _check_shape(self, claims: Any) -> Optional[TokenClaims]:
        if not isinstance(claims, dict):
            logger.warning("Session token claims are not an object")
            return None
        try:
            parsed = TokenClaims.model_validate(claims)
        except PydanticValidationError as e:
            logger.warning("Malformed session token claims: %s", e.errors(include_url=False))
            return None
        if parsed.iss != self.service_name:
            logger.warning("Session token issued by '%s', expected '%s'", parsed.iss, self.service_name)
            return None
        return parsed

    async def validate(self, token: Optional[str], lookup: SecretLookup) -> Optional[T]:
        """
        Resolve `token` to the user it was issued for, or None.

        Args:
            token: Raw token string (may be None/empty for anonymous requests).
            lookup: Async callable returning (user, derived key) for a user id.

        Returns:
            The user from `lookup` when the token is well-formed, signed with
            that user's current key, unexpired, and for this service. None on
            any failure. Errors raised by `lookup` itself propagate.
        """
        if not token or not isinstance(token, str):
            return None

        try:
            unverified = jwt.decode(token, options={"verify_signature": False})
        except jwt.PyJWTError as e:
            logger.warning("Undecodable session token: %s", e)
            return None

        claims = self._check_shape(unverified)
        if claims is None:
            return None

        found = await lookup(claims.sub)
        if found is None:
            logger.warning("Session token for unknown user %s", claims.sub)
            return None
        user, secret = found
        if not _is_secret(secret):
            logger.warning("User %s has no usable token secret", claims.sub)
            return None

        try:
            verified = jwt.decode(
                token,
                bytes(secret),
                algorithms=[self.algorithm],
                audience=TOKEN_AUDIENCE,
                issuer=self.service_name,
                options={"require": ["exp", "iss", "sub", "aud"]},
            )
        except jwt.PyJWTError as e:
            logger.warning("Rejected session token for user %s: %s", claims.sub, e)
            return None

        if self._check_shape(verified) is None:
            return None
        return user

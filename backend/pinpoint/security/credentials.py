"""
Pinpoint Backend — Credential Hasher
=====================================

What:  Derives and verifies password credentials with scrypt.
How:   scrypt(password, 16-byte random salt) → 64-byte derived key, stored
       with the time it was derived. Verification re-derives with the
       stored salt and compares in constant time.
Who:   UserService (sign-up, sign-in, password reset). The derived key is
       also the signing secret for the user's session tokens, see tokens.py.

The KDF is CPU and memory bound (≈16MB per call with the default cost), so
the async entry points run it in a worker thread. A started derivation
cannot be cancelled; it runs to completion even if the client disconnects.
"""

import asyncio
import hashlib
import secrets
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional

from pinpoint.exceptions import InvalidInputError

SALT_LEN = 16
KEY_LEN = 64


@dataclass(frozen=True)
class Credential:
    """A user's stored salt + derived key + time the key was derived."""

    salt: bytes
    derived_key: bytes
    timestamp: datetime


def is_well_formed(credential: Any) -> bool:
    """True when salt and key are bytes of the fixed lengths and timestamp is a datetime."""
    salt = getattr(credential, "salt", None)
    derived_key = getattr(credential, "derived_key", None)
    timestamp = getattr(credential, "timestamp", None)
    return (
        isinstance(salt, (bytes, bytearray))
        and len(salt) == SALT_LEN
        and isinstance(derived_key, (bytes, bytearray))
        and len(derived_key) == KEY_LEN
        and isinstance(timestamp, datetime)
    )


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class CredentialHasher:
    """
    scrypt password hashing with per-user random salt.

    Cost parameters are not stored with the credential: every credential in
    one database must be derived with the same (n, r, p).
    """

    def __init__(self, n: int = 16384, r: int = 8, p: int = 1):
        self.n = n
        self.r = r
        self.p = p
        # OpenSSL needs 128*r*(n+2) bytes for V plus 128*r*p for B
        self.maxmem = 128 * r * (n + 2 + p) + 1024 * 1024

    def derive_sync(self, password: str, salt: Optional[bytes] = None) -> Credential:
        """
        Derive a credential for `password`.

        Args:
            password: Plain-text password; must be a non-empty str.
            salt: Existing 16-byte salt (verification); a new random salt is
                  generated when omitted.

        Raises:
            InvalidInputError: empty/non-text password or malformed salt.
        """
        if not isinstance(password, str) or not password:
            raise InvalidInputError(
                message="Password must be a non-empty string",
                field="password",
            )
        if salt is None:
            salt = secrets.token_bytes(SALT_LEN)
        elif not isinstance(salt, (bytes, bytearray)) or len(salt) != SALT_LEN:
            raise InvalidInputError(
                message=f"Salt must be {SALT_LEN} bytes",
                field="salt",
            )

        derived_key = hashlib.scrypt(
            password.encode("utf-8"),
            salt=bytes(salt),
            n=self.n,
            r=self.r,
            p=self.p,
            maxmem=self.maxmem,
            dklen=KEY_LEN,
        )
        return Credential(
            salt=bytes(salt),
            derived_key=derived_key,
            timestamp=datetime.now(timezone.utc),
        )

    def verify_sync(self, password: str, stored: Any) -> bool:
        """
        Check `password` against a stored credential.

        Never raises: a malformed stored credential or an unusable password
        is simply a failed verification. Besides the key comparison, the
        stored timestamp must not be later than the fresh derivation's.
        """
        if not is_well_formed(stored):
            return False
        try:
            fresh = self.derive_sync(password, bytes(stored.salt))
        except InvalidInputError:
            return False

        return (
            secrets.compare_digest(fresh.derived_key, bytes(stored.derived_key))
            and _as_utc(stored.timestamp) <= fresh.timestamp
        )

    async def derive(self, password: str, salt: Optional[bytes] = None) -> Credential:
        """`derive_sync` in a worker thread."""
        return await asyncio.to_thread(self.derive_sync, password, salt)

    async def verify(self, password: str, stored: Any) -> bool:
        """`verify_sync` in a worker thread."""
        return await asyncio.to_thread(self.verify_sync, password, stored)

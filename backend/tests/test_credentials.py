"""
Credential Hasher Unit Tests
=============================

What we test:
    ✅ Derived credentials have a 16-byte salt and a 64-byte key
    ✅ Round trip: the right password verifies, a wrong one does not
    ✅ Input validation on derive (empty / non-text password, bad salt)
    ✅ verify() never raises, whatever the stored credential looks like
    ✅ A stored timestamp from the future fails verification
"""

from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest

from pinpoint.exceptions import InvalidInputError
from pinpoint.security.credentials import (
    KEY_LEN,
    SALT_LEN,
    Credential,
    CredentialHasher,
    is_well_formed,
)

from conftest import FAST_SCRYPT_N


class TestDerive:
    def setup_method(self):
        self.hasher = CredentialHasher(n=FAST_SCRYPT_N)

    def test_fixed_sizes(self):
        credential = self.hasher.derive_sync("correct horse")
        assert len(credential.salt) == SALT_LEN
        assert len(credential.derived_key) == KEY_LEN
        assert credential.timestamp.tzinfo is not None
        assert is_well_formed(credential)

    def test_random_salt_per_call(self):
        first = self.hasher.derive_sync("same password")
        second = self.hasher.derive_sync("same password")
        assert first.salt != second.salt
        assert first.derived_key != second.derived_key

    def test_same_salt_same_key(self):
        first = self.hasher.derive_sync("same password")
        second = self.hasher.derive_sync("same password", first.salt)
        assert second.derived_key == first.derived_key

    @pytest.mark.parametrize("password", ["", None, 123, b"bytes"])
    def test_rejects_unusable_password(self, password):
        with pytest.raises(InvalidInputError):
            self.hasher.derive_sync(password)

    def test_rejects_short_salt(self):
        with pytest.raises(InvalidInputError, match="Salt"):
            self.hasher.derive_sync("pw", b"\x00" * 8)

    @pytest.mark.asyncio
    async def test_async_derive(self):
        credential = await self.hasher.derive("async password")
        assert await self.hasher.verify("async password", credential) is True


class TestVerify:
    def setup_method(self):
        self.hasher = CredentialHasher(n=FAST_SCRYPT_N)
        self.stored = self.hasher.derive_sync("hunter2")

    def test_round_trip(self):
        assert self.hasher.verify_sync("hunter2", self.stored) is True

    def test_wrong_password(self):
        assert self.hasher.verify_sync("hunter3", self.stored) is False

    def test_empty_password_is_false_not_error(self):
        assert self.hasher.verify_sync("", self.stored) is False

    @pytest.mark.parametrize(
        "stored",
        [
            None,
            "not a credential",
            {"salt": b"\x00" * SALT_LEN},
        ],
    )
    def test_garbage_stored_value(self, stored):
        assert self.hasher.verify_sync("hunter2", stored) is False

    def test_truncated_key(self):
        broken = replace(self.stored, derived_key=self.stored.derived_key[:32])
        assert self.hasher.verify_sync("hunter2", broken) is False

    def test_wrong_salt_type(self):
        broken = replace(self.stored, salt="0123456789abcdef")
        assert self.hasher.verify_sync("hunter2", broken) is False

    def test_future_timestamp_fails(self):
        future = replace(
            self.stored, timestamp=datetime.now(timezone.utc) + timedelta(hours=1)
        )
        assert self.hasher.verify_sync("hunter2", future) is False

    def test_naive_timestamp_treated_as_utc(self):
        naive = Credential(
            salt=self.stored.salt,
            derived_key=self.stored.derived_key,
            timestamp=self.stored.timestamp.replace(tzinfo=None),
        )
        assert self.hasher.verify_sync("hunter2", naive) is True

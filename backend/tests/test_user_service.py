"""
User Service Tests
===================

What we test:
    ✅ Sign-in issues a token that authenticates back to the same user
    ✅ Unknown user and wrong password fail the same way
    ✅ A username is matched in the same normalized form it was stored in
    ✅ Changing the password invalidates earlier tokens
"""

import pytest

from pinpoint.exceptions import AuthError, SignInError


@pytest.fixture
def users(registry):
    return registry.users


class TestSignIn:
    @pytest.mark.asyncio
    async def test_sign_in_and_authenticate(self, users, db):
        user = await users.sign_up(db, name="Ada", username="ada@example.com", password="pw")

        signed_in, token = await users.sign_in(db, "ada@example.com", "pw")

        assert signed_in.id == user.id
        assert (await users.authenticate(db, token)).id == user.id

    @pytest.mark.asyncio
    async def test_wrong_password(self, users, db):
        await users.sign_up(db, name="Ada", username="ada@example.com", password="pw")
        with pytest.raises(SignInError) as exc_info:
            await users.sign_in(db, "ada@example.com", "nope")
        assert exc_info.value.message == (
            "Could not sign-in, The username 'ada@example.com' or password is incorrect."
        )
        assert isinstance(exc_info.value, AuthError)

    @pytest.mark.asyncio
    async def test_unknown_user(self, users, db):
        with pytest.raises(SignInError, match="ghost@example.com"):
            await users.sign_in(db, "ghost@example.com", "pw")

    @pytest.mark.asyncio
    async def test_anonymous(self, users, db):
        assert await users.authenticate(db, None) is None
        assert await users.authenticate(db, "not.a.token") is None

    @pytest.mark.asyncio
    async def test_password_change_invalidates_tokens(self, users, store, db):
        user = await users.sign_up(db, name="Ada", username="ada@example.com", password="pw")
        _, old_token = await users.sign_in(db, "ada@example.com", "pw")

        await store.reset_password(db, user, "new-pw")

        assert await users.authenticate(db, old_token) is None
        _, new_token = await users.sign_in(db, "ada@example.com", "new-pw")
        assert (await users.authenticate(db, new_token)).id == user.id

    @pytest.mark.asyncio
    async def test_mixed_case_domain(self, users, db):
        user = await users.sign_up(db, name="Ada", username="Ada@Example.COM", password="pw")
        assert user.username == "Ada@example.com"

        for username in ("Ada@Example.COM", "Ada@example.com"):
            signed_in, _ = await users.sign_in(db, username, "pw")
            assert signed_in.id == user.id

    @pytest.mark.asyncio
    async def test_username_that_is_not_an_email(self, users, db):
        with pytest.raises(SignInError, match="not-an-email"):
            await users.sign_in(db, "not-an-email", "pw")

"""
Remarket Backend - Security Unit Tests
========================================

What:  Token issuing/verification and password hashing.

What we test:
    ✅ Access tokens round-trip the identity
    ✅ Refresh tokens are not accepted as access tokens (and vice versa)
    ✅ Expired, tampered and empty tokens raise AuthenticationError
    ✅ bcrypt hashes verify only the original password
"""

from datetime import datetime, timedelta, timezone

import jwt
import pytest

from remarket.config import settings
from remarket.exceptions import AuthenticationError
from remarket.security import (
    create_access_token,
    create_refresh_token,
    decode_access_token,
    decode_refresh_token,
    hash_password,
    verify_password,
)

USER_ID = "65f0c1a2e4b0a1b2c3d4e5f6"


class TestTokens:

    def test_access_token_round_trip(self):
        token = create_access_token(USER_ID, "ana@remarket.io", "admin")
        identity = decode_access_token(token)
        assert identity.user_id == USER_ID
        assert identity.email == "ana@remarket.io"
        assert identity.is_admin

    def test_refresh_token_is_not_an_access_token(self):
        token = create_refresh_token(USER_ID, "ana@remarket.io", "client")
        with pytest.raises(AuthenticationError):
            decode_access_token(token)
        assert decode_refresh_token(token).user_id == USER_ID

    def test_access_token_is_not_a_refresh_token(self):
        token = create_access_token(USER_ID, "ana@remarket.io", "client")
        with pytest.raises(AuthenticationError):
            decode_refresh_token(token)

    def test_expired_token(self):
        past = datetime.now(timezone.utc) - timedelta(hours=2)
        token = jwt.encode(
            {"sub": USER_ID, "type": "access", "iat": past, "exp": past + timedelta(minutes=5)},
            settings.access_token_secret,
            algorithm=settings.jwt_algorithm,
        )
        with pytest.raises(AuthenticationError) as exc:
            decode_access_token(token)
        assert exc.value.context["reason"] == "expired"

    def test_wrong_signature(self):
        token = jwt.encode(
            {"sub": USER_ID, "type": "access"}, "someone-else-secret", algorithm="HS256"
        )
        with pytest.raises(AuthenticationError):
            decode_access_token(token)

    @pytest.mark.parametrize("token", ["", "not.a.jwt"])
    def test_garbage(self, token):
        with pytest.raises(AuthenticationError):
            decode_access_token(token)


class TestPasswords:

    @pytest.mark.asyncio
    async def test_hash_and_verify(self):
        hashed = await hash_password("correct-horse-42")
        assert hashed != "correct-horse-42"
        assert await verify_password("correct-horse-42", hashed)
        assert not await verify_password("wrong-horse-42", hashed)

    @pytest.mark.asyncio
    async def test_verify_against_garbage_hash(self):
        assert not await verify_password("whatever", "not-a-bcrypt-hash")

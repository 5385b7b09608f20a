"""
Remarket Backend - Token and Password Primitives
==================================================

What:  JWT issuing/verification and bcrypt password hashing.
How:   PyJWT HS256 tokens with `sub` (user id), `email`, `role`, `type` and
       `exp` claims. Access and refresh tokens use separate secrets and the
       `type` claim is checked on decode. bcrypt runs in a worker thread so
       the event loop keeps serving other requests during hashing.
Who:   HTTP auth dependencies (routes/deps.py), the Socket.IO connect handler
       (realtime/server.py) and the user service.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict

import bcrypt
import jwt

from remarket.config import settings
from remarket.exceptions import AuthenticationError

logger = logging.getLogger(__name__)

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"

# bcrypt only looks at the first 72 bytes of a password
BCRYPT_MAX_BYTES = 72


@dataclass(frozen=True)
class TokenIdentity:
    """Identity carried by a verified token."""

    user_id: str
    email: str
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


# ── Tokens ────────────────────────────────────────────────────────────────
def _encode(claims: Dict[str, Any], secret: str, lifetime: timedelta) -> str:
    now = datetime.now(timezone.utc)
    payload = {**claims, "iat": now, "exp": now + lifetime}
    return jwt.encode(payload, secret, algorithm=settings.jwt_algorithm)


def _identity_claims(user_id: str, email: str, role: str, token_type: str) -> Dict[str, Any]:
    return {"sub": user_id, "email": email, "role": role, "type": token_type}


def create_access_token(user_id: str, email: str, role: str) -> str:
    return _encode(
        _identity_claims(user_id, email, role, ACCESS_TOKEN_TYPE),
        settings.access_token_secret,
        timedelta(minutes=settings.access_token_ttl_minutes),
    )


def create_refresh_token(user_id: str, email: str, role: str) -> str:
    return _encode(
        _identity_claims(user_id, email, role, REFRESH_TOKEN_TYPE),
        settings.refresh_token_secret,
        timedelta(days=settings.refresh_token_ttl_days),
    )


def _decode(token: str, secret: str, expected_type: str) -> TokenIdentity:
    if not token:
        raise AuthenticationError("Token is missing")
    try:
        payload = jwt.decode(token, secret, algorithms=[settings.jwt_algorithm])
    except jwt.ExpiredSignatureError:
        raise AuthenticationError("Token has expired", context={"reason": "expired"})
    except jwt.PyJWTError as e:
        logger.debug("Rejected token: %s", e)
        raise AuthenticationError("Token is invalid", context={"reason": "invalid"})

    if payload.get("type") != expected_type or not payload.get("sub"):
        raise AuthenticationError("Token is invalid", context={"reason": "wrong_type"})

    return TokenIdentity(
        user_id=str(payload["sub"]),
        email=str(payload.get("email", "")),
        role=str(payload.get("role", "client")),
    )


def decode_access_token(token: str) -> TokenIdentity:
    """
    Verifies an access token and returns the identity it carries.

    Shared by HTTP auth and the Socket.IO handshake so both channels accept
    exactly the same tokens. Raises AuthenticationError on any failure.
    """
    return _decode(token, settings.access_token_secret, ACCESS_TOKEN_TYPE)


def decode_refresh_token(token: str) -> TokenIdentity:
    return _decode(token, settings.refresh_token_secret, REFRESH_TOKEN_TYPE)


# ── Passwords ─────────────────────────────────────────────────────────────
def _hash_password_sync(password: str) -> str:
    salt = bcrypt.gensalt(rounds=settings.password_hash_rounds)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def _verify_password_sync(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Malformed stored hash; treat as a mismatch
        logger.warning("Stored password hash could not be parsed")
        return False


async def hash_password(password: str) -> str:
    return await asyncio.to_thread(_hash_password_sync, password)


async def verify_password(password: str, password_hash: str) -> bool:
    return await asyncio.to_thread(_verify_password_sync, password, password_hash)

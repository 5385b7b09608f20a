"""
Remarket Backend - User Service
=================================

What:  Accounts (register, verify, login, logout, refresh), profile
       self-service, favorites and admin user management.
How:   Passwords are bcrypt-hashed off the event loop (security.py). Login
       issues an access and a refresh token and stores the refresh token on
       the user; refresh only succeeds while the presented token still
       matches the stored one, so logout invalidates it.
Who:   routes/users.py and the auth dependencies in routes/deps.py.

Login outcomes:
    unknown email / wrong password → AuthenticationError (401), same message
    inactive (unverified) account   → AuthorizationError (403)
"""

import logging
import secrets
from typing import List, Optional, Tuple

from sqlalchemy import delete, false, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from remarket import gateway
from remarket.config import settings
from remarket.database import insert_ignoring_conflicts
from remarket.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    DatabaseError,
    NotFoundError,
)
from remarket.identifiers import parse_identifier
from remarket.models import Listing, User, user_favorites
from remarket.models.common import utcnow
from remarket.schemas.common import Pagination
from remarket.schemas.listing import ListingResponse
from remarket.schemas.user import (
    AdminUserCreate,
    AdminUserUpdate,
    ProfileUpdate,
    RegisterRequest,
    UserPage,
    UserResponse,
)
from remarket.security import (
    create_access_token,
    create_refresh_token,
    decode_refresh_token,
    hash_password,
    verify_password,
)
from remarket.services.listing_query import escape_like, with_sellers
from remarket.services.listing_service import listing_service

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Incorrect email or password"

USER_SORT_COLUMNS = {
    "created_at": User.created_at,
    "email": User.email,
    "username": User.username,
    "display_name": User.display_name,
}


def _normalize_email(email: str) -> str:
    return email.strip().lower()


class UserService:
    # ── Lookups ───────────────────────────────────────────────────────────
    async def find_by_email(self, db: AsyncSession, email: str) -> Optional[User]:
        users = await gateway.users.find(db, User.email == _normalize_email(email), limit=1)
        return users[0] if users else None

    async def get_user(self, db: AsyncSession, user_id: str) -> User:
        user = await gateway.users.find_one_by_id(db, user_id)
        if user is None:
            raise NotFoundError(resource="user", resource_id=user_id)
        return user

    # ── Account lifecycle ─────────────────────────────────────────────────
    async def _create(
        self,
        db: AsyncSession,
        email: str,
        password: str,
        username: str,
        display_name: Optional[str],
        role: str,
        is_active: bool,
    ) -> User:
        email = _normalize_email(email)
        existing = await gateway.users.find(db, User.email == email, limit=1, include_destroyed=True)
        if existing:
            raise ConflictError("An account with this email already exists", context={"field": "email"})

        return await gateway.users.create_new(
            db,
            {
                "email": email,
                "username": username,
                "display_name": display_name or username,
                "password_hash": await hash_password(password),
                "role": role,
                "is_active": is_active,
                "verify_token": secrets.token_hex(32),
            },
        )

    async def register(self, db: AsyncSession, payload: RegisterRequest) -> User:
        """
        Creates a client account. Active immediately unless
        REQUIRE_EMAIL_VERIFICATION is set, in which case /users/verify with
        the issued token activates it.
        """
        user = await self._create(
            db,
            email=payload.email,
            password=payload.password,
            username=payload.username,
            display_name=payload.display_name,
            role="client",
            is_active=not settings.require_email_verification,
        )
        logger.info("User registered: %s", user.id)
        return user

    async def verify_account(self, db: AsyncSession, email: str, token: str) -> User:
        user = await self.find_by_email(db, email)
        if user is None or not user.verify_token or not secrets.compare_digest(
            user.verify_token, token
        ):
            raise AuthenticationError("Invalid verification token")
        return await gateway.users.update(db, user.id, {"is_active": True, "verify_token": None})

    async def login(self, db: AsyncSession, email: str, password: str) -> Tuple[User, str, str]:
        """Returns (user, access_token, refresh_token)."""
        user = await self.find_by_email(db, email)
        if user is None or not await verify_password(password, user.password_hash):
            logger.info("Failed login for %s", _normalize_email(email))
            raise AuthenticationError(INVALID_CREDENTIALS)
        if not user.is_active:
            raise AuthorizationError("Account is not verified yet. Verify it before logging in.")

        access_token = create_access_token(user.id, user.email, user.role)
        refresh_token = create_refresh_token(user.id, user.email, user.role)
        user = await gateway.users.update(db, user.id, {"refresh_token": refresh_token})
        logger.info("User logged in: %s", user.id)
        return user, access_token, refresh_token

    async def logout(self, db: AsyncSession, user_id: str) -> None:
        await gateway.users.update(db, user_id, {"refresh_token": None})

    async def refresh_access_token(self, db: AsyncSession, refresh_token: Optional[str]) -> str:
        if not refresh_token:
            raise AuthenticationError("Refresh token not found")
        identity = decode_refresh_token(refresh_token)
        user = await gateway.users.find_one_by_id(db, identity.user_id)
        if user is None or user.refresh_token != refresh_token:
            raise AuthenticationError("Refresh token is invalid")
        return create_access_token(user.id, user.email, user.role)

    # ── Profile ───────────────────────────────────────────────────────────
    async def update_profile(self, db: AsyncSession, user_id: str, payload: ProfileUpdate) -> User:
        user = await self.get_user(db, user_id)
        patch = payload.model_dump(exclude_unset=True, exclude={"current_password", "new_password"})

        if payload.new_password:
            if not await verify_password(payload.current_password or "", user.password_hash):
                raise AuthenticationError("Current password is incorrect")
            patch["password_hash"] = await hash_password(payload.new_password)
            # Outstanding refresh tokens die with the old password
            patch["refresh_token"] = None

        return await gateway.users.update(db, user.id, patch)

    # ── Favorites ─────────────────────────────────────────────────────────
    async def add_favorite(self, db: AsyncSession, user_id: str, listing_id: str) -> None:
        """Idempotent: adding a listing twice keeps a single entry."""
        listing = await listing_service.get_live_listing(db, listing_id)
        stmt = insert_ignoring_conflicts(db, user_favorites, ["user_id", "listing_id"]).values(
            user_id=user_id, listing_id=listing.id, created_at=utcnow()
        )
        try:
            await db.execute(stmt)
        except SQLAlchemyError as e:
            logger.error("Adding favorite failed: %s", e, exc_info=True)
            raise DatabaseError(context={"listing_id": listing.id})

    async def remove_favorite(self, db: AsyncSession, user_id: str, listing_id: str) -> None:
        listing_id = parse_identifier(listing_id, field="listing_id")
        try:
            await db.execute(
                delete(user_favorites).where(
                    user_favorites.c.user_id == user_id,
                    user_favorites.c.listing_id == listing_id,
                )
            )
        except SQLAlchemyError as e:
            logger.error("Removing favorite failed: %s", e, exc_info=True)
            raise DatabaseError(context={"listing_id": listing_id})

    async def list_favorites(self, db: AsyncSession, user_id: str) -> List[ListingResponse]:
        """Favorited listings that still exist, most recently favorited first."""
        stmt = (
            select(Listing)
            .join(user_favorites, user_favorites.c.listing_id == Listing.id)
            .where(user_favorites.c.user_id == user_id, Listing.destroyed.is_(false()))
            .order_by(user_favorites.c.created_at.desc(), Listing.id.desc())
        )
        result = await db.execute(stmt)
        return await with_sellers(db, list(result.scalars().all()))

    # ── Admin ─────────────────────────────────────────────────────────────
    async def list_users(
        self,
        db: AsyncSession,
        page: int = 1,
        limit: int = 10,
        search: str = "",
        sort_by: str = "created_at",
        sort_order: str = "desc",
    ) -> UserPage:
        criteria = []
        if search and search.strip():
            pattern = f"%{escape_like(search.strip())}%"
            criteria.append(
                or_(
                    User.display_name.ilike(pattern, escape="\\"),
                    User.email.ilike(pattern, escape="\\"),
                    User.username.ilike(pattern, escape="\\"),
                )
            )

        column = USER_SORT_COLUMNS.get(sort_by, User.created_at)
        ordering = (column.asc(), User.id.asc()) if sort_order == "asc" else (column.desc(), User.id.desc())

        total = await gateway.users.count(db, *criteria)
        users = await gateway.users.find(
            db, *criteria, order_by=ordering, skip=(page - 1) * limit, limit=limit
        )
        return UserPage(
            data=[UserResponse.model_validate(u) for u in users],
            pagination=Pagination.build(page, limit, total),
        )

    async def create_user(self, db: AsyncSession, payload: AdminUserCreate) -> User:
        user = await self._create(
            db,
            email=payload.email,
            password=payload.password,
            username=payload.username,
            display_name=payload.display_name,
            role=payload.role,
            is_active=True,
        )
        logger.info("Admin created user %s (role=%s)", user.id, user.role)
        return user

    async def update_user(self, db: AsyncSession, user_id: str, payload: AdminUserUpdate) -> User:
        user = await self.get_user(db, user_id)
        return await gateway.users.update(db, user.id, payload.model_dump(exclude_unset=True))

    async def delete_user(self, db: AsyncSession, user_id: str) -> None:
        user = await self.get_user(db, user_id)
        await gateway.users.update(db, user.id, {"refresh_token": None, "is_active": False})
        await gateway.users.soft_delete(db, user.id)
        logger.info("User %s deleted", user.id)


# ── Singleton Instance ────────────────────────────────────────────────────
user_service = UserService()

"""
Remarket Backend - User Routes
================================

What:  Account lifecycle, profile, favorites and admin user management
       under /api/v1/users.
How:   Login sets `accessToken` and `refreshToken` cookies (httponly,
       secure, samesite per settings) and also returns both tokens in the
       body for non-browser clients. Logout clears the cookies and the
       stored refresh token.

Endpoints:
    POST   /users/register             create an account
    PUT    /users/verify               activate with the verification token
    POST   /users/login                issue tokens
    DELETE /users/logout               revoke the refresh token
    GET    /users/refresh_token        new access token from the refresh cookie
    GET    /users/me                   own profile
    PUT    /users/update               edit own profile / change password
    GET    /users/favorites            favorited listings
    POST   /users/favorites            add a favorite (idempotent)
    DELETE /users/favorites/{id}       remove a favorite
    GET    /users/admin                (admin) search users
    POST   /users/admin                (admin) create a user
    GET    /users/admin/{id}           (admin) user details
    PUT    /users/admin/{id}           (admin) edit a user
    DELETE /users/admin/{id}           (admin) soft delete a user
"""

import logging
from typing import List, Literal

from fastapi import APIRouter, Depends, Query, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from remarket.config import settings
from remarket.database import get_db_session
from remarket.routes.deps import (
    ACCESS_TOKEN_COOKIE,
    REFRESH_TOKEN_COOKIE,
    get_current_identity,
    require_admin,
)
from remarket.schemas.common import ErrorResponse, StatusMessage
from remarket.schemas.listing import ListingResponse
from remarket.schemas.user import (
    AccessTokenResponse,
    AdminUserCreate,
    AdminUserUpdate,
    FavoriteRequest,
    LoginRequest,
    LoginResponse,
    ProfileUpdate,
    RegisterRequest,
    RegisterResponse,
    UserPage,
    UserResponse,
    UserSortField,
    VerifyAccountRequest,
)
from remarket.security import TokenIdentity
from remarket.services.user_service import user_service

logger = logging.getLogger(__name__)

# ── Router Configuration ──────────────────────────────────────────────────
router = APIRouter(prefix="/api/v1/users", tags=["Users"])


def _set_auth_cookie(response: Response, key: str, value: str) -> None:
    response.set_cookie(
        key=key,
        value=value,
        max_age=settings.cookie_max_age_days * 24 * 60 * 60,
        httponly=True,
        secure=settings.cookie_secure,
        samesite=settings.cookie_samesite,
    )


def _clear_auth_cookie(response: Response, key: str) -> None:
    response.delete_cookie(
        key=key,
        httponly=True,
        secure=settings.cookie_secure,
        samesite=settings.cookie_samesite,
    )


# ══════════════════════════════════════════════════════════════════════════
# Account lifecycle
# ══════════════════════════════════════════════════════════════════════════


@router.post(
    "/register",
    response_model=RegisterResponse,
    status_code=status.HTTP_201_CREATED,
    responses={409: {"description": "Email already registered", "model": ErrorResponse}},
    summary="Register a new account",
)
async def register(
    payload: RegisterRequest,
    db: AsyncSession = Depends(get_db_session),
) -> RegisterResponse:
    """
    Creates a client account. No email is sent; the verification token is
    returned in the body so it can be delivered out of band.
    """
    user = await user_service.register(db, payload)
    return RegisterResponse.model_validate(user)


@router.put("/verify", response_model=UserResponse, summary="Verify an account")
async def verify_account(
    payload: VerifyAccountRequest,
    db: AsyncSession = Depends(get_db_session),
) -> UserResponse:
    user = await user_service.verify_account(db, payload.email, payload.token)
    return UserResponse.model_validate(user)


@router.post(
    "/login",
    response_model=LoginResponse,
    responses={
        401: {"description": "Wrong email or password", "model": ErrorResponse},
        403: {"description": "Account not verified", "model": ErrorResponse},
    },
    summary="Log in",
)
async def login(
    payload: LoginRequest,
    response: Response,
    db: AsyncSession = Depends(get_db_session),
) -> LoginResponse:
    user, access_token, refresh_token = await user_service.login(db, payload.email, payload.password)
    _set_auth_cookie(response, ACCESS_TOKEN_COOKIE, access_token)
    _set_auth_cookie(response, REFRESH_TOKEN_COOKIE, refresh_token)
    return LoginResponse(
        user=UserResponse.model_validate(user),
        access_token=access_token,
        refresh_token=refresh_token,
    )


@router.delete("/logout", response_model=StatusMessage, summary="Log out")
async def logout(
    response: Response,
    identity: TokenIdentity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db_session),
) -> StatusMessage:
    await user_service.logout(db, identity.user_id)
    _clear_auth_cookie(response, ACCESS_TOKEN_COOKIE)
    _clear_auth_cookie(response, REFRESH_TOKEN_COOKIE)
    return StatusMessage(message="Logged out")


@router.get(
    "/refresh_token",
    response_model=AccessTokenResponse,
    responses={401: {"description": "Missing or revoked refresh token", "model": ErrorResponse}},
    summary="Issue a new access token",
)
async def refresh_token(
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_db_session),
) -> AccessTokenResponse:
    access_token = await user_service.refresh_access_token(
        db, request.cookies.get(REFRESH_TOKEN_COOKIE)
    )
    _set_auth_cookie(response, ACCESS_TOKEN_COOKIE, access_token)
    return AccessTokenResponse(access_token=access_token)


# ══════════════════════════════════════════════════════════════════════════
# Profile & favorites
# ══════════════════════════════════════════════════════════════════════════


@router.get("/me", response_model=UserResponse, summary="Own profile")
async def get_me(
    identity: TokenIdentity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db_session),
) -> UserResponse:
    return UserResponse.model_validate(await user_service.get_user(db, identity.user_id))


@router.put("/update", response_model=UserResponse, summary="Update own profile")
async def update_me(
    payload: ProfileUpdate,
    identity: TokenIdentity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db_session),
) -> UserResponse:
    user = await user_service.update_profile(db, identity.user_id, payload)
    return UserResponse.model_validate(user)


@router.get("/favorites", response_model=List[ListingResponse], summary="Favorited listings")
async def list_favorites(
    identity: TokenIdentity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db_session),
) -> List[ListingResponse]:
    return await user_service.list_favorites(db, identity.user_id)


@router.post(
    "/favorites",
    response_model=StatusMessage,
    status_code=status.HTTP_201_CREATED,
    summary="Add a listing to favorites",
)
async def add_favorite(
    payload: FavoriteRequest,
    identity: TokenIdentity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db_session),
) -> StatusMessage:
    await user_service.add_favorite(db, identity.user_id, payload.listing_id)
    return StatusMessage(message="Added to favorites")


@router.delete(
    "/favorites/{listing_id}",
    response_model=StatusMessage,
    summary="Remove a listing from favorites",
)
async def remove_favorite(
    listing_id: str,
    identity: TokenIdentity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db_session),
) -> StatusMessage:
    await user_service.remove_favorite(db, identity.user_id, listing_id)
    return StatusMessage(message="Removed from favorites")


# ══════════════════════════════════════════════════════════════════════════
# Admin
# ══════════════════════════════════════════════════════════════════════════


@router.get("/admin", response_model=UserPage, summary="(admin) Search users")
async def admin_list_users(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=settings.default_page_size, ge=1, le=settings.max_page_size),
    search: str = Query(default="", max_length=200),
    sort_by: UserSortField = Query(default="created_at"),
    sort_order: Literal["asc", "desc"] = Query(default="desc"),
    _: TokenIdentity = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
) -> UserPage:
    return await user_service.list_users(
        db, page=page, limit=limit, search=search, sort_by=sort_by, sort_order=sort_order
    )


@router.post(
    "/admin",
    response_model=UserResponse,
    status_code=status.HTTP_201_CREATED,
    summary="(admin) Create a user",
)
async def admin_create_user(
    payload: AdminUserCreate,
    _: TokenIdentity = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
) -> UserResponse:
    user = await user_service.create_user(db, payload)
    return UserResponse.model_validate(user)


@router.get("/admin/{user_id}", response_model=UserResponse, summary="(admin) User details")
async def admin_get_user(
    user_id: str,
    _: TokenIdentity = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
) -> UserResponse:
    return UserResponse.model_validate(await user_service.get_user(db, user_id))


@router.put("/admin/{user_id}", response_model=UserResponse, summary="(admin) Edit a user")
async def admin_update_user(
    user_id: str,
    payload: AdminUserUpdate,
    _: TokenIdentity = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
) -> UserResponse:
    user = await user_service.update_user(db, user_id, payload)
    return UserResponse.model_validate(user)


@router.delete("/admin/{user_id}", response_model=StatusMessage, summary="(admin) Delete a user")
async def admin_delete_user(
    user_id: str,
    admin: TokenIdentity = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
) -> StatusMessage:
    await user_service.delete_user(db, user_id)
    logger.info("User %s deleted by admin %s", user_id, admin.user_id)
    return StatusMessage(message="User deleted")

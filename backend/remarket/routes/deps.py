"""
Remarket Backend - Route Dependencies
=======================================

What:  FastAPI dependencies shared by the route modules: caller identity,
       admin guard, realtime notifier and the listing filter model.
How:   The access token comes from `Authorization: Bearer <token>` or, for
       browser clients, the `accessToken` cookie. The token is verified with
       the same function the Socket.IO handshake uses; the identity is then
       rebuilt from the stored user so a deleted or deactivated account (or
       a changed role) takes effect immediately.
"""

import logging
from typing import List, Optional

import pydantic
from fastapi import Depends, Query, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from remarket import gateway
from remarket.database import get_db_session
from remarket.exceptions import AuthenticationError, AuthorizationError, ValidationError
from remarket.gateway import record_errors
from remarket.realtime import RealtimeNotifier
from remarket.schemas.listing import ListingFilters
from remarket.security import TokenIdentity, decode_access_token

logger = logging.getLogger(__name__)

ACCESS_TOKEN_COOKIE = "accessToken"
REFRESH_TOKEN_COOKIE = "refreshToken"

bearer_scheme = HTTPBearer(auto_error=False)


def _request_token(
    request: Request, credentials: Optional[HTTPAuthorizationCredentials]
) -> Optional[str]:
    if credentials is not None and credentials.credentials:
        return credentials.credentials
    return request.cookies.get(ACCESS_TOKEN_COOKIE)


async def _identity_from_token(db: AsyncSession, token: str) -> TokenIdentity:
    claims = decode_access_token(token)
    user = await gateway.users.find_one_by_id(db, claims.user_id)
    if user is None:
        raise AuthenticationError("Account no longer exists")
    if not user.is_active:
        raise AuthorizationError("Account is not active")
    return TokenIdentity(user_id=user.id, email=user.email, role=user.role)


async def get_current_identity(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db_session),
) -> TokenIdentity:
    token = _request_token(request, credentials)
    if not token:
        raise AuthenticationError("Authentication required")
    return await _identity_from_token(db, token)


async def get_optional_identity(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db_session),
) -> Optional[TokenIdentity]:
    """
    Like get_current_identity, but anonymous requests get None.

    A bad bearer header is still a 401. A stale `accessToken` cookie is
    ignored: the cookie outlives the access token it carries.
    """
    if credentials is not None and credentials.credentials:
        return await _identity_from_token(db, credentials.credentials)

    token = request.cookies.get(ACCESS_TOKEN_COOKIE)
    if not token:
        return None
    try:
        return await _identity_from_token(db, token)
    except AuthenticationError as e:
        logger.debug("Ignoring access token cookie: %s", e.message)
        return None


async def require_admin(
    identity: TokenIdentity = Depends(get_current_identity),
) -> TokenIdentity:
    if not identity.is_admin:
        raise AuthorizationError("Admin privileges required")
    return identity


def get_notifier(request: Request) -> RealtimeNotifier:
    return request.app.state.notifier


def get_listing_filters(
    search: Optional[str] = Query(default=None, description="Substring of title or description"),
    category_id: Optional[str] = Query(default=None),
    status: Optional[List[str]] = Query(
        default=None, description="Repeated or comma-separated statuses (admins only)"
    ),
    min_price: Optional[float] = Query(default=None),
    max_price: Optional[float] = Query(default=None),
    location: Optional[str] = Query(default=None),
    sort_by: str = Query(default="created_at", description="created_at, price, views or title"),
    sort_order: str = Query(default="desc", description="asc or desc"),
    page: int = Query(default=1),
    limit: int = Query(default=10),
) -> ListingFilters:
    """Builds ListingFilters from the query string; violations become a 422."""
    try:
        return ListingFilters(
            search=search,
            category_id=category_id or None,
            status=status,
            min_price=min_price,
            max_price=max_price,
            location=location,
            sort_by=sort_by,
            sort_order=sort_order,
            page=page,
            limit=limit,
        )
    except pydantic.ValidationError as e:
        raise ValidationError("Invalid listing filters", context={"errors": record_errors(e)})

"""
Remarket Backend - Listing Routes
===================================

What:  Listing search, detail, seller actions and admin moderation under
       /api/v1/listings.

Endpoints:
    GET    /listings, /listings/search   filtered search (see ListingFilters)
    GET    /listings/me                  caller's listings, any status
    GET    /listings/{id}                detail; counts a view for signed-in non-owners
    POST   /listings                     create (starts PENDING)
    PUT    /listings/{id}                owner edit
    DELETE /listings/{id}                owner soft delete
    PATCH  /listings/{id}/status         (admin) moderation
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from remarket.config import settings
from remarket.database import get_db_session
from remarket.routes.deps import (
    get_current_identity,
    get_listing_filters,
    get_optional_identity,
    require_admin,
)
from remarket.schemas.common import ErrorResponse, StatusMessage
from remarket.schemas.listing import (
    ListingCreate,
    ListingFilters,
    ListingPage,
    ListingResponse,
    ListingStatusUpdate,
    ListingUpdate,
)
from remarket.security import TokenIdentity
from remarket.services.listing_query import listing_query
from remarket.services.listing_service import listing_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/listings", tags=["Listings"])


@router.get("", response_model=ListingPage, include_in_schema=False)
@router.get(
    "/search",
    response_model=ListingPage,
    responses={422: {"description": "Invalid filters", "model": ErrorResponse}},
    summary="Search listings",
    description=(
        "Filters by text, category, price range and location with sorting and "
        "pagination. Only PUBLISHED listings are returned unless the caller is "
        "an admin, who may filter by any set of statuses."
    ),
)
async def search_listings(
    filters: ListingFilters = Depends(get_listing_filters),
    viewer: Optional[TokenIdentity] = Depends(get_optional_identity),
    db: AsyncSession = Depends(get_db_session),
) -> ListingPage:
    is_admin = viewer is not None and viewer.is_admin
    return await listing_query.search(db, filters, is_admin=is_admin)


@router.get("/me", response_model=ListingPage, summary="My listings")
async def my_listings(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=settings.default_page_size, ge=1, le=settings.max_page_size),
    identity: TokenIdentity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db_session),
) -> ListingPage:
    return await listing_service.list_my_listings(db, identity, page=page, limit=limit)


@router.get(
    "/{listing_id}",
    response_model=ListingResponse,
    responses={404: {"description": "Listing not found", "model": ErrorResponse}},
    summary="Listing details",
)
async def get_listing(
    listing_id: str,
    viewer: Optional[TokenIdentity] = Depends(get_optional_identity),
    db: AsyncSession = Depends(get_db_session),
) -> ListingResponse:
    return await listing_service.get_listing(db, listing_id, viewer)


@router.post(
    "",
    response_model=ListingResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a listing",
)
async def create_listing(
    payload: ListingCreate,
    identity: TokenIdentity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db_session),
) -> ListingResponse:
    return await listing_service.create_listing(db, identity, payload)


@router.put(
    "/{listing_id}",
    response_model=ListingResponse,
    responses={403: {"description": "Not the seller", "model": ErrorResponse}},
    summary="Edit a listing",
)
async def update_listing(
    listing_id: str,
    payload: ListingUpdate,
    identity: TokenIdentity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db_session),
) -> ListingResponse:
    return await listing_service.update_listing(db, identity, listing_id, payload)


@router.delete(
    "/{listing_id}",
    response_model=StatusMessage,
    responses={403: {"description": "Not the seller", "model": ErrorResponse}},
    summary="Delete a listing",
)
async def delete_listing(
    listing_id: str,
    identity: TokenIdentity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db_session),
) -> StatusMessage:
    await listing_service.delete_listing(db, identity, listing_id)
    return StatusMessage(message="Listing deleted")


@router.patch(
    "/{listing_id}/status",
    response_model=ListingResponse,
    summary="(admin) Moderate a listing",
)
async def moderate_listing(
    listing_id: str,
    payload: ListingStatusUpdate,
    admin: TokenIdentity = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
) -> ListingResponse:
    listing = await listing_service.moderate_listing(db, listing_id, payload)
    logger.info("Listing %s set to %s by admin %s", listing_id, listing.status, admin.user_id)
    return listing

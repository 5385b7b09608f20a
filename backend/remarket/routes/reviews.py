"""
Remarket Backend - Review Routes
==================================

Reviews under /api/v1/reviews. Anyone can read; signed-in users write;
only the author edits or deletes.
"""

from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from remarket.database import get_db_session
from remarket.routes.deps import get_current_identity
from remarket.schemas.common import StatusMessage
from remarket.schemas.review import ReviewCreate, ReviewResponse, ReviewUpdate
from remarket.security import TokenIdentity
from remarket.services.review_service import review_service

router = APIRouter(prefix="/api/v1/reviews", tags=["Reviews"])


@router.get(
    "/listing/{listing_id}",
    response_model=List[ReviewResponse],
    summary="Reviews of a listing, newest first",
)
async def list_reviews(
    listing_id: str,
    db: AsyncSession = Depends(get_db_session),
) -> List[ReviewResponse]:
    return await review_service.list_for_listing(db, listing_id)


@router.post(
    "",
    response_model=ReviewResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Review a listing",
)
async def create_review(
    payload: ReviewCreate,
    identity: TokenIdentity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db_session),
) -> ReviewResponse:
    return await review_service.create_review(db, identity, payload)


@router.put("/{review_id}", response_model=ReviewResponse, summary="Edit own review")
async def update_review(
    review_id: str,
    payload: ReviewUpdate,
    identity: TokenIdentity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db_session),
) -> ReviewResponse:
    return await review_service.update_review(db, identity, review_id, payload)


@router.delete("/{review_id}", response_model=StatusMessage, summary="Delete own review")
async def delete_review(
    review_id: str,
    identity: TokenIdentity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db_session),
) -> StatusMessage:
    await review_service.delete_review(db, identity, review_id)
    return StatusMessage(message="Review deleted")

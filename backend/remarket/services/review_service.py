"""
Remarket Backend - Review Service
===================================

What:  Reviews on listings: list (newest first, with author snapshot),
       create for an existing listing, and author-only edit/delete.
Who:   routes/reviews.py.
"""

import logging
from typing import List

from sqlalchemy.ext.asyncio import AsyncSession

from remarket import gateway
from remarket.exceptions import AuthorizationError, NotFoundError
from remarket.identifiers import parse_identifier
from remarket.models import Review
from remarket.schemas.review import ReviewCreate, ReviewResponse, ReviewUpdate
from remarket.security import TokenIdentity
from remarket.services.listing_query import load_public_users

logger = logging.getLogger(__name__)


class ReviewService:
    async def _with_authors(self, db: AsyncSession, reviews: List[Review]) -> List[ReviewResponse]:
        authors = await load_public_users(db, (r.user_id for r in reviews))
        responses = []
        for review in reviews:
            response = ReviewResponse.model_validate(review)
            response.author = authors.get(review.user_id)
            responses.append(response)
        return responses

    async def list_for_listing(self, db: AsyncSession, listing_id: str) -> List[ReviewResponse]:
        listing_id = parse_identifier(listing_id, field="listing_id")
        reviews = await gateway.reviews.find(
            db,
            Review.listing_id == listing_id,
            order_by=(Review.created_at.desc(), Review.id.desc()),
        )
        return await self._with_authors(db, reviews)

    async def _owned_review(
        self, db: AsyncSession, caller: TokenIdentity, review_id: str, action: str
    ) -> Review:
        review = await gateway.reviews.find_one_by_id(db, review_id)
        if review is None:
            raise NotFoundError(resource="review", resource_id=review_id)
        if review.user_id != caller.user_id:
            raise AuthorizationError(f"You are not allowed to {action} this review")
        return review

    async def create_review(
        self, db: AsyncSession, author: TokenIdentity, payload: ReviewCreate
    ) -> ReviewResponse:
        if await gateway.listings.find_one_by_id(db, payload.listing_id) is None:
            raise NotFoundError(resource="listing", resource_id=payload.listing_id)

        review = await gateway.reviews.create_new(
            db, {**payload.model_dump(), "user_id": author.user_id}
        )
        logger.info("Review %s on listing %s by %s", review.id, review.listing_id, author.user_id)
        return (await self._with_authors(db, [review]))[0]

    async def update_review(
        self,
        db: AsyncSession,
        caller: TokenIdentity,
        review_id: str,
        payload: ReviewUpdate,
    ) -> ReviewResponse:
        review = await self._owned_review(db, caller, review_id, "edit")
        updated = await gateway.reviews.update(db, review.id, payload.model_dump(exclude_unset=True))
        return (await self._with_authors(db, [updated]))[0]

    async def delete_review(self, db: AsyncSession, caller: TokenIdentity, review_id: str) -> None:
        review = await self._owned_review(db, caller, review_id, "delete")
        await gateway.reviews.soft_delete(db, review.id)


# ── Singleton Instance ────────────────────────────────────────────────────
review_service = ReviewService()

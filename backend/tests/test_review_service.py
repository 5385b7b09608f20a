"""
Remarket Backend - Review Service Tests
=========================================

What we test:
    ✅ Reviews need an existing listing and a 1..5 rating
    ✅ Listing reviews come newest first with the author snapshot
    ✅ Only the author edits or deletes a review
"""

from datetime import timedelta

import pytest
from pydantic import ValidationError as PydanticValidationError

from remarket import gateway
from remarket.exceptions import AuthorizationError, NotFoundError
from remarket.identifiers import new_object_id
from remarket.models.common import utcnow
from remarket.schemas.review import ReviewCreate, ReviewUpdate
from remarket.security import TokenIdentity
from remarket.services.review_service import ReviewService


def identity(user) -> TokenIdentity:
    return TokenIdentity(user_id=user.id, email=user.email, role=user.role)


class TestReviewService:

    def setup_method(self):
        self.service = ReviewService()

    @pytest.mark.asyncio
    async def test_create_with_author(self, db_session, make_user, make_listing):
        seller = await make_user()
        buyer = await make_user(display_name="Bea Buyer")
        listing = await make_listing(seller)

        review = await self.service.create_review(
            db_session, identity(buyer), ReviewCreate(listing_id=listing.id, rating=5, comment="Great")
        )

        assert review.rating == 5
        assert review.user_id == buyer.id
        assert review.author.display_name == "Bea Buyer"

    @pytest.mark.asyncio
    async def test_unknown_listing(self, db_session, make_user):
        buyer = await make_user()
        with pytest.raises(NotFoundError):
            await self.service.create_review(
                db_session, identity(buyer), ReviewCreate(listing_id=new_object_id(), rating=3)
            )

    def test_rating_bounds(self):
        with pytest.raises(PydanticValidationError):
            ReviewCreate(listing_id=new_object_id(), rating=6)
        with pytest.raises(PydanticValidationError):
            ReviewUpdate(rating=0)

    @pytest.mark.asyncio
    async def test_listing_reviews_newest_first(self, db_session, make_user, make_listing):
        seller = await make_user()
        listing = await make_listing(seller)
        other_listing = await make_listing(seller)
        now = utcnow()

        for offset, rating in enumerate((2, 4, 5)):
            review = await self.service.create_review(
                db_session, identity(await make_user()), ReviewCreate(listing_id=listing.id, rating=rating)
            )
            review_row = await gateway.reviews.find_one_by_id(db_session, review.id)
            review_row.created_at = now + timedelta(minutes=offset)
        await self.service.create_review(
            db_session, identity(seller), ReviewCreate(listing_id=other_listing.id, rating=1)
        )
        await db_session.flush()

        reviews = await self.service.list_for_listing(db_session, listing.id)

        assert [r.rating for r in reviews] == [5, 4, 2]

    @pytest.mark.asyncio
    async def test_author_only_edit_and_delete(self, db_session, make_user, make_listing):
        seller = await make_user()
        author = await make_user()
        stranger = await make_user()
        listing = await make_listing(seller)
        review = await self.service.create_review(
            db_session, identity(author), ReviewCreate(listing_id=listing.id, rating=3)
        )

        with pytest.raises(AuthorizationError):
            await self.service.update_review(db_session, identity(stranger), review.id, ReviewUpdate(rating=1))
        with pytest.raises(AuthorizationError):
            await self.service.delete_review(db_session, identity(stranger), review.id)

        updated = await self.service.update_review(
            db_session, identity(author), review.id, ReviewUpdate(comment="Changed my mind")
        )
        assert updated.rating == 3
        assert updated.comment == "Changed my mind"

        await self.service.delete_review(db_session, identity(author), review.id)
        assert await self.service.list_for_listing(db_session, listing.id) == []

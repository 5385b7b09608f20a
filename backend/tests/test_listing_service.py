"""
Remarket Backend - Listing Service Tests
==========================================

What we test:
    ✅ record_view(): first view counted, repeats and seller views ignored,
       views always equals the number of distinct viewers
    ✅ get_listing(): visibility of non-published listings, anonymous reads
    ✅ Seller actions: create starts PENDING, edit/delete are owner-only
    ✅ Moderation: rejection reason kept only while REJECTED
"""

import pytest
from sqlalchemy import func, select

from remarket import gateway
from remarket.exceptions import AuthorizationError, NotFoundError
from remarket.identifiers import new_object_id
from remarket.models import listing_views
from remarket.schemas.listing import ListingCreate, ListingStatusUpdate, ListingUpdate
from remarket.security import TokenIdentity
from remarket.services.listing_service import ListingService


def identity(user) -> TokenIdentity:
    return TokenIdentity(user_id=user.id, email=user.email, role=user.role)


async def view_rows(db, listing_id) -> int:
    result = await db.execute(
        select(func.count()).select_from(listing_views).where(listing_views.c.listing_id == listing_id)
    )
    return result.scalar_one()


class TestRecordView:

    def setup_method(self):
        self.service = ListingService()

    @pytest.mark.asyncio
    async def test_first_view_counted_once(self, db_session, make_user, make_listing):
        seller = await make_user()
        buyer = await make_user()
        listing = await make_listing(seller)

        counted = await self.service.record_view(db_session, listing.id, buyer.id)
        repeat = await self.service.record_view(db_session, listing.id, buyer.id)

        assert counted is not None
        assert counted.views == 1
        assert repeat is None
        assert await view_rows(db_session, listing.id) == 1

    @pytest.mark.asyncio
    async def test_seller_view_not_counted(self, db_session, make_user, make_listing):
        seller = await make_user()
        listing = await make_listing(seller)

        assert await self.service.record_view(db_session, listing.id, seller.id) is None
        assert await view_rows(db_session, listing.id) == 0

    @pytest.mark.asyncio
    async def test_views_match_distinct_viewers(self, db_session, make_user, make_listing):
        seller = await make_user()
        listing = await make_listing(seller)
        viewers = [await make_user() for _ in range(3)]

        for viewer in viewers + viewers:
            await self.service.record_view(db_session, listing.id, viewer.id)
        await self.service.record_view(db_session, listing.id, seller.id)

        refreshed = await self.service.get_live_listing(db_session, listing.id)
        assert refreshed.views == 3 == await view_rows(db_session, listing.id)

    @pytest.mark.asyncio
    async def test_missing_or_deleted_listing(self, db_session, make_user, make_listing):
        seller = await make_user()
        viewer = await make_user()
        listing = await make_listing(seller)
        await gateway.listings.soft_delete(db_session, listing.id)

        assert await self.service.record_view(db_session, listing.id, viewer.id) is None
        assert await self.service.record_view(db_session, new_object_id(), viewer.id) is None


class TestGetListing:

    def setup_method(self):
        self.service = ListingService()

    @pytest.mark.asyncio
    async def test_anonymous_read_does_not_count(self, db_session, make_user, make_listing):
        seller = await make_user()
        listing = await make_listing(seller)

        response = await self.service.get_listing(db_session, listing.id)

        assert response.views == 0
        assert response.seller.id == seller.id

    @pytest.mark.asyncio
    async def test_signed_in_viewer_counted(self, db_session, make_user, make_listing):
        seller = await make_user()
        buyer = await make_user()
        listing = await make_listing(seller)

        first = await self.service.get_listing(db_session, listing.id, identity(buyer))
        second = await self.service.get_listing(db_session, listing.id, identity(buyer))

        assert first.views == 1
        assert second.views == 1

    @pytest.mark.asyncio
    async def test_pending_hidden_from_others(self, db_session, make_user, make_listing):
        seller = await make_user()
        buyer = await make_user()
        admin = await make_user(role="admin")
        listing = await make_listing(seller, status="PENDING")

        with pytest.raises(NotFoundError):
            await self.service.get_listing(db_session, listing.id, identity(buyer))
        with pytest.raises(NotFoundError):
            await self.service.get_listing(db_session, listing.id)

        own = await self.service.get_listing(db_session, listing.id, identity(seller))
        moderated = await self.service.get_listing(db_session, listing.id, identity(admin))
        assert own.status == moderated.status == "PENDING"

    @pytest.mark.asyncio
    async def test_moderation_reads_not_counted(self, db_session, make_user, make_listing):
        seller = await make_user()
        admin = await make_user(role="admin")
        listing = await make_listing(seller, status="PENDING")

        response = await self.service.get_listing(db_session, listing.id, identity(admin))

        assert response.views == 0
        assert await view_rows(db_session, listing.id) == 0


class TestSellerActions:

    def setup_method(self):
        self.service = ListingService()

    @pytest.mark.asyncio
    async def test_create_starts_pending(self, db_session, make_user, make_category):
        seller = await make_user()
        category = await make_category("Bikes")

        response = await self.service.create_listing(
            db_session,
            identity(seller),
            ListingCreate(
                title="  Gravel bike ",
                description="Carbon fork, 1x11 drivetrain.",
                price=900,
                category_id=category.id,
            ),
        )

        assert response.status == "PENDING"
        assert response.title == "Gravel bike"
        assert response.seller_id == seller.id
        assert response.views == 0

    @pytest.mark.asyncio
    async def test_create_with_unknown_category(self, db_session, make_user):
        seller = await make_user()
        with pytest.raises(NotFoundError):
            await self.service.create_listing(
                db_session,
                identity(seller),
                ListingCreate(
                    title="Gravel bike",
                    description="Carbon fork, 1x11 drivetrain.",
                    price=900,
                    category_id=new_object_id(),
                ),
            )

    @pytest.mark.asyncio
    async def test_update_by_owner_only(self, db_session, make_user, make_listing):
        seller = await make_user()
        other = await make_user()
        listing = await make_listing(seller)

        with pytest.raises(AuthorizationError):
            await self.service.update_listing(
                db_session, identity(other), listing.id, ListingUpdate(price=1)
            )

        updated = await self.service.update_listing(
            db_session, identity(seller), listing.id, ListingUpdate(price=199.5)
        )
        assert updated.price == 199.5
        assert updated.title == "Vintage road bike"

    @pytest.mark.asyncio
    async def test_delete_hides_listing(self, db_session, make_user, make_listing):
        seller = await make_user()
        listing = await make_listing(seller)

        await self.service.delete_listing(db_session, identity(seller), listing.id)

        with pytest.raises(NotFoundError):
            await self.service.get_live_listing(db_session, listing.id)

    @pytest.mark.asyncio
    async def test_delete_by_stranger_forbidden(self, db_session, make_user, make_listing):
        seller = await make_user()
        stranger = await make_user()
        listing = await make_listing(seller)

        with pytest.raises(AuthorizationError):
            await self.service.delete_listing(db_session, identity(stranger), listing.id)

    @pytest.mark.asyncio
    async def test_my_listings_include_every_status(self, db_session, make_user, make_listing):
        seller = await make_user()
        other = await make_user()
        await make_listing(seller, status="PENDING")
        await make_listing(seller, status="REJECTED", rejection_reason="blurry photos")
        await make_listing(other)

        page = await self.service.list_my_listings(db_session, identity(seller))

        assert page.pagination.total_items == 2
        assert {item.status for item in page.data} == {"PENDING", "REJECTED"}


class TestModeration:

    def setup_method(self):
        self.service = ListingService()

    @pytest.mark.asyncio
    async def test_reject_then_publish_clears_reason(self, db_session, make_user, make_listing):
        seller = await make_user()
        listing = await make_listing(seller, status="PENDING")

        rejected = await self.service.moderate_listing(
            db_session,
            listing.id,
            ListingStatusUpdate(status="REJECTED", rejection_reason="Prohibited item"),
        )
        published = await self.service.moderate_listing(
            db_session, listing.id, ListingStatusUpdate(status="PUBLISHED", is_featured=True)
        )

        assert rejected.rejection_reason == "Prohibited item"
        assert published.status == "PUBLISHED"
        assert published.rejection_reason is None
        assert published.is_featured is True

    def test_rejection_requires_reason(self):
        with pytest.raises(ValueError):
            ListingStatusUpdate(status="REJECTED", rejection_reason="  ")

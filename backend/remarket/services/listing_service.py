"""
Remarket Backend - Listing Service
====================================

What:  Listing lifecycle (create, read, edit, soft delete, moderation), the
       caller's own listings and the de-duplicated view counter.
Who:   routes/listings.py; user_service (favorites) uses `get_live_listing`.

View Counting (record_view):
    One conditional INSERT decides whether a view counts:

        INSERT INTO listing_views (listing_id, viewer_id, viewed_at)
        SELECT listings.id, :viewer, :now FROM listings
        WHERE listings.id = :listing
          AND listings.seller_id <> :viewer
          AND NOT listings.destroyed
        ON CONFLICT (listing_id, viewer_id) DO NOTHING
        RETURNING listing_id

    A row comes back only for the first view by a non-seller; only then is
    `views` incremented, in the same transaction. Concurrent first views by
    the same user race on the primary key and exactly one of them wins.
"""

import logging
from typing import Optional

from sqlalchemy import DateTime, String, false, literal, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from remarket import gateway
from remarket.database import insert_ignoring_conflicts
from remarket.exceptions import AuthorizationError, DatabaseError, NotFoundError
from remarket.identifiers import parse_identifier
from remarket.models import Listing, listing_views
from remarket.models.common import utcnow
from remarket.models.listing import STATUS_DELETED, STATUS_PENDING, STATUS_PUBLISHED
from remarket.schemas.common import Pagination
from remarket.schemas.listing import (
    ListingCreate,
    ListingPage,
    ListingResponse,
    ListingStatusUpdate,
    ListingUpdate,
)
from remarket.security import TokenIdentity
from remarket.services.listing_query import load_public_users, to_listing_response, with_sellers

logger = logging.getLogger(__name__)


class ListingService:
    """
    Responsibilities:
        - create_listing(), update_listing(), delete_listing(): seller actions
        - moderate_listing(): admin status changes
        - get_listing(): detail view, counting a view for signed-in non-owners
        - record_view(): the de-duplicated counter itself
        - list_my_listings(): every live listing of the caller, any status
    """

    async def get_live_listing(self, db: AsyncSession, listing_id: str) -> Listing:
        listing = await gateway.listings.find_one_by_id(db, listing_id)
        if listing is None:
            raise NotFoundError(resource="listing", resource_id=listing_id)
        return listing

    async def _ensure_category(self, db: AsyncSession, category_id: str) -> None:
        if await gateway.categories.find_one_by_id(db, category_id) is None:
            raise NotFoundError(resource="category", resource_id=category_id)

    def _ensure_owner(self, listing: Listing, caller: TokenIdentity, action: str) -> None:
        if listing.seller_id != caller.user_id:
            raise AuthorizationError(
                f"You are not allowed to {action} this listing",
                context={"listing_id": listing.id},
            )

    async def _respond(self, db: AsyncSession, listing: Listing) -> ListingResponse:
        sellers = await load_public_users(db, [listing.seller_id])
        return to_listing_response(listing, sellers.get(listing.seller_id))

    # ── Seller actions ────────────────────────────────────────────────────
    async def create_listing(
        self, db: AsyncSession, seller: TokenIdentity, payload: ListingCreate
    ) -> ListingResponse:
        await self._ensure_category(db, payload.category_id)
        listing = await gateway.listings.create_new(
            db,
            {
                **payload.model_dump(),
                "seller_id": seller.user_id,
                "status": STATUS_PENDING,
            },
        )
        logger.info("Listing %s created by %s", listing.id, seller.user_id)
        return await self._respond(db, listing)

    async def update_listing(
        self,
        db: AsyncSession,
        caller: TokenIdentity,
        listing_id: str,
        payload: ListingUpdate,
    ) -> ListingResponse:
        listing = await self.get_live_listing(db, listing_id)
        self._ensure_owner(listing, caller, "edit")

        patch = payload.model_dump(exclude_unset=True)
        if patch.get("category_id"):
            await self._ensure_category(db, patch["category_id"])

        updated = await gateway.listings.update(db, listing.id, patch)
        return await self._respond(db, updated)

    async def delete_listing(self, db: AsyncSession, caller: TokenIdentity, listing_id: str) -> None:
        """Soft delete by the owner; the status becomes DELETED."""
        listing = await self.get_live_listing(db, listing_id)
        self._ensure_owner(listing, caller, "delete")
        await gateway.listings.update(db, listing.id, {"status": STATUS_DELETED})
        await gateway.listings.soft_delete(db, listing.id)
        logger.info("Listing %s deleted by %s", listing.id, caller.user_id)

    # ── Moderation ────────────────────────────────────────────────────────
    async def moderate_listing(
        self, db: AsyncSession, listing_id: str, payload: ListingStatusUpdate
    ) -> ListingResponse:
        """
        Admin status change. A rejection reason is kept only while the
        listing stays REJECTED.
        """
        listing = await self.get_live_listing(db, listing_id)
        patch = {"status": payload.status, "rejection_reason": payload.rejection_reason}
        if payload.is_featured is not None:
            patch["is_featured"] = payload.is_featured

        previous = listing.status
        updated = await gateway.listings.update(db, listing.id, patch)
        logger.info("Listing %s moderated: %s → %s", listing.id, previous, updated.status)
        return await self._respond(db, updated)

    # ── Reads ─────────────────────────────────────────────────────────────
    async def get_listing(
        self,
        db: AsyncSession,
        listing_id: str,
        viewer: Optional[TokenIdentity] = None,
    ) -> ListingResponse:
        """
        Listing detail.

        PUBLISHED listings are public. Other statuses are visible to the
        seller and to admins only. A signed-in viewer who is not the seller
        is counted once via record_view, on PUBLISHED listings only.
        """
        listing = await self.get_live_listing(db, listing_id)

        is_owner = viewer is not None and viewer.user_id == listing.seller_id
        is_admin = viewer is not None and viewer.is_admin
        if listing.status != STATUS_PUBLISHED and not (is_owner or is_admin):
            raise NotFoundError(resource="listing", resource_id=listing_id)

        if viewer is not None and not is_owner and listing.status == STATUS_PUBLISHED:
            counted = await self.record_view(db, listing.id, viewer.user_id)
            if counted is not None:
                listing = counted

        return await self._respond(db, listing)

    async def record_view(
        self, db: AsyncSession, listing_id: str, viewer_id: str
    ) -> Optional[Listing]:
        """
        Counts `viewer_id` as a viewer of `listing_id` at most once.

        Returns the listing with its incremented count when the view was
        counted, or None when it was not (seller viewing their own listing,
        repeat view, missing or deleted listing). None is not an error.
        """
        listing_id = parse_identifier(listing_id, field="listing_id")
        viewer_id = parse_identifier(viewer_id, field="viewer_id")

        source = select(
            Listing.id,
            literal(viewer_id, String),
            literal(utcnow(), DateTime(timezone=True)),
        ).where(
            Listing.id == listing_id,
            Listing.seller_id != viewer_id,
            Listing.destroyed.is_(false()),
        )
        insert_view = (
            insert_ignoring_conflicts(db, listing_views, ["listing_id", "viewer_id"])
            .from_select(["listing_id", "viewer_id", "viewed_at"], source)
            .returning(listing_views.c.listing_id)
        )

        try:
            inserted = (await db.execute(insert_view)).first()
            if inserted is None:
                return None
            await db.execute(
                update(Listing)
                .where(Listing.id == listing_id)
                .values(views=Listing.views + 1)
                .execution_options(synchronize_session=False)
            )
            listing = await db.get(Listing, listing_id, populate_existing=True)
        except SQLAlchemyError as e:
            logger.error("Recording view on %s failed: %s", listing_id, e, exc_info=True)
            raise DatabaseError(context={"listing_id": listing_id})

        logger.debug("View on %s by %s counted (views=%d)", listing_id, viewer_id, listing.views)
        return listing

    async def list_my_listings(
        self,
        db: AsyncSession,
        caller: TokenIdentity,
        page: int = 1,
        limit: int = 10,
    ) -> ListingPage:
        criteria = (Listing.seller_id == caller.user_id,)
        total = await gateway.listings.count(db, *criteria)
        listings = await gateway.listings.find(
            db,
            *criteria,
            order_by=(Listing.created_at.desc(), Listing.id.desc()),
            skip=(page - 1) * limit,
            limit=limit,
        )
        return ListingPage(
            data=await with_sellers(db, listings),
            pagination=Pagination.build(page, limit, total),
        )


# ── Singleton Instance ────────────────────────────────────────────────────
listing_service = ListingService()

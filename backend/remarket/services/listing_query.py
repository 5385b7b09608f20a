"""
Remarket Backend - Listing Query Engine
=========================================

What:  Builds and runs the filtered, sorted, paginated listing search and
       joins each listing with its seller's public snapshot.
How:   Filters become SQL predicates on one SELECT joined to `users`; a
       COUNT over the same predicates feeds the pagination block.
Who:   GET /api/v1/listings and /api/v1/listings/search, and any service
       that returns listings with a seller attached.

Visibility Rules:
    - destroyed listings never appear
    - non-admin callers (anonymous included) only see PUBLISHED listings,
      whatever `status` they pass
    - admins see any status, optionally narrowed by `status`

Query plan (public search, default sort):
    SELECT listings.*, users.id, users.username, users.display_name, users.avatar_url
    FROM listings LEFT JOIN users ON users.id = listings.seller_id
    WHERE NOT destroyed AND status = 'PUBLISHED' [AND ...]
    ORDER BY created_at DESC, id DESC LIMIT :limit OFFSET :offset
    → idx_listings_status_created
"""

import logging
from typing import Dict, Iterable, List, Optional

from sqlalchemy import false, func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from remarket.exceptions import DatabaseError
from remarket.models import Listing, User
from remarket.models.listing import STATUS_PUBLISHED
from remarket.schemas.common import Pagination, PublicUser
from remarket.schemas.listing import ListingFilters, ListingPage, ListingResponse

logger = logging.getLogger(__name__)

SORT_COLUMNS = {
    "created_at": Listing.created_at,
    "price": Listing.price,
    "views": Listing.views,
    "title": Listing.title,
}

LIKE_ESCAPE = "\\"


def escape_like(term: str) -> str:
    """Escapes LIKE wildcards so user input matches literally."""
    return (
        term.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", LIKE_ESCAPE + "%")
        .replace("_", LIKE_ESCAPE + "_")
    )


def _contains(column, term: str):
    return column.ilike(f"%{escape_like(term)}%", escape=LIKE_ESCAPE)


def to_listing_response(listing: Listing, seller: Optional[PublicUser]) -> ListingResponse:
    response = ListingResponse.model_validate(listing)
    response.seller = seller
    return response


async def load_public_users(db: AsyncSession, user_ids: Iterable[str]) -> Dict[str, PublicUser]:
    """Public snapshots for a set of user ids, keyed by id."""
    ids = set(user_ids)
    if not ids:
        return {}
    result = await db.execute(
        select(User.id, User.username, User.display_name, User.avatar_url).where(User.id.in_(ids))
    )
    return {row.id: PublicUser.model_validate(row) for row in result.all()}


async def with_sellers(db: AsyncSession, listings: List[Listing]) -> List[ListingResponse]:
    sellers = await load_public_users(db, (listing.seller_id for listing in listings))
    return [to_listing_response(listing, sellers.get(listing.seller_id)) for listing in listings]


class ListingQueryEngine:
    def build_conditions(self, filters: ListingFilters, is_admin: bool) -> list:
        conditions = [Listing.destroyed.is_(false())]

        if is_admin:
            if filters.status:
                conditions.append(Listing.status.in_(filters.status))
        else:
            conditions.append(Listing.status == STATUS_PUBLISHED)

        if filters.search:
            conditions.append(
                or_(_contains(Listing.title, filters.search), _contains(Listing.description, filters.search))
            )
        if filters.category_id:
            conditions.append(Listing.category_id == filters.category_id)
        if filters.min_price is not None:
            conditions.append(Listing.price >= filters.min_price)
        if filters.max_price is not None:
            conditions.append(Listing.price <= filters.max_price)
        if filters.location:
            conditions.append(_contains(Listing.location, filters.location))
        return conditions

    async def search(
        self,
        db: AsyncSession,
        filters: ListingFilters,
        is_admin: bool = False,
    ) -> ListingPage:
        """
        Runs the search and returns one page plus pagination totals.

        Args:
            filters:  validated parameters (see ListingFilters)
            is_admin: whether the caller may see non-PUBLISHED listings
        """
        conditions = self.build_conditions(filters, is_admin)

        sort_column = SORT_COLUMNS[filters.sort_by]
        if filters.sort_order == "asc":
            ordering = (sort_column.asc(), Listing.id.asc())
        else:
            ordering = (sort_column.desc(), Listing.id.desc())

        stmt = (
            select(
                Listing,
                User.id.label("seller_user_id"),
                User.username,
                User.display_name,
                User.avatar_url,
            )
            .outerjoin(User, User.id == Listing.seller_id)
            .where(*conditions)
            .order_by(*ordering)
            .offset((filters.page - 1) * filters.limit)
            .limit(filters.limit)
        )
        count_stmt = select(func.count()).select_from(Listing).where(*conditions)

        try:
            total_items = int((await db.execute(count_stmt)).scalar_one())
            rows = (await db.execute(stmt)).all()
        except SQLAlchemyError as e:
            logger.error("Listing search failed: %s", e, exc_info=True)
            raise DatabaseError(message="Could not search listings. Please try again.")

        data = []
        for row in rows:
            seller = None
            if row.seller_user_id is not None:
                seller = PublicUser(
                    id=row.seller_user_id,
                    username=row.username,
                    display_name=row.display_name,
                    avatar_url=row.avatar_url,
                )
            data.append(to_listing_response(row.Listing, seller))

        logger.debug(
            "Listing search admin=%s page=%d → %d/%d", is_admin, filters.page, len(data), total_items
        )
        return ListingPage(
            data=data,
            pagination=Pagination.build(filters.page, filters.limit, total_items),
        )


# ── Singleton Instance ────────────────────────────────────────────────────
listing_query = ListingQueryEngine()

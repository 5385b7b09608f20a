"""
Remarket Backend - Category Service
=====================================

What:  Category catalogue: paginated search, details and admin maintenance.
How:   The slug is derived from the name on create and on every rename.
       `code` uniqueness is enforced by the database; a duplicate surfaces
       from the gateway as ConflictError (409). Parents must exist and a
       category can never become its own ancestor.
Who:   routes/categories.py.
"""

import logging
import re

from sqlalchemy.ext.asyncio import AsyncSession

from remarket import gateway
from remarket.exceptions import NotFoundError, ValidationError
from remarket.models import Category
from remarket.schemas.category import (
    CategoryCreate,
    CategoryPage,
    CategoryResponse,
    CategoryUpdate,
)
from remarket.schemas.common import Pagination
from remarket.services.listing_query import escape_like

logger = logging.getLogger(__name__)


def slugify(name: str) -> str:
    """Converts a display name to a URL-friendly slug."""
    s = name.lower()
    s = s.replace("&", "")
    s = s.replace("/", "-")
    s = re.sub(r"[^a-z0-9\s-]", "", s)
    s = re.sub(r"[\s-]+", "-", s)
    return s.strip("-") or "category"


class CategoryService:
    async def list_categories(
        self,
        db: AsyncSession,
        page: int = 1,
        limit: int = 10,
        search: str = "",
    ) -> CategoryPage:
        criteria = []
        if search and search.strip():
            criteria.append(Category.name.ilike(f"%{escape_like(search.strip())}%", escape="\\"))

        total = await gateway.categories.count(db, *criteria)
        categories = await gateway.categories.find(
            db,
            *criteria,
            order_by=(Category.created_at.desc(), Category.id.desc()),
            skip=(page - 1) * limit,
            limit=limit,
        )
        return CategoryPage(
            data=[CategoryResponse.model_validate(c) for c in categories],
            pagination=Pagination.build(page, limit, total),
        )

    async def get_category(self, db: AsyncSession, category_id: str) -> Category:
        category = await gateway.categories.find_one_by_id(db, category_id)
        if category is None:
            raise NotFoundError(resource="category", resource_id=category_id)
        return category

    async def _check_parent(self, db: AsyncSession, category_id, parent_id: str) -> None:
        """
        The parent must exist, and walking up from it must never reach
        `category_id` (no self-parenting, no cycles).
        """
        if category_id is not None and parent_id == category_id:
            raise ValidationError("A category cannot be its own parent", field="parent_id")

        seen = set()
        current = await gateway.categories.find_one_by_id(db, parent_id)
        if current is None:
            raise NotFoundError(resource="category", resource_id=parent_id)
        while current is not None and current.parent_id is not None:
            if current.parent_id == category_id or current.parent_id in seen:
                raise ValidationError(
                    "Parent would create a cycle in the category tree",
                    field="parent_id",
                )
            seen.add(current.id)
            current = await gateway.categories.find_one_by_id(db, current.parent_id)

    async def create_category(self, db: AsyncSession, payload: CategoryCreate) -> Category:
        if payload.parent_id:
            await self._check_parent(db, None, payload.parent_id)
        category = await gateway.categories.create_new(
            db,
            {**payload.model_dump(), "slug": slugify(payload.name)},
        )
        logger.info("Category %s created (slug=%s)", category.id, category.slug)
        return category

    async def update_category(
        self, db: AsyncSession, category_id: str, payload: CategoryUpdate
    ) -> Category:
        category = await self.get_category(db, category_id)
        patch = payload.model_dump(exclude_unset=True)

        if patch.get("name"):
            patch["slug"] = slugify(patch["name"])
        elif "name" in patch:
            del patch["name"]
        if patch.get("parent_id"):
            await self._check_parent(db, category.id, patch["parent_id"])

        return await gateway.categories.update(db, category.id, patch)

    async def delete_category(self, db: AsyncSession, category_id: str) -> None:
        if not await gateway.categories.soft_delete(db, category_id):
            raise NotFoundError(resource="category", resource_id=category_id)
        logger.info("Category %s deleted", category_id)


# ── Singleton Instance ────────────────────────────────────────────────────
category_service = CategoryService()

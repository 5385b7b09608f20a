"""
Remarket Backend - Category Service Tests
===========================================

What we test:
    ✅ slugify(): punctuation, ampersands, slashes, repeated separators
    ✅ create: slug derived from the name, unknown parent, duplicate code → 409
    ✅ update: slug regenerated on rename, self-parenting and cycles rejected
    ✅ list: name search, pagination, soft-deleted rows hidden
"""

import pytest

from remarket.exceptions import ConflictError, NotFoundError, ValidationError
from remarket.identifiers import new_object_id
from remarket.schemas.category import CategoryCreate, CategoryUpdate
from remarket.services.category_service import CategoryService, slugify


class TestSlugify:

    @pytest.mark.parametrize(
        "name,expected",
        [
            ("Bikes", "bikes"),
            ("Home & Garden", "home-garden"),
            ("Audio/Video", "audio-video"),
            ("  Kids -- Toys  ", "kids-toys"),
            ("Café 2.0!", "caf-20"),
            ("!!!", "category"),
        ],
    )
    def test_slugify(self, name, expected):
        assert slugify(name) == expected


class TestCreateAndUpdate:

    def setup_method(self):
        self.service = CategoryService()

    @pytest.mark.asyncio
    async def test_create_derives_slug(self, db_session):
        category = await self.service.create_category(
            db_session, CategoryCreate(name="Home & Garden", code="HG")
        )

        assert category.slug == "home-garden"
        assert category.code == "HG"

    @pytest.mark.asyncio
    async def test_duplicate_code_conflicts(self, db_session):
        await self.service.create_category(db_session, CategoryCreate(name="Bikes", code="BK"))

        with pytest.raises(ConflictError):
            await self.service.create_category(db_session, CategoryCreate(name="Bicycles", code="BK"))

    @pytest.mark.asyncio
    async def test_update_to_taken_code_conflicts(self, db_session):
        await self.service.create_category(db_session, CategoryCreate(name="Electronics", code="ELEC"))
        other = await self.service.create_category(db_session, CategoryCreate(name="Phones", code="PHN"))

        with pytest.raises(ConflictError):
            await self.service.update_category(db_session, other.id, CategoryUpdate(code="ELEC"))

    @pytest.mark.asyncio
    async def test_update_keeping_own_code(self, db_session):
        category = await self.service.create_category(
            db_session, CategoryCreate(name="Electronics", code="ELEC")
        )

        updated = await self.service.update_category(
            db_session, category.id, CategoryUpdate(name="Consumer electronics", code="ELEC")
        )

        assert updated.code == "ELEC"
        assert updated.slug == "consumer-electronics"

    @pytest.mark.asyncio
    async def test_unknown_parent(self, db_session):
        with pytest.raises(NotFoundError):
            await self.service.create_category(
                db_session, CategoryCreate(name="Road bikes", parent_id=new_object_id())
            )

    @pytest.mark.asyncio
    async def test_rename_regenerates_slug(self, db_session, make_category):
        category = await make_category("Books")

        updated = await self.service.update_category(
            db_session, category.id, CategoryUpdate(name="Books & Comics")
        )

        assert updated.slug == "books-comics"

    @pytest.mark.asyncio
    async def test_self_parent_rejected(self, db_session, make_category):
        category = await make_category("Books")

        with pytest.raises(ValidationError):
            await self.service.update_category(
                db_session, category.id, CategoryUpdate(parent_id=category.id)
            )

    @pytest.mark.asyncio
    async def test_cycle_rejected(self, db_session, make_category):
        root = await make_category("Vehicles")
        middle = await make_category("Bikes", parent_id=root.id)
        leaf = await make_category("Road bikes", parent_id=middle.id)

        with pytest.raises(ValidationError):
            await self.service.update_category(db_session, root.id, CategoryUpdate(parent_id=leaf.id))

    @pytest.mark.asyncio
    async def test_reparent_within_tree(self, db_session, make_category):
        root = await make_category("Vehicles")
        other = await make_category("Sports")
        child = await make_category("Bikes", parent_id=root.id)

        moved = await self.service.update_category(db_session, child.id, CategoryUpdate(parent_id=other.id))

        assert moved.parent_id == other.id


class TestListAndDelete:

    def setup_method(self):
        self.service = CategoryService()

    @pytest.mark.asyncio
    async def test_search_and_paging(self, db_session, make_category):
        for name in ("Road bikes", "Mountain bikes", "Books", "Bike parts"):
            await make_category(name)

        page = await self.service.list_categories(db_session, page=1, limit=2, search="bike")

        assert page.pagination.total_items == 3
        assert page.pagination.total_pages == 2
        assert len(page.data) == 2

    @pytest.mark.asyncio
    async def test_deleted_category_hidden(self, db_session, make_category):
        category = await make_category("Books")

        await self.service.delete_category(db_session, category.id)

        with pytest.raises(NotFoundError):
            await self.service.get_category(db_session, category.id)
        assert (await self.service.list_categories(db_session)).pagination.total_items == 0

    @pytest.mark.asyncio
    async def test_delete_missing(self, db_session):
        with pytest.raises(NotFoundError):
            await self.service.delete_category(db_session, new_object_id())

"""
Remarket Backend - Persistence Gateway
========================================

What:  Uniform per-collection CRUD over the ORM models: create, find by id,
       filtered find, count, patch update and soft delete.
How:   Each `CollectionGateway` pairs a model with its record schema
       (schemas/records.py). Writes are validated against the schema first;
       updates validate the merged row (current values + patch) so
       cross-field rules always hold. Reads skip soft-deleted rows unless
       asked otherwise. SQLAlchemy failures are translated into the
       application exception hierarchy.
Who:   Every service. Services never call `session.add` for these entities
       directly.
When:  Inside the request's session; the gateway flushes, it never commits.

Error Translation:
    pydantic ValidationError    → ValidationError (all violations in context["errors"])
    malformed id                → InvalidIdentifierError
    IntegrityError              → ConflictError (session rolled back)
    other SQLAlchemyError       → DatabaseError (session rolled back, details logged)
"""

import logging
from typing import Any, Dict, Generic, Iterable, List, Mapping, Optional, Sequence, Type, TypeVar

import pydantic
from sqlalchemy import Select, false, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from remarket.exceptions import ConflictError, DatabaseError, ValidationError
from remarket.identifiers import parse_identifier
from remarket.models import Category, Conversation, Listing, Message, Review, User
from remarket.models.common import utcnow
from remarket.schemas.records import (
    CategoryRecord,
    ConversationRecord,
    ListingRecord,
    MessageRecord,
    RecordSchema,
    ReviewRecord,
    UserRecord,
)

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT")

# Never writable through `update`
ALWAYS_IMMUTABLE = frozenset({"id", "created_at", "updated_at", "destroyed"})


def record_errors(exc: pydantic.ValidationError) -> List[Dict[str, str]]:
    """Flattens pydantic errors into [{field, message}] for API responses."""
    errors = []
    for err in exc.errors():
        field = ".".join(str(part) for part in err.get("loc", ())) or "__root__"
        errors.append({"field": field, "message": err.get("msg", "invalid value")})
    return errors


class CollectionGateway(Generic[ModelT]):
    """
    CRUD gateway for one table.

    Args:
        model:             ORM model class
        record_schema:     pydantic schema validating full rows
        name:              human-readable entity name used in error messages
        immutable_fields:  fields silently dropped from update patches
    """

    def __init__(
        self,
        model: Type[ModelT],
        record_schema: Type[RecordSchema],
        name: str,
        immutable_fields: Iterable[str] = (),
    ):
        self.model = model
        self.record_schema = record_schema
        self.name = name
        self.immutable_fields = ALWAYS_IMMUTABLE | frozenset(immutable_fields)
        self._soft_deletable = hasattr(model, "destroyed")

    # ── Validation ────────────────────────────────────────────────────────
    def validate(self, data: Mapping[str, Any]) -> Dict[str, Any]:
        try:
            record = self.record_schema.model_validate(dict(data))
        except pydantic.ValidationError as e:
            raise ValidationError(
                message=f"{self.name.capitalize()} record is invalid",
                context={"errors": record_errors(e)},
            )
        return record.model_dump()

    def _current_values(self, instance: ModelT) -> Dict[str, Any]:
        return {field: getattr(instance, field) for field in self.record_schema.model_fields}

    # ── Queries ───────────────────────────────────────────────────────────
    def select(self, *criteria, include_destroyed: bool = False) -> Select:
        stmt = select(self.model)
        if self._soft_deletable and not include_destroyed:
            stmt = stmt.where(self.model.destroyed.is_(false()))
        if criteria:
            stmt = stmt.where(*criteria)
        return stmt

    async def _execute(self, db: AsyncSession, stmt):
        try:
            return await db.execute(stmt)
        except SQLAlchemyError as e:
            logger.error("Query on %s failed: %s", self.name, e, exc_info=True)
            raise DatabaseError(context={"collection": self.name})

    async def _flush(self, db: AsyncSession) -> None:
        try:
            await db.flush()
        except IntegrityError as e:
            await db.rollback()
            logger.info("Unique constraint violated on %s: %s", self.name, e.orig)
            raise ConflictError(
                message=f"A {self.name} with the same unique value already exists",
                context={"collection": self.name},
            )
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error("Write to %s failed: %s", self.name, e, exc_info=True)
            raise DatabaseError(context={"collection": self.name})

    # ── Operations ────────────────────────────────────────────────────────
    async def create_new(self, db: AsyncSession, data: Mapping[str, Any]) -> ModelT:
        """Validates `data`, inserts it and returns the row with its new id."""
        values = self.validate(data)
        instance = self.model(**values)
        db.add(instance)
        await self._flush(db)
        logger.debug("Created %s id=%s", self.name, instance.id)
        return instance

    async def find_one_by_id(
        self,
        db: AsyncSession,
        record_id: Any,
        include_destroyed: bool = False,
    ) -> Optional[ModelT]:
        record_id = parse_identifier(record_id)
        stmt = self.select(self.model.id == record_id, include_destroyed=include_destroyed)
        result = await self._execute(db, stmt)
        return result.scalar_one_or_none()

    async def find(
        self,
        db: AsyncSession,
        *criteria,
        order_by: Sequence[Any] = (),
        skip: int = 0,
        limit: Optional[int] = None,
        include_destroyed: bool = False,
    ) -> List[ModelT]:
        stmt = self.select(*criteria, include_destroyed=include_destroyed)
        if order_by:
            stmt = stmt.order_by(*order_by)
        if skip:
            stmt = stmt.offset(skip)
        if limit is not None:
            stmt = stmt.limit(limit)
        result = await self._execute(db, stmt)
        return list(result.scalars().all())

    async def count(self, db: AsyncSession, *criteria, include_destroyed: bool = False) -> int:
        inner = self.select(*criteria, include_destroyed=include_destroyed).subquery()
        result = await self._execute(db, select(func.count()).select_from(inner))
        return int(result.scalar_one())

    async def update(
        self,
        db: AsyncSession,
        record_id: Any,
        patch: Mapping[str, Any],
        include_destroyed: bool = False,
    ) -> Optional[ModelT]:
        """
        Applies `patch` to the row and returns it, or None if it does not exist.

        Immutable fields are dropped from the patch before validation; the
        merged row must still satisfy the record schema.
        """
        instance = await self.find_one_by_id(db, record_id, include_destroyed=include_destroyed)
        if instance is None:
            return None

        allowed = {k: v for k, v in patch.items() if k not in self.immutable_fields}
        dropped = set(patch) - set(allowed)
        if dropped:
            logger.debug("Ignoring immutable fields on %s update: %s", self.name, sorted(dropped))

        merged = self._current_values(instance)
        merged.update(allowed)
        values = self.validate(merged)

        for field, value in values.items():
            if getattr(instance, field) != value:
                setattr(instance, field, value)
        if hasattr(instance, "updated_at"):
            instance.updated_at = utcnow()

        await self._flush(db)
        return instance

    async def soft_delete(self, db: AsyncSession, record_id: Any) -> bool:
        """Flags the row as destroyed. Returns False if it was not found."""
        if not self._soft_deletable:
            raise NotImplementedError(f"{self.name} records cannot be deleted")
        instance = await self.find_one_by_id(db, record_id)
        if instance is None:
            return False
        instance.destroyed = True
        instance.updated_at = utcnow()
        await self._flush(db)
        return True


# ── Gateways ──────────────────────────────────────────────────────────────
users = CollectionGateway(User, UserRecord, "user", immutable_fields={"email"})
listings = CollectionGateway(Listing, ListingRecord, "listing", immutable_fields={"seller_id"})
categories = CollectionGateway(Category, CategoryRecord, "category")
conversations = CollectionGateway(
    Conversation,
    ConversationRecord,
    "conversation",
    immutable_fields={"participant_a", "participant_b", "pair_key"},
)
messages = CollectionGateway(
    Message,
    MessageRecord,
    "message",
    immutable_fields={"conversation_id", "sender_id", "receiver_id"},
)
reviews = CollectionGateway(
    Review, ReviewRecord, "review", immutable_fields={"listing_id", "user_id"}
)

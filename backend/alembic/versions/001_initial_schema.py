"""Initial marketplace schema

Revision ID: 001
Revises: None
Create Date: 2026-10-19 00:00:00.000000+00:00

What:  Creates users, categories, listings, conversations, messages and
       reviews plus the user_favorites and listing_views association tables.
How:   Ids are 24-hex strings generated by the application. Uniqueness that
       the services rely on for concurrency lives here: users.email,
       categories.code, conversations.pair_key and the composite primary
       keys of listing_views and user_favorites.

Rollback: downgrade() drops every table (destructive).
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ID = sa.String(24)


def _id_column() -> sa.Column:
    return sa.Column("id", ID, nullable=False)


def _timestamps() -> list:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    ]


def _destroyed() -> sa.Column:
    return sa.Column("destroyed", sa.Boolean(), server_default=sa.false(), nullable=False)


def upgrade() -> None:
    op.create_table(
        "users",
        _id_column(),
        sa.Column("email", sa.String(254), nullable=False),
        sa.Column("username", sa.String(50), nullable=False),
        sa.Column("display_name", sa.String(100), nullable=False),
        sa.Column("password_hash", sa.String(100), nullable=False),
        sa.Column("role", sa.String(20), nullable=False),
        sa.Column("avatar_url", sa.String(2048), nullable=True),
        sa.Column("phone_number", sa.String(32), nullable=True),
        sa.Column("address", sa.Text(), nullable=True),
        sa.Column("gender", sa.String(10), nullable=True),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column("verify_token", sa.String(64), nullable=True),
        sa.Column("refresh_token", sa.Text(), nullable=True),
        *_timestamps(),
        _destroyed(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email"),
    )
    op.create_index("idx_users_created_at", "users", ["created_at"])

    op.create_table(
        "categories",
        _id_column(),
        sa.Column("name", sa.String(50), nullable=False),
        sa.Column("slug", sa.String(64), nullable=False),
        sa.Column("code", sa.String(256), nullable=True),
        sa.Column("parent_id", ID, nullable=True),
        sa.Column("image_url", sa.String(2048), nullable=True),
        *_timestamps(),
        _destroyed(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("code"),
        sa.ForeignKeyConstraint(["parent_id"], ["categories.id"]),
    )
    op.create_index("idx_categories_slug", "categories", ["slug"])

    op.create_table(
        "listings",
        _id_column(),
        sa.Column("seller_id", ID, nullable=False),
        sa.Column("category_id", ID, nullable=False),
        sa.Column("title", sa.String(100), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("price", sa.Float(), nullable=False),
        sa.Column("condition", sa.String(20), nullable=False),
        sa.Column("images", sa.JSON(), nullable=False),
        sa.Column("location", sa.String(255), nullable=True),
        sa.Column("status", sa.String(20), server_default=sa.text("'PENDING'"), nullable=False),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        sa.Column("views", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("is_featured", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        _destroyed(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["seller_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["category_id"], ["categories.id"]),
    )
    # Public search: WHERE status = 'PUBLISHED' ORDER BY created_at DESC
    op.create_index("idx_listings_status_created", "listings", ["status", "created_at"])
    op.create_index("idx_listings_seller", "listings", ["seller_id"])
    op.create_index("idx_listings_category", "listings", ["category_id"])

    op.create_table(
        "listing_views",
        sa.Column("listing_id", ID, nullable=False),
        sa.Column("viewer_id", ID, nullable=False),
        sa.Column("viewed_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("listing_id", "viewer_id"),
        sa.ForeignKeyConstraint(["listing_id"], ["listings.id"]),
        sa.ForeignKeyConstraint(["viewer_id"], ["users.id"]),
    )

    op.create_table(
        "user_favorites",
        sa.Column("user_id", ID, nullable=False),
        sa.Column("listing_id", ID, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("user_id", "listing_id"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["listing_id"], ["listings.id"]),
    )

    op.create_table(
        "conversations",
        _id_column(),
        sa.Column("participant_a", ID, nullable=False),
        sa.Column("participant_b", ID, nullable=False),
        sa.Column("pair_key", sa.String(49), nullable=False),
        *_timestamps(),
        _destroyed(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("pair_key"),
        sa.ForeignKeyConstraint(["participant_a"], ["users.id"]),
        sa.ForeignKeyConstraint(["participant_b"], ["users.id"]),
    )
    op.create_index("idx_conversations_participant_a", "conversations", ["participant_a"])
    op.create_index("idx_conversations_participant_b", "conversations", ["participant_b"])

    op.create_table(
        "messages",
        _id_column(),
        sa.Column("conversation_id", ID, nullable=False),
        sa.Column("sender_id", ID, nullable=False),
        sa.Column("receiver_id", ID, nullable=False),
        sa.Column("text", sa.Text(), nullable=True),
        sa.Column("image_url", sa.String(2048), nullable=True),
        sa.Column("latitude", sa.Float(), nullable=True),
        sa.Column("longitude", sa.Float(), nullable=True),
        sa.Column("is_read", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["conversation_id"], ["conversations.id"]),
        sa.ForeignKeyConstraint(["sender_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["receiver_id"], ["users.id"]),
    )
    # History reads: WHERE conversation_id = ? ORDER BY created_at, id
    op.create_index(
        "idx_messages_conversation_created", "messages", ["conversation_id", "created_at", "id"]
    )

    op.create_table(
        "reviews",
        _id_column(),
        sa.Column("listing_id", ID, nullable=False),
        sa.Column("user_id", ID, nullable=False),
        sa.Column("rating", sa.Integer(), nullable=False),
        sa.Column("comment", sa.Text(), nullable=True),
        *_timestamps(),
        _destroyed(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["listing_id"], ["listings.id"]),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
    )
    op.create_index("idx_reviews_listing_created", "reviews", ["listing_id", "created_at"])


def downgrade() -> None:
    op.drop_index("idx_reviews_listing_created", table_name="reviews")
    op.drop_table("reviews")
    op.drop_index("idx_messages_conversation_created", table_name="messages")
    op.drop_table("messages")
    op.drop_index("idx_conversations_participant_b", table_name="conversations")
    op.drop_index("idx_conversations_participant_a", table_name="conversations")
    op.drop_table("conversations")
    op.drop_table("user_favorites")
    op.drop_table("listing_views")
    op.drop_index("idx_listings_category", table_name="listings")
    op.drop_index("idx_listings_seller", table_name="listings")
    op.drop_index("idx_listings_status_created", table_name="listings")
    op.drop_table("listings")
    op.drop_index("idx_categories_slug", table_name="categories")
    op.drop_table("categories")
    op.drop_index("idx_users_created_at", table_name="users")
    op.drop_table("users")

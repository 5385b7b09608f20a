"""ORM models. Importing this package registers every table on Base.metadata."""

from remarket.models.category import Category
from remarket.models.conversation import Conversation
from remarket.models.listing import Listing, listing_views
from remarket.models.message import Message
from remarket.models.review import Review
from remarket.models.user import User, user_favorites

__all__ = [
    "Category",
    "Conversation",
    "Listing",
    "Message",
    "Review",
    "User",
    "listing_views",
    "user_favorites",
]

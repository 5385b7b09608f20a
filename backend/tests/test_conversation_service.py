"""
Remarket Backend - Conversation Resolver Tests
================================================

What:  find_or_create idempotence, order independence, concurrency handling
       and the inbox listing.

What we test:
    ✅ (a, b) and (b, a) resolve to the same single row
    ✅ A competing insert that lands between lookup and insert is adopted
    ✅ A row that never becomes visible ends in DatabaseError after retries
    ✅ Same participant twice / malformed ids are rejected
    ✅ Soft-deleted conversations are revived, not duplicated
    ✅ Inbox: other participant, last message, newest activity first
"""

from datetime import timedelta
from unittest.mock import patch

import pytest

from remarket import gateway
from remarket.exceptions import DatabaseError, InvalidIdentifierError, ValidationError
from remarket.identifiers import canonical_pair_key
from remarket.models.common import utcnow
from remarket.services.conversation_service import ConversationService


class TestFindOrCreate:

    def setup_method(self):
        self.service = ConversationService()

    @pytest.mark.asyncio
    async def test_idempotent_in_both_orders(self, db_session, make_user):
        a = await make_user()
        b = await make_user()

        first = await self.service.find_or_create(db_session, a.id, b.id)
        again = await self.service.find_or_create(db_session, a.id, b.id)
        reversed_ = await self.service.find_or_create(db_session, b.id, a.id)

        assert first.id == again.id == reversed_.id
        assert first.pair_key == canonical_pair_key(a.id, b.id)
        assert await gateway.conversations.count(db_session) == 1

    @pytest.mark.asyncio
    async def test_keeps_participants_as_supplied(self, db_session, make_user):
        a = await make_user()
        b = await make_user()

        conversation = await self.service.find_or_create(db_session, b.id, a.id)

        assert (conversation.participant_a, conversation.participant_b) == (b.id, a.id)

    @pytest.mark.asyncio
    async def test_adopts_concurrently_created_row(self, db_session, make_user):
        """A competitor inserts after our lookup missed; we must return its row."""
        a = await make_user()
        b = await make_user()
        pair_key = canonical_pair_key(a.id, b.id)
        original_lookup = self.service.find_by_pair_key
        competitor = {}

        async def racing_lookup(db, key, include_destroyed=False):
            if not competitor:
                competitor["row"] = await gateway.conversations.create_new(
                    db,
                    {"participant_a": b.id, "participant_b": a.id, "pair_key": pair_key},
                )
                return None
            return await original_lookup(db, key, include_destroyed=include_destroyed)

        with patch.object(self.service, "find_by_pair_key", side_effect=racing_lookup):
            conversation = await self.service.find_or_create(db_session, a.id, b.id)

        assert conversation.id == competitor["row"].id
        assert await gateway.conversations.count(db_session) == 1

    @pytest.mark.asyncio
    async def test_gives_up_when_row_never_visible(self, db_session, make_user):
        a = await make_user()
        b = await make_user()

        async def blind_lookup(db, key, include_destroyed=False):
            return None

        with patch.object(self.service, "find_by_pair_key", side_effect=blind_lookup) as lookup:
            with pytest.raises(DatabaseError):
                await self.service.find_or_create(db_session, a.id, b.id)

        # Two lookups (before and after the insert) per attempt
        assert lookup.await_count == 2 * 3

    @pytest.mark.asyncio
    async def test_same_participant_rejected(self, db_session, make_user):
        a = await make_user()
        with pytest.raises(ValidationError):
            await self.service.find_or_create(db_session, a.id, a.id.upper())

    @pytest.mark.asyncio
    async def test_malformed_id_rejected(self, db_session, make_user):
        a = await make_user()
        with pytest.raises(InvalidIdentifierError):
            await self.service.find_or_create(db_session, a.id, "bogus")

    @pytest.mark.asyncio
    async def test_revives_soft_deleted(self, db_session, make_user):
        a = await make_user()
        b = await make_user()
        conversation = await self.service.find_or_create(db_session, a.id, b.id)
        await gateway.conversations.soft_delete(db_session, conversation.id)

        revived = await self.service.find_or_create(db_session, b.id, a.id)

        assert revived.id == conversation.id
        assert revived.destroyed is False
        assert await gateway.conversations.count(db_session, include_destroyed=True) == 1

    @pytest.mark.asyncio
    async def test_find_by_participants_is_read_only(self, db_session, make_user):
        a = await make_user()
        b = await make_user()

        assert await self.service.find_by_participants(db_session, a.id, b.id) is None
        assert await gateway.conversations.count(db_session) == 0


class TestListForUser:

    def setup_method(self):
        self.service = ConversationService()

    @pytest.mark.asyncio
    async def test_inbox_order_and_last_message(self, db_session, make_user):
        me = await make_user()
        alice = await make_user(display_name="Alice")
        bob = await make_user(display_name="Bob")
        stranger = await make_user()
        other = await make_user()

        with_alice = await self.service.find_or_create(db_session, me.id, alice.id)
        with_bob = await self.service.find_or_create(db_session, bob.id, me.id)
        await self.service.find_or_create(db_session, stranger.id, other.id)

        now = utcnow()
        for offset, (conversation, sender, receiver, text) in enumerate(
            [
                (with_alice, alice, me, "hi from alice"),
                (with_bob, me, bob, "hi bob"),
                (with_alice, me, alice, "latest"),
            ]
        ):
            message = await gateway.messages.create_new(
                db_session,
                {
                    "conversation_id": conversation.id,
                    "sender_id": sender.id,
                    "receiver_id": receiver.id,
                    "text": text,
                },
            )
            message.created_at = now + timedelta(seconds=offset)
        await db_session.flush()

        inbox = await self.service.list_for_user(db_session, me.id)

        assert [entry.id for entry in inbox] == [with_alice.id, with_bob.id]
        assert inbox[0].other_participant.display_name == "Alice"
        assert inbox[0].last_message.text == "latest"
        assert inbox[1].other_participant.display_name == "Bob"
        assert inbox[1].last_message.text == "hi bob"

    @pytest.mark.asyncio
    async def test_conversation_without_messages(self, db_session, make_user):
        me = await make_user()
        friend = await make_user()
        await self.service.find_or_create(db_session, me.id, friend.id)

        inbox = await self.service.list_for_user(db_session, me.id)

        assert len(inbox) == 1
        assert inbox[0].last_message is None
        assert inbox[0].other_participant.id == friend.id

    @pytest.mark.asyncio
    async def test_empty(self, db_session, make_user):
        me = await make_user()
        assert await self.service.list_for_user(db_session, me.id) == []

"""
Remarket Backend - Realtime Tests
===================================

What we test:
    ✅ Registry: multiple sessions per user, remove tolerates unknown sids
    ✅ Handshake: auth token or cookie accepted; NO_TOKEN / INVALID_TOKEN refused
       before any room is joined
    ✅ Disconnect forgets the session
    ✅ Notifier: receiver's room only (echo opt-in), emit failures swallowed
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
from socketio.exceptions import ConnectionRefusedError as SocketConnectionRefused

from remarket.identifiers import new_object_id
from remarket.models.common import utcnow
from remarket.realtime import (
    NEW_MESSAGE_EVENT,
    InMemoryConnectionRegistry,
    RealtimeNotifier,
    create_socket_server,
)
from remarket.realtime.server import INVALID_TOKEN, NO_TOKEN, extract_token
from remarket.schemas.message import MessageResponse
from remarket.security import create_access_token, create_refresh_token


def message_response(sender_id: str, receiver_id: str) -> MessageResponse:
    return MessageResponse(
        id=new_object_id(),
        conversation_id=new_object_id(),
        sender_id=sender_id,
        receiver_id=receiver_id,
        text="Still available?",
        is_read=False,
        created_at=utcnow(),
    )


class TestConnectionRegistry:

    def test_sessions_per_user(self):
        registry = InMemoryConnectionRegistry()
        registry.add("sid-1", "u1")
        registry.add("sid-2", "u1")
        registry.add("sid-3", "u2")

        assert registry.sessions_for("u1") == {"sid-1", "sid-2"}
        assert registry.user_for("sid-3") == "u2"
        assert len(registry) == 3

    def test_remove(self):
        registry = InMemoryConnectionRegistry()
        registry.add("sid-1", "u1")

        assert registry.remove("sid-1") == "u1"
        assert registry.remove("sid-1") is None
        assert registry.is_online("u1") is False

    def test_readd_moves_session(self):
        registry = InMemoryConnectionRegistry()
        registry.add("sid-1", "u1")
        registry.add("sid-1", "u2")

        assert registry.sessions_for("u1") == set()
        assert registry.sessions_for("u2") == {"sid-1"}


class TestExtractToken:

    def test_auth_payload_preferred(self):
        environ = {"HTTP_COOKIE": "accessToken=from-cookie"}
        assert extract_token(environ, {"token": " from-auth "}) == "from-auth"

    def test_cookie_fallback(self):
        environ = {"HTTP_COOKIE": "theme=dark; accessToken=from-cookie"}
        assert extract_token(environ, None) == "from-cookie"

    def test_nothing(self):
        assert extract_token({}, {"token": ""}) is None


class TestSocketHandshake:

    def setup_method(self):
        self.registry = InMemoryConnectionRegistry()
        self.sio = create_socket_server(self.registry, cors_origins=[])
        self.sio.enter_room = AsyncMock()
        self.connect = self.sio.handlers["/"]["connect"]
        self.disconnect = self.sio.handlers["/"]["disconnect"]

    @pytest.mark.asyncio
    async def test_valid_token_joins_user_room(self):
        user_id = new_object_id()
        token = create_access_token(user_id, "u@remarket.io", "client")

        await self.connect("sid-1", {}, {"token": token})

        self.sio.enter_room.assert_awaited_once_with("sid-1", user_id)
        assert self.registry.user_for("sid-1") == user_id

    @pytest.mark.asyncio
    async def test_cookie_token_accepted(self):
        user_id = new_object_id()
        token = create_access_token(user_id, "u@remarket.io", "client")

        await self.connect("sid-1", {"HTTP_COOKIE": f"accessToken={token}"}, None)

        assert self.registry.sessions_for(user_id) == {"sid-1"}

    @pytest.mark.asyncio
    async def test_missing_token_refused(self):
        with pytest.raises(SocketConnectionRefused) as exc:
            await self.connect("sid-1", {}, None)

        assert exc.value.error_args["message"] == NO_TOKEN
        self.sio.enter_room.assert_not_awaited()
        assert len(self.registry) == 0

    @pytest.mark.asyncio
    async def test_invalid_token_refused(self):
        with pytest.raises(SocketConnectionRefused) as exc:
            await self.connect("sid-1", {}, {"token": "not-a-jwt"})

        assert exc.value.error_args["message"] == INVALID_TOKEN
        self.sio.enter_room.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_refresh_token_refused(self):
        token = create_refresh_token(new_object_id(), "u@remarket.io", "client")

        with pytest.raises(SocketConnectionRefused) as exc:
            await self.connect("sid-1", {}, {"token": token})

        assert exc.value.error_args["message"] == INVALID_TOKEN

    @pytest.mark.asyncio
    async def test_disconnect_forgets_session(self):
        user_id = new_object_id()
        token = create_access_token(user_id, "u@remarket.io", "client")
        await self.connect("sid-1", {}, {"token": token})

        await self.disconnect("sid-1", "client disconnect")

        assert self.registry.is_online(user_id) is False


class TestRealtimeNotifier:

    def setup_method(self):
        self.sio = MagicMock()
        self.sio.emit = AsyncMock()
        self.registry = InMemoryConnectionRegistry()
        self.sender = new_object_id()
        self.receiver = new_object_id()

    @pytest.mark.asyncio
    async def test_pushes_to_receiver_room(self):
        notifier = RealtimeNotifier(self.sio, self.registry)
        message = message_response(self.sender, self.receiver)

        await notifier.notify_new_message(message)

        self.sio.emit.assert_awaited_once()
        event, payload = self.sio.emit.await_args.args
        assert event == NEW_MESSAGE_EVENT
        assert payload["id"] == message.id
        assert payload["text"] == "Still available?"
        assert self.sio.emit.await_args.kwargs["room"] == self.receiver

    @pytest.mark.asyncio
    async def test_echo_to_sender(self):
        notifier = RealtimeNotifier(self.sio, self.registry, echo_to_sender=True)

        await notifier.notify_new_message(message_response(self.sender, self.receiver))

        rooms = [call.kwargs["room"] for call in self.sio.emit.await_args_list]
        assert rooms == [self.receiver, self.sender]

    @pytest.mark.asyncio
    async def test_emit_failure_swallowed(self):
        self.sio.emit.side_effect = ConnectionError("redis down")
        notifier = RealtimeNotifier(self.sio, self.registry, echo_to_sender=True)

        await notifier.notify_new_message(message_response(self.sender, self.receiver))

        assert self.sio.emit.await_count == 2

"""
Remarket Backend - Socket.IO Server
=====================================

What:  Builds the python-socketio AsyncServer and its connection handlers.
How:   The handshake must carry an access token, either as
       `auth={"token": "..."}` or in the `accessToken` cookie. It is checked
       with the same `decode_access_token` HTTP auth uses. A missing token is
       refused with NO_TOKEN, a bad one with INVALID_TOKEN, both before the
       session joins any room. Accepted sessions join the room named by the
       user id and are recorded in the connection registry.
Who:   main.create_app (builds the server), realtime.notifier (emits).
When:  Once per process at app construction.

Multi-process:
    SOCKETIO_MESSAGE_QUEUE=redis://... swaps in socketio.AsyncRedisManager so
    an emit on one worker reaches sessions connected to any worker.
"""

import logging
from http.cookies import SimpleCookie
from typing import Any, Dict, List, Optional, Union

import socketio
from socketio.exceptions import ConnectionRefusedError as SocketConnectionRefused

from remarket.config import settings
from remarket.exceptions import AuthenticationError
from remarket.realtime.registry import ConnectionRegistry
from remarket.security import decode_access_token

logger = logging.getLogger(__name__)

ACCESS_TOKEN_COOKIE = "accessToken"
NO_TOKEN = "NO_TOKEN"
INVALID_TOKEN = "INVALID_TOKEN"


def _cookie_token(environ: Dict[str, Any]) -> Optional[str]:
    raw = environ.get("HTTP_COOKIE")
    if not raw:
        return None
    cookie = SimpleCookie()
    cookie.load(raw)
    morsel = cookie.get(ACCESS_TOKEN_COOKIE)
    return morsel.value if morsel else None


def extract_token(environ: Dict[str, Any], auth: Any) -> Optional[str]:
    """Handshake `auth.token` first, then the access token cookie."""
    if isinstance(auth, dict):
        token = auth.get("token")
        if isinstance(token, str) and token.strip():
            return token.strip()
    return _cookie_token(environ)


def create_socket_server(
    registry: ConnectionRegistry,
    cors_origins: Union[List[str], str, None] = None,
    message_queue: Optional[str] = None,
) -> socketio.AsyncServer:
    """
    Creates the AsyncServer with authenticated connect handling.

    Args:
        registry:      where accepted sessions are recorded
        cors_origins:  allowed origins for the Socket.IO handshake
        message_queue: Redis URL for cross-process fan-out (optional)
    """
    client_manager = None
    if message_queue:
        client_manager = socketio.AsyncRedisManager(message_queue)
        logger.info("Socket.IO using Redis message queue")

    sio = socketio.AsyncServer(
        async_mode="asgi",
        cors_allowed_origins=cors_origins if cors_origins is not None else settings.cors_origins_list,
        client_manager=client_manager,
        logger=False,
        engineio_logger=False,
    )

    @sio.event
    async def connect(sid, environ, auth=None):
        token = extract_token(environ, auth)
        if not token:
            logger.info("Socket connection refused: no token (sid=%s)", sid)
            raise SocketConnectionRefused(NO_TOKEN)
        try:
            identity = decode_access_token(token)
        except AuthenticationError as e:
            logger.info("Socket connection refused: %s (sid=%s)", e.message, sid)
            raise SocketConnectionRefused(INVALID_TOKEN)

        await sio.enter_room(sid, identity.user_id)
        registry.add(sid, identity.user_id)
        logger.info("Socket connected: user=%s sid=%s", identity.user_id, sid)

    @sio.event
    async def disconnect(sid, reason=None):
        user_id = registry.remove(sid)
        logger.info("Socket disconnected: user=%s sid=%s reason=%s", user_id, sid, reason)

    return sio

"""Socket.IO push of new messages to connected users."""

from remarket.realtime.notifier import NEW_MESSAGE_EVENT, RealtimeNotifier
from remarket.realtime.registry import ConnectionRegistry, InMemoryConnectionRegistry
from remarket.realtime.server import create_socket_server

__all__ = [
    "NEW_MESSAGE_EVENT",
    "ConnectionRegistry",
    "InMemoryConnectionRegistry",
    "RealtimeNotifier",
    "create_socket_server",
]

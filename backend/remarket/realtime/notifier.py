"""
Remarket Backend - Realtime Notifier
======================================

What:  Pushes a `newMessage` event to the receiver of a freshly stored message.
How:   Emits to the Socket.IO room named by the receiver's user id, so every
       session of that user receives it. The sender's room is included only
       when REALTIME_ECHO_TO_SENDER is enabled.
Who:   Scheduled by the send-message route as a FastAPI background task,
       i.e. after the message transaction committed and the response went out.

Delivery is best effort: a failed emit is logged and swallowed, the stored
message is the source of truth and clients reload history on reconnect.
"""

import logging

import socketio

from remarket.realtime.registry import ConnectionRegistry
from remarket.schemas.message import MessageResponse

logger = logging.getLogger(__name__)

NEW_MESSAGE_EVENT = "newMessage"


class RealtimeNotifier:
    def __init__(
        self,
        sio: socketio.AsyncServer,
        registry: ConnectionRegistry,
        echo_to_sender: bool = False,
    ):
        self.sio = sio
        self.registry = registry
        self.echo_to_sender = echo_to_sender

    async def notify_new_message(self, message: MessageResponse) -> None:
        payload = message.model_dump(mode="json")
        rooms = [message.receiver_id]
        if self.echo_to_sender and message.sender_id != message.receiver_id:
            rooms.append(message.sender_id)

        for room in rooms:
            try:
                await self.sio.emit(NEW_MESSAGE_EVENT, payload, room=room)
            except Exception as e:
                # Never propagates: the message is already stored
                logger.warning(
                    "Failed to push message %s to user %s: %s",
                    message.id,
                    room,
                    e,
                    exc_info=True,
                )
            else:
                logger.debug(
                    "Pushed message %s to user %s (%d local sessions)",
                    message.id,
                    room,
                    len(self.registry.sessions_for(room)),
                )

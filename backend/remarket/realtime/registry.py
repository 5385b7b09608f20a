"""
Remarket Backend - Connection Registry
========================================

What:  Tracks which Socket.IO sessions (sids) belong to which user.
How:   Abstract interface with an in-memory implementation. Delivery itself
       goes through Socket.IO rooms named by user id; the registry answers
       "is this user online / with how many sessions" and lets disconnects
       clean up.
Who:   realtime/server.py (connect/disconnect handlers), realtime/notifier.py
       (delivery logging), tests.
When:  Created once in `create_app` and stored on `app.state.registry`.

A multi-process deployment keeps one registry per process and relies on the
Socket.IO Redis manager for cross-process room delivery.
"""

import logging
from abc import ABC, abstractmethod
from collections import defaultdict
from typing import Dict, Optional, Set

logger = logging.getLogger(__name__)


class ConnectionRegistry(ABC):
    """
    Contract:
        - add() is called once per accepted connection
        - remove() is called on disconnect and tolerates unknown sids
        - lookups never raise
    """

    @abstractmethod
    def add(self, sid: str, user_id: str) -> None:
        ...

    @abstractmethod
    def remove(self, sid: str) -> Optional[str]:
        """Forgets `sid`; returns the user it belonged to, if any."""
        ...

    @abstractmethod
    def user_for(self, sid: str) -> Optional[str]:
        ...

    @abstractmethod
    def sessions_for(self, user_id: str) -> Set[str]:
        ...

    def is_online(self, user_id: str) -> bool:
        return bool(self.sessions_for(user_id))


class InMemoryConnectionRegistry(ConnectionRegistry):
    """
    Registry for a single process.

    All mutations happen on the event loop thread, so plain dicts suffice.
    """

    def __init__(self):
        self._user_by_sid: Dict[str, str] = {}
        self._sids_by_user: Dict[str, Set[str]] = defaultdict(set)

    def add(self, sid: str, user_id: str) -> None:
        previous = self._user_by_sid.get(sid)
        if previous is not None and previous != user_id:
            self._discard(sid, previous)
        self._user_by_sid[sid] = user_id
        self._sids_by_user[user_id].add(sid)
        logger.debug("Registered sid=%s for user=%s", sid, user_id)

    def remove(self, sid: str) -> Optional[str]:
        user_id = self._user_by_sid.pop(sid, None)
        if user_id is not None:
            self._discard(sid, user_id)
            logger.debug("Unregistered sid=%s for user=%s", sid, user_id)
        return user_id

    def _discard(self, sid: str, user_id: str) -> None:
        sids = self._sids_by_user.get(user_id)
        if sids is None:
            return
        sids.discard(sid)
        if not sids:
            del self._sids_by_user[user_id]

    def user_for(self, sid: str) -> Optional[str]:
        return self._user_by_sid.get(sid)

    def sessions_for(self, user_id: str) -> Set[str]:
        return set(self._sids_by_user.get(user_id, ()))

    def __len__(self) -> int:
        return len(self._user_by_sid)

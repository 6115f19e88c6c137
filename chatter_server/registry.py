# chatter_server/registry.py

import asyncio
import logging
from typing import Dict, List, Optional, Set

from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from .connection import ClientSession

logger = logging.getLogger(__name__)


class UserRegistry:
    """
    Bookkeeping of which usernames are online, which went offline, and which
    session owns each online name.

    `online` and `offline` are always disjoint and `seen` is their union.
    There is exactly one session per online name. Every mutation happens
    under one lock.
    """
    def __init__(self):
        self._sessions: Dict[str, "ClientSession"] = {}
        self._offline: Set[str] = set()
        self._seen: Set[str] = set()
        self._lock = asyncio.Lock()
        logger.debug("UserRegistry initialized.")

    def is_online(self, username: str) -> bool:
        return username in self._sessions

    def has_been_seen(self, username: str) -> bool:
        return username in self._seen

    @property
    def online(self) -> Set[str]:
        return set(self._sessions)

    @property
    def offline(self) -> Set[str]:
        return set(self._offline)

    @property
    def seen(self) -> Set[str]:
        return set(self._seen)

    async def add_online(self, username: str, session: "ClientSession") -> Optional[List[str]]:
        """
        Marks `username` online and binds it to `session`.

        Returns the names that were online just before this call, or None if
        `username` is already online (the existing owner is kept).
        """
        async with self._lock:
            if username in self._sessions:
                logger.info(f"Username '{username}' is already online.")
                return None
            roster = list(self._sessions)
            self._sessions[username] = session
            self._seen.add(username)
            self._offline.discard(username)
            logger.info(f"User '{username}' registered.")
            return roster

    async def remove_online(self, session: "ClientSession") -> bool:
        """
        Moves the session's username from online to offline.
        Returns False, changing nothing, if that session does not own an online name.
        """
        username = session.username
        async with self._lock:
            if not username or self._sessions.get(username) is not session:
                return False
            del self._sessions[username]
            self._offline.add(username)
            logger.info(f"User '{username}' unregistered.")
            return True

    async def get_session(self, username: str) -> Optional["ClientSession"]:
        """Retrieves the session bound to an online username."""
        async with self._lock:
            return self._sessions.get(username)

    async def all_sessions(self) -> List["ClientSession"]:
        """Returns a snapshot of every online session, safe to iterate while others log in or out."""
        async with self._lock:
            return list(self._sessions.values())

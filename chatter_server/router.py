# chatter_server/router.py

import asyncio
import logging

from .config import settings

from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from .registry import UserRegistry
    from .connection import ClientSession

logger = logging.getLogger(__name__)

# Raised by a writer whose peer has gone away or whose transport is closed.
DELIVERY_ERRORS = (ConnectionError, OSError)


class Router:
    """
    Handles routing lines between clients.
    Delivery is best-effort: a failing recipient is logged and skipped, and a
    recipient that stops reading is disconnected after `write_timeout` seconds.
    """
    def __init__(self, registry: "UserRegistry", write_timeout: float = settings.WRITE_TIMEOUT):
        self.registry = registry
        self.write_timeout = write_timeout
        logger.debug("Router initialized.")

    async def broadcast_except(self, sender_name: str, line: str) -> int:
        """
        Writes `line` to every authenticated session except the one named
        `sender_name`. Returns the number of successful deliveries.
        """
        delivered = 0
        for session in await self.registry.all_sessions():
            if not session.username or session.username == sender_name:
                continue
            if await self._deliver(session, line):
                delivered += 1
        return delivered

    async def unicast(self, target_name: str, line: str) -> bool:
        """Writes `line` to the session bound to `target_name`, if it is online."""
        session = await self.registry.get_session(target_name)
        if session is None:
            logger.debug(f"Unicast target '{target_name}' is not online.")
            return False
        return await self._deliver(session, line)

    async def _deliver(self, session: "ClientSession", line: str) -> bool:
        if session.is_closing:
            # Already going away, e.g. during shutdown; its own loop cleans up.
            logger.debug(f"Skipped closing connection of '{session.username}'.")
            return False
        try:
            await asyncio.wait_for(session.send_line(line), self.write_timeout)
        except asyncio.TimeoutError:
            logger.warning(f"'{session.username}' at {session.addr!r} stopped reading; disconnecting.")
            session.abort()
            return False
        except DELIVERY_ERRORS as e:
            logger.warning(f"Failed to deliver to '{session.username}' at {session.addr!r}: {e}")
            return False
        return True

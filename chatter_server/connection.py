# chatter_server/connection.py

import asyncio
import logging

from .config import settings
from .protocol import (
    Command, ProtocolError, LOGIN_SUCCESS, LOGIN_FAILURE, LOGOUT_SUCCESS,
    parse_line, parse_whisper, validate_username,
    format_message, format_whisper, format_online, format_offline,
)
from .router import DELIVERY_ERRORS

from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from .registry import UserRegistry
    from .router import Router

logger = logging.getLogger(__name__)


class ClientSession:
    """
    Server-side state and command loop for one client connection.

    A session starts unauthenticated (empty username), becomes authenticated
    after a successful `login`, and is closed for good on `logout`, on a read
    failure or when the server shuts down.
    """
    def __init__(self, registry: "UserRegistry", router: "Router",
                 reader: asyncio.StreamReader, writer: asyncio.StreamWriter):
        self.registry = registry
        self.router = router
        self.reader = reader
        self.writer = writer

        self.username: str = ""
        self.addr = writer.get_extra_info('peername')
        self._running = True

        self._handlers = {
            Command.LOGIN: self._perform_login,
            Command.LOGOUT: self._perform_logout,
            Command.MSG: self._perform_message,
            Command.WHSP: self._perform_whisper,
        }
        logger.debug(f"ClientSession created for {self.addr!r}")

    @property
    def is_authenticated(self) -> bool:
        return bool(self.username)

    async def send_line(self, line: str):
        """Writes one protocol line to this client."""
        if self.writer.is_closing():
            raise ConnectionResetError("connection is closed")
        self.writer.write((line + '\n').encode(settings.ENCODING))
        await self.writer.drain()

    @property
    def is_closing(self) -> bool:
        return self.writer.is_closing()

    def close(self):
        """Closes the connection; the pending read then ends the command loop."""
        self._running = False
        self.writer.close()

    def abort(self):
        """Drops the connection without flushing what is still buffered for a peer that stopped reading."""
        self._running = False
        self.writer.transport.abort()

    async def handle_connection(self):
        """Reads and executes commands until logout, disconnect or shutdown."""
        logger.info(f"Connection opened from {self.addr!r}")
        try:
            while self._running:
                line_bytes = await self.reader.readline()
                if not line_bytes:
                    break
                await self._process_line(line_bytes.decode(settings.ENCODING, errors="replace"))

        except ValueError as e:
            # StreamReader.readline reports an over-long line this way
            logger.warning(f"Unreadable input from {self.addr!r}: {e}")
        except (ConnectionError, OSError, asyncio.IncompleteReadError) as e:
            logger.warning(f"Connection error with {self.addr!r}: {e}")
        except Exception:
            logger.exception(f"An unexpected error occurred with client {self.addr!r}")
        finally:
            await self._release()
            logger.info(f"Connection to {self.addr!r} closed.")

    async def _process_line(self, line: str):
        try:
            command, body = parse_line(line)
        except ProtocolError as e:
            logger.info(f"Ignoring malformed line from {self.addr!r}: {e}")
            return

        if command is Command.INVALID:
            logger.info(f"Client {self.addr!r} sent an invalid command.")
            return

        if not self.is_authenticated and command not in (Command.LOGIN, Command.LOGOUT):
            logger.info(f"Rejected '{command.value}' from unauthenticated client {self.addr!r}")
            return

        try:
            await self._handlers[command](body)
        except ProtocolError as e:
            logger.info(f"Rejected '{command.value}' from {self.username or self.addr!r}: {e}")

    async def _perform_login(self, body: str):
        name = body.strip()

        if self.is_authenticated:
            logger.info(f"'{self.username}' attempted a second login as '{name}'.")
            await self.send_line(LOGIN_FAILURE)
            return

        if not validate_username(name):
            logger.info(f"Invalid username {name!r} from {self.addr!r}")
            await self.send_line(LOGIN_FAILURE)
            return

        roster = await self.registry.add_online(name, self)
        if roster is None:
            await self.send_line(LOGIN_FAILURE)
            return

        self.username = name
        logger.info(f"'{name}' logged in from {self.addr!r}")
        await self.send_line(LOGIN_SUCCESS)
        await self.router.broadcast_except(name, format_online(name))

        # Roster replay: who was already here before this login
        for other in roster:
            await self.send_line(format_online(other))

    async def _perform_logout(self, body: str):
        # The body is ignored; the session's own identity is authoritative.
        self._running = False
        try:
            await self.send_line(LOGOUT_SUCCESS)
        except DELIVERY_ERRORS as e:
            logger.warning(f"Could not confirm logout to {self.addr!r}: {e}")

        if self.is_authenticated:
            logger.info(f"'{self.username}' logged out.")
        await self._release()

    async def _perform_message(self, body: str):
        await self.router.broadcast_except(self.username, format_message(self.username, body))

    async def _perform_whisper(self, body: str):
        target, text = parse_whisper(body)

        if target == self.username:
            raise ProtocolError("cannot whisper to yourself")
        if not self.registry.is_online(target):
            raise ProtocolError(f"whisper target '{target}' is not online")

        await self.router.unicast(target, format_whisper(self.username, text))

    async def _release(self):
        """
        Removes this session from the registry, tells everyone else it went
        offline and closes the connection. Safe to call more than once.
        """
        name = self.username
        if name and await self.registry.remove_online(self):
            await self.router.broadcast_except(name, format_offline(name))
        self.username = ""

        if not self.writer.is_closing():
            self.writer.close()
        try:
            await self.writer.wait_closed()
        except DELIVERY_ERRORS as e:
            logger.debug(f"Error while closing {self.addr!r}: {e}")

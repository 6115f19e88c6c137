# chatter_server/app.py

import argparse
import asyncio
import logging
import sys
from typing import Optional, Set

# Import our own modules
from .config import settings
from .console import ConsoleWatcher
from .connection import ClientSession
from .logger import setup_logging
from .registry import UserRegistry
from .router import Router

logger = logging.getLogger(__name__)


class Server:
    """
    The main Chat Server class.
    Accepts connections, runs one ClientSession per connection and performs
    the orderly shutdown requested by the operator.
    """
    def __init__(self, host: str = settings.SERVER_HOST, port: int = settings.SERVER_PORT):
        self.host = host
        self.port = port

        # Initialize our core components
        self.registry = UserRegistry()
        self.router = Router(self.registry)

        # Every accepted connection, logged in or not, until its loop ends.
        self.sessions: Set[ClientSession] = set()
        self._session_tasks: Set[asyncio.Task] = set()

        self._server: Optional[asyncio.AbstractServer] = None
        self._shutdown = asyncio.Event()
        logger.debug("Server components initialized.")

    @property
    def bound_port(self) -> int:
        """The port actually listened on; differs from `port` when it was 0."""
        return self._server.sockets[0].getsockname()[1]

    async def handle_client(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter):
        """
        This coroutine is executed for each new client connection.
        It creates a ClientSession to manage the connection.
        """
        session = ClientSession(self.registry, self.router, reader, writer)
        task = asyncio.current_task()
        self.sessions.add(session)
        self._session_tasks.add(task)
        try:
            await session.handle_connection()
        finally:
            self.sessions.discard(session)
            self._session_tasks.discard(task)

    async def start(self):
        """
        Binds the listening socket. A bind failure propagates as OSError.
        """
        self._server = await asyncio.start_server(
            self.handle_client, self.host, self.port, limit=settings.MAX_LINE_LENGTH)

        addrs = ', '.join(str(sock.getsockname()) for sock in self._server.sockets)
        logger.info(f'Serving on {addrs}')

    def request_shutdown(self):
        self._shutdown.set()

    async def serve_until_shutdown(self):
        """Runs until request_shutdown() is called, then stops the server."""
        try:
            await self._shutdown.wait()
        finally:
            await self.stop()

    async def stop(self):
        """
        Stops accepting, force-closes every live session and waits for their
        disconnect cleanup to finish.
        """
        if self._server is None:
            return
        logger.info("Shutting down server...")
        self._server.close()

        for session in list(self.sessions):
            session.close()

        tasks = [t for t in self._session_tasks if t is not asyncio.current_task()]
        if tasks:
            done, pending = await asyncio.wait(tasks, timeout=settings.SHUTDOWN_TIMEOUT)
            for task in pending:
                task.cancel()
            if pending:
                logger.warning(f"{len(pending)} session(s) did not close in time and were cancelled.")

        await self._server.wait_closed()
        self._server = None
        logger.info("Server shut down gracefully.")


async def main(port: int = settings.SERVER_PORT) -> int:
    server = Server(settings.SERVER_HOST, port)
    try:
        await server.start()
    except OSError as e:
        logger.critical(f"Unable to start the server on port {port}: {e}")
        return 1

    watcher = ConsoleWatcher(asyncio.get_running_loop(), settings.SHUTDOWN_COMMAND,
                             server.request_shutdown)
    watcher.start()
    logger.info(f"Type '{settings.SHUTDOWN_COMMAND}' to stop the server.")

    await server.serve_until_shutdown()
    return 0


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description='Multi-user chat server')
    parser.add_argument('port', type=int, nargs='?', default=settings.SERVER_PORT,
                        help=f'TCP port to listen on (default: {settings.SERVER_PORT})')
    return parser.parse_args(argv)


def run(argv=None):
    args = parse_args(argv)
    setup_logging(settings.LOG_LEVEL)
    try:
        status = asyncio.run(main(args.port))
    except KeyboardInterrupt:
        logger.info("Keyboard interrupt received.")
        status = 0
    logger.info("Goodbye!")
    sys.exit(status)


if __name__ == "__main__":
    run()

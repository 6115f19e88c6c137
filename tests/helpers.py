"""
In-memory stand-ins for the asyncio stream pair a real connection provides.
"""

import asyncio

from chatter_server.connection import ClientSession


class FakeWriter:
    """Collects written lines; closing it ends the paired reader like a real transport would."""

    def __init__(self, reader: asyncio.StreamReader = None, peer=("127.0.0.1", 50000), fail=False):
        self.reader = reader
        self.peer = peer
        # True for a reset peer, or an exception instance to raise from write()
        self.fail = fail
        # A stalled peer never lets drain() finish, like a client that stopped reading.
        self.stalled = False
        self.closed = False
        self.aborted = False
        self._buffer = b""

    def get_extra_info(self, name, default=None):
        return self.peer if name == "peername" else default

    def write(self, data: bytes):
        if isinstance(self.fail, Exception):
            raise self.fail
        if self.fail:
            raise ConnectionResetError("peer went away")
        self._buffer += data

    async def drain(self):
        if self.stalled:
            await asyncio.get_running_loop().create_future()

    @property
    def transport(self):
        return self

    def abort(self):
        self.aborted = True
        self.close()

    def is_closing(self) -> bool:
        return self.closed

    def close(self):
        self.closed = True
        if self.reader is not None:
            self.reader.feed_eof()

    async def wait_closed(self):
        pass

    @property
    def lines(self):
        return self._buffer.decode("utf-8").splitlines()

    def clear(self):
        self._buffer = b""


_next_port = 50000


def make_session(registry, router, fail=False, limit=2 ** 16):
    """Builds a ClientSession over a fed StreamReader and a FakeWriter."""
    global _next_port
    _next_port += 1
    reader = asyncio.StreamReader(limit=limit)
    writer = FakeWriter(reader, peer=("127.0.0.1", _next_port), fail=fail)
    return ClientSession(registry, router, reader, writer), reader, writer


async def logged_in(registry, router, name):
    """A session that has already logged in as `name`, with its writer cleared."""
    session, reader, writer = make_session(registry, router)
    await session._process_line(f"login {name}")
    assert writer.lines[0] == "login success", writer.lines
    return session, reader, writer

# chatter_client/network_client.py
import asyncio
import logging
import queue
import threading
from typing import Optional

from chatter_server.protocol import (
    Command, LOGIN_SUCCESS, LOGIN_FAILURE, LOGOUT_SUCCESS, validate_username,
)
from .config import settings

DEFAULT_HOST = settings.SERVER_HOST
DEFAULT_PORT = settings.SERVER_PORT
_INTERNAL_STOP = object()
_INTERNAL_WAKE = object()

logger = logging.getLogger(__name__)


def parse_server_line(line: str) -> Optional[dict]:
    """
    Turns one line received from the server into an event dict, or None for a
    line with no recognised leading verb.
    """
    line = line.rstrip("\r\n")
    if line == LOGIN_SUCCESS:
        return {"type": "login", "payload": True}
    if line == LOGIN_FAILURE:
        return {"type": "login", "payload": False}
    if line == LOGOUT_SUCCESS:
        return {"type": "logout", "payload": None}

    verb, _, rest = line.partition(" ")
    if not rest:
        return None

    if verb in ("online", "offline"):
        return {"type": verb, "payload": rest}

    if verb in (Command.MSG.value, Command.WHSP.value):
        sender, sep, text = rest.partition(" : ")
        if not sep:
            return None
        return {"type": verb, "payload": {"sender": sender, "text": text}}

    return None


class NetworkClient:
    """
    Line-protocol connection to the chat server, driven from synchronous code.

    The connection runs on its own event loop in a daemon thread. Outgoing
    lines are queued with send(); incoming lines are parsed and put on
    `event_queue` together with network_* state events.
    """
    def __init__(self, event_queue: "queue.Queue"):
        self.event_queue = event_queue
        self.outgoing: "queue.Queue" = queue.Queue()
        # Only committed to `username` once the server answers "login success".
        self.pending_login: str = ""
        self.username: str = ""
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._writer: Optional[asyncio.StreamWriter] = None

    def start(self, host: str = DEFAULT_HOST, port: int = DEFAULT_PORT):
        if self._thread and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run_loop, args=(host, port), daemon=True)
        self._thread.start()

    def stop(self):
        self._stop_event.set()
        self.outgoing.put_nowait(_INTERNAL_STOP)
        loop = self._loop
        if loop:
            try:
                asyncio.run_coroutine_threadsafe(self._close_connection(), loop)
            except RuntimeError:
                # loop already closed
                pass
        if self._thread:
            self._thread.join(timeout=1)

    def send(self, line: str):
        if not isinstance(line, str):
            raise TypeError("NetworkClient.send expects a str")
        if "\n" in line or "\r" in line:
            raise ValueError("a protocol line must not contain line breaks")
        self.outgoing.put(line)

    # --- Command helpers ---

    def login(self, username: str) -> bool:
        """
        Queues a login request. Returns False without sending if already
        logged in or if the name is not acceptable.
        """
        if self.username:
            return False
        username = username.strip()
        if not validate_username(username):
            return False
        self.pending_login = username
        self.send(f"{Command.LOGIN.value} {username}")
        return True

    def logout(self):
        self.send(f"{Command.LOGOUT.value} {self.username}")
        self.username = ""
        self.pending_login = ""

    def handle_event(self, event: dict):
        """Updates the login state from a parsed server or network event."""
        etype = event.get("type")
        if etype == "login":
            if event.get("payload") and self.pending_login:
                self.username = self.pending_login
            self.pending_login = ""
        elif etype in ("logout", "network_disconnected"):
            # A new connection starts unauthenticated.
            self.username = ""
            self.pending_login = ""

    def message(self, text: str):
        self.send(f"{Command.MSG.value} {text}")

    def whisper(self, target: str, text: str):
        self.send(f"{Command.WHSP.value} {target} {text}")

    # --- Event loop side ---

    def _run_loop(self, host: str, port: int):
        try:
            self._loop = asyncio.new_event_loop()
            asyncio.set_event_loop(self._loop)
            self._loop.run_until_complete(self._async_main(host, port))
        except Exception as e:
            logger.exception("network loop error")
            self.event_queue.put({"type": "network_error", "payload": f"network loop error: {e}"})
        finally:
            loop, self._loop = self._loop, None
            if loop:
                loop.close()

    async def _async_main(self, host: str, port: int):
        retry_delay = 1.0
        while not self._stop_event.is_set():
            try:
                reader, writer = await asyncio.open_connection(host, port)
                self._writer = writer
                retry_delay = 1.0
                self.event_queue.put({"type": "network_connected", "payload": {"host": host, "port": port}})

                send_task = asyncio.ensure_future(self._send_loop(writer))
                await self._recv_loop(reader)
                writer.close()
                self.outgoing.put(_INTERNAL_WAKE)
                await send_task
            except OSError as e:
                self.event_queue.put({"type": "network_error", "payload": f"connection error: {e}"})
                await asyncio.sleep(retry_delay)
                retry_delay = min(settings.RETRY_MAX_DELAY, retry_delay * 2)
            finally:
                if self._writer:
                    self._writer.close()
                    try:
                        await self._writer.wait_closed()
                    except OSError:
                        pass
                    self._writer = None
                if not self._stop_event.is_set():
                    event = {"type": "network_disconnected", "payload": None}
                    self.handle_event(event)
                    self.event_queue.put(event)
        self.event_queue.put({"type": "network_stopped", "payload": None})

    async def _recv_loop(self, reader: asyncio.StreamReader):
        try:
            while not self._stop_event.is_set():
                line = await reader.readline()
                if not line:
                    return
                event = parse_server_line(line.decode(settings.ENCODING, errors="replace"))
                if event is None:
                    logger.debug(f"Dropped unrecognised server line {line!r}")
                    continue
                self.handle_event(event)
                self.event_queue.put(event)
        except (ConnectionError, OSError, ValueError) as e:
            self.event_queue.put({"type": "network_error", "payload": f"recv loop error: {e}"})

    async def _send_loop(self, writer: asyncio.StreamWriter):
        loop = asyncio.get_running_loop()
        while not self._stop_event.is_set():
            item = await loop.run_in_executor(None, self.outgoing.get)
            if item is _INTERNAL_STOP:
                return
            if item is _INTERNAL_WAKE:
                # A wake-up left over from an earlier connection is ignored.
                if writer.is_closing():
                    return
                continue
            try:
                writer.write((item + "\n").encode(settings.ENCODING))
                await writer.drain()
            except (ConnectionError, OSError) as e:
                self.event_queue.put({"type": "network_error", "payload": f"send error: {e}"})
                writer.close()
                return

    async def _close_connection(self):
        self._stop_event.set()
        if self._writer:
            self._writer.close()

# chatter_server/console.py

import asyncio
import logging
import sys
import threading
from typing import Callable, Optional, TextIO

logger = logging.getLogger(__name__)


class ConsoleWatcher:
    """
    Watches the server's own console for the operator's shutdown command.

    Reading stdin blocks, so it runs in a daemon thread and hands the request
    back to the event loop with call_soon_threadsafe.
    """
    def __init__(self, loop: asyncio.AbstractEventLoop, sentinel: str,
                 on_shutdown: Callable[[], None], stream: Optional[TextIO] = None):
        self._loop = loop
        self._sentinel = sentinel
        self._on_shutdown = on_shutdown
        self._stream = stream or sys.stdin
        self._thread: Optional[threading.Thread] = None

    def start(self):
        if self._thread and self._thread.is_alive():
            return
        self._thread = threading.Thread(target=self._run, name="console-watcher", daemon=True)
        self._thread.start()

    def _run(self):
        for line in self._stream:
            if line.strip() == self._sentinel:
                logger.info("Shutdown requested from the console.")
                try:
                    self._loop.call_soon_threadsafe(self._on_shutdown)
                except RuntimeError:
                    # The loop already stopped on its own.
                    pass
                return
        logger.info("Console closed; shutdown is only possible with Ctrl-C now.")

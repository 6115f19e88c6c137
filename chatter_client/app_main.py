# chatter_client/app_main.py
import argparse
import logging
import queue
import sys
import threading

from chatter_server.logger import setup_logging
from .config import settings
from .network_client import NetworkClient

HELP = "Commands: /login <name>, /w <user> <text>, /quit. Anything else is sent to everyone."


class App:
    """Terminal front end: console lines go out, server events are printed."""

    def __init__(self, out=None):
        self.out = out or sys.stdout
        self.event_queue: "queue.Queue[dict]" = queue.Queue()
        self.network_client = NetworkClient(self.event_queue)
        self._printer: threading.Thread | None = None
        self._done = threading.Event()

    def run(self, host: str, port: int, stream=None):
        stream = stream or sys.stdin
        self.network_client.start(host, port)
        self._printer = threading.Thread(target=self.process_incoming, daemon=True)
        self._printer.start()
        self.show(HELP)
        try:
            for line in stream:
                if not self.handle_input(line.rstrip("\n")):
                    break
        except KeyboardInterrupt:
            pass
        finally:
            self.on_closing()

    def handle_input(self, text: str) -> bool:
        """Acts on one line typed by the user. Returns False when the user quits."""
        if not text:
            return True
        if text == "/quit":
            return False
        if text.startswith("/login "):
            if self.network_client.username:
                self.show(f"Already logged in as {self.network_client.username}.")
            elif not self.network_client.login(text[len("/login "):]):
                self.show("Invalid username")
            return True
        if text.startswith("/w "):
            target, _, body = text[len("/w "):].partition(" ")
            if not target or not body:
                self.show("Usage: /w <user> <text>")
            elif not self.network_client.username:
                self.show("Log in first.")
            else:
                self.network_client.whisper(target, body)
                self.show(f"(to {target}) {body}")
            return True
        if not self.network_client.username:
            self.show("Log in first.")
            return True
        self.network_client.message(text)
        # The server does not echo our own messages.
        self.show(f"{self.network_client.username}: {text}")
        return True

    def process_incoming(self):
        while not self._done.is_set():
            try:
                event = self.event_queue.get(timeout=0.1)
            except queue.Empty:
                continue
            self.show_event(event)

    def show_event(self, event: dict):
        etype, payload = event.get("type"), event.get("payload")
        if etype == "login":
            if payload:
                self.show(f"Logged in as {self.network_client.username}.")
            else:
                self.show("Username already exists")
        elif etype == "online":
            self.show(f"-> {payload} has joined!")
        elif etype == "offline":
            self.show(f"-> {payload} has left!")
        elif etype == "msg":
            self.show(f"{payload['sender']}: {payload['text']}")
        elif etype == "whsp":
            self.show(f"(from {payload['sender']}) {payload['text']}")
        elif etype == "network_connected":
            self.show(f"Connected to {payload['host']}:{payload['port']}.")
        elif etype == "network_disconnected":
            self.show("Disconnected from the server. Log in again once reconnected.")
        elif etype == "network_error":
            self.show(f"Network error: {payload}")

    def show(self, text: str):
        print(text, file=self.out, flush=True)

    def on_closing(self):
        if self.network_client.username:
            self.network_client.logout()
        self.network_client.stop()
        self._done.set()


def main(argv=None):
    parser = argparse.ArgumentParser(description='Terminal chat client')
    parser.add_argument('--host', type=str, default=settings.SERVER_HOST,
                        help=f'Server host (default: {settings.SERVER_HOST})')
    parser.add_argument('--port', type=int, default=settings.SERVER_PORT,
                        help=f'Server port (default: {settings.SERVER_PORT})')
    args = parser.parse_args(argv)

    setup_logging(settings.LOG_LEVEL)
    logging.getLogger(__name__).debug(f"Connecting to {args.host}:{args.port}")
    App().run(args.host, args.port)


if __name__ == "__main__":
    main()

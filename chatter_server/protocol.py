# chatter_server/protocol.py
"""
The line protocol spoken between chat clients and the server.

Every command is one text line of the form ``<verb> <body>``. The split happens
on the first space only, so bodies may contain further spaces.
"""

from enum import Enum
from typing import Tuple

SEPARATOR = " "

# --- Server -> client literals ---
LOGIN_SUCCESS = "login success"
LOGIN_FAILURE = "login failure"
LOGOUT_SUCCESS = "logout success"


class ProtocolError(ValueError):
    """Raised for a line or body that does not follow the wire format."""


class Command(str, Enum):
    LOGIN = "login"
    LOGOUT = "logout"
    MSG = "msg"
    WHSP = "whsp"
    INVALID = ""

    @classmethod
    def from_verb(cls, verb: str) -> "Command":
        """Returns the command for a wire verb, or INVALID if it is not recognised."""
        try:
            command = cls(verb)
        except ValueError:
            return cls.INVALID
        return command


COMMAND_VERBS = frozenset(c.value for c in Command if c is not Command.INVALID)


def parse_line(line: str) -> Tuple[Command, str]:
    """
    Splits a received line into ``(command, body)``.

    Trailing line terminators are removed first. A line without a separator
    raises ProtocolError; an unknown verb yields ``Command.INVALID``.
    """
    line = line.rstrip("\r\n")
    if SEPARATOR not in line:
        raise ProtocolError(f"no separator in line {line!r}")

    verb, body = line.split(SEPARATOR, 1)
    return Command.from_verb(verb), body


def parse_whisper(body: str) -> Tuple[str, str]:
    """Splits a whisper body into ``(target, text)``."""
    if SEPARATOR not in body:
        raise ProtocolError(f"whisper body has no text: {body!r}")
    target, text = body.split(SEPARATOR, 1)
    return target, text


def validate_username(name: str) -> bool:
    """
    A username must be non-empty, contain no whitespace and must not be one of
    the command verbs.
    """
    if not name:
        return False
    if any(ch.isspace() for ch in name):
        return False
    return name not in COMMAND_VERBS


# --- Line builders ---

def format_message(sender: str, text: str) -> str:
    return f"{Command.MSG.value} {sender} : {text}"


def format_whisper(sender: str, text: str) -> str:
    return f"{Command.WHSP.value} {sender} : {text}"


def format_online(username: str) -> str:
    return f"online {username}"


def format_offline(username: str) -> str:
    return f"offline {username}"

from __future__ import annotations

import os
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

COMMAND_PREFIX = os.getenv("COMMAND_PREFIX", "#")


class CommandKind(str, Enum):
    PING = "ping"
    LIST = "list"
    TODO = "todo"
    TODAY = "today"
    WEEK = "week"
    UNDO = "undo"
    EXPAND = "expand"
    DONE = "done"
    HELP = "help"
    UNKNOWN = "unknown"


# first word after the prefix -> command
_KEYWORDS = {
    "ping": CommandKind.PING,
    "tugas": CommandKind.LIST,
    "list": CommandKind.LIST,
    "todo": CommandKind.TODO,
    "today": CommandKind.TODAY,
    "hariini": CommandKind.TODAY,
    "week": CommandKind.WEEK,
    "minggu": CommandKind.WEEK,
    "undo": CommandKind.UNDO,
    "expand": CommandKind.EXPAND,
    "detail": CommandKind.EXPAND,
    "done": CommandKind.DONE,
    "selesai": CommandKind.DONE,
    "help": CommandKind.HELP,
    "bantuan": CommandKind.HELP,
}

# commands that need a numeric argument
_NEEDS_NUMBER = {CommandKind.EXPAND, CommandKind.DONE}


@dataclass(frozen=True)
class Command:
    kind: CommandKind
    argument: Optional[int] = None
    raw: str = ""


@dataclass(frozen=True)
class NeedsExtraction:
    text: str


MessageKind = Union[Command, NeedsExtraction]


def _parse_number(token: str) -> Optional[int]:
    token = token.strip()
    if not token.isdigit():
        return None
    return int(token)


def classify_message(text: str, prefix: str = COMMAND_PREFIX) -> MessageKind:
    """Split bot commands from messages that go to extraction.

    Anything starting with the prefix is a command, recognized or not, so
    typos like `#tugass` never reach the models.
    """
    trimmed = (text or "").strip()
    if not trimmed.startswith(prefix):
        return NeedsExtraction(text=text)

    body = trimmed[len(prefix):].strip().lower()
    tokens = body.split()
    first_word = trimmed.split()[0]

    if not tokens:
        return Command(CommandKind.UNKNOWN, raw=first_word)

    # "#3" is shorthand for "#expand 3"
    number = _parse_number(tokens[0])
    if number is not None and len(tokens) == 1:
        return Command(CommandKind.EXPAND, argument=number, raw=trimmed)

    kind = _KEYWORDS.get(tokens[0])
    if kind is None:
        return Command(CommandKind.UNKNOWN, raw=first_word)

    argument = None
    if len(tokens) > 1:
        argument = _parse_number(tokens[1])
        if argument is None or len(tokens) > 2:
            return Command(CommandKind.UNKNOWN, raw=first_word)
        if kind is CommandKind.LIST:
            # "#tugas 2" shows the detail of item 2
            kind = CommandKind.EXPAND

    if kind in _NEEDS_NUMBER and argument is None:
        return Command(CommandKind.UNKNOWN, raw=first_word)
    if kind not in _NEEDS_NUMBER and argument is not None:
        return Command(CommandKind.UNKNOWN, raw=first_word)

    return Command(kind, argument=argument, raw=trimmed)

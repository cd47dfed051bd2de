"""Sending messages through a sender: envelope sender and recipients."""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from email.utils import getaddresses
from typing import Any, Callable, Sequence

__all__ = [
    "InvalidMessageError",
    "Sender",
    "SendCloser",
    "SendFunc",
    "send",
    "send_custom_from",
    "get_from",
    "get_recipients",
    "parse_address",
]

_ADDR_SPEC = re.compile(r"^[^\s@<>,;:\"]+@[^\s@<>,;:\"]+$")


class InvalidMessageError(Exception):
    """Raised when a message lacks a valid sender or recipient."""


class Sender(ABC):
    """Something that sends a message to a list of addresses."""

    @abstractmethod
    def send(self, from_addr: str, to: Sequence[str], msg: Any) -> None:
        """Send ``msg`` (anything with ``write_to(out)``) from ``from_addr`` to ``to``."""


class SendCloser(Sender):
    """A sender holding a connection that can be reset and closed."""

    @abstractmethod
    def close(self) -> None:
        """Close the connection."""

    @abstractmethod
    def reset(self) -> None:
        """Abort the current mail transaction."""


class SendFunc(Sender):
    """Adapts a plain function ``func(from_addr, to, msg)`` to a sender."""

    def __init__(self, func: Callable[[str, list[str], Any], Any]) -> None:
        self.func = func

    def send(self, from_addr: str, to: Sequence[str], msg: Any) -> None:
        self.func(from_addr, list(to), msg)


def parse_address(field: str) -> str:
    """Return the bare address of an RFC 5322 address field."""
    pairs = getaddresses([field])
    if len(pairs) != 1:
        raise InvalidMessageError(f"invalid address {field!r}: expected one address")
    address = pairs[0][1]
    if not _ADDR_SPEC.match(address):
        raise InvalidMessageError(f"invalid address {field!r}: missing or malformed addr-spec")
    return address


def get_from(message) -> str:
    """Return the envelope sender: the Sender header, or else From."""
    values = message.header.get("Sender") or message.header.get("From")
    if not values:
        raise InvalidMessageError('invalid message, "From" field is absent')
    return parse_address(values[0])


def get_recipients(message) -> list[str]:
    """Return the distinct addresses of To, Cc and Bcc, in that order."""
    recipients: list[str] = []
    for name in ("To", "Cc", "Bcc"):
        for value in message.header.get(name) or ():
            address = parse_address(value)
            if address not in recipients:
                recipients.append(address)
    return recipients


def send(sender: Sender, *args) -> None:
    """Send each message with ``sender``; stop at the first error."""
    for message in args:
        from_addr = get_from(message)
        sender.send(from_addr, get_recipients(message), message)


def send_custom_from(sender: Sender, smtp_from: str, *args) -> None:
    """Send each message with ``smtp_from`` as envelope sender."""
    for message in args:
        sender.send(smtp_from, get_recipients(message), message)
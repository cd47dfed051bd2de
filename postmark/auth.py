"""SMTP authentication mechanisms: LOGIN, PLAIN and CRAM-MD5."""

from __future__ import annotations

import hashlib
import hmac
from dataclasses import dataclass, field

__all__ = ["AuthError", "ServerInfo", "LoginAuth", "PlainAuth", "CramMD5Auth"]


class AuthError(Exception):
    """Raised when an authentication exchange cannot go on."""


@dataclass
class ServerInfo:
    """What is known about the SMTP server at authentication time."""

    name: str
    tls: bool = False
    auth: list[str] = field(default_factory=list)


def _is_localhost(name: str) -> bool:
    return name in ("localhost", "127.0.0.1", "::1")


class LoginAuth:
    """The LOGIN authentication mechanism."""

    def __init__(self, username: str, password: str, host: str) -> None:
        self.username = username
        self.password = password
        self.host = host

    def start(self, server: ServerInfo) -> tuple[str, bytes | None]:
        """Return the mechanism name and the initial response."""
        if not server.tls and "LOGIN" not in server.auth:
            raise AuthError("unencrypted connection")
        if server.name != self.host:
            raise AuthError("wrong host name")
        return "LOGIN", None

    def next(self, from_server: bytes, more: bool) -> bytes | None:
        """Answer a server challenge."""
        if not more:
            return None
        if from_server == b"Username:":
            return self.username.encode()
        if from_server == b"Password:":
            return self.password.encode()
        raise AuthError(
            f"unexpected server challenge: {from_server.decode('utf-8', 'replace')}"
        )


class PlainAuth:
    """The PLAIN authentication mechanism (RFC 4616)."""

    def __init__(self, identity: str, username: str, password: str, host: str) -> None:
        self.identity = identity
        self.username = username
        self.password = password
        self.host = host

    def start(self, server: ServerInfo) -> tuple[str, bytes | None]:
        """Return the mechanism name and the credentials as initial response."""
        if not server.tls and not _is_localhost(server.name):
            raise AuthError("unencrypted connection")
        if server.name != self.host:
            raise AuthError("wrong host name")
        response = f"{self.identity}\x00{self.username}\x00{self.password}"
        return "PLAIN", response.encode()

    def next(self, from_server: bytes, more: bool) -> bytes | None:
        """PLAIN expects no challenge; any challenge is an error."""
        if more:
            raise AuthError("unexpected server challenge")
        return None


class CramMD5Auth:
    """The CRAM-MD5 authentication mechanism (RFC 2195)."""

    def __init__(self, username: str, secret: str) -> None:
        self.username = username
        self.secret = secret

    def start(self, server: ServerInfo) -> tuple[str, bytes | None]:
        """Return the mechanism name; CRAM-MD5 has no initial response."""
        return "CRAM-MD5", None

    def next(self, from_server: bytes, more: bool) -> bytes | None:
        """Answer the challenge with the username and the keyed digest."""
        if not more:
            return None
        digest = hmac.new(self.secret.encode(), from_server, hashlib.md5).hexdigest()
        return f"{self.username} {digest}".encode()
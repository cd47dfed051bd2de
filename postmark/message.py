"""Composition of e-mail messages."""

from __future__ import annotations

import io
import os
import shutil
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Iterable, Mapping

from .mimeenc import B_ENCODING, Q_ENCODING, Encoding
from .writer import write_message

__all__ = ["Part", "FileEntry", "Message"]

Copier = Callable[[Any], Any]

_DAYS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")
_MONTHS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun",
           "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")
_SPECIALS = frozenset('()<>[]:;@\\,."')


@dataclass
class Part:
    """One body part: a content type, a writer of its content and an encoding."""

    content_type: str
    copier: Copier
    encoding: Encoding


@dataclass
class FileEntry:
    """An attached or embedded file."""

    name: str
    copy_func: Copier
    header: dict[str, list[str]] = field(default_factory=dict)

    def set_header(self, field: str, value: str) -> None:
        """Set a single-valued MIME header of the file's part."""
        self.header[field] = [value]


def _string_copier(text: str) -> Copier:
    def copy(out) -> None:
        out.write(text)
    return copy


def _path_copier(path: str) -> Copier:
    def copy(out) -> None:
        with open(path, "rb") as handle:
            shutil.copyfileobj(handle, out)
    return copy


def _reader_copier(reader) -> Copier:
    def copy(out) -> None:
        shutil.copyfileobj(reader, out)
    return copy


def _has_specials(text: str) -> bool:
    return any(c in _SPECIALS for c in text)


class Message:
    """An e-mail message. UTF-8 and quoted-printable by default."""

    def __init__(self, charset: str = "UTF-8",
                 encoding: Encoding | str = Encoding.QUOTED_PRINTABLE) -> None:
        self.charset = charset
        self.encoding = Encoding(encoding)
        self._word_encoder = B_ENCODING if self.encoding == Encoding.BASE64 else Q_ENCODING
        self.header: dict[str, list[str]] = {}
        self.parts: list[Part] = []
        self.attachments: list[FileEntry] = []
        self.embedded: list[FileEntry] = []

    def reset(self) -> None:
        """Clear headers, parts and files; keep charset and encoding."""
        self.header.clear()
        self.parts = []
        self.attachments = []
        self.embedded = []

    def _encode(self, value: str) -> str:
        return self._word_encoder.encode(self.charset, value)

    def set_header(self, field: str, *args: str) -> None:
        """Set a header field, encoding its values where needed."""
        self.header[field] = [self._encode(v) for v in args]

    def set_headers(self, headers: Mapping[str, Iterable[str] | None]) -> None:
        """Set several header fields at once."""
        for key, values in headers.items():
            self.set_header(key, *(values or ()))

    def set_address_header(self, field: str, address: str, name: str = "") -> None:
        """Set a header field to one formatted address."""
        self.header[field] = [self.format_address(address, name)]

    def format_address(self, address: str, name: str = "") -> str:
        """Format an address and a display name per RFC 5322."""
        if not name:
            return address
        encoded = self._encode(name)
        if encoded == name:
            escaped = name.replace("\\", "\\\\").replace('"', '\\"')
            display = f'"{escaped}"'
        elif _has_specials(name):
            display = B_ENCODING.encode(self.charset, name)
        else:
            display = encoded
        return f"{display} <{address}>"

    def set_date_header(self, field: str, date: datetime) -> None:
        """Set a header field to a formatted date."""
        self.header[field] = [self.format_date(date)]

    def format_date(self, date: datetime) -> str:
        """Format a date per RFC 5322, e.g. 'Wed, 25 Jun 2014 17:46:00 +0000'."""
        if date.tzinfo is None:
            date = date.astimezone()
        return (f"{_DAYS[date.weekday()]}, {date.day:02d} {_MONTHS[date.month - 1]} "
                f"{date.year:04d} {date:%H:%M:%S} {date:%z}")

    def get_header(self, field: str) -> list[str]:
        """Return the values of a header field (empty if unset)."""
        return list(self.header.get(field, ()))

    def _new_part(self, content_type: str, copier: Copier,
                  encoding: Encoding | str | None) -> Part:
        return Part(content_type, copier,
                    Encoding(encoding) if encoding is not None else self.encoding)

    def set_body(self, content_type: str, body: str, *,
                 encoding: Encoding | str | None = None) -> None:
        """Replace all body parts with a single one."""
        self.parts = [self._new_part(content_type, _string_copier(body), encoding)]

    def add_alternative(self, content_type: str, body: str, *,
                        encoding: Encoding | str | None = None) -> None:
        """Append an alternative body part."""
        self.add_alternative_writer(content_type, _string_copier(body), encoding=encoding)

    def add_alternative_writer(self, content_type: str, writer: Copier, *,
                               encoding: Encoding | str | None = None) -> None:
        """Append an alternative part whose content ``writer`` writes to a stream."""
        self.parts.append(self._new_part(content_type, writer, encoding))

    @staticmethod
    def _add_file(target: list[FileEntry], entry: FileEntry, rename: str | None,
                  headers: Mapping[str, Iterable[str]] | None,
                  copy_func: Copier | None) -> None:
        if headers:
            entry.header.update({k: list(v) for k, v in headers.items()})
        if rename is not None:
            entry.name = rename
        if copy_func is not None:
            entry.copy_func = copy_func
        target.append(entry)

    def attach(self, filename: str, *, rename: str | None = None,
               headers: Mapping[str, Iterable[str]] | None = None,
               copy_func: Copier | None = None) -> None:
        """Attach a file read from disk when the message is written."""
        entry = FileEntry(os.path.basename(filename), _path_copier(filename))
        self._add_file(self.attachments, entry, rename, headers, copy_func)

    def attach_reader(self, name: str, reader, *, rename: str | None = None,
                      headers: Mapping[str, Iterable[str]] | None = None,
                      copy_func: Copier | None = None) -> None:
        """Attach the content of a readable stream."""
        entry = FileEntry(os.path.basename(name), _reader_copier(reader))
        self._add_file(self.attachments, entry, rename, headers, copy_func)

    def embed(self, filename: str, *, rename: str | None = None,
              headers: Mapping[str, Iterable[str]] | None = None,
              copy_func: Copier | None = None) -> None:
        """Embed a file (typically an image) read from disk."""
        entry = FileEntry(os.path.basename(filename), _path_copier(filename))
        self._add_file(self.embedded, entry, rename, headers, copy_func)

    def embed_reader(self, name: str, reader, *, rename: str | None = None,
                     headers: Mapping[str, Iterable[str]] | None = None,
                     copy_func: Copier | None = None) -> None:
        """Embed the content of a readable stream."""
        entry = FileEntry(os.path.basename(name), _reader_copier(reader))
        self._add_file(self.embedded, entry, rename, headers, copy_func)

    def write_to(self, out, date: datetime | None = None) -> int:
        """Write the message to a binary stream; return the byte count."""
        return write_message(self, out, date)

    def as_bytes(self, date: datetime | None = None) -> bytes:
        """Return the message in its wire form."""
        buffer = io.BytesIO()
        self.write_to(buffer, date)
        return buffer.getvalue()
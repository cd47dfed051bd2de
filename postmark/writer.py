"""Serialisation of a message into its MIME wire form."""

from __future__ import annotations

import base64
import mimetypes
import os
import secrets
from datetime import datetime
from typing import Any, Callable, Mapping, Sequence

from .mimeenc import Encoding, QuotedPrintableWriter

__all__ = ["WriterError", "Base64LineWriter", "MessageWriter", "write_message"]

# RFC 2045, 6.7 for quoted-printable and 6.8 for base64.
_MAX_LINE_LEN = 76

_BUILTIN_TYPES = {
    ".avif": "image/avif",
    ".css": "text/css; charset=utf-8",
    ".gif": "image/gif",
    ".htm": "text/html; charset=utf-8",
    ".html": "text/html; charset=utf-8",
    ".jpeg": "image/jpeg",
    ".jpg": "image/jpeg",
    ".js": "text/javascript; charset=utf-8",
    ".json": "application/json",
    ".mjs": "text/javascript; charset=utf-8",
    ".pdf": "application/pdf",
    ".png": "image/png",
    ".svg": "image/svg+xml",
    ".wasm": "application/wasm",
    ".webp": "image/webp",
    ".xml": "text/xml; charset=utf-8",
}


class WriterError(Exception):
    """Raised when a message cannot be written."""


def _to_bytes(data: Any) -> bytes:
    if isinstance(data, str):
        return data.encode("utf-8")
    return bytes(data)


def _type_by_extension(name: str) -> str:
    ext = os.path.splitext(name)[1].lower()
    if not ext:
        return ""
    if ext in _BUILTIN_TYPES:
        return _BUILTIN_TYPES[ext]
    guessed, _ = mimetypes.guess_type("file" + ext, strict=False)
    if not guessed:
        return ""
    if guessed.startswith("text/") and "charset" not in guessed:
        guessed += "; charset=utf-8"
    return guessed


class _Sink:
    """A writable that forwards str or bytes to a byte-writing function."""

    def __init__(self, emit: Callable[[bytes], None]) -> None:
        self._emit = emit

    def write(self, data: Any) -> int:
        raw = _to_bytes(data)
        self._emit(raw)
        return len(raw)


class _Buffer:
    """A writable that collects str or bytes."""

    def __init__(self) -> None:
        self.data = bytearray()

    def write(self, data: Any) -> int:
        raw = _to_bytes(data)
        self.data += raw
        return len(raw)


class Base64LineWriter:
    """Folds base64 text written to ``out`` into lines of 76 characters."""

    def __init__(self, out) -> None:
        self._out = out
        self._line_len = 0

    def write(self, data: Any) -> int:
        data = _to_bytes(data)
        written = 0
        while len(data) + self._line_len > _MAX_LINE_LEN:
            cut = _MAX_LINE_LEN - self._line_len
            self._out.write(data[:cut])
            self._out.write(b"\r\n")
            data = data[cut:]
            written += cut
            self._line_len = 0
        self._out.write(data)
        self._line_len += len(data)
        return written + len(data)


class _Multipart:
    def __init__(self, emit: Callable[[bytes], None]) -> None:
        self._emit = emit
        self.boundary = secrets.token_hex(30)
        self._has_part = False

    def create_part(self, header: Mapping[str, Sequence[str]]) -> None:
        lead = "\r\n--" if self._has_part else "--"
        self._has_part = True
        lines = [f"{lead}{self.boundary}\r\n"]
        for key in sorted(header):
            lines.extend(f"{key}: {value}\r\n" for value in header[key] or ())
        lines.append("\r\n")
        self._emit("".join(lines).encode("utf-8"))

    def close(self) -> None:
        lead = "\r\n--" if self._has_part else "--"
        self._emit(f"{lead}{self.boundary}--\r\n".encode("utf-8"))


class MessageWriter:
    """Writes messages to a binary stream and counts the bytes written."""

    def __init__(self, out) -> None:
        self._out = out
        self._stack: list[_Multipart] = []
        self.written = 0

    def _write(self, data: Any) -> None:
        raw = _to_bytes(data)
        self._out.write(raw)
        self.written += len(raw)

    def write_message(self, message, date: datetime | None = None) -> int:
        """Write the whole message; return the total number of bytes written."""
        header = message.header
        if "Mime-Version" not in header:
            self._write("Mime-Version: 1.0\r\n")
        if "Date" not in header:
            self.write_header("Date", message.format_date(date or datetime.now().astimezone()))
        self._write_headers(header)

        parts, attachments, embedded = message.parts, message.attachments, message.embedded
        mixed = (parts and attachments) or len(attachments) > 1
        related = (parts and embedded) or len(embedded) > 1
        alternative = len(parts) > 1

        if mixed:
            self._open_multipart("mixed")
        if related:
            self._open_multipart("related")
        if alternative:
            self._open_multipart("alternative")
        for part in parts:
            self._write_headers({
                "Content-Type": [f"{part.content_type}; charset={message.charset}"],
                "Content-Transfer-Encoding": [part.encoding.value],
            })
            self._write_body(part.copier, part.encoding)
        if alternative:
            self._close_multipart()
        self._add_files(embedded, attachment=False)
        if related:
            self._close_multipart()
        self._add_files(attachments, attachment=True)
        if mixed:
            self._close_multipart()
        return self.written

    def _open_multipart(self, kind: str) -> None:
        multipart = _Multipart(self._write)
        content_type = f"multipart/{kind};\r\n boundary={multipart.boundary}"
        if self._stack:
            self._stack[-1].create_part({"Content-Type": [content_type]})
        else:
            self.write_header("Content-Type", content_type)
            self._write("\r\n")
        self._stack.append(multipart)

    def _close_multipart(self) -> None:
        if self._stack:
            self._stack.pop().close()

    def _add_files(self, files, attachment: bool) -> None:
        for entry in files:
            if "Content-Type" not in entry.header:
                media_type = _type_by_extension(entry.name) or "application/octet-stream"
                entry.set_header("Content-Type", f'{media_type}; name="{entry.name}"')
            if "Content-Transfer-Encoding" not in entry.header:
                entry.set_header("Content-Transfer-Encoding", Encoding.BASE64.value)
            if "Content-Disposition" not in entry.header:
                disposition = "attachment" if attachment else "inline"
                entry.set_header("Content-Disposition", f'{disposition}; filename="{entry.name}"')
            if not attachment and "Content-ID" not in entry.header:
                entry.set_header("Content-ID", f"<{entry.name}>")
            self._write_headers(entry.header)
            self._write_body(entry.copy_func, Encoding.BASE64)

    def _write_headers(self, header: Mapping[str, Sequence[str]]) -> None:
        if self._stack:
            self._stack[-1].create_part(header)
            return
        for key, values in header.items():
            if key != "Bcc":
                self.write_header(key, *(values or ()))

    def write_header(self, key: str, *args: str) -> None:
        """Write one header field, folding it to about 76 characters a line."""
        self._write(key)
        if not args:
            self._write(":\r\n")
            return
        self._write(": ")
        # RFC 2047 limits lines to 76 characters, slightly under RFC 5322's 78.
        chars_left = _MAX_LINE_LEN - len(key) - 2
        for i, value in enumerate(args):
            if chars_left < 1:
                self._write(",\r\n " if i else "\r\n ")
                chars_left = 75
            elif i:
                self._write(", ")
                chars_left -= 2
            while len(value) > chars_left:
                value = self._write_line(value, chars_left)
                chars_left = 75
            self._write(value)
            newline = value.rfind("\n")
            if newline != -1:
                chars_left = 75 - (len(value) - newline - 1)
            else:
                chars_left -= len(value)
        self._write("\r\n")

    def _write_line(self, text: str, chars_left: int) -> str:
        newline = text.find("\n")
        if newline != -1 and newline < chars_left:
            self._write(text[: newline + 1])
            return text[newline + 1:]

        space = text.rfind(" ", 0, chars_left) if chars_left > 0 else -1
        if space != -1:
            self._write(text[:space])
            self._write("\r\n ")
            return text[space + 1:]

        # No clean break before the limit: take the first one after it.
        for i, ch in enumerate(text[75:], start=75):
            if ch == " ":
                self._write(text[:i])
                self._write("\r\n ")
                return text[i + 1:]
            if ch == "\n":
                self._write(text[: i + 1])
                return text[i + 1:]

        self._write(text)
        return ""

    def _write_body(self, copier: Callable[[Any], Any], encoding: Encoding) -> None:
        if not self._stack:
            self._write("\r\n")
        sink = _Sink(self._write)
        if encoding == Encoding.BASE64:
            buffer = _Buffer()
            copier(buffer)
            Base64LineWriter(sink).write(base64.b64encode(bytes(buffer.data)))
        elif encoding == Encoding.UNENCODED:
            copier(sink)
        else:
            qp = QuotedPrintableWriter(sink)
            copier(qp)
            qp.close()


def write_message(message, out, date: datetime | None = None) -> int:
    """Write ``message`` to the binary stream ``out``; return the byte count."""
    return MessageWriter(out).write_message(message, date)
"""MIME encoders: RFC 2047 encoded-words and a quoted-printable body writer."""

from __future__ import annotations

import base64
from dataclasses import dataclass
from enum import Enum

__all__ = [
    "Encoding",
    "WordEncoder",
    "QuotedPrintableWriter",
    "B_ENCODING",
    "Q_ENCODING",
]


class Encoding(str, Enum):
    """A MIME content transfer encoding."""

    QUOTED_PRINTABLE = "quoted-printable"
    BASE64 = "base64"
    # The body is left as is; headers are still encoded.
    UNENCODED = "8bit"


_MAX_ENCODED_WORD_LEN = 75
_MAX_CONTENT_LEN = _MAX_ENCODED_WORD_LEN - len("=?UTF-8?q?") - len("?=")
_MAX_BASE64_LEN = (_MAX_CONTENT_LEN // 4) * 3

_UPPER_HEX = "0123456789ABCDEF"


def _utf8(text: str) -> bytes:
    return text.encode("utf-8", "surrogateescape")


def _needs_encoding(text: str) -> bool:
    return any((c < " " or c > "~") and c != "\t" for c in text)


def _is_utf8(charset: str) -> bool:
    return charset.casefold() == "utf-8"


def _q_string(data: bytes) -> str:
    out = []
    for b in data:
        if b == 0x20:
            out.append("_")
        elif 0x21 <= b <= 0x7E and b not in b"=?_":
            out.append(chr(b))
        else:
            out.append("=" + _UPPER_HEX[b >> 4] + _UPPER_HEX[b & 0x0F])
    return "".join(out)


def _b64_len(size: int) -> int:
    return (size + 2) // 3 * 4


@dataclass(frozen=True)
class WordEncoder:
    """Encodes header text as RFC 2047 encoded-words ("b" or "q" kind)."""

    kind: str

    def __post_init__(self) -> None:
        if self.kind not in ("b", "q"):
            raise ValueError(f"unknown encoded-word kind: {self.kind!r}")

    def encode(self, charset: str, text: str) -> str:
        """Return text unchanged if it is plain ASCII, else as encoded-words."""
        if not _needs_encoding(text):
            return text
        if self.kind == "b":
            contents = self._b_contents(charset, text)
        else:
            contents = self._q_contents(charset, text)
        return " ".join(f"=?{charset}?{self.kind}?{c}?=" for c in contents)

    @staticmethod
    def _b_contents(charset: str, text: str) -> list[str]:
        data = _utf8(text)
        if not _is_utf8(charset) or _b64_len(len(data)) <= _MAX_CONTENT_LEN:
            return [base64.b64encode(data).decode("ascii")]

        chunks: list[bytes] = []
        current = bytearray()
        for ch in text:
            encoded = _utf8(ch)
            # Multi-byte characters are never split across encoded-words.
            if len(current) + len(encoded) > _MAX_BASE64_LEN:
                chunks.append(bytes(current))
                current.clear()
            current += encoded
        chunks.append(bytes(current))
        return [base64.b64encode(chunk).decode("ascii") for chunk in chunks]

    @staticmethod
    def _q_contents(charset: str, text: str) -> list[str]:
        if not _is_utf8(charset):
            return [_q_string(_utf8(text))]

        words: list[str] = []
        current: list[str] = []
        current_len = 0
        for ch in text:
            encoded = _utf8(ch)
            if " " <= ch <= "~" and ch not in "=?_":
                enc_len = 1
            else:
                enc_len = 3 * len(encoded)
            if current_len + enc_len > _MAX_CONTENT_LEN:
                words.append("".join(current))
                current = []
                current_len = 0
            current.append(_q_string(encoded))
            current_len += enc_len
        words.append("".join(current))
        return words


B_ENCODING = WordEncoder("b")
Q_ENCODING = WordEncoder("q")


_LINE_MAX_LEN = 76
_CR = 0x0D
_LF = 0x0A
_SPACE = 0x20
_TAB = 0x09


class QuotedPrintableWriter:
    """Writes data to ``out`` encoded as quoted-printable (RFC 2045).

    Lines are limited to 76 characters; CR, LF and CRLF in the input all
    become CRLF line breaks. Call :meth:`close` to flush the last line.
    """

    def __init__(self, out) -> None:
        self._out = out
        self._line = bytearray()
        self._cr = False

    def write(self, data) -> int:
        """Encode ``data`` (bytes or str) and return the number of input bytes."""
        if isinstance(data, str):
            data = data.encode("utf-8")
        for b in bytes(data):
            if (0x21 <= b <= 0x7E and b != 0x3D) or b in (_SPACE, _TAB, _CR, _LF):
                self._put(b)
            else:
                self._encode(b)
        return len(data)

    def close(self) -> None:
        """Encode trailing whitespace and flush the buffered line."""
        self._encode_trailing_space()
        self._flush()

    def _put(self, b: int) -> None:
        if b in (_CR, _LF):
            # A CRLF pair produces a single line break.
            if self._cr and b == _LF:
                self._cr = False
                return
            self._cr = b == _CR
            self._encode_trailing_space()
            self._insert_crlf()
            return
        if len(self._line) == _LINE_MAX_LEN - 1:
            self._insert_soft_line_break()
        self._line.append(b)
        self._cr = False

    def _encode(self, b: int) -> None:
        if _LINE_MAX_LEN - 1 - len(self._line) < 3:
            self._insert_soft_line_break()
        self._line += f"={b:02X}".encode("ascii")

    def _encode_trailing_space(self) -> None:
        if self._line and self._line[-1] in (_SPACE, _TAB):
            self._encode(self._line.pop())

    def _insert_soft_line_break(self) -> None:
        self._line.append(0x3D)
        self._insert_crlf()

    def _insert_crlf(self) -> None:
        self._line += b"\r\n"
        self._flush()

    def _flush(self) -> None:
        if self._line:
            self._out.write(bytes(self._line))
            self._line.clear()
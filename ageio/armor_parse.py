"""Parsing and validation of the age ASCII armor format."""

from __future__ import annotations

import base64
import binascii
import enum
from dataclasses import dataclass

from ageio.armor_writer import (
    ARMORED_BEGIN_MARKER,
    ARMORED_COLUMNS_PER_LINE,
    ARMORED_END_MARKER,
    MIN_ARMOR_LEN,
)

__all__ = [
    "ArmoredReadErrorKind",
    "ArmoredReadError",
    "ArmorLine",
    "detect_armor",
    "parse_armor_line",
    "check_trailing",
]

_MARKER_LEN = MIN_ARMOR_LEN - 2
_BEGIN_MARKER_BYTES = ARMORED_BEGIN_MARKER.encode("ascii")

# The bytes that count as ASCII whitespace after the end marker (no vertical tab).
_ASCII_WHITESPACE = frozenset(b" \t\n\x0c\r")


class ArmoredReadErrorKind(enum.Enum):
    """The ways in which armored input can be invalid."""

    BASE64 = "invalid Base64"
    INVALID_BEGIN_MARKER = "invalid armor begin marker"
    INVALID_UTF8 = "stream did not contain valid UTF-8"
    LINE_CONTAINS_CR = "line contains CR"
    MISSING_PADDING = "invalid armor (last line is missing padding)"
    NOT_WRAPPED_AT_64_CHARS = "invalid armor (not wrapped at 64 characters)"
    SHORT_LINE_IN_MIDDLE = "invalid armor (short line in middle of encoding)"
    TRAILING_GARBAGE = "invalid armor (non-whitespace characters after end marker)"


class ArmoredReadError(ValueError):
    """Armored input is malformed."""

    def __init__(self, kind: ArmoredReadErrorKind, detail: str | None = None) -> None:
        super().__init__(detail if detail is not None else kind.value)
        self.kind = kind


@dataclass(frozen=True)
class ArmorLine:
    """The result of parsing one line of armor."""

    data: bytes
    is_end: bool
    found_short_line: bool


def detect_armor(prefix: bytes) -> tuple[bool, bytes]:
    """Decide from the first MIN_ARMOR_LEN bytes whether the input is armored.

    Returns ``(is_armored, leftover)``. ``leftover`` holds the bytes of the
    prefix that belong to the data after the begin-marker line: the whole
    prefix when unarmored, one byte when the marker ends in LF, and nothing
    when it ends in CRLF.
    """
    prefix = bytes(prefix)
    if len(prefix) != MIN_ARMOR_LEN:
        raise ValueError(f"armor detection needs exactly {MIN_ARMOR_LEN} bytes")

    if prefix[:_MARKER_LEN] != _BEGIN_MARKER_BYTES:
        return False, prefix

    if prefix[_MARKER_LEN : _MARKER_LEN + 1] == b"\n":
        extra = prefix[_MARKER_LEN + 1 :]
        try:
            extra.decode("utf-8")
        except UnicodeDecodeError:
            raise ArmoredReadError(ArmoredReadErrorKind.INVALID_UTF8) from None
        return True, extra
    if prefix[_MARKER_LEN:] == b"\r\n":
        return True, b""
    raise ArmoredReadError(ArmoredReadErrorKind.INVALID_BEGIN_MARKER)


def _trim_suffix(text: str, suffix: str) -> str:
    while text.endswith(suffix):
        text = text[: -len(suffix)]
    return text


def _decode_base64(line: str) -> bytes:
    try:
        raw = line.encode("ascii")
        decoded = base64.b64decode(raw, validate=True)
    except (UnicodeEncodeError, binascii.Error, ValueError) as exc:
        raise ArmoredReadError(ArmoredReadErrorKind.BASE64, str(exc)) from None
    # Only canonical encodings are accepted (no stray trailing bits).
    if base64.b64encode(decoded) != raw:
        raise ArmoredReadError(
            ArmoredReadErrorKind.BASE64, "invalid last symbol in Base64 encoding"
        )
    return decoded


def parse_armor_line(line: str | bytes, found_short_line: bool) -> ArmorLine:
    """Validate one line of armor and decode its Base64 payload.

    ``found_short_line`` says whether a short line has already been seen; the
    returned ArmorLine carries the updated value.
    """
    if isinstance(line, (bytes, bytearray, memoryview)):
        try:
            line = bytes(line).decode("utf-8")
        except UnicodeDecodeError:
            raise ArmoredReadError(ArmoredReadErrorKind.INVALID_UTF8) from None

    if line.endswith("\r\n"):
        line = _trim_suffix(line, "\r\n")
    elif line.endswith("\n"):
        line = _trim_suffix(line, "\n")

    if "\r" in line:
        raise ArmoredReadError(ArmoredReadErrorKind.LINE_CONTAINS_CR)

    if line == ARMORED_END_MARKER:
        return ArmorLine(b"", True, found_short_line)

    length = len(line.encode("utf-8"))
    if not found_short_line:
        if length == ARMORED_COLUMNS_PER_LINE:
            pass
        elif length % 4 != 0:
            raise ArmoredReadError(ArmoredReadErrorKind.MISSING_PADDING)
        elif length < ARMORED_COLUMNS_PER_LINE:
            # Only the final line of the armor may be short.
            found_short_line = True
        else:
            raise ArmoredReadError(ArmoredReadErrorKind.NOT_WRAPPED_AT_64_CHARS)
    elif length == ARMORED_COLUMNS_PER_LINE:
        raise ArmoredReadError(ArmoredReadErrorKind.SHORT_LINE_IN_MIDDLE)
    else:
        raise ArmoredReadError(ArmoredReadErrorKind.NOT_WRAPPED_AT_64_CHARS)

    return ArmorLine(_decode_base64(line), False, found_short_line)


def check_trailing(data: bytes) -> None:
    """Raise if ``data`` after the end marker holds anything but ASCII whitespace."""
    if any(byte not in _ASCII_WHITESPACE for byte in bytes(data)):
        raise ArmoredReadError(ArmoredReadErrorKind.TRAILING_GARBAGE)
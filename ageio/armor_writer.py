"""Writers that optionally apply the age ASCII armor format."""

from __future__ import annotations

import base64
import enum
import os
from typing import BinaryIO

__all__ = [
    "LINE_ENDING",
    "ARMORED_COLUMNS_PER_LINE",
    "ARMORED_BYTES_PER_LINE",
    "ARMORED_BEGIN_MARKER",
    "ARMORED_END_MARKER",
    "MIN_ARMOR_LEN",
    "BASE64_CHUNK_SIZE_COLUMNS",
    "BASE64_CHUNK_SIZE_BYTES",
    "Format",
    "LineEndingWriter",
    "ArmoredWriter",
]

LINE_ENDING = "\r\n" if os.name == "nt" else "\n"

ARMORED_COLUMNS_PER_LINE = 64
ARMORED_BYTES_PER_LINE = ARMORED_COLUMNS_PER_LINE // 4 * 3
ARMORED_BEGIN_MARKER = "-----BEGIN AGE ENCRYPTED FILE-----"
ARMORED_END_MARKER = "-----END AGE ENCRYPTED FILE-----"

MIN_ARMOR_LEN = len(ARMORED_BEGIN_MARKER) + 2

BASE64_CHUNK_SIZE_COLUMNS = 8 * 1024
BASE64_CHUNK_SIZE_BYTES = BASE64_CHUNK_SIZE_COLUMNS // 4 * 3

_LINE_ENDING_BYTES = LINE_ENDING.encode("ascii")
_FLUSH_THRESHOLD = 7 * 1024


class Format(enum.Enum):
    """The format that an ArmoredWriter applies to its output."""

    BINARY = "binary"
    ASCII_ARMOR = "ascii-armor"


class LineEndingWriter:
    """Wraps written text at 64 columns between the armor begin and end markers."""

    def __init__(self, inner: BinaryIO) -> None:
        inner.write(ARMORED_BEGIN_MARKER.encode("ascii") + _LINE_ENDING_BYTES)
        self._inner = inner
        self._buf = bytearray()
        self._total_written = 0

    def _flush_buffered(self) -> None:
        if self._buf:
            self._inner.write(bytes(self._buf))
            self._buf.clear()

    def write(self, data: bytes) -> int:
        """Append ``data``, inserting line endings; returns the bytes consumed."""
        view = memoryview(data).cast("B")
        pos = 0
        while pos < len(view):
            remaining = ARMORED_COLUMNS_PER_LINE - (
                self._total_written % ARMORED_COLUMNS_PER_LINE
            )
            if remaining == ARMORED_COLUMNS_PER_LINE and self._total_written > 0:
                self._buf += _LINE_ENDING_BYTES
            to_write = min(remaining, len(view) - pos)
            self._buf += view[pos : pos + to_write]
            pos += to_write
            self._total_written += to_write

        if len(self._buf) >= _FLUSH_THRESHOLD:
            self._flush_buffered()
        return len(view)

    def flush(self) -> None:
        """Write buffered bytes and flush the underlying output."""
        self._flush_buffered()
        flush = getattr(self._inner, "flush", None)
        if flush is not None:
            flush()

    def finish(self) -> BinaryIO:
        """Write any buffered bytes and the end marker; returns the output."""
        self._flush_buffered()
        self._inner.write(
            _LINE_ENDING_BYTES
            + ARMORED_END_MARKER.encode("ascii")
            + _LINE_ENDING_BYTES
        )
        return self._inner


class ArmoredWriter:
    """Writer that optionally applies the age ASCII armor format.

    ``finish`` must be called when writing is done; with armor enabled, the
    output is otherwise truncated. Used as a context manager, it finishes on a
    clean exit.
    """

    def __init__(self, inner: BinaryIO, armor: LineEndingWriter | None) -> None:
        self._inner = inner
        self._armor = armor
        self._byte_buf = bytearray()
        self._finished = False

    @classmethod
    def wrap_output(cls, output: BinaryIO, format: Format) -> ArmoredWriter:
        """Wrap ``output`` in a writer applying ``format``."""
        if format is Format.ASCII_ARMOR:
            return cls(output, LineEndingWriter(output))
        if format is Format.BINARY:
            return cls(output, None)
        raise ValueError(f"unknown format: {format!r}")

    def _check_open(self) -> None:
        if self._finished:
            raise ValueError("writer has been finished")

    def write(self, data: bytes) -> int:
        """Write ``data``; returns the number of bytes consumed."""
        self._check_open()
        if self._armor is None:
            written = self._inner.write(data)
            return len(memoryview(data)) if written is None else written

        view = memoryview(data).cast("B")
        written = 0
        while True:
            to_write = min(
                BASE64_CHUNK_SIZE_BYTES - len(self._byte_buf), len(view) - written
            )
            self._byte_buf += view[written : written + to_write]
            written += to_write
            # The last, possibly partial, chunk is only encoded in finish().
            if written >= len(view):
                break
            self._armor.write(base64.b64encode(bytes(self._byte_buf)))
            self._byte_buf.clear()
        return written

    def flush(self) -> None:
        """Flush the underlying output."""
        if self._armor is not None:
            self._armor.flush()
            return
        flush = getattr(self._inner, "flush", None)
        if flush is not None:
            flush()

    def finish(self) -> BinaryIO:
        """Write the end of the armor, if enabled; returns the output."""
        self._check_open()
        self._finished = True
        if self._armor is None:
            return self._inner
        self._armor.write(base64.b64encode(bytes(self._byte_buf)))
        self._byte_buf.clear()
        return self._armor.finish()

    def __enter__(self) -> ArmoredWriter:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is None and not self._finished:
            self.finish()
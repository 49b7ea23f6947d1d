"""Reader that parses the age ASCII armor format when it is detected."""

from __future__ import annotations

import os
from typing import BinaryIO

from ageio.armor_parse import check_trailing, detect_armor, parse_armor_line
from ageio.armor_writer import MIN_ARMOR_LEN

__all__ = ["ArmoredReader"]

_UNARMORED_READ_SIZE = 8 * 1024
_TRAILING_READ_SIZE = 4 * 1024
_SKIP_READ_SIZE = 4 * 1024


class ArmoredReader:
    """Reads an age file, removing the ASCII armor if it is present.

    Reading needs ``inner.read`` and ``inner.readline``; seeking also needs
    ``inner.seek`` and ``inner.tell``.
    """

    def __init__(self, inner: BinaryIO) -> None:
        self._inner = inner
        # Until the start of the data is known, count the bytes read from the
        # inner reader so it can be worked out from its current position.
        self._start: int | None = None
        self._consumed = 0
        self._is_armored: bool | None = None
        self._line_buf = b""
        self._byte_buf = b""
        self._byte_start = 0
        self._found_short_line = False
        self._found_end = False
        self._data_len: int | None = None
        self._data_read = 0

    def _count_reader_bytes(self, amount: int) -> int:
        if self._start is None:
            self._consumed += amount
        return amount

    def _read_inner_exact(self, size: int) -> bytes:
        parts: list[bytes] = []
        remaining = size
        while remaining > 0:
            data = self._inner.read(remaining)
            if not data:
                raise EOFError("failed to fill whole buffer")
            parts.append(data)
            remaining -= len(data)
        return b"".join(parts)

    def _detect(self) -> None:
        prefix = self._read_inner_exact(MIN_ARMOR_LEN)
        is_armored, leftover = detect_armor(prefix)
        if is_armored:
            # With an LF line ending, one byte of the next line was read; it
            # belongs to the armored data, so it starts the line buffer.
            if leftover:
                self._line_buf = leftover
                self._count_reader_bytes(len(leftover))
        else:
            # Not armored: the prefix is part of the data.
            self._byte_buf = leftover
            self._byte_start = 0
            self._count_reader_bytes(len(leftover))
        self._is_armored = is_armored

    def _read_next_armor_line(self) -> bool:
        """Load the next armor line into the byte buffer; True at the end marker."""
        read = self._inner.readline()
        self._count_reader_bytes(len(read))
        line = self._line_buf + read

        parsed = parse_armor_line(line, self._found_short_line)
        self._found_short_line = parsed.found_short_line
        if parsed.is_end:
            self._found_end = True
            while True:
                rest = self._inner.read(_TRAILING_READ_SIZE)
                if not rest:
                    break
                check_trailing(rest)
            return True

        self._byte_buf = parsed.data
        self._byte_start = 0
        self._line_buf = b""
        return False

    def _buffered(self) -> bytes:
        return self._byte_buf[self._byte_start :]

    def fill_buf(self) -> bytes:
        """Return the buffered data, reading more if the buffer is empty."""
        if self._is_armored is None:
            self._detect()

        if not self._is_armored:
            if self._byte_start >= len(self._byte_buf):
                data = self._inner.read(_UNARMORED_READ_SIZE) or b""
                self._byte_buf = bytes(data)
                self._byte_start = 0
                self._count_reader_bytes(len(data))
            return self._buffered()

        if self._found_end:
            return b""
        if self._byte_start >= len(self._byte_buf):
            if self._read_next_armor_line():
                return b""
        return self._buffered()

    def consume(self, amount: int) -> None:
        """Mark ``amount`` bytes of the buffer returned by fill_buf as read."""
        new_start = self._byte_start + amount
        if amount < 0 or new_start > len(self._byte_buf):
            raise ValueError("cannot consume more than is buffered")
        self._byte_start = new_start
        self._data_read += amount

    def read(self, size: int = -1) -> bytes:
        """Read up to ``size`` bytes, or everything if ``size`` < 0."""
        parts: list[bytes] = []
        remaining = size
        while size < 0 or remaining > 0:
            available = self.fill_buf()
            if not available:
                break
            chunk = available if size < 0 else available[:remaining]
            self.consume(len(chunk))
            parts.append(chunk)
            remaining -= len(chunk)
        return b"".join(parts)

    def read_exact(self, size: int) -> bytes:
        """Read exactly ``size`` bytes, raising EOFError if fewer remain."""
        data = self.read(size)
        if len(data) < size:
            raise EOFError("failed to fill whole buffer")
        return data

    def _start_position(self) -> int:
        if self._start is None:
            self._start = self._inner.tell() - self._consumed
        return self._start

    def seek(self, offset: int, whence: int = os.SEEK_SET) -> int:
        """Move to a position within the (possibly armored) data."""
        if self._is_armored is None:
            self._detect()

        start = self._start_position()
        if whence == os.SEEK_SET:
            target = offset
        elif whence == os.SEEK_CUR:
            target = self._data_read + offset
        elif whence == os.SEEK_END:
            if self._data_len is None:
                while self.read(_SKIP_READ_SIZE):
                    pass
                self._data_len = self._data_read
            target = self._data_len + offset
        else:
            raise ValueError(f"invalid whence: {whence}")
        if target < 0:
            raise ValueError("cannot seek before the start")

        if not self._is_armored:
            self._inner.seek(start + target)
            self._byte_buf = b""
            self._byte_start = 0
            self._data_read = target
            return target

        # Armored lines may use any line ending, so the line holding the target
        # cannot be located directly: rewind and read forward instead.
        self._inner.seek(start)
        self._line_buf = b""
        self._byte_buf = b""
        self._byte_start = 0
        self._found_short_line = False
        self._found_end = False
        self._data_read = 0

        remaining = target
        while remaining > 0:
            step = min(remaining, _SKIP_READ_SIZE)
            self.read_exact(step)
            remaining -= step
        return target

    def tell(self) -> int:
        """The current position within the data."""
        return self._data_read
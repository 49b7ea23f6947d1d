"""Decrypting, seekable reader over a STREAM-encrypted payload."""

from __future__ import annotations

import os
from typing import BinaryIO

from ageio.stream import (
    CHUNK_SIZE,
    ENCRYPTED_CHUNK_SIZE,
    TAG_SIZE,
    DecryptionError,
    Nonce,
    Stream,
    TruncatedStreamError,
)

__all__ = ["StreamReader", "decrypt_stream"]


class StreamReader:
    """Provides access to the plaintext of an encrypted stream.

    Reading only needs ``inner.read``; seeking and ``plaintext_length`` also
    need ``inner.seek`` and ``inner.tell``.
    """

    def __init__(self, stream: Stream, inner: BinaryIO) -> None:
        self._stream = stream
        self._inner = inner
        self._encrypted = bytearray()
        # Until the start of the ciphertext is known, count the bytes read from
        # the inner reader so it can be worked out from its current position.
        self._start: int | None = None
        self._consumed = 0
        self._plaintext_len: int | None = None
        self._pos = 0
        self._chunk: bytes | None = None

    def _count_bytes(self, amount: int) -> None:
        if self._start is None:
            self._consumed += amount

    def _fill_encrypted(self) -> None:
        while len(self._encrypted) < ENCRYPTED_CHUNK_SIZE:
            data = self._inner.read(ENCRYPTED_CHUNK_SIZE - len(self._encrypted))
            if not data:
                break
            self._encrypted += data

    def _decrypt_chunk(self) -> None:
        self._count_bytes(len(self._encrypted))
        chunk = bytes(self._encrypted)

        if not chunk:
            if not self._stream.is_complete():
                raise TruncatedStreamError()
        else:
            # A payload that is an exact multiple of the chunk size ends in a
            # full-size last chunk, so a failed non-last decryption is retried
            # as a last chunk.
            last = len(chunk) < ENCRYPTED_CHUNK_SIZE
            try:
                decrypted = self._stream.decrypt_chunk(chunk, last)
            except DecryptionError:
                if last:
                    raise
                decrypted = self._stream.decrypt_chunk(chunk, True)
            else:
                if not decrypted and self._pos > 0:
                    raise DecryptionError("last STREAM chunk is empty")
            self._chunk = decrypted

        self._encrypted.clear()

    def _read_from_chunk(self, size: int) -> bytes:
        if self._chunk is None:
            return b""
        offset = self._pos % CHUNK_SIZE
        data = self._chunk[offset : offset + size]
        self._pos += len(data)
        if self._pos % CHUNK_SIZE == 0:
            self._chunk = None
        return data

    def _read_once(self, size: int) -> bytes:
        if self._chunk is None:
            self._fill_encrypted()
            self._decrypt_chunk()
        return self._read_from_chunk(size)

    def read(self, size: int = -1) -> bytes:
        """Read up to ``size`` plaintext bytes, or everything if ``size`` < 0."""
        parts: list[bytes] = []
        remaining = size
        while size < 0 or remaining > 0:
            data = self._read_once(CHUNK_SIZE if size < 0 else remaining)
            if not data:
                break
            parts.append(data)
            remaining -= len(data)
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

    def plaintext_length(self) -> int:
        """The plaintext length, authenticated by decrypting the last chunk."""
        if self._plaintext_len is not None:
            return self._plaintext_len

        cur_pos = self._inner.tell()
        cur_nonce = self._stream.nonce.value
        ct_start = self._start_position()
        try:
            ct_end = self._inner.seek(0, os.SEEK_END)
            ct_len = ct_end - ct_start
            num_chunks = -(-ct_len // ENCRYPTED_CHUNK_SIZE)
            if num_chunks == 0:
                raise DecryptionError("Last chunk is invalid, stream might be truncated")

            last_chunk_start = ct_start + (num_chunks - 1) * ENCRYPTED_CHUNK_SIZE
            self._inner.seek(last_chunk_start)
            last_chunk = self._inner.read()
            self._stream.nonce.set_counter(num_chunks - 1)
            try:
                self._stream.decrypt_chunk(last_chunk, True)
            except DecryptionError:
                raise DecryptionError(
                    "Last chunk is invalid, stream might be truncated"
                ) from None

            plaintext_len = ct_len - num_chunks * TAG_SIZE
        finally:
            self._inner.seek(cur_pos)
            self._stream.nonce = Nonce(cur_nonce)

        self._plaintext_len = plaintext_len
        return plaintext_len

    def seek(self, offset: int, whence: int = os.SEEK_SET) -> int:
        """Move to a plaintext position; returns the new position."""
        start = self._start_position()
        if whence == os.SEEK_SET:
            target = offset
        elif whence == os.SEEK_CUR:
            target = self._pos + offset
        elif whence == os.SEEK_END:
            target = self.plaintext_length() + offset
        else:
            raise ValueError(f"invalid whence: {whence}")
        if target < 0:
            raise ValueError("cannot seek before the start")

        cur_index = self._pos // CHUNK_SIZE
        target_index, target_offset = divmod(target, CHUNK_SIZE)

        if target_index == cur_index:
            self._pos = target
        else:
            self._chunk = None
            self._encrypted.clear()
            self._inner.seek(start + target_index * ENCRYPTED_CHUNK_SIZE)
            self._stream.nonce.set_counter(target_index)
            self._pos = target_index * CHUNK_SIZE

            if target_offset > 0:
                self.read_exact(target_offset)
            elif target == self.plaintext_length():
                # At the end of a payload whose last chunk is full, the next
                # read sees no bytes, so mark the stream as complete here.
                self._stream.nonce.set_last(True)

        return target

    def tell(self) -> int:
        """The current plaintext position."""
        return self._pos


def decrypt_stream(key: bytes, inner: BinaryIO) -> StreamReader:
    """Wrap ``inner`` in STREAM decryption under ``key``."""
    return StreamReader(Stream(key), inner)
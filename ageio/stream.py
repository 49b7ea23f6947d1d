"""STREAM online authenticated encryption in 64 KiB ChaCha20-Poly1305 chunks."""

from __future__ import annotations

from dataclasses import dataclass
from typing import BinaryIO

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import ChaCha20Poly1305

__all__ = [
    "CHUNK_SIZE",
    "TAG_SIZE",
    "ENCRYPTED_CHUNK_SIZE",
    "KEY_SIZE",
    "StreamError",
    "StreamFinishedError",
    "DecryptionError",
    "TruncatedStreamError",
    "Nonce",
    "Stream",
    "StreamWriter",
    "encrypt_stream",
]

CHUNK_SIZE = 64 * 1024
TAG_SIZE = 16
ENCRYPTED_CHUNK_SIZE = CHUNK_SIZE + TAG_SIZE
KEY_SIZE = 32

_NONCE_BYTES = 12


class StreamError(Exception):
    """Base class for errors raised while processing a STREAM."""


class StreamFinishedError(StreamError):
    """The last chunk of the stream has already been processed."""

    def __init__(self, message: str = "last chunk has been processed") -> None:
        super().__init__(message)


class DecryptionError(StreamError, ValueError):
    """A chunk failed to authenticate or the stream is otherwise invalid."""


class TruncatedStreamError(StreamError, EOFError):
    """The stream ended before its last chunk was seen."""

    def __init__(self, message: str = "age file is truncated") -> None:
        super().__init__(message)


@dataclass
class Nonce:
    """An 11-byte big-endian counter followed by a 1-byte last-chunk flag."""

    value: int = 0

    def set_counter(self, value: int) -> None:
        """Set the counter, clearing the last-chunk flag."""
        if value < 0 or value >= 1 << 88:
            raise OverflowError("nonce counter out of range")
        self.value = value << 8

    def increment_counter(self) -> None:
        """Advance the counter by one."""
        self.value += 1 << 8
        if self.value >> (8 * _NONCE_BYTES):
            raise OverflowError("nonce counter overflowed")

    def is_last(self) -> bool:
        """Whether the last-chunk flag is set."""
        return bool(self.value & 1)

    def set_last(self, last: bool) -> None:
        """Set the last-chunk flag; fails if it is already set."""
        if self.is_last():
            raise StreamFinishedError()
        self.value |= int(bool(last))

    def to_bytes(self) -> bytes:
        """The 12-byte nonce."""
        return self.value.to_bytes(_NONCE_BYTES, "big")


class Stream:
    """Per-chunk STREAM state: an AEAD keyed once and a running nonce.

    The key must never be reused across streams.
    """

    def __init__(self, key: bytes) -> None:
        if len(key) != KEY_SIZE:
            raise ValueError(f"payload key must be {KEY_SIZE} bytes")
        self._aead = ChaCha20Poly1305(bytes(key))
        self.nonce = Nonce()

    def encrypt_chunk(self, chunk: bytes, last: bool) -> bytes:
        """Encrypt one plaintext chunk of at most CHUNK_SIZE bytes."""
        if len(chunk) > CHUNK_SIZE:
            raise ValueError("chunk is larger than CHUNK_SIZE")
        self.nonce.set_last(last)
        encrypted = self._aead.encrypt(self.nonce.to_bytes(), bytes(chunk), None)
        self.nonce.increment_counter()
        return encrypted

    def decrypt_chunk(self, chunk: bytes, last: bool) -> bytes:
        """Decrypt one ciphertext chunk of at most ENCRYPTED_CHUNK_SIZE bytes."""
        if len(chunk) > ENCRYPTED_CHUNK_SIZE:
            raise ValueError("chunk is larger than ENCRYPTED_CHUNK_SIZE")
        self.nonce.set_last(last)
        try:
            decrypted = self._aead.decrypt(self.nonce.to_bytes(), bytes(chunk), None)
        except InvalidTag:
            raise DecryptionError("decryption error") from None
        self.nonce.increment_counter()
        return decrypted

    def is_complete(self) -> bool:
        """Whether the last chunk has been processed."""
        return self.nonce.is_last()


class StreamWriter:
    """Writes an encrypted stream to a binary output.

    ``finish`` must be called when writing is done, or the output is truncated.
    Used as a context manager, it finishes on a clean exit.
    """

    def __init__(self, stream: Stream, inner: BinaryIO) -> None:
        self._stream = stream
        self._inner = inner
        self._chunk = bytearray()

    def write(self, data: bytes) -> int:
        """Buffer and encrypt ``data``; returns the number of bytes consumed."""
        view = memoryview(data).cast("B")
        written = 0
        while written < len(view):
            to_write = min(CHUNK_SIZE - len(self._chunk), len(view) - written)
            self._chunk += view[written : written + to_write]
            written += to_write
            # The final chunk is only encrypted in finish(), so a full chunk is
            # flushed only once more data follows it.
            if written < len(view):
                self._inner.write(self._stream.encrypt_chunk(self._chunk, False))
                self._chunk.clear()
        return written

    def flush(self) -> None:
        """Flush the underlying output."""
        self._inner.flush()

    def finish(self) -> BinaryIO:
        """Encrypt and write the final chunk, returning the underlying output."""
        encrypted = self._stream.encrypt_chunk(self._chunk, True)
        self._inner.write(encrypted)
        self._chunk.clear()
        return self._inner

    def __enter__(self) -> StreamWriter:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is None and not self._stream.is_complete():
            self.finish()


def encrypt_stream(key: bytes, inner: BinaryIO) -> StreamWriter:
    """Wrap ``inner`` in STREAM encryption under ``key``."""
    return StreamWriter(Stream(key), inner)
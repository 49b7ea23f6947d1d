# ageio

Building blocks for reading and writing the payload and the ASCII armor of
files in the age encryption format:

- **STREAM payload encryption** (`ageio.stream`, `ageio.stream_reader`):
  ChaCha20-Poly1305 in 64 KiB chunks. The 12-byte nonce is an 11-byte
  big-endian counter followed by a 1-byte last-chunk flag. Writers encrypt as
  data arrives; readers decrypt one chunk at a time and can seek.
- **ASCII armor** (`ageio.armor_writer`, `ageio.armor_parse`,
  `ageio.armor_reader`): the `-----BEGIN AGE ENCRYPTED FILE-----` wrapping,
  with Base64 wrapped at 64 columns. The reader detects whether its input is
  armored and accepts only canonical armor.

Requires Python 3.10 or later and the `cryptography` package.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Encrypting and decrypting a payload

The payload key is 32 bytes (`ageio.stream.KEY_SIZE`) and must never be used
for more than one stream.

```python
import io
from ageio.stream import encrypt_stream
from ageio.stream_reader import decrypt_stream

key = bytes(32)  # placeholder; use a fresh key for every stream

out = io.BytesIO()
writer = encrypt_stream(key, out)
writer.write(b"hello world")
writer.finish()          # required: encrypts and writes the final chunk

reader = decrypt_stream(key, io.BytesIO(out.getvalue()))
assert reader.read() == b"hello world"
```

`StreamWriter` is also a context manager: on a clean exit from a `with`
block it calls `finish()` if that has not been done.

If `finish()` is never called, the output is truncated and reading it raises
`TruncatedStreamError` (a subclass of `EOFError`). A chunk that fails to
authenticate raises `DecryptionError` (a subclass of `ValueError`). Both
derive from `StreamError`. Processing a chunk after the last one raises
`StreamFinishedError`.

`StreamReader` offers:

- `read(size=-1)`: up to `size` bytes, or everything when `size` is negative;
- `read_exact(size)`: exactly `size` bytes, or `EOFError`;
- `seek(offset, whence)` with `io.SEEK_SET`, `io.SEEK_CUR` or `io.SEEK_END`,
  and `tell()`;
- `plaintext_length()`: the plaintext length, found by decrypting the final
  chunk as a last chunk, so a truncated ciphertext raises `DecryptionError`
  rather than giving a wrong length. The result is cached.

Reading only needs `read` on the underlying object; seeking and
`plaintext_length()` also need `seek` and `tell`.

The lower-level `Stream` class encrypts and decrypts single chunks with
`encrypt_chunk(chunk, last)` and `decrypt_chunk(chunk, last)`, and `Nonce`
holds the counter and last-chunk flag.

## Armor

```python
import io
from ageio.armor_writer import ArmoredWriter, Format
from ageio.armor_reader import ArmoredReader

buf = io.BytesIO()
writer = ArmoredWriter.wrap_output(buf, Format.ASCII_ARMOR)
writer.write(b"binary age file bytes")
writer.finish()

text = buf.getvalue()
assert text.startswith(b"-----BEGIN AGE ENCRYPTED FILE-----")

reader = ArmoredReader(io.BytesIO(text))
assert reader.read() == b"binary age file bytes"
```

With `Format.BINARY` the writer passes data through unchanged. The writer
uses `\r\n` line endings on Windows and `\n` elsewhere; the reader accepts
either. `ArmoredWriter` is a context manager that finishes on a clean exit.

`ArmoredReader` reads the first 36 bytes to decide whether the input is
armored, so shorter input raises `EOFError`. Input that does not start with
the begin marker is passed through unchanged. Besides `read`, it offers
`read_exact`, `fill_buf`/`consume` for buffered access, and `seek`/`tell`.
Seeking within armored input goes back to the start of the armor and reads
forward to the target.

Malformed armor raises `ArmoredReadError` (a `ValueError`). Its `kind` is an
`ArmoredReadErrorKind` member: `BASE64`, `INVALID_BEGIN_MARKER`,
`INVALID_UTF8`, `LINE_CONTAINS_CR`, `MISSING_PADDING`,
`NOT_WRAPPED_AT_64_CHARS`, `SHORT_LINE_IN_MIDDLE` or `TRAILING_GARBAGE`.
The checks are also available on their own in `ageio.armor_parse`:
`detect_armor(prefix)`, `parse_armor_line(line, found_short_line)` (which
returns an `ArmorLine`) and `check_trailing(data)`.

## What this package does not do

It handles only the encrypted payload and the armor around it. It does not
write or parse age file headers, derive payload keys, or provide recipients
and identities (X25519, passphrases). Nothing here encrypts a file for a
recipient from start to finish, and there is no command-line tool.
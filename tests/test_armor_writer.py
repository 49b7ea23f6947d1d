import base64
import io

import pytest

from ageio.armor_writer import (
    ARMORED_BEGIN_MARKER,
    ARMORED_BYTES_PER_LINE,
    ARMORED_COLUMNS_PER_LINE,
    ARMORED_END_MARKER,
    BASE64_CHUNK_SIZE_BYTES,
    LINE_ENDING,
    ArmoredWriter,
    Format,
    LineEndingWriter,
)

LE = LINE_ENDING.encode()
BEGIN = ARMORED_BEGIN_MARKER.encode()
END = ARMORED_END_MARKER.encode()


def _armor(data: bytes, pieces: int = 1) -> bytes:
    out = io.BytesIO()
    writer = ArmoredWriter.wrap_output(out, Format.ASCII_ARMOR)
    step = max(1, -(-len(data) // pieces))
    for start in range(0, len(data), step):
        writer.write(data[start : start + step])
    result = writer.finish()
    assert result is out
    return out.getvalue()


def _lines(armored: bytes) -> list[bytes]:
    assert armored.endswith(LE)
    return armored[: -len(LE)].split(LE)


def _body(armored: bytes) -> bytes:
    lines = _lines(armored)
    assert lines[0] == BEGIN
    assert lines[-1] == END
    return base64.b64decode(b"".join(lines[1:-1]), validate=True)


def test_empty_armor_is_exact():
    assert _armor(b"") == BEGIN + LE + LE + END + LE


def test_short_armor_is_exact():
    assert _armor(b"hello") == BEGIN + LE + b"aGVsbG8=" + LE + END + LE


def test_armored_round_trip_all_lengths():
    data = bytes(i % 256 for i in range(ARMORED_BYTES_PER_LINE * 50))
    for length in range(len(data) + 1):
        assert _body(_armor(data[:length])) == data[:length]


def test_lines_are_wrapped_at_64_columns():
    data = bytes(range(256)) * 10
    lines = _lines(_armor(data))[1:-1]
    assert all(len(line) == ARMORED_COLUMNS_PER_LINE for line in lines[:-1])
    assert 0 < len(lines[-1]) <= ARMORED_COLUMNS_PER_LINE


def test_full_line_data_has_no_short_line():
    data = b"\x07" * (ARMORED_BYTES_PER_LINE * 3)
    lines = _lines(_armor(data))[1:-1]
    assert [len(line) for line in lines] == [ARMORED_COLUMNS_PER_LINE] * 3


def test_chunk_boundaries_round_trip():
    data = bytes(i % 251 for i in range(BASE64_CHUNK_SIZE_BYTES * 2 + 5))
    armored = _armor(data)
    assert _body(armored) == data
    lines = _lines(armored)[1:-1]
    assert all(len(line) == ARMORED_COLUMNS_PER_LINE for line in lines[:-1])


@pytest.mark.parametrize("pieces", [2, 7, 100, 1000])
def test_piecewise_writes_match_single_write(pieces):
    data = bytes(i % 256 for i in range(BASE64_CHUNK_SIZE_BYTES + 777))
    assert _armor(data, pieces) == _armor(data)


def test_write_returns_bytes_consumed():
    writer = ArmoredWriter.wrap_output(io.BytesIO(), Format.ASCII_ARMOR)
    assert writer.write(b"x" * (BASE64_CHUNK_SIZE_BYTES + 10)) == BASE64_CHUNK_SIZE_BYTES + 10
    assert writer.write(b"") == 0


def test_binary_is_passthrough():
    data = bytes(i % 256 for i in range(100 * 100))
    out = io.BytesIO()
    writer = ArmoredWriter.wrap_output(out, Format.BINARY)
    assert writer.write(data) == len(data)
    assert writer.finish() is out
    assert out.getvalue() == data


def test_context_manager_finishes():
    out = io.BytesIO()
    with ArmoredWriter.wrap_output(out, Format.ASCII_ARMOR) as writer:
        writer.write(b"hello")
    assert out.getvalue().endswith(LE + END + LE)
    assert _body(out.getvalue()) == b"hello"


def test_write_after_finish_raises():
    writer = ArmoredWriter.wrap_output(io.BytesIO(), Format.ASCII_ARMOR)
    writer.finish()
    with pytest.raises(ValueError):
        writer.write(b"more")
    with pytest.raises(ValueError):
        writer.finish()


def test_flush_writes_buffered_output():
    out = io.BytesIO()
    writer = ArmoredWriter.wrap_output(out, Format.ASCII_ARMOR)
    writer.write(b"z" * (BASE64_CHUNK_SIZE_BYTES + 1))
    writer.flush()
    value = out.getvalue()
    assert value.startswith(BEGIN + LE)
    assert len(value) > len(BEGIN + LE)


def test_line_ending_writer_wraps_text():
    out = io.BytesIO()
    writer = LineEndingWriter(out)
    assert writer.write(b"A" * 130) == 130
    assert writer.finish() is out
    expected = (
        BEGIN + LE + b"A" * 64 + LE + b"A" * 64 + LE + b"AA" + LE + END + LE
    )
    assert out.getvalue() == expected


def test_line_ending_writer_split_writes():
    out = io.BytesIO()
    writer = LineEndingWriter(out)
    for _ in range(10):
        writer.write(b"B" * 13)
    writer.finish()
    lines = _lines(out.getvalue())
    assert lines == [BEGIN, b"B" * 64, b"B" * 64, b"B" * 2, END]


def test_line_ending_writer_writes_begin_marker_immediately():
    out = io.BytesIO()
    LineEndingWriter(out)
    assert out.getvalue() == BEGIN + LE
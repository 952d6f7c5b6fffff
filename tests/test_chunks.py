import io
import struct

import pytest

from gamebase.chunks import ChunkError, read_chunk, write_chunk


def test_round_trip_scalars():
    buf = io.BytesIO()
    write_chunk("str0", [104, 105, 33], buf, "B")
    buf.seek(0)
    assert read_chunk(buf, "str0", "B") == [104, 105, 33]


def test_round_trip_records():
    records = [(0, 3, 1.0, 2.0, 3.0, 4.0, 1.5, 2.5), (3, 5, 0.0, 0.0, 8.0, 8.0, 4.0, 4.0)]
    buf = io.BytesIO()
    write_chunk("spr0", records, buf, "=2I6f")
    buf.seek(0)
    assert read_chunk(buf, "spr0", "=2I6f") == records


def test_header_bytes():
    buf = io.BytesIO()
    write_chunk("abcd", [1, 2], buf, "=I")
    raw = buf.getvalue()
    assert raw[:4] == b"abcd"
    assert struct.unpack("=I", raw[4:8])[0] == 8
    assert len(raw) == 16


def test_two_chunks_in_sequence():
    buf = io.BytesIO()
    write_chunk("str0", [1, 2], buf, "B")
    write_chunk("spr0", [7], buf, "=I")
    buf.seek(0)
    assert read_chunk(buf, "str0", "B") == [1, 2]
    assert read_chunk(buf, "spr0", "=I") == [7]


def test_empty_chunk():
    buf = io.BytesIO()
    write_chunk("none", [], buf, "=I")
    buf.seek(0)
    assert read_chunk(buf, "none", "=I") == []


def test_wrong_magic():
    buf = io.BytesIO()
    write_chunk("abcd", [1], buf, "=I")
    buf.seek(0)
    with pytest.raises(ChunkError, match="magic"):
        read_chunk(buf, "wxyz", "=I")


def test_truncated_header():
    with pytest.raises(ChunkError, match="header"):
        read_chunk(io.BytesIO(b"abc"), "abcd", "=I")


def test_truncated_data():
    buf = io.BytesIO()
    write_chunk("abcd", [1, 2, 3], buf, "=I")
    raw = buf.getvalue()[:-2]
    with pytest.raises(ChunkError, match="data"):
        read_chunk(io.BytesIO(raw), "abcd", "=I")


def test_size_not_divisible():
    buf = io.BytesIO()
    write_chunk("abcd", [1, 2, 3], buf, "B")
    buf.seek(0)
    with pytest.raises(ChunkError, match="divisible"):
        read_chunk(buf, "abcd", "=I")


def test_bad_magic_length_on_write():
    with pytest.raises(ChunkError):
        write_chunk("abc", [1], io.BytesIO(), "=I")
"""Reading and writing arrays of fixed-size records behind a small header.

A chunk is laid out as::

    |ma|gi|c.|..|   four byte magic
    |sz|sz|sz|sz|   four byte (native endian) size in bytes
    |TT...TT| ...   enough records to make up ``sz`` bytes

Records are described with :mod:`struct` format strings.
"""

from __future__ import annotations

import struct
from typing import Any, BinaryIO, Iterable

_HEADER = struct.Struct("=4sI")


class ChunkError(ValueError):
    """Raised when a chunk cannot be read or written."""


def _as_struct(element_format: str | struct.Struct) -> struct.Struct:
    if isinstance(element_format, struct.Struct):
        return element_format
    return struct.Struct(element_format)


def _magic_bytes(magic: str | bytes) -> bytes:
    if isinstance(magic, str):
        return magic.encode("latin-1")
    return bytes(magic)


def _read_exact(stream: BinaryIO, count: int) -> bytes | None:
    data = stream.read(count)
    if data is None or len(data) != count:
        return None
    return data


def read_chunk(stream: BinaryIO, magic: str | bytes, element_format: str | struct.Struct) -> list[Any]:
    """Read one chunk with the given magic from ``stream``.

    Returns a list of records. Records with a single field come back as
    plain values, others as tuples.
    """
    layout = _as_struct(element_format)
    header = _read_exact(stream, _HEADER.size)
    if header is None:
        raise ChunkError("Failed to read chunk header")
    found_magic, size = _HEADER.unpack(header)
    if found_magic != _magic_bytes(magic):
        raise ChunkError("Unexpected magic number in chunk")
    if layout.size == 0 or size % layout.size != 0:
        raise ChunkError("Size of chunk not divisible by element size")
    payload = _read_exact(stream, size)
    if payload is None:
        raise ChunkError("Failed to read chunk data.")
    single = len(layout.unpack(bytes(layout.size))) == 1
    return [record[0] if single else record for record in layout.iter_unpack(payload)]


def write_chunk(
    magic: str | bytes,
    items: Iterable[Any],
    stream: BinaryIO,
    element_format: str | struct.Struct,
) -> None:
    """Write ``items`` as one chunk to ``stream``, readable by :func:`read_chunk`."""
    magic_bytes = _magic_bytes(magic)
    if len(magic_bytes) != 4:
        raise ChunkError(f"Chunk magic must be four bytes, got {magic!r}")
    layout = _as_struct(element_format)
    try:
        payload = b"".join(
            layout.pack(*item) if isinstance(item, tuple) else layout.pack(item)
            for item in items
        )
    except struct.error as err:
        raise ChunkError(f"Record does not match format: {err}") from err
    stream.write(_HEADER.pack(magic_bytes, len(payload)))
    stream.write(payload)
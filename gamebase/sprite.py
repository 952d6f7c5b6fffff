"""Sprite atlases: a texture image plus named rectangles within it.

An atlas is stored as ``<filebase>.png`` and ``<filebase>.atlas``. The
``.atlas`` file holds a ``str0`` chunk of name bytes followed by a
``spr0`` chunk of sprite records.
"""

from __future__ import annotations

import os
import struct
from dataclasses import dataclass
from typing import Iterable, Mapping, Tuple, Union

import numpy as np

from gamebase.chunks import ChunkError, read_chunk, write_chunk
from gamebase.png import OriginLocation, load_png

Vec2 = Tuple[float, float]

_STRING_FORMAT = "=B"
# name_begin, name_end, min_px, max_px, anchor_px
_SPRITE_FORMAT = struct.Struct("=II6f")


class AtlasError(ValueError):
    """Raised when a sprite atlas file is malformed."""


@dataclass(frozen=True)
class Sprite:
    """A rectangle in an atlas texture, in pixels with a lower-left origin.

    The anchor is the sprite's pivot point, used as its position when drawing.
    """

    min_px: Vec2
    max_px: Vec2
    anchor_px: Vec2


def _decode_name(raw: bytes) -> str:
    return raw.decode("utf-8", errors="surrogateescape")


def _encode_name(name: str) -> bytes:
    return name.encode("utf-8", errors="surrogateescape")


def read_atlas(path: Union[str, os.PathLike]) -> dict[str, Sprite]:
    """Read sprite locations from an ``.atlas`` file, keyed by name."""
    try:
        with open(path, "rb") as stream:
            strings = bytes(read_chunk(stream, "str0", _STRING_FORMAT))
            records = read_chunk(stream, "spr0", _SPRITE_FORMAT)
    except ChunkError as err:
        raise AtlasError(f"Failed to read sprite atlas '{path}': {err}") from err
    except OSError as err:
        raise AtlasError(f"Failed to open sprite atlas '{path}'.") from err

    sprites: dict[str, Sprite] = {}
    for name_begin, name_end, min_x, min_y, max_x, max_y, anchor_x, anchor_y in records:
        if name_begin > name_end or name_end > len(strings):
            raise AtlasError(f"Invalid name in sprite atlas '{path}'.")
        name = _decode_name(strings[name_begin:name_end])
        if name in sprites:
            raise AtlasError(f"Sprite with duplicate name '{name}' in sprite atlas '{path}',")
        sprites[name] = Sprite((min_x, min_y), (max_x, max_y), (anchor_x, anchor_y))
    return sprites


def write_atlas(
    path: Union[str, os.PathLike],
    sprites: Union[Mapping[str, Sprite], Iterable[Tuple[str, Sprite]]],
) -> None:
    """Write named sprites to an ``.atlas`` file, in the order given."""
    entries = sprites.items() if isinstance(sprites, Mapping) else sprites
    strings = bytearray()
    records = []
    for name, sprite in entries:
        begin = len(strings)
        strings += _encode_name(name)
        records.append((begin, len(strings), *sprite.min_px, *sprite.max_px, *sprite.anchor_px))
    with open(path, "wb") as stream:
        write_chunk("str0", list(strings), stream, _STRING_FORMAT)
        write_chunk("spr0", records, stream, _SPRITE_FORMAT)


class SpriteAtlas:
    """A texture image together with the sprites laid out in it."""

    tex_size: Tuple[int, int]
    pixels: np.ndarray
    sprites: dict[str, Sprite]
    atlas_path: str

    def __init__(self, filebase: str) -> None:
        png_path = filebase + ".png"
        self.atlas_path = filebase + ".atlas"
        self.tex_size, self.pixels = load_png(png_path, OriginLocation.LOWER_LEFT)
        self.sprites = read_atlas(self.atlas_path)

    def lookup(self, name: str) -> Sprite:
        """Return the sprite called ``name``; raise KeyError if it is missing."""
        try:
            return self.sprites[name]
        except KeyError:
            raise KeyError(f"Sprite of name '{name}' not found in atlas '{self.atlas_path}'.") from None
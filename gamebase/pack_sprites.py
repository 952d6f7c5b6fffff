"""Pack sprite images into one atlas texture plus an ``.atlas`` index.

Sprite files are named ``name_ax_ay.png`` where ``ax`` and ``ay`` give the
anchor in pixels with a top-left origin. The name part is underscore
encoded:

* ``__`` becomes ``_``
* ``_a`` becomes ``A`` (a letter after an underscore is upper-cased)
* ``_0HH..`` is a hex-encoded UTF-8 character
"""

from __future__ import annotations

import re
import sys
from dataclasses import dataclass, field
from typing import Optional, Sequence

import numpy as np

from gamebase.png import OriginLocation, PngError, load_png, save_png
from gamebase.sprite import Sprite, write_atlas

_USAGE = (
    "Usage:\n\t./pack-sprites <outname> [sprite1.png] [sprite2.png] ...\n"
    ' will create "outname.atlas" and "outname.png" from sprites sprite1.png, ...\n'
    ' sprites should be named "name_ax_ay.png" where "name" is the name written into the atlas'
    " and ax and ay are the anchor positions in the image in pixel coordinates with a top-left origin.\n"
    " NOTE: name will be transformed as follows:\n"
    '   "__" => "_" (double underscore to single)\n'
    '   "_a" => "_A" (letter after underscore upper-cased)\n'
    '   "_0HHHHHH" => "_x" (0-prefixed utf8 hex encoding after underscore decoded)\n'
)

_FLOAT = re.compile(r"\s*[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?\s*")


class PackError(ValueError):
    """Raised when sprites cannot be named, parsed or packed."""


@dataclass
class InputSprite:
    """A sprite image to pack.

    ``pixels`` has shape ``(height, width, 4)`` with row 0 at the bottom;
    ``anchor`` is in pixels with an upper-left origin.
    """

    name: str
    size: tuple[int, int]
    pixels: np.ndarray
    anchor: tuple[float, float] = (0.0, 0.0)


@dataclass
class Packing:
    """Overall atlas size and each sprite's lower-left corner."""

    size: tuple[int, int] = (1, 1)
    lls: list[tuple[int, int]] = field(default_factory=list)


def _hex_byte(high: str, low: str) -> int:
    for ch in (high, low):
        if ch not in "0123456789abcdefABCDEF":
            raise PackError(f"Character {ch!r} is not hex.")
    return int(high + low, 16)


def decode_name(name: str) -> str:
    """Decode an underscore-encoded sprite name."""
    out = bytearray()
    i = 0
    n = len(name)
    while i < n:
        ch = name[i]
        if "a" <= ch <= "z" or "0" <= ch <= "9" or ch == "-":
            out += ch.encode("ascii")
            i += 1
            continue
        if ch != "_":
            raise PackError(f"Invalid character {ch!r} in underscore-encoded name.")
        if i + 1 == n:
            raise PackError("Can't name-decode _ at end of string.")
        nxt = name[i + 1]
        if nxt == "_":
            out += b"_"
            i += 2
        elif "a" <= nxt <= "z":
            out += nxt.upper().encode("ascii")
            i += 2
        elif nxt == "0":
            if i + 3 >= n:
                raise PackError("Can't name-decode _0 without at least two more characters.")
            lead = _hex_byte(name[i + 2], name[i + 3])
            if lead & 0b1000_0000 == 0:
                extra = 0
            elif lead & 0b1110_0000 == 0b1100_0000:
                extra = 1
            elif lead & 0b1111_0000 == 0b1110_0000:
                extra = 2
            elif lead & 0b1111_1000 == 0b1111_0000:
                extra = 3
            else:
                raise PackError("Invalid utf8 decoding _0")
            last = i + 3 + 2 * extra
            if extra and last >= n:
                raise PackError("Ran out of characters decoding _0" + "xx" * (extra + 1))
            encoded = [lead]
            for k in range(extra):
                pos = i + 4 + 2 * k
                cont = _hex_byte(name[pos], name[pos + 1])
                if cont & 0b1100_0000 != 0b1000_0000:
                    raise PackError("Invalid utf8 decoding _0" + "xx" * (extra + 1))
                encoded.append(cont)
            out += bytes(encoded)
            i = last + 1
        else:
            raise PackError(f"Invalid character {nxt!r} after underscore.")
    return out.decode("utf-8", errors="surrogateescape")


def _parse_float(text: str, part: str, filepath: str) -> float:
    if not _FLOAT.fullmatch(text):
        raise PackError(f'Failed to parse _{part} part as float: "{filepath}"')
    return float(text)


def parse_sprite_filename(filepath: str) -> tuple[str, float, float]:
    """Split ``.../name_ax_ay.ext`` into ``(decoded name, ax, ay)``."""
    filename = re.split(r"[/\\]", filepath)[-1]
    stem, dot, _ext = filename.rpartition(".")
    if not dot:
        stem = filename
        print("WARNING: input sprite without file extension -- will try to load as .png anyway.", file=sys.stderr)

    rest, sep, ay_text = stem.rpartition("_")
    if not sep:
        raise PackError(f'input sprite without a _ay part: "{filepath}".')
    anchor_y = _parse_float(ay_text, "ay", filepath)

    encoded, sep, ax_text = rest.rpartition("_")
    if not sep:
        raise PackError(f'input sprite without a _ax part: "{filepath}".')
    anchor_x = _parse_float(ax_text, "ax", filepath)

    try:
        name = decode_name(encoded)
    except PackError as err:
        raise PackError(f"failed to decode sprite name:\n{err}") from err
    return name, anchor_x, anchor_y


def _first_free(filled: np.ndarray, width: int, height: int) -> Optional[tuple[int, int]]:
    """Lowest-row, then leftmost, corner of an empty ``width`` x ``height`` rectangle."""
    rows, cols = filled.shape
    ny, nx = rows - height + 1, cols - width + 1
    if ny <= 0 or nx <= 0:
        return None
    table = np.zeros((rows + 1, cols + 1), dtype=np.int64)
    table[1:, 1:] = (~filled).cumsum(axis=0).cumsum(axis=1)
    empty = (
        table[height:height + ny, width:width + nx]
        - table[0:ny, width:width + nx]
        - table[height:height + ny, 0:nx]
        + table[0:ny, 0:nx]
    )
    hits = np.argwhere(empty == width * height)
    if len(hits) == 0:
        return None
    y, x = hits[0]
    return int(x), int(y)


def pack_first_fit(sizes: Sequence[tuple[int, int]], margin: int = 1) -> Packing:
    """First-fit packing of ``(width, height)`` rectangles, largest first.

    The atlas starts at the smallest power-of-two size that fits the
    largest sprite plus margins and doubles its shorter side until every
    sprite fits. Each sprite keeps ``margin`` free pixels around it.
    """
    if margin < 0:
        raise PackError("Margin must not be negative.")
    sizes = [(int(w), int(h)) for w, h in sizes]
    if any(w < 0 or h < 0 for w, h in sizes):
        raise PackError("Sprite sizes must not be negative.")

    width, height = 1, 1
    for w, h in sizes:
        while width < w + 2 * margin:
            width *= 2
        while height < h + 2 * margin:
            height *= 2

    order = sorted(range(len(sizes)), key=lambda i: max(sizes[i]), reverse=True)
    lls: list[Optional[tuple[int, int]]] = [None] * len(sizes)
    placed: list[int] = []

    for index in order:
        w, h = sizes[index]
        while True:
            filled = np.zeros((height, width), dtype=bool)
            for other in placed:
                ox, oy = lls[other]
                ow, oh = sizes[other]
                filled[oy:oy + oh, ox:ox + ow] = True
            spot = _first_free(filled, w + 2 * margin, h + 2 * margin)
            if spot is not None:
                break
            if width <= height:
                width *= 2
            else:
                height *= 2
        lls[index] = (spot[0] + margin, spot[1] + margin)
        placed.append(index)

    return Packing((width, height), [ll for ll in lls if ll is not None])


def render_atlas(sprites: Sequence[InputSprite], packing: Packing) -> np.ndarray:
    """Draw sprites at their packed positions; returns ``(height, width, 4)`` RGBA, row 0 at the bottom."""
    if len(sprites) != len(packing.lls):
        raise PackError("Packing does not hold one position per sprite.")
    width, height = packing.size
    data = np.zeros((height, width, 4), dtype=np.uint8)
    for sprite, (x, y) in zip(sprites, packing.lls):
        w, h = sprite.size
        pixels = np.asarray(sprite.pixels, dtype=np.uint8).reshape(h, w, 4)
        region = data[y:y + h, x:x + w]
        if region.shape != pixels.shape:
            raise PackError(f'Sprite "{sprite.name}" does not fit inside the atlas at its packed position.')
        if region.any():
            raise PackError(f'Sprite "{sprite.name}" overlaps another sprite.')
        region[...] = pixels
    return data


def _name_key(sprite: InputSprite) -> bytes:
    return sprite.name.encode("utf-8", errors="surrogateescape")


def _load_sprite(path: str) -> InputSprite:
    size, pixels = load_png(path, OriginLocation.LOWER_LEFT)
    name, anchor_x, anchor_y = parse_sprite_filename(path)
    return InputSprite(name, size, pixels, (anchor_x, anchor_y))


def pack_sprites(outname: str, paths: Sequence[str], margin: int = 1) -> list[tuple[str, Sprite]]:
    """Pack the sprite files into ``outname.png`` and ``outname.atlas``.

    Returns the atlas entries in the order they were written.
    """
    if len(outname) > 4 and outname.endswith(".png"):
        raise PackError(f"your output file ({outname}) shouldn't have an .png extension.")

    sprites = [_load_sprite(path) for path in paths]

    print(f"Will pack the following sprites with margin {margin} and save into {outname}.png and {outname}.atlas :")
    for sprite in sprites:
        print(
            f'\t"{sprite.name}" {sprite.size[0]}x{sprite.size[1]} '
            f"with anchor at {sprite.anchor[0]:g}, {sprite.anchor[1]:g}"
        )

    sprites.sort(key=_name_key)
    for before, after in zip(sprites, sprites[1:]):
        if before.name == after.name:
            raise PackError(
                f'have two sprites with the same name -- "{after.name}" -- '
                "this is not allowed by the sprite lookup code."
            )

    print("Doing first packing...", end="", flush=True)
    packing = pack_first_fit([sprite.size for sprite in sprites], margin)
    print(" done.")
    print(f"Got size {packing.size[0]}x{packing.size[1]}.")

    print("Building output image...", end="", flush=True)
    data = render_atlas(sprites, packing)
    print(" done.")

    print(f"Saving {outname}.png ...", end="", flush=True)
    save_png(outname + ".png", packing.size, data, OriginLocation.LOWER_LEFT)
    print(" done.")

    entries = []
    for sprite, (x, y) in zip(sprites, packing.lls):
        w, h = sprite.size
        entries.append(
            (
                sprite.name,
                Sprite(
                    min_px=(float(x), float(y)),
                    max_px=(float(x + w), float(y + h)),
                    anchor_px=(x + sprite.anchor[0], y + h - sprite.anchor[1]),
                ),
            )
        )

    print(f"Saving {outname}.atlas ...", end="", flush=True)
    write_atlas(outname + ".atlas", entries)
    print(" done.")
    return entries


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Command-line entry: ``<outname> [sprite.png ...]``."""
    args = list(sys.argv[1:] if argv is None else argv)
    if not args:
        sys.stderr.write(_USAGE)
        sys.stderr.flush()
        return 1
    try:
        pack_sprites(args[0], args[1:])
    except (PackError, PngError) as err:
        print(f"ERROR: {err}", file=sys.stderr)
        return 1
    return 0
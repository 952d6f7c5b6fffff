import struct

import numpy as np
import pytest

from gamebase.chunks import write_chunk
from gamebase.png import OriginLocation, PngError, save_png
from gamebase.sprite import AtlasError, Sprite, SpriteAtlas, read_atlas, write_atlas

SPRITES = {
    "player": Sprite((1.0, 1.0), (5.0, 9.0), (3.0, 1.0)),
    "Coin": Sprite((6.0, 1.0), (8.5, 3.5), (7.25, 2.25)),
    "ä": Sprite((0.0, 0.0), (1.0, 1.0), (0.5, 0.5)),
}


def test_atlas_round_trip(tmp_path):
    path = tmp_path / "sheet.atlas"
    write_atlas(path, SPRITES)
    assert read_atlas(path) == SPRITES


def test_write_atlas_accepts_pairs(tmp_path):
    path = tmp_path / "pairs.atlas"
    write_atlas(path, list(SPRITES.items()))
    assert read_atlas(path) == SPRITES


def test_atlas_file_layout(tmp_path):
    path = tmp_path / "one.atlas"
    sprite = Sprite((1.0, 2.0), (3.0, 4.0), (5.0, 6.0))
    write_atlas(path, {"ab": sprite})
    raw = path.read_bytes()
    assert raw[:4] == b"str0"
    assert struct.unpack("=I", raw[4:8])[0] == 2
    assert raw[8:10] == b"ab"
    assert raw[10:14] == b"spr0"
    assert struct.unpack("=I", raw[14:18])[0] == 32
    assert struct.unpack("=II6f", raw[18:50]) == (0, 2, 1.0, 2.0, 3.0, 4.0, 5.0, 6.0)


def _write_raw(path, strings, records):
    with open(path, "wb") as stream:
        write_chunk("str0", list(strings), stream, "=B")
        write_chunk("spr0", records, stream, "=II6f")


def test_duplicate_names_rejected(tmp_path):
    path = tmp_path / "dup.atlas"
    _write_raw(path, b"aa", [(0, 1, 0, 0, 1, 1, 0, 0), (1, 2, 0, 0, 1, 1, 0, 0)])
    with pytest.raises(AtlasError, match="duplicate name 'a'"):
        read_atlas(path)


@pytest.mark.parametrize("begin,end", [(2, 1), (0, 5)])
def test_invalid_name_range_rejected(tmp_path, begin, end):
    path = tmp_path / "bad.atlas"
    _write_raw(path, b"abc", [(begin, end, 0, 0, 1, 1, 0, 0)])
    with pytest.raises(AtlasError, match="Invalid name"):
        read_atlas(path)


def test_wrong_magic_rejected(tmp_path):
    path = tmp_path / "magic.atlas"
    with open(path, "wb") as stream:
        write_chunk("strX", [], stream, "=B")
    with pytest.raises(AtlasError):
        read_atlas(path)


def test_missing_atlas_file(tmp_path):
    with pytest.raises(AtlasError):
        read_atlas(tmp_path / "absent.atlas")


def _make_atlas(tmp_path):
    base = str(tmp_path / "sheet")
    pixels = np.zeros((3, 2, 4), dtype=np.uint8)
    pixels[0, 0] = (255, 0, 0, 255)
    save_png(base + ".png", (2, 3), pixels, OriginLocation.LOWER_LEFT)
    write_atlas(base + ".atlas", SPRITES)
    return base, pixels


def test_sprite_atlas_loads_texture_and_sprites(tmp_path):
    base, pixels = _make_atlas(tmp_path)
    atlas = SpriteAtlas(base)
    assert atlas.tex_size == (2, 3)
    assert np.array_equal(atlas.pixels, pixels)
    assert atlas.atlas_path == base + ".atlas"
    assert atlas.lookup("player") == SPRITES["player"]
    assert atlas.lookup("ä") == SPRITES["ä"]


def test_lookup_missing_raises(tmp_path):
    base, _ = _make_atlas(tmp_path)
    atlas = SpriteAtlas(base)
    with pytest.raises(KeyError, match="nothing"):
        atlas.lookup("nothing")


def test_sprite_atlas_missing_png(tmp_path):
    base = str(tmp_path / "nopng")
    write_atlas(base + ".atlas", SPRITES)
    with pytest.raises(PngError):
        SpriteAtlas(base)
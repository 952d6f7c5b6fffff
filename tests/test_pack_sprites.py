import numpy as np
import pytest

from gamebase.pack_sprites import (
    InputSprite,
    PackError,
    Packing,
    decode_name,
    main,
    pack_first_fit,
    pack_sprites,
    parse_sprite_filename,
    render_atlas,
)
from gamebase.png import OriginLocation, load_png, save_png
from gamebase.sprite import SpriteAtlas, read_atlas


def _make_pixels(width, height, seed):
    rng = np.random.default_rng(seed)
    pixels = rng.integers(1, 256, size=(height, width, 4), dtype=np.uint8)
    return pixels


def _write_sprite(path, width, height, seed):
    pixels = _make_pixels(width, height, seed)
    save_png(str(path), (width, height), pixels, OriginLocation.LOWER_LEFT)
    return pixels


def _rects_overlap(a, b):
    (ax, ay, aw, ah), (bx, by, bw, bh) = a, b
    return ax < bx + bw and bx < ax + aw and ay < by + bh and by < ay + ah


# ---- decode_name ----


def test_decode_plain_lowercase_digits_dash():
    assert decode_name("abc-123") == "abc-123"


def test_decode_double_underscore():
    assert decode_name("a__b") == "a_b"


def test_decode_uppercase():
    assert decode_name("_hello_world") == "HelloWorld"


def test_decode_hex_ascii():
    assert decode_name("_03e") == ">"
    assert decode_name("_03c") == "<"


def test_decode_hex_multibyte_roundtrip():
    for text in ["\u00e9", "\u20ac", "\U0001f600"]:
        encoded = "_0" + text.encode("utf-8").hex()
        assert decode_name(encoded) == text


@pytest.mark.parametrize(
    "bad",
    ["_", "A", "a.b", "_!", "_0", "_03", "_0zz", "_0c3", "_0c341", "_0ff", "_0e282", "_0e2ac41"],
)
def test_decode_errors(bad):
    with pytest.raises(PackError):
        decode_name(bad)


# ---- parse_sprite_filename ----


def test_parse_filename_with_directories():
    assert parse_sprite_filename("some/dir/name_3_4.png") == ("name", 3.0, 4.0)
    assert parse_sprite_filename("c:\\sprites\\_03e_1.5_2.png") == (">", 1.5, 2.0)


def test_parse_filename_without_extension():
    assert parse_sprite_filename("dot_0_7") == ("dot", 0.0, 7.0)


@pytest.mark.parametrize("bad", ["name.png", "name_3.png", "name_x_4.png", "name_3_y.png", "Name_1_1.png"])
def test_parse_filename_errors(bad):
    with pytest.raises(PackError):
        parse_sprite_filename(bad)


# ---- pack_first_fit ----


def test_pack_empty():
    packing = pack_first_fit([], 1)
    assert packing.size == (1, 1)
    assert packing.lls == []


def test_pack_single_sprite_at_margin():
    packing = pack_first_fit([(4, 4)], 1)
    assert packing.lls == [(1, 1)]
    w, h = packing.size
    assert w >= 6 and h >= 6


@pytest.mark.parametrize("margin", [0, 1, 2])
def test_pack_invariants(margin):
    sizes = [(5, 3), (2, 7), (4, 4), (1, 1), (8, 2), (3, 3), (6, 5)]
    packing = pack_first_fit(sizes, margin)
    width, height = packing.size
    assert width & (width - 1) == 0 and height & (height - 1) == 0
    assert len(packing.lls) == len(sizes)
    out_of_bounds = [
        (x, y, w, h)
        for (x, y), (w, h) in zip(packing.lls, sizes)
        if x < margin or y < margin or x + w + margin > width or y + h + margin > height
    ]
    assert out_of_bounds == []
    rects = [(x - margin, y - margin, w + 2 * margin, h + 2 * margin) for (x, y), (w, h) in zip(packing.lls, sizes)]
    sprite_rects = [(x, y, w, h) for (x, y), (w, h) in zip(packing.lls, sizes)]
    # a sprite's margin area never overlaps any other sprite
    overlapping = [
        (i, j)
        for i, a in enumerate(rects)
        for j, b in enumerate(sprite_rects)
        if i != j and _rects_overlap(a, b)
    ]
    assert overlapping == []


def test_pack_negative_margin():
    with pytest.raises(PackError):
        pack_first_fit([(1, 1)], -1)


# ---- render_atlas ----


def test_render_places_pixels():
    sprites = [
        InputSprite("a", (3, 2), _make_pixels(3, 2, 1)),
        InputSprite("b", (2, 4), _make_pixels(2, 4, 2)),
    ]
    packing = pack_first_fit([s.size for s in sprites], 1)
    data = render_atlas(sprites, packing)
    width, height = packing.size
    assert data.shape == (height, width, 4)
    mask = np.zeros((height, width), dtype=bool)
    for sprite, (x, y) in zip(sprites, packing.lls):
        w, h = sprite.size
        np.testing.assert_array_equal(data[y:y + h, x:x + w], sprite.pixels)
        mask[y:y + h, x:x + w] = True
    assert not data[~mask].any()


def test_render_mismatched_packing():
    sprites = [InputSprite("a", (1, 1), _make_pixels(1, 1, 0))]
    with pytest.raises(PackError):
        render_atlas(sprites, Packing((4, 4), []))


# ---- pack_sprites / main ----


def test_pack_sprites_roundtrip(tmp_path):
    a_pixels = _write_sprite(tmp_path / "a_1_2.png", 3, 2, 10)
    b_pixels = _write_sprite(tmp_path / "_03e_0_0.png", 2, 4, 11)
    outname = str(tmp_path / "out")

    entries = pack_sprites(outname, [str(tmp_path / "a_1_2.png"), str(tmp_path / "_03e_0_0.png")], 1)
    assert [name for name, _ in entries] == sorted(["a", ">"])
    assert read_atlas(outname + ".atlas") == dict(entries)

    atlas = SpriteAtlas(outname)
    for name, pixels, (ax, ay) in [("a", a_pixels, (1, 2)), (">", b_pixels, (0, 0))]:
        sprite = atlas.lookup(name)
        min_x, min_y = (int(v) for v in sprite.min_px)
        max_x, max_y = (int(v) for v in sprite.max_px)
        h, w = pixels.shape[:2]
        assert (max_x - min_x, max_y - min_y) == (w, h)
        assert sprite.anchor_px == (min_x + ax, min_y + h - ay)
        np.testing.assert_array_equal(atlas.pixels[min_y:max_y, min_x:max_x], pixels)

    size, _ = load_png(outname + ".png", OriginLocation.LOWER_LEFT)
    assert size == atlas.tex_size


def test_pack_sprites_duplicate_names(tmp_path):
    (tmp_path / "one").mkdir()
    (tmp_path / "two").mkdir()
    _write_sprite(tmp_path / "one" / "a_1_1.png", 2, 2, 1)
    _write_sprite(tmp_path / "two" / "a_0_0.png", 2, 2, 2)
    with pytest.raises(PackError):
        pack_sprites(str(tmp_path / "out"), [str(tmp_path / "one" / "a_1_1.png"), str(tmp_path / "two" / "a_0_0.png")])


def test_pack_sprites_rejects_png_outname(tmp_path):
    with pytest.raises(PackError):
        pack_sprites(str(tmp_path / "out.png"), [])


def test_main_usage():
    assert main([]) == 1


def test_main_success_and_failure(tmp_path):
    _write_sprite(tmp_path / "x_0_0.png", 2, 2, 5)
    outname = str(tmp_path / "atlas")
    assert main([outname, str(tmp_path / "x_0_0.png")]) == 0
    assert list(read_atlas(outname + ".atlas")) == ["x"]
    assert main([outname, str(tmp_path / "missing_0_0.png")]) == 1
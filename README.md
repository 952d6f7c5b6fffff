# gamebase

Support code for small games: sprite atlases and the tool that packs them,
PNG loading and saving, swept-sphere collision tests, a simple chunked
binary format, WAV loading, and a software audio mixer that produces 48 kHz
stereo blocks.

## Installing

```
pip install .
```

For running the tests:

```
pip install ".[test]"
pytest
```

## Packing sprites

Sprite images are named `name_ax_ay.png`, where `ax` and `ay` are the anchor
position in pixels with a top-left origin. Names are underscore-encoded:

- `__` becomes `_`
- `_a` becomes `A` (a letter after an underscore is upper-cased)
- `_0HH...` decodes a UTF-8 character from hex

```
pack-sprites out sprites/*.png
```

This writes `out.png` (the atlas image) and `out.atlas` (sprite locations).
Sprites are sorted by name, duplicate names are an error, and each sprite
keeps a one-pixel margin. The command exits with status 1 and prints the
usage text when no output name is given, or prints `ERROR: ...` when a
sprite cannot be loaded, named or packed.

The same steps are available from Python in `gamebase.pack_sprites`:
`decode_name`, `parse_sprite_filename`, `pack_first_fit`, `render_atlas`
and `pack_sprites`.

## Using an atlas

```python
from gamebase.sprite import SpriteAtlas

atlas = SpriteAtlas("out")          # reads out.png and out.atlas
arrow = atlas.lookup(">")
print(arrow.min_px, arrow.max_px, arrow.anchor_px)
```

`lookup` raises `KeyError` when the name is missing; a malformed `.atlas`
file raises `AtlasError`. The image is kept as a NumPy array in
`atlas.pixels` (row 0 at the bottom) with its size in `atlas.tex_size`.
`read_atlas` and `write_atlas` read and write `.atlas` files directly.

## Collision

```python
from gamebase.collide import collide_swept_sphere_vs_triangle

hit = collide_swept_sphere_vs_triangle(
    (0, 0, 2), (0, 0, -2), 0.5,
    (-1, -1, 0), (1, -1, 0), (0, 1, 0),
)
if hit is not None:
    print(hit.t, hit.at, hit.out)
```

Each test returns a `Collision` (`t`, `at`, `out`) or `None`. Passing
`collision_t` ignores hits at or after that time. `collide_aabb_vs_aabb`,
`collide_ray_vs_sphere` and `collide_ray_vs_cylinder` are also available.

## Audio mixing

```python
from gamebase.sound import Mixer, Sample

mixer = Mixer()
beep = Sample([0.5, -0.5] * 2000)
playing = mixer.play(beep, volume=0.8, pan=-0.5)
block = mixer.mix()   # NumPy array of shape (1024, 2), float32
playing.stop()
```

`play_3d` and `loop_3d` pan a sample by its position relative to
`mixer.listener`; `loop` repeats a sample until it is stopped. Volume, pan
and position changes ramp smoothly over the given number of seconds.

`Sample.from_file` loads `.wav` files through `gamebase.load_wav.load_wav`,
which converts any PCM or float WAV to 48 kHz float32 mono.

## Other helpers

- `gamebase.png.load_png` / `save_png` with `OriginLocation` to choose
  lower-left or upper-left row order.
- `gamebase.chunks.read_chunk` / `write_chunk` for the four-byte-magic plus
  size chunk format, with records described by `struct` format strings.
- `gamebase.data_path.data_path` to build paths next to the running program.

## What it does not do

- The mixer only fills buffers; it does not open an audio device or play
  sound. Feed the blocks from `Mixer.mix` to an output of your choice.
- Opus files are not decoded; `Sample.from_file` raises `ValueError` for them.
- Nothing here opens a window, draws, or uploads textures to a GPU.
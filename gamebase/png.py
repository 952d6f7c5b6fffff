"""Loading and saving PNG images as RGBA pixel arrays."""

from __future__ import annotations

import enum
import os
from typing import Any

import numpy as np
from PIL import Image, UnidentifiedImageError


class OriginLocation(enum.Enum):
    """Which image row comes first in a pixel array."""

    LOWER_LEFT = "lower_left"
    UPPER_LEFT = "upper_left"


class PngError(OSError):
    """Raised when a PNG file cannot be read or written."""


def _to_rgba(image: Image.Image) -> np.ndarray:
    if image.mode.startswith("I"):
        # 16-bit greyscale: keep the high byte, then expand to RGBA.
        grey = (np.asarray(image).astype(np.uint32) >> 8).clip(0, 255).astype(np.uint8)
        if image.mode.startswith("I;16") is False and grey.max(initial=0) == 0:
            grey = np.asarray(image).clip(0, 255).astype(np.uint8)
        alpha = np.full(grey.shape, 0xFF, dtype=np.uint8)
        return np.stack([grey, grey, grey, alpha], axis=-1)
    return np.array(image.convert("RGBA"), dtype=np.uint8)


def load_png(filename: str | os.PathLike, origin: OriginLocation) -> tuple[tuple[int, int], np.ndarray]:
    """Load a PNG as 8-bit RGBA.

    Returns ``((width, height), pixels)`` where ``pixels`` has shape
    ``(height, width, 4)``; with a lower-left origin row 0 is the bottom row.
    """
    try:
        handle = open(filename, "rb")
    except OSError as err:
        raise PngError(f"Failed to open PNG image file '{filename}'.") from err
    with handle:
        try:
            with Image.open(handle, formats=["PNG"]) as image:
                image.load()
                pixels = _to_rgba(image)
        except (UnidentifiedImageError, OSError, ValueError, SyntaxError) as err:
            raise PngError(f"Failed to read PNG image from '{filename}'.") from err
    if origin is OriginLocation.LOWER_LEFT:
        pixels = pixels[::-1]
    height, width = pixels.shape[:2]
    return (width, height), np.ascontiguousarray(pixels)


def save_png(
    filename: str | os.PathLike,
    size: tuple[int, int],
    data: Any,
    origin: OriginLocation,
) -> None:
    """Save RGBA pixels of the given ``(width, height)`` as a PNG file."""
    width, height = size
    pixels = np.asarray(data, dtype=np.uint8)
    if pixels.size != width * height * 4:
        raise PngError(
            f"Pixel data holds {pixels.size} bytes; expected {width * height * 4} for {width}x{height} RGBA."
        )
    pixels = pixels.reshape(height, width, 4)
    if origin is OriginLocation.LOWER_LEFT:
        pixels = pixels[::-1]
    try:
        Image.fromarray(np.ascontiguousarray(pixels), mode="RGBA").save(filename, format="PNG")
    except (OSError, ValueError) as err:
        raise PngError(f"Error writing png '{filename}'.") from err
"""Loading WAV files as 48kHz floating-point mono audio."""

from __future__ import annotations

import os
import struct
from dataclasses import dataclass
from typing import Union

import numpy as np

AUDIO_RATE = 48000

_FORMAT_PCM = 0x0001
_FORMAT_FLOAT = 0x0003
_FORMAT_EXTENSIBLE = 0xFFFE


class WavError(ValueError):
    """Raised when a WAV file cannot be loaded."""


@dataclass(frozen=True)
class _WavFormat:
    audio_format: int
    channels: int
    rate: int
    bits: int


def _parse_riff(raw: bytes, filename: str) -> tuple[_WavFormat, bytes]:
    if len(raw) < 12 or raw[:4] != b"RIFF" or raw[8:12] != b"WAVE":
        raise WavError(f"Failed to load WAV file '{filename}'; not a RIFF/WAVE file.")
    fmt = None
    data = None
    pos = 12
    while pos + 8 <= len(raw):
        chunk_id, size = struct.unpack_from("<4sI", raw, pos)
        pos += 8
        body = raw[pos:pos + size]
        if chunk_id == b"fmt ":
            if len(body) < 16:
                raise WavError(f"Failed to load WAV file '{filename}'; truncated format chunk.")
            tag, channels, rate, _byte_rate, _block_align, bits = struct.unpack_from("<HHIIHH", body)
            if tag == _FORMAT_EXTENSIBLE and len(body) >= 26:
                tag = struct.unpack_from("<H", body, 24)[0]
            fmt = _WavFormat(tag, channels, rate, bits)
        elif chunk_id == b"data":
            data = body
        pos += size + (size & 1)
    if fmt is None:
        raise WavError(f"Failed to load WAV file '{filename}'; missing format chunk.")
    if data is None:
        raise WavError(f"Failed to load WAV file '{filename}'; missing data chunk.")
    return fmt, data


def _decode_frames(fmt: _WavFormat, data: bytes, filename: str) -> np.ndarray:
    if fmt.channels == 0 or fmt.rate == 0 or fmt.bits == 0 or fmt.bits % 8 != 0:
        raise WavError(f"Failed to load WAV file '{filename}'; invalid format.")
    width = fmt.bits // 8
    frame_bytes = width * fmt.channels
    data = data[: len(data) - len(data) % frame_bytes]

    if fmt.audio_format == _FORMAT_FLOAT and fmt.bits in (32, 64):
        dtype = "<f4" if fmt.bits == 32 else "<f8"
        samples = np.frombuffer(data, dtype=dtype).astype(np.float32)
    elif fmt.audio_format == _FORMAT_PCM and fmt.bits == 8:
        samples = (np.frombuffer(data, dtype=np.uint8).astype(np.float32) - 128.0) / 128.0
    elif fmt.audio_format == _FORMAT_PCM and fmt.bits == 16:
        samples = np.frombuffer(data, dtype="<i2").astype(np.float32) / 32768.0
    elif fmt.audio_format == _FORMAT_PCM and fmt.bits == 24:
        triples = np.frombuffer(data, dtype=np.uint8).reshape(-1, 3).astype(np.int32)
        values = triples[:, 0] | (triples[:, 1] << 8) | (triples[:, 2] << 16)
        values = np.where(values >= 1 << 23, values - (1 << 24), values)
        samples = values.astype(np.float32) / float(1 << 23)
    elif fmt.audio_format == _FORMAT_PCM and fmt.bits == 32:
        samples = (np.frombuffer(data, dtype="<i4").astype(np.float64) / float(1 << 31)).astype(np.float32)
    else:
        raise WavError(
            f"Failed to load WAV file '{filename}'; unsupported format "
            f"{fmt.audio_format} with {fmt.bits} bits per sample."
        )
    return samples.reshape(-1, fmt.channels)


def _resample(samples: np.ndarray, rate: int) -> np.ndarray:
    if rate == AUDIO_RATE or len(samples) == 0:
        return samples
    out_len = len(samples) * AUDIO_RATE // rate
    positions = np.arange(out_len, dtype=np.float64) * (rate / AUDIO_RATE)
    return np.interp(positions, np.arange(len(samples)), samples).astype(np.float32)


def load_wav(filename: Union[str, os.PathLike]) -> np.ndarray:
    """Load a WAV file as 48kHz float32 mono; converts other layouts."""
    name = os.fspath(filename)
    try:
        with open(name, "rb") as handle:
            raw = handle.read()
    except OSError as err:
        raise WavError(f"Failed to load WAV file '{name}'; {err}") from err

    fmt, payload = _parse_riff(raw, name)
    frames = _decode_frames(fmt, payload, name)

    native = fmt.audio_format == _FORMAT_FLOAT and fmt.bits == 32 and fmt.channels == 1 and fmt.rate == AUDIO_RATE
    if not native:
        print(f"WAV file '{name}' didn't load as {AUDIO_RATE} Hz, float32, mono; converting.")

    mono = frames[:, 0] if fmt.channels == 1 else frames.mean(axis=1, dtype=np.float64).astype(np.float32)
    data = np.ascontiguousarray(_resample(mono, fmt.rate), dtype=np.float32)

    low = min(0.0, float(data.min(initial=0.0)))
    high = max(0.0, float(data.max(initial=0.0)))
    print(f"Range: {low}, {high}")
    return data
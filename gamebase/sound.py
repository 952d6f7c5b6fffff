"""Software audio mixing of mono samples into a stereo 48kHz stream.

A :class:`Mixer` holds the currently playing samples, a global volume and
a :class:`Listener` that pans samples played in "3D" mode. Each call to
:meth:`Mixer.mix` produces one block of ``MIX_SAMPLES`` stereo frames.
"""

from __future__ import annotations

import math
import os
import threading
from dataclasses import dataclass
from typing import Any, Optional, Sequence, Union

import numpy as np

from gamebase.load_wav import load_wav

AUDIO_RATE = 48000
MIX_SAMPLES = 1024
RAMP_STEP = MIX_SAMPLES / AUDIO_RATE
DEFAULT_RAMP = 1.0 / 60.0

_PI = 3.1415926

VectorLike = Union[Sequence[float], np.ndarray]


def _vec3(v: VectorLike) -> np.ndarray:
    return np.array(v, dtype=np.float64).reshape(3)


def _copy(value: Any) -> Any:
    return value.copy() if isinstance(value, np.ndarray) else value


class Sample:
    """Mono audio at 48kHz stored as float32."""

    def __init__(self, data: Any) -> None:
        self.data = np.array(data, dtype=np.float32).ravel()

    @classmethod
    def from_file(cls, filename: Union[str, os.PathLike]) -> "Sample":
        """Load a sample from a ``.wav`` file."""
        name = os.fspath(filename)
        if name.endswith(".wav"):
            return cls(load_wav(name))
        if name.endswith(".opus"):
            raise ValueError(f"Sample '{name}' is an Opus file; Opus decoding is not supported.")
        raise ValueError(f"Sample '{name}' doesn't end in either \".wav\" or \".opus\" -- unsure how to load.")


@dataclass(eq=False)
class Ramp:
    """A value that moves smoothly to ``target`` over ``ramp`` seconds."""

    value: Any
    target: Any = None
    ramp: float = 0.0

    def __post_init__(self) -> None:
        if self.target is None:
            self.target = _copy(self.value)

    def set(self, value: Any, ramp: float) -> None:
        """Move toward ``value`` over ``ramp`` seconds; jump if ``ramp <= 0``."""
        if ramp <= 0.0:
            self.value = _copy(value)
            self.target = _copy(value)
            self.ramp = 0.0
        else:
            self.target = _copy(value)
            self.ramp = ramp


class PlayingSample:
    """Book-keeping for a sample that is currently playing.

    A sample plays either in "2D" mode, panned by ``pan``, or in "3D"
    mode, panned by its ``position`` relative to the listener. The unused
    controls hold NaN.
    """

    def __init__(
        self,
        sample: Sample,
        volume: float = 1.0,
        pan: float = 0.0,
        *,
        position: Optional[VectorLike] = None,
        half_volume_radius: float = math.inf,
        loop: bool = False,
        lock: Optional[threading.RLock] = None,
    ) -> None:
        self.data = sample.data
        self.i = 0
        self.loop = loop
        self.stopping = False
        self.stopped = False
        self.volume = Ramp(float(volume))
        self._lock = lock if lock is not None else threading.RLock()
        if position is None:
            self.pan = Ramp(float(pan))
            self.position = Ramp(np.full(3, math.nan))
            self.half_volume_radius = Ramp(math.nan)
        else:
            self.pan = Ramp(math.nan)
            self.position = Ramp(_vec3(position))
            self.half_volume_radius = Ramp(float(half_volume_radius))

    @property
    def is_3d(self) -> bool:
        """Whether panning comes from the sample's position."""
        return math.isnan(self.pan.value)

    def set_volume(self, new_volume: float, ramp: float = DEFAULT_RAMP) -> None:
        """Change volume over ``ramp`` seconds; ignored once stopping."""
        with self._lock:
            if not self.stopping:
                self.volume.set(float(new_volume), ramp)

    def set_pan(self, new_pan: float, ramp: float = DEFAULT_RAMP) -> None:
        """Change panning (-1 hard left, 1 hard right); no effect in 3D mode."""
        if self.is_3d:
            return
        with self._lock:
            self.pan.set(float(new_pan), ramp)

    def set_position(self, new_position: VectorLike, ramp: float = DEFAULT_RAMP) -> None:
        """Move the sample; no effect in 2D mode."""
        if not self.is_3d:
            return
        with self._lock:
            self.position.set(_vec3(new_position), ramp)

    def set_half_volume_radius(self, new_radius: float, ramp: float = DEFAULT_RAMP) -> None:
        """Change the distance at which volume halves; no effect in 2D mode."""
        if not self.is_3d:
            return
        with self._lock:
            self.half_volume_radius.set(float(new_radius), ramp)

    def stop(self, ramp: float = DEFAULT_RAMP) -> None:
        """Fade out over ``ramp`` seconds, then stop playing."""
        with self._lock:
            if not (self.stopping or self.stopped):
                self.stopping = True
                self.volume.target = 0.0
                self.volume.ramp = ramp
            else:
                self.volume.ramp = min(self.volume.ramp, ramp)


class Listener:
    """Position and right-hand direction used to pan 3D samples."""

    def __init__(self, lock: Optional[threading.RLock] = None) -> None:
        self.position = Ramp(np.zeros(3))
        self.right = Ramp(np.array([1.0, 0.0, 0.0]))
        self._lock = lock if lock is not None else threading.RLock()

    def set_position(self, new_position: VectorLike, ramp: float = DEFAULT_RAMP) -> None:
        """Move the listener over ``ramp`` seconds."""
        with self._lock:
            self.position.set(_vec3(new_position), ramp)

    def set_right(self, new_right: VectorLike, ramp: float = DEFAULT_RAMP) -> None:
        """Turn the listener; ``new_right`` is normalized, zero means +x."""
        right = _vec3(new_right)
        with self._lock:
            if not np.any(right):
                self.right.set(np.array([1.0, 0.0, 0.0]), ramp)
            else:
                self.right.set(right / np.linalg.norm(right), ramp)


def compute_pan_weights(pan: float) -> tuple[float, float]:
    """Equal-power (left, right) gains for ``pan`` in [-1, 1] (clamped)."""
    pan = max(-1.0, min(1.0, pan))
    angle = 0.5 * _PI * (0.5 * (pan + 1.0))
    return math.cos(angle), math.sin(angle)


def compute_pan_from_listener_and_position(
    listener_position: VectorLike,
    listener_right: VectorLike,
    source_position: VectorLike,
    source_half_radius: float,
) -> tuple[float, float]:
    """(left, right) gains for a source heard from the listener's position."""
    to = _vec3(source_position) - _vec3(listener_position)
    distance = float(np.linalg.norm(to))
    if distance == 0.0:
        return math.sqrt(2.0), math.sqrt(2.0)
    amount = float(np.dot(_vec3(listener_right), to)) / distance
    angle = 0.5 * _PI * (0.5 * (amount + 1.0))
    attenuation = 1.0 / (1.0 + distance / source_half_radius)
    return math.cos(angle) * attenuation, math.sin(angle) * attenuation


def step_value_ramp(ramp: Ramp) -> None:
    """Advance a scalar ramp by one mix block."""
    if ramp.ramp < RAMP_STEP:
        ramp.value = ramp.target
        ramp.ramp = 0.0
    else:
        ramp.value += (RAMP_STEP / ramp.ramp) * (ramp.target - ramp.value)
        ramp.ramp -= RAMP_STEP


def step_position_ramp(ramp: Ramp) -> None:
    """Advance a position ramp by one mix block, moving in a straight line."""
    if ramp.ramp < RAMP_STEP:
        ramp.value = _copy(ramp.target)
        ramp.ramp = 0.0
    else:
        fraction = RAMP_STEP / ramp.ramp
        ramp.value = ramp.value + fraction * (ramp.target - ramp.value)
        ramp.ramp -= RAMP_STEP


def step_direction_ramp(ramp: Ramp) -> None:
    """Advance a unit-direction ramp by one mix block, rotating toward the target."""
    if ramp.ramp < RAMP_STEP:
        ramp.value = _copy(ramp.target)
        ramp.ramp = 0.0
        return
    value = _vec3(ramp.value)
    target = _vec3(ramp.target)
    norm = np.cross(value, target)
    if not np.any(norm):
        if target[0] <= target[1] and target[0] <= target[2]:
            norm = np.array([1.0, 0.0, 0.0])
        elif target[1] <= target[2]:
            norm = np.array([0.0, 1.0, 0.0])
        else:
            norm = np.array([0.0, 0.0, 1.0])
        norm = norm - target * float(np.dot(target, norm))
    with np.errstate(all="ignore"):
        norm = norm / np.linalg.norm(norm)
    perp = np.cross(norm, target)
    angle = math.acos(max(-1.0, min(1.0, float(np.dot(value, target)))))
    angle *= (ramp.ramp - RAMP_STEP) / ramp.ramp
    ramp.value = target * math.cos(angle) + perp * math.sin(angle)
    ramp.ramp -= RAMP_STEP


class Mixer:
    """Mixes playing samples into blocks of stereo float32 audio."""

    def __init__(self) -> None:
        self.lock = threading.RLock()
        self.volume = Ramp(1.0)
        self.listener = Listener(self.lock)
        self.playing_samples: list[PlayingSample] = []

    def _start(self, playing: PlayingSample) -> PlayingSample:
        with self.lock:
            self.playing_samples.append(playing)
        return playing

    def play(self, sample: Sample, volume: float = 1.0, pan: float = 0.0) -> PlayingSample:
        """Play ``sample`` once, panned in 2D."""
        return self._start(PlayingSample(sample, volume, pan, loop=False, lock=self.lock))

    def play_3d(
        self,
        sample: Sample,
        volume: float,
        position: VectorLike,
        half_volume_radius: float = math.inf,
    ) -> PlayingSample:
        """Play ``sample`` once, panned by its position relative to the listener."""
        return self._start(
            PlayingSample(
                sample, volume, position=position, half_volume_radius=half_volume_radius, loop=False, lock=self.lock
            )
        )

    def loop(self, sample: Sample, volume: float = 1.0, pan: float = 0.0) -> PlayingSample:
        """Play ``sample`` repeatedly until stopped, panned in 2D."""
        return self._start(PlayingSample(sample, volume, pan, loop=True, lock=self.lock))

    def loop_3d(
        self,
        sample: Sample,
        volume: float,
        position: VectorLike,
        half_volume_radius: float = math.inf,
    ) -> PlayingSample:
        """Play ``sample`` repeatedly until stopped, panned in 3D."""
        return self._start(
            PlayingSample(
                sample, volume, position=position, half_volume_radius=half_volume_radius, loop=True, lock=self.lock
            )
        )

    def stop_all_samples(self) -> None:
        """Fade out every playing sample."""
        with self.lock:
            for playing in self.playing_samples:
                playing.stop()

    def set_volume(self, new_volume: float, ramp: float = DEFAULT_RAMP) -> None:
        """Change the global volume over ``ramp`` seconds."""
        with self.lock:
            self.volume.set(float(new_volume), ramp)

    def mix(self) -> np.ndarray:
        """Produce the next block: an array of shape ``(MIX_SAMPLES, 2)``."""
        with self.lock:
            buffer = np.zeros((MIX_SAMPLES, 2), dtype=np.float32)

            start_volume = self.volume.value
            start_position = _vec3(self.listener.position.value)
            start_right = _vec3(self.listener.right.value)

            step_value_ramp(self.volume)
            step_position_ramp(self.listener.position)
            step_direction_ramp(self.listener.right)

            end_volume = self.volume.value
            end_position = _vec3(self.listener.position.value)
            end_right = _vec3(self.listener.right.value)

            still_playing = []
            for playing in self.playing_samples:
                if self._mix_one(
                    playing, buffer, (start_volume, start_position, start_right), (end_volume, end_position, end_right)
                ):
                    still_playing.append(playing)
                else:
                    playing.stopped = True
            self.playing_samples[:] = still_playing
            return buffer

    @staticmethod
    def _gains(playing: PlayingSample, position: np.ndarray, right: np.ndarray) -> tuple[float, float]:
        if playing.is_3d:
            return compute_pan_from_listener_and_position(
                position, right, playing.position.value, playing.half_volume_radius.value
            )
        return compute_pan_weights(playing.pan.value)

    def _mix_one(
        self,
        playing: PlayingSample,
        buffer: np.ndarray,
        start: tuple[float, np.ndarray, np.ndarray],
        end: tuple[float, np.ndarray, np.ndarray],
    ) -> bool:
        size = len(playing.data)
        if size == 0 or playing.i >= size:
            return False

        start_volume, start_position, start_right = start
        end_volume, end_position, end_right = end

        start_l, start_r = self._gains(playing, start_position, start_right)
        if playing.is_3d:
            step_position_ramp(playing.position)
            step_value_ramp(playing.half_volume_radius)
        else:
            step_value_ramp(playing.pan)
        gain = start_volume * playing.volume.value
        start_l *= gain
        start_r *= gain

        step_value_ramp(playing.volume)

        end_l, end_r = self._gains(playing, end_position, end_right)
        gain = end_volume * playing.volume.value
        end_l *= gain
        end_r *= gain

        step_l = (end_l - start_l) / MIX_SAMPLES
        step_r = (end_r - start_r) / MIX_SAMPLES

        if playing.loop:
            count = MIX_SAMPLES
            indices = (playing.i + np.arange(count)) % size
            playing.i = (playing.i + count) % size
        else:
            count = min(MIX_SAMPLES, size - playing.i)
            indices = np.arange(playing.i, playing.i + count)
            playing.i += count

        steps = np.arange(count, dtype=np.float64)
        values = playing.data[indices].astype(np.float64)
        buffer[:count, 0] += ((start_l + steps * step_l) * values).astype(np.float32)
        buffer[:count, 1] += ((start_r + steps * step_r) * values).astype(np.float32)

        finished = playing.i >= size or (playing.stopping and playing.volume.value == 0.0)
        return not finished
"""
Core data models for Echo Reverse.

AudioBuffer is the one mutable model: its channel arrays are permuted in
place by the reverser and read by the encoder and the playback path.
Everything else is an immutable value or an enum.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from fractions import Fraction
from typing import List, Sequence

import numpy as np


class CaptureState(Enum):
    """Lifecycle of a capture session."""

    IDLE = "idle"
    RECORDING = "recording"
    DECODING = "decoding"
    READY = "ready"
    FAILED = "failed"


class PlaybackState(Enum):
    """Playback has no paused state."""

    IDLE = "idle"
    PLAYING = "playing"


class SnapshotSource(Enum):
    """Signal path a visualization snapshot was drawn from."""

    LIVE = "live"
    PLAYBACK = "playback"
    NONE = "none"


class AudioBuffer:
    """
    Decoded multi-channel PCM audio.

    Each channel is a 1-D float32 array; all channels share one length.
    The sample rate and channel count are fixed at construction.

    Aliasing: ``reverse()`` permutes the channel arrays of the buffer it is
    given, so every holder of this object (and of ``channels[i]``) observes
    the change. Copy with ``copy()`` first if the original order is needed.
    """

    __slots__ = ("_sample_rate", "_channels")

    def __init__(self, sample_rate: int, channels: Sequence[np.ndarray]):
        if isinstance(sample_rate, bool) or int(sample_rate) != sample_rate or sample_rate <= 0:
            raise ValueError(f"sample_rate must be a positive integer, got {sample_rate!r}")
        if len(channels) == 0:
            raise ValueError("AudioBuffer needs at least one channel")

        arrays: List[np.ndarray] = []
        for channel in channels:
            array = np.ascontiguousarray(channel, dtype=np.float32)
            if array.ndim != 1:
                raise ValueError(f"channel data must be 1-D, got shape {array.shape}")
            arrays.append(array)

        lengths = {len(array) for array in arrays}
        if len(lengths) != 1:
            raise ValueError(f"all channels must have the same length, got {sorted(lengths)}")

        self._sample_rate = int(sample_rate)
        self._channels = arrays

    @classmethod
    def from_interleaved(cls, frames: np.ndarray, sample_rate: int) -> "AudioBuffer":
        """
        Build a buffer from a (frames, channels) array, as returned by soundfile.

        A 1-D array is treated as a single channel.
        """
        frames = np.asarray(frames)
        if frames.ndim == 1:
            return cls(sample_rate, [frames.copy()])
        if frames.ndim != 2:
            raise ValueError(f"expected (frames, channels) array, got shape {frames.shape}")
        return cls(sample_rate, [frames[:, index].copy() for index in range(frames.shape[1])])

    @property
    def sample_rate(self) -> int:
        return self._sample_rate

    @property
    def channels(self) -> List[np.ndarray]:
        """Channel arrays, by index. The list itself is a copy; the arrays are not."""
        return list(self._channels)

    @property
    def channel_count(self) -> int:
        return len(self._channels)

    @property
    def frame_count(self) -> int:
        return len(self._channels[0])

    @property
    def duration(self) -> Fraction:
        """Exact duration in seconds (frame_count / sample_rate)."""
        return Fraction(self.frame_count, self._sample_rate)

    @property
    def duration_seconds(self) -> float:
        return float(self.duration)

    def channel(self, index: int) -> np.ndarray:
        return self._channels[index]

    def interleaved(self) -> np.ndarray:
        """Return a (frames, channels) copy of the samples."""
        return np.stack(self._channels, axis=1)

    def copy(self) -> "AudioBuffer":
        return AudioBuffer(self._sample_rate, [channel.copy() for channel in self._channels])

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AudioBuffer):
            return NotImplemented
        return (
            self._sample_rate == other._sample_rate
            and self.channel_count == other.channel_count
            and all(
                np.array_equal(mine, theirs)
                for mine, theirs in zip(self._channels, other._channels)
            )
        )

    __hash__ = None  # mutable

    def __repr__(self) -> str:
        return (
            f"AudioBuffer(sample_rate={self._sample_rate}, "
            f"channels={self.channel_count}, frames={self.frame_count})"
        )


@dataclass(frozen=True)
class VisualizationSnapshot:
    """Normalized amplitudes for one display frame, tagged with their source."""

    values: np.ndarray  # float32, in [-1, 1]
    source: SnapshotSource

    @classmethod
    def empty(cls, size: int) -> "VisualizationSnapshot":
        return cls(values=np.zeros(size, dtype=np.float32), source=SnapshotSource.NONE)

    @property
    def is_active(self) -> bool:
        return self.source is not SnapshotSource.NONE

    def __len__(self) -> int:
        return len(self.values)


@dataclass(frozen=True)
class AudioState:
    """Public state observed by the control surface."""

    is_recording: bool = False
    is_playing: bool = False
    has_audio: bool = False
    duration: float = 0.0

"""
Amplitude snapshots for the waveform display.

The Analyser is written from the audio backend thread (capture or
playback callbacks) and read from the render loop, so it guards its
ring buffer with a lock.
"""

import logging
import threading
from typing import Optional

import numpy as np

from echo_reverse.core.models import (
    CaptureState,
    PlaybackState,
    SnapshotSource,
    VisualizationSnapshot,
)

logger = logging.getLogger(__name__)

DEFAULT_FFT_SIZE: int = 2048


class Analyser:
    """Keeps the most recent ``size`` mono samples that passed through it."""

    def __init__(self, size: int = DEFAULT_FFT_SIZE):
        if size <= 0:
            raise ValueError(f"analyser size must be positive, got {size}")
        self.size = size
        self._ring = np.zeros(size, dtype=np.float32)
        self._write_pos = 0
        self._lock = threading.Lock()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def write(self, block: np.ndarray) -> None:
        """Append a block of samples; (frames, channels) blocks are downmixed."""
        if self._closed:
            return
        samples = np.asarray(block, dtype=np.float32)
        if samples.ndim > 1:
            samples = samples.mean(axis=1)
        if samples.size == 0:
            return
        if samples.size >= self.size:
            samples = samples[-self.size:]

        with self._lock:
            end = self._write_pos + samples.size
            if end <= self.size:
                self._ring[self._write_pos:end] = samples
            else:
                split = self.size - self._write_pos
                self._ring[self._write_pos:] = samples[:split]
                self._ring[:end - self.size] = samples[split:]
            self._write_pos = end % self.size

    def time_domain(self) -> np.ndarray:
        """Return the last ``size`` samples, oldest first."""
        with self._lock:
            return np.concatenate((self._ring[self._write_pos:], self._ring[:self._write_pos]))

    def reset(self) -> None:
        with self._lock:
            self._ring[:] = 0.0
            self._write_pos = 0

    def close(self) -> None:
        self._closed = True


class VisualizationFeed:
    """
    Produces snapshots from the live input while recording and from the
    playback signal while playing; NONE otherwise.

    ``capture`` and ``playback`` only need a ``state`` attribute.
    """

    def __init__(self, analyser: Optional[Analyser], capture, playback):
        self._analyser = analyser
        self._capture = capture
        self._playback = playback

    @property
    def size(self) -> int:
        return self._analyser.size if self._analyser is not None else DEFAULT_FFT_SIZE

    @property
    def available(self) -> bool:
        return self._analyser is not None and not self._analyser.closed

    def current_source(self) -> SnapshotSource:
        if self._capture is not None and self._capture.state is CaptureState.RECORDING:
            return SnapshotSource.LIVE
        if self._playback is not None and self._playback.state is PlaybackState.PLAYING:
            return SnapshotSource.PLAYBACK
        return SnapshotSource.NONE

    def snapshot(self) -> VisualizationSnapshot:
        source = self.current_source()
        if source is SnapshotSource.NONE or not self.available:
            return VisualizationSnapshot.empty(self.size)

        values = np.clip(self._analyser.time_domain(), -1.0, 1.0)
        return VisualizationSnapshot(values=values, source=source)

"""
Playback scheduling with at most one active output stream.
"""

import logging
import time
from typing import Callable, Optional

import numpy as np

from echo_reverse.core.models import AudioBuffer, PlaybackState
from echo_reverse.core.protocols import FrameScheduler, OutputSink, OutputStream
from echo_reverse.core.scheduler import FrameLoop

logger = logging.getLogger(__name__)


class PlaybackController:
    """
    Plays buffers through an OutputSink and tracks elapsed time.

    The elapsed-time loop runs on the FrameScheduler only while PLAYING;
    it stops itself when elapsed reaches the buffer duration. The sink's
    finished signal (or stop()) returns the controller to IDLE.
    """

    def __init__(
        self,
        sink: OutputSink,
        scheduler: FrameScheduler,
        on_block: Optional[Callable[[np.ndarray], None]] = None,
        clock: Callable[[], float] = time.monotonic,
        on_change: Optional[Callable[[PlaybackState], None]] = None,
    ):
        self._sink = sink
        self._on_block = on_block
        self._clock = clock
        self.on_change = on_change

        self._state = PlaybackState.IDLE
        self._stream: Optional[OutputStream] = None
        self._buffer: Optional[AudioBuffer] = None
        self._start_time = 0.0
        self._elapsed = 0.0
        self._generation = 0
        self._tracker = FrameLoop(scheduler, self._track, name="playback-progress")

    @property
    def state(self) -> PlaybackState:
        return self._state

    @property
    def is_playing(self) -> bool:
        return self._state is PlaybackState.PLAYING

    @property
    def elapsed(self) -> float:
        """Seconds played so far; 0.0 when idle."""
        return self._elapsed

    @property
    def is_tracking(self) -> bool:
        return self._tracker.is_running

    def play(self, buffer: Optional[AudioBuffer]) -> bool:
        """
        Start playing ``buffer``, stopping any active playback first.

        Returns:
            True if playback started, False if there was no buffer

        Raises:
            DeviceUnavailableError: The sink could not open an output stream
        """
        if buffer is None:
            logger.debug("Play requested with no audio")
            return False

        if self._stream is not None or self._state is PlaybackState.PLAYING:
            self._halt()

        self._generation += 1
        generation = self._generation
        try:
            self._stream = self._sink.start(
                buffer,
                self._forward_block,
                lambda: self._on_stream_finished(generation),
            )
        except Exception:
            logger.exception("Could not start playback")
            if self._state is not PlaybackState.IDLE:
                self._set_state(PlaybackState.IDLE)
            raise
        self._buffer = buffer
        self._start_time = self._clock()
        self._elapsed = 0.0
        self._set_state(PlaybackState.PLAYING)
        self._tracker.start()

        logger.info("Playback started (%.2fs)", buffer.duration_seconds)
        return True

    def stop(self) -> None:
        """Stop playback. A no-op when idle."""
        if self._stream is None and self._state is PlaybackState.IDLE:
            return
        self._halt()
        logger.info("Playback stopped")
        self._set_state(PlaybackState.IDLE)

    def _halt(self) -> None:
        """Stop the stream and the tracking loop and reset elapsed time."""
        # Bump first so the stream's own finished signal is recognized as stale
        self._generation += 1
        stream, self._stream = self._stream, None
        self._tracker.cancel()
        if stream is not None:
            stream.stop()
        self._buffer = None
        self._elapsed = 0.0

    def _on_stream_finished(self, generation: int) -> None:
        if generation != self._generation or self._state is not PlaybackState.PLAYING:
            return
        self._halt()
        logger.info("Playback finished")
        self._set_state(PlaybackState.IDLE)

    def _track(self) -> bool:
        if self._state is not PlaybackState.PLAYING or self._buffer is None:
            return False

        duration = self._buffer.duration_seconds
        self._elapsed = min(self._clock() - self._start_time, duration)
        return self._elapsed < duration

    def _forward_block(self, block: np.ndarray) -> None:
        if self._on_block is not None:
            self._on_block(block)

    def _set_state(self, state: PlaybackState) -> None:
        self._state = state
        if self.on_change is not None:
            self.on_change(state)

"""
Protocols for the collaborators the core drives but does not implement.

Uses structural subtyping: the sounddevice backends in ``devices.py`` and
the fakes in the test suite satisfy these without inheriting from them.
"""

from typing import Any, Callable, Protocol, runtime_checkable

import numpy as np

from echo_reverse.core.models import AudioBuffer

ChunkCallback = Callable[[bytes], None]
BlockCallback = Callable[[np.ndarray], None]


@runtime_checkable
class Decoder(Protocol):
    """Turns a compressed byte stream into PCM, raising DecodeError on failure."""

    def decode(self, data: bytes) -> AudioBuffer:
        ...


@runtime_checkable
class CaptureHandle(Protocol):
    """An open, exclusively held input device."""

    def close(self) -> None:
        """Stop capturing, emit any final chunk and release the device. Idempotent."""
        ...


@runtime_checkable
class InputDevice(Protocol):
    """Microphone acquisition and raw compressed-chunk collection."""

    def open(self, on_chunk: ChunkCallback, on_block: BlockCallback) -> CaptureHandle:
        """
        Acquire the device and start capturing.

        ``on_chunk`` receives compressed bytes; ``on_block`` receives raw
        float32 blocks (frames, channels) for live visualization.

        Raises:
            DeviceUnavailableError: Permission denied or no device
        """
        ...


@runtime_checkable
class OutputStream(Protocol):
    """A playing output stream bound to one buffer."""

    def stop(self) -> None:
        """Halt output and release the stream. Must not raise if already stopped."""
        ...


@runtime_checkable
class OutputSink(Protocol):
    """Creates output streams for buffers."""

    def start(
        self,
        buffer: AudioBuffer,
        on_block: BlockCallback,
        on_finished: Callable[[], Any],
    ) -> OutputStream:
        """
        Start playing ``buffer`` from its first frame.

        ``on_finished`` is invoked on the scheduling thread once the stream
        ends, whether by reaching the end of the buffer or by ``stop()``.

        Raises:
            DeviceUnavailableError: No output device
        """
        ...


@runtime_checkable
class FrameScheduler(Protocol):
    """One callback per display refresh, with explicit cancellation."""

    def request_frame(self, callback: Callable[[], Any]) -> Any:
        """Schedule ``callback`` for the next frame and return a cancel handle."""
        ...

    def cancel(self, handle: Any) -> None:
        ...

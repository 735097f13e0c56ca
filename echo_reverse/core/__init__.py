"""
Core module: audio buffer lifecycle, transforms, capture and playback.

Uses lazy imports for the controller and for modules that load
PortAudio (sounddevice) at import time.
"""

from echo_reverse.core.models import (
    AudioBuffer,
    AudioState,
    CaptureState,
    PlaybackState,
    SnapshotSource,
    VisualizationSnapshot,
)
from echo_reverse.core.buffer_store import BufferStore
from echo_reverse.core.reverser import reverse
from echo_reverse.core.wav_encoder import encode, write_wav

__all__ = [
    # Models and transforms (always available)
    "AudioBuffer",
    "AudioState",
    "CaptureState",
    "PlaybackState",
    "SnapshotSource",
    "VisualizationSnapshot",
    "BufferStore",
    "reverse",
    "encode",
    "write_wav",
    # Lazy loaded
    "SoundFileDecoder",
    "CaptureSession",
    "PlaybackController",
    "AsyncioFrameScheduler",
    "FrameLoop",
    "AudioController",
    "create_audio_controller",
    "AudioDeviceContext",
]


def __getattr__(name: str):
    """Lazy load modules with heavy or native dependencies."""
    if name == "SoundFileDecoder":
        from echo_reverse.core.decoder import SoundFileDecoder
        return SoundFileDecoder
    elif name == "CaptureSession":
        from echo_reverse.core.capture import CaptureSession
        return CaptureSession
    elif name == "PlaybackController":
        from echo_reverse.core.playback import PlaybackController
        return PlaybackController
    elif name in ("AsyncioFrameScheduler", "FrameLoop"):
        from echo_reverse.core.scheduler import AsyncioFrameScheduler, FrameLoop
        return AsyncioFrameScheduler if name == "AsyncioFrameScheduler" else FrameLoop
    elif name in ("AudioController", "create_audio_controller"):
        from echo_reverse.core.controller import AudioController, create_audio_controller
        return AudioController if name == "AudioController" else create_audio_controller
    elif name == "AudioDeviceContext":
        from echo_reverse.core.devices import AudioDeviceContext
        return AudioDeviceContext
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")

"""
sounddevice backends and the process-wide audio device context.

Stream callbacks run on the PortAudio thread. Raw blocks go straight to
the thread-safe Analyser; completion signals are marshalled back onto the
event loop through the context's dispatcher.
"""

from __future__ import annotations

import asyncio
import io
import logging
import threading
from typing import Any, Callable, Dict, List, Optional

import numpy as np
import sounddevice as sd
import soundfile as sf

from echo_reverse.core.decoder import SoundFileDecoder
from echo_reverse.core.models import AudioBuffer
from echo_reverse.core.protocols import BlockCallback, ChunkCallback
from echo_reverse.core.scheduler import AsyncioFrameScheduler
from echo_reverse.utils.errors import AudioContextError, DeviceUnavailableError
from echo_reverse.visualization.feed import Analyser

logger = logging.getLogger(__name__)

Dispatch = Callable[[Callable[[], Any]], None]


# ----------------------------------------------------------------------
# Capture


class SoundDeviceCapture:
    """Owns one open sounddevice InputStream and the blocks it produced."""

    def __init__(
        self,
        sample_rate: int,
        chunk_format: str,
        on_chunk: ChunkCallback,
        on_block: BlockCallback,
    ):
        self.sample_rate = sample_rate
        self.chunk_format = chunk_format
        self._on_chunk = on_chunk
        self._on_block = on_block
        self._blocks: List[np.ndarray] = []
        self._stream: Optional[sd.InputStream] = None
        self._last_status: Optional[str] = None
        self._lock = threading.Lock()

    def attach(self, stream: sd.InputStream) -> None:
        self._stream = stream

    def callback(self, indata, frames, time_info, status) -> None:
        if status:
            status_str = str(status)
            if status_str != self._last_status:
                logger.warning("Input callback status: %s", status_str)
                self._last_status = status_str

        block = indata.copy()
        with self._lock:
            self._blocks.append(block)
        self._on_block(block)

    def close(self) -> None:
        stream, self._stream = self._stream, None
        if stream is None:
            return
        try:
            stream.stop()
        finally:
            stream.close()
        logger.info("Input stream closed")

        with self._lock:
            blocks, self._blocks = self._blocks, []
        if blocks:
            self._on_chunk(self._compress(np.concatenate(blocks)))

    def _compress(self, frames: np.ndarray) -> bytes:
        out = io.BytesIO()
        sf.write(out, frames, self.sample_rate, format=self.chunk_format)
        logger.debug("Compressed %d frames into %d %s bytes", len(frames), out.tell(), self.chunk_format)
        return out.getvalue()


class SoundDeviceInput:
    """
    InputDevice backed by ``sounddevice.InputStream``.

    Like a media recorder started without a timeslice, the whole capture
    is delivered as one compressed chunk when the handle is closed.
    """

    def __init__(
        self,
        sample_rate: int = 48000,
        channels: int = 1,
        block_size: int = 0,
        device: Optional[Any] = None,
        chunk_format: str = "FLAC",
    ):
        self.sample_rate = sample_rate
        self.channels = channels
        self.block_size = block_size
        self.device = device
        self.chunk_format = chunk_format

    def open(self, on_chunk: ChunkCallback, on_block: BlockCallback) -> SoundDeviceCapture:
        capture = SoundDeviceCapture(self.sample_rate, self.chunk_format, on_chunk, on_block)
        try:
            stream = sd.InputStream(
                device=self.device,
                channels=self.channels,
                samplerate=self.sample_rate,
                blocksize=self.block_size,
                dtype="float32",
                callback=capture.callback,
            )
        except (sd.PortAudioError, ValueError) as e:
            raise DeviceUnavailableError(
                f"Input device unavailable: {e}",
                device=self.device,
                original_error=e
            ) from e

        capture.attach(stream)
        try:
            stream.start()
        except sd.PortAudioError as e:
            capture.close()
            raise DeviceUnavailableError(
                f"Could not start input stream: {e}",
                device=self.device,
                original_error=e
            ) from e

        logger.info(
            "Input stream started (%d Hz, %d ch, device=%s)",
            self.sample_rate, self.channels, self.device
        )
        return capture


# ----------------------------------------------------------------------
# Playback


class SoundDevicePlayback:
    """One OutputStream reading frames straight out of a borrowed buffer."""

    def __init__(
        self,
        buffer: AudioBuffer,
        on_block: BlockCallback,
        on_finished: Callable[[], Any],
        dispatch: Dispatch,
    ):
        self._channels = buffer.channels
        self._total = buffer.frame_count
        self._position = 0
        self._on_block = on_block
        self._on_finished = on_finished
        self._dispatch = dispatch
        self._stream: Optional[sd.OutputStream] = None

    def attach(self, stream: sd.OutputStream) -> None:
        self._stream = stream

    def callback(self, outdata, frames, time_info, status) -> None:
        start = self._position
        end = min(start + frames, self._total)
        count = end - start

        for index, channel in enumerate(self._channels):
            outdata[:count, index] = channel[start:end]
        outdata[count:] = 0
        self._position = end

        if count:
            self._on_block(outdata[:count].copy())
        if end >= self._total:
            raise sd.CallbackStop

    def finished(self) -> None:
        self._dispatch(self._on_finished)

    def stop(self) -> None:
        stream, self._stream = self._stream, None
        if stream is None:
            return
        # sounddevice ignores PortAudio errors from an already-stopped stream
        try:
            stream.stop()
        finally:
            stream.close()
        logger.debug("Output stream closed")


class SoundDeviceOutput:
    """OutputSink backed by ``sounddevice.OutputStream``."""

    def __init__(self, dispatch: Dispatch, device: Optional[Any] = None):
        self._dispatch = dispatch
        self.device = device

    def start(
        self,
        buffer: AudioBuffer,
        on_block: BlockCallback,
        on_finished: Callable[[], Any],
    ) -> SoundDevicePlayback:
        playback = SoundDevicePlayback(buffer, on_block, on_finished, self._dispatch)
        try:
            stream = sd.OutputStream(
                device=self.device,
                channels=buffer.channel_count,
                samplerate=buffer.sample_rate,
                dtype="float32",
                callback=playback.callback,
                finished_callback=playback.finished,
            )
            playback.attach(stream)
            stream.start()
        except (sd.PortAudioError, ValueError) as e:
            playback.stop()
            raise DeviceUnavailableError(
                f"Output device unavailable: {e}",
                device=self.device,
                original_error=e
            ) from e
        return playback


# ----------------------------------------------------------------------
# Context


class AudioDeviceContext:
    """
    Process-wide audio context.

    ``init()`` builds the device backends, analyser, decoder and frame
    scheduler once; ``shutdown()`` tears them down exactly once. A context
    cannot be re-initialized after shutdown.
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        config = config or {}
        self._audio_config = config.get("audio", {})
        self._viz_config = config.get("visualization", {})
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._phase = "created"

        self.analyser: Optional[Analyser] = None
        self.input: Optional[SoundDeviceInput] = None
        self.output: Optional[SoundDeviceOutput] = None
        self.decoder: Optional[SoundFileDecoder] = None
        self.scheduler: Optional[AsyncioFrameScheduler] = None

    @property
    def is_active(self) -> bool:
        return self._phase == "active"

    def init(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> "AudioDeviceContext":
        """Create the devices, bound to ``loop`` or else the running loop."""
        if self._phase != "created":
            raise AudioContextError(f"Audio context cannot be initialized when {self._phase}")

        self._loop = loop or asyncio.get_running_loop()
        self.analyser = Analyser(self._viz_config.get("fft_size", 2048))
        self.input = SoundDeviceInput(
            sample_rate=self._audio_config.get("sample_rate", 48000),
            channels=self._audio_config.get("channels", 1),
            block_size=self._audio_config.get("block_size", 0),
            device=self._audio_config.get("input_device"),
            chunk_format=self._audio_config.get("chunk_format", "FLAC"),
        )
        self.output = SoundDeviceOutput(
            dispatch=self.dispatch,
            device=self._audio_config.get("output_device"),
        )
        self.decoder = SoundFileDecoder()
        self.scheduler = AsyncioFrameScheduler(
            self._loop, self._viz_config.get("frame_rate", 60)
        )
        self._phase = "active"
        self._log_devices()
        return self

    def shutdown(self) -> None:
        if self._phase != "active":
            return
        self._phase = "closed"
        if self.analyser is not None:
            self.analyser.close()
        logger.info("Audio context shut down")

    def dispatch(self, callback: Callable[[], Any]) -> None:
        """Run ``callback`` on the event loop; safe from any thread."""
        loop = self._loop
        if loop is None or loop.is_closed() or self._phase != "active":
            return
        loop.call_soon_threadsafe(callback)

    def _log_devices(self) -> None:
        try:
            default_input = sd.query_devices(kind="input")
            default_output = sd.query_devices(kind="output")
        except (sd.PortAudioError, ValueError) as e:
            logger.warning("Could not query audio devices: %s", e)
            return
        logger.info(
            "Audio devices: input=%s, output=%s",
            default_input.get("name"), default_output.get("name")
        )

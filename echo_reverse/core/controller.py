"""
AudioController: the command/query surface the UI talks to.

Four commands (toggle_record, reverse, toggle_play, download) and one
observable state (AudioState). Listeners registered with subscribe() are
called with the new state whenever it changes.
"""

import asyncio
import logging
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

from echo_reverse.core.buffer_store import BufferStore
from echo_reverse.core.capture import CaptureSession
from echo_reverse.core.models import AudioState, CaptureState, PlaybackState
from echo_reverse.core.playback import PlaybackController
from echo_reverse.core.protocols import FrameScheduler
from echo_reverse.core.reverser import reverse as reverse_buffer
from echo_reverse.core.wav_encoder import write_wav
from echo_reverse.utils.errors import PreconditionError
from echo_reverse.visualization.feed import VisualizationFeed

logger = logging.getLogger(__name__)

DEFAULT_DOWNLOAD_NAME = "reversed-audio.wav"

StateListener = Callable[[AudioState], None]


class AudioController:
    """
    Coordinates capture, the buffer store, reversal, export and playback.

    Recording and playback are mutually exclusive: each toggle is rejected
    while the other is active. Commands that need audio are no-ops when
    there is none.
    """

    def __init__(
        self,
        store: BufferStore,
        capture: CaptureSession,
        playback: PlaybackController,
        feed: VisualizationFeed,
        download_dir: Union[str, Path] = ".",
        download_name: str = DEFAULT_DOWNLOAD_NAME,
        context: Optional[Any] = None,
        scheduler: Optional[FrameScheduler] = None,
    ):
        self.store = store
        self.capture = capture
        self.playback = playback
        self.feed = feed
        self.scheduler = scheduler
        self.download_dir = Path(download_dir)
        self.download_name = download_name
        self._context = context
        self._listeners: List[StateListener] = []
        self._state = self._compute_state()
        self._closed = False

        # Natural playback completion and decode results arrive asynchronously
        capture.on_change = self._on_component_change
        playback.on_change = self._on_component_change

    # ------------------------------------------------------------------
    # Queries

    @property
    def state(self) -> AudioState:
        return self._state

    @property
    def elapsed(self) -> float:
        """Current playback position in seconds."""
        return self.playback.elapsed

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register a state listener. Returns a function that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # ------------------------------------------------------------------
    # Commands

    async def toggle_record(self) -> bool:
        """
        Start recording when idle, stop (and decode) when recording.

        Returns:
            True if the command took effect

        Raises:
            DeviceUnavailableError: Input device could not be acquired
            DecodeError: The recording could not be decoded
        """
        if self.capture.is_recording:
            try:
                buffer = await self.capture.stop()
            finally:
                self.refresh()
            return buffer is not None

        if self.playback.is_playing:
            logger.warning("Record ignored: playback in progress")
            return False

        try:
            return await self.capture.start()
        finally:
            self.refresh()

    def reverse(self) -> bool:
        """Reverse the current audio in place."""
        if self.capture.is_recording or self.playback.is_playing:
            logger.warning("Reverse ignored: audio device busy")
            return False
        try:
            buffer = self.store.require("reverse")
        except PreconditionError as e:
            logger.debug("%s", e)
            return False
        changed = reverse_buffer(buffer)
        self.refresh()
        return changed

    def toggle_play(self) -> bool:
        """
        Start playback when idle, stop it when playing.

        Raises:
            DeviceUnavailableError: Output device could not be opened
        """
        if self.playback.is_playing:
            self.playback.stop()
            self.refresh()
            return True

        if self.capture.is_recording:
            logger.warning("Play ignored: recording in progress")
            return False

        try:
            buffer = self.store.require("play")
        except PreconditionError as e:
            logger.debug("%s", e)
            return False

        try:
            return self.playback.play(buffer)
        finally:
            self.refresh()

    def download(self, path: Optional[Union[str, Path]] = None) -> Optional[Path]:
        """
        Write the current audio as a WAV file.

        Returns:
            The path written, or None when there is no audio
        """
        try:
            buffer = self.store.require("download")
        except PreconditionError as e:
            logger.debug("%s", e)
            return None

        target = Path(path) if path is not None else self.download_dir / self.download_name
        return write_wav(buffer, target)

    def shutdown(self) -> None:
        """Release every device and tear the audio context down. Idempotent."""
        if self._closed:
            return
        self._closed = True
        self.playback.stop()
        self.capture.abort()
        if self._context is not None:
            self._context.shutdown()
        self.refresh()
        self._listeners.clear()

    # ------------------------------------------------------------------
    # State propagation

    def refresh(self) -> None:
        """Recompute the public state and notify listeners if it changed."""
        new_state = self._compute_state()
        if new_state == self._state:
            return
        self._state = new_state
        for listener in list(self._listeners):
            listener(new_state)

    def _on_component_change(self, _component_state: Any) -> None:
        self.refresh()

    def _compute_state(self) -> AudioState:
        return AudioState(
            is_recording=self.capture.state is CaptureState.RECORDING,
            is_playing=self.playback.state is PlaybackState.PLAYING,
            has_audio=self.store.has_audio,
            duration=self.store.duration,
        )


def create_audio_controller(
    config: Optional[Dict[str, Any]] = None,
    loop: Optional[asyncio.AbstractEventLoop] = None,
) -> AudioController:
    """
    Factory function building a controller on real audio devices.

    Initializes a process-wide AudioDeviceContext; the controller's
    shutdown() tears it down.
    """
    from echo_reverse.core.devices import AudioDeviceContext

    config = config or {}
    export = config.get("export", {})
    context = AudioDeviceContext(config).init(loop)

    store = BufferStore()
    capture = CaptureSession(
        context.input,
        context.decoder,
        store,
        on_block=context.analyser.write,
    )
    playback = PlaybackController(
        context.output,
        context.scheduler,
        on_block=context.analyser.write,
    )
    feed = VisualizationFeed(context.analyser, capture, playback)

    return AudioController(
        store,
        capture,
        playback,
        feed,
        download_dir=export.get("directory", "."),
        download_name=export.get("filename", DEFAULT_DOWNLOAD_NAME),
        context=context,
        scheduler=context.scheduler,
    )

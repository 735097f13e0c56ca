"""
Capture session: device acquisition, chunk collection and decode handoff.

State machine:

    IDLE --start()--> RECORDING --stop()--> DECODING --ok--> READY
                                                     --err--> FAILED
    READY/FAILED --start()--> RECORDING

The device handle is always closed before decoding begins, whatever the
decode outcome.
"""

import asyncio
import logging
from concurrent.futures import Executor
from typing import Callable, List, Optional

import numpy as np

from echo_reverse.core.buffer_store import BufferStore
from echo_reverse.core.models import AudioBuffer, CaptureState
from echo_reverse.core.protocols import CaptureHandle, Decoder, InputDevice
from echo_reverse.utils.errors import DecodeError, DeviceUnavailableError, EchoReverseError

logger = logging.getLogger(__name__)


class CaptureSession:
    """
    Records from an InputDevice and installs the decoded result in a BufferStore.

    A failed recording never disturbs the buffer already in the store.
    """

    def __init__(
        self,
        device: InputDevice,
        decoder: Decoder,
        store: BufferStore,
        on_block: Optional[Callable[[np.ndarray], None]] = None,
        executor: Optional[Executor] = None,
        on_change: Optional[Callable[[CaptureState], None]] = None,
    ):
        """
        Args:
            device: Input device to acquire on start()
            decoder: Decoder for the concatenated chunks
            store: Store receiving successfully decoded buffers
            on_block: Receives raw blocks while recording (visualization)
            executor: Executor for decoding (loop default if None)
            on_change: Called with the new state after every transition
        """
        self._device = device
        self._decoder = decoder
        self._store = store
        self._on_block = on_block
        self._executor = executor
        self.on_change = on_change

        self._state = CaptureState.IDLE
        self._handle: Optional[CaptureHandle] = None
        self._chunks: List[bytes] = []
        self._generation = 0
        self.last_error: Optional[Exception] = None

    @property
    def state(self) -> CaptureState:
        return self._state

    @property
    def is_recording(self) -> bool:
        return self._state is CaptureState.RECORDING

    async def start(self) -> bool:
        """
        Acquire the input device and begin collecting chunks.

        Returns:
            True if recording started, False if already recording

        Raises:
            DeviceUnavailableError: Device could not be acquired
        """
        if self._state is CaptureState.RECORDING:
            logger.warning("Start ignored: already recording")
            return False

        self._generation += 1
        self._chunks = []
        self.last_error = None

        try:
            self._handle = self._device.open(self._collect_chunk, self._forward_block)
        except DeviceUnavailableError as e:
            self._handle = None
            self.last_error = e
            logger.error("Could not start recording: %s", e)
            self._set_state(CaptureState.FAILED)
            raise

        logger.info("Recording started")
        self._set_state(CaptureState.RECORDING)
        return True

    async def stop(self) -> Optional[AudioBuffer]:
        """
        Stop recording, release the device and decode what was captured.

        Returns:
            The new buffer, or None if not recording or if a newer
            recording started while this one was decoding

        Raises:
            DecodeError: Captured audio could not be released or decoded.
                         Unexpected device and decoder errors are wrapped.
        """
        if self._state is not CaptureState.RECORDING:
            logger.debug("Stop ignored: not recording")
            return None

        generation = self._generation
        data = b""
        try:
            self._release_device()
            data = b"".join(self._chunks)
            self._chunks = []
            self._set_state(CaptureState.DECODING)
            logger.info("Recording stopped, decoding %d bytes", len(data))

            loop = asyncio.get_running_loop()
            buffer = await loop.run_in_executor(self._executor, self._decoder.decode, data)
        except Exception as e:
            error = e
            if not isinstance(e, EchoReverseError):
                error = DecodeError(
                    f"Failed to finish recording: {e}",
                    byte_count=len(data),
                    original_error=e
                )
            if generation == self._generation:
                self._chunks = []
                self.last_error = error
                self._set_state(CaptureState.FAILED)
            logger.error("Recording failed: %s", error)
            if error is e:
                raise
            raise error from e

        if generation != self._generation:
            logger.info("Discarding decode result superseded by a newer recording")
            return None

        self._store.replace(buffer)
        self._set_state(CaptureState.READY)
        return buffer

    def abort(self) -> None:
        """Release the device without decoding. Used on shutdown."""
        if self._state is not CaptureState.RECORDING:
            return
        self._generation += 1
        self._release_device()
        self._chunks = []
        logger.info("Recording aborted")
        self._set_state(CaptureState.IDLE)

    def _release_device(self) -> None:
        handle, self._handle = self._handle, None
        if handle is not None:
            # close() flushes the final chunk into self._chunks
            handle.close()

    def _collect_chunk(self, chunk: bytes) -> None:
        if chunk:
            self._chunks.append(bytes(chunk))

    def _forward_block(self, block: np.ndarray) -> None:
        if self._on_block is not None:
            self._on_block(block)

    def _set_state(self, state: CaptureState) -> None:
        self._state = state
        if self.on_change is not None:
            self.on_change(state)

"""Single owner of the current decoded audio."""

import logging
from typing import Callable, List, Optional

from echo_reverse.core.models import AudioBuffer
from echo_reverse.utils.errors import PreconditionError

logger = logging.getLogger(__name__)


class BufferStore:
    """
    Holds zero or one AudioBuffer.

    The buffer is only ever replaced wholesale via ``replace()``; listeners
    are told whenever that happens.
    """

    def __init__(self, buffer: Optional[AudioBuffer] = None):
        self._buffer = buffer
        self._listeners: List[Callable[[Optional[AudioBuffer]], None]] = []

    @property
    def current(self) -> Optional[AudioBuffer]:
        return self._buffer

    @property
    def has_audio(self) -> bool:
        return self._buffer is not None

    @property
    def duration(self) -> float:
        """Duration in seconds of the current buffer, 0.0 when empty."""
        if self._buffer is None:
            return 0.0
        return self._buffer.duration_seconds

    def require(self, operation: str) -> AudioBuffer:
        """
        Return the current buffer.

        Raises:
            PreconditionError: If no audio is loaded
        """
        if self._buffer is None:
            raise PreconditionError(operation)
        return self._buffer

    def replace(self, buffer: AudioBuffer) -> Optional[AudioBuffer]:
        """Install a new buffer and return the one it superseded."""
        previous = self._buffer
        self._buffer = buffer
        logger.info(
            "Audio buffer replaced: %d ch, %d Hz, %.2fs",
            buffer.channel_count, buffer.sample_rate, buffer.duration_seconds
        )
        self._notify()
        return previous

    def clear(self) -> None:
        if self._buffer is None:
            return
        self._buffer = None
        self._notify()

    def subscribe(self, listener: Callable[[Optional[AudioBuffer]], None]) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self._buffer)

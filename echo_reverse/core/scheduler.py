"""
Cooperative per-frame scheduling.

AsyncioFrameScheduler drives callbacks from the event loop at a fixed
frame rate; FrameLoop turns a tick function into a cancellable loop.
"""

import asyncio
import logging
from typing import Any, Callable, Optional

from echo_reverse.core.protocols import FrameScheduler

logger = logging.getLogger(__name__)

DEFAULT_FRAME_RATE: float = 60.0


class AsyncioFrameScheduler:
    """
    FrameScheduler backed by ``loop.call_later``.

    Without an explicit loop it must be created inside a running loop.
    """

    def __init__(
        self,
        loop: Optional[asyncio.AbstractEventLoop] = None,
        frame_rate: float = DEFAULT_FRAME_RATE
    ):
        if frame_rate <= 0:
            raise ValueError(f"frame_rate must be positive, got {frame_rate}")
        self._loop = loop or asyncio.get_running_loop()
        self.frame_interval = 1.0 / frame_rate

    def request_frame(self, callback: Callable[[], Any]) -> asyncio.TimerHandle:
        return self._loop.call_later(self.frame_interval, callback)

    def cancel(self, handle: asyncio.TimerHandle) -> None:
        handle.cancel()


class FrameLoop:
    """
    Runs ``tick`` once per frame until cancelled or until ``tick`` returns False.

    At most one frame request is outstanding at a time, and ``cancel()``
    withdraws it, so no tick runs after cancellation.
    """

    def __init__(self, scheduler: FrameScheduler, tick: Callable[[], Optional[bool]], name: str = "loop"):
        self._scheduler = scheduler
        self._tick = tick
        self._name = name
        self._handle: Any = None
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._handle = self._scheduler.request_frame(self._run)
        logger.debug("Frame loop '%s' started", self._name)

    def cancel(self) -> None:
        if not self._running and self._handle is None:
            return
        self._running = False
        if self._handle is not None:
            self._scheduler.cancel(self._handle)
            self._handle = None
        logger.debug("Frame loop '%s' cancelled", self._name)

    def _run(self) -> None:
        self._handle = None
        if not self._running:
            return

        keep_going = self._tick()

        # tick may have cancelled or restarted us
        if not self._running or self._handle is not None:
            return
        if keep_going is False:
            self._running = False
            logger.debug("Frame loop '%s' finished", self._name)
            return
        self._handle = self._scheduler.request_frame(self._run)

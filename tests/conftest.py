"""Shared fixtures and device fakes for the Echo Reverse tests."""

import io
from typing import Any, Callable, List, Optional

import numpy as np
import pytest
import soundfile as sf

from echo_reverse.core.buffer_store import BufferStore
from echo_reverse.core.capture import CaptureSession
from echo_reverse.core.controller import AudioController
from echo_reverse.core.decoder import SoundFileDecoder
from echo_reverse.core.models import AudioBuffer
from echo_reverse.core.playback import PlaybackController
from echo_reverse.visualization.feed import Analyser, VisualizationFeed


def _make_buffer(channels: List[List[float]], sample_rate: int = 8000) -> AudioBuffer:
    return AudioBuffer(sample_rate, [np.array(ch, dtype=np.float32) for ch in channels])


def _flac_bytes(frames: np.ndarray, sample_rate: int = 8000) -> bytes:
    out = io.BytesIO()
    sf.write(out, frames, sample_rate, format="FLAC")
    return out.getvalue()


# ---------------------------------------------------------------------------
# Input device
# ---------------------------------------------------------------------------


class FakeCaptureHandle:
    def __init__(self, device: "FakeInputDevice", on_chunk, on_block):
        self.device = device
        self.on_chunk = on_chunk
        self.on_block = on_block
        self.closed = False

    def feed(self, block: np.ndarray) -> None:
        self.on_block(block)

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self.device.open_handles -= 1
        if self.device.final_chunk:
            self.on_chunk(self.device.final_chunk)


class FakeInputDevice:
    """Emits ``final_chunk`` when the capture handle is closed."""

    def __init__(self, final_chunk: bytes = b"", fail: Optional[Exception] = None):
        self.final_chunk = final_chunk
        self.fail = fail
        self.handles: List[FakeCaptureHandle] = []
        self.open_handles = 0

    @property
    def last_handle(self) -> FakeCaptureHandle:
        return self.handles[-1]

    def open(self, on_chunk, on_block) -> FakeCaptureHandle:
        if self.fail is not None:
            raise self.fail
        handle = FakeCaptureHandle(self, on_chunk, on_block)
        self.handles.append(handle)
        self.open_handles += 1
        return handle


# ---------------------------------------------------------------------------
# Output sink
# ---------------------------------------------------------------------------


class FakeOutputStream:
    def __init__(self, sink: "FakeOutputSink", buffer, on_block, on_finished):
        self.sink = sink
        self.buffer = buffer
        self.on_block = on_block
        self.on_finished = on_finished
        self.stopped = False
        self.stop_calls = 0

    def stop(self) -> None:
        self.stop_calls += 1
        if self.stopped:
            return
        self.stopped = True
        self.sink.active -= 1
        self.sink.events.append(("stop", self))
        # Real backends report completion on explicit stop too
        self.on_finished()

    def finish(self) -> None:
        """Simulate the buffer playing to its end."""
        self.on_finished()


class FakeOutputSink:
    def __init__(self, fail: Optional[Exception] = None):
        self.fail = fail
        self.streams: List[FakeOutputStream] = []
        self.events: List[Any] = []
        self.active = 0
        self.max_active = 0

    @property
    def last_stream(self) -> FakeOutputStream:
        return self.streams[-1]

    def start(self, buffer, on_block, on_finished) -> FakeOutputStream:
        if self.fail is not None:
            raise self.fail
        stream = FakeOutputStream(self, buffer, on_block, on_finished)
        self.streams.append(stream)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        self.events.append(("start", stream))
        return stream


# ---------------------------------------------------------------------------
# Scheduling
# ---------------------------------------------------------------------------


class ManualFrameScheduler:
    """Frame scheduler advanced explicitly by the test."""

    def __init__(self):
        self._pending = {}
        self._next_id = 0
        self.cancelled = 0

    @property
    def pending(self) -> int:
        return len(self._pending)

    def request_frame(self, callback: Callable[[], Any]) -> int:
        self._next_id += 1
        self._pending[self._next_id] = callback
        return self._next_id

    def cancel(self, handle: int) -> None:
        if self._pending.pop(handle, None) is not None:
            self.cancelled += 1

    def advance(self, frames: int = 1) -> None:
        for _ in range(frames):
            due, self._pending = self._pending, {}
            for callback in due.values():
                callback()


class FakeClock:
    def __init__(self, now: float = 100.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def mono_buffer():
    """The 4-sample 8 kHz mono buffer used throughout the examples."""
    return _make_buffer([[0.1, 0.2, 0.3, 0.4]])


@pytest.fixture
def stereo_buffer():
    return _make_buffer([[0.0, 0.5, -0.5, 1.0], [0.25, -0.25, 0.75, -1.0]], sample_rate=44100)


@pytest.fixture
def recorded_chunk():
    """One second of a 440 Hz tone, FLAC-compressed at 8 kHz."""
    t = np.arange(8000) / 8000.0
    tone = (0.5 * np.sin(2 * np.pi * 440 * t)).astype(np.float32)
    return _flac_bytes(tone, 8000)


@pytest.fixture
def scheduler():
    return ManualFrameScheduler()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sink():
    return FakeOutputSink()


@pytest.fixture
def analyser():
    return Analyser(size=64)


@pytest.fixture
def rig(recorded_chunk, scheduler, clock, sink, analyser, tmp_path):
    """A full AudioController wired to fakes."""

    class Rig:
        pass

    r = Rig()
    r.device = FakeInputDevice(final_chunk=recorded_chunk)
    r.sink = sink
    r.scheduler = scheduler
    r.clock = clock
    r.analyser = analyser
    r.store = BufferStore()
    r.capture = CaptureSession(r.device, SoundFileDecoder(), r.store, on_block=analyser.write)
    r.playback = PlaybackController(sink, scheduler, on_block=analyser.write, clock=clock)
    r.feed = VisualizationFeed(analyser, r.capture, r.playback)
    r.controller = AudioController(
        r.store, r.capture, r.playback, r.feed,
        download_dir=tmp_path, scheduler=scheduler,
    )
    return r


@pytest.fixture
def make_buffer():
    return _make_buffer


@pytest.fixture
def flac_bytes():
    return _flac_bytes


@pytest.fixture
def input_device(recorded_chunk):
    return FakeInputDevice(final_chunk=recorded_chunk)

"""Tests for the core data models and BufferStore."""

from fractions import Fraction

import numpy as np
import pytest

from echo_reverse.core.buffer_store import BufferStore
from echo_reverse.core.models import (
    AudioBuffer,
    AudioState,
    SnapshotSource,
    VisualizationSnapshot,
)
from echo_reverse.utils.errors import PreconditionError


class TestAudioBuffer:
    def test_basic_properties(self, mono_buffer):
        assert mono_buffer.sample_rate == 8000
        assert mono_buffer.channel_count == 1
        assert mono_buffer.frame_count == 4
        assert mono_buffer.channel(0).dtype == np.float32

    def test_duration_is_exact(self):
        buffer = AudioBuffer(44100, [np.zeros(44100, dtype=np.float32)])
        assert buffer.duration == Fraction(1)
        assert buffer.duration_seconds == 1.0

        third = AudioBuffer(3, [np.zeros(1, dtype=np.float32)])
        assert third.duration == Fraction(1, 3)

    def test_rejects_non_positive_sample_rate(self):
        with pytest.raises(ValueError):
            AudioBuffer(0, [np.zeros(4)])
        with pytest.raises(ValueError):
            AudioBuffer(-8000, [np.zeros(4)])

    def test_rejects_fractional_sample_rate(self):
        with pytest.raises(ValueError):
            AudioBuffer(44100.5, [np.zeros(4)])

    def test_rejects_no_channels(self):
        with pytest.raises(ValueError):
            AudioBuffer(8000, [])

    def test_rejects_unequal_channel_lengths(self):
        with pytest.raises(ValueError, match="same length"):
            AudioBuffer(8000, [np.zeros(4), np.zeros(5)])

    def test_rejects_multidimensional_channel(self):
        with pytest.raises(ValueError):
            AudioBuffer(8000, [np.zeros((2, 2))])

    def test_from_interleaved(self):
        frames = np.array([[0.1, -0.1], [0.2, -0.2], [0.3, -0.3]], dtype=np.float32)
        buffer = AudioBuffer.from_interleaved(frames, 16000)

        assert buffer.channel_count == 2
        assert buffer.frame_count == 3
        np.testing.assert_array_equal(buffer.channel(1), frames[:, 1])
        np.testing.assert_array_equal(buffer.interleaved(), frames)

    def test_from_interleaved_mono_1d(self):
        buffer = AudioBuffer.from_interleaved(np.array([0.5, 0.25]), 8000)
        assert buffer.channel_count == 1
        assert buffer.frame_count == 2

    def test_channels_list_is_a_copy_but_arrays_are_shared(self, stereo_buffer):
        channels = stereo_buffer.channels
        channels.pop()
        assert stereo_buffer.channel_count == 2
        assert stereo_buffer.channels[0] is stereo_buffer.channel(0)

    def test_copy_is_independent(self, mono_buffer):
        clone = mono_buffer.copy()
        assert clone == mono_buffer
        clone.channel(0)[0] = 0.9
        assert clone != mono_buffer

    def test_unhashable(self, mono_buffer):
        with pytest.raises(TypeError):
            hash(mono_buffer)

    def test_zero_frame_buffer(self):
        buffer = AudioBuffer(8000, [np.zeros(0, dtype=np.float32)])
        assert buffer.frame_count == 0
        assert buffer.duration == 0


class TestVisualizationSnapshot:
    def test_empty(self):
        snapshot = VisualizationSnapshot.empty(16)
        assert len(snapshot) == 16
        assert snapshot.source is SnapshotSource.NONE
        assert not snapshot.is_active
        assert not snapshot.values.any()

    def test_active_sources(self):
        values = np.zeros(4, dtype=np.float32)
        assert VisualizationSnapshot(values, SnapshotSource.LIVE).is_active
        assert VisualizationSnapshot(values, SnapshotSource.PLAYBACK).is_active


class TestAudioState:
    def test_defaults(self):
        state = AudioState()
        assert state == AudioState(False, False, False, 0.0)

    def test_value_equality(self):
        assert AudioState(True, False, True, 1.5) == AudioState(True, False, True, 1.5)
        assert AudioState(True, False, True, 1.5) != AudioState(False, False, True, 1.5)


class TestBufferStore:
    def test_starts_empty(self):
        store = BufferStore()
        assert store.current is None
        assert not store.has_audio
        assert store.duration == 0.0

    def test_require_without_audio(self):
        store = BufferStore()
        with pytest.raises(PreconditionError) as exc_info:
            store.require("play")
        assert exc_info.value.operation == "play"
        assert "no audio" in str(exc_info.value)

    def test_replace_returns_previous(self, mono_buffer, stereo_buffer):
        store = BufferStore(mono_buffer)
        previous = store.replace(stereo_buffer)
        assert previous is mono_buffer
        assert store.current is stereo_buffer
        assert store.require("reverse") is stereo_buffer

    def test_duration(self, mono_buffer):
        store = BufferStore(mono_buffer)
        assert store.duration == pytest.approx(0.0005)

    def test_listeners_notified(self, mono_buffer):
        store = BufferStore()
        seen = []
        unsubscribe = store.subscribe(seen.append)

        store.replace(mono_buffer)
        store.clear()
        store.clear()  # already empty
        unsubscribe()
        store.replace(mono_buffer)

        assert seen == [mono_buffer, None]

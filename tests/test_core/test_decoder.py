"""Tests for SoundFileDecoder."""

import numpy as np
import pytest

from echo_reverse.core.decoder import SoundFileDecoder
from echo_reverse.core.protocols import Decoder
from echo_reverse.core.wav_encoder import encode
from echo_reverse.utils.errors import DecodeError


class TestSoundFileDecoder:
    def test_satisfies_protocol(self):
        assert isinstance(SoundFileDecoder(), Decoder)

    def test_decodes_flac(self, recorded_chunk):
        buffer = SoundFileDecoder().decode(recorded_chunk)
        assert buffer.sample_rate == 8000
        assert buffer.channel_count == 1
        assert buffer.frame_count == 8000
        assert np.max(np.abs(buffer.channel(0))) == pytest.approx(0.5, abs=1e-3)

    def test_decodes_wav(self, stereo_buffer):
        buffer = SoundFileDecoder().decode(encode(stereo_buffer))
        assert buffer.sample_rate == 44100
        assert buffer.channel_count == 2
        assert buffer.frame_count == 4

    def test_empty_bytes(self):
        with pytest.raises(DecodeError) as exc_info:
            SoundFileDecoder().decode(b"")
        assert exc_info.value.byte_count == 0

    def test_garbage_bytes(self):
        data = b"definitely not audio" * 10
        with pytest.raises(DecodeError) as exc_info:
            SoundFileDecoder().decode(data)
        assert exc_info.value.byte_count == len(data)
        assert exc_info.value.original_error is not None

    def test_header_only_has_no_frames(self, make_buffer):
        with pytest.raises(DecodeError):
            SoundFileDecoder().decode(encode(make_buffer([[]])))

"""
Decoding of captured compressed audio into an AudioBuffer.
"""

import io
import logging

import numpy as np
import soundfile as sf

from echo_reverse.core.models import AudioBuffer
from echo_reverse.utils.errors import DecodeError

logger = logging.getLogger(__name__)


class SoundFileDecoder:
    """
    Decodes any container libsndfile understands (FLAC, OGG/Vorbis, WAV, ...).

    Stateless; safe to call from an executor thread.
    """

    def decode(self, data: bytes) -> AudioBuffer:
        """
        Decode a complete compressed byte stream.

        Raises:
            DecodeError: If the bytes are empty, malformed, unsupported,
                         or contain no frames
        """
        if not data:
            raise DecodeError("No audio data captured", byte_count=0)

        try:
            frames, sample_rate = sf.read(io.BytesIO(data), dtype="float32", always_2d=True)
        except (RuntimeError, TypeError, ValueError) as e:
            # soundfile.LibsndfileError subclasses RuntimeError
            raise DecodeError(
                f"Failed to decode captured audio: {e}",
                byte_count=len(data),
                original_error=e
            ) from e

        if frames.shape[0] == 0:
            raise DecodeError("Captured audio contains no frames", byte_count=len(data))

        buffer = AudioBuffer.from_interleaved(np.asarray(frames, dtype=np.float32), sample_rate)
        logger.info(
            "Decoded %d bytes: %d ch, %d Hz, %d frames",
            len(data), buffer.channel_count, buffer.sample_rate, buffer.frame_count
        )
        return buffer

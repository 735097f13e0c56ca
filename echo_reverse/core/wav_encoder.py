"""
Canonical 16-bit PCM WAV encoder.

Produces a 44-byte RIFF/WAVE header followed by interleaved little-endian
int16 samples. Output is byte-exact: the same buffer always encodes to the
same bytes.
"""

import logging
import struct
from pathlib import Path
from typing import Union

import numpy as np

from echo_reverse.core.models import AudioBuffer
from echo_reverse.utils.errors import EncodeError

logger = logging.getLogger(__name__)

BITS_PER_SAMPLE: int = 16
BYTES_PER_SAMPLE: int = BITS_PER_SAMPLE // 8
HEADER_SIZE: int = 44
PCM_FORMAT: int = 1
FULL_SCALE: int = 32768
INT16_MIN: int = -32768
INT16_MAX: int = 32767
MAX_DATA_BYTES: int = 0xFFFFFFFF - 36


def to_int16(samples: np.ndarray) -> np.ndarray:
    """
    Convert float samples to int16.

    Samples are clamped to [-1, 1], scaled by 32768, rounded half away
    from zero and saturated to the int16 range, so +1.0 maps to 32767.
    """
    scaled = np.clip(np.asarray(samples, dtype=np.float64), -1.0, 1.0) * FULL_SCALE
    # NaN would survive clip; treat it as silence
    scaled = np.nan_to_num(scaled, nan=0.0)
    rounded = np.sign(scaled) * np.floor(np.abs(scaled) + 0.5)
    return np.clip(rounded, INT16_MIN, INT16_MAX).astype('<i2')


def build_header(num_channels: int, sample_rate: int, data_bytes: int) -> bytes:
    """Build the 44-byte RIFF, fmt and data chunk headers."""
    byte_rate = sample_rate * num_channels * BYTES_PER_SAMPLE
    block_align = num_channels * BYTES_PER_SAMPLE

    return b"".join([
        b"RIFF",
        struct.pack("<I", 36 + data_bytes),
        b"WAVE",
        b"fmt ",
        struct.pack("<I", 16),  # fmt chunk size
        struct.pack("<H", PCM_FORMAT),
        struct.pack("<H", num_channels),
        struct.pack("<I", sample_rate),
        struct.pack("<I", byte_rate),
        struct.pack("<H", block_align),
        struct.pack("<H", BITS_PER_SAMPLE),
        b"data",
        struct.pack("<I", data_bytes),
    ])


def encode(buffer: AudioBuffer) -> bytes:
    """
    Serialize ``buffer`` into a WAV byte stream.

    The buffer is only read.

    Raises:
        EncodeError: If the sample data does not fit a 32-bit RIFF size
    """
    num_channels = buffer.channel_count
    data_bytes = buffer.frame_count * num_channels * BYTES_PER_SAMPLE

    if data_bytes > MAX_DATA_BYTES:
        raise EncodeError(
            f"Audio too long for a WAV container: {data_bytes} data bytes",
            data_bytes=data_bytes
        )
    if num_channels > 0xFFFF or buffer.sample_rate * num_channels * BYTES_PER_SAMPLE > 0xFFFFFFFF:
        raise EncodeError(
            f"Unsupported WAV layout: {num_channels} ch at {buffer.sample_rate} Hz"
        )

    # (frames, channels) row-major is frame-major, channel-minor interleaving
    pcm = to_int16(buffer.interleaved())
    payload = pcm.tobytes()

    logger.debug(
        "Encoded WAV: %d ch, %d Hz, %d frames, %d bytes",
        num_channels, buffer.sample_rate, buffer.frame_count, HEADER_SIZE + len(payload)
    )
    return build_header(num_channels, buffer.sample_rate, data_bytes) + payload


def write_wav(buffer: AudioBuffer, path: Union[str, Path]) -> Path:
    """Encode ``buffer`` and write it to ``path``. Returns the path written."""
    path = Path(path)
    data = encode(buffer)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)
    logger.info("Wrote %s (%d bytes)", path, len(data))
    return path

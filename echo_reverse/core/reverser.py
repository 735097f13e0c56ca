"""Time reversal of an AudioBuffer, in place."""

import logging
from typing import Optional

from echo_reverse.core.models import AudioBuffer

logger = logging.getLogger(__name__)


def reverse(buffer: Optional[AudioBuffer]) -> bool:
    """
    Reverse the sample order of every channel of ``buffer`` in place.

    The buffer object and its channel arrays keep their identity; only
    their contents are permuted, so reversing twice restores the original
    bit for bit.

    Args:
        buffer: Buffer to mutate, or None

    Returns:
        True if the buffer was reversed, False if there was no audio
    """
    if buffer is None:
        logger.debug("Reverse requested with no audio")
        return False

    for index in range(buffer.channel_count):
        samples = buffer.channel(index)
        # numpy resolves the overlapping view before writing back
        samples[:] = samples[::-1]

    logger.info("Reversed %d channel(s), %d frames", buffer.channel_count, buffer.frame_count)
    return True

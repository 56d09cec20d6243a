"""
ETA parsing for torrent clients.

Transmission reports ``eta`` as a signed 64-bit integer. Negative values are
sentinels (-1 unknown/infinite, -2 still fetching metadata), and some builds
emit milliseconds instead of seconds.
"""

import logging
from datetime import timedelta
from typing import Optional

logger = logging.getLogger(__name__)

# Largest value an unsigned 32-bit seconds counter can hold. Anything above it
# is taken to be milliseconds. This is a heuristic, not a protocol guarantee.
MAX_PLAUSIBLE_SECONDS = 2**32 - 1


def parse_eta(raw) -> Optional[timedelta]:
    """
    Interpret a raw ETA value as the remaining time.

    Returns None for negative sentinels, unparsable input, and values too large
    for a timedelta.
    """
    try:
        value = int(raw)
    except (TypeError, ValueError, OverflowError):
        logger.debug(f"Ignoring unparsable eta: {raw!r}")
        return None

    if value < 0:
        return None

    try:
        if value <= MAX_PLAUSIBLE_SECONDS:
            return timedelta(seconds=value)
        return timedelta(milliseconds=value)
    except OverflowError:
        logger.debug(f"Ignoring out of range eta: {value}")
        return None

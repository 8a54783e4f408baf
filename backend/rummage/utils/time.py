"""Time helpers."""

from __future__ import annotations

import time


def now_ms() -> int:
    """Return current timestamp in milliseconds."""
    return int(time.time() * 1000)


def to_ms(seconds: float) -> int:
    """Convert a POSIX timestamp in seconds to epoch millis."""
    return int(seconds * 1000)

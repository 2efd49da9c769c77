"""Time helpers."""

from __future__ import annotations

import time


def now_millis() -> int:
    """Return the current UNIX timestamp in milliseconds."""
    return int(time.time() * 1000)

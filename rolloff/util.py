from __future__ import annotations

import time


def now_s() -> float:
    """Monotonic clock in seconds."""
    return time.monotonic()


def sleep_s(seconds: float) -> None:
    if seconds > 0:
        time.sleep(seconds)

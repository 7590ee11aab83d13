from __future__ import annotations

from typing import Callable
import time


def linear_backoff(attempt: int) -> float:
    return float(attempt)


def retry_with_backoff(
    check: Callable[[int], bool],
    *,
    attempts: int,
    delay: Callable[[int], float] = linear_backoff,
    sleep: Callable[[float], None] = time.sleep,
) -> bool:
    """Call ``check`` until it returns true or ``attempts`` calls have been made.

    ``check`` receives the 1-based attempt number. ``delay(attempt)`` seconds are
    slept between attempts, never after the last one. Exceptions raised by
    ``check`` propagate immediately.
    """
    if attempts <= 0:
        raise ValueError("attempts must be positive")

    for attempt in range(1, attempts + 1):
        if check(attempt):
            return True
        if attempt < attempts:
            sleep(delay(attempt))
    return False

from __future__ import annotations

import logging
import time
from typing import Callable

logger = logging.getLogger(__name__)


def wait_until(
    condition: Callable[[], bool],
    *,
    timeout: float,
    interval: float = 1.0,
    description: str = "condition",
    sleeper: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> bool:
    """Poll ``condition`` until it holds or ``timeout`` seconds pass.

    Returns whether the condition was observed; a timeout is not an error.
    The condition is always checked at least once.
    """

    deadline = clock() + max(timeout, 0.0)
    while True:
        if condition():
            return True
        if clock() >= deadline:
            logger.warning("Timed out after %.1fs waiting for %s", timeout, description)
            return False
        sleeper(max(interval, 0.0))


def settle(seconds: float, *, reason: str, sleeper: Callable[[float], None] = time.sleep) -> None:
    """Fixed delay where the OS offers nothing to poll. Approximation only."""
    if seconds <= 0:
        return
    logger.info("Waiting %.1fs (%s)", seconds, reason)
    sleeper(seconds)

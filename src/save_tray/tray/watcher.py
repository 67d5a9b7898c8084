"""Bounded-retry watcher for rendering that completes asynchronously.

A tray can only be attached once the host has rendered the element it hangs
off.  Instead of observing the host indefinitely, :func:`watch_until` polls a
readiness callback a fixed number of times and gives up quietly.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

logger = logging.getLogger(__name__)


async def watch_until(
    apply: Callable[[], bool], *, attempts: int = 20, interval: float = 0.05
) -> bool:
    """
    Call ``apply`` until it returns True or ``attempts`` run out.

    Args:
        apply: Tries the work once; returns True when it succeeded.
        attempts: Maximum number of calls (at least one call is made).
        interval: Seconds to sleep between calls.

    Returns:
        True if ``apply`` succeeded, False if the budget was exhausted.
    """
    for attempt in range(max(attempts, 1)):
        if apply():
            return True
        if attempt < attempts - 1:
            await asyncio.sleep(interval)
    logger.debug("Gave up after %d attempts", max(attempts, 1))
    return False

"""Bounded polling for operations without a completion signal."""

import time
from typing import Callable

from .exceptions import TransportTimeoutError


def wait_until(
    condition: Callable[[], bool],
    timeout: float,
    interval: float,
    description: str = "operation",
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> None:
    """Poll condition at a fixed interval until it holds or the bound expires.

    Args:
        condition: Checked once per interval
        timeout: Seconds before giving up
        interval: Seconds between checks
        description: Used in the timeout message

    Raises:
        TransportTimeoutError: If the condition never held within timeout
    """
    deadline = clock() + timeout
    while True:
        if condition():
            return
        if clock() >= deadline:
            raise TransportTimeoutError(
                f"Timed out after {timeout:.0f}s waiting for {description}"
            )
        sleep(interval)

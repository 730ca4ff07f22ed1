"""Bounded polling for readiness checks that may settle late."""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import TypeVar

from .config import STATUS_CHECK_RETRIES_MAX, STATUS_CHECK_RETRY_SECONDS

T = TypeVar("T")


def poll_until(
    check: Callable[[], T | None],
    *,
    retries: int = STATUS_CHECK_RETRIES_MAX,
    interval: float = STATUS_CHECK_RETRY_SECONDS,
    default: T | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> T | None:
    """Call ``check`` until it returns something other than None.

    The check runs at most ``retries + 1`` times with ``interval`` seconds
    between attempts. When it never answers, ``default`` is returned.

    Nothing in this package polls; the helper is exported for embedding
    front ends that wait for a page element or a remote status to settle.
    """
    for attempt in range(retries + 1):
        value = check()
        if value is not None:
            return value
        if attempt < retries:
            sleep(interval)
    return default

"""Retry helpers without external dependencies."""

from __future__ import annotations

import asyncio
import functools
import random
from collections.abc import Awaitable, Callable

RETRY_EXCEPTIONS: tuple[type[BaseException], ...] = (OSError, asyncio.TimeoutError)
ATTEMPTS = 3


def retry_async(
    func: Callable[..., Awaitable],
    *,
    exceptions: tuple[type[BaseException], ...] = RETRY_EXCEPTIONS,
    base_delay: float = 0.5,
):
    @functools.wraps(func)
    async def wrapper(*args, **kwargs):
        delay = base_delay
        for attempt in range(ATTEMPTS):
            try:
                return await func(*args, **kwargs)
            except exceptions:
                if attempt == ATTEMPTS - 1:
                    raise
                await asyncio.sleep(delay + random.random() * base_delay)
                delay *= 2
    return wrapper

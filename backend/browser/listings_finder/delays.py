"""Pause helpers used between page interactions."""

from __future__ import annotations

import random
from asyncio import sleep


async def fixed_delay(ms: int) -> None:
    """Pause for exactly ``ms`` milliseconds."""
    await sleep(max(ms, 0) / 1000)


async def random_delay(min_ms: int, max_ms: int) -> int:
    """Pause for a uniformly random whole number of ms in [min_ms, max_ms]. Returns the delay used."""
    if min_ms > max_ms:
        min_ms, max_ms = max_ms, min_ms
    ms = random.randint(min_ms, max_ms)
    await fixed_delay(ms)
    return ms

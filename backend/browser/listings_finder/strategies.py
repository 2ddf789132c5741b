"""Ordered fallback evaluation for extractors."""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Optional, Sequence, Tuple

Strategy = Tuple[str, Callable[[], Awaitable[Any]]]


def is_empty(value: Any) -> bool:
    return value is None or value == "" or value == [] or value == {}


async def first_result(strategies: Sequence[Strategy],
                       logger: Optional[logging.Logger] = None) -> Any:
    """Run named strategies in order and return the first non-empty result.

    A strategy that raises is logged and treated as empty so the next one
    still gets a chance.
    """
    for name, strategy in strategies:
        try:
            value = await strategy()
        except Exception as e:
            if logger:
                logger.debug(f"Strategy '{name}' failed: {e}")
            continue
        if not is_empty(value):
            if logger:
                logger.debug(f"Strategy '{name}' matched")
            return value
    return None

from __future__ import annotations

import asyncio
from typing import Callable, Generic, List, Optional, Set, TypeVar

T = TypeVar("T")


class ResultAggregator(Generic[T]):
    """Lock-guarded, id-deduplicating collector owned by a crawl.

    Workers call ``add()`` as they finish; the first record seen for an id
    wins and later duplicates are dropped. An optional ``limit`` caps the
    number of accepted records.
    """

    def __init__(self, key: Callable[[T], str], limit: Optional[int] = None) -> None:
        self._key = key
        self._limit = limit
        self._items: List[T] = []
        self._seen: Set[str] = set()
        self._lock = asyncio.Lock()

    async def add(self, item: T) -> bool:
        async with self._lock:
            key = self._key(item)
            if key in self._seen or self._is_full():
                return False
            self._seen.add(key)
            self._items.append(item)
            return True

    async def extend(self, items: List[T]) -> int:
        added = 0
        for item in items:
            if await self.add(item):
                added += 1
        return added

    def has(self, key: str) -> bool:
        return key in self._seen

    def _is_full(self) -> bool:
        return self._limit is not None and len(self._items) >= self._limit

    @property
    def is_full(self) -> bool:
        return self._is_full()

    def __len__(self) -> int:
        return len(self._items)

    def snapshot(self) -> List[T]:
        return list(self._items)

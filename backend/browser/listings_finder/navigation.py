"""Page loading with ordered fallback strategies."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from playwright.async_api import Page

from .delays import fixed_delay
from .errors import NavigationError
from .metrics import NAVIGATION_ATTEMPTS


@dataclass(frozen=True)
class LoadStrategy:
    """One way of loading a page: the wait condition, its timeout and a settle pause."""
    wait_until: str
    timeout_ms: int
    settle_ms: int = 0


@dataclass
class NavigationAttempt:
    strategy: LoadStrategy
    succeeded: bool
    duration_ms: int
    error: Optional[str] = None


@dataclass
class NavigationResult:
    url: str
    strategy: LoadStrategy
    attempts: List[NavigationAttempt] = field(default_factory=list)
    marker_found: bool = False


DEFAULT_STRATEGIES: List[LoadStrategy] = [
    LoadStrategy("domcontentloaded", 60000, 2000),
    LoadStrategy("load", 60000, 3000),
    LoadStrategy("networkidle", 90000, 2000),
]


class Navigator:
    """Tries each load strategy in order until one resolves.

    Between failed attempts it waits ``backoff_ms``. A marker selector (``h1``
    by default) is awaited best-effort after a successful load; its absence is
    logged but does not fail navigation.
    """

    def __init__(self, *, strategies: Optional[Sequence[LoadStrategy]] = None,
                 backoff_ms: int = 2000,
                 marker_selector: Optional[str] = "h1",
                 marker_timeout_ms: int = 10000,
                 logger: Optional[logging.Logger] = None) -> None:
        self.strategies = list(strategies or DEFAULT_STRATEGIES)
        self.backoff_ms = backoff_ms
        self.marker_selector = marker_selector
        self.marker_timeout_ms = marker_timeout_ms
        self.logger = logger or logging.getLogger("listings_finder.navigation")

    async def navigate(self, page: Page, url: str,
                       strategies: Optional[Sequence[LoadStrategy]] = None) -> NavigationResult:
        plan = list(strategies or self.strategies)
        attempts: List[NavigationAttempt] = []
        last_error: Optional[BaseException] = None

        for index, strategy in enumerate(plan, start=1):
            started = time.monotonic()
            try:
                self.logger.info(
                    f"🌐 Loading {url} (attempt {index}/{len(plan)}, "
                    f"wait_until={strategy.wait_until}, timeout={strategy.timeout_ms}ms)"
                )
                await page.goto(url, wait_until=strategy.wait_until, timeout=strategy.timeout_ms)
            except Exception as e:
                last_error = e
                attempts.append(NavigationAttempt(
                    strategy, False, int((time.monotonic() - started) * 1000), str(e)
                ))
                NAVIGATION_ATTEMPTS.labels(strategy.wait_until, "failure").inc()
                self.logger.warning(f"⚠️ Load attempt {index} failed ({strategy.wait_until}): {e}")
                if index < len(plan):
                    await fixed_delay(self.backoff_ms)
                continue

            attempts.append(NavigationAttempt(strategy, True, int((time.monotonic() - started) * 1000)))
            NAVIGATION_ATTEMPTS.labels(strategy.wait_until, "success").inc()
            marker_found = await self._wait_for_marker(page)
            await fixed_delay(strategy.settle_ms)
            return NavigationResult(url, strategy, attempts, marker_found)

        raise NavigationError(
            f"Failed to load {url} after {len(attempts)} attempts: {last_error}",
            attempts=len(attempts),
            last_error=last_error,
        )

    async def _wait_for_marker(self, page: Page) -> bool:
        if not self.marker_selector:
            return True
        try:
            await page.wait_for_selector(self.marker_selector, timeout=self.marker_timeout_ms)
            return True
        except Exception as e:
            self.logger.info(f"Marker '{self.marker_selector}' not found, continuing: {e}")
            return False

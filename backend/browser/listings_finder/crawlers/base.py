"""Queue-driven browser crawler with a bounded worker pool.

A crawl seeds a request queue and runs ``max_concurrency`` workers against
it. Each request gets its own page from the render session, is throttled by
a requests-per-minute limiter, runs under a per-request timeout and is
retried up to ``max_request_retries`` times before the failed-request hook
fires. Once ``max_requests_per_crawl`` requests have started, remaining
queued requests are dropped while in-flight ones finish.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Set, Union

from playwright.async_api import Page

from ..delays import fixed_delay
from ..errors import BrowserLaunchError
from ..metrics import CRAWL_REQUESTS
from ..runtime import RenderSession


@dataclass
class CrawlRequest:
    url: str
    user_data: Dict[str, Any] = field(default_factory=dict)
    unique_key: Optional[str] = None
    retry_count: int = 0
    errors: List[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        if self.unique_key is None:
            self.unique_key = self.url


@dataclass
class CrawlerSettings:
    max_concurrency: int = 1
    max_requests_per_minute: int = 60
    max_requests_per_crawl: Optional[int] = None
    request_timeout_secs: float = 60
    max_request_retries: int = 3


@dataclass
class CrawlStats:
    started: int = 0
    succeeded: int = 0
    failed: int = 0
    retried: int = 0
    dropped: int = 0
    duration_seconds: float = 0.0


@dataclass
class CrawlContext:
    """What a request handler sees: the request, its page and the owning crawler."""
    request: CrawlRequest
    page: Page
    crawler: "BrowserCrawler"
    logger: logging.Logger

    async def enqueue(self, urls: Iterable[Union[str, CrawlRequest]]) -> int:
        return await self.crawler.add_requests(urls)


class RateLimiter:
    """Spaces request starts evenly so no more than ``per_minute`` begin in any minute."""

    def __init__(self, per_minute: int, clock: Callable[[], float] = time.monotonic) -> None:
        self.interval = 60.0 / per_minute if per_minute > 0 else 0.0
        self._clock = clock
        self._next_slot = 0.0
        self._lock = asyncio.Lock()

    async def acquire(self) -> float:
        """Reserve the next start slot and wait for it. Returns the wait in seconds."""
        async with self._lock:
            now = self._clock()
            slot = max(now, self._next_slot)
            self._next_slot = slot + self.interval
        wait = slot - now
        if wait > 0:
            await fixed_delay(int(wait * 1000))
        return wait


class BrowserCrawler:
    """Base crawler. Subclasses implement ``handle_request``."""

    name = "crawler"

    def __init__(self, session: RenderSession, *,
                 settings: Optional[CrawlerSettings] = None,
                 logger: Optional[logging.Logger] = None) -> None:
        self.session = session
        self.settings = settings or CrawlerSettings()
        self.logger = logger or logging.getLogger(f"listings_finder.crawlers.{self.name}")
        self.stats = CrawlStats()
        self._queue: "asyncio.Queue[CrawlRequest]" = asyncio.Queue()
        self._seen_keys: Set[str] = set()
        self._limiter = RateLimiter(self.settings.max_requests_per_minute)
        self._workers: List[asyncio.Task] = []
        self._fatal_error: Optional[BaseException] = None
        self._torn_down = False

    # ------------------------------------------------------------------
    # Hooks
    # ------------------------------------------------------------------

    async def handle_request(self, ctx: CrawlContext) -> None:
        raise NotImplementedError

    async def handle_failed_request(self, request: CrawlRequest, error: BaseException) -> None:
        self.logger.error(f"❌ Request {request.url} failed after {request.retry_count} retries: {error}")

    # ------------------------------------------------------------------
    # Queue
    # ------------------------------------------------------------------

    async def add_requests(self, requests: Iterable[Union[str, CrawlRequest]]) -> int:
        """Enqueue requests, skipping any whose unique key was already seen."""
        added = 0
        for item in requests:
            request = item if isinstance(item, CrawlRequest) else CrawlRequest(url=item)
            if request.unique_key in self._seen_keys:
                self.logger.debug(f"Skipping duplicate request {request.unique_key}")
                continue
            self._seen_keys.add(request.unique_key)
            self._queue.put_nowait(request)
            added += 1
        return added

    def _budget_exhausted(self) -> bool:
        budget = self.settings.max_requests_per_crawl
        return budget is not None and self.stats.started >= budget

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    async def run(self, requests: Iterable[Union[str, CrawlRequest]] = ()) -> CrawlStats:
        """Process the queue until it drains. Always tears the worker pool down."""
        if self._torn_down:
            raise RuntimeError(f"{self.name} crawler already torn down")
        started = time.monotonic()
        await self.add_requests(requests)
        self.logger.info(
            f"🚀 Starting {self.name} crawl: {self._queue.qsize()} requests, "
            f"concurrency={self.settings.max_concurrency}, "
            f"rpm={self.settings.max_requests_per_minute}"
        )
        self._workers = [
            asyncio.create_task(self._worker_loop(i))
            for i in range(max(1, self.settings.max_concurrency))
        ]
        try:
            await self._queue.join()
        finally:
            self.stats.duration_seconds = time.monotonic() - started
            await self.teardown()

        if self._fatal_error is not None:
            raise self._fatal_error
        self.logger.info(
            f"🏁 {self.name} crawl finished: {self.stats.succeeded} ok, {self.stats.failed} failed, "
            f"{self.stats.dropped} dropped in {self.stats.duration_seconds:.1f}s"
        )
        return self.stats

    async def teardown(self) -> None:
        """Cancel the worker pool and drop queued requests. Safe to call more than once."""
        if self._torn_down:
            return
        self._torn_down = True
        for task in self._workers:
            task.cancel()
        if self._workers:
            await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []

        # a pending run() is waiting on join()
        while True:
            try:
                request = self._queue.get_nowait()
            except asyncio.QueueEmpty:
                break
            self.stats.dropped += 1
            self.logger.info(f"Crawler torn down, dropping {request.url}")
            self._queue.task_done()

    async def _worker_loop(self, worker_id: int) -> None:
        while True:
            request = await self._queue.get()
            try:
                if self._fatal_error is not None:
                    continue
                if request.retry_count == 0:
                    if self._budget_exhausted():
                        self.stats.dropped += 1
                        self.logger.info(f"Request budget reached, dropping {request.url}")
                        continue
                    self.stats.started += 1
                await self._process(request, worker_id)
            except BrowserLaunchError as e:
                self._fatal_error = e
                self.logger.error(f"❌ Stopping {self.name} crawl: {e}")
            except Exception as e:
                self.logger.error(f"Unexpected error in {self.name} worker {worker_id}: {e}")
            finally:
                self._queue.task_done()

    async def _process(self, request: CrawlRequest, worker_id: int) -> None:
        await self._limiter.acquire()
        try:
            async with self.session.page() as page:
                ctx = CrawlContext(request=request, page=page, crawler=self, logger=self.logger)
                self.logger.info(f"[worker {worker_id}] Processing {request.url}")
                await asyncio.wait_for(self.handle_request(ctx), timeout=self.settings.request_timeout_secs)
        except BrowserLaunchError:
            raise
        except Exception as e:
            if isinstance(e, asyncio.TimeoutError):
                e = asyncio.TimeoutError(
                    f"Request handler timed out after {self.settings.request_timeout_secs}s")
            await self._on_error(request, e)
            return

        self.stats.succeeded += 1
        CRAWL_REQUESTS.labels(self.name, "success").inc()

    async def _on_error(self, request: CrawlRequest, error: BaseException) -> None:
        request.errors.append(str(error))
        if request.retry_count < self.settings.max_request_retries:
            request.retry_count += 1
            self.stats.retried += 1
            CRAWL_REQUESTS.labels(self.name, "retry").inc()
            self.logger.warning(
                f"⚠️ Retrying {request.url} ({request.retry_count}/{self.settings.max_request_retries}): {error}"
            )
            self._queue.put_nowait(request)
            return

        self.stats.failed += 1
        CRAWL_REQUESTS.labels(self.name, "failure").inc()
        await self.handle_failed_request(request, error)

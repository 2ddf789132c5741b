import asyncio

import pytest

from conftest import FakeSession
from listings_finder.crawlers.base import BrowserCrawler, CrawlerSettings, RateLimiter
from listings_finder.errors import BrowserLaunchError


class ScriptedCrawler(BrowserCrawler):
    name = "scripted"

    def __init__(self, session, handler, **kwargs):
        super().__init__(session, **kwargs)
        self.handler = handler
        self.failed = []

    async def handle_request(self, ctx):
        await self.handler(ctx)

    async def handle_failed_request(self, request, error):
        await super().handle_failed_request(request, error)
        self.failed.append((request, error))


def settings(**overrides):
    values = dict(max_concurrency=1, max_requests_per_minute=0, request_timeout_secs=5, max_request_retries=2)
    values.update(overrides)
    return CrawlerSettings(**values)


async def test_retries_then_calls_failed_hook():
    calls = []

    async def handler(ctx):
        calls.append(ctx.request.url)
        raise RuntimeError("selector missing")

    crawler = ScriptedCrawler(FakeSession(), handler, settings=settings())
    stats = await crawler.run(["https://www.airbnb.com/rooms/1"])

    assert len(calls) == 3
    assert stats.retried == 2
    assert stats.failed == 1
    request, error = crawler.failed[0]
    assert request.retry_count == 2
    assert len(request.errors) == 3
    assert str(error) == "selector missing"


async def test_retry_can_succeed():
    attempts = []

    async def handler(ctx):
        attempts.append(1)
        if len(attempts) == 1:
            raise RuntimeError("flaky")

    crawler = ScriptedCrawler(FakeSession(), handler, settings=settings())
    stats = await crawler.run(["a"])
    assert (stats.succeeded, stats.retried, stats.failed) == (1, 1, 0)


async def test_handler_timeout_counts_as_failure():
    async def handler(ctx):
        await asyncio.sleep(1)

    crawler = ScriptedCrawler(
        FakeSession(), handler, settings=settings(request_timeout_secs=0.05, max_request_retries=0)
    )
    await crawler.run(["a"])

    _, error = crawler.failed[0]
    assert isinstance(error, asyncio.TimeoutError)
    assert "timed out" in str(error)


async def test_request_budget_drops_remaining_requests():
    handled = []

    async def handler(ctx):
        handled.append(ctx.request.url)

    crawler = ScriptedCrawler(FakeSession(), handler, settings=settings(max_requests_per_crawl=2))
    stats = await crawler.run(["a", "b", "c", "d"])

    assert handled == ["a", "b"]
    assert stats.dropped == 2


async def test_handler_can_enqueue_and_duplicates_are_skipped():
    handled = []

    async def handler(ctx):
        handled.append(ctx.request.url)
        if ctx.request.url == "a":
            await ctx.enqueue(["b", "a"])

    crawler = ScriptedCrawler(FakeSession(), handler, settings=settings())
    await crawler.run(["a", "a"])
    assert handled == ["a", "b"]


async def test_pages_are_released_and_concurrency_is_bounded():
    active = []
    peak = []

    async def handler(ctx):
        active.append(1)
        peak.append(len(active))
        await asyncio.sleep(0.01)
        active.pop()

    session = FakeSession()
    crawler = ScriptedCrawler(session, handler, settings=settings(max_concurrency=3))
    await crawler.run([str(i) for i in range(9)])

    assert 1 < max(peak) <= 3
    assert len(session.pages) == 9
    assert all(page.closed for page in session.pages)


async def test_browser_launch_failure_stops_the_crawl():
    async def handler(ctx):
        pass

    session = FakeSession(page_error=BrowserLaunchError("no chromium"))
    crawler = ScriptedCrawler(session, handler, settings=settings())
    with pytest.raises(BrowserLaunchError):
        await crawler.run(["a", "b"])


async def test_crawler_cannot_run_after_teardown():
    async def handler(ctx):
        pass

    crawler = ScriptedCrawler(FakeSession(), handler, settings=settings())
    await crawler.run(["a"])
    await crawler.teardown()
    with pytest.raises(RuntimeError):
        await crawler.run(["b"])


async def test_rate_limiter_spaces_request_starts(sleeps):
    limiter = RateLimiter(60, clock=lambda: 100.0)
    waits = [await limiter.acquire() for _ in range(3)]

    assert waits == [0.0, 1.0, 2.0]
    assert sleeps == [1.0, 2.0]


async def test_teardown_during_crawl_releases_run():
    started = asyncio.Event()

    async def handler(ctx):
        started.set()
        await asyncio.sleep(10)

    session = FakeSession()
    crawler = ScriptedCrawler(session, handler, settings=settings())
    run = asyncio.create_task(crawler.run(["a", "b", "c"]))
    await asyncio.wait_for(started.wait(), timeout=1)

    await crawler.teardown()
    stats = await asyncio.wait_for(run, timeout=1)

    assert stats.dropped == 2
    assert stats.succeeded == 0
    assert all(page.closed for page in session.pages)

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Callable, Optional, Set

from playwright.async_api import Browser, BrowserContext, Page, async_playwright

from .config import ServiceConfig, get_config
from .errors import BrowserLaunchError
from .stealth import StealthLevel, StealthManager


class RenderSession:
    """Owns the Playwright process, one Chromium browser and one isolated context.

    Pages are handed out one per in-flight request. When no page has been open
    for ``inactivity_timeout_secs`` the browser is closed; the next
    ``new_page()`` relaunches it.
    """

    def __init__(self, *, headless: bool = True,
                 stealth_manager: Optional[StealthManager] = None,
                 inactivity_timeout_secs: float = 30,
                 launch_timeout_ms: int = 60000,
                 logger: Optional[logging.Logger] = None,
                 playwright_factory: Callable[[], Any] = async_playwright) -> None:
        self._headless = headless
        self._logger = logger or logging.getLogger("listings_finder.browser")
        self.stealth_manager = stealth_manager or StealthManager(StealthLevel.BASIC, self._logger)
        self._inactivity_timeout = inactivity_timeout_secs
        self._launch_timeout_ms = launch_timeout_ms
        self._playwright_factory = playwright_factory

        self._playwright = None
        self.browser: Optional[Browser] = None
        self.context: Optional[BrowserContext] = None
        self._pages: Set[Page] = set()
        self._launch_lock = asyncio.Lock()
        self._idle_handle: Optional[asyncio.TimerHandle] = None
        self._idle_task: Optional[asyncio.Task] = None
        self._closed = False
        self.launch_count = 0

    @classmethod
    def from_config(cls, config: Optional[ServiceConfig] = None,
                    logger: Optional[logging.Logger] = None, **kwargs) -> "RenderSession":
        config = config or get_config()
        stealth = StealthManager(StealthLevel(config.browser.stealth_level), logger)
        return cls(
            headless=config.browser.headless,
            stealth_manager=stealth,
            inactivity_timeout_secs=config.browser.close_inactive_browser_after_secs,
            launch_timeout_ms=config.browser.launch_timeout_ms,
            logger=logger,
            **kwargs,
        )

    @property
    def is_open(self) -> bool:
        return self.browser is not None and not self._closed

    @property
    def open_pages(self) -> int:
        return len(self._pages)

    async def start(self) -> None:
        """Launch the browser. Launch failures are fatal for the batch."""
        if self._closed:
            raise BrowserLaunchError("Render session already closed")
        async with self._launch_lock:
            if self.browser is not None:
                return
            await self._launch()

    async def _launch(self) -> None:
        try:
            if self._playwright is None:
                self._playwright = await self._playwright_factory().start()
            self.browser = await self._playwright.chromium.launch(
                headless=self._headless,
                args=self.stealth_manager.launch_args(),
                timeout=self._launch_timeout_ms,
            )
            self.context = await self.browser.new_context(**self.stealth_manager.context_options())
            await self.stealth_manager.apply_stealth_to_context(self.context)
        except Exception as e:
            self._logger.error(f"❌ Browser launch failed: {e}")
            await self._close_browser()
            raise BrowserLaunchError(f"Browser launch failed: {e}", cause=e) from e

        self.launch_count += 1
        self._logger.info(
            f"✅ Chromium launched (headless={self._headless}, "
            f"stealth={self.stealth_manager.stealth_level.value}, launch #{self.launch_count})"
        )

    async def new_page(self) -> Page:
        """Open a page in the session context, relaunching the browser if it went idle."""
        if self._closed:
            raise BrowserLaunchError("Render session already closed")
        self._cancel_idle_timer()
        async with self._launch_lock:
            if self.browser is None:
                self._logger.info("🔄 Relaunching browser after inactivity")
                await self._launch()
            page = await self.context.new_page()
        self._pages.add(page)
        return page

    async def release_page(self, page: Page) -> None:
        self._pages.discard(page)
        try:
            await page.close()
        except Exception as e:
            self._logger.debug(f"Page close failed: {e}")
        if not self._pages and not self._closed:
            self._schedule_idle_timer()

    @asynccontextmanager
    async def page(self) -> AsyncIterator[Page]:
        """Yield a fresh page and always release it."""
        page = await self.new_page()
        try:
            yield page
        finally:
            await self.release_page(page)

    def _schedule_idle_timer(self) -> None:
        self._cancel_idle_timer()
        loop = asyncio.get_running_loop()
        self._idle_handle = loop.call_later(self._inactivity_timeout, self._on_idle)

    def _cancel_idle_timer(self) -> None:
        if self._idle_handle is not None:
            self._idle_handle.cancel()
            self._idle_handle = None

    def _on_idle(self) -> None:
        self._idle_handle = None
        self._idle_task = asyncio.ensure_future(self._close_if_idle())

    async def _close_if_idle(self) -> None:
        async with self._launch_lock:
            if self._pages or self.browser is None:
                return
            self._logger.info(f"💤 Closing browser after {self._inactivity_timeout}s of inactivity")
            await self._close_browser()

    async def _close_browser(self) -> None:
        if self.context is not None:
            try:
                await self.context.close()
            except Exception as e:
                self._logger.debug(f"Context close failed: {e}")
            self.context = None
        if self.browser is not None:
            try:
                await self.browser.close()
            except Exception as e:
                self._logger.debug(f"Browser close failed: {e}")
            self.browser = None

    async def close(self) -> None:
        """Release every page, the context, the browser and Playwright. Safe to call twice."""
        if self._closed:
            return
        self._closed = True
        self._cancel_idle_timer()
        if self._idle_task is not None:
            self._idle_task.cancel()
            await asyncio.gather(self._idle_task, return_exceptions=True)
            self._idle_task = None
        async with self._launch_lock:
            for page in list(self._pages):
                self._pages.discard(page)
                try:
                    await page.close()
                except Exception as e:
                    self._logger.debug(f"Page close failed: {e}")
            await self._close_browser()
        if self._playwright is not None:
            try:
                await self._playwright.stop()
            except Exception as e:
                self._logger.debug(f"Playwright stop failed: {e}")
            self._playwright = None
        self._logger.info("🛑 Render session closed")


@asynccontextmanager
async def acquire(config: Optional[ServiceConfig] = None,
                  logger: Optional[logging.Logger] = None, **kwargs) -> AsyncIterator[RenderSession]:
    """Start a render session and close it on every exit path."""
    session = RenderSession.from_config(config, logger, **kwargs)
    try:
        await session.start()
        yield session
    finally:
        await session.close()

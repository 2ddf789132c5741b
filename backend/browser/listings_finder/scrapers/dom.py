"""Small in-page reads shared by the extractors, plus the fault-tolerance wrapper."""

from __future__ import annotations

import functools
import logging
from typing import Any, Callable, List, Optional

from playwright.async_api import Page

from ..delays import fixed_delay
from ..errors import InteractionError
from ..metrics import EXTRACTOR_FAILURES

TEXT_OF_JS = """(selector) => {
    const el = document.querySelector(selector);
    return el ? el.textContent.trim() : null;
}"""

TEXTS_OF_JS = """(selector) => Array.from(document.querySelectorAll(selector))
    .map(el => el.textContent.trim())
    .filter(t => t.length > 0)"""

HREFS_OF_JS = """(selector) => Array.from(document.querySelectorAll(selector))
    .map(a => a.getAttribute('href') || '')"""

ATTR_OF_JS = """([selector, name]) => {
    const el = document.querySelector(selector);
    return el ? el.getAttribute(name) : null;
}"""

BODY_TEXT_JS = "() => document.body ? document.body.innerText : ''"

_logger = logging.getLogger("listings_finder.extractors")


async def text_of(page: Page, selector: str) -> Optional[str]:
    return await page.evaluate(TEXT_OF_JS, selector)


async def texts_of(page: Page, selector: str) -> List[str]:
    return await page.evaluate(TEXTS_OF_JS, selector) or []


async def hrefs_of(page: Page, selector: str) -> List[str]:
    return await page.evaluate(HREFS_OF_JS, selector) or []


async def attr_of(page: Page, selector: str, name: str) -> Optional[str]:
    return await page.evaluate(ATTR_OF_JS, [selector, name])


async def body_text(page: Page) -> str:
    return await page.evaluate(BODY_TEXT_JS) or ""


async def click_if_present(page: Page, selector: str, *, timeout_ms: int = 5000) -> bool:
    """Scroll a control into view and click it. Returns False when it is absent."""
    element = await page.query_selector(selector)
    if element is None:
        return False
    try:
        await element.scroll_into_view_if_needed()
        await fixed_delay(300)
        await element.click(timeout=timeout_ms)
    except Exception as e:
        raise InteractionError(f"Click on {selector!r} failed: {e}", cause=e) from e
    return True


def extractor(field_name: str, default: Callable[[], Any]):
    """Make an async extractor fault-tolerant.

    Any exception is logged, counted, and replaced by ``default()``; the
    wrapped function receives a ``logger`` keyword argument.
    """

    def wrap(fn):
        @functools.wraps(fn)
        async def inner(page: Page, *args, logger: Optional[logging.Logger] = None, **kwargs):
            log = logger or _logger
            try:
                return await fn(page, *args, logger=log, **kwargs)
            except Exception as e:
                log.warning(f"⚠️ {field_name} extraction failed: {e}")
                EXTRACTOR_FAILURES.labels(field_name).inc()
                return default()

        return inner

    return wrap

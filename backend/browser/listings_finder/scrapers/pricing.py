"""Nightly price from a three-night calendar selection, with a booking-sidebar fallback."""

from __future__ import annotations

import logging
import re
from typing import Iterable, List, Optional, Tuple

from playwright.async_api import Page

from ..delays import fixed_delay
from ..models import PricingInfo
from ..text_utils import AIRBNB_BASE_URL, parse_amount, round_half_up
from .dom import extractor

PRICE_PATTERN = re.compile(r"([€$£¥₹])\s*(\d+(?:,\d{3})*(?:\.\d{2})?)")
STAY_NIGHTS = 3
MAX_CALENDAR_CELLS = 10

AVAILABLE_CELLS_JS = """(limit) => {
    const cells = [];
    for (const day of document.querySelectorAll('td[role="button"]')) {
        const label = day.getAttribute('aria-label') || '';
        const marker = day.querySelector('[data-testid]');
        const testId = marker ? marker.getAttribute('data-testid') : null;
        if (day.getAttribute('aria-disabled') !== 'true'
                && !label.includes('only available for checkout') && testId) {
            cells.push({ testId: testId, ariaLabel: label });
        }
        if (cells.length >= limit) break;
    }
    return cells;
}"""

CLICK_CELL_JS = """(testId) => {
    const elements = document.querySelectorAll(`[data-testid="${testId}"]`);
    for (const el of elements) {
        const rect = el.getBoundingClientRect();
        if (rect.top >= 0 && rect.bottom <= window.innerHeight) {
            el.click();
            return true;
        }
    }
    if (elements[0]) {
        elements[0].scrollIntoView({ block: 'center' });
        elements[0].click();
        return true;
    }
    return false;
}"""

STAY_PRICE_TEXTS_JS = """() => Array.from(document.querySelectorAll('span, div'))
    .map(el => el.textContent || '')
    .filter(t => t.includes('3 night'))
    .slice(0, 50)"""

SIDEBAR_TEXTS_JS = """() => Array.from(document.querySelectorAll(
        '[data-plugin-in-point-id="BOOK_IT_SIDEBAR"] span, [data-section-id="BOOK_IT_SIDEBAR"] span'))
    .map(el => el.textContent.trim())"""


def find_price(texts: Iterable[str], require: Optional[str] = None) -> Optional[Tuple[str, float]]:
    """First ``(currency, amount)`` in ``texts``; with ``require``, only texts containing it count."""
    for text in texts:
        if not text or (require and require not in text):
            continue
        match = PRICE_PATTERN.search(text)
        if match:
            amount = parse_amount(match.group(2))
            if amount:
                return match.group(1), amount
    return None


def pricing_from_stay_total(currency: str, total: float, nights: int = STAY_NIGHTS) -> PricingInfo:
    return PricingInfo(
        currency=currency,
        total_for_3_nights=total,
        price_per_night=round_half_up(total / nights),
    )


async def _select_three_nights(page: Page, cells: List[dict], logger: logging.Logger) -> None:
    check_in, check_out = cells[0], cells[STAY_NIGHTS]
    await page.evaluate(CLICK_CELL_JS, check_in["testId"])
    logger.debug(f"Selected check-in: {check_in.get('ariaLabel', '')[:50]}")
    await fixed_delay(1500)
    await page.evaluate(CLICK_CELL_JS, check_out["testId"])
    logger.debug(f"Selected check-out: {check_out.get('ariaLabel', '')[:50]}")
    await fixed_delay(2000)


async def _calendar_price(page: Page, listing_id: str, logger: logging.Logger) -> Optional[Tuple[str, float]]:
    await page.goto(f"{AIRBNB_BASE_URL}/rooms/{listing_id}#availability-calendar",
                    wait_until="domcontentloaded", timeout=30000)
    await fixed_delay(3000)

    cells = await page.evaluate(AVAILABLE_CELLS_JS, MAX_CALENDAR_CELLS) or []
    logger.debug(f"Found {len(cells)} available calendar dates")
    if len(cells) < STAY_NIGHTS + 1:
        return None
    try:
        await _select_three_nights(page, cells, logger)
        return find_price(await page.evaluate(STAY_PRICE_TEXTS_JS) or [], require="3 night")
    except Exception as e:
        logger.info(f"Calendar selection failed for {listing_id}: {e}")
        return None


async def _sidebar_price(page: Page, listing_id: str) -> Optional[Tuple[str, float]]:
    await page.goto(f"{AIRBNB_BASE_URL}/rooms/{listing_id}", wait_until="domcontentloaded", timeout=30000)
    await fixed_delay(2000)
    return find_price(await page.evaluate(SIDEBAR_TEXTS_JS) or [])


@extractor("pricing", default=PricingInfo)
async def extract_pricing(page: Page, listing_id: str, *, logger: logging.Logger) -> PricingInfo:
    stay = await _calendar_price(page, listing_id, logger)
    if stay:
        currency, total = stay
        pricing = pricing_from_stay_total(currency, total)
        logger.info(f"💰 {currency}{pricing.price_per_night:g}/night ({currency}{total:g} for 3 nights)")
        return pricing

    logger.info("Calendar pricing not found, trying booking panel")
    nightly = await _sidebar_price(page, listing_id)
    if nightly:
        currency, amount = nightly
        return PricingInfo(currency=currency, price_per_night=amount)
    return PricingInfo()

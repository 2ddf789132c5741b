"""Search-results crawler: walks result pages and collects listing summaries."""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, Iterable, List, Optional
from urllib.parse import quote

from ..delays import fixed_delay
from ..models import ListingSummary
from ..navigation import LoadStrategy, Navigator
from ..results import ResultAggregator
from ..runtime import RenderSession
from ..strategies import first_result
from ..text_utils import AIRBNB_BASE_URL, absolute_url, clean_text, listing_url, room_id_from_url, round_half_up
from .base import BrowserCrawler, CrawlContext, CrawlerSettings

SEARCH_SETTINGS = CrawlerSettings(
    max_concurrency=1,
    max_requests_per_minute=10,
    max_requests_per_crawl=15,
    request_timeout_secs=120,
    max_request_retries=3,
)
SEARCH_LOAD = LoadStrategy("domcontentloaded", 60000)
RESULTS_MARKER = 'a[href*="/rooms/"]'
ENTIRE_HOME_FILTER = "room_types%5B%5D=Entire%20home%2Fapt"

BEDROOMS_PATTERN = re.compile(r"(\d+(?:\.\d+)?)\s*(bedroom|bedrooms|bed|beds)", re.IGNORECASE)
DOLLAR_AMOUNT_PATTERN = re.compile(r"\$([\d,.]+)")
STAY_LENGTH_PATTERN = re.compile(r"for\s+(\d+)\s+nights?", re.IGNORECASE)
PER_NIGHT_PATTERN = re.compile(r"\$([\d,.]+)\s*(?:per\s+night|night)", re.IGNORECASE)
BED_INFO_PATTERN = re.compile(r"(bedroom|bed)", re.IGNORECASE)
DATE_RANGE_PATTERN = re.compile(r"(night|nights|check\sin)", re.IGNORECASE)
FIRST_NUMBER_PATTERN = re.compile(r"(\d+(?:\.\d+)?)")

SCROLL_STEP_JS = "() => window.scrollBy(0, window.innerHeight)"
SCROLL_BOTTOM_JS = "() => window.scrollTo(0, document.body.scrollHeight)"

SEARCH_CARDS_JS = """() => Array.from(document.querySelectorAll('[itemprop="itemListElement"]')).map(card => {
    const text = (sel) => {
        const el = card.querySelector(sel);
        return el ? el.textContent.trim() : null;
    };
    const label = (sel) => {
        const el = card.querySelector(sel);
        return el ? el.getAttribute('aria-label') : null;
    };
    const anchor = card.querySelector('a[href*="/rooms/"]');
    return {
        href: anchor ? anchor.getAttribute('href') : null,
        title: text('[data-testid="listing-card-title"]'),
        name: text('[data-testid="listing-card-name"]'),
        subtitles: Array.from(card.querySelectorAll('[data-testid="listing-card-subtitle"]'))
            .map(el => el.textContent.trim()).filter(Boolean),
        priceText: text('[data-testid="price-availability-row"]'),
        reviewsLabel: label('[aria-label*="reviews on the listing"]'),
        ratingLabel: label('[aria-label*="average rating"]'),
    };
})"""

NEXT_BUTTON_DISABLED_JS = """(el) => el.hasAttribute('disabled') || el.getAttribute('aria-disabled') === 'true'"""
NEXT_BUTTON_CLICKABLE_JS = """() => {
    const btn = document.querySelector('[aria-label="Next"]');
    return !!btn && !btn.hasAttribute('disabled');
}"""


def build_search_url(location: str, entire_homes_only: bool = False) -> str:
    url = f"{AIRBNB_BASE_URL}/s/{quote(location, safe='')}/homes"
    if entire_homes_only:
        url += f"?{ENTIRE_HOME_FILTER}"
    return url


def parse_bedrooms(texts: Iterable[str]) -> Optional[float]:
    for text in texts:
        match = BEDROOMS_PATTERN.search(text or "")
        if match:
            return float(match.group(1))
    return None


def _dollars(value: str) -> float:
    return float(value.replace(",", ""))


def parse_price_row(text: Optional[str]) -> Dict[str, Any]:
    """Split a card's price row into total, stay length and per-night price.

    The last dollar amount is the stay total; with a stay length the
    per-night price is derived from it, otherwise an explicit "per night"
    amount is used.
    """
    normalized = clean_text(text)
    amounts = DOLLAR_AMOUNT_PATTERN.findall(normalized)
    total = _dollars(amounts[-1]) if amounts else None

    stay = STAY_LENGTH_PATTERN.search(normalized)
    nights = int(stay.group(1)) if stay else None

    per_night = None
    if nights and total is not None:
        per_night = round_half_up(total / nights, 2)
    else:
        explicit = PER_NIGHT_PATTERN.search(normalized)
        if explicit:
            per_night = _dollars(explicit.group(1))

    return {
        "raw_price_text": normalized or None,
        "total_price": total,
        "stay_length_nights": nights,
        "price_per_night": per_night,
    }


def _label_number(label: Optional[str]) -> Optional[float]:
    match = FIRST_NUMBER_PATTERN.search(label or "")
    return float(match.group(1)) if match else None


def card_description(name: Optional[str], subtitles: List[str]) -> Optional[str]:
    if name:
        return name
    for text in subtitles:
        if not BED_INFO_PATTERN.search(text) and not DATE_RANGE_PATTERN.search(text):
            return text
    return None


def parse_card(raw: Dict[str, Any], location: str) -> Optional[ListingSummary]:
    """Turn one raw search card into a summary; cards without a room link are skipped."""
    listing_id = room_id_from_url(raw.get("href"))
    if not listing_id:
        return None
    subtitles = [clean_text(t) for t in raw.get("subtitles") or [] if clean_text(t)]
    reviews = _label_number(raw.get("reviewsLabel"))
    return ListingSummary(
        listing_id=listing_id,
        listing_url=listing_url(listing_id),
        location=location,
        title=clean_text(raw.get("title")) or None,
        description=card_description(clean_text(raw.get("name")) or None, subtitles),
        bedrooms=parse_bedrooms(subtitles),
        number_of_reviews=int(reviews) if reviews is not None else None,
        overall_review_score=_label_number(raw.get("ratingLabel")),
        **parse_price_row(raw.get("priceText")),
    )


def parse_cards(cards: Iterable[Dict[str, Any]], location: str) -> List[ListingSummary]:
    """Parse cards and drop repeats of the same listing id on one page."""
    seen = set()
    listings: List[ListingSummary] = []
    for raw in cards:
        listing = parse_card(raw, location)
        if listing is None or listing.listing_id in seen:
            continue
        seen.add(listing.listing_id)
        listings.append(listing)
    return listings


class SearchCrawler(BrowserCrawler):
    """Sequentially follows result pages until ``max_listings`` summaries are collected."""

    name = "search"

    def __init__(self, session: RenderSession, location: str, max_listings: int, *,
                 settings: Optional[CrawlerSettings] = None,
                 navigator: Optional[Navigator] = None,
                 logger: Optional[logging.Logger] = None) -> None:
        super().__init__(session, settings=settings or SEARCH_SETTINGS, logger=logger)
        self.location = location
        self.max_listings = max_listings
        self.results: ResultAggregator[ListingSummary] = ResultAggregator(
            key=lambda listing: listing.listing_id, limit=max_listings
        )
        self.navigator = navigator or Navigator(
            strategies=[SEARCH_LOAD],
            marker_selector=RESULTS_MARKER,
            marker_timeout_ms=15000,
            logger=self.logger,
        )

    async def crawl(self, entire_homes_only: bool = False) -> List[ListingSummary]:
        await self.run([build_search_url(self.location, entire_homes_only)])
        return self.results.snapshot()

    async def handle_request(self, ctx: CrawlContext) -> None:
        page = ctx.page
        await self.navigator.navigate(page, ctx.request.url)
        await self._load_lazy_cards(page)

        listings = parse_cards(await page.evaluate(SEARCH_CARDS_JS) or [], self.location)
        self.logger.info(f"🔍 Found {len(listings)} unique listings on this page")
        added = await self.results.extend(listings)
        self.logger.info(
            f"Total listings collected so far: {len(self.results)}/{self.max_listings} (+{added})"
        )

        if self.results.is_full:
            self.logger.info(f"🎯 Target reached! Collected {len(self.results)} listings.")
            return

        self.logger.info(f"Need {self.max_listings - len(self.results)} more listings. Looking for next page...")
        next_url = absolute_url(await self.find_next_page_url(page))
        if next_url and next_url != ctx.request.url:
            self.logger.info(f"➡️ Going to next page: {next_url}")
            await ctx.enqueue([next_url])
        else:
            self.logger.info(f"No more pages available. Collected {len(self.results)} listings.")

    async def _load_lazy_cards(self, page) -> None:
        for _ in range(3):
            await page.evaluate(SCROLL_STEP_JS)
            await fixed_delay(600)
        await page.evaluate(SCROLL_BOTTOM_JS)
        await fixed_delay(1000)

    async def find_next_page_url(self, page) -> Optional[str]:
        async def enabled_next_button() -> Optional[str]:
            button = await page.query_selector('[aria-label="Next"]')
            if button is None:
                return None
            if await button.evaluate(NEXT_BUTTON_DISABLED_JS):
                self.logger.info("Next button found but is disabled")
                return None
            return await button.get_attribute("href")

        async def href_of(selector: str) -> Optional[str]:
            element = await page.query_selector(selector)
            return await element.get_attribute("href") if element else None

        async def click_next() -> Optional[str]:
            if not await page.evaluate(NEXT_BUTTON_CLICKABLE_JS):
                return None
            self.logger.info("Attempting to click Next button directly")
            await page.click('[aria-label="Next"]')
            try:
                await page.wait_for_load_state("networkidle", timeout=10000)
            except Exception as e:
                self.logger.debug(f"Network did not settle after Next click: {e}")
            await fixed_delay(2000)
            return page.url

        return await first_result([
            ("aria_label_next", enabled_next_button),
            ("nav_next_link", lambda: href_of('nav a:has-text("Next")')),
            ("pagination_next_button", lambda: href_of('[data-testid="pagination-next-button"]')),
            ("click_next", click_next),
        ], self.logger)

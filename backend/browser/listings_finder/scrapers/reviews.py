"""Review harvesting across the four sort orders of the reviews modal."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, NamedTuple, Optional

from playwright.async_api import Page

from ..delays import fixed_delay, random_delay
from ..models import Review, ReviewDetails, ReviewsByCategory
from ..text_utils import AIRBNB_BASE_URL, clean_text
from .dom import extractor


class SortOption(NamedTuple):
    key: str
    label: str
    value: str


SORT_OPTIONS = (
    SortOption("mostRelevant", "Most relevant", "BEST_QUALITY"),
    SortOption("mostRecent", "Most recent", "RECENT"),
    SortOption("highestRated", "Highest rated", "HIGHEST_RATING"),
    SortOption("lowestRated", "Lowest rated", "LOWEST_RATING"),
)

SORT_TOGGLE_SELECTOR = "#reviews-sort-selector_selector-toggle-button"
PANEL_SCROLLS = 5

SELECT_SORT_OPTION_JS = """(label) => {
    const listbox = document.querySelector('[role="listbox"]');
    if (!listbox) return false;
    for (const option of listbox.querySelectorAll('[role="option"]')) {
        if (option.textContent.trim().toLowerCase().includes(label.toLowerCase())) {
            option.click();
            return true;
        }
    }
    return false;
}"""

SCROLL_REVIEWS_PANEL_JS = """() => {
    const panel = document.querySelector('[data-testid="pdp-reviews-modal-scrollable-panel"]');
    if (!panel) return false;
    panel.scrollTo(0, panel.scrollHeight);
    return true;
}"""

REVIEW_ROWS_JS = """() => Array.from(document.querySelectorAll('[data-review-id]')).map(el => {
    const text = (sel) => {
        const node = el.querySelector(sel);
        return node ? node.textContent.trim() : null;
    };
    const stars = el.querySelector('.c5dn5hn');
    return {
        reviewId: el.getAttribute('data-review-id'),
        name: text('h2'),
        text: text('.r1bcsqqd'),
        stars: stars ? stars.querySelectorAll('svg').length : 0,
        location: text('.s15w4qkt'),
        date: text('.s78n3tv'),
    };
})"""


@dataclass(frozen=True)
class ReviewRetryPolicy:
    """One more harvest when the listing advertises reviews but none were collected."""

    max_retries: int = 1
    backoff_ms: int = 1000

    def should_retry(self, collected: int, advertised: Optional[int], attempt: int) -> bool:
        return collected == 0 and bool(advertised) and attempt < self.max_retries


def parse_reviewer_location(text: Optional[str]) -> ReviewDetails:
    parts = [p.strip() for p in (text or "").split(",") if p.strip()]
    if len(parts) >= 2:
        return ReviewDetails(city=parts[0], country=parts[1])
    if len(parts) == 1:
        return ReviewDetails(country=parts[0])
    return ReviewDetails()


def parse_reviews(rows: Iterable[Dict[str, Any]]) -> List[Review]:
    """Build reviews from raw rows, dropping nameless rows and repeated review ids."""
    seen = set()
    reviews: List[Review] = []
    for row in rows:
        review_id = clean_text(row.get("reviewId"))
        name = clean_text(row.get("name"))
        if not name or not review_id or review_id in seen:
            continue
        seen.add(review_id)
        details = parse_reviewer_location(row.get("location"))
        details.date = clean_text(row.get("date")) or None
        reviews.append(Review(
            review_id=review_id,
            name=name,
            text=clean_text(row.get("text")) or None,
            score=int(row.get("stars") or 0),
            review_details=details,
        ))
    return reviews


async def _select_sort(page: Page, option: SortOption, logger: logging.Logger) -> bool:
    toggle = await page.query_selector(SORT_TOGGLE_SELECTOR)
    if toggle is None:
        logger.warning("⚠️ Sort selector button not found")
        return False
    await toggle.click()
    await fixed_delay(1000)
    if await page.evaluate(SELECT_SORT_OPTION_JS, option.label):
        return True

    logger.warning(f"⚠️ Could not find sort option: {option.label}")
    await toggle.click()
    await fixed_delay(500)
    return False


async def _scroll_panel(page: Page) -> None:
    for _ in range(PANEL_SCROLLS):
        if not await page.evaluate(SCROLL_REVIEWS_PANEL_JS):
            return
        await fixed_delay(1000)


async def harvest_reviews(page: Page, listing_id: str, *,
                          quick_mode: bool = False,
                          min_delay_ms: int = 0, max_delay_ms: int = 0,
                          logger: logging.Logger) -> ReviewsByCategory:
    """Collect reviews for each sort order; quick mode stops after the default ordering."""
    if max_delay_ms:
        await random_delay(min_delay_ms, max_delay_ms)
    await page.goto(f"{AIRBNB_BASE_URL}/rooms/{listing_id}/reviews",
                    wait_until="domcontentloaded", timeout=30000)
    await fixed_delay(3000)

    buckets: Dict[str, List[Review]] = {}
    options = SORT_OPTIONS[:1] if quick_mode else SORT_OPTIONS
    for option in options:
        try:
            logger.info(f"💬 Scraping {option.label} reviews...")
            if not await _select_sort(page, option, logger):
                continue
            await fixed_delay(2000)
            await _scroll_panel(page)

            rows = await page.evaluate(REVIEW_ROWS_JS) or []
            reviews = parse_reviews(rows)
            buckets[option.key] = reviews
            logger.info(f"Found {len(reviews)} unique {option.label} reviews "
                        f"({len(rows) - len(reviews)} skipped)")
            await fixed_delay(1000)
        except Exception as e:
            logger.error(f"❌ Error scraping {option.label} reviews: {e}")

    result = ReviewsByCategory.model_validate(buckets)
    logger.info(f"Total reviews scraped across all categories: {result.total()}")
    return result


@extractor("reviews", default=ReviewsByCategory)
async def extract_reviews(page: Page, listing_id: str, *,
                          advertised_count: Optional[int] = None,
                          quick_mode: bool = False,
                          retry_policy: ReviewRetryPolicy = ReviewRetryPolicy(),
                          min_delay_ms: int = 0, max_delay_ms: int = 0,
                          logger: logging.Logger) -> ReviewsByCategory:
    attempt = 0
    while True:
        reviews = await harvest_reviews(page, listing_id, quick_mode=quick_mode,
                                        min_delay_ms=min_delay_ms, max_delay_ms=max_delay_ms,
                                        logger=logger)
        collected = reviews.total()
        if not retry_policy.should_retry(collected, advertised_count, attempt):
            break
        attempt += 1
        logger.warning(f"⚠️ No reviews found but listing has {advertised_count} reviews. Retrying...")
        await fixed_delay(retry_policy.backoff_ms)

    if attempt and reviews.total():
        logger.info(f"✅ Retry found {reviews.total()} reviews")
    elif attempt:
        logger.warning(f"⚠️ Retry failed. Still no reviews found for listing {listing_id}")
    return reviews

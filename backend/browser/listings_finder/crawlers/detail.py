"""Detail crawler: runs the per-listing extraction pipeline for each discovered listing."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Tuple

from playwright.async_api import Page

from ..delays import fixed_delay, random_delay
from ..errors import NavigationError
from ..metrics import LISTINGS_SCRAPED
from ..models import DetailedListing, ListingSummary
from ..navigation import Navigator
from ..results import ResultAggregator
from ..runtime import RenderSession
from ..scrapers import (
    ReviewRetryPolicy, extract_amenities, extract_badges, extract_co_hosts, extract_description,
    extract_host_profile, extract_host_profile_id, extract_house_rules, extract_images,
    extract_location, extract_pricing, extract_property_facts, extract_review_score,
    extract_reviews, extract_title,
)
from ..text_utils import listing_url
from .base import BrowserCrawler, CrawlContext, CrawlerSettings, CrawlRequest


@dataclass
class DetailOptions:
    quick_mode: bool = False
    min_delay_ms: int = 3000
    max_delay_ms: int = 8000
    include_category_ratings: bool = False
    amenity_descriptions: bool = False
    review_retry_policy: ReviewRetryPolicy = field(default_factory=ReviewRetryPolicy)

    def delay_window(self) -> Tuple[int, int]:
        """Pause range between sub-page visits; quick mode uses a short fixed window."""
        if self.quick_mode:
            return 300, 600
        return min(self.min_delay_ms, 1000), min(self.max_delay_ms, 1500)


def detail_settings(number_of_listings: int, quick_mode: bool = False) -> CrawlerSettings:
    return CrawlerSettings(
        max_concurrency=3 if quick_mode else 2,
        max_requests_per_minute=20 if quick_mode else 12,
        max_requests_per_crawl=max(number_of_listings * 10, 100),
        request_timeout_secs=180,
        max_request_retries=2,
    )


class DetailCrawler(BrowserCrawler):
    """Scrapes each seeded listing into a DetailedListing.

    A listing that cannot be loaded at all, or whose pipeline fails
    unexpectedly, still produces an error-only record.
    """

    name = "detail"

    def __init__(self, session: RenderSession, number_of_listings: int, *,
                 options: Optional[DetailOptions] = None,
                 settings: Optional[CrawlerSettings] = None,
                 navigator: Optional[Navigator] = None,
                 logger: Optional[logging.Logger] = None) -> None:
        self.options = options or DetailOptions()
        super().__init__(
            session,
            settings=settings or detail_settings(number_of_listings, self.options.quick_mode),
            logger=logger,
        )
        self.number_of_listings = number_of_listings
        self.results: ResultAggregator[DetailedListing] = ResultAggregator(
            key=lambda listing: listing.listing_id
        )
        self.navigator = navigator or Navigator(marker_timeout_ms=5000, logger=self.logger)

    @staticmethod
    def request_for(listing_id: str, location: Optional[str] = None) -> CrawlRequest:
        return CrawlRequest(url=listing_url(listing_id),
                            user_data={"listing_id": listing_id, "location": location})

    async def crawl(self, listings: Iterable[ListingSummary]) -> List[DetailedListing]:
        await self.run([self.request_for(listing.listing_id, listing.location) for listing in listings])
        return self.results.snapshot()

    async def crawl_ids(self, listing_ids: Iterable[str], location: Optional[str] = None) -> List[DetailedListing]:
        await self.run([self.request_for(listing_id, location) for listing_id in listing_ids])
        return self.results.snapshot()

    async def handle_request(self, ctx: CrawlContext) -> None:
        request = ctx.request
        listing_id = request.user_data["listing_id"]
        location = request.user_data.get("location")
        self.logger.info(f"🏠 Scraping details for listing {listing_id}: {request.url}")
        try:
            listing = await self.scrape(ctx.page, listing_id, request.url, location)
        except NavigationError as e:
            self.logger.error(f"❌ Could not load listing {listing_id}: {e}")
            listing = DetailedListing.failed(listing_id, request.url, location, str(e))
        except Exception as e:
            self.logger.error(f"❌ Failed to scrape listing {listing_id}: {e}")
            listing = DetailedListing.failed(listing_id, request.url, location, str(e))

        await self.results.add(listing)
        LISTINGS_SCRAPED.labels("error" if listing.error else "success").inc()
        if not listing.error:
            self.logger.info(
                f"✅ Successfully scraped listing {listing_id} ({len(self.results)}/{self.number_of_listings})"
            )

    async def handle_failed_request(self, request: CrawlRequest, error: BaseException) -> None:
        await super().handle_failed_request(request, error)
        listing = DetailedListing.failed(
            request.user_data["listing_id"], request.url, request.user_data.get("location"), str(error)
        )
        if await self.results.add(listing):
            LISTINGS_SCRAPED.labels("error").inc()

    async def scrape(self, page: Page, listing_id: str, url: str,
                     search_location: Optional[str] = None) -> DetailedListing:
        """Run every field extractor against one listing. Only navigation failure raises."""
        opts = self.options
        log = self.logger
        min_delay, max_delay = opts.delay_window()

        await random_delay(min_delay, max_delay)
        await self.navigator.navigate(page, url)
        await fixed_delay(500 if opts.quick_mode else 800)

        title = await extract_title(page, logger=log)
        description = await extract_description(page, logger=log)
        images = await extract_images(page, listing_id, logger=log)
        host_profile_id = await extract_host_profile_id(page, logger=log)
        co_hosts = await extract_co_hosts(page, logger=log)
        facts = await extract_property_facts(page, logger=log)
        badges = await extract_badges(page, logger=log)

        log.info(f"📍 Extracting location for listing {listing_id}")
        location = await extract_location(page, logger=log)

        review_score = await extract_review_score(
            page, listing_id, include_categories=opts.include_category_ratings, logger=log
        )

        pricing = None
        if not opts.quick_mode:
            log.info(f"💰 Extracting pricing for listing {listing_id}")
            pricing = await extract_pricing(page, listing_id, logger=log)
        else:
            log.info(f"Skipping pricing extraction in quick mode for listing {listing_id}")

        amenities = await extract_amenities(
            page, listing_id, with_descriptions=opts.amenity_descriptions, logger=log
        )
        reviews = await extract_reviews(
            page, listing_id,
            advertised_count=review_score.reviews_count,
            quick_mode=opts.quick_mode,
            retry_policy=opts.review_retry_policy,
            min_delay_ms=min_delay, max_delay_ms=max_delay,
            logger=log,
        )
        house_rules = await extract_house_rules(
            page, listing_id, min_delay_ms=min_delay, max_delay_ms=max_delay, logger=log
        )

        host_profile = None
        if not opts.quick_mode:
            host_profile = await extract_host_profile(
                page, host_profile_id, min_delay_ms=min_delay, max_delay_ms=max_delay, logger=log
            )
        else:
            log.info(f"Skipping host profile in quick mode for listing {listing_id}")

        return DetailedListing(
            listing_id=listing_id,
            listing_url=url,
            search_location=search_location,
            title=title,
            description=description,
            images=images,
            host_profile_id=host_profile_id,
            host_profile=host_profile,
            co_hosts=co_hosts,
            max_guests=facts.get("max_guests"),
            bedrooms=facts.get("bedrooms"),
            bathrooms=facts.get("bathrooms"),
            is_guest_favorite=badges.get("is_guest_favorite", False),
            is_superhost=badges.get("is_superhost", False),
            location=location,
            pricing=pricing,
            review_score=review_score,
            overall_rating=review_score.overall_rating,
            reviews_count=review_score.reviews_count,
            amenities=amenities,
            reviews=reviews,
            house_rules=house_rules,
        )

"""Job entry points: validate a request, run the crawl, wrap the result in an envelope."""

from __future__ import annotations

import logging
import time
from typing import Any, Awaitable, Callable, Dict, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from . import runtime
from .config import ServiceConfig, get_config
from .crawlers import DetailCrawler, DetailOptions, SearchCrawler
from .errors import EnhancedError, HostNotFoundError, JobValidationError
from .metrics import JOB_COUNT, JOB_DURATION
from .models import HostLookup, ResultEnvelope
from .navigation import LoadStrategy, Navigator
from .scrapers import extract_co_hosts, extract_host_profile_id, read_host_profile
from .scrapers.host_profile import PROFILE_URL_TEMPLATES
from .text_utils import listing_url

# ----------------------------------------------------------------------------
# Requests
# ----------------------------------------------------------------------------


class JobRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class LocationRequest(JobRequest):
    location: str

    @field_validator("location")
    @classmethod
    def check_location(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Location is required")
        return value.strip()


class SearchListingsRequest(LocationRequest):
    max_listings: int = 100

    @field_validator("max_listings")
    @classmethod
    def check_max_listings(cls, value: int) -> int:
        if not 1 <= value <= 1000:
            raise ValueError("maxListings must be between 1 and 1000")
        return value


class ScrapeListingsRequest(LocationRequest):
    number_of_listings: int = 10
    min_delay_between_requests: int = 500
    max_delay_between_requests: int = 1000
    quick_mode: bool = False

    @field_validator("number_of_listings")
    @classmethod
    def check_number_of_listings(cls, value: int) -> int:
        if not 1 <= value <= 100:
            raise ValueError("numberOfListings must be between 1 and 100")
        return value

    @field_validator("min_delay_between_requests", "max_delay_between_requests")
    @classmethod
    def check_delay(cls, value: int) -> int:
        if value < 0:
            raise ValueError("delays must not be negative")
        return value


class ListingRequest(JobRequest):
    listing_id: str

    @field_validator("listing_id", mode="before")
    @classmethod
    def check_listing_id(cls, value: Any) -> str:
        text = "" if value is None else str(value).strip()
        if not text:
            raise ValueError("listingId is required")
        if not text.isdigit():
            raise ValueError("listingId must be numeric")
        return text


class ScrapeListingRequest(ListingRequest):
    min_delay_between_requests: int = 3000
    max_delay_between_requests: int = 8000


class HostLookupRequest(ListingRequest):
    pass


R = TypeVar("R", bound=JobRequest)


def validate_request(model: Type[R], payload: Any) -> R:
    """Parse a job payload, raising JobValidationError with readable messages."""
    if isinstance(payload, model):
        return payload
    try:
        return model.model_validate(payload or {})
    except ValidationError as e:
        messages = []
        for err in e.errors():
            field = ".".join(str(part) for part in err["loc"]) or "request"
            messages.append(f"{field}: {err['msg'].removeprefix('Value error, ')}")
        raise JobValidationError("; ".join(messages)) from e


# ----------------------------------------------------------------------------
# Service
# ----------------------------------------------------------------------------

LOOKUP_PROFILE_LOAD = LoadStrategy("domcontentloaded", 60000, 2000)

SessionFactory = Callable[..., Any]


class ListingsService:
    """Runs jobs on fresh render sessions and reports them as result envelopes.

    Validation happens before any browser is launched. Failures raised by the
    crawl layer become ``{success: false}`` envelopes; anything else
    propagates to the caller.
    """

    def __init__(self, config: Optional[ServiceConfig] = None,
                 logger: Optional[logging.Logger] = None,
                 session_factory: SessionFactory = runtime.acquire) -> None:
        self.config = config or get_config()
        self.logger = logger or logging.getLogger("listings_finder.service")
        self._session_factory = session_factory
        self.active_jobs = 0

    def _session(self, logger: logging.Logger):
        return self._session_factory(self.config, logger)

    async def _run(self, job: str, work: Callable[[], Awaitable[Any]]) -> ResultEnvelope:
        started = time.monotonic()
        self.active_jobs += 1
        try:
            data = await work()
        except EnhancedError as e:
            JOB_COUNT.labels(job, "failed").inc()
            self.logger.error(f"❌ {job} failed: {e}")
            return ResultEnvelope.failure(str(e))
        except Exception:
            JOB_COUNT.labels(job, "error").inc()
            self.logger.exception(f"❌ {job} crashed")
            raise
        finally:
            self.active_jobs -= 1
            JOB_DURATION.labels(job).observe(time.monotonic() - started)

        elapsed = time.monotonic() - started
        JOB_COUNT.labels(job, "success").inc()
        self.logger.info(f"✅ {job} completed in {elapsed:.1f}s")
        return ResultEnvelope.ok(data, elapsed)

    # ------------------------------------------------------------------

    async def search_listings(self, payload: Any) -> ResultEnvelope:
        """Collect up to ``maxListings`` entire-home summaries for a location."""
        request = validate_request(SearchListingsRequest, payload)
        log = self.logger.getChild("search")

        async def work() -> Dict[str, Any]:
            log.info(f"🔍 Starting listing search for {request.location}, maxListings: {request.max_listings}")
            async with self._session(log) as session:
                crawler = SearchCrawler(session, request.location, request.max_listings, logger=log)
                listings = await crawler.crawl(entire_homes_only=True)
            return {
                "location": request.location,
                "totalFound": len(listings),
                "listings": [listing.to_dict() for listing in listings],
            }

        return await self._run("search_listings", work)

    async def scrape_listings(self, payload: Any) -> ResultEnvelope:
        """Search a location, then scrape every found listing in detail."""
        request = validate_request(ScrapeListingsRequest, payload)
        log = self.logger.getChild("scrape")

        async def work() -> Dict[str, Any]:
            log.info(
                f"🚀 Starting scrape for {request.location}, count: {request.number_of_listings}, "
                f"quickMode: {request.quick_mode}"
            )
            async with self._session(log) as session:
                search = SearchCrawler(session, request.location, request.number_of_listings, logger=log)
                found = await search.crawl()
                log.info(f"Phase 1 complete: {len(found)} listings found")

                detail = DetailCrawler(
                    session, len(found),
                    options=self._detail_options(
                        request.min_delay_between_requests,
                        request.max_delay_between_requests,
                        request.quick_mode,
                    ),
                    logger=log,
                )
                listings = await detail.crawl(found) if found else []
            return {
                "location": request.location,
                "requestedCount": request.number_of_listings,
                "foundCount": len(listings),
                "listings": [listing.to_dict() for listing in listings],
            }

        return await self._run("scrape_listings", work)

    async def scrape_listing(self, payload: Any) -> ResultEnvelope:
        """Scrape one listing by id. A listing that cannot be loaded fails the job."""
        request = validate_request(ScrapeListingRequest, payload)
        log = self.logger.getChild(f"listing.{request.listing_id}")

        async def work() -> Dict[str, Any]:
            url = listing_url(request.listing_id)
            async with self._session(log) as session:
                crawler = DetailCrawler(
                    session, 1,
                    options=self._detail_options(
                        request.min_delay_between_requests, request.max_delay_between_requests
                    ),
                    logger=log,
                )
                async with session.page() as page:
                    listing = await crawler.scrape(page, request.listing_id, url)
            return listing.to_dict()

        return await self._run("scrape_listing", work)

    async def lookup_hosts(self, payload: Any) -> ResultEnvelope:
        """Resolve the host and co-hosts of a listing and read the host's profile."""
        request = validate_request(HostLookupRequest, payload)
        log = self.logger.getChild(f"host.{request.listing_id}")

        async def work() -> Dict[str, Any]:
            url = listing_url(request.listing_id)
            async with self._session(log) as session:
                async with session.page() as page:
                    await Navigator(logger=log).navigate(page, url)

                    log.info("Extracting host profile ID from listing page...")
                    host_id = await extract_host_profile_id(page, logger=log)
                    if not host_id:
                        raise HostNotFoundError(
                            f"Could not find host profile ID on the listing page {url}"
                        )
                    co_hosts = await extract_co_hosts(page, logger=log)

                    profile_url = PROFILE_URL_TEMPLATES[1].format(host_id=host_id)
                    host = await read_host_profile(
                        page, host_id,
                        load=LOOKUP_PROFILE_LOAD,
                        url_templates=(PROFILE_URL_TEMPLATES[1],),
                        logger=log,
                    )
            return HostLookup(
                listing_id=request.listing_id,
                listing_url=url,
                host_profile_id=host_id,
                host_profile_url=profile_url,
                host=host,
                co_hosts=co_hosts,
            ).to_dict()

        return await self._run("lookup_hosts", work)

    def _detail_options(self, min_delay_ms: int, max_delay_ms: int, quick_mode: bool = False) -> DetailOptions:
        return DetailOptions(
            quick_mode=quick_mode,
            min_delay_ms=min_delay_ms,
            max_delay_ms=max_delay_ms,
            include_category_ratings=self.config.crawl.include_category_ratings,
            amenity_descriptions=self.config.crawl.amenity_descriptions,
        )

import pytest

from conftest import FakePage, FakeSession, by_arg, session_factory_for
from listings_finder import service as service_module
from listings_finder.config import get_config
from listings_finder.errors import JobValidationError, NavigationError
from listings_finder.models import ListingSummary
from listings_finder.scrapers.dom import HREFS_OF_JS
from listings_finder.scrapers.host_profile import PROFILE_PAGE_JS
from listings_finder.scrapers.listing_details import CO_HOST_LIST_JS
from listings_finder.service import (
    ListingRequest, ListingsService, ScrapeListingsRequest, validate_request,
)


def summary(listing_id):
    return ListingSummary(
        listing_id=listing_id,
        listing_url=f"https://www.airbnb.com/rooms/{listing_id}",
        location="Lisbon",
        title=f"Flat {listing_id}",
    )


class StubSearchCrawler:
    result = [summary("1"), summary("2")]
    error = None
    calls = []

    def __init__(self, session, location, max_listings, **kwargs):
        self.location = location
        self.max_listings = max_listings

    async def crawl(self, entire_homes_only=False):
        StubSearchCrawler.calls.append((self.location, self.max_listings, entire_homes_only))
        if self.error is not None:
            raise self.error
        return self.result


@pytest.fixture
def launches():
    return []


@pytest.fixture
def make_service(launches):
    def build(session=None):
        factory = session_factory_for(session or FakeSession(), launches)
        return ListingsService(config=get_config(), session_factory=factory)

    return build


@pytest.fixture
def stub_search(monkeypatch):
    StubSearchCrawler.calls = []
    StubSearchCrawler.error = None
    StubSearchCrawler.result = [summary("1"), summary("2")]
    monkeypatch.setattr(service_module, "SearchCrawler", StubSearchCrawler)
    return StubSearchCrawler


def test_requests_accept_camel_and_snake_case():
    request = validate_request(ScrapeListingsRequest, {"location": " Lisbon ", "numberOfListings": 5, "quick_mode": True})
    assert (request.location, request.number_of_listings, request.quick_mode) == ("Lisbon", 5, True)
    assert (request.min_delay_between_requests, request.max_delay_between_requests) == (500, 1000)
    assert validate_request(ListingRequest, {"listingId": 12345}).listing_id == "12345"


def test_validation_messages():
    with pytest.raises(JobValidationError, match="listingId must be numeric"):
        validate_request(ListingRequest, {"listingId": "abc"})
    with pytest.raises(JobValidationError, match="between 1 and 100"):
        validate_request(ScrapeListingsRequest, {"location": "Lisbon", "numberOfListings": 101})


async def test_invalid_job_never_launches_a_browser(make_service, launches):
    service = make_service()
    with pytest.raises(JobValidationError, match="Location is required"):
        await service.search_listings({"location": "   "})
    with pytest.raises(JobValidationError):
        await service.lookup_hosts({})
    assert launches == []


async def test_search_listings_envelope(make_service, launches, stub_search):
    envelope = await make_service().search_listings({"location": "Lisbon", "maxListings": 2})
    body = envelope.to_dict()

    assert body["success"] is True
    assert body["data"]["totalFound"] == 2
    assert body["data"]["listings"][0]["listingId"] == "1"
    assert "processingTimeSeconds" in body["meta"]
    assert stub_search.calls == [("Lisbon", 2, True)]
    assert len(launches) == 1


async def test_crawl_failure_becomes_failed_envelope(make_service, stub_search):
    stub_search.error = NavigationError("Failed to load search page", attempts=1)
    service = make_service()
    envelope = await service.search_listings({"location": "Lisbon"})

    assert envelope.to_dict() == {"success": False, "error": "Failed to load search page"}
    assert service.active_jobs == 0


async def test_unexpected_error_propagates(make_service, stub_search):
    stub_search.error = RuntimeError("bug")
    with pytest.raises(RuntimeError):
        await make_service().search_listings({"location": "Lisbon"})


async def test_scrape_listings_with_nothing_found(make_service, stub_search):
    stub_search.result = []
    envelope = await make_service().scrape_listings({"location": "Nowhere", "numberOfListings": 3})

    assert envelope.data == {"location": "Nowhere", "requestedCount": 3, "foundCount": 0, "listings": []}
    assert stub_search.calls == [("Nowhere", 3, False)]


async def test_scrape_listing_fails_when_page_never_loads(make_service):
    session = FakeSession(lambda: FakePage(goto_error=TimeoutError("net::ERR_TIMED_OUT")))
    envelope = await make_service(session).scrape_listing({"listingId": "42"})

    assert envelope.success is False
    assert "Failed to load" in envelope.error


async def test_lookup_hosts_without_host_id(make_service):
    envelope = await make_service().lookup_hosts({"listingId": "42"})
    assert envelope.success is False
    assert "Could not find host profile ID" in envelope.error


async def test_lookup_hosts(make_service):
    page = FakePage(scripts={
        HREFS_OF_JS: by_arg({'[data-section-id="MEET_YOUR_HOST"] a[href*="/users/"]': ["/users/show/555"]},
                            default=[]),
        CO_HOST_LIST_JS: [{"href": "/users/show/556", "ariaLabel": "Learn more about the host, Ana.",
                           "itemText": ""}],
        PROFILE_PAGE_JS: {"name": "Rui", "details": ["My work: Lisbon Stays Ltd"]},
    })
    envelope = await make_service(FakeSession(lambda: page)).lookup_hosts({"listingId": 42})
    data = envelope.data

    assert data["hostProfileId"] == "555"
    assert data["hostProfileUrl"] == "https://www.airbnb.com/users/profile/555"
    assert data["coHosts"] == [{"name": "Ana", "profileId": "556"}]
    assert data["host"]["isCompany"] is True
    assert data["host"]["companyName"] == "Lisbon Stays Ltd"
    assert page.visited_urls()[-1] == "https://www.airbnb.com/users/profile/555"

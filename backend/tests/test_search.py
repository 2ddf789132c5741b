from conftest import FakeElement, FakePage, FakeSession
from listings_finder.crawlers.search import (
    SEARCH_CARDS_JS, SearchCrawler, build_search_url, parse_card, parse_cards, parse_price_row,
)

NEXT = '[aria-label="Next"]'
FIRST_PAGE = "https://www.airbnb.com/s/Lisbon/homes"
SECOND_PAGE = "https://www.airbnb.com/s/Lisbon/homes?cursor=2"


def card(listing_id, **extra):
    raw = {"href": f"/rooms/{listing_id}?check_in=2024-06-01", "title": f"Flat {listing_id}",
           "subtitles": [], "priceText": "$309 for 3 nights"}
    raw.update(extra)
    return raw


def test_build_search_url():
    assert build_search_url("New York, NY") == "https://www.airbnb.com/s/New%20York%2C%20NY/homes"
    assert build_search_url("Lisbon", entire_homes_only=True).endswith(
        "/s/Lisbon/homes?room_types%5B%5D=Entire%20home%2Fapt")


def test_parse_price_row():
    assert parse_price_row("$309 for 3 nights") == {
        "raw_price_text": "$309 for 3 nights",
        "total_price": 309.0,
        "stay_length_nights": 3,
        "price_per_night": 103.0,
    }
    discounted = parse_price_row("$412 $350 for 5 nights")
    assert discounted["total_price"] == 350.0
    assert discounted["price_per_night"] == 70.0
    assert parse_price_row("$85 night")["price_per_night"] == 85.0
    assert parse_price_row(None)["raw_price_text"] is None


def test_parse_card():
    listing = parse_card(card(
        "123",
        subtitles=["Ocean view retreat", "2 bedrooms · 3 beds"],
        reviewsLabel="87 reviews on the listing",
        ratingLabel="4.91 out of 5 average rating",
    ), "Lisbon")

    assert listing.listing_id == "123"
    assert listing.listing_url == "https://www.airbnb.com/rooms/123"
    assert listing.description == "Ocean view retreat"
    assert listing.bedrooms == 2.0
    assert listing.number_of_reviews == 87
    assert listing.overall_review_score == 4.91
    assert listing.price_per_night == 103.0
    assert listing.to_dict()["listingId"] == "123"


def test_parse_cards_skips_unlinked_and_repeated_cards():
    listings = parse_cards([card("1"), {"href": None}, card("1"), card("2")], "Lisbon")
    assert [listing.listing_id for listing in listings] == ["1", "2"]


def search_session(cards_by_url, next_button=None):
    def make_page():
        page = FakePage(elements={NEXT: next_button} if next_button else {})
        page.scripts[SEARCH_CARDS_JS] = lambda _: cards_by_url.get(page.url, [])
        return page

    return FakeSession(make_page)


async def test_crawl_follows_next_page_and_stops_at_cap():
    session = search_session(
        {
            FIRST_PAGE: [card("1"), card("2"), card("3")],
            SECOND_PAGE: [card("3"), card("4"), card("5"), card("6")],
        },
        next_button=FakeElement(href="/s/Lisbon/homes?cursor=2"),
    )
    listings = await SearchCrawler(session, "Lisbon", 5).crawl()

    assert [listing.listing_id for listing in listings] == ["1", "2", "3", "4", "5"]
    assert [p.url for p in session.pages] == [FIRST_PAGE, SECOND_PAGE]


async def test_crawl_stops_without_next_page():
    session = search_session({FIRST_PAGE: [card("1"), card("2")]})
    listings = await SearchCrawler(session, "Lisbon", 10).crawl()

    assert len(listings) == 2
    assert len(session.pages) == 1


async def test_disabled_next_button_ends_pagination():
    session = search_session(
        {FIRST_PAGE: [card("1")]},
        next_button=FakeElement(href="/s/Lisbon/homes?cursor=2", disabled=True),
    )
    listings = await SearchCrawler(session, "Lisbon", 10).crawl()
    assert [listing.listing_id for listing in listings] == ["1"]
    assert len(session.pages) == 1

import logging

from conftest import FakeElement, FakePage
from listings_finder.models import ReviewsByCategory
from listings_finder.scrapers.reviews import (
    REVIEW_ROWS_JS, SCROLL_REVIEWS_PANEL_JS, SELECT_SORT_OPTION_JS, SORT_TOGGLE_SELECTOR,
    ReviewRetryPolicy, extract_reviews, harvest_reviews, parse_reviewer_location, parse_reviews,
)

ROWS = [
    {"reviewId": "r1", "name": "Ana", "text": "Lovely  stay", "stars": 5,
     "location": "Lisbon, Portugal", "date": "June 2024"},
    {"reviewId": "r1", "name": "Ana", "text": "Lovely stay", "stars": 5},
    {"reviewId": "r2", "name": "", "text": "No name"},
    {"reviewId": "r3", "name": "Ben", "text": None, "stars": 3, "location": "Canada"},
]

log = logging.getLogger("tests.reviews")


def reviews_page(rows=ROWS, missing_label=None):
    selected = []

    def select(label):
        selected.append(label)
        return label != missing_label

    page = FakePage(
        scripts={
            SELECT_SORT_OPTION_JS: select,
            SCROLL_REVIEWS_PANEL_JS: True,
            REVIEW_ROWS_JS: rows,
        },
        elements={SORT_TOGGLE_SELECTOR: FakeElement()},
    )
    return page, selected


def test_parse_reviews_drops_nameless_and_repeated_rows():
    reviews = parse_reviews(ROWS)
    assert [r.review_id for r in reviews] == ["r1", "r3"]
    assert reviews[0].text == "Lovely stay"
    assert reviews[0].score == 5
    assert reviews[0].review_details.city == "Lisbon"
    assert reviews[0].review_details.date == "June 2024"
    assert reviews[1].review_details.country == "Canada"


def test_parse_reviewer_location():
    assert parse_reviewer_location("Porto, Portugal").city == "Porto"
    assert parse_reviewer_location("Portugal").country == "Portugal"
    assert parse_reviewer_location(None).country is None


async def test_quick_mode_reads_only_the_default_ordering():
    page, selected = reviews_page()
    reviews = await harvest_reviews(page, "42", quick_mode=True, logger=log)

    assert selected == ["Most relevant"]
    assert len(reviews.most_relevant) == 2
    assert reviews.most_recent == [] and reviews.lowest_rated == []


async def test_full_harvest_fills_each_sort_order():
    page, selected = reviews_page(missing_label="Lowest rated")
    reviews = await harvest_reviews(page, "42", logger=log)

    assert selected == ["Most relevant", "Most recent", "Highest rated", "Lowest rated"]
    assert len(reviews.highest_rated) == 2
    assert reviews.lowest_rated == []
    assert page.visited_urls() == ["https://www.airbnb.com/rooms/42/reviews"]


def test_retry_policy():
    policy = ReviewRetryPolicy()
    assert policy.should_retry(0, 12, 0) is True
    assert policy.should_retry(0, 12, 1) is False
    assert policy.should_retry(3, 12, 0) is False
    assert policy.should_retry(0, None, 0) is False
    assert policy.should_retry(0, 0, 0) is False


async def test_retries_once_when_advertised_reviews_are_missing():
    batches = [[], ROWS]
    page, _ = reviews_page()
    page.scripts[REVIEW_ROWS_JS] = lambda _: batches.pop(0)

    reviews = await extract_reviews(page, "42", advertised_count=12, quick_mode=True)

    assert reviews.total() == 2
    assert len(page.visited) == 2


async def test_load_failure_gives_empty_buckets():
    page = FakePage(goto_error=RuntimeError("blocked"))
    assert await extract_reviews(page, "42") == ReviewsByCategory()



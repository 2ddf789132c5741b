from conftest import FakePage
from listings_finder.models import PricingInfo
from listings_finder.scrapers.pricing import (
    AVAILABLE_CELLS_JS, CLICK_CELL_JS, SIDEBAR_TEXTS_JS, STAY_PRICE_TEXTS_JS,
    extract_pricing, find_price, pricing_from_stay_total,
)


def cells(count):
    return lambda limit: [{"testId": f"day-{i}", "ariaLabel": f"Day {i}"} for i in range(min(count, limit))]


def test_find_price_with_required_text():
    texts = ["$50 cleaning fee", "$309 for 3 nights"]
    assert find_price(texts, require="3 night") == ("$", 309.0)
    assert find_price(["€1,250 total"]) == ("€", 1250.0)
    assert find_price(["free"]) is None


def test_nightly_price_is_rounded_half_up():
    pricing = pricing_from_stay_total("$", 309)
    assert pricing.price_per_night == 103
    assert pricing.total_for_3_nights == 309
    assert pricing_from_stay_total("$", 307.5).price_per_night == 103


async def test_calendar_selection_prices_three_nights():
    clicked = []
    page = FakePage(scripts={
        AVAILABLE_CELLS_JS: cells(6),
        CLICK_CELL_JS: lambda test_id: clicked.append(test_id) or True,
        STAY_PRICE_TEXTS_JS: ["$309 for 3 nights"],
    })
    pricing = await extract_pricing(page, "42")

    assert clicked == ["day-0", "day-3"]
    assert pricing.currency == "$"
    assert pricing.price_per_night == 103
    assert pricing.total_for_3_nights == 309


async def test_too_few_dates_falls_back_to_sidebar():
    page = FakePage(scripts={
        AVAILABLE_CELLS_JS: cells(3),
        SIDEBAR_TEXTS_JS: ["Reserve", "$120 night"],
    })
    pricing = await extract_pricing(page, "42")

    assert pricing == PricingInfo(currency="$", price_per_night=120)
    assert page.visited_urls()[-1] == "https://www.airbnb.com/rooms/42"


async def test_no_price_anywhere_is_empty():
    assert await extract_pricing(FakePage(), "42") == PricingInfo()


async def test_load_failure_degrades():
    page = FakePage(goto_error=RuntimeError("net::ERR_ABORTED"))
    assert await extract_pricing(page, "42") == PricingInfo()

import logging

import pytest

from conftest import FakePage
from listings_finder.errors import NavigationError
from listings_finder.scrapers.host_profile import (
    PROFILE_PAGE_JS, extract_host_profile, parse_details, parse_host_profile, parse_stats,
    read_host_profile,
)

RAW_PROFILE = {
    "name": "Sunset Team",
    "bodyText": "Superhost · Identity verified",
    "verified": True,
    "profileImage": "https://a0.muscache.com/im/pictures/user/u.jpg?im_w=240",
    "about": "We manage beach houses.",
    "stats": [
        {"testId": "Reviews-stat-heading", "value": "1,204"},
        {"testId": "Rating-stat-heading", "value": "4.92"},
        {"testId": "Years hosting-stat-heading", "value": "7"},
    ],
    "details": [
        "My work: Sunset Rentals",
        "Pets: Two cats",
        "Lives in Lisbon, Portugal",
        "Speaks English, Portuguese and Spanish",
    ],
    "listings": [
        {"title": "Beach house", "subtitle": "Cascais", "ratingText": "4.95 · 120 reviews",
         "href": "/rooms/99?source=profile"},
    ],
}

log = logging.getLogger("tests.host_profile")


def test_parse_stats():
    assert parse_stats(RAW_PROFILE["stats"]) == {"reviews_count": 1204, "rating": 4.92, "years_hosting": 7}


def test_parse_details():
    details = parse_details(RAW_PROFILE["details"])
    assert details["work"] == "Sunset Rentals"
    assert details["pets"] == "Two cats"
    assert details["location"] == "Lisbon, Portugal"
    assert details["languages"] == ["English", "Portuguese", "Spanish"]


def test_parse_host_profile_classifies_company():
    profile = parse_host_profile(RAW_PROFILE)
    assert profile.is_superhost is True
    assert profile.is_identity_verified is True
    assert profile.profile_image_url == "https://a0.muscache.com/im/pictures/user/u.jpg"
    assert profile.is_company is True
    assert profile.company_name == "Sunset Rentals"
    assert profile.listings[0].url == "https://www.airbnb.com/rooms/99"
    assert profile.listings[0].rating == 4.95
    assert profile.listings[0].reviews_count == 120


async def test_second_profile_url_is_tried():
    page = FakePage(scripts={PROFILE_PAGE_JS: RAW_PROFILE}, goto_errors=[RuntimeError("404"), None])
    profile = await read_host_profile(page, "555", logger=log)

    assert profile.name == "Sunset Team"
    assert page.visited_urls() == [
        "https://www.airbnb.com/users/show/555",
        "https://www.airbnb.com/users/profile/555",
    ]


async def test_every_profile_url_failing_raises():
    page = FakePage(goto_error=RuntimeError("blocked"))
    with pytest.raises(NavigationError) as excinfo:
        await read_host_profile(page, "555", logger=log)
    assert excinfo.value.attempts == 2


async def test_extract_host_profile_without_id():
    page = FakePage()
    assert await extract_host_profile(page, None) is None
    assert page.visited == []


async def test_extract_host_profile_degrades_to_none():
    page = FakePage(goto_error=RuntimeError("blocked"))
    assert await extract_host_profile(page, "555") is None

from conftest import FakePage
from listings_finder.models import LocationInfo
from listings_finder.scrapers.location import (
    LOCATION_SECTION_JS, extract_location, parse_location, parse_map_center, parse_place,
)


def test_parse_place():
    assert parse_place("Austin, Texas, United States") == {
        "city": "Austin", "state": "Texas", "country": "United States"}
    assert parse_place("Lisbon, Portugal") == {"city": "Lisbon", "state": None, "country": "Portugal"}
    assert parse_place("Lisbon")["city"] == "Lisbon"
    assert parse_place("  ") == {"city": None, "state": None, "country": None}


def test_parse_map_center():
    coords = parse_map_center("https://maps.googleapis.com/maps/api/staticmap?center=38.7223%2C-9.1393&zoom=14")
    assert (coords.latitude, coords.longitude) == (38.7223, -9.1393)
    assert parse_map_center("https://maps.googleapis.com/maps/api/staticmap") is None


def test_parse_location_uses_first_available_text():
    location = parse_location({
        "heading": None,
        "styledText": "Lisbon, Portugal",
        "addressParts": ["Rua Augusta", "100"],
        "mapSrc": None,
        "staticMapSrc": "https://maps.googleapis.com/staticmap?center=38.7,-9.1",
    })
    assert location.city == "Lisbon"
    assert location.country == "Portugal"
    assert location.address == "Rua Augusta 100"
    assert location.coordinates.latitude == 38.7


async def test_extract_location_degrades_on_error():
    def broken(_):
        raise RuntimeError("section detached")

    page = FakePage(scripts={LOCATION_SECTION_JS: broken})
    assert await extract_location(page) == LocationInfo()

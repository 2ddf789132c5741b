from __future__ import annotations

import logging
import re
from typing import Dict, Optional

from playwright.async_api import Page

from ..models import Coordinates, LocationInfo
from .dom import extractor

MAP_CENTER_PATTERN = re.compile(r"center=(-?[\d.]+)(?:%2C|,)(-?[\d.]+)", re.IGNORECASE)

LOCATION_SECTION_JS = """() => {
    const section = document.querySelector('[data-section-id="LOCATION_DEFAULT"]');
    if (!section) return null;
    const text = (el) => (el ? el.textContent.trim() : null);

    const h3 = section.querySelector('h3');
    const styled = section.querySelector('.s1qk96pm, div[class*="qk96pm"]');
    const h2 = section.querySelector('h2');
    const afterHeading = h2 && h2.parentElement ? h2.parentElement.nextElementSibling : null;

    const mapImage = section.querySelector('img[src*="maps.googleapis.com"]');
    const staticMap = section.querySelector('[data-testid="map/GoogleMapStatic"]');

    return {
        heading: text(h3),
        styledText: text(styled),
        afterHeading: text(afterHeading),
        addressParts: Array.from(section.querySelectorAll('.l1h825yc'))
            .map(el => el.textContent.trim()).filter(t => t.length > 0),
        mapSrc: mapImage ? mapImage.getAttribute('src') : null,
        staticMapSrc: staticMap ? staticMap.getAttribute('src') : null,
    };
}"""


def parse_place(text: Optional[str]) -> Dict[str, Optional[str]]:
    """Split ``city[, state], country``; a single part is taken as the city."""
    place: Dict[str, Optional[str]] = {"city": None, "state": None, "country": None}
    if not text or not text.strip():
        return place
    parts = [p.strip() for p in text.split(",")]
    if len(parts) == 3:
        place["city"], place["state"], place["country"] = parts
    elif len(parts) == 2:
        place["city"], place["country"] = parts
    elif len(parts) == 1:
        place["city"] = parts[0]
    return place


def parse_map_center(src: Optional[str]) -> Optional[Coordinates]:
    if not src:
        return None
    match = MAP_CENTER_PATTERN.search(src)
    if not match:
        return None
    try:
        return Coordinates(latitude=float(match.group(1)), longitude=float(match.group(2)))
    except ValueError:
        return None


def parse_location(raw: Optional[Dict]) -> LocationInfo:
    if not raw:
        return LocationInfo()
    text = raw.get("heading") or raw.get("styledText") or raw.get("afterHeading")
    address = " ".join(raw.get("addressParts") or []) or None
    coordinates = parse_map_center(raw.get("mapSrc")) or parse_map_center(raw.get("staticMapSrc")) or Coordinates()
    return LocationInfo(address=address, coordinates=coordinates, **parse_place(text))


@extractor("location", default=LocationInfo)
async def extract_location(page: Page, *, logger: logging.Logger) -> LocationInfo:
    location = parse_location(await page.evaluate(LOCATION_SECTION_JS))
    logger.debug(f"Location parsed: {location.city}, {location.country}")
    return location

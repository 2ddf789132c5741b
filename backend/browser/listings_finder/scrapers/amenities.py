from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional

from playwright.async_api import Page

from ..delays import fixed_delay
from ..models import Amenity
from ..text_utils import AIRBNB_BASE_URL, clean_text
from .dom import extractor

SCROLL_MODAL_JS = """() => {
    const panel = document.querySelector('[data-testid="pdp-reviews-modal-scrollable-panel"], .dir.dir-ltr');
    if (!panel) return false;
    panel.scrollTo(0, panel.scrollHeight);
    return true;
}"""

AMENITY_ROWS_JS = """() => Array.from(document.querySelectorAll('[id^="pdp_v3_"]')).map(item => {
    const title = item.querySelector('[id$="-row-title"]');
    const subtitle = item.querySelector('[id$="-row-subtitle"]');
    return {
        name: title ? title.textContent.trim() : '',
        description: subtitle ? subtitle.textContent.trim() : '',
    };
})"""

FLAGGED_AMENITIES_JS = """() => Array.from(document.querySelectorAll('[data-testid*="amenity"]'))
    .map(el => el.textContent.trim())"""


def parse_amenities(rows: Iterable[Dict[str, str]], with_descriptions: bool = False) -> List[Amenity]:
    """Deduplicate amenity rows by name, keeping page order."""
    seen = set()
    amenities: List[Amenity] = []
    for row in rows:
        name = clean_text(row.get("name"))
        if not name or name in seen:
            continue
        seen.add(name)
        description: Optional[str] = clean_text(row.get("description")) or None
        amenities.append(Amenity(name=name, description=description if with_descriptions else None))
    return amenities


@extractor("amenities", default=list)
async def extract_amenities(page: Page, listing_id: str, *,
                            with_descriptions: bool = False,
                            logger: logging.Logger) -> List[Amenity]:
    await page.goto(f"{AIRBNB_BASE_URL}/rooms/{listing_id}/amenities",
                    wait_until="domcontentloaded", timeout=30000)
    await fixed_delay(400)
    if await page.evaluate(SCROLL_MODAL_JS):
        await fixed_delay(500)

    amenities = parse_amenities(await page.evaluate(AMENITY_ROWS_JS) or [], with_descriptions)
    if not amenities:
        flagged = await page.evaluate(FLAGGED_AMENITIES_JS) or []
        amenities = parse_amenities({"name": text} for text in flagged)

    logger.info(f"🧺 Found {len(amenities)} amenities")
    return amenities

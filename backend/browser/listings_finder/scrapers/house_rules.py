from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Optional

from playwright.async_api import Page

from ..delays import fixed_delay, random_delay
from ..errors import InteractionError
from ..models import HouseRules
from ..text_utils import AIRBNB_BASE_URL, clean_text
from .dom import click_if_present, extractor

CHECK_IN_PREFIX = re.compile(r"Check-in\s+(after|:)\s*", re.IGNORECASE)
CHECK_OUT_PREFIX = re.compile(r"Checkout\s+before\s*", re.IGNORECASE)
MAX_GUESTS_PATTERN = re.compile(r"(\d+)\s+guests?\s+maximum", re.IGNORECASE)

RULE_ROWS_JS = """() => {
    const rows = Array.from(document.querySelectorAll('.t1yw48g8')).map(el => {
        const next = el.nextElementSibling;
        return {
            text: el.textContent.trim(),
            detail: next && next.classList.contains('s1q8hkgb') ? next.textContent.trim() : null,
        };
    });

    let additionalRules = null;
    const additional = Array.from(document.querySelectorAll('.t1yw48g8'))
        .find(el => el.textContent.includes('Additional rules'));
    const container = additional ? additional.closest('.c1rc5p4c') : null;
    const body = container ? container.querySelector('.s1q8hkgb') : null;
    if (body) {
        const nested = body.querySelector('span span');
        additionalRules = (nested || body).textContent.trim();
    }

    const beforeYouLeave = [];
    const heading = Array.from(document.querySelectorAll('h2'))
        .find(h => h.textContent.includes('Before you leave'));
    const section = heading ? heading.closest('.ce5nonf') : null;
    if (section) {
        section.querySelectorAll('.t1yw48g8').forEach(item => beforeYouLeave.push(item.textContent.trim()));
    }
    return { rows, additionalRules, beforeYouLeave };
}"""


def _find(rows: List[Dict[str, Any]], needle: str) -> Optional[Dict[str, Any]]:
    return next((row for row in rows if needle in (row.get("text") or "")), None)


def parse_house_rules(raw: Optional[Dict[str, Any]]) -> HouseRules:
    if not raw:
        return HouseRules()
    rows = raw.get("rows") or []
    rules = HouseRules()

    check_in = _find(rows, "Check-in")
    if check_in:
        rules.check_in = CHECK_IN_PREFIX.sub("", check_in["text"], count=1).strip()

    check_out = _find(rows, "Checkout")
    if check_out:
        rules.check_out = CHECK_OUT_PREFIX.sub("", check_out["text"], count=1).strip()

    rules.self_check_in = _find(rows, "Self check-in") is not None

    guests = _find(rows, "guests maximum") or _find(rows, "guest maximum")
    if guests:
        match = MAX_GUESTS_PATTERN.search(guests["text"])
        if match:
            rules.max_guests = int(match.group(1))

    rules.pets = _find(rows, "No pets") is None

    quiet = _find(rows, "Quiet hours")
    if quiet and quiet.get("detail"):
        rules.quiet_hours = quiet["detail"]

    rules.no_parties = _find(rows, "No parties") is not None
    rules.no_commercial_photography = _find(rows, "No commercial photography") is not None
    rules.no_smoking = _find(rows, "No smoking") is not None
    rules.additional_rules = clean_text(raw.get("additionalRules"))
    rules.before_you_leave = [clean_text(t) for t in raw.get("beforeYouLeave") or [] if clean_text(t)]
    return rules


@extractor("house_rules", default=HouseRules)
async def extract_house_rules(page: Page, listing_id: str, *,
                              min_delay_ms: int = 0, max_delay_ms: int = 0,
                              logger: logging.Logger) -> HouseRules:
    if max_delay_ms:
        await random_delay(min_delay_ms, max_delay_ms)
    await page.goto(f"{AIRBNB_BASE_URL}/rooms/{listing_id}/house-rules",
                    wait_until="domcontentloaded", timeout=30000)
    await fixed_delay(1500)

    try:
        if await click_if_present(page, 'button:has-text("Show more")'):
            await fixed_delay(1000)
    except InteractionError as e:
        logger.warning(f"⚠️ Could not expand house rules: {e}")

    rules = parse_house_rules(await page.evaluate(RULE_ROWS_JS))
    logger.info(f"📜 Scraped house rules for listing {listing_id}")
    return rules

"""Host profile page extraction."""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, Iterable, List, Optional, Sequence

from playwright.async_api import Page

from ..classifier import classify_host
from ..delays import fixed_delay, random_delay
from ..errors import NavigationError
from ..models import HostListing, HostProfile
from ..navigation import LoadStrategy
from ..text_utils import AIRBNB_BASE_URL, absolute_url, clean_text, parse_amount, strip_label_prefixes, strip_query
from .dom import extractor

PROFILE_URL_TEMPLATES = (
    AIRBNB_BASE_URL + "/users/show/{host_id}",
    AIRBNB_BASE_URL + "/users/profile/{host_id}",
)
PROFILE_LOAD = LoadStrategy("networkidle", 30000, 1500)

LANGUAGE_SPLIT = re.compile(r",|\sand\s")
CARD_RATING_PATTERN = re.compile(r"(\d+\.\d+)")
CARD_REVIEWS_PATTERN = re.compile(r"(\d+)\s+reviews?", re.IGNORECASE)

PROFILE_PAGE_JS = """() => {
    const text = (el) => (el ? el.textContent.trim() : null);
    const nameEl = document.querySelector('h2[tabindex="-1"]') || document.querySelector('.hpipapi');
    const verified = document.querySelector('svg[aria-label*="Identity verified"]')
        || document.querySelector('button[aria-label*="identity verification"]');
    const image = document.querySelector('img[alt*="User Profile"]');
    const about = document.querySelector('._1e2prbn')
        || document.querySelector('.a3xqjte span')
        || document.querySelector('[class*="about"]');

    const stats = Array.from(document.querySelectorAll('[data-testid$="-stat-heading"]')).map(el => ({
        testId: el.getAttribute('data-testid') || '',
        value: el.textContent.trim(),
    }));
    const details = Array.from(document.querySelectorAll('li .rx7n8c4, li .t1sthkkh'))
        .map(el => el.textContent.trim());

    const listings = [];
    document.querySelectorAll('[data-testid="listing-card-title"]').forEach(card => {
        const container = card.closest('.c3184sb');
        if (!container) return;
        const link = container.querySelector('a[href^="/rooms/"]');
        listings.push({
            title: text(card) || '',
            subtitle: text(container.querySelector('.sxmrbbg')) || '',
            ratingText: text(container.querySelector('.s1sd7v66')) || '',
            href: link ? link.getAttribute('href') : '',
        });
    });

    return {
        name: text(nameEl),
        bodyText: document.body ? document.body.innerText : '',
        verified: !!verified,
        profileImage: image ? (image.getAttribute('src') || image.getAttribute('data-original-uri')) : null,
        about: text(about),
        stats, details, listings,
    };
}"""


def parse_stats(stats: Iterable[Dict[str, str]]) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for stat in stats:
        test_id = stat.get("testId") or ""
        value = parse_amount(stat.get("value"))
        if value is None:
            continue
        if "Reviews" in test_id:
            out.setdefault("reviews_count", int(value))
        elif "Rating" in test_id:
            out.setdefault("rating", value)
        elif "Years" in test_id:
            out.setdefault("years_hosting", int(value))
    return out


def parse_details(details: Iterable[str]) -> Dict[str, Any]:
    """Map labelled profile rows ("My work:", "Pets:", "Speaks", ...) to profile fields."""
    out: Dict[str, Any] = {}
    for raw in details:
        text = clean_text(raw)
        if "My work:" in text:
            out.setdefault("work", strip_label_prefixes(text, ("my work:",)))
        elif "Pets:" in text:
            out.setdefault("pets", text.replace("Pets:", "", 1).strip())
        elif "What makes my home unique:" in text:
            out.setdefault("unique_home", text.replace("What makes my home unique:", "", 1).strip())
        elif "Born in" in text:
            out.setdefault("location", text)
        elif "Lives in" in text:
            out.setdefault("location", text.replace("Lives in", "", 1).strip())
        elif "Speaks" in text:
            languages = LANGUAGE_SPLIT.split(text.replace("Speaks", "", 1))
            out.setdefault("languages", [lang.strip() for lang in languages if lang.strip()])
    return out


def parse_host_listings(cards: Iterable[Dict[str, str]]) -> List[HostListing]:
    listings: List[HostListing] = []
    for card in cards:
        rating_text = card.get("ratingText") or ""
        rating = CARD_RATING_PATTERN.search(rating_text)
        reviews = CARD_REVIEWS_PATTERN.search(rating_text)
        listings.append(HostListing(
            title=clean_text(card.get("title")),
            subtitle=clean_text(card.get("subtitle")),
            rating=float(rating.group(1)) if rating else 0,
            reviews_count=int(reviews.group(1)) if reviews else 0,
            url=strip_query(absolute_url(card.get("href"))) or "",
        ))
    return listings


def parse_host_profile(raw: Optional[Dict[str, Any]]) -> HostProfile:
    if not raw:
        return HostProfile()
    profile = HostProfile(
        name=clean_text(raw.get("name")) or None,
        is_superhost="Superhost" in (raw.get("bodyText") or ""),
        is_identity_verified=bool(raw.get("verified")),
        about=clean_text(raw.get("about")) or None,
        profile_image_url=strip_query(raw.get("profileImage")) or None,
        listings=parse_host_listings(raw.get("listings") or []),
        **parse_stats(raw.get("stats") or []),
        **parse_details(raw.get("details") or []),
    )
    classification = classify_host(profile.name, profile.work, profile.about)
    profile.is_company = classification.is_company
    profile.company_name = classification.company_name
    return profile


async def read_host_profile(page: Page, host_id: str, *,
                            load: LoadStrategy = PROFILE_LOAD,
                            url_templates: Sequence[str] = PROFILE_URL_TEMPLATES,
                            logger: logging.Logger) -> HostProfile:
    """Load the first profile URL that resolves and parse it. Raises NavigationError when none do."""
    last_error: Optional[BaseException] = None
    for template in url_templates:
        url = template.format(host_id=host_id)
        try:
            logger.info(f"👤 Loading host profile {url}")
            await page.goto(url, wait_until=load.wait_until, timeout=load.timeout_ms)
            await fixed_delay(load.settle_ms)
        except Exception as e:
            last_error = e
            logger.warning(f"⚠️ Failed to load {url}: {e}")
            continue
        profile = parse_host_profile(await page.evaluate(PROFILE_PAGE_JS))
        kind = f"company ({profile.company_name})" if profile.is_company else "individual"
        logger.info(f"✅ Host {profile.name or host_id} parsed as {kind}")
        return profile

    raise NavigationError(
        f"Failed to load host profile {host_id}: {last_error}",
        attempts=len(url_templates),
        last_error=last_error,
    )


@extractor("host_profile", default=lambda: None)
async def extract_host_profile(page: Page, host_id: Optional[str], *,
                               min_delay_ms: int = 0, max_delay_ms: int = 0,
                               logger: logging.Logger) -> Optional[HostProfile]:
    if not host_id:
        return None
    if max_delay_ms:
        await random_delay(min_delay_ms, max_delay_ms)
    return await read_host_profile(page, host_id, logger=logger)

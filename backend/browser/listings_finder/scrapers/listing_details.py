"""Extractors for the main listing page: title, description, photos, hosts,
property facts, badges and the review score summary."""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, Iterable, List, Optional, Tuple

from playwright.async_api import Page

from ..delays import fixed_delay
from ..models import CategoryRatings, CoHost, ReviewScore
from ..strategies import first_result
from ..text_utils import AIRBNB_BASE_URL, clean_text, profile_id_from_url
from .dom import body_text, click_if_present, extractor, hrefs_of, text_of

# --- Title ---

SECTION_TITLE_SELECTOR = '[data-section-id*="TITLE"] h1'

FIRST_LONG_HEADING_JS = """() => {
    const h = Array.from(document.querySelectorAll('h1'))
        .map(el => el.textContent.trim())
        .find(t => t.length > 3);
    return h || null;
}"""


@extractor("title", default=lambda: None)
async def extract_title(page: Page, *, logger: logging.Logger) -> Optional[str]:
    return await first_result([
        ("heading", lambda: text_of(page, "h1")),
        ("title_section", lambda: text_of(page, SECTION_TITLE_SELECTOR)),
        ("first_long_heading", lambda: page.evaluate(FIRST_LONG_HEADING_JS)),
    ], logger)


# --- Description ---

DESCRIPTION_SHOW_MORE = '[data-section-id="DESCRIPTION_DEFAULT"] button:has-text("Show more")'

DESCRIPTION_MODAL_JS = """() => {
    const modal = document.querySelector('[data-section-id="DESCRIPTION_MODAL"]');
    if (!modal) return [];
    return Array.from(modal.querySelectorAll('section')).map(section => {
        const heading = section.querySelector('h2, h3');
        const body = section.querySelector('.l1h825yc');
        return {
            heading: heading ? heading.textContent.trim() : '',
            content: body ? body.textContent.trim() : '',
        };
    });
}"""

DESCRIPTION_VISIBLE_JS = """() => Array.from(document.querySelectorAll(
        '[data-section-id="DESCRIPTION_DEFAULT"] span.l1h825yc, .d1isfkwk span.l1h825yc'))
    .map(el => el.textContent.trim())
    .filter(t => t.length > 0)"""

CLOSE_BUTTON = '[aria-label="Close"]'


def join_description_sections(sections: Iterable[Dict[str, str]]) -> Optional[str]:
    """Render modal sections as ``"Heading: body"`` (or body alone), one blank line apart."""
    parts: List[str] = []
    for section in sections:
        content = (section.get("content") or "").strip()
        if not content:
            continue
        heading = (section.get("heading") or "").strip()
        parts.append(f"{heading}: {content}" if heading else content)
    return "\n\n".join(parts) or None


async def _expanded_description(page: Page, logger: logging.Logger) -> Optional[str]:
    opened = False
    try:
        opened = await click_if_present(page, DESCRIPTION_SHOW_MORE)
        if not opened:
            return None
        await fixed_delay(800)
        return join_description_sections(await page.evaluate(DESCRIPTION_MODAL_JS) or [])
    except Exception as e:
        logger.info(f"Description modal unavailable, using visible text: {e}")
        return None
    finally:
        if opened:
            await _close_modal(page, logger)


async def _close_modal(page: Page, logger: logging.Logger) -> None:
    try:
        close = await page.query_selector(CLOSE_BUTTON)
        if close is not None:
            await close.click(timeout=2000)
            await fixed_delay(400)
    except Exception as e:
        logger.debug(f"Modal close failed: {e}")


@extractor("description", default=lambda: None)
async def extract_description(page: Page, *, logger: logging.Logger) -> Optional[str]:
    expanded = await _expanded_description(page, logger)
    if expanded:
        return expanded
    visible = await page.evaluate(DESCRIPTION_VISIBLE_JS) or []
    return "\n\n".join(visible) or None


# --- Images ---

IMAGE_HOST = "a0.muscache.com"
IMAGE_PATHS = ("/im/pictures/hosting/", "/im/pictures/miso/", "/pictures/hosting/", "/pictures/miso/")
IMAGE_EXCLUDES = ("profile_pic", "user.jpg", "/users/", "avatar", "profile-pic")
MAX_IMAGE_STEPS = 100

GALLERY_SCROLL_STEP_JS = """() => {
    const c = document.querySelector('[data-testid="photo-viewer-section"]')
        || document.querySelector('[role="dialog"]')
        || document.scrollingElement || document.body;
    const before = c.scrollTop;
    c.scrollTop = before + (c.clientHeight || window.innerHeight);
    return c.scrollTop + c.clientHeight >= c.scrollHeight || c.scrollTop === before;
}"""

NEXT_IMAGE_DISABLED_JS = """() => {
    const next = document.querySelector('button[aria-label*="Next"]');
    return !!(next && next.disabled);
}"""

IMAGE_CANDIDATES_JS = """() => {
    const urls = [];
    document.querySelectorAll('img[data-original-uri]')
        .forEach(img => urls.push(img.getAttribute('data-original-uri')));
    document.querySelectorAll('picture img')
        .forEach(img => urls.push(img.src || img.getAttribute('src')));
    document.querySelectorAll('img')
        .forEach(img => urls.push(img.src || img.getAttribute('src')));
    return urls.filter(Boolean);
}"""


def is_listing_image(url: Optional[str]) -> bool:
    if not url or IMAGE_HOST not in url:
        return False
    if not any(path in url for path in IMAGE_PATHS):
        return False
    lowered = url.lower()
    return not any(pattern in lowered for pattern in IMAGE_EXCLUDES)


def filter_listing_images(urls: Iterable[Optional[str]]) -> List[str]:
    """Keep listing photos only, deduplicated in discovery order."""
    seen = set()
    images: List[str] = []
    for url in urls:
        if is_listing_image(url) and url not in seen:
            seen.add(url)
            images.append(url)
    return images


@extractor("images", default=list)
async def extract_images(page: Page, listing_id: str, *, logger: logging.Logger) -> List[str]:
    original_url = page.url
    await page.goto(
        f"{AIRBNB_BASE_URL}/rooms/{listing_id}?modal=PHOTO_TOUR_SCROLLABLE",
        wait_until="domcontentloaded",
        timeout=30000,
    )
    await fixed_delay(2000)

    try:
        for _ in range(50):
            at_bottom = await page.evaluate(GALLERY_SCROLL_STEP_JS)
            await fixed_delay(500)
            if at_bottom:
                break
        await fixed_delay(1000)

        for step in range(MAX_IMAGE_STEPS):
            await page.keyboard.press("ArrowRight")
            await fixed_delay(300)
            if await page.evaluate(NEXT_IMAGE_DISABLED_JS):
                logger.debug(f"Reached last photo after {step + 1} steps")
                break
        await fixed_delay(2000)

        images = filter_listing_images(await page.evaluate(IMAGE_CANDIDATES_JS) or [])
        logger.info(f"📸 Extracted {len(images)} listing images from photo tour")
        return images
    finally:
        if f"/rooms/{listing_id}" in (original_url or "") and "modal=" not in original_url:
            try:
                await page.goto(original_url, wait_until="domcontentloaded", timeout=30000)
                await fixed_delay(1000)
            except Exception as e:
                logger.warning(f"⚠️ Could not return to {original_url}: {e}")


# --- Host profile id ---

HOST_ID_KEYS = {"userid", "id", "hostid", "profileid", "primaryhostid"}
HOST_ID_REGEX = re.compile(r'"(?:primary)?[Hh]ost(?:Profile)?Id"\s*:\s*"?(\d+)"?')
USER_ID_REGEX = re.compile(r'"userId"\s*:\s*"?(\d+)"?')

LEARN_MORE_HOST_LINKS_JS = """() => {
    const button = document.querySelector('button[aria-label*="Learn more about the host"]');
    if (!button) return [];
    const section = button.closest('[data-section-id*="HOST_OVERVIEW"]')
        || button.closest('section') || button.parentElement;
    return section
        ? Array.from(section.querySelectorAll('a[href*="/users/"]')).map(a => a.getAttribute('href') || '')
        : [];
}"""

USER_LINKS_OUTSIDE_REVIEWS_JS = """() => Array.from(document.querySelectorAll('a[href*="/users/"]'))
    .filter(a => !a.closest('[data-section-id="REVIEWS_DEFAULT"]'))
    .map(a => a.getAttribute('href') || '')"""

INLINE_SCRIPTS_JS = """() => Array.from(document.querySelectorAll('script'))
    .map(s => s.textContent || '')
    .filter(t => t.length >= 20)"""


def first_profile_id(hrefs: Iterable[str]) -> Optional[str]:
    for href in hrefs:
        profile_id = profile_id_from_url(href)
        if profile_id:
            return profile_id
    return None


def _collect_id_candidates(node: Any, context: str, out: List[Tuple[str, int]]) -> None:
    if isinstance(node, list):
        for item in node:
            _collect_id_candidates(item, context, out)
        return
    if not isinstance(node, dict):
        return
    for key, value in node.items():
        lower_key = str(key).lower()
        if lower_key in HOST_ID_KEYS and isinstance(value, (str, int)) and not isinstance(value, bool):
            candidate = str(value).strip()
            if candidate.isdigit():
                if "host" in lower_key or "host" in context:
                    weight = 3
                elif "user" in lower_key or "user" in context:
                    weight = 2
                else:
                    weight = 1
                out.append((candidate, weight))
        if isinstance(value, (dict, list)):
            _collect_id_candidates(value, f"{context}.{lower_key}" if context else lower_key, out)


def mine_host_id(scripts: Iterable[str]) -> Optional[str]:
    """Pick the most host-like numeric id out of inline script bodies.

    JSON bodies are walked for id-like keys; other bodies are regex-scanned.
    Candidates rank by weight, then id length, then numeric value.
    """
    candidates: List[Tuple[str, int]] = []
    for text in scripts:
        if not text or len(text) < 20:
            continue
        try:
            parsed = json.loads(text)
        except ValueError:
            parsed = None
        if isinstance(parsed, (dict, list)):
            _collect_id_candidates(parsed, "", candidates)
            continue
        candidates.extend((m, 3) for m in HOST_ID_REGEX.findall(text))
        candidates.extend((m, 1) for m in USER_ID_REGEX.findall(text))

    if not candidates:
        return None
    candidates.sort(key=lambda c: (c[1], len(c[0]), int(c[0])), reverse=True)
    return candidates[0][0]


@extractor("host_profile_id", default=lambda: None)
async def extract_host_profile_id(page: Page, *, logger: logging.Logger) -> Optional[str]:
    async def from_links(selector: str) -> Optional[str]:
        return first_profile_id(await hrefs_of(page, selector))

    async def from_script(script: str) -> Optional[str]:
        return first_profile_id(await page.evaluate(script) or [])

    async def from_embedded_json() -> Optional[str]:
        return mine_host_id(await page.evaluate(INLINE_SCRIPTS_JS) or [])

    host_id = await first_result([
        ("meet_your_host", lambda: from_links('[data-section-id="MEET_YOUR_HOST"] a[href*="/users/"]')),
        ("host_overview", lambda: from_links('[data-section-id="HOST_OVERVIEW_DEFAULT"] a[href*="/users/"]')),
        ("full_profile_link", lambda: from_links('a[aria-label*="Host full profile"]')),
        ("learn_more_button", lambda: from_script(LEARN_MORE_HOST_LINKS_JS)),
        ("user_link_outside_reviews", lambda: from_script(USER_LINKS_OUTSIDE_REVIEWS_JS)),
        ("embedded_json", from_embedded_json),
    ], logger)
    if host_id:
        logger.info(f"👤 Host profile id: {host_id}")
    return host_id


# --- Co-hosts ---

CO_HOST_NAME_PATTERN = re.compile(r"host,\s*([^.]+)")

CO_HOST_LIST_JS = """() => {
    const heading = Array.from(document.querySelectorAll('h3, h2'))
        .find(h => h.textContent.toLowerCase().includes('co-host'));
    if (!heading) return [];
    let list = heading.nextElementSibling;
    let attempts = 0;
    while (list && list.tagName !== 'UL' && attempts < 5) {
        list = list.nextElementSibling;
        attempts++;
    }
    if (!list || list.tagName !== 'UL') return [];
    return Array.from(list.querySelectorAll('a[href*="/users/"]')).map(a => {
        const item = a.closest('li');
        const span = item ? item.querySelector('span') : null;
        return {
            href: a.getAttribute('href') || '',
            ariaLabel: a.getAttribute('aria-label') || '',
            itemText: span ? span.textContent.trim() : '',
        };
    });
}"""

HOST_SECTION_LINKS_JS = """() => Array.from(document.querySelectorAll(
        '[data-section-id="HOST_OVERVIEW_DEFAULT"] a[href*="/users/"]'))
    .map(a => ({ href: a.getAttribute('href') || '', ariaLabel: a.getAttribute('aria-label') || '' }))"""


def co_host_name(aria_label: Optional[str], item_text: Optional[str] = None) -> Optional[str]:
    if aria_label:
        match = CO_HOST_NAME_PATTERN.search(aria_label)
        if match:
            return match.group(1).strip()
    return clean_text(item_text) or None


def parse_co_hosts(links: Iterable[Dict[str, str]]) -> List[CoHost]:
    co_hosts: List[CoHost] = []
    for link in links:
        profile_id = profile_id_from_url(link.get("href"))
        if profile_id:
            co_hosts.append(CoHost(
                name=co_host_name(link.get("ariaLabel"), link.get("itemText")),
                profile_id=profile_id,
            ))
    return co_hosts


@extractor("co_hosts", default=list)
async def extract_co_hosts(page: Page, *, logger: logging.Logger) -> List[CoHost]:
    co_hosts = parse_co_hosts(await page.evaluate(CO_HOST_LIST_JS) or [])
    if co_hosts:
        return co_hosts
    section_links = await page.evaluate(HOST_SECTION_LINKS_JS) or []
    # the first host-section link is the primary host
    return parse_co_hosts({"href": link.get("href"), "ariaLabel": link.get("ariaLabel")}
                          for link in section_links[1:])


# --- Property facts and badges ---

GUESTS_PATTERN = re.compile(r"(\d+)\s+guests?", re.IGNORECASE)
BEDROOMS_PATTERN = re.compile(r"(\d+)\s+bedrooms?", re.IGNORECASE)
BATHS_PATTERN = re.compile(r"(\d+(?:\.\d+)?)\s+baths?", re.IGNORECASE)


def parse_property_facts(text: str) -> Dict[str, Optional[float]]:
    guests = GUESTS_PATTERN.search(text or "")
    bedrooms = BEDROOMS_PATTERN.search(text or "")
    baths = BATHS_PATTERN.search(text or "")
    return {
        "max_guests": int(guests.group(1)) if guests else None,
        "bedrooms": int(bedrooms.group(1)) if bedrooms else None,
        "bathrooms": float(baths.group(1)) if baths else None,
    }


def _empty_facts() -> Dict[str, Optional[float]]:
    return {"max_guests": None, "bedrooms": None, "bathrooms": None}


@extractor("property_facts", default=_empty_facts)
async def extract_property_facts(page: Page, *, logger: logging.Logger) -> Dict[str, Optional[float]]:
    return parse_property_facts(await body_text(page))


def parse_badges(text: str) -> Dict[str, bool]:
    text = text or ""
    return {
        "is_guest_favorite": "Guest favorite" in text or "Guest Favorite" in text,
        "is_superhost": "Superhost" in text,
    }


@extractor("badges", default=lambda: {"is_guest_favorite": False, "is_superhost": False})
async def extract_badges(page: Page, *, logger: logging.Logger) -> Dict[str, bool]:
    return parse_badges(await body_text(page))


# --- Review score ---

RATING_PATTERN = re.compile(r"^(\d+\.\d+)$")
REVIEW_COUNT_PATTERN = re.compile(r"(\d+)\s+reviews?", re.IGNORECASE)
CATEGORY_ARIA_PATTERN = re.compile(r"Rated\s+([\d.]+)\s+out of 5.*for\s+(.+)", re.IGNORECASE)
CATEGORY_KEYS = (
    ("clean", "cleanliness"),
    ("accuracy", "accuracy"),
    ("check", "check_in"),
    ("communication", "communication"),
    ("location", "location"),
    ("value", "value"),
)

SPAN_TEXTS_JS = "() => Array.from(document.querySelectorAll('span')).map(el => el.textContent.trim())"

CATEGORY_RATINGS_JS = """() => {
    const out = [];
    document.querySelectorAll('[role="dialog"] [aria-label*="out of 5"]').forEach(el => {
        out.push({ ariaLabel: el.getAttribute('aria-label') || '' });
    });
    document.querySelectorAll('div[class*="cwzyvtz"]').forEach(row => {
        const rating = row.querySelector('div[class*="v1kb7fro"]');
        const category = row.querySelector('div[class*="lqnx5rh"]');
        if (rating && category) {
            out.push({ rating: rating.textContent.trim(), category: category.textContent.trim() });
        }
    });
    return out;
}"""


def parse_review_score(span_texts: Iterable[str]) -> ReviewScore:
    rating: Optional[float] = None
    count: Optional[int] = None
    for text in span_texts:
        text = (text or "").strip()
        if rating is None:
            match = RATING_PATTERN.match(text)
            if match and 0 <= float(match.group(1)) <= 5:
                rating = float(match.group(1))
        if count is None:
            match = REVIEW_COUNT_PATTERN.search(text)
            if match:
                count = int(match.group(1))
        if rating is not None and count is not None:
            break
    return ReviewScore(overall_rating=rating, reviews_count=count)


def _category_field(label: str) -> Optional[str]:
    lowered = label.lower()
    for needle, field_name in CATEGORY_KEYS:
        if needle in lowered:
            return field_name
    return None


def parse_category_ratings(rows: Iterable[Dict[str, str]]) -> CategoryRatings:
    values: Dict[str, float] = {}
    for row in rows:
        if row.get("ariaLabel"):
            match = CATEGORY_ARIA_PATTERN.search(row["ariaLabel"])
            if not match:
                continue
            raw, label = match.group(1), match.group(2)
        else:
            raw, label = row.get("rating", ""), row.get("category", "")
        field_name = _category_field(label)
        try:
            rating = float(raw)
        except (TypeError, ValueError):
            continue
        if field_name and field_name not in values and 0 <= rating <= 5:
            values[field_name] = rating
    return CategoryRatings(**values)


async def _category_ratings(page: Page, listing_id: str, logger: logging.Logger) -> CategoryRatings:
    original_url = page.url
    try:
        await page.goto(f"{AIRBNB_BASE_URL}/rooms/{listing_id}/reviews",
                        wait_until="domcontentloaded", timeout=30000)
        await page.wait_for_selector('[role="dialog"][aria-modal="true"]', timeout=10000)
        await fixed_delay(1000)
        return parse_category_ratings(await page.evaluate(CATEGORY_RATINGS_JS) or [])
    except Exception as e:
        logger.info(f"Category ratings unavailable for {listing_id}: {e}")
        return CategoryRatings()
    finally:
        if original_url and "/reviews" not in original_url:
            try:
                await page.goto(original_url, wait_until="domcontentloaded", timeout=30000)
            except Exception as e:
                logger.warning(f"⚠️ Could not return to {original_url}: {e}")


@extractor("review_score", default=ReviewScore)
async def extract_review_score(page: Page, listing_id: Optional[str] = None, *,
                               include_categories: bool = False,
                               logger: logging.Logger) -> ReviewScore:
    """Overall rating and review count from the listing page.

    The per-category breakdown costs an extra page load, so it only runs
    when ``include_categories`` is set.
    """
    score = parse_review_score(await page.evaluate(SPAN_TEXTS_JS) or [])
    if include_categories and listing_id:
        score.category_ratings = await _category_ratings(page, listing_id, logger)
    return score

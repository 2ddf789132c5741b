"""Pure text helpers shared by the extractors."""

from __future__ import annotations

import re
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional, Union

AIRBNB_BASE_URL = "https://www.airbnb.com"

PROFILE_ID_PATTERN = re.compile(r"/users/(?:show|profile)/(\d+)")
ROOM_ID_PATTERN = re.compile(r"/rooms/(\d+)")

LABEL_PREFIXES = ("my work:", "work:", "at", "for")


def clean_text(value: Optional[str]) -> str:
    """Collapse whitespace and strip."""
    if not value:
        return ""
    return re.sub(r"\s+", " ", value).strip()


def strip_label_prefixes(text: Optional[str], prefixes: Iterable[str] = LABEL_PREFIXES) -> str:
    """Remove one leading label such as ``"My work:"`` or ``"at"`` (case-insensitive).

    Word prefixes only match on a word boundary, so ``"Atlas Homes"`` keeps
    its ``At``.
    """
    text = clean_text(text)
    lowered = text.lower()
    for prefix in prefixes:
        if not lowered.startswith(prefix):
            continue
        rest = text[len(prefix):]
        if prefix[-1].isalnum() and rest and not rest[0].isspace():
            continue
        return rest.strip()
    return text


def parse_amount(text: Optional[Union[str, int, float]]) -> Optional[float]:
    """Parse ``"1,234.50"`` or ``"$309"`` into a float. Returns None when nothing numeric is found."""
    if text is None:
        return None
    if isinstance(text, (int, float)):
        return float(text)
    match = re.search(r"\d[\d,]*(?:\.\d+)?", text)
    if not match:
        return None
    try:
        return float(match.group(0).replace(",", ""))
    except ValueError:
        return None


def round_half_up(value: float, digits: int = 0) -> float:
    """Round halves away from zero (``102.5 -> 103``) instead of to even."""
    quant = Decimal(1).scaleb(-digits)
    return float(Decimal(str(value)).quantize(quant, rounding=ROUND_HALF_UP))


def profile_id_from_url(url: Optional[str]) -> Optional[str]:
    if not url:
        return None
    match = PROFILE_ID_PATTERN.search(url)
    return match.group(1) if match else None


def room_id_from_url(url: Optional[str]) -> Optional[str]:
    if not url:
        return None
    match = ROOM_ID_PATTERN.search(url)
    return match.group(1) if match else None


def absolute_url(href: Optional[str], base: str = AIRBNB_BASE_URL) -> Optional[str]:
    if not href:
        return None
    if href.startswith("http://") or href.startswith("https://"):
        return href
    if not href.startswith("/"):
        href = "/" + href
    return base + href


def strip_query(url: Optional[str]) -> Optional[str]:
    if not url:
        return url
    return url.split("?", 1)[0]


def listing_url(listing_id: str) -> str:
    return f"{AIRBNB_BASE_URL}/rooms/{listing_id}"


def is_numeric_id(value: Optional[str]) -> bool:
    return bool(value) and value.isdigit()

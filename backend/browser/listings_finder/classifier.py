"""Company vs individual host classification.

A pure function over the host's ``name``, ``work`` and ``about`` text. Checks
run in a fixed priority order and the first match decides:

1. ``work`` mentions a company keyword or a legal suffix.
2. ``name`` mentions a company keyword.
3. ``name`` carries a legal suffix.
4. ``work`` names a hosting/property role.
5. ``about`` uses organisational language ("we manage", "our portfolio").
6. Otherwise the host is an individual.
"""

from __future__ import annotations

import re
from typing import NamedTuple, Optional

from .text_utils import clean_text, strip_label_prefixes

COMPANY_KEYWORDS = (
    "properties", "property", "management", "rentals", "rental",
    "group", "llc", "inc", "corp", "corporation", "ltd", "limited",
    "hospitality", "homes", "realty", "real estate", "estate",
    "apartments", "vacation", "stay", "stays", "hosting",
    "company", "co.", "services", "solutions", "ventures",
    "investments", "holdings", "enterprises", "associates",
)

LEGAL_SUFFIX_PATTERN = re.compile(r"\b(llc|inc\.?|corp\.?|ltd\.?|limited|co\.)(?!\w)", re.IGNORECASE)

WORK_ROLE_INDICATORS = (
    "property management", "property manager", "rental management",
    "vacation rental", "real estate", "hospitality", "host",
    "airbnb", "vrbo", "vacation home",
)

ABOUT_INDICATORS = (
    "our company", "our team", "we manage", "we own",
    "professional property", "property management",
    "our properties", "our portfolio", "our business",
    "we specialize", "we offer", "our services",
)


class HostClassification(NamedTuple):
    is_company: bool
    company_name: str


INDIVIDUAL = HostClassification(False, "")


def _contains_any(text: str, needles) -> bool:
    lowered = text.lower()
    return any(needle in lowered for needle in needles)


def company_name_from_text(text: Optional[str]) -> Optional[str]:
    """Return the cleaned text when it reads like a company name, else None."""
    text = clean_text(text)
    if not text:
        return None
    if _contains_any(text, COMPANY_KEYWORDS) or LEGAL_SUFFIX_PATTERN.search(text):
        return strip_label_prefixes(text) or text
    return None


def classify_host(name: Optional[str] = None,
                  work: Optional[str] = None,
                  about: Optional[str] = None) -> HostClassification:
    name = clean_text(name)
    work = clean_text(work)
    about = clean_text(about)

    if work:
        from_work = company_name_from_text(work)
        if from_work:
            return HostClassification(True, from_work)

    if name and _contains_any(name, COMPANY_KEYWORDS):
        return HostClassification(True, name)

    if name and LEGAL_SUFFIX_PATTERN.search(name):
        return HostClassification(True, name)

    if work and _contains_any(work, WORK_ROLE_INDICATORS):
        return HostClassification(True, strip_label_prefixes(work) or work)

    if about and _contains_any(about, ABOUT_INDICATORS):
        if work:
            return HostClassification(True, strip_label_prefixes(work) or name)
        return HostClassification(True, name)

    return INDIVIDUAL

"""Field extractors for listing, host and review pages.

Each ``extract_*`` coroutine takes a Playwright page, never raises, and
degrades to its empty value when the page does not cooperate.
"""

from .amenities import extract_amenities
from .host_profile import extract_host_profile, read_host_profile
from .house_rules import extract_house_rules
from .listing_details import (
    extract_badges, extract_co_hosts, extract_description, extract_host_profile_id,
    extract_images, extract_property_facts, extract_review_score, extract_title,
)
from .location import extract_location
from .pricing import extract_pricing
from .reviews import ReviewRetryPolicy, extract_reviews

__all__ = [
    'extract_amenities', 'extract_host_profile', 'read_host_profile',
    'extract_house_rules', 'extract_badges', 'extract_co_hosts',
    'extract_description', 'extract_host_profile_id', 'extract_images',
    'extract_property_facts', 'extract_review_score', 'extract_title',
    'extract_location', 'extract_pricing', 'ReviewRetryPolicy', 'extract_reviews',
]

"""Airbnb listings finder.

Headless-browser service that collects Airbnb data:
- search result summaries for a location
- per-listing details (photos, pricing, amenities, house rules, reviews)
- host and co-host profiles, with company vs individual classification

``main`` serves the jobs over HTTP; ``service.ListingsService`` runs them
directly.
"""

__version__ = "1.0.0"

"""Prometheus metrics shared by the HTTP layer, crawlers and extractors."""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

REQUEST_COUNT = Counter(
    "listings_finder_request_count",
    "Number of HTTP requests received",
    labelnames=["endpoint", "method", "status"],
)
REQUEST_LATENCY = Histogram(
    "listings_finder_request_latency_seconds",
    "HTTP request latency in seconds",
    labelnames=["endpoint"],
)

JOB_COUNT = Counter(
    "listings_finder_job_count",
    "Number of jobs processed",
    labelnames=["job", "status"],
)
JOB_DURATION = Histogram(
    "listings_finder_job_duration_seconds",
    "Job processing duration in seconds",
    labelnames=["job"],
)

NAVIGATION_ATTEMPTS = Counter(
    "listings_finder_navigation_attempts",
    "Page load attempts by wait condition and outcome",
    labelnames=["wait_until", "outcome"],
)
CRAWL_REQUESTS = Counter(
    "listings_finder_crawl_requests",
    "Crawler requests by crawler and outcome",
    labelnames=["crawler", "outcome"],
)
EXTRACTOR_FAILURES = Counter(
    "listings_finder_extractor_failures",
    "Field extractor failures that degraded to an empty value",
    labelnames=["field"],
)
LISTINGS_SCRAPED = Counter(
    "listings_finder_listings_scraped",
    "Listings emitted by the detail crawler",
    labelnames=["outcome"],
)
BROWSER_PROCESSES = Gauge(
    "listings_finder_browser_processes",
    "Chromium processes observed on the host at the last health check",
)

"""Browser crawlers for search result pages and listing detail pages."""

from .base import BrowserCrawler, CrawlContext, CrawlerSettings, CrawlRequest, CrawlStats, RateLimiter
from .detail import DetailCrawler, DetailOptions, detail_settings
from .search import SEARCH_SETTINGS, SearchCrawler, build_search_url

__all__ = [
    'BrowserCrawler', 'CrawlContext', 'CrawlerSettings', 'CrawlRequest', 'CrawlStats', 'RateLimiter',
    'DetailCrawler', 'DetailOptions', 'detail_settings',
    'SEARCH_SETTINGS', 'SearchCrawler', 'build_search_url',
]

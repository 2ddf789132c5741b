"""Anti-detection settings applied to every browser and context.

The fingerprint is fixed rather than rotated: one desktop Chrome user agent,
one 1920x1080 viewport and one set of default headers, so that a crawl looks
like a single consistent visitor.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Dict, List, Optional

from playwright.async_api import BrowserContext


class StealthLevel(str, Enum):
    """Stealth operation levels."""
    BASIC = "basic"        # headers + webdriver flag
    MODERATE = "moderate"  # also plugins, languages and chrome runtime


LAUNCH_ARGS: List[str] = [
    "--disable-blink-features=AutomationControlled",
    "--disable-dev-shm-usage",
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-web-security",
]

USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

VIEWPORT = {"width": 1920, "height": 1080}

DEFAULT_HEADERS: Dict[str, str] = {
    "Accept-Language": "en-US,en;q=0.9",
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
    "Accept-Encoding": "gzip, deflate, br",
    "Connection": "keep-alive",
    "Upgrade-Insecure-Requests": "1",
}

WEBDRIVER_PATCH = """
    Object.defineProperty(navigator, 'webdriver', {
        get: () => false,
    });
"""

NAVIGATOR_PATCH = """
    Object.defineProperty(navigator, 'plugins', {
        get: () => [1, 2, 3, 4, 5],
    });

    Object.defineProperty(navigator, 'languages', {
        get: () => ['en-US', 'en'],
    });

    if (!window.chrome) {
        Object.defineProperty(window, 'chrome', {
            get: () => ({ runtime: {} }),
        });
    }
"""


class StealthManager:
    """Builds launch/context options and patches new contexts."""

    def __init__(self,
                 stealth_level: StealthLevel = StealthLevel.BASIC,
                 logger: Optional[logging.Logger] = None):
        self.stealth_level = StealthLevel(stealth_level)
        self.logger = logger or logging.getLogger(__name__)

    def launch_args(self, extra: Optional[List[str]] = None) -> List[str]:
        args = list(LAUNCH_ARGS)
        for arg in extra or []:
            if arg not in args:
                args.append(arg)
        return args

    def context_options(self) -> Dict[str, Any]:
        return {"viewport": dict(VIEWPORT), "user_agent": USER_AGENT}

    async def apply_stealth_to_context(self, context: BrowserContext) -> None:
        """Install headers and init scripts before any page of the context loads."""
        self.logger.debug(f"Applying {self.stealth_level.value} level stealth measures")

        await context.set_extra_http_headers(DEFAULT_HEADERS)
        await context.add_init_script(WEBDRIVER_PATCH)

        if self.stealth_level == StealthLevel.MODERATE:
            await context.add_init_script(NAVIGATOR_PATCH)

"""Environment-backed configuration for the listings finder service.

Settings are grouped into small dataclasses and loaded once through
``get_config()``. Every value can be overridden with an environment variable;
``reset_config()`` drops the cached instance so tests can re-read the
environment.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


STEALTH_LEVELS = ("basic", "moderate")


@dataclass
class SystemConfig:
    """System configuration for paths and basic settings."""
    log_root: str = "/tmp/logs"
    log_level: str = "INFO"
    service_port: int = 3000


@dataclass
class SecurityConfig:
    """Bearer-token authentication for the HTTP API."""
    api_tokens: List[str] = field(default_factory=list)

    @property
    def auth_enabled(self) -> bool:
        return bool(self.api_tokens)


@dataclass
class BrowserConfig:
    """Browser launch and session settings."""
    headless: bool = True
    stealth_level: str = "basic"
    close_inactive_browser_after_secs: int = 30
    launch_timeout_ms: int = 60000


@dataclass
class CrawlConfig:
    """Crawl pacing and optional extraction modes."""
    min_delay_ms: int = 3000
    max_delay_ms: int = 8000
    include_category_ratings: bool = False
    amenity_descriptions: bool = False
    browser_process_warning_threshold: int = 10


class ServiceConfig:
    """Configuration manager loading defaults plus environment overrides."""

    def __init__(self) -> None:
        self._load_configuration()

    def _load_configuration(self) -> None:
        self.system = SystemConfig()
        self.security = SecurityConfig()
        self.browser = BrowserConfig()
        self.crawl = CrawlConfig()

        self._load_from_environment()
        self._validate_configuration()

    def _load_from_environment(self) -> None:
        """Load configuration from environment variables."""
        self.system.log_root = os.getenv("LOG_ROOT", self.system.log_root)
        self.system.log_level = os.getenv("LOG_LEVEL", self.system.log_level).upper()
        self.system.service_port = self._get_int_env("PORT", self.system.service_port)

        tokens = os.getenv("API_TOKENS", "")
        if tokens:
            self.security.api_tokens = [t.strip() for t in tokens.split(",") if t.strip()]

        self.browser.headless = self._get_bool_env("BROWSER_HEADLESS", self.browser.headless)
        self.browser.stealth_level = os.getenv("STEALTH_LEVEL", self.browser.stealth_level).lower()
        self.browser.close_inactive_browser_after_secs = self._get_int_env(
            "CLOSE_INACTIVE_BROWSER_AFTER_SECS", self.browser.close_inactive_browser_after_secs
        )

        self.crawl.min_delay_ms = self._get_int_env("MIN_DELAY_MS", self.crawl.min_delay_ms)
        self.crawl.max_delay_ms = self._get_int_env("MAX_DELAY_MS", self.crawl.max_delay_ms)
        self.crawl.include_category_ratings = self._get_bool_env(
            "INCLUDE_CATEGORY_RATINGS", self.crawl.include_category_ratings
        )
        self.crawl.amenity_descriptions = self._get_bool_env(
            "AMENITY_DESCRIPTIONS", self.crawl.amenity_descriptions
        )

    def _get_bool_env(self, key: str, default: bool) -> bool:
        """Get boolean value from environment."""
        value = os.getenv(key, "").lower()
        if value in ("true", "1", "yes", "on"):
            return True
        elif value in ("false", "0", "no", "off"):
            return False
        return default

    def _get_int_env(self, key: str, default: int) -> int:
        """Get integer value from environment."""
        try:
            return int(os.getenv(key, str(default)))
        except ValueError:
            return default

    def _validate_configuration(self) -> None:
        if self.browser.stealth_level not in STEALTH_LEVELS:
            raise ValueError(f"Invalid stealth level. Must be one of: {', '.join(STEALTH_LEVELS)}")

        if self.crawl.min_delay_ms < 0 or self.crawl.min_delay_ms > self.crawl.max_delay_ms:
            raise ValueError("min_delay_ms must be non-negative and not greater than max_delay_ms")

        if self.browser.close_inactive_browser_after_secs <= 0:
            raise ValueError("close_inactive_browser_after_secs must be positive")

    def get_configuration_summary(self) -> Dict[str, Any]:
        """Get configuration summary for logging/debugging."""
        return {
            "system": {"log_level": self.system.log_level, "port": self.system.service_port},
            "security": {"auth_enabled": self.security.auth_enabled},
            "browser": {
                "headless": self.browser.headless,
                "stealth_level": self.browser.stealth_level,
                "close_inactive_after_secs": self.browser.close_inactive_browser_after_secs,
            },
            "crawl": {
                "include_category_ratings": self.crawl.include_category_ratings,
                "amenity_descriptions": self.crawl.amenity_descriptions,
            },
        }


_config_instance: Optional[ServiceConfig] = None


def get_config() -> ServiceConfig:
    """Get or create the global configuration instance."""
    global _config_instance
    if _config_instance is None:
        _config_instance = ServiceConfig()
    return _config_instance


def reset_config() -> None:
    """Reset global configuration instance (useful for testing)."""
    global _config_instance
    _config_instance = None

"""Error taxonomy for crawling and extraction.

Each error carries a category and severity so callers can decide how far a
failure propagates:

- ``ExtractionError``: one field failed; the field degrades to its empty value.
- ``NavigationError``: every load strategy failed; the listing becomes an
  error-only record.
- ``JobValidationError``: a job was rejected before any browser work started.
- ``BrowserLaunchError``: the browser could not start; the whole batch fails.
"""

from __future__ import annotations

import traceback
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class ErrorSeverity(str, Enum):
    """Error severity levels for prioritized handling."""
    CRITICAL = "critical"  # batch cannot continue
    HIGH = "high"          # listing lost
    MEDIUM = "medium"      # retryable
    LOW = "low"            # field degraded


class ErrorCategory(str, Enum):
    """Error categories used in logs and metrics labels."""
    NAVIGATION = "navigation"
    BROWSER = "browser"
    PARSING = "parsing"
    INTERACTION = "interaction"
    VALIDATION = "validation"
    TIMEOUT = "timeout"
    UNKNOWN = "unknown"


class ErrorContext(BaseModel):
    """Context preserved alongside an error for debugging."""
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    listing_id: Optional[str] = None
    url: Optional[str] = None
    field_name: Optional[str] = None
    attempt_number: int = 1
    traceback: Optional[str] = None


class EnhancedError(Exception):
    """Base error with category, severity and context."""

    retryable: bool = True

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory = ErrorCategory.UNKNOWN,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
        context: Optional[ErrorContext] = None,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category
        self.severity = severity
        self.context = context or ErrorContext()
        self.cause = cause

        if not self.context.traceback and cause is not None:
            self.context.traceback = "".join(
                traceback.format_exception(type(cause), cause, cause.__traceback__)
            )

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for logging."""
        return {
            "message": self.message,
            "category": self.category.value,
            "severity": self.severity.value,
            "context": self.context.model_dump(mode="json"),
            "cause": str(self.cause) if self.cause else None,
        }


class NavigationError(EnhancedError):
    """All load strategies for a URL were exhausted."""

    def __init__(self, message: str, *, attempts: int = 0, last_error: Optional[BaseException] = None, **kwargs):
        super().__init__(
            message,
            category=ErrorCategory.NAVIGATION,
            severity=ErrorSeverity.HIGH,
            cause=last_error,
            **kwargs,
        )
        self.attempts = attempts
        self.last_error = last_error


class ExtractionError(EnhancedError):
    """A single field extractor failed."""

    def __init__(self, message: str, *, field_name: Optional[str] = None, **kwargs):
        super().__init__(
            message,
            category=ErrorCategory.PARSING,
            severity=ErrorSeverity.LOW,
            **kwargs,
        )
        self.field_name = field_name
        if field_name:
            self.context.field_name = field_name


class InteractionError(EnhancedError):
    """A click, scroll or modal interaction failed."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            category=ErrorCategory.INTERACTION,
            severity=ErrorSeverity.LOW,
            **kwargs,
        )


class JobValidationError(EnhancedError):
    """Invalid job input, rejected before browser launch."""

    retryable = False

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            category=ErrorCategory.VALIDATION,
            severity=ErrorSeverity.MEDIUM,
            **kwargs,
        )


class BrowserLaunchError(EnhancedError):
    """The browser process could not be started."""

    retryable = False

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            category=ErrorCategory.BROWSER,
            severity=ErrorSeverity.CRITICAL,
            **kwargs,
        )


class HostNotFoundError(EnhancedError):
    """No host profile id could be found on a listing page."""

    retryable = False

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            category=ErrorCategory.PARSING,
            severity=ErrorSeverity.HIGH,
            **kwargs,
        )

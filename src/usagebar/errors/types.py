"""Error types and classifications."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum

import msgspec


class ErrorCategory(StrEnum):
    """Error categories for diagnostics and fallback decisions."""

    AUTHENTICATION = "authentication"
    AUTHORIZATION = "authorization"
    RATE_LIMITED = "rate_limited"
    NETWORK = "network"
    PROVIDER = "provider"
    PARSE = "parse"
    CONFIGURATION = "configuration"
    NOT_FOUND = "not_found"
    UNKNOWN = "unknown"


class ErrorSeverity(StrEnum):
    """Error severity levels."""

    FATAL = "fatal"
    RECOVERABLE = "recoverable"
    TRANSIENT = "transient"


class UsagebarError(msgspec.Struct, frozen=True):
    """Structured error record used for diagnostic logging."""

    message: str
    category: ErrorCategory
    severity: ErrorSeverity
    provider: str | None = None
    details: dict | None = None
    timestamp: datetime = msgspec.field(
        default_factory=lambda: datetime.now().astimezone()
    )

    def __str__(self) -> str:
        prefix = f"[{self.provider}] " if self.provider else ""
        return f"{prefix}{self.category}: {self.message}"


class ConfigError(Exception):
    """Raised when the configuration file or environment is invalid."""


class HTTPErrorMapping(msgspec.Struct, frozen=True):
    """How an HTTP status code is treated by the fetch state machine."""

    category: ErrorCategory
    severity: ErrorSeverity
    retry_after_invalidate: bool = False


HTTP_ERROR_MAPPINGS: dict[int, HTTPErrorMapping] = {
    401: HTTPErrorMapping(
        category=ErrorCategory.AUTHENTICATION,
        severity=ErrorSeverity.RECOVERABLE,
        retry_after_invalidate=True,
    ),
    403: HTTPErrorMapping(
        category=ErrorCategory.AUTHORIZATION,
        severity=ErrorSeverity.RECOVERABLE,
    ),
    404: HTTPErrorMapping(
        category=ErrorCategory.NOT_FOUND,
        severity=ErrorSeverity.RECOVERABLE,
    ),
    429: HTTPErrorMapping(
        category=ErrorCategory.RATE_LIMITED,
        severity=ErrorSeverity.TRANSIENT,
    ),
}


def classify_http_status(status_code: int) -> HTTPErrorMapping:
    """Classify an HTTP error by status code."""
    if status_code in HTTP_ERROR_MAPPINGS:
        return HTTP_ERROR_MAPPINGS[status_code]

    if 500 <= status_code < 600:
        return HTTPErrorMapping(
            category=ErrorCategory.PROVIDER,
            severity=ErrorSeverity.TRANSIENT,
        )
    return HTTPErrorMapping(
        category=ErrorCategory.UNKNOWN,
        severity=ErrorSeverity.RECOVERABLE,
    )

"""Error handling for usagebar."""

from usagebar.errors.classify import classify_exception
from usagebar.errors.types import (
    ConfigError,
    ErrorCategory,
    ErrorSeverity,
    HTTP_ERROR_MAPPINGS,
    HTTPErrorMapping,
    UsagebarError,
    classify_http_status,
)

__all__ = [
    "ConfigError",
    "ErrorCategory",
    "ErrorSeverity",
    "UsagebarError",
    "HTTPErrorMapping",
    "HTTP_ERROR_MAPPINGS",
    "classify_http_status",
    "classify_exception",
]

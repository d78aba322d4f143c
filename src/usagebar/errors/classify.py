"""Exception classification for structured diagnostics."""

from __future__ import annotations

import asyncio
import json

import httpx
import msgspec

from usagebar.errors.types import ErrorCategory
from usagebar.errors.types import ErrorSeverity
from usagebar.errors.types import UsagebarError
from usagebar.errors.types import classify_http_status


def classify_exception(
    e: BaseException,
    provider_id: str | None = None,
) -> UsagebarError:
    """Classify any exception raised during a fetch into a structured error."""

    if isinstance(e, (httpx.TimeoutException, asyncio.TimeoutError)):
        return UsagebarError(
            message="Request timed out",
            category=ErrorCategory.NETWORK,
            severity=ErrorSeverity.TRANSIENT,
            provider=provider_id,
        )

    if isinstance(e, httpx.ConnectError):
        return UsagebarError(
            message="Failed to connect to server",
            category=ErrorCategory.NETWORK,
            severity=ErrorSeverity.TRANSIENT,
            provider=provider_id,
        )

    if isinstance(e, httpx.HTTPStatusError):
        status = e.response.status_code
        mapping = classify_http_status(status)
        return UsagebarError(
            message=f"HTTP {status}",
            category=mapping.category,
            severity=mapping.severity,
            provider=provider_id,
            details={"status_code": status},
        )

    if isinstance(e, httpx.HTTPError):
        return UsagebarError(
            message=str(e) or type(e).__name__,
            category=ErrorCategory.NETWORK,
            severity=ErrorSeverity.TRANSIENT,
            provider=provider_id,
        )

    if isinstance(e, (json.JSONDecodeError, msgspec.DecodeError)):
        return UsagebarError(
            message="Failed to parse response",
            category=ErrorCategory.PARSE,
            severity=ErrorSeverity.RECOVERABLE,
            provider=provider_id,
            details={"error": str(e)},
        )

    if isinstance(e, (KeyError, ValueError, TypeError)):
        return UsagebarError(
            message=f"Invalid response format: {e}",
            category=ErrorCategory.PARSE,
            severity=ErrorSeverity.RECOVERABLE,
            provider=provider_id,
        )

    if isinstance(e, PermissionError):
        filename = getattr(e, "filename", None)
        return UsagebarError(
            message=f"Permission denied: {filename}" if filename else "Permission denied",
            category=ErrorCategory.CONFIGURATION,
            severity=ErrorSeverity.RECOVERABLE,
            provider=provider_id,
        )

    if isinstance(e, FileNotFoundError):
        filename = getattr(e, "filename", None)
        return UsagebarError(
            message=f"File not found: {filename}" if filename else "File not found",
            category=ErrorCategory.NOT_FOUND,
            severity=ErrorSeverity.RECOVERABLE,
            provider=provider_id,
        )

    return UsagebarError(
        message=str(e),
        category=ErrorCategory.UNKNOWN,
        severity=ErrorSeverity.RECOVERABLE,
        provider=provider_id,
        details={"type": type(e).__name__},
    )

"""
Error types and user-facing error translation.

Every failure the API reports is an AppError subclass carrying an HTTP
status. Errors raised before a stream opens become a JSON error response;
errors raised after `start` become an `error` stream event carrying only
the user-safe message.

Provider failures are classified by substring match on the upstream error
text so the message shown to users never depends on provider wording.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple

import httpx

logger = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = (
    "I'm sorry, I'm experiencing technical difficulties. Please try again later."
)


class AppError(Exception):
    """Base class for errors reported to API callers.

    Attributes:
        message: User-safe message.
        status_code: HTTP status for synchronous responses.
        error_type: Stable machine-readable tag.
        details: Internal detail, only exposed in debug mode.
    """

    status_code = 500
    error_type = "internal"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None,
                 status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        if status_code is not None:
            self.status_code = status_code
        self.timestamp = datetime.now(timezone.utc).isoformat()

    def to_response(self, include_details: bool = False) -> Dict[str, Any]:
        body = {
            "error": self.message,
            "type": self.error_type,
            "timestamp": self.timestamp,
        }
        if include_details:
            body["details"] = self.details
        return body


class ValidationError(AppError):
    status_code = 400
    error_type = "validation"


class AuthenticationError(AppError):
    status_code = 401
    error_type = "authentication"


class NotFoundError(AppError):
    status_code = 404
    error_type = "not_found"


class ProviderError(AppError):
    """Upstream model failure after retries were exhausted.

    Attributes:
        category: Taxonomy bucket (rate_limited, too_large, configuration,
            timeout, unknown).
    """

    status_code = 429
    error_type = "provider"

    def __init__(self, message: str, category: str = "unknown",
                 details: Optional[Dict[str, Any]] = None,
                 status_code: Optional[int] = None):
        super().__init__(message, details=details, status_code=status_code)
        self.category = category


class InternalError(AppError):
    status_code = 500
    error_type = "internal"


# ============================================================
# Provider error taxonomy
# ============================================================
# (category, substrings, user message, status); first match wins
_PROVIDER_TAXONOMY: Tuple[Tuple[str, Tuple[str, ...], str, int], ...] = (
    (
        "rate_limited",
        ("rate limit", "rate_limit_exceeded"),
        "I'm currently experiencing high demand. Please try again in a few minutes.",
        429,
    ),
    (
        "too_large",
        ("request too large", "tokens per min", "tokens-per-minute"),
        "The file is too large or I'm currently experiencing high demand. "
        "Please try with a smaller file or try again in a few minutes.",
        422,
    ),
    (
        "configuration",
        ("invalid api key", "incorrect api key", "invalid_api_key", "configuration"),
        "API configuration error. Please contact support.",
        429,
    ),
    (
        "timeout",
        ("timeout", "timed out"),
        "Request timed out. Please try again.",
        429,
    ),
)


def classify_provider_error(error: BaseException) -> Tuple[str, str, int]:
    """Map a provider failure to (category, user message, status code).

    Timeouts are recognised by type as well as by text, since
    asyncio/httpx timeout exceptions often carry no message.
    """
    if isinstance(error, (asyncio.TimeoutError, httpx.TimeoutException)):
        _, _, message, status = _PROVIDER_TAXONOMY[3]
        return "timeout", message, status

    text = f"{type(error).__name__}: {error}".lower()
    for category, needles, message, status in _PROVIDER_TAXONOMY:
        if any(n in text for n in needles):
            return category, message, status
    return "unknown", GENERIC_ERROR_MESSAGE, 429


def user_message_for(text: Optional[str]) -> str:
    """User-facing message for a raw failure description (client side)."""
    if not text:
        return "Sorry, I encountered an error. Please try again."
    _, message, _ = classify_provider_error(Exception(text))
    return message


def to_provider_error(error: BaseException) -> ProviderError:
    """Wrap a raw provider failure into a sanitized ProviderError."""
    if isinstance(error, ProviderError):
        return error
    category, message, status = classify_provider_error(error)
    return ProviderError(
        message,
        category=category,
        details={"originalError": str(error) or type(error).__name__},
        status_code=status,
    )


def public_message(error: BaseException) -> str:
    """User-safe text for an error surfaced on an open stream."""
    if isinstance(error, AppError):
        return error.message
    return GENERIC_ERROR_MESSAGE


def log_error(error: BaseException, context: str = "") -> None:
    """Log an error with its context tag and timestamp."""
    if isinstance(error, AppError):
        logger.error(
            f"[{error.timestamp}] {error.error_type.upper()} in {context}: "
            f"{error.message} {error.details or ''}".rstrip()
        )
    else:
        timestamp = datetime.now(timezone.utc).isoformat()
        logger.error(
            f"[{timestamp}] UNEXPECTED in {context}: {type(error).__name__}: {error}",
            exc_info=error,
        )

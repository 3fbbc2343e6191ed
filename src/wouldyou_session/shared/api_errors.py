"""
Shared API error parsing for the remote auth client.

The parsing extracts semantic meaning from HTTP errors; the auth client decides
which typed error each category becomes for the operation it performed.
"""

from dataclasses import dataclass
from typing import Literal

import httpx

ErrorCategory = Literal[
    "auth",        # 401 - Rejected credentials or token
    "forbidden",   # 403 - Access denied
    "not_found",   # 404 - Resource not found
    "conflict",    # 409 - Uniqueness conflict (e.g. email taken)
    "validation",  # 400/422 - Validation error
    "internal",    # 5xx or unexpected errors
]

_FALLBACK_MESSAGES: dict[ErrorCategory, str] = {
    "auth": "Invalid or expired credentials",
    "forbidden": "Access denied",
    "not_found": "Not found",
    "conflict": "Already exists",
    "validation": "Validation error",
    "internal": "Something went wrong. Please try again.",
}


@dataclass
class ParsedApiError:
    """Parsed API error with semantic category and message."""

    category: ErrorCategory
    message: str
    status_code: int


def parse_http_error(e: httpx.HTTPStatusError) -> ParsedApiError:
    """
    Parse HTTP error into semantic categories.

    The backend answers errors with `{"error": true, "message": "..."}`; that
    message is kept verbatim for display, otherwise a generic fallback is used.

    Args:
        e: The HTTP status error from httpx

    Returns:
        ParsedApiError with category, message and status code
    """
    status = e.response.status_code
    category = _categorize(status)
    message = _extract_message(e) or _FALLBACK_MESSAGES[category]
    return ParsedApiError(category, message, status)


def _categorize(status: int) -> ErrorCategory:  # noqa: PLR0911
    if status == 401:
        return "auth"
    if status == 403:
        return "forbidden"
    if status == 404:
        return "not_found"
    if status == 409:
        return "conflict"
    if status in (400, 422):
        return "validation"
    return "internal"


def _extract_message(e: httpx.HTTPStatusError) -> str | None:
    """Safely extract the server's message from an error response."""
    try:
        body = e.response.json()
    except ValueError:
        return None
    if not isinstance(body, dict):
        # Non-dict JSON body (list, string, etc.)
        return None
    message = body.get("message")
    if isinstance(message, str) and message.strip():
        return message.strip()
    # FastAPI-style {"detail": "..."} from proxies in front of the backend
    detail = body.get("detail")
    if isinstance(detail, str) and detail.strip():
        return detail.strip()
    return None

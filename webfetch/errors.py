"""Exception hierarchy for the fetch pipeline.

Every error carries a stable ``code`` so the API boundary in
:mod:`webfetch.tools` can report structured failures without inspecting
exception types.
"""

from __future__ import annotations


class WebFetchError(Exception):
    """Base class for all errors raised by the fetch pipeline."""

    code = "WEBFETCH_ERROR"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


# ---------------------------------------------------------------------------
# URL guard
# ---------------------------------------------------------------------------

class UrlValidationError(WebFetchError):
    code = "INVALID_URL"


class InvalidUrlError(UrlValidationError):
    code = "INVALID_URL"


class UnsupportedSchemeError(UrlValidationError):
    code = "UNSUPPORTED_SCHEME"


class ForbiddenHostError(UrlValidationError):
    code = "FORBIDDEN_HOST"


# ---------------------------------------------------------------------------
# Fetch executor
# ---------------------------------------------------------------------------

class FetchTimeoutError(WebFetchError):
    code = "TIMEOUT"

    def __init__(self, timeout_ms: int) -> None:
        super().__init__(f"Request timeout after {timeout_ms}ms")
        self.timeout_ms = timeout_ms


class NetworkError(WebFetchError):
    code = "NETWORK_ERROR"


class HTTPStatusError(WebFetchError):
    code = "HTTP_ERROR"

    def __init__(self, status_code: int, reason: str = "") -> None:
        super().__init__(f"HTTP {status_code}: {reason}" if reason else f"HTTP {status_code}")
        self.status_code = status_code


class UnsupportedMediaTypeError(WebFetchError):
    code = "UNSUPPORTED_MEDIA_TYPE"

    def __init__(self, content_type: str) -> None:
        super().__init__(
            f"Unsupported content type: {content_type or 'unknown'}. "
            "Only HTML content is supported."
        )
        self.content_type = content_type


# ---------------------------------------------------------------------------
# Batch input
# ---------------------------------------------------------------------------

class BatchError(WebFetchError):
    code = "INVALID_BATCH"


class EmptyBatchError(BatchError):
    code = "EMPTY_BATCH"

    def __init__(self) -> None:
        super().__init__("No URLs provided")


class BatchTooLargeError(BatchError):
    code = "BATCH_TOO_LARGE"

    def __init__(self, size: int, limit: int) -> None:
        super().__init__(
            f"Too many URLs ({size}). Maximum {limit} URLs allowed per request."
        )
        self.size = size
        self.limit = limit


# ---------------------------------------------------------------------------
# Request options
# ---------------------------------------------------------------------------

class InvalidRequestError(WebFetchError, ValueError):
    code = "INVALID_REQUEST"

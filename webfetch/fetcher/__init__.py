"""Fetcher package: URL guard, HTTP fetch, HTML conversion and batching."""

from webfetch.fetcher.batch import fetch_batch, iter_batch, validate_batch
from webfetch.fetcher.fetcher import check_status, fetch
from webfetch.fetcher.guard import clamp_concurrency, clamp_timeout, validate_url
from webfetch.fetcher.models import (
    BatchOptions,
    BatchResult,
    FetchRequest,
    FetchResult,
    PageMetadata,
    ProgressEvent,
    StatusReport,
)
from webfetch.fetcher.transform import (
    MarkdownOptions,
    extract_metadata,
    extract_title,
    to_markdown,
    to_plain_text,
)

__all__ = [
    "validate_url",
    "clamp_timeout",
    "clamp_concurrency",
    "fetch",
    "check_status",
    "fetch_batch",
    "iter_batch",
    "validate_batch",
    "extract_title",
    "to_plain_text",
    "to_markdown",
    "extract_metadata",
    "MarkdownOptions",
    "FetchRequest",
    "FetchResult",
    "BatchOptions",
    "BatchResult",
    "PageMetadata",
    "ProgressEvent",
    "StatusReport",
]

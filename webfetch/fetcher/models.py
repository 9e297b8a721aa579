"""Data models for the fetch pipeline.

Request types are frozen; result types are plain dataclasses that know how
to render themselves as the camelCase JSON objects sent over the wire.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, List, Literal, Mapping, Optional

from webfetch.errors import InvalidRequestError
from webfetch.fetcher.guard import (
    DEFAULT_CONCURRENCY,
    DEFAULT_TIMEOUT_MS,
    clamp_concurrency,
    clamp_timeout,
)

OutputFormat = Literal["raw", "text", "markdown"]
OUTPUT_FORMATS: tuple[str, ...] = ("raw", "text", "markdown")


def utc_now_iso() -> str:
    """Current UTC time as ``2024-01-01T12:00:00.000Z``."""
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def is_success_status(status_code: int) -> bool:
    return 200 <= status_code < 400


def _check_format(fmt: str) -> None:
    if fmt not in OUTPUT_FORMATS:
        raise InvalidRequestError(
            f"Unknown output format {fmt!r}. Use one of: {', '.join(OUTPUT_FORMATS)}"
        )


def _check_ascii(label: str, value: str) -> None:
    try:
        value.encode("ascii")
    except UnicodeEncodeError:
        raise InvalidRequestError(f"{label} must be ASCII") from None


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class FetchRequest:
    """A single retrieval.  ``timeout_ms`` is clamped on construction."""

    url: str
    format: OutputFormat = "markdown"
    follow_redirects: bool = True
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    user_agent: Optional[str] = None
    headers: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        _check_format(self.format)
        if self.user_agent is not None:
            _check_ascii("User-Agent", self.user_agent)
        for name, value in (self.headers or {}).items():
            _check_ascii(f"Header {name!r}", name)
            _check_ascii(f"Header {name!r}", value)
        object.__setattr__(self, "timeout_ms", clamp_timeout(self.timeout_ms))
        object.__setattr__(self, "headers", MappingProxyType(dict(self.headers or {})))


@dataclass(frozen=True)
class BatchOptions:
    """Options shared by every URL of a batch."""

    format: OutputFormat = "markdown"
    follow_redirects: bool = True
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    concurrency: int = DEFAULT_CONCURRENCY

    def __post_init__(self) -> None:
        _check_format(self.format)
        object.__setattr__(self, "timeout_ms", clamp_timeout(self.timeout_ms))
        object.__setattr__(self, "concurrency", clamp_concurrency(self.concurrency))

    def request_for(self, url: str) -> FetchRequest:
        return FetchRequest(
            url=url,
            format=self.format,
            follow_redirects=self.follow_redirects,
            timeout_ms=self.timeout_ms,
        )


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------

@dataclass
class FetchResult:
    """Outcome of one retrieval.

    A failed result never carries partial data: when ``error`` is set the
    status code is 0 and the content is empty.  Build failures with
    :meth:`failure` rather than by hand.
    """

    url: str
    final_url: str
    content: str = ""
    content_type: str = ""
    status_code: int = 0
    title: str = ""
    headers: dict[str, str] = field(default_factory=dict)
    elapsed_ms: int = 0
    error: Optional[str] = None

    @classmethod
    def failure(cls, url: str, error: str) -> "FetchResult":
        return cls(url=url, final_url=url, error=error)

    @property
    def ok(self) -> bool:
        return self.error is None and is_success_status(self.status_code)

    def to_dict(self) -> dict[str, Any]:
        return {
            "url": self.url,
            "finalUrl": self.final_url,
            "content": self.content,
            "contentType": self.content_type,
            "statusCode": self.status_code,
            "title": self.title,
            "headers": dict(self.headers),
            "fetchTime": self.elapsed_ms,
            "error": self.error,
        }


@dataclass
class PageMetadata:
    title: Optional[str] = None
    description: Optional[str] = None
    keywords: Optional[str] = None
    author: Optional[str] = None
    robots: Optional[str] = None
    canonical: Optional[str] = None
    open_graph: dict[str, str] = field(default_factory=dict)
    twitter_card: dict[str, str] = field(default_factory=dict)
    structured_data: List[Any] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "description": self.description,
            "keywords": self.keywords,
            "author": self.author,
            "robots": self.robots,
            "canonical": self.canonical,
            "openGraph": dict(self.open_graph),
            "twitterCard": dict(self.twitter_card),
            "structuredData": list(self.structured_data),
        }


@dataclass
class BatchSummary:
    total_requested: int
    successful: int
    failed: int

    def to_dict(self) -> dict[str, int]:
        return {
            "totalRequested": self.total_requested,
            "successful": self.successful,
            "failed": self.failed,
        }


@dataclass
class BatchResult:
    """Per-URL results aligned by index with the requested URLs."""

    results: List[FetchResult] = field(default_factory=list)

    @property
    def summary(self) -> BatchSummary:
        successful = sum(1 for r in self.results if is_success_status(r.status_code))
        return BatchSummary(
            total_requested=len(self.results),
            successful=successful,
            failed=len(self.results) - successful,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "results": [{**r.to_dict(), "success": r.ok} for r in self.results],
            "summary": self.summary.to_dict(),
        }


@dataclass
class StatusReport:
    """Result of a HEAD probe."""

    url: str
    final_url: str
    status_code: int
    status_text: str
    content_type: Optional[str] = None
    content_length: Optional[str] = None
    last_modified: Optional[str] = None
    server: Optional[str] = None

    @property
    def accessible(self) -> bool:
        return 200 <= self.status_code < 300

    def to_dict(self) -> dict[str, Any]:
        return {
            "url": self.url,
            "finalUrl": self.final_url,
            "statusCode": self.status_code,
            "statusText": self.status_text,
            "contentType": self.content_type,
            "contentLength": self.content_length,
            "lastModified": self.last_modified,
            "server": self.server,
            "accessible": self.accessible,
        }


# ---------------------------------------------------------------------------
# Progress events
# ---------------------------------------------------------------------------

EVENT_START = "start"
EVENT_BATCH_START = "batch_start"
EVENT_RESULT = "result"
EVENT_BATCH_COMPLETE = "batch_complete"
EVENT_COMPLETE = "complete"
EVENT_ERROR = "error"


@dataclass
class ProgressEvent:
    """One step of a batch run.

    ``type`` is one of the ``EVENT_*`` constants; ``payload`` holds the
    type-specific fields.  Sequence ids are assigned when the event is framed
    for the wire, see :mod:`webfetch.stream`.
    """

    type: str
    payload: dict[str, Any] = field(default_factory=dict)
    timestamp: str = field(default_factory=utc_now_iso)
    # Set only on ``result`` events; not part of the wire payload.
    result: Optional[FetchResult] = field(default=None, repr=False, compare=False)

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, **self.payload, "timestamp": self.timestamp}

"""Public operations: fetch, batch fetch, metadata and status checks.

These are the functions the HTTP routers and the CLI call.  Each returns a
plain JSON-serialisable dict and never raises for an expected failure::

    {"success": true,  "data": {...}, "timestamp": "..."}
    {"success": false, "error": "...", "code": "TIMEOUT", "url": "...", "timestamp": "..."}

Batch results additionally carry a ``summary`` so callers can judge partial
success without walking every item.
"""

from __future__ import annotations

from typing import Any, Optional, Sequence

import httpx

from webfetch.config import settings
from webfetch.errors import WebFetchError
from webfetch.fetcher import (
    BatchOptions,
    FetchRequest,
    check_status,
    extract_metadata,
    fetch,
    fetch_batch,
)
from webfetch.fetcher.models import utc_now_iso


# ---------------------------------------------------------------------------
# Response envelopes
# ---------------------------------------------------------------------------

def _success(data: Any, **extra: Any) -> dict[str, Any]:
    return {"success": True, "data": data, **extra, "timestamp": utc_now_iso()}


def _failure(exc: WebFetchError, url: Optional[str] = None) -> dict[str, Any]:
    payload: dict[str, Any] = {"success": False, "error": exc.message, "code": exc.code}
    if url is not None:
        payload["url"] = url
    payload["timestamp"] = utc_now_iso()
    return payload


# ---------------------------------------------------------------------------
# Operations
# ---------------------------------------------------------------------------

async def fetch_website(
    url: str,
    format: str = "markdown",
    follow_redirects: bool = True,
    timeout_ms: Optional[int] = None,
    user_agent: Optional[str] = None,
    headers: Optional[dict[str, str]] = None,
    *,
    client: Optional[httpx.AsyncClient] = None,
) -> dict[str, Any]:
    """Fetch one page as ``raw`` HTML, plain ``text`` or ``markdown``."""
    try:
        request = FetchRequest(
            url=url,
            format=format,  # type: ignore[arg-type]
            follow_redirects=follow_redirects,
            timeout_ms=timeout_ms if timeout_ms is not None else settings.default_timeout_ms,
            user_agent=user_agent,
            headers=headers or {},
        )
        result = await fetch(request, client=client)
    except WebFetchError as exc:
        return _failure(exc, url)

    return _success(
        {
            "content": result.content,
            "title": result.title,
            "url": result.url,
            "finalUrl": result.final_url,
            "contentType": result.content_type,
            "statusCode": result.status_code,
            "headers": result.headers,
            "fetchTime": result.elapsed_ms,
            "format": format,
            "fetchedAt": utc_now_iso(),
        }
    )


async def fetch_multiple_websites(
    urls: Sequence[str],
    format: str = "markdown",
    max_concurrent: Optional[int] = None,
    follow_redirects: bool = True,
    timeout_ms: Optional[int] = None,
    *,
    client: Optional[httpx.AsyncClient] = None,
) -> dict[str, Any]:
    """Fetch up to 20 pages, ``max_concurrent`` at a time.

    Individual failures appear in their own entries; only a malformed batch
    (empty, too long, not a list) fails the whole call.
    """
    try:
        options = BatchOptions(
            format=format,  # type: ignore[arg-type]
            follow_redirects=follow_redirects,
            timeout_ms=timeout_ms if timeout_ms is not None else settings.default_timeout_ms,
            concurrency=max_concurrent if max_concurrent is not None else settings.default_concurrency,
        )
        batch = await fetch_batch(urls, options, client=client)
    except WebFetchError as exc:
        return _failure(exc)

    rendered = batch.to_dict()
    return _success(rendered["results"], summary=rendered["summary"])


async def extract_website_metadata(
    url: str,
    *,
    client: Optional[httpx.AsyncClient] = None,
) -> dict[str, Any]:
    """Fetch *url* and report its meta tags, canonical link and JSON-LD."""
    try:
        request = FetchRequest(url=url, format="raw", timeout_ms=settings.metadata_timeout_ms)
        result = await fetch(request, client=client)
    except WebFetchError as exc:
        return _failure(exc, url)

    return _success(
        {
            "url": result.url,
            "finalUrl": result.final_url,
            "title": result.title,
            "statusCode": result.status_code,
            "contentType": result.content_type,
            "metadata": extract_metadata(result.content).to_dict(),
            "fetchedAt": utc_now_iso(),
        }
    )


async def check_website_status(
    url: str,
    *,
    client: Optional[httpx.AsyncClient] = None,
) -> dict[str, Any]:
    """HEAD *url* and report status and selected headers; no body is read."""
    try:
        report = await check_status(url, client=client)
    except WebFetchError as exc:
        return _failure(exc, url)

    return _success({**report.to_dict(), "checkedAt": utc_now_iso()})

"""HTTP fetcher: one guarded GET (or HEAD) per call, with a hard deadline.

Redirects are followed one hop at a time and every hop goes through the URL
guard, so a public page cannot bounce a request to a private host.  The
guard still checks hostnames only; DNS rebinding is not caught.

No retries are attempted.  Every failure surfaces as a
:class:`~webfetch.errors.WebFetchError` subclass; ``httpx`` exceptions never
escape this module.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Optional

import httpx

from webfetch.config import settings
from webfetch.errors import (
    FetchTimeoutError,
    HTTPStatusError,
    NetworkError,
    UnsupportedMediaTypeError,
)
from webfetch.fetcher.guard import clamp_timeout, validate_url
from webfetch.fetcher.models import FetchRequest, FetchResult, StatusReport
from webfetch.fetcher.transform import (
    MarkdownOptions,
    extract_title,
    to_markdown,
    to_plain_text,
)

logger = logging.getLogger(__name__)

_DEFAULT_HEADERS = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.5",
    "Accept-Encoding": "gzip, deflate",
    "Cache-Control": "no-cache",
    "Pragma": "no-cache",
}

# Servers that omit Content-Type are assumed to be sending HTML.
_FALLBACK_CONTENT_TYPE = "text/html"


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _build_headers(user_agent: Optional[str], extra: Optional[dict[str, str]] = None) -> httpx.Headers:
    """Default header set, with caller headers replacing defaults case-insensitively."""
    headers = httpx.Headers({"User-Agent": user_agent or settings.user_agent, **_DEFAULT_HEADERS})
    if extra:
        headers.update(extra)
    return headers


def _is_html(content_type: str) -> bool:
    lowered = content_type.lower()
    return "text/html" in lowered or "application/xhtml" in lowered


def _render(html: str, fmt: str, base_url: str) -> str:
    if fmt == "raw":
        return html
    if fmt == "text":
        return to_plain_text(html)
    return to_markdown(html, MarkdownOptions(base_url=base_url))


async def _follow(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    *,
    follow_redirects: bool,
    **kwargs: Any,
) -> httpx.Response:
    """Send one request and follow redirects hop by hop, guarding every hop."""
    response = await client.request(method, url, follow_redirects=False, **kwargs)
    hops = 0
    while follow_redirects and response.next_request is not None:
        hops += 1
        if hops > client.max_redirects:
            raise httpx.TooManyRedirects("Exceeded maximum allowed redirects.", request=response.request)
        next_request = response.next_request
        validate_url(str(next_request.url))
        await response.aclose()
        response = await client.send(next_request, follow_redirects=False)
    return response


async def _request(
    method: str,
    url: str,
    client: Optional[httpx.AsyncClient],
    **kwargs: Any,
) -> httpx.Response:
    if client is not None:
        return await _follow(client, method, url, **kwargs)
    async with httpx.AsyncClient() as owned:
        return await _follow(owned, method, url, **kwargs)


async def _send(
    method: str,
    url: str,
    *,
    headers: httpx.Headers,
    follow_redirects: bool,
    timeout_ms: int,
    client: Optional[httpx.AsyncClient] = None,
) -> httpx.Response:
    """Issue one request, cancelling it once *timeout_ms* has elapsed.

    Raises:
        FetchTimeoutError: the deadline passed before the response was read.
        ForbiddenHostError: a redirect pointed at a local or private host.
        NetworkError: any other transport-level failure.
    """
    timeout_s = timeout_ms / 1000
    try:
        return await asyncio.wait_for(
            _request(
                method,
                url,
                client,
                headers=headers,
                follow_redirects=follow_redirects,
                timeout=httpx.Timeout(timeout_s),
            ),
            timeout=timeout_s,
        )
    except (asyncio.TimeoutError, httpx.TimeoutException) as exc:
        logger.warning("%s %s timed out after %dms", method, url, timeout_ms)
        raise FetchTimeoutError(timeout_ms) from exc
    except (httpx.RequestError, httpx.InvalidURL) as exc:
        reason = str(exc) or type(exc).__name__
        logger.warning("%s %s failed: %s", method, url, reason)
        raise NetworkError(f"Failed to fetch {url}: {reason}") from exc


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

async def fetch(
    request: FetchRequest,
    *,
    client: Optional[httpx.AsyncClient] = None,
    strict_content_type: Optional[bool] = None,
) -> FetchResult:
    """Fetch ``request.url`` and return its content in ``request.format``.

    Non-HTML responses are returned verbatim unless strict mode is on
    (``strict_content_type`` argument, else ``settings.strict_content_type``),
    in which case they are rejected.

    Raises:
        UrlValidationError: the URL failed the guard; nothing was sent.
        FetchTimeoutError: the request did not finish within its timeout.
        NetworkError: DNS, connection, TLS or redirect-loop failure.
        HTTPStatusError: the server answered with a status of 400 or above.
        UnsupportedMediaTypeError: strict mode and a non-HTML response.
    """
    validate_url(request.url)
    strict = settings.strict_content_type if strict_content_type is None else strict_content_type

    started = time.perf_counter()
    logger.debug("GET %s (format=%s, timeout=%dms)", request.url, request.format, request.timeout_ms)
    response = await _send(
        "GET",
        request.url,
        headers=_build_headers(request.user_agent, dict(request.headers)),
        follow_redirects=request.follow_redirects,
        timeout_ms=request.timeout_ms,
        client=client,
    )
    elapsed_ms = int((time.perf_counter() - started) * 1000)

    if response.status_code >= 400:
        raise HTTPStatusError(response.status_code, response.reason_phrase)

    content_type = response.headers.get("content-type") or _FALLBACK_CONTENT_TYPE
    final_url = str(response.url)
    result = FetchResult(
        url=request.url,
        final_url=final_url,
        content_type=content_type,
        status_code=response.status_code,
        headers=dict(response.headers),
        elapsed_ms=elapsed_ms,
    )

    if not _is_html(content_type):
        if strict:
            raise UnsupportedMediaTypeError(content_type)
        result.content = response.text
        logger.info("Fetched %s (%s, returned verbatim) in %dms", request.url, content_type, elapsed_ms)
        return result

    html = response.text
    result.title = extract_title(html)
    result.content = _render(html, request.format, final_url)
    logger.info(
        "Fetched %s -> %d (%d chars %s) in %dms",
        request.url, response.status_code, len(result.content), request.format, elapsed_ms,
    )
    return result


async def check_status(
    url: str,
    *,
    timeout_ms: Optional[int] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> StatusReport:
    """Probe *url* with a HEAD request; the body is never downloaded.

    Error statuses are reported, not raised: a 404 yields a report with
    ``accessible == False``.
    """
    validate_url(url)
    timeout = clamp_timeout(timeout_ms if timeout_ms is not None else settings.status_timeout_ms)
    response = await _send(
        "HEAD",
        url,
        headers=httpx.Headers({"User-Agent": settings.user_agent}),
        follow_redirects=True,
        timeout_ms=timeout,
        client=client,
    )
    headers = response.headers
    return StatusReport(
        url=url,
        final_url=str(response.url),
        status_code=response.status_code,
        status_text=response.reason_phrase,
        content_type=headers.get("content-type"),
        content_length=headers.get("content-length"),
        last_modified=headers.get("last-modified"),
        server=headers.get("server"),
    )

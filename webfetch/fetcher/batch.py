"""Batch fetching with a bounded concurrency window.

URLs are processed in consecutive chunks of ``options.concurrency``.  All
fetches of a chunk run concurrently and the next chunk starts only once every
fetch of the current one has finished.  A failing URL is recorded in its own
result slot and never affects its siblings.

:func:`iter_batch` exposes the run as a stream of :class:`ProgressEvent`
objects; :func:`fetch_batch` drains that stream into a :class:`BatchResult`.
Closing the iterator early cancels the in-flight fetches of the current
chunk and no further chunk is started.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, List, Optional, Sequence

import httpx

from webfetch.errors import BatchError, BatchTooLargeError, EmptyBatchError, WebFetchError
from webfetch.fetcher.fetcher import fetch
from webfetch.fetcher.guard import MAX_BATCH_URLS
from webfetch.fetcher.models import (
    EVENT_BATCH_COMPLETE,
    EVENT_BATCH_START,
    EVENT_COMPLETE,
    EVENT_RESULT,
    EVENT_START,
    BatchOptions,
    BatchResult,
    FetchResult,
    ProgressEvent,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

@asynccontextmanager
async def _client_scope(client: Optional[httpx.AsyncClient]) -> AsyncIterator[httpx.AsyncClient]:
    """Yield *client*, or a batch-owned client that is closed afterwards."""
    if client is not None:
        yield client
        return
    async with httpx.AsyncClient() as owned:
        yield owned


async def _fetch_one(
    index: int,
    url: str,
    options: BatchOptions,
    client: httpx.AsyncClient,
) -> tuple[int, FetchResult]:
    try:
        return index, await fetch(options.request_for(url), client=client)
    except WebFetchError as exc:
        logger.warning("Batch item %d (%s) failed: %s", index, url, exc)
        return index, FetchResult.failure(url, str(exc))
    except Exception as exc:  # noqa: BLE001
        logger.exception("Unexpected error fetching batch item %d (%s)", index, url)
        return index, FetchResult.failure(url, str(exc) or type(exc).__name__)


def _result_event(index: int, result: FetchResult, completed: int, total: int) -> ProgressEvent:
    payload: dict[str, Any] = {
        "url": result.url,
        "index": index,
        "completed": completed,
        "total": total,
        "success": result.ok,
        "data": result.to_dict() if result.error is None else None,
        "error": result.error,
    }
    return ProgressEvent(EVENT_RESULT, payload, result=result)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def validate_batch(urls: Any) -> List[str]:
    """Check the shape of a batch before any fetching starts.

    Raises:
        BatchError: *urls* is not a list of strings.
        EmptyBatchError: *urls* is empty.
        BatchTooLargeError: more than ``MAX_BATCH_URLS`` entries.
    """
    if not isinstance(urls, (list, tuple)) or not all(isinstance(u, str) for u in urls):
        raise BatchError("URLs array is required")
    if not urls:
        raise EmptyBatchError()
    if len(urls) > MAX_BATCH_URLS:
        raise BatchTooLargeError(len(urls), MAX_BATCH_URLS)
    return list(urls)


def chunked(items: Sequence[str], size: int) -> List[List[str]]:
    """Split *items* into consecutive chunks of at most *size* entries."""
    return [list(items[i:i + size]) for i in range(0, len(items), size)]


async def iter_batch(
    urls: Sequence[str],
    options: Optional[BatchOptions] = None,
    *,
    client: Optional[httpx.AsyncClient] = None,
) -> AsyncIterator[ProgressEvent]:
    """Fetch *urls* chunk by chunk, yielding progress as it happens.

    Yields ``start``, then per chunk ``batch_start``, one ``result`` per URL
    in completion order, ``batch_complete``; finally ``complete``.
    """
    url_list = validate_batch(urls)
    options = options or BatchOptions()
    total = len(url_list)
    completed = 0

    yield ProgressEvent(EVENT_START, {"totalUrls": total})

    async with _client_scope(client) as shared:
        for batch_index, chunk in enumerate(chunked(url_list, options.concurrency)):
            offset = batch_index * options.concurrency
            yield ProgressEvent(EVENT_BATCH_START, {"batchIndex": batch_index, "urls": chunk})

            tasks = [
                asyncio.create_task(_fetch_one(offset + i, url, options, shared))
                for i, url in enumerate(chunk)
            ]
            try:
                for next_done in asyncio.as_completed(tasks):
                    index, result = await next_done
                    completed += 1
                    yield _result_event(index, result, completed, total)
            finally:
                pending = [t for t in tasks if not t.done()]
                for task in pending:
                    task.cancel()
                if pending:
                    await asyncio.gather(*pending, return_exceptions=True)
                    logger.info("Batch closed early; cancelled %d in-flight fetch(es)", len(pending))

            yield ProgressEvent(
                EVENT_BATCH_COMPLETE,
                {"batchIndex": batch_index, "completed": completed, "total": total},
            )

    yield ProgressEvent(EVENT_COMPLETE, {"totalCompleted": completed, "totalRequested": total})


async def fetch_batch(
    urls: Sequence[str],
    options: Optional[BatchOptions] = None,
    *,
    client: Optional[httpx.AsyncClient] = None,
) -> BatchResult:
    """Fetch every URL and return results aligned by index with *urls*.

    Raises:
        BatchError: only for input-shape problems, before any request is sent.
    """
    url_list = validate_batch(urls)
    slots: List[Optional[FetchResult]] = [None] * len(url_list)

    async for event in iter_batch(url_list, options, client=client):
        if event.type == EVENT_RESULT and event.result is not None:
            slots[event.payload["index"]] = event.result

    results = [
        slot if slot is not None else FetchResult.failure(url, "Not fetched")
        for url, slot in zip(url_list, slots)
    ]
    batch = BatchResult(results)
    summary = batch.summary
    logger.info(
        "Batch finished: %d requested, %d ok, %d failed",
        summary.total_requested, summary.successful, summary.failed,
    )
    return batch

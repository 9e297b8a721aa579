"""Batch fetch with progress streamed as Server-Sent Events.

Routes
------
POST /stream/batch?session=<id>    Body: {"urls": [...], "maxConcurrent": 3, ...}

SSE event format
----------------
Every frame has an ``id`` (1, 2, 3, ...), an ``event`` name equal to the
payload's ``type`` and a JSON ``data`` line::

    id: 1
    event: start
    data: {"type":"start","totalUrls":2,"sessionId":"...","timestamp":"..."}

Event order: ``start``, then per chunk ``batch_start``, ``result`` x N,
``batch_complete``; finally ``complete``.  A failure of the stream itself
ends it with a single ``error`` event.

If the client goes away the event source is closed, which cancels in-flight
fetches and skips the remaining chunks.
"""

from __future__ import annotations

import logging
from typing import AsyncGenerator, AsyncIterator, Literal, Optional

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, ConfigDict, Field

from webfetch.config import settings
from webfetch.errors import BatchError
from webfetch.fetcher import BatchOptions, validate_batch
from webfetch.stream import SSE_HEADERS, stream_batch

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Schemas
# ---------------------------------------------------------------------------

class StreamBatchBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    urls: list[str]
    format: Literal["raw", "text", "markdown"] = "markdown"
    max_concurrent: Optional[int] = Field(None, alias="maxConcurrent")
    follow_redirects: bool = Field(True, alias="followRedirects")
    timeout: Optional[int] = None


# ---------------------------------------------------------------------------
# SSE helpers
# ---------------------------------------------------------------------------

async def _until_disconnected(
    request: Request,
    frames: AsyncGenerator[str, None],
) -> AsyncIterator[str]:
    """Forward *frames* until the client disconnects, then close the source."""
    try:
        async for frame in frames:
            if await request.is_disconnected():
                logger.info("Client disconnected; stopping batch stream")
                break
            yield frame
    finally:
        await frames.aclose()


# ---------------------------------------------------------------------------
# Route
# ---------------------------------------------------------------------------

@router.post("/batch")
async def stream_batch_endpoint(
    body: StreamBatchBody,
    request: Request,
    session: Optional[str] = None,
) -> StreamingResponse:
    """Fetch a batch of URLs and stream progress as ``text/event-stream``.

    An empty or oversized URL list is rejected with 400 before streaming
    starts.
    """
    try:
        urls = validate_batch(body.urls)
    except BatchError as exc:
        raise HTTPException(status_code=400, detail=exc.message) from exc

    options = BatchOptions(
        format=body.format,
        follow_redirects=body.follow_redirects,
        timeout_ms=body.timeout if body.timeout is not None else settings.default_timeout_ms,
        concurrency=body.max_concurrent if body.max_concurrent is not None else settings.default_concurrency,
    )
    frames = stream_batch(urls, options, session_id=session, retry_ms=settings.sse_retry_ms)

    return StreamingResponse(
        _until_disconnected(request, frames),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )

"""Server-Sent Events framing for batch progress.

Each :class:`ProgressEvent` becomes one SSE frame::

    id: 3
    event: result
    data: {"type":"result","url":"https://...","index":0,...}

Frames carry strictly increasing ids starting at 1, whatever their type.
If the event source raises, a single ``error`` frame is written and the
stream ends.  Closing the stream closes the event source, which stops the
batch from starting further work.
"""

from __future__ import annotations

import itertools
import json
import logging
import secrets
import time
from typing import Any, AsyncGenerator, AsyncIterator, Optional, Sequence

import httpx

from webfetch.fetcher.batch import iter_batch
from webfetch.fetcher.models import EVENT_ERROR, EVENT_START, BatchOptions, ProgressEvent

logger = logging.getLogger(__name__)

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",   # disable nginx proxy buffering
}


def generate_session_id() -> str:
    return f"session_{int(time.time() * 1000)}_{secrets.token_hex(6)}"


def _encode(payload: dict[str, Any]) -> str:
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False)


def format_sse(
    data: str,
    *,
    id: Optional[int | str] = None,
    event: Optional[str] = None,
    retry: Optional[int] = None,
) -> str:
    """Format one SSE frame.

    Optional ``id:``, ``event:`` and ``retry:`` lines come first, then every
    line of *data* prefixed with ``data: ``, then a blank line.
    """
    parts: list[str] = []
    if id is not None and id != "":
        parts.append(f"id: {id}\n")
    if event:
        parts.append(f"event: {event}\n")
    if retry:
        parts.append(f"retry: {retry}\n")
    for line in data.split("\n"):
        parts.append(f"data: {line}\n")
    parts.append("\n")
    return "".join(parts)


async def stream_events(
    events: AsyncIterator[ProgressEvent],
    *,
    session_id: Optional[str] = None,
    retry_ms: Optional[int] = None,
) -> AsyncGenerator[str, None]:
    """Turn *events* into SSE frames with sequential ids.

    ``session_id`` is added to the ``start`` event; ``retry_ms`` is sent once,
    on the first frame.
    """
    ids = itertools.count(1)
    retry = retry_ms or None

    def frame(event: ProgressEvent) -> str:
        nonlocal retry
        text = format_sse(_encode(event.to_dict()), id=next(ids), event=event.type, retry=retry)
        retry = None
        return text

    try:
        async for event in events:
            if event.type == EVENT_START and session_id:
                event.payload.setdefault("sessionId", session_id)
            yield frame(event)
    except Exception as exc:  # noqa: BLE001
        logger.exception("Progress stream aborted")
        yield frame(ProgressEvent(EVENT_ERROR, {"error": str(exc) or type(exc).__name__}))
    finally:
        aclose = getattr(events, "aclose", None)
        if aclose is not None:
            await aclose()


def stream_batch(
    urls: Sequence[str],
    options: Optional[BatchOptions] = None,
    *,
    session_id: Optional[str] = None,
    retry_ms: Optional[int] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> AsyncGenerator[str, None]:
    """SSE frames for a whole batch run (see :func:`iter_batch`)."""
    return stream_events(
        iter_batch(urls, options, client=client),
        session_id=session_id or generate_session_id(),
        retry_ms=retry_ms,
    )

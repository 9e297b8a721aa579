"""Fetch endpoints.

Routes
------
POST /api/fetch             Body: {"url": "...", "format": "markdown", ...}
POST /api/fetch-multiple    Body: {"urls": ["...", ...], "maxConcurrent": 5, ...}
POST /api/metadata          Body: {"url": "..."}
POST /api/status            Body: {"url": "..."}

Every route answers 200 with the ``{"success": ..., ...}`` envelope from
:mod:`webfetch.tools`; only malformed bodies are rejected (422).
"""

from __future__ import annotations

from typing import Any, Literal, Optional

from fastapi import APIRouter
from pydantic import BaseModel, ConfigDict, Field

from webfetch.tools import (
    check_website_status,
    extract_website_metadata,
    fetch_multiple_websites,
    fetch_website,
)

router = APIRouter()


# ---------------------------------------------------------------------------
# Schemas
# ---------------------------------------------------------------------------

class FetchBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    url: str
    format: Literal["raw", "text", "markdown"] = "markdown"
    follow_redirects: bool = Field(True, alias="followRedirects")
    timeout: Optional[int] = Field(None, description="Timeout in milliseconds.")
    user_agent: Optional[str] = Field(None, alias="userAgent")
    headers: Optional[dict[str, str]] = None


class FetchMultipleBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    urls: list[str]
    format: Literal["raw", "text", "markdown"] = "markdown"
    max_concurrent: Optional[int] = Field(None, alias="maxConcurrent")
    follow_redirects: bool = Field(True, alias="followRedirects")
    timeout: Optional[int] = None


class UrlBody(BaseModel):
    url: str


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post("/fetch")
async def fetch_endpoint(body: FetchBody) -> dict[str, Any]:
    """Fetch one page in the requested format."""
    return await fetch_website(
        body.url,
        format=body.format,
        follow_redirects=body.follow_redirects,
        timeout_ms=body.timeout,
        user_agent=body.user_agent,
        headers=body.headers,
    )


@router.post("/fetch-multiple")
async def fetch_multiple_endpoint(body: FetchMultipleBody) -> dict[str, Any]:
    """Fetch up to 20 pages with bounded concurrency."""
    return await fetch_multiple_websites(
        body.urls,
        format=body.format,
        max_concurrent=body.max_concurrent,
        follow_redirects=body.follow_redirects,
        timeout_ms=body.timeout,
    )


@router.post("/metadata")
async def metadata_endpoint(body: UrlBody) -> dict[str, Any]:
    """Extract title, meta tags, canonical URL and JSON-LD from a page."""
    return await extract_website_metadata(body.url)


@router.post("/status")
async def status_endpoint(body: UrlBody) -> dict[str, Any]:
    """HEAD-check a URL without downloading its body."""
    return await check_website_status(body.url)

"""Tests for the public operations and their success / failure envelopes."""

from __future__ import annotations

import httpx
import pytest
import respx

from webfetch import (
    check_website_status,
    extract_website_metadata,
    fetch_multiple_websites,
    fetch_website,
)
from webfetch.config import settings
from webfetch.errors import NetworkError


# ---------------------------------------------------------------------------
# Fixtures / constants
# ---------------------------------------------------------------------------

_META_PAGE = """\
<html><head>
<title>Docs</title>
<meta name="description" content="Project documentation">
<meta property="og:type" content="website">
<link rel="canonical" href="https://example.com/docs">
</head><body><h1>Docs</h1></body></html>
"""


@pytest.fixture(autouse=True)
def permissive(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings, "strict_content_type", False)


# ---------------------------------------------------------------------------
# fetch_website
# ---------------------------------------------------------------------------

class TestFetchWebsite:
    @respx.mock
    async def test_success_envelope(self) -> None:
        respx.get("https://example.com/docs").mock(
            return_value=httpx.Response(200, text=_META_PAGE, headers={"content-type": "text/html"})
        )

        response = await fetch_website("https://example.com/docs", format="text")

        assert response["success"] is True
        assert response["timestamp"].endswith("Z")
        data = response["data"]
        assert data["title"] == "Docs"
        assert data["content"] == "Docs\n\nDocs"
        assert data["format"] == "text"
        assert data["statusCode"] == 200
        assert data["finalUrl"] == "https://example.com/docs"
        assert set(data) >= {"url", "contentType", "headers", "fetchTime", "fetchedAt"}

    async def test_guard_failure_envelope(self) -> None:
        response = await fetch_website("http://10.0.0.1/admin")

        assert response["success"] is False
        assert response["code"] == "FORBIDDEN_HOST"
        assert response["url"] == "http://10.0.0.1/admin"
        assert "10.0.0.1" in response["error"]
        assert "data" not in response

    async def test_invalid_format_envelope(self) -> None:
        response = await fetch_website("https://example.com/", format="pdf")

        assert response["success"] is False
        assert response["code"] == "INVALID_REQUEST"

    async def test_non_ascii_header_envelope(self) -> None:
        async with respx.mock(assert_all_called=False) as router:
            route = router.get("https://example.com/").mock(return_value=httpx.Response(200))

            by_header = await fetch_website("https://example.com/", headers={"X-Name": "caf\u00e9"})
            by_agent = await fetch_website("https://example.com/", user_agent="Agent\u2122")

        for response in (by_header, by_agent):
            assert response["success"] is False
            assert response["code"] == "INVALID_REQUEST"
            assert response["url"] == "https://example.com/"
        assert not route.called

    @respx.mock
    async def test_http_error_envelope(self) -> None:
        respx.get("https://example.com/private").mock(return_value=httpx.Response(403))

        response = await fetch_website("https://example.com/private")

        assert response == {
            "success": False,
            "error": "HTTP 403: Forbidden",
            "code": "HTTP_ERROR",
            "url": "https://example.com/private",
            "timestamp": response["timestamp"],
        }


# ---------------------------------------------------------------------------
# fetch_multiple_websites
# ---------------------------------------------------------------------------

class TestFetchMultipleWebsites:
    @respx.mock
    async def test_partial_success(self) -> None:
        respx.get("https://ok.example.com/").mock(
            return_value=httpx.Response(200, text="<title>OK</title>", headers={"content-type": "text/html"})
        )
        respx.get("https://bad.example.com/").mock(return_value=httpx.Response(502))

        response = await fetch_multiple_websites(
            ["https://ok.example.com/", "https://bad.example.com/"], max_concurrent=2
        )

        assert response["success"] is True
        assert [item["success"] for item in response["data"]] == [True, False]
        assert response["data"][1]["statusCode"] == 0
        assert response["summary"] == {"totalRequested": 2, "successful": 1, "failed": 1}

    async def test_batch_shape_failures(self) -> None:
        empty = await fetch_multiple_websites([])
        too_many = await fetch_multiple_websites([f"https://e{i}.example.com/" for i in range(21)])

        assert (empty["success"], empty["code"]) == (False, "EMPTY_BATCH")
        assert (too_many["success"], too_many["code"]) == (False, "BATCH_TOO_LARGE")
        assert "url" not in too_many


# ---------------------------------------------------------------------------
# extract_website_metadata / check_website_status
# ---------------------------------------------------------------------------

class TestMetadataAndStatus:
    @respx.mock
    async def test_metadata(self) -> None:
        respx.get("https://example.com/docs").mock(
            return_value=httpx.Response(200, text=_META_PAGE, headers={"content-type": "text/html"})
        )

        response = await extract_website_metadata("https://example.com/docs")

        assert response["success"] is True
        metadata = response["data"]["metadata"]
        assert metadata["title"] == "Docs"
        assert metadata["description"] == "Project documentation"
        assert metadata["openGraph"] == {"og:type": "website"}
        assert metadata["canonical"] == "https://example.com/docs"
        assert response["data"]["title"] == "Docs"

    async def test_metadata_uses_metadata_timeout(self, monkeypatch: pytest.MonkeyPatch) -> None:
        seen = {}

        async def fake_fetch(request, *, client=None):
            seen["timeout"] = request.timeout_ms
            seen["format"] = request.format
            raise NetworkError("stop here")

        monkeypatch.setattr("webfetch.tools.fetch", fake_fetch)
        monkeypatch.setattr(settings, "metadata_timeout_ms", 15000)

        response = await extract_website_metadata("https://example.com/")

        assert response["code"] == "NETWORK_ERROR"
        assert seen == {"timeout": 15000, "format": "raw"}

    @respx.mock
    async def test_status(self) -> None:
        respx.head("https://example.com/").mock(
            return_value=httpx.Response(200, headers={"server": "caddy"})
        )

        response = await check_website_status("https://example.com/")

        assert response["success"] is True
        assert response["data"]["accessible"] is True
        assert response["data"]["server"] == "caddy"
        assert "checkedAt" in response["data"]

    async def test_status_guard_failure(self) -> None:
        response = await check_website_status("ftp://example.com/")

        assert response["success"] is False
        assert response["code"] == "UNSUPPORTED_SCHEME"

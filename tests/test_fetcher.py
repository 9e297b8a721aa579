"""Tests for the fetch executor.

Mocking strategy:
- ``respx`` patches ``httpx`` at the transport layer so no real network calls
  are made.  A route that must never be hit is asserted with ``.called``.
- ``settings`` fields are monkeypatched where a test depends on them.
"""

from __future__ import annotations

import httpx
import pytest
import respx

from webfetch.config import settings
from webfetch.errors import (
    FetchTimeoutError,
    ForbiddenHostError,
    HTTPStatusError,
    NetworkError,
    UnsupportedMediaTypeError,
)
from webfetch.fetcher.fetcher import check_status, fetch
from webfetch.fetcher.models import FetchRequest


# ---------------------------------------------------------------------------
# Fixtures / constants
# ---------------------------------------------------------------------------

_PAGE_HTML = """\
<html>
<head><title>Example Page</title></head>
<body>
  <h1>Welcome</h1>
  <p>Some <strong>important</strong> text with a <a href="/about">link</a>.</p>
</body>
</html>
"""

_HTML_HEADERS = {"content-type": "text/html; charset=utf-8"}


@pytest.fixture(autouse=True)
def permissive(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings, "strict_content_type", False)


# ---------------------------------------------------------------------------
# fetch
# ---------------------------------------------------------------------------

class TestFetch:
    @respx.mock
    async def test_markdown_success(self) -> None:
        respx.get("https://example.com/page").mock(
            return_value=httpx.Response(200, text=_PAGE_HTML, headers=_HTML_HEADERS)
        )

        result = await fetch(FetchRequest(url="https://example.com/page"))

        assert result.error is None
        assert result.ok
        assert result.status_code == 200
        assert result.title == "Example Page"
        assert result.final_url == "https://example.com/page"
        assert result.content_type.startswith("text/html")
        assert "# Welcome" in result.content
        assert "**important**" in result.content
        assert "[link](https://example.com/about)" in result.content
        assert result.headers["content-type"] == "text/html; charset=utf-8"
        assert result.elapsed_ms >= 0

    @respx.mock
    async def test_raw_and_text_formats(self) -> None:
        respx.get("https://example.com/").mock(
            return_value=httpx.Response(200, text=_PAGE_HTML, headers=_HTML_HEADERS)
        )

        raw = await fetch(FetchRequest(url="https://example.com/", format="raw"))
        text = await fetch(FetchRequest(url="https://example.com/", format="text"))

        assert raw.content == _PAGE_HTML
        assert raw.title == "Example Page"
        assert "<" not in text.content
        assert "Some important text with a link." in text.content

    @respx.mock
    async def test_missing_content_type_treated_as_html(self) -> None:
        respx.get("https://example.com/").mock(
            return_value=httpx.Response(200, content=b"<h1>Bare</h1>")
        )

        result = await fetch(FetchRequest(url="https://example.com/"))

        assert result.content_type == "text/html"
        assert result.content == "# Bare"

    @respx.mock
    async def test_non_html_returned_verbatim(self) -> None:
        body = '{"items": [1, 2, 3]}'
        respx.get("https://api.example.com/data").mock(
            return_value=httpx.Response(203, text=body, headers={"content-type": "application/json"})
        )

        with pytest.MonkeyPatch.context() as mp:
            mp.setattr(
                "webfetch.fetcher.fetcher.to_markdown",
                lambda *a, **kw: pytest.fail("transformer must not run"),
            )
            result = await fetch(FetchRequest(url="https://api.example.com/data"))

        assert result.content == body
        assert result.status_code == 203
        assert result.title == ""
        assert result.content_type == "application/json"

    @respx.mock
    async def test_non_html_rejected_in_strict_mode(self) -> None:
        respx.get("https://example.com/file.pdf").mock(
            return_value=httpx.Response(200, content=b"%PDF", headers={"content-type": "application/pdf"})
        )

        with pytest.raises(UnsupportedMediaTypeError) as exc_info:
            await fetch(FetchRequest(url="https://example.com/file.pdf"), strict_content_type=True)
        assert exc_info.value.content_type == "application/pdf"

    @respx.mock
    async def test_strict_mode_from_settings(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(settings, "strict_content_type", True)
        respx.get("https://example.com/a.txt").mock(
            return_value=httpx.Response(200, text="plain", headers={"content-type": "text/plain"})
        )

        with pytest.raises(UnsupportedMediaTypeError):
            await fetch(FetchRequest(url="https://example.com/a.txt"))

    @respx.mock
    async def test_xhtml_accepted_in_strict_mode(self) -> None:
        respx.get("https://example.com/x").mock(
            return_value=httpx.Response(
                200, text="<title>X</title>", headers={"content-type": "application/xhtml+xml"}
            )
        )

        result = await fetch(FetchRequest(url="https://example.com/x"), strict_content_type=True)
        assert result.title == "X"

    @respx.mock
    async def test_http_error_status(self) -> None:
        respx.get("https://example.com/missing").mock(return_value=httpx.Response(404))

        with pytest.raises(HTTPStatusError) as exc_info:
            await fetch(FetchRequest(url="https://example.com/missing"))
        assert exc_info.value.status_code == 404
        assert exc_info.value.message == "HTTP 404: Not Found"

    @respx.mock
    async def test_timeout(self) -> None:
        respx.get("https://slow.example.com/").mock(side_effect=httpx.ReadTimeout("too slow"))

        with pytest.raises(FetchTimeoutError) as exc_info:
            await fetch(FetchRequest(url="https://slow.example.com/", timeout_ms=2000))
        assert exc_info.value.code == "TIMEOUT"
        assert exc_info.value.message == "Request timeout after 2000ms"

    @respx.mock
    async def test_network_error(self) -> None:
        respx.get("https://down.example.com/").mock(side_effect=httpx.ConnectError("refused"))

        with pytest.raises(NetworkError) as exc_info:
            await fetch(FetchRequest(url="https://down.example.com/"))
        assert "Failed to fetch https://down.example.com/" in exc_info.value.message

    async def test_forbidden_host_never_hits_network(self) -> None:
        async with respx.mock(assert_all_called=False) as router:
            route = router.get("http://127.0.0.1/").mock(return_value=httpx.Response(200))

            with pytest.raises(ForbiddenHostError):
                await fetch(FetchRequest(url="http://127.0.0.1/"))
        assert not route.called

    @respx.mock
    async def test_default_and_custom_headers(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(settings, "user_agent", "TestAgent/1.0")
        route = respx.get("https://example.com/").mock(
            return_value=httpx.Response(200, text=_PAGE_HTML, headers=_HTML_HEADERS)
        )

        await fetch(FetchRequest(url="https://example.com/", headers={"accept": "text/html", "X-Extra": "1"}))

        sent = route.calls.last.request.headers
        assert sent["User-Agent"] == "TestAgent/1.0"
        assert sent["Accept"] == "text/html"
        assert sent["X-Extra"] == "1"
        assert sent["Accept-Language"] == "en-US,en;q=0.5"
        assert sent["Accept-Encoding"] == "gzip, deflate"

    @respx.mock
    async def test_custom_user_agent(self) -> None:
        route = respx.get("https://example.com/").mock(
            return_value=httpx.Response(200, text=_PAGE_HTML, headers=_HTML_HEADERS)
        )

        await fetch(FetchRequest(url="https://example.com/", user_agent="Custom/2.0"))

        assert route.calls.last.request.headers["User-Agent"] == "Custom/2.0"

    @respx.mock
    async def test_redirect_followed(self) -> None:
        respx.get("https://example.com/old").mock(
            return_value=httpx.Response(301, headers={"location": "https://example.com/new"})
        )
        respx.get("https://example.com/new").mock(
            return_value=httpx.Response(200, text=_PAGE_HTML, headers=_HTML_HEADERS)
        )

        result = await fetch(FetchRequest(url="https://example.com/old"))

        assert result.status_code == 200
        assert result.url == "https://example.com/old"
        assert result.final_url == "https://example.com/new"

    async def test_redirect_not_followed(self) -> None:
        async with respx.mock(assert_all_called=False) as router:
            router.get("https://example.com/old").mock(
                return_value=httpx.Response(
                    302, text="", headers={"location": "https://example.com/new", "content-type": "text/html"}
                )
            )
            target = router.get("https://example.com/new").mock(return_value=httpx.Response(200))

            result = await fetch(FetchRequest(url="https://example.com/old", follow_redirects=False))

        assert result.status_code == 302
        assert result.final_url == "https://example.com/old"
        assert not target.called

    async def test_redirect_to_private_host_is_refused(self) -> None:
        async with respx.mock(assert_all_called=False) as router:
            router.get("https://example.com/hop").mock(
                return_value=httpx.Response(302, headers={"location": "http://127.0.0.1/admin"})
            )
            private = router.get("http://127.0.0.1/admin").mock(return_value=httpx.Response(200))

            with pytest.raises(ForbiddenHostError):
                await fetch(FetchRequest(url="https://example.com/hop"))

        assert not private.called

    async def test_redirect_loop_is_network_error(self) -> None:
        async with respx.mock() as router:
            router.get("https://example.com/loop").mock(
                return_value=httpx.Response(302, headers={"location": "https://example.com/loop"})
            )

            with pytest.raises(NetworkError):
                await fetch(FetchRequest(url="https://example.com/loop"))

    @respx.mock
    async def test_uses_supplied_client(self) -> None:
        respx.get("https://example.com/").mock(
            return_value=httpx.Response(200, text=_PAGE_HTML, headers=_HTML_HEADERS)
        )

        async with httpx.AsyncClient() as client:
            result = await fetch(FetchRequest(url="https://example.com/"), client=client)
            assert not client.is_closed

        assert result.title == "Example Page"


# ---------------------------------------------------------------------------
# check_status
# ---------------------------------------------------------------------------

class TestCheckStatus:
    @respx.mock
    async def test_head_request_reports_headers(self) -> None:
        route = respx.head("https://example.com/").mock(
            return_value=httpx.Response(
                200,
                headers={
                    "content-type": "text/html",
                    "content-length": "1234",
                    "last-modified": "Wed, 01 May 2024 10:00:00 GMT",
                    "server": "nginx",
                },
            )
        )

        report = await check_status("https://example.com/")

        assert route.called
        assert route.calls.last.request.method == "HEAD"
        assert report.accessible is True
        assert report.to_dict() == {
            "url": "https://example.com/",
            "finalUrl": "https://example.com/",
            "statusCode": 200,
            "statusText": "OK",
            "contentType": "text/html",
            "contentLength": "1234",
            "lastModified": "Wed, 01 May 2024 10:00:00 GMT",
            "server": "nginx",
            "accessible": True,
        }

    @respx.mock
    async def test_error_status_is_reported_not_raised(self) -> None:
        respx.head("https://example.com/gone").mock(return_value=httpx.Response(410))

        report = await check_status("https://example.com/gone")

        assert report.status_code == 410
        assert report.status_text == "Gone"
        assert report.accessible is False

    @respx.mock
    async def test_redirect_is_not_accessible_until_followed(self) -> None:
        respx.head("https://example.com/a").mock(
            return_value=httpx.Response(301, headers={"location": "https://example.com/b"})
        )
        respx.head("https://example.com/b").mock(return_value=httpx.Response(204))

        report = await check_status("https://example.com/a")

        assert report.final_url == "https://example.com/b"
        assert report.accessible is True

    async def test_guard_runs_first(self) -> None:
        with pytest.raises(ForbiddenHostError):
            await check_status("http://192.168.0.1/")

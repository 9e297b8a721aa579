"""WebFetch CLI entry-point for fetching from the terminal.

Usage:
    python cli/main.py --help

Commands:
    fetch     → fetch one page as raw HTML, text or markdown
    batch     → fetch up to 20 pages with bounded concurrency
    metadata  → extract meta tags, canonical URL and JSON-LD
    status    → HEAD-check a URL
    serve     → run the HTTP API with uvicorn
"""

from __future__ import annotations

import sys
from pathlib import Path

# Ensure the project root is on sys.path so that `from webfetch.xxx import ...`
# works when the CLI is invoked as `python cli/main.py` from any directory.
_ROOT = Path(__file__).resolve().parent.parent
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

import asyncio
import json
from typing import List, Optional

import typer

from webfetch.config import settings
from webfetch.logging_config import setup_logging
from webfetch.tools import (
    check_website_status,
    extract_website_metadata,
    fetch_multiple_websites,
    fetch_website,
)

app = typer.Typer(
    name="webfetch",
    help="WebFetch CLI.",
    no_args_is_help=True,
)

_FORMATS = ("raw", "text", "markdown")


@app.callback()
def main(
    log_level: str = typer.Option(settings.log_level, "--log-level", help="Logging level."),
) -> None:
    """Fetch web pages as raw HTML, plain text or markdown."""
    # stdout carries page content and JSON; logs go to stderr.
    setup_logging(log_level, stream=sys.stderr)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _check_format(fmt: str) -> str:
    if fmt not in _FORMATS:
        raise typer.BadParameter(f"Unknown format {fmt!r}. Use: raw | text | markdown")
    return fmt


def _parse_headers(values: Optional[List[str]]) -> dict[str, str]:
    """Turn ``["Name: value", ...]`` into a header dict."""
    headers: dict[str, str] = {}
    for raw in values or []:
        name, sep, value = raw.partition(":")
        if not sep or not name.strip():
            raise typer.BadParameter(f"Header must look like 'Name: value', got {raw!r}")
        headers[name.strip()] = value.strip()
    return headers


def _echo_json(payload: dict) -> None:
    typer.echo(json.dumps(payload, indent=2, ensure_ascii=False))


def _fail(tag: str, response: dict) -> None:
    typer.echo(f"[{tag}] Failed ({response.get('code')}): {response.get('error')}", err=True)
    raise typer.Exit(1)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

@app.command("fetch")
def fetch_cmd(
    url: str = typer.Option(..., help="URL to fetch."),
    format: str = typer.Option("markdown", "--format", "-f", help="Output format: raw | text | markdown."),
    timeout: int = typer.Option(settings.default_timeout_ms, help="Timeout in milliseconds (1000-60000)."),
    follow_redirects: bool = typer.Option(True, "--follow-redirects/--no-follow-redirects"),
    user_agent: Optional[str] = typer.Option(None, "--user-agent", help="Custom User-Agent."),
    header: Optional[List[str]] = typer.Option(None, "--header", "-H", help="Extra header 'Name: value'."),
    as_json: bool = typer.Option(False, "--json", help="Print the full JSON response."),
) -> None:
    """Fetch a URL and print its content."""
    response = asyncio.run(
        fetch_website(
            url,
            format=_check_format(format),
            follow_redirects=follow_redirects,
            timeout_ms=timeout,
            user_agent=user_agent,
            headers=_parse_headers(header),
        )
    )
    if as_json:
        _echo_json(response)
        if not response["success"]:
            raise typer.Exit(1)
        return
    if not response["success"]:
        _fail("fetch", response)

    data = response["data"]
    typer.echo(f"[fetch] HTTP {data['statusCode']}  {data['contentType']}  ({data['fetchTime']} ms)", err=True)
    typer.echo(f"[fetch] Title : {data['title'] or '(none)'}", err=True)
    typer.echo(data["content"])


@app.command("batch")
def batch_cmd(
    url: List[str] = typer.Option(..., "--url", help="URL to fetch (repeat up to 20 times)."),
    format: str = typer.Option("markdown", "--format", "-f", help="Output format: raw | text | markdown."),
    concurrency: int = typer.Option(settings.default_concurrency, "--concurrency", "-c", help="Fetches per chunk (1-10)."),
    timeout: int = typer.Option(settings.default_timeout_ms, help="Per-URL timeout in milliseconds."),
    follow_redirects: bool = typer.Option(True, "--follow-redirects/--no-follow-redirects"),
    stream: bool = typer.Option(False, "--stream", help="Print progress as SSE frames while fetching."),
) -> None:
    """Fetch several URLs; print a summary (or the raw event stream)."""
    _check_format(format)

    if stream:
        from webfetch.fetcher import BatchOptions
        from webfetch.stream import stream_batch

        options = BatchOptions(
            format=format,  # type: ignore[arg-type]
            follow_redirects=follow_redirects,
            timeout_ms=timeout,
            concurrency=concurrency,
        )

        async def _print_frames() -> None:
            async for frame in stream_batch(url, options, retry_ms=settings.sse_retry_ms):
                typer.echo(frame, nl=False)

        asyncio.run(_print_frames())
        return

    response = asyncio.run(
        fetch_multiple_websites(
            url,
            format=format,
            max_concurrent=concurrency,
            follow_redirects=follow_redirects,
            timeout_ms=timeout,
        )
    )
    if not response["success"]:
        _fail("batch", response)

    for item in response["data"]:
        mark = "ok " if item["success"] else "ERR"
        detail = item["title"] or item["contentType"] if item["success"] else item["error"]
        typer.echo(f"  {mark} {item['statusCode']:>3}  {item['url']}  {detail}")
    summary = response["summary"]
    typer.echo(
        f"[batch] {summary['totalRequested']} requested, "
        f"{summary['successful']} succeeded, {summary['failed']} failed"
    )


@app.command("metadata")
def metadata_cmd(
    url: str = typer.Option(..., help="URL to analyse."),
) -> None:
    """Print a page's metadata as JSON."""
    response = asyncio.run(extract_website_metadata(url))
    if not response["success"]:
        _fail("metadata", response)
    _echo_json(response["data"])


@app.command("status")
def status_cmd(
    url: str = typer.Option(..., help="URL to check."),
) -> None:
    """HEAD-check a URL and print its status line and key headers."""
    response = asyncio.run(check_website_status(url))
    if not response["success"]:
        _fail("status", response)

    data = response["data"]
    typer.echo(f"[status] {data['statusCode']} {data['statusText']}  accessible={data['accessible']}")
    for label, key in (
        ("Final URL", "finalUrl"),
        ("Type", "contentType"),
        ("Length", "contentLength"),
        ("Modified", "lastModified"),
        ("Server", "server"),
    ):
        typer.echo(f"  {label:<10}: {data[key] or '-'}")
    if not data["accessible"]:
        raise typer.Exit(2)


@app.command("serve")
def serve_cmd(
    host: str = typer.Option(settings.api_host, help="Bind address."),
    port: int = typer.Option(settings.api_port, help="Bind port."),
    reload: bool = typer.Option(False, help="Auto-reload on code changes."),
) -> None:
    """Run the HTTP API."""
    import uvicorn

    typer.echo(f"[serve] WebFetch API on http://{host}:{port}")
    uvicorn.run("webfetch.api.app:app", host=host, port=port, reload=reload)


# ---------------------------------------------------------------------------
# Entry-point
# ---------------------------------------------------------------------------
if __name__ == "__main__":
    app()

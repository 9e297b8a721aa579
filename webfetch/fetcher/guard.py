"""URL guard and request limits.

:func:`validate_url` keeps the service from being pointed at loopback,
private-network or link-local hosts.  It is a string / prefix check on the
hostname as written in the URL.  The fetcher runs it again on every redirect
hop.  No DNS resolution happens here, so a public name that later resolves to
a private address is not caught.
"""

from __future__ import annotations

import logging
import re
from urllib.parse import SplitResult, urlsplit

from webfetch.errors import ForbiddenHostError, InvalidUrlError, UnsupportedSchemeError

logger = logging.getLogger(__name__)

ALLOWED_SCHEMES = frozenset({"http", "https"})

MIN_TIMEOUT_MS = 1_000
MAX_TIMEOUT_MS = 60_000
DEFAULT_TIMEOUT_MS = 30_000

MIN_CONCURRENCY = 1
MAX_CONCURRENCY = 10
DEFAULT_CONCURRENCY = 5

MAX_BATCH_URLS = 20

_FORBIDDEN_PREFIXES = ("127.", "10.", "192.168.", "169.254.")
_PRIVATE_172 = re.compile(r"^172\.(1[6-9]|2[0-9]|3[01])\.")
_IPV6_LINK_LOCAL = re.compile(r"^fe80:", re.IGNORECASE)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _is_forbidden_host(hostname: str) -> bool:
    host = hostname.lower()
    return (
        host == "localhost"
        or host.startswith(_FORBIDDEN_PREFIXES)
        or bool(_PRIVATE_172.match(host))
        or host.endswith(".local")
        or host == "::1"
        or bool(_IPV6_LINK_LOCAL.match(host))
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def validate_url(url: str) -> SplitResult:
    """Parse *url* and check that it is safe to fetch.

    Returns:
        The parsed URL.

    Raises:
        InvalidUrlError: *url* is not an absolute URL with a host.
        UnsupportedSchemeError: the scheme is not ``http`` or ``https``.
        ForbiddenHostError: the host is local or in a private range.
    """
    if not isinstance(url, str) or not url.strip():
        raise InvalidUrlError(f"Invalid URL format: {url!r}")

    try:
        parsed = urlsplit(url.strip())
        # Accessing .port validates it; out-of-range ports raise ValueError.
        _ = parsed.port
    except ValueError as exc:
        raise InvalidUrlError(f"Invalid URL format: {url}") from exc

    scheme = parsed.scheme.lower()
    if not scheme:
        raise InvalidUrlError(f"Invalid URL format: {url}")
    if scheme not in ALLOWED_SCHEMES:
        raise UnsupportedSchemeError(
            f"Unsupported protocol: {scheme}:. Only HTTP and HTTPS are allowed."
        )

    hostname = parsed.hostname or ""
    if not hostname or any(ch.isspace() for ch in hostname):
        raise InvalidUrlError(f"Invalid URL format: {url}")

    if _is_forbidden_host(hostname):
        logger.warning("Rejected forbidden host %r in %s", hostname, url)
        raise ForbiddenHostError(
            f"Private IP addresses and localhost are not allowed: {hostname}"
        )

    return parsed


def clamp_timeout(timeout_ms: int | float | None) -> int:
    """Clamp a timeout in milliseconds to ``[1000, 60000]``."""
    if timeout_ms is None:
        return DEFAULT_TIMEOUT_MS
    return int(min(max(timeout_ms, MIN_TIMEOUT_MS), MAX_TIMEOUT_MS))


def clamp_concurrency(concurrency: int | None) -> int:
    """Clamp a concurrency window to ``[1, 10]``."""
    if concurrency is None:
        return DEFAULT_CONCURRENCY
    return int(min(max(concurrency, MIN_CONCURRENCY), MAX_CONCURRENCY))

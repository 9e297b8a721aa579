"""WebFetch: guarded web retrieval with HTML to text / markdown conversion.

Public re-exports for the common entry points::

    from webfetch import fetch_website, fetch_multiple_websites
"""

from webfetch.tools import (
    check_website_status,
    extract_website_metadata,
    fetch_multiple_websites,
    fetch_website,
)

__all__ = [
    "fetch_website",
    "fetch_multiple_websites",
    "extract_website_metadata",
    "check_website_status",
]

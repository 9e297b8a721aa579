"""Centralised settings for the WebFetch service.

All runtime configuration is resolved here in one place.  Values can be
overridden via environment variables or a `.env` file in the project root
(loaded automatically when this module is imported).
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

# Load .env from the project root (one level up from this package)
_env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_env_path, override=False)


def _env_bool(name: str, default: str = "false") -> bool:
    return os.environ.get(name, default).strip().lower() in {"1", "true", "yes", "on"}


@dataclass
class Settings:
    # ------------------------------------------------------------------
    # Outbound requests
    # ------------------------------------------------------------------
    user_agent: str = field(
        default_factory=lambda: os.environ.get(
            "WEBFETCH_USER_AGENT", "Mozilla/5.0 (compatible; WebFetch/1.0)"
        )
    )
    default_timeout_ms: int = field(
        default_factory=lambda: int(os.environ.get("WEBFETCH_TIMEOUT_MS", "30000"))
    )
    metadata_timeout_ms: int = field(
        default_factory=lambda: int(os.environ.get("WEBFETCH_METADATA_TIMEOUT_MS", "15000"))
    )
    status_timeout_ms: int = field(
        default_factory=lambda: int(os.environ.get("WEBFETCH_STATUS_TIMEOUT_MS", "10000"))
    )

    # Reject non-HTML responses instead of returning them verbatim.
    strict_content_type: bool = field(
        default_factory=lambda: _env_bool("WEBFETCH_STRICT_CONTENT_TYPE")
    )

    # ------------------------------------------------------------------
    # Batch fetching
    # ------------------------------------------------------------------
    default_concurrency: int = field(
        default_factory=lambda: int(os.environ.get("WEBFETCH_CONCURRENCY", "5"))
    )

    # ------------------------------------------------------------------
    # Event stream
    # ------------------------------------------------------------------
    # 0 means no ``retry:`` line is sent.
    sse_retry_ms: int = field(
        default_factory=lambda: int(os.environ.get("WEBFETCH_SSE_RETRY_MS", "0"))
    )

    # ------------------------------------------------------------------
    # Logging / HTTP server
    # ------------------------------------------------------------------
    log_level: str = field(
        default_factory=lambda: os.environ.get("WEBFETCH_LOG_LEVEL", "INFO")
    )
    api_host: str = field(
        default_factory=lambda: os.environ.get("WEBFETCH_HOST", "127.0.0.1")
    )
    api_port: int = field(
        default_factory=lambda: int(os.environ.get("WEBFETCH_PORT", "8000"))
    )


# Module-level singleton, import this everywhere:
#   from webfetch.config import settings
settings = Settings()

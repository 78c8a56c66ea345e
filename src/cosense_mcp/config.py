"""Configuration management for cosense-mcp.

This module contains all configurable constants and the startup settings.
Magic numbers are documented here rather than scattered throughout the codebase.

Settings are read from the process environment exactly once, at startup, into
an immutable ``Settings`` object that is passed explicitly to every operation.
"""

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass

log = logging.getLogger(__name__)


class ConfigurationError(Exception):
    """Raised when required configuration is missing."""

    pass


# =============================================================================
# Page Listing
# =============================================================================

# Sort orders understood by the Cosense page listing endpoint.
VALID_SORT_METHODS = ("updated", "created", "accessed", "linked", "views", "title")

DEFAULT_SORT_METHOD = "updated"

# Bounds enforced by the store on a single listing request.
MIN_PAGE_LIMIT = 1
MAX_PAGE_LIMIT = 1000

# Boot-time resource population always fetches this many pages, then keeps
# min(COSENSE_PAGE_LIMIT, FETCH_PAGE_LIMIT) of them.
FETCH_PAGE_LIMIT = 100
DEFAULT_PAGE_LIMIT = FETCH_PAGE_LIMIT

# Date filtering and regex scanning both work over one maximal listing.
SCAN_PAGE_LIMIT = MAX_PAGE_LIMIT


# =============================================================================
# Report Rendering
# =============================================================================

# Matches shown per page in regex search results
MAX_MATCHES_SHOWN = 5

# Displayed match lines longer than this are cut and suffixed with "..."
MAX_MATCH_LINE_LENGTH = 100

# Preview lines shown per page in tag/query search results
MAX_PREVIEW_LINES = 3

# Description lines shown per backlink
MAX_BACKLINK_DESCRIPTIONS = 3


# =============================================================================
# Page Store Adapter
# =============================================================================

DEFAULT_API_DOMAIN = "scrapbox.io"
DEFAULT_SERVICE_LABEL = "cosense (scrapbox)"

# Seconds before an API request is treated as failed
DEFAULT_TIMEOUT = 30.0

# Concurrent page detail fetches during a regex scan.
# 1 reproduces a strictly sequential scan.
DEFAULT_SCAN_CONCURRENCY = 4


@dataclass(frozen=True)
class Settings:
    """Immutable startup configuration."""

    project: str
    sid: str | None = None
    page_limit: int = DEFAULT_PAGE_LIMIT
    sort_method: str = DEFAULT_SORT_METHOD
    exclude_pinned: bool = False
    api_domain: str = DEFAULT_API_DOMAIN
    service_label: str = DEFAULT_SERVICE_LABEL
    scan_concurrency: int = DEFAULT_SCAN_CONCURRENCY
    timeout: float = DEFAULT_TIMEOUT

    @property
    def base_url(self) -> str:
        return f"https://{self.api_domain}"


def _parse_page_limit(raw: str | None) -> int:
    if raw is None:
        return DEFAULT_PAGE_LIMIT
    try:
        limit = int(raw, 10)
    except ValueError:
        limit = None
    if limit is None or not MIN_PAGE_LIMIT <= limit <= MAX_PAGE_LIMIT:
        log.warning("Invalid COSENSE_PAGE_LIMIT: %s, using default: %d", raw, DEFAULT_PAGE_LIMIT)
        return DEFAULT_PAGE_LIMIT
    return limit


def _parse_sort_method(raw: str | None) -> str:
    if not raw:
        return DEFAULT_SORT_METHOD
    if raw not in VALID_SORT_METHODS:
        log.warning("Invalid COSENSE_SORT_METHOD: %s, using default: %s", raw, DEFAULT_SORT_METHOD)
        return DEFAULT_SORT_METHOD
    return raw


def _parse_scan_concurrency(raw: str | None) -> int:
    if raw is None:
        return DEFAULT_SCAN_CONCURRENCY
    try:
        value = int(raw, 10)
    except ValueError:
        value = 0
    if value < 1:
        log.warning(
            "Invalid COSENSE_SCAN_CONCURRENCY: %s, using default: %d",
            raw,
            DEFAULT_SCAN_CONCURRENCY,
        )
        return DEFAULT_SCAN_CONCURRENCY
    return value


def _parse_timeout(raw: str | None) -> float:
    if raw is None:
        return DEFAULT_TIMEOUT
    try:
        value = float(raw)
    except ValueError:
        value = 0.0
    if value <= 0:
        log.warning("Invalid COSENSE_TIMEOUT: %s, using default: %s", raw, DEFAULT_TIMEOUT)
        return DEFAULT_TIMEOUT
    return value


def load_settings(environ: Mapping[str, str] | None = None) -> Settings:
    """Build the startup settings from environment variables.

    Args:
        environ: Mapping to read from (defaults to os.environ).

    Returns:
        Settings with every optional value validated or defaulted.

    Raises:
        ConfigurationError: If COSENSE_PROJECT_NAME is not set.
    """
    env = os.environ if environ is None else environ

    project = (env.get("COSENSE_PROJECT_NAME") or "").strip()
    if not project:
        raise ConfigurationError(
            "COSENSE_PROJECT_NAME is not set. "
            "Set it to the name of the Cosense project to query."
        )

    return Settings(
        project=project,
        sid=env.get("COSENSE_SID") or None,
        page_limit=_parse_page_limit(env.get("COSENSE_PAGE_LIMIT")),
        sort_method=_parse_sort_method(env.get("COSENSE_SORT_METHOD")),
        exclude_pinned=env.get("COSENSE_EXCLUDE_PINNED") == "true",
        api_domain=env.get("API_DOMAIN") or DEFAULT_API_DOMAIN,
        service_label=env.get("SERVICE_LABEL") or DEFAULT_SERVICE_LABEL,
        scan_concurrency=_parse_scan_concurrency(env.get("COSENSE_SCAN_CONCURRENCY")),
        timeout=_parse_timeout(env.get("COSENSE_TIMEOUT")),
    )

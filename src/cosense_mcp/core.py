"""Core query and search logic for cosense-mcp.

This module contains the business logic behind every tool. The MCP server
and the CLI are thin wrappers around it.

Design principles:
- All operations are async and take the page store explicitly
- Validation happens before any store call
- Operations return a Report; domain failures raise CosenseError subclasses
  and are rendered by the dispatcher
"""

import asyncio
import logging
from collections.abc import Sequence

from .client import PageStore
from .config import (
    DEFAULT_PAGE_LIMIT,
    DEFAULT_SORT_METHOD,
    FETCH_PAGE_LIMIT,
    MAX_BACKLINK_DESCRIPTIONS,
    MAX_MATCH_LINE_LENGTH,
    MAX_MATCHES_SHOWN,
    MAX_PAGE_LIMIT,
    MAX_PREVIEW_LINES,
    MIN_PAGE_LIMIT,
    SCAN_PAGE_LIMIT,
    VALID_SORT_METHODS,
    Settings,
)
from .errors import ErrorCode, NotFoundError, ValidationError
from .models import PageDetail, PageMatches, PageSummary, SearchHit, SearchResult
from .query import DateRange, build_tag_query, compile_pattern, filter_by_date, scan_page
from .query.dates import DATE_FIELDS
from .query.regex import CompiledPattern
from .query.tags import line_mentions_tag
from .report import Report, ReportSection, format_timestamp, truncate

log = logging.getLogger(__name__)


# ─────────────────────────────────────────────────────────────────────────────
# Parameter validation
# ─────────────────────────────────────────────────────────────────────────────


def normalize_sort(sort: str | None) -> str:
    """Return sort if it is a known sort method, else "updated"."""
    if sort in VALID_SORT_METHODS:
        return sort
    if sort:
        log.debug("Unknown sort method %r, falling back to %s", sort, DEFAULT_SORT_METHOD)
    return DEFAULT_SORT_METHOD


def clamp_limit(limit: int | None, default: int = DEFAULT_PAGE_LIMIT) -> int:
    """Clamp a page limit into [MIN_PAGE_LIMIT, MAX_PAGE_LIMIT]."""
    if limit is None:
        limit = default
    return max(MIN_PAGE_LIMIT, min(MAX_PAGE_LIMIT, limit))


def _page_dates(page: PageSummary) -> list[str]:
    lines = []
    if page.created:
        lines.append(f"Created: {format_timestamp(page.created)}")
    if page.updated:
        lines.append(f"Updated: {format_timestamp(page.updated)}")
    return lines


# ─────────────────────────────────────────────────────────────────────────────
# Query Engine
# ─────────────────────────────────────────────────────────────────────────────


async def list_pages(
    settings: Settings,
    store: PageStore,
    sort: str | None = None,
    limit: int | None = None,
    skip: int | None = None,
    exclude_pinned: bool = False,
) -> Report:
    """List pages in one of the store's sort orders.

    Args:
        settings: Startup settings (project name for messages).
        store: Page store adapter.
        sort: Sort method; unknown values fall back to "updated".
        limit: Pages to return, clamped into [1, 1000].
        skip: Pages to skip; negative values count as 0.
        exclude_pinned: Drop pinned pages from the result.
    """
    sort = normalize_sort(sort)
    limit = clamp_limit(limit)
    skip = max(0, skip or 0)

    result = await store.list_pages(
        limit=limit, skip=skip, sort=sort, exclude_pinned=exclude_pinned
    )

    if not result.pages:
        return Report.empty("list_pages", f'No pages found in project "{settings.project}"')

    sections = []
    for page in result.pages:
        lines = _page_dates(page)
        lines.append(f"Views: {page.views}, Linked: {page.linked}")
        if page.pinned:
            lines.append("Pinned")
        sections.append(ReportSection(heading=page.title, lines=lines))

    return Report.success(
        "list_pages",
        "Page List",
        [f"Sort: {sort}", f"Showing {len(result.pages)} of {result.count} pages"],
        sections,
    )


async def fetch_page(store: PageStore, title: str) -> PageDetail:
    """Fetch a page or fail with NotFoundError."""
    page = await store.get_page(title)
    if page is None:
        raise NotFoundError(title)
    return page


def page_report(page: PageDetail) -> Report:
    """Render a full page: metadata, body and outbound links."""
    editor = page.last_update_user or page.user
    known = {author.id for author in (page.user, page.last_update_user) if author}
    others = [c.display_name for c in page.collaborators if c.id not in known]

    summary = _page_dates(page)
    if page.user:
        summary.append(f"Created by: {page.user.display_name}")
    if editor:
        summary.append(f"Last editor: {editor.display_name}")
    summary.append(f"Other editors: {', '.join(others)}")
    summary.append(f"{len(page.lines)} lines, {len(page.links)} links")

    links = [f"- {link}" for link in page.links] or ["(None)"]
    return Report.success(
        "get_page",
        page.title,
        summary,
        [
            ReportSection(heading="Content", lines=[line.text for line in page.lines], numbered=False),
            ReportSection(heading="Links", lines=links, numbered=False),
        ],
    )


async def get_page(settings: Settings, store: PageStore, title: str) -> Report:
    """Read one page by title."""
    return page_report(await fetch_page(store, title))


async def resource_pages(settings: Settings, store: PageStore) -> list[PageSummary]:
    """Pages to publish as resources when the server boots.

    Always fetches FETCH_PAGE_LIMIT pages with the configured sort and pinned
    exclusion, then keeps min(settings.page_limit, FETCH_PAGE_LIMIT). Never
    raises: a failing store yields no resources.
    """
    try:
        result = await store.list_pages(
            limit=FETCH_PAGE_LIMIT,
            skip=0,
            sort=normalize_sort(settings.sort_method),
            exclude_pinned=settings.exclude_pinned,
        )
    except Exception as e:
        log.error("Failed to initialize resources: %s", e)
        return []

    return result.pages[: min(settings.page_limit, FETCH_PAGE_LIMIT)]


# ─────────────────────────────────────────────────────────────────────────────
# Native search and tag queries
# ─────────────────────────────────────────────────────────────────────────────


def _hit_sections(result: SearchResult, tags: Sequence[str] = ()) -> list[ReportSection]:
    sections = []
    for page in result.pages:
        lines = _preview_lines(page, tags)
        if page.updated:
            lines.append(f"Updated: {format_timestamp(page.updated)}")
        sections.append(ReportSection(heading=page.title, lines=lines))
    return sections


def _preview_lines(page: SearchHit, tags: Sequence[str]) -> list[str]:
    if tags:
        relevant = [line for line in page.lines if line_mentions_tag(line, tags)]
        if relevant:
            return relevant[:MAX_PREVIEW_LINES]
    return page.lines[:MAX_PREVIEW_LINES]


async def search_pages(settings: Settings, store: PageStore, query: str) -> Report:
    """Run a freeform query through the store's native search."""
    if not query or not query.strip():
        raise ValidationError("No search query provided")

    result = await store.search_pages(query)
    if result.count == 0 or not result.pages:
        return Report.empty("search_pages", f"No pages found for query: {query}")

    return Report.success(
        "search_pages",
        "Search Results",
        [f"Query: {query}", f"Found {result.count} pages"],
        _hit_sections(result),
    )


async def search_by_tags(settings: Settings, store: PageStore, tags: Sequence[str]) -> Report:
    """Find pages carrying every tag, in [tag] or #tag notation."""
    query = build_tag_query(tags)
    log.debug("Tag query: %s", query)

    result = await store.search_pages(query)
    tag_list = ", ".join(tags)
    if result.count == 0:
        return Report.empty("search_by_tags", f"No pages found with tags: {tag_list}")

    return Report.success(
        "search_by_tags",
        "Tag Search Results",
        [f"Tags: {tag_list}", f"Found {result.count} pages"],
        _hit_sections(result, tags),
    )


# ─────────────────────────────────────────────────────────────────────────────
# Date Range Filter
# ─────────────────────────────────────────────────────────────────────────────


async def search_with_date_filter(
    settings: Settings,
    store: PageStore,
    date_from: str | None = None,
    date_to: str | None = None,
    search_type: str | None = None,
) -> Report:
    """List pages created or updated inside a date range.

    Both bounds are inclusive and compared at full timestamp precision, so a
    bare date as the upper bound means midnight at the start of that day.
    """
    search_type = search_type or "updated"
    if search_type not in DATE_FIELDS:
        raise ValidationError(
            f'Invalid searchType "{search_type}". Use "created" or "updated"',
            code=ErrorCode.INVALID_ARGUMENT,
        )
    date_range = DateRange.parse(date_from, date_to)

    listing = await store.list_pages(limit=SCAN_PAGE_LIMIT, skip=0, sort=search_type)
    pages = filter_by_date(listing.pages, date_range, search_type)

    if not pages:
        range_text = date_range.describe()
        phrase = f"No pages found {range_text}" if range_text else "No pages found"
        return Report.empty("search_with_date_filter", f"{phrase} ({search_type} date)")

    summary = []
    if not date_range.is_open:
        summary.append(f"Filter: Pages {search_type} {date_range.describe()}")
    summary.append(f"Found {len(pages)} pages")

    sections = []
    for page in pages:
        lines = _page_dates(page)
        if page.user and page.user.display_name:
            lines.append(f"Created by: {page.user.display_name}")
        sections.append(ReportSection(heading=page.title, lines=lines))

    return Report.success("search_with_date_filter", "Date Filtered Search Results", summary, sections)


# ─────────────────────────────────────────────────────────────────────────────
# Regex Scanner
# ─────────────────────────────────────────────────────────────────────────────


async def scan_pages(
    store: PageStore,
    pages: Sequence[PageSummary],
    pattern: CompiledPattern,
    concurrency: int = 1,
) -> list[PageMatches]:
    """Fetch each page's body and collect regex matches.

    At most `concurrency` detail fetches are in flight at once. Results keep
    the order of `pages` regardless of completion order. Pages whose detail is
    missing or that have no match are left out. If any fetch fails, the
    remaining fetches are cancelled and the error propagates.
    """
    semaphore = asyncio.Semaphore(max(1, concurrency))

    async def scan_one(summary: PageSummary) -> PageMatches | None:
        async with semaphore:
            detail = await store.get_page(summary.title)
        if detail is None:
            return None
        matches = scan_page(summary, detail, pattern)
        if not matches:
            return None
        return PageMatches(page=summary, matches=matches)

    tasks = [asyncio.ensure_future(scan_one(page)) for page in pages]
    try:
        results = await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            task.cancel()
        raise

    return [result for result in results if result is not None]


def _match_lines(item: PageMatches) -> list[str]:
    lines = [f"**Matches ({len(item.matches)}):**"]
    for match in item.matches[:MAX_MATCHES_SHOWN]:
        if match.line_number == 0:
            lines.append(f"- {match.line}")
        else:
            lines.append(
                f"- Line {match.line_number}: {truncate(match.line, MAX_MATCH_LINE_LENGTH)}"
            )
    hidden = len(item.matches) - MAX_MATCHES_SHOWN
    if hidden > 0:
        lines.append(f"- ... and {hidden} more matches")
    if item.page.updated:
        lines.append("")
        lines.append(f"Updated: {format_timestamp(item.page.updated)}")
    return lines


async def search_with_regex(
    settings: Settings,
    store: PageStore,
    pattern: str,
    flags: str | None = None,
) -> Report:
    """Scan titles and body lines of recently updated pages for a pattern."""
    compiled = compile_pattern(pattern, flags)
    shown = f"/{pattern}/{flags or ''}"

    listing = await store.list_pages(limit=SCAN_PAGE_LIMIT, skip=0, sort="updated")
    log.debug("Scanning %d pages for %s", len(listing.pages), shown)
    matched = await scan_pages(store, listing.pages, compiled, settings.scan_concurrency)

    if not matched:
        return Report.empty("search_with_regex", f"No pages found matching regex pattern: {shown}")

    return Report.success(
        "search_with_regex",
        "Regex Search Results",
        [f"Pattern: {shown}", f"Found matches in {len(matched)} pages"],
        [ReportSection(heading=item.page.title, lines=_match_lines(item)) for item in matched],
    )


# ─────────────────────────────────────────────────────────────────────────────
# Backlink Resolver
# ─────────────────────────────────────────────────────────────────────────────


async def get_backlinks(settings: Settings, store: PageStore, title: str) -> Report:
    """List pages linking to a page, from the store's 1-hop related pages."""
    page = await fetch_page(store, title)
    backlinks = page.backlinks

    if not backlinks:
        return Report.empty("get_backlinks", f'No pages link to "{title}"')

    return Report.success(
        "get_backlinks",
        f'Backlinks for "{title}"',
        [f"Found {len(backlinks)} pages that link to this page:"],
        [
            ReportSection(heading=link.title, lines=link.descriptions[:MAX_BACKLINK_DESCRIPTIONS])
            for link in backlinks
        ],
    )

"""FastMCP server for cosense-mcp.

This module provides MCP protocol wrappers around the core query logic.
All actual logic lives in core.py and dispatcher.py - this file handles MCP
registration and serialization.

Tools are registered with explicit JSON input schemas (the date filter takes a
parameter named "from", which no Python function can declare). Each call goes
through the dispatcher. An error report is raised as ToolError, which FastMCP
returns as an ordinary result with isError set.
"""

import asyncio
import logging
import sys
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any, NoReturn
from urllib.parse import quote, unquote

from fastmcp import FastMCP
from fastmcp.exceptions import ToolError
from fastmcp.resources import FunctionResource
from fastmcp.tools import Tool
from fastmcp.tools.tool import ToolResult
from mcp.types import TextContent
from pydantic import ConfigDict

from . import core
from .client import CosenseClient, PageStore
from .config import (
    MAX_PAGE_LIMIT,
    MIN_PAGE_LIMIT,
    VALID_SORT_METHODS,
    ConfigurationError,
    Settings,
    load_settings,
)
from .dispatcher import dispatch
from .report import format_iso

log = logging.getLogger(__name__)

RESOURCE_SCHEME = "cosense"

mcp = FastMCP(
    name="cosense-mcp",
    instructions=(
        "Read-only access to a Cosense (Scrapbox) project. "
        "List, read and search pages; filter by tag, date or regex; find backlinks."
    ),
)


# ─────────────────────────────────────────────────────────────────────────────
# Settings and page store (lazy initialization)
# ─────────────────────────────────────────────────────────────────────────────

_settings: Settings | None = None


def get_settings() -> Settings:
    """Load settings from the environment on first use."""
    global _settings
    if _settings is None:
        _settings = load_settings()
    return _settings


def open_store(settings: Settings) -> PageStore:
    """Open a page store for one request."""
    return CosenseClient.from_settings(settings)


def resource_uri(title: str) -> str:
    return f"{RESOURCE_SCHEME}:///{quote(title, safe='')}"


# ─────────────────────────────────────────────────────────────────────────────
# Tool definitions
# ─────────────────────────────────────────────────────────────────────────────


def _tool_definitions(settings: Settings) -> list[dict[str, Any]]:
    where = f"in {settings.project} project on {settings.service_label}"
    return [
        {
            "name": "list_pages",
            "description": (
                f"List pages {where} with flexible sorting options.\n\n"
                "Available sorting methods:\n"
                "- updated: Sort by last update time\n"
                "- created: Sort by creation time\n"
                "- accessed: Sort by access time\n"
                "- linked: Sort by number of incoming links\n"
                "- views: Sort by view count\n"
                "- title: Sort by page title"
            ),
            "parameters": {
                "type": "object",
                "properties": {
                    "sort": {
                        "type": "string",
                        "enum": list(VALID_SORT_METHODS),
                        "description": "Sort method for the page list",
                    },
                    "limit": {
                        "type": "number",
                        "minimum": MIN_PAGE_LIMIT,
                        "maximum": MAX_PAGE_LIMIT,
                        "description": "Maximum number of pages to return (1-1000)",
                    },
                    "skip": {
                        "type": "number",
                        "minimum": 0,
                        "description": "Number of pages to skip",
                    },
                    "excludePinned": {
                        "type": "boolean",
                        "description": "Whether to exclude pinned pages from the results",
                    },
                },
                "required": [],
            },
        },
        {
            "name": "get_page",
            "description": (
                f"Get a page {where}.\n"
                "Returns page content, its editors and its linked pages in plain text."
            ),
            "parameters": {
                "type": "object",
                "properties": {
                    "pageTitle": {"type": "string", "description": "Title of the page"},
                },
                "required": ["pageTitle"],
            },
        },
        {
            "name": "search_pages",
            "description": (
                f"Search pages {where}.\n\n"
                "Supports various search features:\n"
                '- Basic search: "keyword"\n'
                '- Multiple keywords: "word1 word2" (AND search)\n'
                '- Exclude words: "word1 -word2"\n'
                '- Exact phrase: "\\"exact phrase\\""'
            ),
            "parameters": {
                "type": "object",
                "properties": {
                    "query": {"type": "string", "description": "Search query string"},
                },
                "required": ["query"],
            },
        },
        {
            "name": "search_by_tags",
            "description": (
                f"Search pages by tags {where}.\n\n"
                "Searches for pages containing specific tags. Tags can be in [tag] or #tag format.\n"
                "Multiple tags are searched with AND logic."
            ),
            "parameters": {
                "type": "object",
                "properties": {
                    "tags": {
                        "type": "array",
                        "items": {"type": "string"},
                        "description": "Array of tag names to search for (without brackets or hash)",
                    },
                },
                "required": ["tags"],
            },
        },
        {
            "name": "search_with_date_filter",
            "description": (
                f"Search pages with date filtering {where}.\n\n"
                "Filter pages by creation or update date ranges."
            ),
            "parameters": {
                "type": "object",
                "properties": {
                    "from": {
                        "type": "string",
                        "description": "Start date in ISO format (YYYY-MM-DD)",
                    },
                    "to": {
                        "type": "string",
                        "description": "End date in ISO format (YYYY-MM-DD)",
                    },
                    "searchType": {
                        "type": "string",
                        "enum": ["created", "updated"],
                        "description": "Type of date to filter by (default: updated)",
                    },
                },
                "required": [],
            },
        },
        {
            "name": "search_with_regex",
            "description": (
                f"Search pages using regular expressions {where}.\n\n"
                "Performs regex search on page titles and content.\n"
                "Note: This searches client-side and may be slower for large projects."
            ),
            "parameters": {
                "type": "object",
                "properties": {
                    "pattern": {
                        "type": "string",
                        "description": "Regular expression pattern to search for",
                    },
                    "flags": {
                        "type": "string",
                        "description": "Regex flags (e.g., 'i' for case-insensitive, 'g' for global)",
                    },
                },
                "required": ["pattern"],
            },
        },
        {
            "name": "get_backlinks",
            "description": (
                f"Get backlinks (pages that link to a specific page) {where}.\n\n"
                "Returns a list of pages that contain links to the specified page."
            ),
            "parameters": {
                "type": "object",
                "properties": {
                    "title": {
                        "type": "string",
                        "description": "Title of the page to get backlinks for",
                    },
                },
                "required": ["title"],
            },
        },
    ]


class DispatchTool(Tool):
    """An MCP tool whose calls are routed through the dispatcher."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    settings: Settings
    store_factory: Callable[[Settings], PageStore]

    async def run(self, arguments: dict[str, Any]) -> ToolResult:
        store = self.store_factory(self.settings)
        try:
            response = await dispatch(self.settings, self.name, arguments, store)
        finally:
            await store.close()

        if response.is_error:
            raise ToolError(response.text)
        return ToolResult(content=[TextContent(type="text", text=response.text)])


def build_tools(
    settings: Settings,
    store_factory: Callable[[Settings], PageStore] = open_store,
) -> list[DispatchTool]:
    """Create one tool per dispatcher entry, described for this project."""
    return [
        DispatchTool(settings=settings, store_factory=store_factory, **definition)
        for definition in _tool_definitions(settings)
    ]


def register_tools(server: FastMCP, settings: Settings) -> None:
    for tool in build_tools(settings):
        server.add_tool(tool)


# ─────────────────────────────────────────────────────────────────────────────
# Resources
# ─────────────────────────────────────────────────────────────────────────────


async def read_page_text(settings: Settings, title: str) -> str:
    """Plain-text rendering of one page, as served for a resource read."""
    store = open_store(settings)
    try:
        page = await core.fetch_page(store, title)
    finally:
        await store.close()
    return core.page_report(page).render()


@mcp.resource(f"{RESOURCE_SCHEME}:///{{title}}", mime_type="text/plain")
async def page_resource(title: str) -> str:
    """Read any page of the project by title."""
    return await read_page_text(get_settings(), unquote(title))


async def register_page_resources(server: FastMCP, settings: Settings) -> int:
    """Publish the boot-time page listing as concrete resources.

    Returns:
        Number of resources registered (0 if the store was unreachable).
    """
    store = open_store(settings)
    try:
        pages = await core.resource_pages(settings, store)
    finally:
        await store.close()

    for page in pages:

        async def read(title: str = page.title) -> str:
            return await read_page_text(settings, title)

        server.add_resource(
            FunctionResource.from_function(
                fn=read,
                uri=resource_uri(page.title),
                name=page.title,
                description=f"A text page: {page.title}",
                mime_type="text/plain",
            )
        )

    log.info("Registered %d page resources for %s", len(pages), settings.project)
    return len(pages)


# ─────────────────────────────────────────────────────────────────────────────
# Entry point
# ─────────────────────────────────────────────────────────────────────────────


def _fatal(message: str) -> NoReturn:
    log.critical("Fatal Error:\nMessage: %s\nTimestamp: %s", message, format_iso(datetime.now(UTC)))
    sys.exit(1)


def main():
    """Run the MCP server over stdio."""
    from ._logging import configure_logging

    configure_logging()

    try:
        settings = get_settings()
    except ConfigurationError as e:
        _fatal(str(e))

    register_tools(mcp, settings)
    asyncio.run(register_page_resources(mcp, settings))

    try:
        mcp.run()
    except Exception as e:
        _fatal(str(e) or type(e).__name__)


if __name__ == "__main__":
    main()

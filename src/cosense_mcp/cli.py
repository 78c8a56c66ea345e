#!/usr/bin/env python3
"""
cosense: CLI for querying a Cosense project

Usage:
    cosense list --sort=title -n 5        # List pages
    cosense get "Page title"              # Read a page
    cosense tags idea draft               # Pages tagged with every tag
    cosense dates --from=2024-01-01       # Pages updated since a date
    cosense regex "TODO" --flags=g        # Scan page bodies
    cosense backlinks "Page title"        # Pages linking to a page
    cosense serve                         # Run the MCP server
"""

from __future__ import annotations

import asyncio
import os
import sys
from typing import Any, NoReturn

import click

from . import __version__ as COSENSE_VERSION
from .client import CosenseClient, PageStore
from .config import VALID_SORT_METHODS, ConfigurationError, Settings, load_settings
from .errors import ErrorCode, format_error_json


def run_async(coro):
    """Run async function synchronously."""
    return asyncio.run(coro)


def open_store(settings: Settings) -> PageStore:
    return CosenseClient.from_settings(settings)


def _fail(ctx: click.Context, code: ErrorCode | str, message: str) -> NoReturn:
    """Print an error (JSON with --json-errors) and exit 1."""
    json_errors = ctx.obj.get("json_errors", False) if ctx.obj else False
    if json_errors:
        click.echo(format_error_json(ErrorCode(code), message), err=True)
    else:
        click.echo(message, err=True)
    sys.exit(1)


def _settings(ctx: click.Context) -> Settings:
    env = dict(os.environ)
    overrides = ctx.obj.get("overrides", {}) if ctx.obj else {}
    env.update({key: value for key, value in overrides.items() if value})
    try:
        return load_settings(env)
    except ConfigurationError as e:
        _fail(ctx, ErrorCode.MISSING_CONFIGURATION, f"Error: {e}")


def _run_tool(ctx: click.Context, tool_name: str, arguments: dict[str, Any]) -> None:
    """Run one tool and print its report; error reports exit 1."""
    from .dispatcher import run_tool

    settings = _settings(ctx)

    async def _call():
        store = open_store(settings)
        try:
            return await run_tool(settings, tool_name, arguments, store)
        finally:
            await store.close()

    report = run_async(_call())
    if report.is_error:
        _fail(ctx, report.code or ErrorCode.INTERNAL_ERROR, report.render())
    click.echo(report.render())


# ─────────────────────────────────────────────────────────────────────────────
# Main CLI Group
# ─────────────────────────────────────────────────────────────────────────────


@click.group()
@click.version_option(version=COSENSE_VERSION, prog_name="cosense")
@click.option("--project", "-p", help="Cosense project (default: $COSENSE_PROJECT_NAME)")
@click.option("--sid", help="connect.sid session cookie for private projects (default: $COSENSE_SID)")
@click.option(
    "--json-errors",
    "json_errors",
    is_flag=True,
    help="Output errors as JSON (for programmatic use)",
)
@click.option("--quiet", "-q", is_flag=True, envvar="COSENSE_QUIET", help="Only log errors")
@click.pass_context
def cli(ctx: click.Context, project: str | None, sid: str | None, json_errors: bool, quiet: bool):
    """cosense: query a Cosense (Scrapbox) project.

    \b
    Quick start:
      export COSENSE_PROJECT_NAME=my-project
      cosense list --sort=updated -n 10
      cosense search "keyword -excluded"
      cosense backlinks "Some page"
    """
    from ._logging import configure_logging

    ctx.ensure_object(dict)
    ctx.obj["json_errors"] = json_errors
    ctx.obj["overrides"] = {"COSENSE_PROJECT_NAME": project, "COSENSE_SID": sid}

    if quiet:
        configure_logging(quiet=True)


@cli.command("list")
@click.option("--sort", type=click.Choice(VALID_SORT_METHODS), default="updated", help="Sort method")
@click.option("--limit", "-n", type=int, default=None, help="Max pages (1-1000)")
@click.option("--skip", type=int, default=0, help="Pages to skip")
@click.option("--exclude-pinned", is_flag=True, help="Leave out pinned pages")
@click.pass_context
def list_pages(ctx: click.Context, sort: str, limit: int | None, skip: int, exclude_pinned: bool):
    """List pages of the project.

    \b
    Examples:
      cosense list
      cosense list --sort=title -n 5
      cosense list --sort=linked --exclude-pinned
    """
    _run_tool(
        ctx,
        "list_pages",
        {"sort": sort, "limit": limit, "skip": skip, "excludePinned": exclude_pinned},
    )


@cli.command("get")
@click.argument("title")
@click.pass_context
def get_page(ctx: click.Context, title: str):
    """Read a page with its editors and links."""
    _run_tool(ctx, "get_page", {"pageTitle": title})


@cli.command("search")
@click.argument("query")
@click.pass_context
def search_pages(ctx: click.Context, query: str):
    """Search with the project's native query syntax.

    \b
    Examples:
      cosense search "word1 word2"      # AND
      cosense search "word1 -word2"     # exclude
    """
    _run_tool(ctx, "search_pages", {"query": query})


@cli.command("tags")
@click.argument("tags", nargs=-1)
@click.pass_context
def search_by_tags(ctx: click.Context, tags: tuple[str, ...]):
    """Find pages carrying every tag ([tag] or #tag)."""
    _run_tool(ctx, "search_by_tags", {"tags": list(tags)})


@cli.command("dates")
@click.option("--from", "date_from", help="Start date (YYYY-MM-DD)")
@click.option("--to", "date_to", help="End date (YYYY-MM-DD)")
@click.option(
    "--type",
    "search_type",
    type=click.Choice(["created", "updated"]),
    default="updated",
    help="Which timestamp to filter on",
)
@click.pass_context
def search_with_date_filter(
    ctx: click.Context, date_from: str | None, date_to: str | None, search_type: str
):
    """List pages created or updated within a date range."""
    _run_tool(
        ctx,
        "search_with_date_filter",
        {"from": date_from, "to": date_to, "searchType": search_type},
    )


@cli.command("regex")
@click.argument("pattern")
@click.option("--flags", help="Regex flags, e.g. 'i' or 'gm' (default: i)")
@click.pass_context
def search_with_regex(ctx: click.Context, pattern: str, flags: str | None):
    """Scan page titles and lines for a regular expression."""
    _run_tool(ctx, "search_with_regex", {"pattern": pattern, "flags": flags})


@cli.command("backlinks")
@click.argument("title")
@click.pass_context
def get_backlinks(ctx: click.Context, title: str):
    """List pages that link to a page."""
    _run_tool(ctx, "get_backlinks", {"title": title})


@cli.command("serve")
@click.pass_context
def serve(ctx: click.Context):
    """Run the MCP server over stdio."""
    for key, value in ctx.obj.get("overrides", {}).items():
        if value:
            os.environ[key] = value

    from .server import main as server_main

    server_main()


# ─────────────────────────────────────────────────────────────────────────────
# Entry Point
# ─────────────────────────────────────────────────────────────────────────────


def main():
    """Entry point for cosense CLI."""
    from ._logging import configure_logging

    configure_logging()
    cli()


if __name__ == "__main__":
    main()

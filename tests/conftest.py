"""Shared test fixtures for the cosense-mcp test suite.

Design:
- FakeStore: in-memory page store that sorts/slices like the real API and
  records every call, so tests can assert that no request was made
- make_page: build a PageDetail with only the fields a test cares about
- settings: immutable Settings for a project named "test-project"
"""

import asyncio
from collections.abc import Sequence
from datetime import UTC, datetime

import pytest

from cosense_mcp.config import Settings
from cosense_mcp.errors import CollaboratorError
from cosense_mcp.models import (
    Author,
    PageDetail,
    PageLine,
    PageList,
    RelatedPage,
    RelatedPages,
    SearchResult,
)


def ts(year: int, month: int, day: int, hour: int = 0, minute: int = 0) -> int:
    """Unix seconds for a UTC wall-clock time."""
    return int(datetime(year, month, day, hour, minute, tzinfo=UTC).timestamp())


def make_page(
    title: str,
    lines: Sequence[str] = (),
    created: int | None = None,
    updated: int | None = None,
    backlinks: Sequence[tuple[str, list[str]]] = (),
    links: Sequence[str] = (),
    pinned: bool = False,
    views: int = 0,
    user: str = "alice",
) -> PageDetail:
    """Build a page. Like Cosense, line 1 of the body is the title."""
    return PageDetail(
        title=title,
        created=created,
        updated=updated,
        views=views,
        pinned=pinned,
        user=Author(id=f"id-{user}", display_name=user),
        lines=[PageLine(text=title)] + [PageLine(text=text) for text in lines],
        links=list(links),
        related_pages=RelatedPages(
            links1hop=[RelatedPage(title=t, descriptions=d) for t, d in backlinks]
        ),
    )


class FakeStore:
    """In-memory PageStore."""

    def __init__(
        self,
        pages: Sequence[PageDetail] = (),
        search_results: dict[str, SearchResult] | None = None,
        fail_with: Exception | None = None,
        broken_titles: Sequence[str] = (),
        delays: dict[str, float] | None = None,
    ):
        self.pages = list(pages)
        self.search_results = search_results or {}
        self.fail_with = fail_with
        self.broken_titles = set(broken_titles)
        self.delays = delays or {}
        self.calls: list[tuple[str, dict]] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.close_count = 0

    async def list_pages(
        self,
        limit: int,
        skip: int = 0,
        sort: str = "updated",
        exclude_pinned: bool = False,
    ) -> PageList:
        self.calls.append(
            ("list_pages", {"limit": limit, "skip": skip, "sort": sort, "exclude_pinned": exclude_pinned})
        )
        if self.fail_with:
            raise self.fail_with

        pages = [p for p in self.pages if not (exclude_pinned and p.pinned)]
        if sort == "title":
            pages.sort(key=lambda p: p.title)
        else:
            pages.sort(key=lambda p: getattr(p, sort) or 0, reverse=True)
        return PageList(count=len(pages), pages=pages[skip : skip + limit])

    async def get_page(self, title: str) -> PageDetail | None:
        self.calls.append(("get_page", {"title": title}))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if title in self.delays:
                await asyncio.sleep(self.delays[title])
            if title in self.broken_titles:
                raise CollaboratorError("API error 500: broken page", status_code=500)
            return next((p for p in self.pages if p.title == title), None)
        finally:
            self.in_flight -= 1

    async def search_pages(self, query: str) -> SearchResult:
        self.calls.append(("search_pages", {"query": query}))
        if self.fail_with:
            raise self.fail_with
        return self.search_results.get(query, SearchResult())

    async def close(self) -> None:
        self.close_count += 1

    def call_names(self) -> list[str]:
        return [name for name, _ in self.calls]


@pytest.fixture
def settings() -> Settings:
    return Settings(project="test-project", scan_concurrency=4)


@pytest.fixture
def store() -> FakeStore:
    """Empty store; tests append pages as needed."""
    return FakeStore()

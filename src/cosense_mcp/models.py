"""Pydantic models for Cosense pages and tool responses.

Field aliases accept the camelCase names used by the Cosense API; models can
also be built by field name.
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


class _ApiModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class Author(_ApiModel):
    """A page creator, editor or collaborator."""

    id: str = ""
    display_name: str = Field(default="", alias="displayName")


class PageLine(_ApiModel):
    """One body line of a page. Line 0 of a Cosense page is its title."""

    text: str


class RelatedPage(_ApiModel):
    """A page reachable over one link hop, as precomputed by the store."""

    title: str
    descriptions: list[str] = Field(default_factory=list)


class RelatedPages(_ApiModel):
    links1hop: list[RelatedPage] = Field(default_factory=list)


class PageSummary(_ApiModel):
    """A page as it appears in a listing."""

    title: str
    created: int | None = None  # unix seconds
    updated: int | None = None  # unix seconds
    accessed: int | None = None  # unix seconds
    views: int = 0
    linked: int = 0  # inbound link count
    pinned: bool = Field(default=False, alias="pin")
    user: Author | None = None
    descriptions: list[str] = Field(default_factory=list)

    @field_validator("pinned", mode="before")
    @classmethod
    def _pin_to_bool(cls, value: object) -> bool:
        # The API reports pin as a sort key number; any non-zero value is pinned.
        return bool(value)


class SearchHit(PageSummary):
    """A page returned by the store's native search, with preview lines."""

    lines: list[str] = Field(default_factory=list)


class PageDetail(PageSummary):
    """A full page: body lines, outbound links, collaborators and backlinks."""

    lines: list[PageLine] = Field(default_factory=list)
    links: list[str] = Field(default_factory=list)
    collaborators: list[Author] = Field(default_factory=list)
    last_update_user: Author | None = Field(default=None, alias="lastUpdateUser")
    related_pages: RelatedPages = Field(default_factory=RelatedPages, alias="relatedPages")

    @property
    def backlinks(self) -> list[RelatedPage]:
        return self.related_pages.links1hop


class PageList(_ApiModel):
    """Response of a page listing."""

    count: int = 0
    pages: list[PageSummary] = Field(default_factory=list)


class SearchResult(_ApiModel):
    """Response of a native search query."""

    count: int = 0
    pages: list[SearchHit] = Field(default_factory=list)


class MatchRecord(BaseModel):
    """A single regex hit. line_number 0 is the page title."""

    line_number: int
    line: str
    match: str


class PageMatches(BaseModel):
    """A page with every regex hit found in it, in line order."""

    page: PageSummary
    matches: list[MatchRecord]


class TextContent(BaseModel):
    type: Literal["text"] = "text"
    text: str


class ToolResponse(BaseModel):
    """The envelope returned for every tool call."""

    content: list[TextContent]
    is_error: bool = Field(default=False, serialization_alias="isError")

    @property
    def text(self) -> str:
        return "\n".join(part.text for part in self.content)

"""Async HTTP adapter for the Cosense page API.

Makes read-only requests to ``https://{api_domain}/api/pages/{project}``,
authenticating with the ``connect.sid`` session cookie when one is configured,
and maps transport and HTTP failures onto CollaboratorError.
"""

import logging
from typing import Any, Protocol
from urllib.parse import quote

import httpx

from .config import Settings
from .errors import CollaboratorError
from .models import PageDetail, PageList, SearchResult

log = logging.getLogger(__name__)


class PageStore(Protocol):
    """The page store primitives the query layer depends on."""

    async def list_pages(
        self,
        limit: int,
        skip: int = ...,
        sort: str = ...,
        exclude_pinned: bool = ...,
    ) -> PageList: ...

    async def get_page(self, title: str) -> PageDetail | None: ...

    async def search_pages(self, query: str) -> SearchResult: ...

    async def close(self) -> None: ...


class CosenseClient:
    """HTTP client for one Cosense project.

    A client is opened per tool invocation and closed afterwards; nothing is
    cached between requests.
    """

    def __init__(
        self,
        project: str,
        sid: str | None = None,
        base_url: str = "https://scrapbox.io",
        timeout: float = 30.0,
    ):
        self.project = project
        self.sid = sid
        self.base_url = base_url
        self.timeout = timeout
        self._client: httpx.AsyncClient | None = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "CosenseClient":
        return cls(
            project=settings.project,
            sid=settings.sid,
            base_url=settings.base_url,
            timeout=settings.timeout,
        )

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the async HTTP client."""
        if self._client is None or self._client.is_closed:
            headers = {"Accept": "application/json"}
            if self.sid:
                headers["Cookie"] = f"connect.sid={self.sid}"

            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=headers,
                timeout=httpx.Timeout(self.timeout),
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "CosenseClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    def _project_path(self) -> str:
        return f"/api/pages/{quote(self.project, safe='')}"

    async def _get(
        self,
        path: str,
        params: dict[str, Any] | None = None,
        allow_missing: bool = False,
    ) -> dict | None:
        """GET a JSON document from the API.

        Args:
            path: API path (e.g., "/api/pages/project")
            params: Query parameters
            allow_missing: Return None instead of raising on 404

        Raises:
            CollaboratorError: If the request fails or returns an error status
        """
        client = await self._get_client()

        try:
            response = await client.get(path, params=params)
        except httpx.RequestError as e:
            log.error("Request to %s failed: %s", path, e)
            raise CollaboratorError(f"Request to {self.base_url}{path} failed: {e}") from e

        if response.status_code == 404 and allow_missing:
            return None

        if response.status_code >= 400:
            try:
                payload = response.json()
            except ValueError:
                payload = None
            detail = payload.get("message", response.text) if isinstance(payload, dict) else response.text
            raise CollaboratorError(
                f"API error {response.status_code}: {detail}",
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError as e:
            raise CollaboratorError(f"Malformed response from {path}: {e}") from e

    async def list_pages(
        self,
        limit: int,
        skip: int = 0,
        sort: str = "updated",
        exclude_pinned: bool = False,
    ) -> PageList:
        """List pages of the project in the store's sort order."""
        data = await self._get(
            self._project_path(),
            params={"limit": limit, "skip": skip, "sort": sort},
        )
        result = PageList.model_validate(data)
        if exclude_pinned:
            # The listing endpoint has no pin filter; drop pinned pages here.
            result.pages = [page for page in result.pages if not page.pinned]
        return result

    async def get_page(self, title: str) -> PageDetail | None:
        """Fetch one page with its lines, links and related pages."""
        data = await self._get(
            f"{self._project_path()}/{quote(title, safe='')}",
            allow_missing=True,
        )
        if data is None:
            return None
        return PageDetail.model_validate(data)

    async def search_pages(self, query: str) -> SearchResult:
        """Run the store's native full-text query."""
        data = await self._get(
            f"{self._project_path()}/search/query",
            params={"q": query},
        )
        return SearchResult.model_validate(data)

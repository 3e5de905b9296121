"""Fetching a listing page by page until the last one."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Generic, TypeVar

import httpx

from .http_proxy import HttpRequestBuilder
from .util import get_string


class PageFormatter(ABC):
    @abstractmethod
    def format_n(self, n: int) -> str:
        """Return the URL of page ``n``."""


class PageIndicator(ABC):
    @abstractmethod
    def is_last_page(self, content: str, next_page: int) -> bool:
        """Tell whether ``content`` is the last page, given the next page number."""


class PagedError(Exception):
    """A page could not be fetched."""


I = TypeVar("I", bound=PageFormatter)


class Paged(Generic[I]):
    """Walks pages starting from ``init_page``."""

    def __init__(self, init_page: int, page_indicator: I) -> None:
        self.next_page = init_page
        self.page_indicator = page_indicator

    async def next(self, client: HttpRequestBuilder) -> str:
        """Fetch the next page and advance."""
        url = self.page_indicator.format_n(self.next_page)
        try:
            content = await get_string(client, url)
        except httpx.HTTPError as exc:
            raise PagedError(f"request error for {url}") from exc
        self.next_page += 1
        return content

    async def pages(self, client: HttpRequestBuilder) -> list[str]:
        """Fetch pages until the indicator reports the last; never returns an empty list."""
        indicator = self.page_indicator
        if not isinstance(indicator, PageIndicator):
            raise TypeError("page indicator cannot tell the last page")
        results = []
        while True:
            content = await self.next(client)
            terminated = indicator.is_last_page(content, self.next_page)
            results.append(content)
            if terminated:
                return results
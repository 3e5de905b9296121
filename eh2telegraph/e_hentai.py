"""Collector for galleries hosted on e-hentai.org."""

from __future__ import annotations

import logging
import re
from collections import deque
from collections.abc import Awaitable, Iterable
from typing import Any

import httpx

from .collector_base import AlbumMeta, Collector, ImageData, ImageMeta
from .http_client import UA, GhostClient, GhostClientBuilder
from .paged import PageFormatter, PageIndicator, Paged
from .stream import AsyncStream
from .util import get_bytes, get_string, match_first_group, retry

PAGE_RE = re.compile(r'<a href="(https://e-hentai\.org/s/\w+/[\w-]+)">')
IMG_RE = re.compile(r'<img id="img" src="(.*?)"')
TITLE_RE = re.compile(r'<h1 id="gn">(.*?)</h1>')

TIMEOUT = 30.0
RESOLVED_DOMAINS = ("e-hentai.org",)
REQUEST_HEADERS = {"Cookie": "nw=1"}

log = logging.getLogger(__name__)


def _raw_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(timeout=TIMEOUT, headers={"User-Agent": UA})


def _client_builder() -> GhostClientBuilder:
    return (
        GhostClientBuilder()
        .with_default_headers(REQUEST_HEADERS)
        .with_cf_resolve(RESOLVED_DOMAINS)
    )


class EHPageIndicator(PageFormatter, PageIndicator):
    """Gallery listing pages of an e-hentai gallery."""

    def __init__(self, base: str) -> None:
        self.base = base

    def format_n(self, n: int) -> str:
        return f"{self.base}/?p={n}"

    def is_last_page(self, content: str, next_page: int) -> bool:
        anchor = f'<a href="{self.base}/?p={next_page}" onclick="return false">'
        return anchor not in content


class EHImageStream(AsyncStream[tuple[ImageMeta, ImageData]]):
    """Loads the images of a gallery one image page at a time."""

    def __init__(
        self,
        client: GhostClient,
        raw_client: Any,
        image_page_links: Iterable[str],
    ) -> None:
        self._client = client
        self._raw_client = raw_client
        self._links: deque[str] = deque(image_page_links)

    @staticmethod
    async def _load_image(
        client: GhostClient, raw_client: Any, link: str
    ) -> tuple[ImageMeta, ImageData]:
        try:
            content = await retry(lambda: get_string(client, link))
        finally:
            await client.aclose()
        img_url = match_first_group(IMG_RE, content)
        if img_url is None:
            raise ValueError("unable to find image in page")
        image_data = await retry(lambda: get_bytes(raw_client, img_url))
        log.debug("download e-hentai image with size %d, link: %s", len(image_data), link)
        return ImageMeta(id=link, url=img_url), image_data

    def next(self) -> Awaitable[tuple[ImageMeta, ImageData]] | None:
        if not self._links:
            return None
        link = self._links.popleft()
        # a fresh client per image gets a fresh source address
        return self._load_image(self._client.clone(), self._raw_client, link)

    def size_hint(self) -> tuple[int, int | None]:
        remaining = len(self._links)
        return (remaining, remaining)

    def __repr__(self) -> str:
        return f"EHImageStream(remaining={len(self._links)})"


class EHCollector(Collector):
    """Fetches e-hentai galleries given a path like ``/g/<id>/<token>``."""

    name = "e-hentai"

    def __init__(self, client: GhostClient, raw_client: Any) -> None:
        self._client = client
        self._raw_client = raw_client

    @classmethod
    def new(cls, prefix: Any = None) -> EHCollector:
        return cls(_client_builder().build(prefix), _raw_client())

    @classmethod
    def new_from_config(cls) -> EHCollector:
        return cls(_client_builder().build_from_config(), _raw_client())

    async def fetch(self, path: str) -> tuple[AlbumMeta, EHImageStream]:
        parts = path.strip("/").split("/")
        if len(parts) < 3 or parts[0] != "g":
            raise ValueError(
                f"invalid input path({path}), gallery url is expected"
                "(like https://e-hentai.org/g/2127986/da1deffea5)"
            )
        album_id, album_token = parts[1], parts[2]
        url = f"https://e-hentai.org/g/{album_id}/{album_token}"
        log.info("[e-hentai] process %s", url)

        # a cloned client uses a different source address
        client = self._client.clone()
        gallery_pages = await Paged(0, EHPageIndicator(url)).pages(client)

        title = match_first_group(TITLE_RE, gallery_pages[0])
        if title is None:
            title = "No Title"

        image_page_links = [
            link for page in gallery_pages for link in PAGE_RE.findall(page)
        ]
        if not image_page_links:
            raise ValueError("invalid url, maybe resource has been deleted.")

        return (
            AlbumMeta(link=url, name=title),
            EHImageStream(client, self._raw_client, image_page_links),
        )

    def __repr__(self) -> str:
        return f"EHCollector(client={self._client!r})"
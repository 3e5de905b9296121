"""Collector for galleries hosted on exhentai.org, which needs account cookies."""

from __future__ import annotations

import logging
import re
from collections import deque
from collections.abc import Awaitable, Iterable
from dataclasses import dataclass
from typing import Any

import httpx

from . import config
from .collector_base import AlbumMeta, Collector, ImageData, ImageMeta
from .http_client import UA
from .http_proxy import ProxiedClient
from .paged import PageFormatter, PageIndicator, Paged
from .stream import AsyncStream
from .util import get_bytes, get_string, match_first_group, retry

PAGE_RE = re.compile(r'<a href="(https://exhentai\.org/s/\w+/[\w-]+)">')
IMG_RE = re.compile(r'<img id="img" src="(.*?)"')
TITLE_RE = re.compile(r'<h1 id="gn">(.*?)</h1>')

CONFIG_KEY = "exhentai"
TIMEOUT = 30.0

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExConfig:
    """Cookies of a logged-in exhentai account."""

    ipb_pass_hash: str
    ipb_member_id: str
    igneous: str


def _config_from_section(section: Any) -> ExConfig:
    if not isinstance(section, dict):
        raise config.ConfigError(f"config section {CONFIG_KEY!r} must be a mapping")
    try:
        return ExConfig(
            ipb_pass_hash=str(section["ipb_pass_hash"]),
            ipb_member_id=str(section["ipb_member_id"]),
            igneous=str(section["igneous"]),
        )
    except KeyError as exc:
        raise config.ConfigError(f"exhentai config is missing {exc}") from None


def _check_header_value(value: str) -> str:
    for ch in value:
        code = ord(ch)
        if (code < 0x20 and ch != "\t") or code == 0x7F:
            raise ValueError("invalid character in cookie value")
    return value


class EXPageIndicator(PageFormatter, PageIndicator):
    """Gallery listing pages of an exhentai gallery."""

    def __init__(self, base: str) -> None:
        self.base = base

    def format_n(self, n: int) -> str:
        return f"{self.base}/?p={n}"

    def is_last_page(self, content: str, next_page: int) -> bool:
        anchor = f'<a href="{self.base}/?p={next_page}" onclick="return false">'
        return anchor not in content


class EXImageStream(AsyncStream[tuple[ImageMeta, ImageData]]):
    """Loads image pages through the proxy and the images themselves directly."""

    def __init__(
        self,
        client: Any,
        proxy_client: ProxiedClient,
        image_page_links: Iterable[str],
    ) -> None:
        self._client = client
        self._proxy_client = proxy_client
        self._links: deque[str] = deque(image_page_links)

    @staticmethod
    async def _load_image(
        proxy_client: ProxiedClient, client: Any, link: str
    ) -> tuple[ImageMeta, ImageData]:
        content = await retry(lambda: get_string(proxy_client, link))
        img_url = match_first_group(IMG_RE, content)
        if img_url is None:
            raise ValueError("unable to find image in page")
        image_data = await retry(lambda: get_bytes(client, img_url))
        log.debug("download exhentai image with size %d, link: %s", len(image_data), link)
        return ImageMeta(id=link, url=img_url), image_data

    def next(self) -> Awaitable[tuple[ImageMeta, ImageData]] | None:
        if not self._links:
            return None
        return self._load_image(self._proxy_client, self._client, self._links.popleft())

    def size_hint(self) -> tuple[int, int | None]:
        remaining = len(self._links)
        return (remaining, remaining)

    def __repr__(self) -> str:
        return f"EXImageStream(remaining={len(self._links)})"


class EXCollector(Collector):
    """Fetches exhentai galleries given a path like ``/g/<id>/<token>``."""

    name = "exhentai"

    def __init__(self, config: ExConfig, proxy_client: ProxiedClient) -> None:
        cookie = _check_header_value(
            f"ipb_pass_hash={config.ipb_pass_hash};ipb_member_id={config.ipb_member_id};"
            f"igneous={config.igneous};nw=1"
        )
        headers = {"Cookie": cookie}
        self._client = httpx.AsyncClient(
            timeout=TIMEOUT, headers={"User-Agent": UA, **headers}
        )
        self._proxy_client = proxy_client.with_default_headers(headers)

    @classmethod
    def new_from_config(cls) -> EXCollector:
        """Build from the ``exhentai`` config section and the proxy settings."""
        section = config.parse(CONFIG_KEY)
        if section is None:
            raise config.ConfigError("exhentai config(key: exhentai) not found")
        return cls(_config_from_section(section), ProxiedClient.new_from_config())

    def get_client(self) -> httpx.AsyncClient:
        """The direct client that carries the account cookies."""
        return self._client

    async def fetch(self, path: str) -> tuple[AlbumMeta, EXImageStream]:
        parts = path.strip("/").split("/")
        if len(parts) < 3 or parts[0] != "g":
            raise ValueError(
                f"invalid input path({path}), gallery url is expected"
                "(like https://exhentai.org/g/2129939/01a6e086b9)"
            )
        album_id, album_token = parts[1], parts[2]
        url = f"https://exhentai.org/g/{album_id}/{album_token}"
        log.info("[exhentai] process %s", url)

        gallery_pages = await Paged(0, EXPageIndicator(url)).pages(self._proxy_client)

        title = match_first_group(TITLE_RE, gallery_pages[0])
        if title is None:
            title = "No Title"

        image_page_links = [
            link for page in gallery_pages for link in PAGE_RE.findall(page)
        ]
        if not image_page_links:
            raise ValueError(
                "invalid url, maybe resource has been deleted, or our ip is blocked."
            )

        return (
            AlbumMeta(link=url, name=title),
            EXImageStream(self._client, self._proxy_client, image_page_links),
        )

    def __repr__(self) -> str:
        return f"EXCollector(proxy_client={self._proxy_client!r})"
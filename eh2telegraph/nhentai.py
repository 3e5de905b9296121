"""Collector for nhentai galleries, read through the nhentai.xxx mirror."""

from __future__ import annotations

import logging
import random
import re
from collections import deque
from collections.abc import Awaitable, Iterable
from dataclasses import dataclass
from typing import Any

from .collector_base import AlbumMeta, Collector, ImageData, ImageMeta
from .http_client import GhostClient, GhostClientBuilder
from .stream import AsyncStream
from .util import get_bytes, get_string, match_first_group, retry

TITLE_RE = re.compile(r'<span class="pretty">(.*?)</span>')
PAGE_RE = re.compile(
    r'<noscript><img src="(https://cdn\.(?:nhentai\.xxx|hentaibomb\.com)/g/\d+/\d+t\.\w+)'
)

DOMAIN_LIST = (
    "nhentai.net",
    "i.nhentai.net",
    "i2.nhentai.net",
    "i3.nhentai.net",
    "i4.nhentai.net",
    "i5.nhentai.net",
    "i6.nhentai.net",
    "i7.nhentai.net",
    "i8.nhentai.net",
    "i9.nhentai.net",
    "nhentai.xxx",
    "cdn.nhentai.xxx",
)

NH_CDN_LIST = (
    "https://i.nhentai.net/galleries",
    "https://i2.nhentai.net/galleries",
    "https://i3.nhentai.net/galleries",
    "https://i5.nhentai.net/galleries",
    "https://i7.nhentai.net/galleries",
)

MIRROR_PREFIX = "https://cdn.nhentai.xxx/g"

log = logging.getLogger(__name__)


def thumb_to_image(thumb_url: str) -> str:
    """Turn a thumbnail URL into the URL of the full-size image."""
    return thumb_url.replace("https://t", "https://i").replace("t.", ".")


@dataclass(frozen=True)
class ImageURL:
    """An image on the mirror, with a fallback on the original CDN."""

    raw: str

    def fallback(self) -> str:
        """The same image on a randomly chosen nhentai CDN host."""
        return self.raw.replace(MIRROR_PREFIX, random.choice(NH_CDN_LIST))


def _client_builder() -> GhostClientBuilder:
    return GhostClientBuilder().with_cf_resolve(DOMAIN_LIST)


class NHImageStream(AsyncStream[tuple[ImageMeta, ImageData]]):
    """Downloads gallery images, falling back to the original CDN on failure."""

    def __init__(self, client: GhostClient, image_urls: Iterable[ImageURL]) -> None:
        self._client = client
        self._image_urls: deque[ImageURL] = deque(image_urls)

    @staticmethod
    async def _load_image(client: GhostClient, link: str) -> tuple[ImageMeta, ImageData]:
        image_data = await retry(lambda: get_bytes(client, link))
        log.debug("download nhentai image with size %d, link: %s", len(image_data), link)
        return ImageMeta(id=link, url=link), image_data

    async def _load_with_fallback(self, url: ImageURL) -> tuple[ImageMeta, ImageData]:
        try:
            return await self._load_image(self._client, url.raw)
        except Exception as exc:
            log.error("fallback for nh image %s: %s", url.raw, exc)
            return await self._load_image(self._client, url.fallback())

    def next(self) -> Awaitable[tuple[ImageMeta, ImageData]] | None:
        if not self._image_urls:
            return None
        return self._load_with_fallback(self._image_urls.popleft())

    def size_hint(self) -> tuple[int, int | None]:
        remaining = len(self._image_urls)
        return (remaining, remaining)

    def __repr__(self) -> str:
        return f"NHImageStream(remaining={len(self._image_urls)})"


class NHCollector(Collector):
    """Fetches nhentai galleries given a path like ``/g/<id>``."""

    name = "nhentai"

    def __init__(self, client: GhostClient) -> None:
        self._client = client

    @classmethod
    def new(cls, prefix: Any = None) -> NHCollector:
        return cls(_client_builder().build(prefix))

    @classmethod
    def new_from_config(cls) -> NHCollector:
        return cls(_client_builder().build_from_config())

    async def fetch(self, path: str) -> tuple[AlbumMeta, NHImageStream]:
        parts = path.strip("/").split("/")
        if len(parts) < 2 or parts[0] != "g":
            raise ValueError(
                f"invalid input path({path}), gallery url is expected"
                "(like https://nhentai.net/g/333678)"
            )
        album_id = parts[1]
        # nhentai.net sits behind a firewall, so the mirror is read instead
        url = f"https://nhentai.xxx/g/{album_id}"
        log.info("[nhentai] process %s", url)

        client = self._client.clone()
        index = await get_string(client, url)

        title = match_first_group(TITLE_RE, index)
        if title is None:
            title = "No Title"
        image_urls = [ImageURL(thumb_to_image(thumb)) for thumb in PAGE_RE.findall(index)]

        return AlbumMeta(link=url, name=title), NHImageStream(client, image_urls)

    def __repr__(self) -> str:
        return f"NHCollector(client={self._client!r})"
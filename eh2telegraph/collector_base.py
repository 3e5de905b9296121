"""Gallery metadata types, the collector interface and supported URL patterns."""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import ClassVar

from .stream import AsyncStream
from .util import match_first_group

ImageData = bytes


@dataclass
class ImageMeta:
    id: str
    url: str
    description: str | None = None


@dataclass
class AlbumMeta:
    link: str
    name: str
    class_: str | None = None
    description: str | None = None
    authors: list[str] | None = None
    tags: list[str] | None = None


ImageStream = AsyncStream[tuple[ImageMeta, ImageData]]


class Collector(ABC):
    """Fetches a gallery's metadata and a lazy stream of its images."""

    name: ClassVar[str]

    @abstractmethod
    async def fetch(self, path: str) -> tuple[AlbumMeta, ImageStream]:
        """Resolve ``path`` on the collector's site into album metadata and images."""


_GALLERY_URLS = (
    r"((https://exhentai\.org/g/\w+/[\w-]+)|(https://e-hentai\.org/g/\w+/[\w-]+)"
    r"|(https://nhentai\.net/g/\d+)|(https://nhentai\.to/g/\d+))"
)
URL_FROM_TEXT_RE = re.compile(_GALLERY_URLS)
URL_FROM_URL_RE = re.compile("^" + _GALLERY_URLS)


def match_url_from_text(content: str) -> str | None:
    """Find the first supported gallery URL anywhere in ``content``."""
    return match_first_group(URL_FROM_TEXT_RE, content)


def match_url_from_url(content: str) -> str | None:
    """Return the supported gallery URL that ``content`` starts with, if any."""
    return match_first_group(URL_FROM_URL_RE, content)
"""Reverse image search on SauceNAO and parsing of its result page."""

from __future__ import annotations

import enum
import re
from abc import ABC, abstractmethod
from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Any

from .http_client import GhostClient, GhostClientBuilder

SEARCH_URL = "https://saucenao.com/search.php"
EXPECTED_TITLE = "<title>Sauce Found?</title>"
RESOLVED_DOMAINS = ("saucenao.com", "e-hentai.org")

_SEARCH_ELEMENT_RE = re.compile(r'<tr><td class="resulttableimage">(.*?)</tr>')
_S_URL_RE = re.compile(r'src="(https://.*?)"')
_TITLE_RE = re.compile(r'<div class="resulttitle"><strong>(.*?)</strong>')
_SIM_RE = re.compile(r'<div class="resultsimilarityinfo">(\d+)\.?\d*%</div>')
_SITE_PARSE_RE = re.compile(
    r"saucenao\.com/(res/pixiv(_historical)?/\d+/manga/(?P<pixiv_id>\d+)_)"
    r"|(ehentai/\w+/\w+/(?P<ehentai_fhash>\w+))"
    r"|(res/nhentai/(?P<nhentai_id>\d+))"
)

_MAX_SIMILARITY = 255


class ImageSearcher(ABC):
    """Finds the source of an image."""

    @abstractmethod
    async def search(self, data: bytes) -> Any:
        """Search for the image given as raw bytes."""


class SaucenaoSite(enum.Enum):
    EHENTAI = "ehentai"
    NHENTAI = "nhentai"
    PIXIV = "pixiv"
    OTHER = "other"


@dataclass(frozen=True)
class SaucenaoParsed:
    """The site a result points at and its identifier there (an f-hash or an id)."""

    site: SaucenaoSite
    value: str | None = None


@dataclass
class SaucenaoElement:
    raw_url: str
    name: str
    similarity: int
    parsed: SaucenaoParsed


@dataclass
class SaucenaoOutput:
    """Results ordered by similarity, highest first."""

    data: list[SaucenaoElement] = field(default_factory=list)

    def __iter__(self) -> Iterator[SaucenaoElement]:
        return iter(self.data)


def _first_group(pattern: re.Pattern[str], text: str, error: str) -> str:
    match = pattern.search(text)
    if match is None:
        raise ValueError(error)
    return match.group(1)


def _parse_site(raw_url: str) -> SaucenaoParsed:
    match = _SITE_PARSE_RE.search(raw_url)
    if match is not None:
        for group, site in (
            ("pixiv_id", SaucenaoSite.PIXIV),
            ("ehentai_fhash", SaucenaoSite.EHENTAI),
            ("nhentai_id", SaucenaoSite.NHENTAI),
        ):
            value = match.group(group)
            if value is not None:
                return SaucenaoParsed(site, value)
    return SaucenaoParsed(SaucenaoSite.OTHER)


def parse_element(text: str) -> SaucenaoElement:
    """Parse one result row; raises ValueError if its URL or similarity is missing."""
    raw_url = _first_group(_S_URL_RE, text, "unable to parse saucenao result url")
    title = _TITLE_RE.search(text)
    name = title.group(1) if title is not None else "NO TITLE"
    similarity = int(
        _first_group(_SIM_RE, text, "unable to parse saucenao result similarity")
    )
    if similarity > _MAX_SIMILARITY:
        raise ValueError(f"saucenao similarity out of range: {similarity}")
    return SaucenaoElement(
        raw_url=raw_url, name=name, similarity=similarity, parsed=_parse_site(raw_url)
    )


def parse_output(text: str) -> SaucenaoOutput:
    """Parse every result row of a result page, most similar first."""
    elements = [parse_element(m.group(1)) for m in _SEARCH_ELEMENT_RE.finditer(text)]
    elements.sort(key=lambda e: e.similarity, reverse=True)
    return SaucenaoOutput(elements)


def _client_builder() -> GhostClientBuilder:
    return GhostClient.builder().with_cf_resolve(RESOLVED_DOMAINS)


class SaucenaoSearcher(ImageSearcher):
    """Uploads an image to SauceNAO and parses the result page."""

    def __init__(self, prefix: Any = None) -> None:
        self._client = _client_builder().build(prefix)

    @classmethod
    def new_from_config(cls) -> SaucenaoSearcher:
        searcher = cls.__new__(cls)
        searcher._client = _client_builder().build_from_config()
        return searcher

    async def search(self, data: bytes) -> SaucenaoOutput:
        response = await self._client.post(
            SEARCH_URL, files={"file": ("image.jpg", bytes(data))}
        )
        response.raise_for_status()
        text = response.text
        if EXPECTED_TITLE not in text:
            raise ValueError("saucenao response is not as expected")
        return parse_output(text)

    def __repr__(self) -> str:
        return f"SaucenaoSearcher(client={self._client!r})"
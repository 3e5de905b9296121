"""Turns an image f-hash from a search result into the first matching gallery URL."""

from __future__ import annotations

import logging
import re
from typing import Any

from .exhentai import EXCollector
from .http_client import GhostClient, GhostClientBuilder
from .util import get_string, match_first_group

EHENTAI_URL_RE = re.compile(r'<a href="(https://e(-|x)hentai\.org/g/\w+/[\w-]+)/">')

_SEARCH_QUERY = (
    "f_sh=on&f_sname=on&f_stags=on&f_sh=on&f_spf=&f_spt=&f_sfl=on&f_sfu=on&f_sft=on"
)
E_HENTAI_SEARCH = "https://e-hentai.org/?f_shash={}&" + _SEARCH_QUERY
EXHENTAI_SEARCH = "https://exhentai.org/?f_shash={}&" + _SEARCH_QUERY
RESOLVED_DOMAINS = ("e-hentai.org",)

log = logging.getLogger(__name__)


def _client_builder() -> GhostClientBuilder:
    return GhostClientBuilder().with_cf_resolve(RESOLVED_DOMAINS)


class FHashConvertor:
    """Searches e-hentai, then exhentai, for a gallery holding an image f-hash."""

    def __init__(self, client: GhostClient, raw_client: Any) -> None:
        self._client = client
        self._raw_client = raw_client

    @classmethod
    def new(cls, prefix: Any = None) -> FHashConvertor:
        return cls(_client_builder().build(prefix), EXCollector.new_from_config().get_client())

    @classmethod
    def new_from_config(cls) -> FHashConvertor:
        return cls(
            _client_builder().build_from_config(),
            EXCollector.new_from_config().get_client(),
        )

    async def convert_to_gallery(self, f_hash: str) -> str:
        """Return the first gallery URL found; raises LookupError if there is none."""
        log.info("[f-hash] converting hash %s", f_hash)
        for client, template in (
            (self._client, E_HENTAI_SEARCH),
            (self._raw_client, EXHENTAI_SEARCH),
        ):
            text = await get_string(client, template.format(f_hash))
            url = match_first_group(EHENTAI_URL_RE, text)
            if url is not None:
                log.info("[f-hash] hash %s -> %s", f_hash, url)
                return url
        log.info("[f-hash] hash %s not found", f_hash)
        raise LookupError("not found in e-hentai or exhentai")

    def __repr__(self) -> str:
        return f"FHashConvertor(client={self._client!r})"
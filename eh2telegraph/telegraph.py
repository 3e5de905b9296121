"""Client for the Telegraph publishing API."""

from __future__ import annotations

import json
import random
from abc import ABC, abstractmethod
from collections.abc import Iterable
from typing import Any

import httpx

from .http_proxy import HttpRequestBuilder
from .telegraph_types import (
    MediaInfo,
    Node,
    Page,
    PageCreate,
    PageEdit,
    TelegraphError,
    TelegraphServerError,
    node_to_json,
    parse_api_result,
    parse_upload_result,
)

MAX_SINGLE_FILE_SIZE = 5 * 1024 * 1024
TITLE_LENGTH_MAX = 200

API_BASE = "https://api.telegra.ph"
CREATE_PAGE_URL = f"{API_BASE}/createPage"
EDIT_PAGE_URL = f"{API_BASE}/editPage"
GET_PAGE_URL = f"{API_BASE}/getPage"
UPLOAD_URL = "https://telegra.ph/upload"


class AccessToken(ABC):
    """Supplies the access token used for a request."""

    @abstractmethod
    def token(self) -> str:
        """Return a token."""

    def select_token(self, path: str) -> str:
        """Return the token to use for the page at ``path``."""
        return self.token()


class SingleAccessToken(AccessToken):
    """Always the same token."""

    def __init__(self, token: str) -> None:
        self._token = token

    def token(self) -> str:
        return self._token

    def __repr__(self) -> str:
        return "SingleAccessToken(...)"


class RandomAccessToken(AccessToken):
    """A token chosen at random from a non-empty list on every use."""

    def __init__(self, tokens: str | Iterable[str]) -> None:
        if isinstance(tokens, str):
            tokens = [tokens]
        self._tokens = tuple(tokens)
        if not self._tokens:
            raise ValueError("token list must contain at least one element")

    @property
    def tokens(self) -> tuple[str, ...]:
        return self._tokens

    def token(self) -> str:
        return random.choice(self._tokens)

    def __repr__(self) -> str:
        return f"RandomAccessToken(<{len(self._tokens)} tokens>)"


def _as_access_token(value: AccessToken | str | Iterable[str]) -> AccessToken:
    if isinstance(value, AccessToken):
        return value
    if isinstance(value, str):
        return SingleAccessToken(value)
    return RandomAccessToken(value)


def _truncate_title(title: str) -> str:
    """Cut the title to at most TITLE_LENGTH_MAX UTF-8 bytes without splitting a character."""
    return title.encode("utf-8")[:TITLE_LENGTH_MAX].decode("utf-8", errors="ignore")


def _encode_content(content: Iterable[Node]) -> str:
    return json.dumps(
        [node_to_json(node) for node in content], ensure_ascii=False, separators=(",", ":")
    )


def _page_form(page: PageCreate | PageEdit, token: str) -> dict[str, str]:
    form = {"access_token": token, "title": _truncate_title(page.title)}
    if isinstance(page, PageEdit):
        form["path"] = page.path
    form["content"] = _encode_content(page.content)
    if page.author_name is not None:
        form["author_name"] = page.author_name
    if page.author_url is not None:
        form["author_url"] = page.author_url
    return form


def _decode_page(result: Any) -> Page:
    try:
        return Page.from_json(result)
    except ValueError as exc:
        raise TelegraphServerError() from exc


class Telegraph:
    """Creates, edits, reads pages and uploads files on Telegraph."""

    def __init__(
        self,
        access_token: AccessToken | str | Iterable[str],
        client: HttpRequestBuilder | None = None,
    ) -> None:
        self._access_token = _as_access_token(access_token)
        self._client = client

    @property
    def access_token(self) -> AccessToken:
        return self._access_token

    @property
    def client(self) -> HttpRequestBuilder:
        if self._client is None:
            self._client = httpx.AsyncClient()
        return self._client

    def with_proxy(self, proxy: HttpRequestBuilder) -> Telegraph:
        """A client with the same token that sends requests through ``proxy``."""
        return Telegraph(self._access_token, proxy)

    async def _send(self, url: str, **kwargs: Any) -> Any:
        try:
            response = await self.client.post(url, **kwargs)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPError as exc:
            raise TelegraphError(f"request error: {exc}") from exc
        except ValueError as exc:
            raise TelegraphServerError() from exc

    async def create_page(self, page: PageCreate) -> Page:
        form = _page_form(page, self._access_token.token())
        return _decode_page(parse_api_result(await self._send(CREATE_PAGE_URL, data=form)))

    async def edit_page(self, page: PageEdit) -> Page:
        form = _page_form(page, self._access_token.select_token(page.path))
        return _decode_page(parse_api_result(await self._send(EDIT_PAGE_URL, data=form)))

    async def get_page(self, path: str) -> Page:
        """Fetch the page at ``path`` (everything after ``telegra.ph/``) with its content."""
        form = {"path": path, "return_content": "true"}
        return _decode_page(parse_api_result(await self._send(GET_PAGE_URL, data=form)))

    async def upload(self, files: Iterable[bytes]) -> list[MediaInfo]:
        """Upload files; the result holds one entry per file, in order."""
        parts = [(str(idx), (str(idx), bytes(data))) for idx, data in enumerate(files)]
        media = parse_upload_result(await self._send(UPLOAD_URL, files=parts))
        if len(media) != len(parts):
            raise TelegraphServerError()
        return media

    def __repr__(self) -> str:
        return f"Telegraph(access_token={self._access_token!r}, client={self._client!r})"
"""HTTP client that can route every request through a forwarding proxy."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

import httpx

from . import config
from .http_client import UA

CONFIG_KEY = "proxy"
TIMEOUT = 30.0

log = logging.getLogger(__name__)


@runtime_checkable
class HttpRequestBuilder(Protocol):
    """Anything that can send GET and POST requests asynchronously."""

    async def get(self, url: str, **kwargs: Any) -> httpx.Response:
        """Send a GET request to ``url``."""

    async def post(self, url: str, **kwargs: Any) -> httpx.Response:
        """Send a POST request to ``url``."""


@dataclass(frozen=True)
class Proxy:
    endpoint: httpx.URL
    authorization: str


def _parse_endpoint(endpoint: str | httpx.URL) -> httpx.URL:
    try:
        url = httpx.URL(endpoint)
    except (httpx.InvalidURL, TypeError) as exc:
        raise ValueError(f"unable to parse proxy endpoint {endpoint!r}") from exc
    if not url.scheme or not url.host:
        raise ValueError(f"unable to parse proxy endpoint {endpoint!r}")
    return url


def _check_header_value(value: str) -> str:
    if any(ch in value for ch in "\r\n\0"):
        raise ValueError("unable to parse proxy authorization")
    return value


class ProxiedClient:
    """Sends requests to the proxy endpoint, naming the real target in X-Forwarded-For.

    Without an endpoint, requests go straight to their targets.
    """

    def __init__(
        self,
        endpoint: str | httpx.URL | None = None,
        authorization: str | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> None:
        if endpoint is None:
            self._proxy: Proxy | None = None
        else:
            if authorization is None:
                raise ValueError("proxy authorization is required with an endpoint")
            self._proxy = Proxy(_parse_endpoint(endpoint), _check_header_value(authorization))
        default_headers = httpx.Headers({"User-Agent": UA})
        if headers:
            default_headers.update(headers)
        self._inner = httpx.AsyncClient(timeout=TIMEOUT, headers=default_headers)

    @classmethod
    def new_from_config(cls) -> ProxiedClient:
        """Build from the ``proxy`` config section, or without a proxy if absent."""
        section = config.parse(CONFIG_KEY)
        if section is None:
            log.warning("initialized ProxiedClient without proxy config")
            return cls()
        if not isinstance(section, dict):
            raise config.ConfigError(f"unable to parse proxy config(key is {CONFIG_KEY})")
        try:
            return cls(section["endpoint"], section["authorization"])
        except KeyError as exc:
            raise config.ConfigError(
                f"unable to parse proxy config(key is {CONFIG_KEY}): missing {exc}"
            ) from None

    @property
    def proxy(self) -> Proxy | None:
        return self._proxy

    def with_default_headers(self, headers: Mapping[str, str]) -> ProxiedClient:
        """A client with the same proxy that sends ``headers`` on every request."""
        if self._proxy is None:
            return ProxiedClient(headers=headers)
        return ProxiedClient(self._proxy.endpoint, self._proxy.authorization, headers)

    async def request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        if self._proxy is None:
            return await self._inner.request(method, url, **kwargs)
        headers = httpx.Headers(kwargs.pop("headers", None))
        headers["X-Forwarded-For"] = url
        headers["X-Authorization"] = self._proxy.authorization
        return await self._inner.request(method, self._proxy.endpoint, headers=headers, **kwargs)

    async def get(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("GET", url, **kwargs)

    async def post(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("POST", url, **kwargs)

    async def head(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("HEAD", url, **kwargs)

    async def put(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("PUT", url, **kwargs)

    async def delete(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("DELETE", url, **kwargs)

    async def patch(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("PATCH", url, **kwargs)

    async def aclose(self) -> None:
        await self._inner.aclose()

    async def __aenter__(self) -> ProxiedClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    def __repr__(self) -> str:
        endpoint = None if self._proxy is None else str(self._proxy.endpoint)
        return f"ProxiedClient(endpoint={endpoint!r})"
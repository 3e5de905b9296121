"""HTTP client that can bind to a random address of an IPv6 prefix."""

from __future__ import annotations

import ipaddress
import secrets
import warnings
from collections.abc import Iterable, Mapping
from typing import Any

import httpx

from . import config

UA = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/97.0.4692.99 Safari/537.36"
)
CONFIG_KEY = "http"
TIMEOUT = 30.0
HTTPS_PORT = 443

CF_ADDRESS = ipaddress.IPv6Address("2606:4700:4700::1111")
TG_ADDRESS = ipaddress.IPv6Address("2001:67c:4e8:1033:1:100:0:a")

Target = tuple[ipaddress.IPv6Address, int]


def random_address_in(prefix: ipaddress.IPv6Network) -> ipaddress.IPv6Address:
    """Pick a random address inside ``prefix``."""
    host_bits = secrets.randbits(128) & int(prefix.hostmask)
    return ipaddress.IPv6Address(host_bits | int(prefix.network_address))


def _parse_prefix(value: Any) -> ipaddress.IPv6Network | None:
    if value is None:
        return None
    if isinstance(value, ipaddress.IPv6Network):
        return value
    try:
        return ipaddress.IPv6Network(str(value), strict=False)
    except ValueError as exc:
        raise ValueError(f"invalid ipv6 prefix {value!r}") from exc


class _ResolvingTransport(httpx.AsyncBaseTransport):
    """Sends requests for mapped domains to fixed addresses, keeping Host and SNI."""

    def __init__(self, inner: httpx.AsyncBaseTransport, mapping: Mapping[str, Target]) -> None:
        self._inner = inner
        self._mapping = dict(mapping)

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        host = request.url.host
        target = self._mapping.get(host)
        if target is not None:
            address, port = target
            path = request.url.raw_path.decode("ascii")
            request.url = httpx.URL(f"{request.url.scheme}://[{address}]:{port}{path}")
            request.extensions = {**request.extensions, "sni_hostname": host}
        return await self._inner.handle_async_request(request)

    async def aclose(self) -> None:
        await self._inner.aclose()


def _build_raw(
    prefix: ipaddress.IPv6Network | None,
    mapping: Iterable[tuple[str, Target]],
    headers: Mapping[str, str] | None,
) -> tuple[httpx.AsyncClient, ipaddress.IPv6Address | None]:
    default_headers = httpx.Headers({"User-Agent": UA})
    if headers:
        default_headers.update(headers)
    if prefix is None:
        return httpx.AsyncClient(timeout=TIMEOUT, headers=default_headers), None
    address = random_address_in(prefix)
    transport = _ResolvingTransport(
        httpx.AsyncHTTPTransport(local_address=str(address)), dict(mapping)
    )
    client = httpx.AsyncClient(timeout=TIMEOUT, headers=default_headers, transport=transport)
    return client, address


class GhostClientBuilder:
    """Collects headers and fixed resolutions for a GhostClient."""

    def __init__(self) -> None:
        self._mapping: list[tuple[str, Target]] = []
        self._headers: dict[str, str] | None = None

    @property
    def mapping(self) -> list[tuple[str, Target]]:
        return list(self._mapping)

    def with_default_headers(self, headers: Mapping[str, str]) -> GhostClientBuilder:
        self._headers = dict(headers)
        return self

    def with_cf_resolve(self, domains: Iterable[str]) -> GhostClientBuilder:
        self._mapping.extend((domain, (CF_ADDRESS, HTTPS_PORT)) for domain in domains)
        return self

    def with_tg_resolve(self) -> GhostClientBuilder:
        warnings.warn(
            "telegra.ph has fixed it and returns 501 when using ipv6",
            DeprecationWarning,
            stacklevel=2,
        )
        target = (TG_ADDRESS, HTTPS_PORT)
        self._mapping.append(("telegra.ph", target))
        self._mapping.append(("api.telegra.ph", target))
        return self

    def build(self, prefix: ipaddress.IPv6Network | str | None = None) -> GhostClient:
        return GhostClient(_parse_prefix(prefix), self._mapping, self._headers)

    def build_from_config(self) -> GhostClient:
        """Build with the ``ipv6_prefix`` taken from the ``http`` config section."""
        section = config.parse(CONFIG_KEY) or {}
        if not isinstance(section, dict):
            raise config.ConfigError(f"config section {CONFIG_KEY!r} must be a mapping")
        return self.build(_parse_prefix(section.get("ipv6_prefix")))


class GhostClient:
    """An async HTTP client; with a prefix, each instance uses a fresh random source address."""

    def __init__(
        self,
        prefix: ipaddress.IPv6Network | None = None,
        mapping: Iterable[tuple[str, Target]] = (),
        headers: Mapping[str, str] | None = None,
    ) -> None:
        self._prefix = prefix
        self._mapping = tuple(mapping)
        self._headers = dict(headers) if headers else None
        self._inner, self._address = _build_raw(self._prefix, self._mapping, self._headers)

    @staticmethod
    def builder() -> GhostClientBuilder:
        return GhostClientBuilder()

    @property
    def prefix(self) -> ipaddress.IPv6Network | None:
        return self._prefix

    @property
    def mapping(self) -> list[tuple[str, Target]]:
        return list(self._mapping)

    @property
    def local_address(self) -> ipaddress.IPv6Address | None:
        return self._address

    def clone(self) -> GhostClient:
        """A client with the same settings and a newly chosen source address."""
        return GhostClient(self._prefix, self._mapping, self._headers)

    def refresh(self) -> None:
        """Replace the underlying client, choosing a new source address."""
        self._inner, self._address = _build_raw(self._prefix, self._mapping, self._headers)

    async def get(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self._inner.get(url, **kwargs)

    async def post(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self._inner.post(url, **kwargs)

    async def aclose(self) -> None:
        await self._inner.aclose()

    async def __aenter__(self) -> GhostClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    def __repr__(self) -> str:
        return f"GhostClient(prefix={self._prefix}, local_address={self._address})"
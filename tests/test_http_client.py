import ipaddress

import httpx
import pytest
import respx

from eh2telegraph import config
from eh2telegraph.http_client import (
    CF_ADDRESS,
    TG_ADDRESS,
    UA,
    GhostClient,
    GhostClientBuilder,
    random_address_in,
)

NET = ipaddress.IPv6Network("2001:db8::/48")


def test_random_address_stays_in_prefix():
    for _ in range(50):
        assert random_address_in(NET) in NET


def test_random_address_full_prefix_is_fixed():
    net = ipaddress.IPv6Network("2001:db8::1/128")
    assert random_address_in(net) == net.network_address


def test_cf_resolve_maps_domains():
    builder = GhostClientBuilder().with_cf_resolve(["a.example.com", "b.example.com"])
    assert builder.mapping == [
        ("a.example.com", (CF_ADDRESS, 443)),
        ("b.example.com", (CF_ADDRESS, 443)),
    ]


def test_tg_resolve_is_deprecated():
    with pytest.warns(DeprecationWarning):
        builder = GhostClientBuilder().with_tg_resolve()
    assert [domain for domain, _ in builder.mapping] == ["telegra.ph", "api.telegra.ph"]
    assert all(target == (TG_ADDRESS, 443) for _, target in builder.mapping)


@pytest.mark.asyncio
async def test_build_without_prefix_has_no_local_address():
    client = GhostClient.builder().build(None)
    assert client.local_address is None
    assert client.prefix is None
    await client.aclose()


@pytest.mark.asyncio
async def test_build_with_prefix_picks_address_in_prefix():
    client = GhostClient.builder().with_cf_resolve(["e-hentai.org"]).build("2001:db8::/48")
    assert client.prefix == NET
    assert client.local_address in NET
    copy = client.clone()
    assert copy.prefix == client.prefix
    assert copy.mapping == client.mapping
    assert copy.local_address in NET
    client.refresh()
    assert client.local_address in NET
    await client.aclose()
    await copy.aclose()


def test_build_rejects_bad_prefix():
    with pytest.raises(ValueError):
        GhostClient.builder().build("not-a-prefix")


@pytest.mark.asyncio
async def test_get_sends_user_agent_and_default_headers():
    client = GhostClient.builder().with_default_headers({"Cookie": "nw=1"}).build(None)
    with respx.mock:
        route = respx.get("https://example.com/page").mock(
            return_value=httpx.Response(200, text="ok")
        )
        response = await client.get("https://example.com/page")
        request = route.calls.last.request
        assert response.text == "ok"
        assert request.headers["user-agent"] == UA
        assert request.headers["cookie"] == "nw=1"
    await client.aclose()


@pytest.mark.asyncio
async def test_post_through_prefixed_client():
    async with GhostClient.builder().build(NET) as client:
        with respx.mock:
            route = respx.post("https://example.com/submit").mock(
                return_value=httpx.Response(201)
            )
            response = await client.post("https://example.com/submit", content=b"data")
            assert response.status_code == 201
            assert route.calls.last.request.content == b"data"


@pytest.mark.asyncio
async def test_build_from_config(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("http:\n  ipv6_prefix: '2001:db8::/48'\n", encoding="utf-8")
    config.init(path)
    client = GhostClient.builder().build_from_config()
    assert client.prefix == NET
    assert client.local_address in NET
    await client.aclose()


@pytest.mark.asyncio
async def test_build_from_config_without_section(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("other: 1\n", encoding="utf-8")
    config.init(path)
    client = GhostClient.builder().build_from_config()
    assert client.prefix is None
    await client.aclose()
import httpx
import pytest
import respx

from eh2telegraph import config
from eh2telegraph.f_hash import FHashConvertor
from eh2telegraph.http_client import GhostClient


@pytest.fixture
def router():
    with respx.mock(assert_all_called=False) as mock_router:
        yield mock_router


def make_convertor():
    return FHashConvertor(GhostClient(), httpx.AsyncClient())


@pytest.mark.asyncio
async def test_found_on_e_hentai(router):
    route = router.get(host="e-hentai.org").mock(
        return_value=httpx.Response(
            200, text='x <a href="https://e-hentai.org/g/2127986/da1deffea5/"> y'
        )
    )
    ex_route = router.get(host="exhentai.org")
    url = await make_convertor().convert_to_gallery("abc123")
    assert url == "https://e-hentai.org/g/2127986/da1deffea5"
    assert route.calls.last.request.url.params["f_shash"] == "abc123"
    assert ex_route.call_count == 0


@pytest.mark.asyncio
async def test_falls_back_to_exhentai(router):
    eh_route = router.get(host="e-hentai.org").mock(
        return_value=httpx.Response(200, text="no results")
    )
    ex_route = router.get(host="exhentai.org").mock(
        return_value=httpx.Response(
            200, text='<a href="https://exhentai.org/g/2129939/01a6e086b9/">'
        )
    )
    url = await make_convertor().convert_to_gallery("abc123")
    assert url == "https://exhentai.org/g/2129939/01a6e086b9"
    assert eh_route.call_count == 1
    assert ex_route.calls.last.request.url.params["f_shash"] == "abc123"


@pytest.mark.asyncio
async def test_not_found_anywhere(router):
    router.get(host="e-hentai.org").mock(return_value=httpx.Response(200, text="none"))
    router.get(host="exhentai.org").mock(return_value=httpx.Response(200, text="none"))
    with pytest.raises(LookupError, match="not found in e-hentai or exhentai"):
        await make_convertor().convert_to_gallery("abc123")


@pytest.mark.asyncio
async def test_http_error_propagates(router):
    router.get(host="e-hentai.org").mock(return_value=httpx.Response(500))
    with pytest.raises(httpx.HTTPStatusError):
        await make_convertor().convert_to_gallery("abc123")


def test_new_from_config_requires_exhentai(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("http: {}\n", encoding="utf-8")
    config.init(path)
    with pytest.raises(config.ConfigError):
        FHashConvertor.new_from_config()


@pytest.mark.asyncio
async def test_new_from_config_uses_account_cookies(tmp_path, router):
    path = tmp_path / "config.yaml"
    path.write_text(
        "exhentai:\n  ipb_pass_hash: placeholder\n  ipb_member_id: placeholder\n"
        "  igneous: placeholder\n",
        encoding="utf-8",
    )
    config.init(path)
    router.get(host="e-hentai.org").mock(return_value=httpx.Response(200, text="none"))
    ex_route = router.get(host="exhentai.org").mock(
        return_value=httpx.Response(200, text='<a href="https://exhentai.org/g/1/ab/">')
    )
    convertor = FHashConvertor.new_from_config()
    assert await convertor.convert_to_gallery("f00") == "https://exhentai.org/g/1/ab"
    assert "igneous=placeholder" in ex_route.calls.last.request.headers["Cookie"]
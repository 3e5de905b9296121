import httpx
import pytest
import respx

from eh2telegraph.paged import PagedError, PageFormatter, PageIndicator, Paged

BASE = "https://example.com/list"


class ListIndicator(PageFormatter, PageIndicator):
    def format_n(self, n):
        return f"{BASE}/{n}"

    def is_last_page(self, content, next_page):
        return f'href="{BASE}/{next_page}"' not in content


class FormatOnly(PageFormatter):
    def format_n(self, n):
        return f"{BASE}/{n}"


@pytest.mark.asyncio
async def test_pages_follow_until_last():
    first = f'<a href="{BASE}/1">next</a>'
    second = f'<a href="{BASE}/2">next</a>'
    third = "<p>end</p>"
    async with httpx.AsyncClient() as client:
        with respx.mock:
            respx.get(f"{BASE}/0").mock(return_value=httpx.Response(200, text=first))
            respx.get(f"{BASE}/1").mock(return_value=httpx.Response(200, text=second))
            respx.get(f"{BASE}/2").mock(return_value=httpx.Response(200, text=third))
            paged = Paged(0, ListIndicator())
            assert await paged.pages(client) == [first, second, third]
            assert paged.next_page == 3


@pytest.mark.asyncio
async def test_single_page():
    async with httpx.AsyncClient() as client:
        with respx.mock:
            respx.get(f"{BASE}/5").mock(return_value=httpx.Response(200, text="only"))
            paged = Paged(5, ListIndicator())
            assert await paged.pages(client) == ["only"]


@pytest.mark.asyncio
async def test_next_advances():
    async with httpx.AsyncClient() as client:
        with respx.mock:
            respx.get(f"{BASE}/2").mock(return_value=httpx.Response(200, text="two"))
            respx.get(f"{BASE}/3").mock(return_value=httpx.Response(200, text="three"))
            paged = Paged(2, FormatOnly())
            assert await paged.next(client) == "two"
            assert await paged.next(client) == "three"
            assert paged.next_page == 4


@pytest.mark.asyncio
async def test_error_status_raises_paged_error():
    async with httpx.AsyncClient() as client:
        with respx.mock:
            respx.get(f"{BASE}/0").mock(return_value=httpx.Response(500))
            paged = Paged(0, ListIndicator())
            with pytest.raises(PagedError):
                await paged.pages(client)
            assert paged.next_page == 0


@pytest.mark.asyncio
async def test_pages_requires_indicator():
    async with httpx.AsyncClient() as client:
        with pytest.raises(TypeError):
            await Paged(0, FormatOnly()).pages(client)
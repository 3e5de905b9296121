import json
from urllib.parse import parse_qs

import httpx
import pytest
import respx

from eh2telegraph.http_proxy import ProxiedClient
from eh2telegraph.telegraph import (
    CREATE_PAGE_URL,
    EDIT_PAGE_URL,
    GET_PAGE_URL,
    TITLE_LENGTH_MAX,
    UPLOAD_URL,
    AccessToken,
    RandomAccessToken,
    SingleAccessToken,
    Telegraph,
)
from eh2telegraph.telegraph_types import (
    MediaInfo,
    PageCreate,
    PageEdit,
    TelegraphApiError,
    TelegraphError,
    TelegraphServerError,
    new_image,
    new_p_text,
    node_from_json,
)

PAGE_JSON = {
    "path": "title-01-01",
    "url": "https://telegra.ph/title-01-01",
    "title": "title",
    "description": "",
    "views": 0,
}


def _form(request: httpx.Request) -> dict[str, list[str]]:
    return parse_qs(request.content.decode(), keep_blank_values=True)


def _ok(result):
    return httpx.Response(200, json={"ok": True, "result": result})


class PathToken(AccessToken):
    def token(self) -> str:
        return "token"

    def select_token(self, path: str) -> str:
        return f"token-{path}"


@pytest.mark.asyncio
async def test_create_page_posts_form_and_returns_page():
    with respx.mock:
        route = respx.post(CREATE_PAGE_URL).mock(return_value=_ok(PAGE_JSON))
        tg = Telegraph("token")
        page = await tg.create_page(
            PageCreate(
                title="title",
                content=[new_p_text("hello"), new_image("/file/a.png")],
                author_name="author",
            )
        )
    assert page.url == PAGE_JSON["url"]
    assert page.path == PAGE_JSON["path"]
    form = _form(route.calls.last.request)
    assert form["access_token"] == ["token"]
    assert form["title"] == ["title"]
    content = [node_from_json(n) for n in json.loads(form["content"][0])]
    assert content == [new_p_text("hello"), new_image("/file/a.png")]
    assert form["author_name"] == ["author"]
    assert "author_url" not in form


@pytest.mark.asyncio
async def test_create_page_truncates_long_title():
    with respx.mock:
        route = respx.post(CREATE_PAGE_URL).mock(return_value=_ok(PAGE_JSON))
        page = await Telegraph("token").create_page(PageCreate(title="x" * 250))
    assert page.path == PAGE_JSON["path"]
    assert _form(route.calls.last.request)["title"] == ["x" * TITLE_LENGTH_MAX]


@pytest.mark.asyncio
async def test_create_page_truncates_on_character_boundary():
    original = "é" * 150
    with respx.mock:
        route = respx.post(CREATE_PAGE_URL).mock(return_value=_ok(PAGE_JSON))
        await Telegraph("token").create_page(PageCreate(title=original))
    title = _form(route.calls.last.request)["title"][0]
    assert original.startswith(title)
    assert TITLE_LENGTH_MAX - 2 < len(title.encode("utf-8")) <= TITLE_LENGTH_MAX


@pytest.mark.asyncio
async def test_api_error_is_raised():
    with respx.mock:
        respx.post(CREATE_PAGE_URL).mock(
            return_value=httpx.Response(200, json={"ok": False, "error": "ACCESS_TOKEN_INVALID"})
        )
        with pytest.raises(TelegraphApiError) as info:
            await Telegraph("token").create_page(PageCreate(title="title"))
    assert info.value.error == "ACCESS_TOKEN_INVALID"


@pytest.mark.asyncio
async def test_http_error_status_raises_telegraph_error():
    with respx.mock:
        respx.post(CREATE_PAGE_URL).mock(return_value=httpx.Response(500))
        with pytest.raises(TelegraphError):
            await Telegraph("token").create_page(PageCreate(title="title"))


@pytest.mark.asyncio
async def test_non_json_answer_is_server_error():
    with respx.mock:
        respx.post(GET_PAGE_URL).mock(return_value=httpx.Response(200, text="<html>"))
        with pytest.raises(TelegraphServerError):
            await Telegraph("token").get_page("title-01-01")


@pytest.mark.asyncio
async def test_edit_page_uses_token_selected_by_path():
    with respx.mock:
        route = respx.post(EDIT_PAGE_URL).mock(return_value=_ok(PAGE_JSON))
        page = await Telegraph(PathToken()).edit_page(
            PageEdit(title="title", path="title-01-01", content=["text"], author_url="https://t.co")
        )
    assert page.title == PAGE_JSON["title"]
    form = _form(route.calls.last.request)
    assert form["access_token"] == ["token-title-01-01"]
    assert form["path"] == ["title-01-01"]
    assert json.loads(form["content"][0]) == ["text"]
    assert form["author_url"] == ["https://t.co"]


@pytest.mark.asyncio
async def test_get_page_requests_content():
    result = dict(PAGE_JSON, content=[{"tag": "p", "children": ["hi"]}])
    with respx.mock:
        route = respx.post(GET_PAGE_URL).mock(return_value=_ok(result))
        page = await Telegraph("token").get_page("title-01-01")
    assert page.content == [new_p_text("hi")]
    form = _form(route.calls.last.request)
    assert form["path"] == ["title-01-01"]
    assert form["return_content"] == ["true"]


@pytest.mark.asyncio
async def test_upload_returns_media_in_order():
    answer = [{"src": "/file/a.png"}, {"src": "/file/b.png"}]
    with respx.mock:
        route = respx.post(UPLOAD_URL).mock(return_value=httpx.Response(200, json=answer))
        media = await Telegraph("token").upload([b"first", b"second"])
    assert media == [MediaInfo(src="/file/a.png"), MediaInfo(src="/file/b.png")]
    body = route.calls.last.request.content
    assert b'name="0"' in body and b'name="1"' in body
    assert b"first" in body and b"second" in body


@pytest.mark.asyncio
async def test_upload_count_mismatch_is_server_error():
    with respx.mock:
        respx.post(UPLOAD_URL).mock(
            return_value=httpx.Response(200, json=[{"src": "/file/a.png"}])
        )
        with pytest.raises(TelegraphServerError):
            await Telegraph("token").upload([b"a", b"b"])


@pytest.mark.asyncio
async def test_upload_error_answer():
    with respx.mock:
        respx.post(UPLOAD_URL).mock(return_value=httpx.Response(200, json={"error": "File type invalid"}))
        with pytest.raises(TelegraphApiError) as info:
            await Telegraph("token").upload([b"a"])
    assert info.value.error == "File type invalid"


@pytest.mark.asyncio
async def test_with_proxy_routes_through_endpoint():
    proxy = ProxiedClient("https://proxy.example.com/", "token")
    with respx.mock:
        route = respx.post("https://proxy.example.com/").mock(return_value=_ok(PAGE_JSON))
        page = await Telegraph("token").with_proxy(proxy).create_page(PageCreate(title="title"))
    assert page.url == PAGE_JSON["url"]
    assert route.calls.last.request.headers["X-Forwarded-For"] == CREATE_PAGE_URL


def test_random_access_token_picks_from_list():
    tokens = RandomAccessToken(["a", "b"])
    assert {tokens.token() for _ in range(50)} <= {"a", "b"}
    assert tokens.select_token("any") in {"a", "b"}


def test_random_access_token_rejects_empty():
    with pytest.raises(ValueError):
        RandomAccessToken([])


def test_access_token_coercion():
    assert Telegraph("token").access_token.token() == "token"
    assert Telegraph(["a", "b"]).access_token.token() in {"a", "b"}
    assert SingleAccessToken("token").select_token("path") == "token"
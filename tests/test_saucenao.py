import httpx
import pytest
import respx

from eh2telegraph.saucenao import (
    EXPECTED_TITLE,
    SEARCH_URL,
    SaucenaoOutput,
    SaucenaoSearcher,
    SaucenaoSite,
    parse_element,
    parse_output,
)

PIXIV_URL = (
    "https://img1.saucenao.com/res/pixiv/7594/manga/75943246_p1.jpg"
    "?auth=dKnHvUUPQ0wi8G6yv-HWZQ&exp=1645560000"
)
SEIGA_URL = (
    "https://img1.saucenao.com/res/seiga_illust/157/1574075.jpg"
    "?auth=KKGjLqCUyouLUKieJ5g4Rw&exp=1645560000"
)
EH_URL = (
    "https://img3.saucenao.com/ehentai/c5/17/c517710f0654ea883df1e0fea7117c671fb03bc1.jpg"
    "?auth=Hu-H_4c3lTKdh_rtZJv50w&exp=1645560000"
)
NH_URL = "https://img1.saucenao.com/res/nhentai/12345%20-%20cover.jpg"


def _inner(url, sim, title="Some Title"):
    parts = [f'<img src="{url}"></td><td>']
    if sim is not None:
        parts.append(f'<div class="resultsimilarityinfo">{sim}%</div>')
    if title is not None:
        parts.append(f'<div class="resulttitle"><strong>{title}</strong></div>')
    parts.append("</td>")
    return "".join(parts)


def _row(url, sim, title="Some Title"):
    return f'<tr><td class="resulttableimage">{_inner(url, sim, title)}</tr>'


def test_parse_ehentai_element():
    element = parse_element(_inner(EH_URL, "92.35", "Gallery"))
    assert element.raw_url == EH_URL
    assert element.name == "Gallery"
    assert element.similarity == 92
    assert element.parsed.site is SaucenaoSite.EHENTAI
    assert element.parsed.value == "c517710f0654ea883df1e0fea7117c671fb03bc1"


def test_parse_pixiv_element():
    element = parse_element(_inner(PIXIV_URL, "55"))
    assert element.parsed.site is SaucenaoSite.PIXIV
    assert element.parsed.value == "75943246"
    assert element.similarity == 55


def test_parse_nhentai_element():
    element = parse_element(_inner(NH_URL, "80.1"))
    assert element.parsed.site is SaucenaoSite.NHENTAI
    assert element.parsed.value == "12345"


def test_parse_other_site():
    element = parse_element(_inner(SEIGA_URL, "70"))
    assert element.parsed.site is SaucenaoSite.OTHER
    assert element.parsed.value is None


def test_missing_title_uses_default():
    assert parse_element(_inner(EH_URL, "90", title=None)).name == "NO TITLE"


def test_missing_similarity_is_error():
    with pytest.raises(ValueError):
        parse_element(_inner(EH_URL, None))


def test_missing_url_is_error():
    with pytest.raises(ValueError):
        parse_element('<div class="resultsimilarityinfo">90%</div>')


def test_similarity_out_of_range_is_error():
    with pytest.raises(ValueError):
        parse_element(_inner(EH_URL, "300"))


def test_parse_output_sorts_by_similarity():
    sims = [60, 95, 80]
    html = "<table>" + "".join(_row(EH_URL, str(s)) for s in sims) + "</table>"
    output = parse_output(html)
    assert [e.similarity for e in output] == sorted(sims, reverse=True)
    assert len(output.data) == len(sims)


def test_parse_output_without_rows_is_empty():
    assert parse_output("<html></html>") == SaucenaoOutput([])


@pytest.mark.asyncio
async def test_search_posts_file_and_parses():
    page = f"<html><head>{EXPECTED_TITLE}</head><body>{_row(PIXIV_URL, '88')}</body></html>"
    with respx.mock:
        route = respx.post(SEARCH_URL).mock(return_value=httpx.Response(200, text=page))
        output = await SaucenaoSearcher(None).search(b"image-bytes")
    assert [e.parsed.value for e in output] == ["75943246"]
    body = route.calls.last.request.content
    assert b'filename="image.jpg"' in body
    assert b"image-bytes" in body


@pytest.mark.asyncio
async def test_search_rejects_unexpected_page():
    with respx.mock:
        respx.post(SEARCH_URL).mock(return_value=httpx.Response(200, text="<html>nope</html>"))
        with pytest.raises(ValueError):
            await SaucenaoSearcher(None).search(b"data")


@pytest.mark.asyncio
async def test_search_http_error():
    with respx.mock:
        respx.post(SEARCH_URL).mock(return_value=httpx.Response(503))
        with pytest.raises(httpx.HTTPStatusError):
            await SaucenaoSearcher(None).search(b"data")
"""Telegraph API objects, page nodes and API result decoding."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Union


class Tag(enum.Enum):
    """Element names allowed in Telegraph page content."""

    A = "A"
    ASIDE = "Aside"
    B = "B"
    BLOCKQUOTE = "Blockquote"
    BR = "Br"
    CODE = "Code"
    EM = "Em"
    FIGCAPTION = "Figcaption"
    FIGURE = "Figure"
    H3 = "H3"
    H4 = "H4"
    HR = "Hr"
    I = "I"  # noqa: E741
    IFRAME = "Iframe"
    IMG = "Img"
    LI = "Li"
    OL = "Ol"
    P = "P"
    PRE = "Pre"
    S = "S"
    STRONG = "Strong"
    U = "U"
    UL = "Ul"
    VIDEO = "Video"

    @classmethod
    def _missing_(cls, value: object) -> Tag | None:
        if isinstance(value, str):
            lowered = value.lower()
            for member in cls:
                if member.value.lower() == lowered:
                    return member
        return None


@dataclass
class NodeElementAttr:
    href: str | None = None
    src: str | None = None


@dataclass
class NodeElement:
    """A DOM element node."""

    tag: Tag
    attrs: NodeElementAttr | None = None
    children: list[Node] | None = None


Node = Union[str, NodeElement]


def new_p_text(text: str) -> NodeElement:
    """A paragraph holding a single text node."""
    return NodeElement(tag=Tag.P, children=[text])


def new_image(src: str) -> NodeElement:
    """An image element pointing at ``src``."""
    return NodeElement(tag=Tag.IMG, attrs=NodeElementAttr(src=src))


def node_to_json(node: Node) -> Any:
    """Encode a node as the JSON value the API expects."""
    if isinstance(node, str):
        return node
    if isinstance(node, NodeElement):
        out: dict[str, Any] = {"tag": node.tag.value}
        if node.attrs is not None:
            attrs: dict[str, str] = {}
            if node.attrs.href is not None:
                attrs["href"] = node.attrs.href
            if node.attrs.src is not None:
                attrs["src"] = node.attrs.src
            out["attrs"] = attrs
        if node.children is not None:
            out["children"] = [node_to_json(child) for child in node.children]
        return out
    raise TypeError(f"not a node: {type(node).__name__}")


def node_from_json(data: Any) -> Node:
    """Decode a node; raises ValueError on malformed input."""
    if isinstance(data, str):
        return data
    if isinstance(data, dict):
        try:
            tag = Tag(data["tag"])
        except (KeyError, ValueError) as exc:
            raise ValueError(f"invalid node tag in {data!r}") from exc
        attrs_data = data.get("attrs")
        attrs = None
        if attrs_data is not None:
            if not isinstance(attrs_data, dict):
                raise ValueError(f"invalid node attrs: {attrs_data!r}")
            attrs = NodeElementAttr(href=attrs_data.get("href"), src=attrs_data.get("src"))
        children_data = data.get("children")
        children = None
        if children_data is not None:
            if not isinstance(children_data, list):
                raise ValueError(f"invalid node children: {children_data!r}")
            children = [node_from_json(child) for child in children_data]
        return NodeElement(tag=tag, attrs=attrs, children=children)
    raise ValueError(f"invalid node: {data!r}")


def _require(data: dict[str, Any], key: str) -> Any:
    try:
        return data[key]
    except KeyError:
        raise ValueError(f"missing field {key!r}") from None


def _as_mapping(data: Any) -> dict[str, Any]:
    if not isinstance(data, dict):
        raise ValueError(f"expected an object, got {type(data).__name__}")
    return data


@dataclass
class Account:
    """A Telegraph account."""

    short_name: str | None = None
    author_name: str | None = None
    author_url: str | None = None
    access_token: str | None = None
    auth_url: str | None = None
    page_count: int | None = None

    @classmethod
    def from_json(cls, data: Any) -> Account:
        data = _as_mapping(data)
        return cls(
            short_name=data.get("short_name"),
            author_name=data.get("author_name"),
            author_url=data.get("author_url"),
            access_token=data.get("access_token"),
            auth_url=data.get("auth_url"),
            page_count=data.get("page_count"),
        )


@dataclass
class Page:
    """A page on Telegraph."""

    path: str
    url: str
    title: str
    description: str
    views: int
    author_name: str | None = None
    author_url: str | None = None
    image_url: str | None = None
    content: list[Node] | None = None
    can_edit: bool | None = None

    @classmethod
    def from_json(cls, data: Any) -> Page:
        data = _as_mapping(data)
        content = data.get("content")
        return cls(
            path=_require(data, "path"),
            url=_require(data, "url"),
            title=_require(data, "title"),
            description=_require(data, "description"),
            views=_require(data, "views"),
            author_name=data.get("author_name"),
            author_url=data.get("author_url"),
            image_url=data.get("image_url"),
            content=None if content is None else [node_from_json(n) for n in content],
            can_edit=data.get("can_edit"),
        )


@dataclass
class PageList:
    """Pages of an account, most recent first."""

    total_count: int
    pages: list[Page]

    @classmethod
    def from_json(cls, data: Any) -> PageList:
        data = _as_mapping(data)
        return cls(
            total_count=_require(data, "total_count"),
            pages=[Page.from_json(p) for p in _require(data, "pages")],
        )


@dataclass
class PageViews:
    views: int


@dataclass
class PageCreate:
    """A page to create."""

    title: str
    content: list[Node] = field(default_factory=list)
    author_name: str | None = None
    author_url: str | None = None


@dataclass
class PageEdit:
    """An edit of an existing page."""

    title: str
    path: str
    content: list[Node] = field(default_factory=list)
    author_name: str | None = None
    author_url: str | None = None

    @classmethod
    def from_page(cls, page: Page) -> PageEdit:
        return cls(
            title=page.title,
            path=page.path,
            content=list(page.content or []),
            author_name=page.author_name,
            author_url=page.author_url,
        )


@dataclass
class MediaInfo:
    """Path of an uploaded file."""

    src: str


class TelegraphError(Exception):
    """Any failure talking to Telegraph."""


class TelegraphApiError(TelegraphError):
    """The API answered with an error message."""

    def __init__(self, error: str) -> None:
        super().__init__(f"api error {error}")
        self.error = error


class TelegraphServerError(TelegraphError):
    """The server answered with something unexpected."""

    def __init__(self, message: str = "unexpected server result") -> None:
        super().__init__(message)


def parse_api_result(data: Any) -> Any:
    """Return ``result`` from an API response, or raise the reported error."""
    if isinstance(data, dict):
        if "result" in data:
            return data["result"]
        error = data.get("error")
        if isinstance(error, str):
            raise TelegraphApiError(error)
    raise TelegraphServerError()


def parse_upload_result(data: Any) -> list[MediaInfo]:
    """Decode the upload endpoint's answer into media infos."""
    if isinstance(data, list):
        if all(isinstance(item, dict) and isinstance(item.get("src"), str) for item in data):
            return [MediaInfo(src=item["src"]) for item in data]
        raise TelegraphServerError()
    if isinstance(data, dict) and isinstance(data.get("error"), str):
        raise TelegraphApiError(data["error"])
    raise TelegraphServerError()
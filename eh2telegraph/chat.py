"""Telegram chat and message objects, chat descriptions and version text."""

from __future__ import annotations

import enum
import platform
from dataclasses import dataclass, field
from datetime import datetime, timezone
from importlib.metadata import PackageNotFoundError, version
from typing import Any


class Flow(enum.Enum):
    """Whether a handler consumed a message or passes it on to the next one."""

    CONTINUE = "continue"
    BREAK = "break"


def _require(data: dict[str, Any], key: str) -> Any:
    try:
        return data[key]
    except KeyError:
        raise ValueError(f"missing field {key!r}") from None


@dataclass
class Chat:
    id: int
    type: str
    title: str | None = None
    username: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    bio: str | None = None
    description: str | None = None
    permissions: dict[str, bool] | None = None

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> Chat:
        return cls(
            id=_require(data, "id"),
            type=_require(data, "type"),
            title=data.get("title"),
            username=data.get("username"),
            first_name=data.get("first_name"),
            last_name=data.get("last_name"),
            bio=data.get("bio"),
            description=data.get("description"),
            permissions=data.get("permissions"),
        )

    def is_private(self) -> bool:
        return self.type == "private"

    def is_group(self) -> bool:
        """True for groups and supergroups."""
        return self.type in ("group", "supergroup")

    def is_channel(self) -> bool:
        return self.type == "channel"

    def can_send_messages(self) -> bool:
        """False only when known permissions lack the right to send messages."""
        if self.permissions is None:
            return True
        return bool(self.permissions.get("can_send_messages", False))


@dataclass
class MessageEntity:
    type: str
    offset: int
    length: int
    url: str | None = None

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> MessageEntity:
        return cls(
            type=_require(data, "type"),
            offset=_require(data, "offset"),
            length=_require(data, "length"),
            url=data.get("url"),
        )

    def extract(self, text: str) -> str:
        """The part of ``text`` the entity covers; offsets count UTF-16 code units."""
        encoded = text.encode("utf-16-le")
        start = self.offset * 2
        return encoded[start : start + self.length * 2].decode("utf-16-le")


@dataclass
class PhotoSize:
    file_id: str
    file_unique_id: str
    width: int
    height: int
    file_size: int | None = None

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> PhotoSize:
        return cls(
            file_id=_require(data, "file_id"),
            file_unique_id=_require(data, "file_unique_id"),
            width=_require(data, "width"),
            height=_require(data, "height"),
            file_size=data.get("file_size"),
        )


@dataclass
class Message:
    message_id: int
    chat: Chat
    date: datetime
    text: str | None = None
    caption: str | None = None
    entities: list[MessageEntity] = field(default_factory=list)
    caption_entities: list[MessageEntity] = field(default_factory=list)
    photo: list[PhotoSize] = field(default_factory=list)

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> Message:
        return cls(
            message_id=_require(data, "message_id"),
            chat=Chat.from_json(_require(data, "chat")),
            date=datetime.fromtimestamp(_require(data, "date"), tz=timezone.utc),
            text=data.get("text"),
            caption=data.get("caption"),
            entities=[MessageEntity.from_json(e) for e in data.get("entities", [])],
            caption_entities=[
                MessageEntity.from_json(e) for e in data.get("caption_entities", [])
            ],
            photo=[PhotoSize.from_json(p) for p in data.get("photo", [])],
        )


def pretty_chat(chat: Chat) -> str:
    """A one-line description of a chat for logs."""
    parts: list[str] = []
    if chat.is_group():
        parts.append("GroupChat")
        if chat.title is not None:
            parts.append(f" title: {chat.title}")
        if chat.description is not None:
            parts.append(f" description: {chat.description}")
    elif chat.is_private():
        parts.append("PrivateChat")
        if chat.username is not None:
            parts.append(f" username: @{chat.username}")
        if chat.first_name is not None:
            parts.append(f" first_name: {chat.first_name}")
        if chat.last_name is not None:
            parts.append(f" last_name: {chat.last_name}")
        if chat.bio is not None:
            parts.append(f" bio: {chat.bio}")
    elif chat.is_channel():
        parts.append("Channel")
        if chat.username is not None:
            parts.append(f" username: @{chat.username}")
        if chat.title is not None:
            parts.append(f" title: {chat.title}")
        if chat.description is not None:
            parts.append(f", description: {chat.description}")
    return "".join(parts)


def version_text() -> str:
    """Version information shown by the bot's version command."""
    try:
        package_version = version("eh2telegraph")
    except PackageNotFoundError:
        package_version = "unknown"
    return (
        "\n"
        f"Package Version:\t{package_version}\n"
        f"Python Version: \t{platform.python_version()}\n"
        f"Implementation: \t{platform.python_implementation()}\n"
        f"Platform:       \t{platform.platform()}"
    )
"""Bot commands and the handlers that answer chat messages."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Coroutine, Iterable, Iterator
from dataclasses import dataclass
from typing import Any, ClassVar
from urllib.parse import urlsplit

from .chat import Flow, Message, pretty_chat, version_text
from .e_hentai import EHCollector
from .exhentai import EXCollector
from .nhentai import NHCollector
from .saucenao import SaucenaoSite
from .sync import Synchronizer

MIN_SIMILARITY = 70
MIN_SIMILARITY_PRIVATE = 50

_MARKDOWN_SPECIAL = frozenset("_*[]()~`>#+-=|{}.!\\")

_DESCRIPTION = (
    "This is a gallery synchronization robot that is convenient for users to view "
    "pictures directly in Telegram.\n"
    "這是一個方便使用者在 Telegram 裡看圖的畫廊同步機器人。\n\n"
    "Bot supports sync with command, text url, or image(private chat search thrashold is lower).\n"
    "機器人支援 指令、直接傳送網址、圖片(私訊搜索相似度閥值會更低) 的形式同步。\n\n"
    "These commands are supported:\n"
    "目前支援這些指令:"
)

_COMMAND_HELP = (
    ("help", "Display this help. 顯示這則幫助訊息。"),
    ("version", "Show bot verison. 顯示機器人的版本。"),
    ("id", "Show your account id. 顯示你的帳號 ID。"),
    (
        "sync",
        "Sync a gallery(e-hentai/exhentai/nhentai are supported now). "
        "同步一個畫廊(目前支援 EH/EX/NH)",
    ),
)

_COLLECTORS: dict[str, Any] = {
    "e-hentai.org": EHCollector,
    "nhentai.to": NHCollector,
    "nhentai.net": NHCollector,
    "exhentai.org": EXCollector,
}

log = logging.getLogger(__name__)


def escape(text: str) -> str:
    """Escape ``text`` for Telegram MarkdownV2."""
    return "".join("\\" + ch if ch in _MARKDOWN_SPECIAL else ch for ch in text)


def code_inline(text: str) -> str:
    """Format ``text`` as inline code in MarkdownV2."""
    escaped = "".join("\\" + ch if ch in "`\\" else ch for ch in text)
    return f"`{escaped}`"


def link(url: str, text: str) -> str:
    """A MarkdownV2 link; ``text`` must already be escaped."""
    escaped_url = "".join("\\" + ch if ch in ")\\" else ch for ch in url)
    return f"[{text}]({escaped_url})"


def command_descriptions() -> str:
    """The help text listing every user command."""
    lines = "\n".join(f"/{name} — {description}" for name, description in _COMMAND_HELP)
    return f"{_DESCRIPTION}\n\n{lines}"


def _split_command(text: str | None, bot_name: str | None) -> tuple[str, str] | None:
    if not text or not text.startswith("/"):
        return None
    head, _, args = text.partition(" ")
    name, at, target = head[1:].partition("@")
    if at and bot_name is not None and target.lower() != bot_name.lower():
        return None
    return name, args


@dataclass(frozen=True)
class Command:
    """A user command; only ``sync`` carries an argument."""

    HELP: ClassVar[str] = "help"
    VERSION: ClassVar[str] = "version"
    ID: ClassVar[str] = "id"
    SYNC: ClassVar[str] = "sync"

    name: str
    argument: str = ""

    @classmethod
    def parse(cls, text: str | None, bot_name: str | None = None) -> Command | None:
        """Parse ``/name[@bot] args``; None if it is not one of these commands."""
        split = _split_command(text, bot_name)
        if split is None:
            return None
        name, args = split
        if name not in (cls.HELP, cls.VERSION, cls.ID, cls.SYNC):
            return None
        return cls(name, args if name == cls.SYNC else "")


@dataclass(frozen=True)
class AdminCommand:
    """A command only admins may use."""

    DELETE: ClassVar[str] = "delete"

    name: str
    argument: str = ""

    @classmethod
    def parse(cls, text: str | None, bot_name: str | None = None) -> AdminCommand | None:
        split = _split_command(text, bot_name)
        if split is None:
            return None
        name, args = split
        if name != cls.DELETE:
            return None
        return cls(name, args)


def _first_match(candidates: Iterable[str | None]) -> str | None:
    return next((c for c in candidates if c), None)


class Handler:
    """Answers commands, links, captions and photos by syncing galleries."""

    def __init__(
        self,
        synchronizer: Any,
        admins: Iterable[int],
        searcher: Any = None,
        convertor: Any = None,
    ) -> None:
        if searcher is None:
            from .saucenao import SaucenaoSearcher

            searcher = SaucenaoSearcher.new_from_config()
        if convertor is None:
            from .f_hash import FHashConvertor

            convertor = FHashConvertor.new_from_config()
        self.synchronizer = synchronizer
        self.admins = frozenset(admins)
        self.searcher = searcher
        self.convertor = convertor
        self._in_flight: dict[str, asyncio.Future[str]] = {}
        self._tasks: set[asyncio.Task[None]] = set()

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> None:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    @staticmethod
    async def _reply(bot: Any, msg: Message, text: str) -> Any:
        return await bot.send_message(msg.chat.id, text, reply_to_message_id=msg.message_id)

    async def _finish_sync(self, bot: Any, sent: Message, url: str) -> None:
        text = await self.sync_response(url)
        with contextlib.suppress(Exception):
            await bot.edit_message_text(sent.chat.id, sent.message_id, text)

    async def _start_sync(self, bot: Any, msg: Message, url: str) -> Flow:
        try:
            sent = await self._reply(bot, msg, escape(f"Syncing url {url}"))
        except Exception:
            return Flow.BREAK
        self._spawn(self._finish_sync(bot, sent, url))
        return Flow.BREAK

    async def respond_cmd(self, bot: Any, msg: Message, command: Command) -> Flow:
        if command.name == Command.HELP:
            with contextlib.suppress(Exception):
                await self._reply(bot, msg, escape(command_descriptions()))
        elif command.name == Command.VERSION:
            with contextlib.suppress(Exception):
                await self._reply(bot, msg, escape(version_text()))
        elif command.name == Command.ID:
            text = (
                f"Current chat id is {code_inline(str(msg.chat.id))} "
                "\\(in private chat this is your account id\\)"
            )
            with contextlib.suppress(Exception):
                await self._reply(bot, msg, text)
        elif command.name == Command.SYNC:
            url = command.argument
            if not url:
                with contextlib.suppress(Exception):
                    await self._reply(bot, msg, escape("Usage: /sync url"))
                return Flow.BREAK
            log.info(
                "[cmd handler] receive sync request from %s for %s", pretty_chat(msg.chat), url
            )
            return await self._start_sync(bot, msg, url)
        return Flow.BREAK

    async def respond_admin_cmd(self, bot: Any, msg: Message, command: AdminCommand) -> Flow:
        key = command.argument

        async def delete() -> None:
            with contextlib.suppress(Exception):
                await self.synchronizer.delete_cache(key)
            with contextlib.suppress(Exception):
                await self._reply(bot, msg, escape(f"Key {key} deleted."))

        self._spawn(delete())
        return Flow.BREAK

    async def respond_text(self, bot: Any, msg: Message) -> Flow:
        def candidates() -> Iterator[str | None]:
            if msg.text:
                yield Synchronizer.match_url_from_text(msg.text)
            for entity in msg.entities:
                if entity.type == "text_link" and entity.url:
                    yield Synchronizer.match_url_from_text(entity.url)

        url = _first_match(candidates())
        if url is None:
            return Flow.CONTINUE
        log.info("[text handler] receive sync request from %s for %s", pretty_chat(msg.chat), url)
        return await self._start_sync(bot, msg, url)

    async def respond_caption(self, bot: Any, msg: Message) -> Flow:
        final_url = None
        for entity in msg.caption_entities:
            if entity.type == "url":
                if msg.caption is None:
                    continue
                try:
                    candidate = entity.extract(msg.caption)
                except UnicodeDecodeError:
                    return Flow.BREAK
            elif entity.type == "text_link" and entity.url:
                candidate = entity.url
            else:
                continue
            final_url = Synchronizer.match_url_from_url(candidate)
            if final_url is not None:
                break
        if final_url is None:
            return Flow.CONTINUE
        log.info(
            "[caption handler] receive sync request from %s for %s",
            pretty_chat(msg.chat),
            final_url,
        )
        return await self._start_sync(bot, msg, final_url)

    async def respond_photo(self, bot: Any, msg: Message) -> Flow:
        if not msg.photo:
            return Flow.CONTINUE
        first_photo = msg.photo[0]
        try:
            file_path = await bot.get_file(first_photo.file_id)
            data = await bot.download_file(file_path)
            result = await self.searcher.search(data)
        except Exception:
            return Flow.BREAK

        threshold = MIN_SIMILARITY_PRIVATE if msg.chat.is_private() else MIN_SIMILARITY
        found: tuple[str, int] | None = None
        for element in result:
            if element.similarity < threshold:
                continue
            site = element.parsed.site
            if site is SaucenaoSite.EHENTAI:
                try:
                    gallery = await self.convertor.convert_to_gallery(element.parsed.value)
                except Exception:
                    return Flow.BREAK
                found = (gallery, element.similarity)
                break
            if site is SaucenaoSite.NHENTAI:
                found = (f"https://nhentai.net/g/{element.parsed.value}/", element.similarity)
                break

        if found is None:
            log.debug("[photo handler] image not found")
            return Flow.CONTINUE
        url, similarity = found
        log.info(
            "[photo handler] receive sync request from %s for %s with similarity %d",
            pretty_chat(msg.chat),
            url,
            similarity,
        )
        return await self._start_sync(bot, msg, url)

    async def respond_default(self, bot: Any, msg: Message) -> Flow:
        if msg.chat.is_private():
            with contextlib.suppress(Exception):
                await self._reply(bot, msg, escape("Unrecognized message."))
        log.debug("unhandled message %r", msg)
        return Flow.BREAK

    async def sync_response(self, url: str) -> str:
        """The reply text for syncing ``url``; concurrent calls share one sync."""
        pending = self._in_flight.get(url)
        if pending is None:
            pending = asyncio.ensure_future(self._sync_text(url))
            self._in_flight[url] = pending
            pending.add_done_callback(lambda _f, key=url: self._in_flight.pop(key, None))
        return await asyncio.shield(pending)

    async def _sync_text(self, url: str) -> str:
        try:
            page_url = await self.route_sync(url)
        except Exception as exc:
            return f"Sync to telegraph failed: {escape(str(exc))}"
        return f"Sync to telegraph finished: {link(page_url, escape(page_url))}"

    async def route_sync(self, url: str) -> str:
        """Sync ``url`` with the collector for its host and return the page URL."""
        try:
            parts = urlsplit(url)
            host = parts.hostname or ""
        except ValueError:
            raise ValueError("Invalid url") from None
        if not parts.scheme or not parts.netloc:
            raise ValueError("Invalid url")
        path = parts.path or "/"
        collector = _COLLECTORS.get(host)
        if collector is None:
            raise LookupError("no matching collector")
        log.info("[registry] sync %s for path %s", collector.name, path)
        return await self.synchronizer.sync(collector, path)
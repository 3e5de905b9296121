"""The Telegram bot: configuration, Bot API client, update dispatching and entry point."""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any

import httpx

from . import config
from .chat import Flow, Message, pretty_chat, version_text
from .handler import AdminCommand, Command, Handler
from .http_proxy import ProxiedClient
from .registry import Registry
from .storage import SimpleMemStorage
from .sync import Synchronizer
from .telegraph import RandomAccessToken, Telegraph

API_BASE = "https://api.telegram.org"
PARSE_MODE = "MarkdownV2"
POLL_TIMEOUT = 10
REQUEST_TIMEOUT = 30.0
RETRY_DELAY = 1.0

log = logging.getLogger(__name__)


class BotApiError(Exception):
    """The Bot API reported a failed call."""


@dataclass
class TelegraphConfig:
    tokens: list[str]
    author_name: str | None = None
    author_url: str | None = None


@dataclass
class BaseConfig:
    bot_token: str
    telegraph: TelegraphConfig
    admins: list[int] = field(default_factory=list)

    @classmethod
    def from_mapping(cls, data: Any) -> BaseConfig:
        """Build from the ``base`` config section; raises ValueError if it is malformed."""
        if not isinstance(data, Mapping):
            raise ValueError("base config must be a mapping")
        try:
            bot_token = data["bot_token"]
            telegraph = data["telegraph"]
        except KeyError as exc:
            raise ValueError(f"base config is missing {exc}") from None
        if not isinstance(bot_token, str):
            raise ValueError("bot_token must be a string")
        if not isinstance(telegraph, Mapping):
            raise ValueError("telegraph config must be a mapping")
        tokens = telegraph.get("tokens")
        if not isinstance(tokens, list) or not all(isinstance(t, str) for t in tokens):
            raise ValueError("telegraph tokens must be a list of strings")
        admins = data.get("admins") or []
        if not isinstance(admins, list):
            raise ValueError("admins must be a list")
        return cls(
            bot_token=bot_token,
            telegraph=TelegraphConfig(
                tokens=list(tokens),
                author_name=telegraph.get("author_name"),
                author_url=telegraph.get("author_url"),
            ),
            admins=[int(a) for a in admins],
        )


class BotApi:
    """A minimal Telegram Bot API client; messages are sent as MarkdownV2."""

    def __init__(self, token: str, client: Any = None) -> None:
        self._token = token
        self._client = client if client is not None else httpx.AsyncClient(timeout=REQUEST_TIMEOUT)

    async def _call(
        self, method: str, payload: dict[str, Any] | None = None, timeout: float | None = None
    ) -> Any:
        kwargs: dict[str, Any] = {}
        if timeout is not None:
            kwargs["timeout"] = timeout
        response = await self._client.post(
            f"{API_BASE}/bot{self._token}/{method}", json=payload or {}, **kwargs
        )
        try:
            body = response.json()
        except ValueError:
            response.raise_for_status()
            raise BotApiError(f"{method}: invalid response") from None
        if not isinstance(body, dict) or not body.get("ok"):
            description = body.get("description") if isinstance(body, dict) else None
            raise BotApiError(description or f"{method} failed")
        return body.get("result")

    async def get_me(self) -> dict[str, Any]:
        return await self._call("getMe")

    async def get_updates(
        self, offset: int | None = None, timeout: int = POLL_TIMEOUT
    ) -> list[dict[str, Any]]:
        payload: dict[str, Any] = {"timeout": timeout, "allowed_updates": ["message"]}
        if offset is not None:
            payload["offset"] = offset
        result = await self._call("getUpdates", payload, timeout=timeout + REQUEST_TIMEOUT)
        return list(result or [])

    async def send_message(
        self, chat_id: int, text: str, reply_to_message_id: int | None = None
    ) -> Message:
        payload: dict[str, Any] = {"chat_id": chat_id, "text": text, "parse_mode": PARSE_MODE}
        if reply_to_message_id is not None:
            payload["reply_to_message_id"] = reply_to_message_id
        return Message.from_json(await self._call("sendMessage", payload))

    async def edit_message_text(self, chat_id: int, message_id: int, text: str) -> Any:
        payload = {
            "chat_id": chat_id,
            "message_id": message_id,
            "text": text,
            "parse_mode": PARSE_MODE,
        }
        return await self._call("editMessageText", payload)

    async def leave_chat(self, chat_id: int) -> Any:
        return await self._call("leaveChat", {"chat_id": chat_id})

    async def get_file(self, file_id: str) -> str:
        """Return the server-side path of the file, for download_file."""
        result = await self._call("getFile", {"file_id": file_id})
        path = result.get("file_path") if isinstance(result, dict) else None
        if not path:
            raise BotApiError("file has no path")
        return path

    async def download_file(self, file_path: str) -> bytes:
        response = await self._client.get(f"{API_BASE}/file/bot{self._token}/{file_path}")
        response.raise_for_status()
        return response.content

    async def aclose(self) -> None:
        await self._client.aclose()


class Dispatcher:
    """Routes each update through the filters and handlers in order."""

    def __init__(
        self, bot: Any, handler: Handler, bot_name: str | None, process_after: datetime
    ) -> None:
        self._bot = bot
        self._handler = handler
        self._bot_name = bot_name
        self._process_after = process_after
        self._tasks: set[asyncio.Task[None]] = set()

    async def dispatch(self, update: Mapping[str, Any]) -> Flow | None:
        """Handle one update; None when it was filtered out before any handler."""
        payload = update.get("message") or update.get("edited_message")
        if payload is None:
            return None
        try:
            msg = Message.from_json(payload)
        except (ValueError, TypeError, KeyError):
            return None
        if msg.date <= self._process_after:
            return None
        if not msg.chat.can_send_messages():
            log.info("[permission filter] leave chat %s", pretty_chat(msg.chat))
            with contextlib.suppress(Exception):
                await self._bot.leave_chat(msg.chat.id)
            return None

        handler, bot = self._handler, self._bot
        if msg.chat.id in handler.admins:
            admin_command = AdminCommand.parse(msg.text, self._bot_name)
            if admin_command is not None:
                if await handler.respond_admin_cmd(bot, msg, admin_command) is Flow.BREAK:
                    return Flow.BREAK
        command = Command.parse(msg.text, self._bot_name)
        if command is not None:
            if await handler.respond_cmd(bot, msg, command) is Flow.BREAK:
                return Flow.BREAK
        if msg.text:
            if await handler.respond_text(bot, msg) is Flow.BREAK:
                return Flow.BREAK
        if msg.caption_entities:
            if await handler.respond_caption(bot, msg) is Flow.BREAK:
                return Flow.BREAK
        if msg.photo:
            if await handler.respond_photo(bot, msg) is Flow.BREAK:
                return Flow.BREAK
        return await handler.respond_default(bot, msg)

    async def _dispatch_quietly(self, update: Mapping[str, Any]) -> None:
        try:
            await self.dispatch(update)
        except Exception:
            log.debug("error while handling update", exc_info=True)

    async def run(self) -> None:
        """Poll for updates forever, handling each one in its own task."""
        offset: int | None = None
        while True:
            try:
                updates = await self._bot.get_updates(offset, POLL_TIMEOUT)
            except (httpx.HTTPError, BotApiError) as exc:
                log.error("An error from the update listener: %s", exc)
                await asyncio.sleep(RETRY_DELAY)
                continue
            for update in updates:
                offset = int(update["update_id"]) + 1
                task = asyncio.create_task(self._dispatch_quietly(update))
                self._tasks.add(task)
                task.add_done_callback(self._tasks.discard)


async def _serve(base: BaseConfig, process_after: datetime) -> None:
    telegraph = Telegraph(RandomAccessToken(base.telegraph.tokens)).with_proxy(
        ProxiedClient.new_from_config()
    )
    registry = Registry.new_from_config()
    synchronizer = Synchronizer(telegraph, registry, SimpleMemStorage())
    if base.telegraph.author_name is not None:
        synchronizer = synchronizer.with_author(
            base.telegraph.author_name, base.telegraph.author_url
        )
    handler = Handler(synchronizer, set(base.admins))
    bot = BotApi(base.bot_token)
    me = await bot.get_me()
    dispatcher = Dispatcher(bot, handler, me.get("username"), process_after)
    log.info("initializing finished, bot is running")
    try:
        await dispatcher.run()
    finally:
        await bot.aclose()


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="eh2telegraph", description="eh2telegraph sync bot")
    parser.add_argument("-c", "--config", help="Config file path")
    parser.add_argument("-V", "--version", action="version", version=version_text())
    args = parser.parse_args(argv)

    # only messages from the last day are processed
    process_after = datetime.now(timezone.utc) - timedelta(days=1)
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%m-%d %H:%M:%S",
    )
    log.info("initializing...")

    config.init(args.config)
    raw = config.parse("base")
    if raw is None:
        raise config.ConfigError("base config can not be empty")
    try:
        base = BaseConfig.from_mapping(raw)
    except ValueError as exc:
        raise config.ConfigError(f"unable to parse base config: {exc}") from exc

    with contextlib.suppress(KeyboardInterrupt):
        asyncio.run(_serve(base, process_after))
    return 0
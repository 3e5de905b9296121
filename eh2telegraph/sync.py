"""Downloads a gallery, uploads its images to Telegraph and publishes a page."""

from __future__ import annotations

import logging
from typing import Any

from .buffer import ImageBuffer
from .collector_base import AlbumMeta, ImageData, ImageMeta
from .collector_base import match_url_from_text as _match_url_from_text
from .collector_base import match_url_from_url as _match_url_from_url
from .registry import Registry
from .storage import KVStorage
from .stream import AsyncStream, Buffered
from .telegraph import MAX_SINGLE_FILE_SIZE, Telegraph
from .telegraph_types import Node, Page, PageCreate, TelegraphError, new_image, new_p_text

ERR_THRESHOLD = 10
BATCH_LEN_THRESHOLD = 20
BATCH_SIZE_THRESHOLD = 5 * 1024 * 1024
DEFAULT_CONCURRENT = 20
DEFAULT_CACHE_TTL = 3600 * 24 * 45
TELEGRAPH_ORIGIN = "https://telegra.ph"

log = logging.getLogger(__name__)


class UploadError(Exception):
    """Synchronising a gallery to Telegraph failed."""


class StreamError(UploadError):
    """Too many images in a row could not be downloaded."""

    def __init__(self, error: BaseException) -> None:
        super().__init__(f"stream error {error}")
        self.error = error


class Synchronizer:
    """Syncs galleries to Telegraph pages and caches the resulting URLs."""

    def __init__(self, tg: Telegraph, registry: Registry, cache: KVStorage) -> None:
        self._tg = tg
        self._registry = registry
        self._cache = cache
        self._limit: int | None = None
        self._author_name: str | None = None
        self._author_url: str | None = None
        self._cache_ttl: int | None = None

    def with_concurrent_limit(self, limit: int) -> Synchronizer:
        self._limit = limit
        return self

    def with_author(self, name: str | None, url: str | None) -> Synchronizer:
        self._author_name = name
        self._author_url = url
        return self

    def with_cache_ttl(self, ttl: int | None) -> Synchronizer:
        self._cache_ttl = ttl
        return self

    async def delete_cache(self, key: str) -> None:
        await self._cache.delete(key)

    async def sync(self, collector_type: Any, path: str) -> str:
        """Sync the gallery at ``path`` with the given collector; returns the page URL."""
        cache_key = f"{collector_type.name}|{path}"
        try:
            cached = await self._cache.get(cache_key)
        except Exception:
            cached = None
        if cached is not None:
            log.info("[cache] hit key %s", cache_key)
            return cached
        log.info("[cache] miss key %s", cache_key)

        collector = self._registry.get(collector_type)
        meta, stream = await collector.fetch(path)
        page = await self.sync_stream(meta, stream)

        ttl = self._cache_ttl if self._cache_ttl is not None else DEFAULT_CACHE_TTL
        try:
            await self._cache.set(cache_key, page.url, ttl)
        except Exception:
            log.warning("[cache] unable to store key %s", cache_key)
        return page.url

    async def sync_stream(
        self, meta: AlbumMeta, stream: AsyncStream[tuple[ImageMeta, ImageData]]
    ) -> Page:
        """Download the stream's images concurrently, upload them and create the page."""
        limit = self._limit if self._limit is not None else DEFAULT_CONCURRENT
        try:
            page = await self._sync_buffered(meta, Buffered(stream, limit))
        except UploadError as exc:
            log.error("[sync] sync fail! %r", exc)
            raise
        log.info("[sync] sync success with url %s", page.url)
        return page

    async def _sync_buffered(
        self, meta: AlbumMeta, stream: AsyncStream[tuple[ImageMeta, ImageData]]
    ) -> Page:
        err_count = 0
        uploaded: list[str] = []
        buffer: ImageBuffer[tuple[ImageMeta, ImageData]] = ImageBuffer()

        while True:
            while (pending := stream.next()) is not None:
                try:
                    item = await pending
                except Exception as exc:
                    err_count += 1
                    if err_count > ERR_THRESHOLD:
                        raise StreamError(exc) from exc
                    continue
                err_count = 0

                image_meta, data = item
                if len(data) >= MAX_SINGLE_FILE_SIZE:
                    log.error("Too big file, discarded. Meta: %r", image_meta)
                    continue

                buffer.push(item)
                if len(buffer) > BATCH_LEN_THRESHOLD or buffer.size() > BATCH_SIZE_THRESHOLD:
                    break

            if len(buffer) == 0:
                break

            items, size = buffer.swap()
            log.debug("download %d images with size %d, will upload them", len(items), size)
            try:
                media = await self._tg.upload(bytes(data) for _, data in items)
            except TelegraphError as exc:
                raise UploadError("telegraph error") from exc
            err_count = 0
            log.debug("upload %d images with size %d", len(items), size)
            uploaded.extend(f"{TELEGRAPH_ORIGIN}{info.src}" for info in media)

        content: list[Node] = [new_image(src) for src in uploaded]
        content.append(new_p_text("Generated by eh2telegraph."))
        content.append(new_p_text(f"Original link: {meta.link}"))

        author_name = self._author_name
        if author_name is None and meta.authors is not None:
            author_name = ", ".join(meta.authors)

        try:
            return await self._tg.create_page(
                PageCreate(
                    title=meta.name,
                    content=content,
                    author_name=author_name,
                    author_url=self._author_url,
                )
            )
        except TelegraphError as exc:
            raise UploadError("telegraph error") from exc

    @staticmethod
    def match_url_from_text(content: str) -> str | None:
        return _match_url_from_text(content)

    @staticmethod
    def match_url_from_url(content: str) -> str | None:
        return _match_url_from_url(content)
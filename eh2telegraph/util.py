"""Regex and HTTP helpers shared by collectors and searchers."""

from __future__ import annotations

import asyncio
import random
import re
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, TypeVar

if TYPE_CHECKING:
    from .http_proxy import HttpRequestBuilder

T = TypeVar("T")


def match_first_group(pattern: re.Pattern[str] | str, content: str) -> str | None:
    """Return the first capture group of the first match, or None if nothing matches."""
    match = re.search(pattern, content)
    if match is None:
        return None
    return match.group(1)


async def get_bytes(client: HttpRequestBuilder, link: str) -> bytes:
    """GET ``link`` and return the body; raises on an error status."""
    response = await client.get(link)
    response.raise_for_status()
    return response.content


async def get_string(client: HttpRequestBuilder, link: str) -> str:
    """GET ``link`` and return the decoded body; raises on an error status."""
    response = await client.get(link)
    response.raise_for_status()
    return response.text


async def retry(
    operation: Callable[[], Awaitable[T]],
    retries: int = 5,
    delay: float = 0.2,
    jitter: bool = True,
) -> T:
    """Run ``operation`` until it succeeds, retrying up to ``retries`` times.

    Waits ``delay`` seconds between attempts (a random part of it with ``jitter``)
    and re-raises the last error when all attempts fail.
    """
    attempt = 0
    while True:
        try:
            return await operation()
        except Exception:
            if attempt >= retries:
                raise
            attempt += 1
            pause = random.uniform(0, delay) if jitter else delay
            if pause > 0:
                await asyncio.sleep(pause)
"""Shared httpx client helpers."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import httpx

from podshelf import __version__

DEFAULT_USER_AGENT = f"podshelf/{__version__}"
DEFAULT_TIMEOUT_SECONDS = 30.0


@asynccontextmanager
async def open_client(
    client: httpx.AsyncClient | None = None,
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
    user_agent: str = DEFAULT_USER_AGENT,
) -> AsyncIterator[httpx.AsyncClient]:
    """Yield ``client`` if given, otherwise a short-lived client.

    A passed-in client is left open; its owner closes it.
    """
    if client is not None:
        yield client
        return

    async with httpx.AsyncClient(
        timeout=timeout_seconds,
        headers={"User-Agent": user_agent},
        follow_redirects=True,
    ) as new_client:
        yield new_client

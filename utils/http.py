"""Shared httpx helpers"""

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import httpx

from settings import CONNECT_TIMEOUT, READ_TIMEOUT, REQUEST_TIMEOUT, STREAM_TIMEOUT


def request_timeout() -> httpx.Timeout:
    return httpx.Timeout(REQUEST_TIMEOUT, connect=CONNECT_TIMEOUT)


def stream_timeout() -> httpx.Timeout:
    return httpx.Timeout(STREAM_TIMEOUT, connect=CONNECT_TIMEOUT, read=READ_TIMEOUT)


@asynccontextmanager
async def borrow_client(
    client: Optional[httpx.AsyncClient],
    timeout: Optional[httpx.Timeout] = None
) -> AsyncIterator[httpx.AsyncClient]:
    """Yield the injected client, or a short-lived one closed on exit

    Args:
        client: Caller-owned client, left open afterwards
        timeout: Timeout for the short-lived client
    """
    if client is not None:
        yield client
        return

    async with httpx.AsyncClient(timeout=timeout or request_timeout()) as owned:
        yield owned

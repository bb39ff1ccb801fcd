"""
Shared helpers for outbound calls to Rise.ai (httpx).
"""
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

import httpx


@asynccontextmanager
async def open_client(client: httpx.AsyncClient | None, timeout: float) -> AsyncIterator[httpx.AsyncClient]:
    """Yield the injected client, or a short-lived one with the given timeout."""
    if client is not None:
        yield client
        return
    async with httpx.AsyncClient(timeout=httpx.Timeout(timeout)) as c:
        yield c


def response_body(r: httpx.Response) -> Any:
    """Decoded JSON body when the response is JSON, else the raw text."""
    if r.headers.get("content-type", "").startswith("application/json"):
        try:
            return r.json()
        except ValueError:
            pass
    return r.text

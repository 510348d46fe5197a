from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

import aiohttp

from .errors import HTTPStatusError, TransportError

logger = logging.getLogger(__name__)


class AiohttpTransport:
    """JSON-over-HTTP fetcher used by the status poller.

    Cancelling the awaiting task aborts the request; ``asyncio.CancelledError``
    is never wrapped so the poller can tell an abort from a failure.
    """

    def __init__(
        self,
        timeout_seconds: Optional[float] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        self._timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self._session = session
        self._owns_session = session is None

    async def __aenter__(self) -> "AiohttpTransport":
        if self._session is None:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def close(self) -> None:
        if self._session is not None and self._owns_session:
            await self._session.close()
        self._session = None

    async def fetch_json(self, url: str) -> Any:
        if self._session is None:
            raise RuntimeError("AiohttpTransport is not open; use 'async with'.")
        try:
            async with self._session.get(url, headers={"Cache-Control": "no-store"}) as resp:
                if resp.status < 200 or resp.status >= 300:
                    body = await resp.text(errors="replace")
                    raise HTTPStatusError(resp.status, resp.reason or "", body.strip())
                return await resp.json(content_type=None)
        except asyncio.TimeoutError as exc:
            raise TransportError(f"Timed out fetching {url}") from exc
        except aiohttp.ClientError as exc:
            raise TransportError(f"Request to {url} failed: {exc}") from exc
        except ValueError as exc:
            raise TransportError(f"Invalid JSON from {url}: {exc}") from exc

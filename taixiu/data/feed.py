"""Async client for the upstream round history feed."""

import asyncio
from typing import List, Optional

import aiohttp
from aiohttp import ClientSession, ClientTimeout

from taixiu.core.config import FeedConfig
from taixiu.core.errors import FeedError
from taixiu.core.log import get_logger
from taixiu.core.types import Round
from taixiu.data.ingest import extract_rows, shape_history

logger = get_logger(__name__)


class HistoryFeed:
    """Lightweight client fetching the full round history in one request."""

    def __init__(self, config: FeedConfig, midpoint: float = 10.5) -> None:
        self.config = config
        self._midpoint = midpoint
        self._session: Optional[ClientSession] = None

    async def __aenter__(self) -> "HistoryFeed":
        await self._ensure_session()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()

    async def _ensure_session(self) -> ClientSession:
        if self._session is None or self._session.closed:
            timeout = ClientTimeout(total=self.config.request_timeout)
            self._session = aiohttp.ClientSession(timeout=timeout)
        return self._session

    async def fetch_history(self) -> List[Round]:
        session = await self._ensure_session()
        try:
            async with session.get(self.config.url) as resp:
                if resp.status != 200:
                    raise FeedError(f"history feed returned status {resp.status}")
                payload = await resp.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as exc:
            logger.warning("History fetch failed", url=self.config.url, error=str(exc))
            raise FeedError(f"history feed unavailable: {exc}") from exc

        rounds = shape_history(extract_rows(payload), self._midpoint)
        logger.debug("History fetched", rounds=len(rounds))
        return rounds

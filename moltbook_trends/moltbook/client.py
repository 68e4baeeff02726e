from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Optional

import aiohttp

from moltbook_trends.settings import DEFAULT_USER_AGENT, Settings

log = logging.getLogger(__name__)

RETRYABLE_EXC = (
    asyncio.TimeoutError,
    TimeoutError,
    aiohttp.ClientConnectionError,
    aiohttp.ClientPayloadError,
    OSError,
    ConnectionError,
)

RETRYABLE_STATUS = {429, 500, 502, 503, 504}


class RetryableStatus(Exception):
    def __init__(self, status: int, url: str) -> None:
        super().__init__(f"HTTP {status} for {url}")
        self.status = status
        self.url = url


@dataclass(frozen=True)
class MoltbookClient:
    """Plain HTTP access to moltbook.com (no JavaScript rendering)."""
    base_url: str = "https://www.moltbook.com"
    user_agent: str = DEFAULT_USER_AGENT
    timeout_seconds: float = 15.0
    request_attempts: int = 3

    @staticmethod
    def from_settings(settings: Settings) -> "MoltbookClient":
        return MoltbookClient(
            base_url=settings.base_url,
            user_agent=settings.user_agent,
            timeout_seconds=settings.http_timeout_seconds,
            request_attempts=max(1, settings.request_attempts),
        )

    async def _get_text(self, url: str) -> str:
        timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)
        headers = {"User-Agent": self.user_agent}
        async with aiohttp.ClientSession(timeout=timeout, headers=headers) as session:
            async with session.get(url) as resp:
                if resp.status in RETRYABLE_STATUS:
                    raise RetryableStatus(resp.status, url)
                resp.raise_for_status()
                return await resp.text()

    async def get_text_with_retry(self, url: str) -> str:
        last_exc: Optional[BaseException] = None

        for attempt in range(1, self.request_attempts + 1):
            try:
                return await self._get_text(url)

            except (*RETRYABLE_EXC, RetryableStatus) as e:
                last_exc = e
                if attempt >= self.request_attempts:
                    break
                backoff = min(2 ** (attempt - 1), 30) + random.random()
                log.warning(
                    "GET %s failed (attempt=%s/%s sleep=%.2fs): %r",
                    url,
                    attempt,
                    self.request_attempts,
                    backoff,
                    e,
                )
                await asyncio.sleep(backoff)

        assert last_exc is not None
        raise last_exc

    async def fetch_home_html(self) -> str:
        return await self.get_text_with_retry(self.base_url)

"""HTTP page fetcher."""

import random
from typing import Optional

import httpx
import structlog

from webpage_monitor.config import DEFAULT_USER_AGENTS
from webpage_monitor.core import Fetcher

logger = structlog.get_logger(__name__)


class HttpFetcher(Fetcher):
    """Download pages with a rotated browser user agent."""

    def __init__(
        self,
        timeout: float = 10.0,
        user_agents: Optional[list[str]] = None,
    ) -> None:
        self.timeout = timeout
        self.user_agents = user_agents or list(DEFAULT_USER_AGENTS)

    def _headers(self) -> dict[str, str]:
        return {
            "User-Agent": random.choice(self.user_agents),
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            "Accept-Language": "en-US,en;q=0.9",
            "Cache-Control": "no-cache",
            "Sec-Fetch-Dest": "document",
            "Sec-Fetch-Mode": "navigate",
            "Upgrade-Insecure-Requests": "1",
        }

    async def fetch(self, url: str) -> Optional[str]:
        """Fetch a page body; timeouts, network errors and non-2xx give None."""
        async with httpx.AsyncClient(timeout=self.timeout, follow_redirects=True) as client:
            try:
                response = await client.get(url, headers=self._headers())
            except httpx.HTTPError as e:
                logger.info("fetch_failed", url=url, error=str(e) or type(e).__name__)
                return None

        if not response.is_success:
            logger.info("fetch_failed", url=url, status=response.status_code)
            return None

        return response.text

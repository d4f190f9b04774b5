"""Robots.txt helper utilities."""
from __future__ import annotations

import asyncio
from typing import Dict, Optional
from urllib.parse import urljoin, urlparse
from urllib.robotparser import RobotFileParser

import httpx


class RobotsCache:
    """Caches robots.txt responses per netloc and answers allow checks.

    Reuses the job's HTTP client when one is supplied; otherwise a short-lived
    client is opened per lookup. Unreachable or erroring robots files allow
    everything.
    """

    def __init__(
        self,
        *,
        user_agent: str,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 10.0,
    ) -> None:
        self._user_agent = user_agent
        self._client = client
        self._timeout = timeout
        self._cache: Dict[str, RobotFileParser] = {}
        self._lock = asyncio.Lock()

    async def _load(self, robots_url: str) -> RobotFileParser:
        parser = RobotFileParser()
        try:
            if self._client is not None:
                response = await self._client.get(robots_url)
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await client.get(robots_url)
        except httpx.HTTPError:
            parser.parse([])
            return parser
        if response.status_code >= 400:
            parser.parse([])
        else:
            parser.parse(response.text.splitlines())
        return parser

    async def allowed(self, url: str) -> bool:
        """Return whether the supplied URL is permitted for the crawler."""
        parsed = urlparse(url)
        key = parsed.netloc
        async with self._lock:
            if key not in self._cache:
                robots_url = urljoin(f"{parsed.scheme}://{parsed.netloc}", "/robots.txt")
                self._cache[key] = await self._load(robots_url)
            parser = self._cache[key]
        return parser.can_fetch(self._user_agent, url)

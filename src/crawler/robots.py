"""
robots.txt policy checking with a per-host cache.
"""

import time
import logging
from typing import Dict, Optional
from urllib.parse import urljoin, urlparse
from urllib.robotparser import RobotFileParser

import aiohttp
from aiohttp import ClientSession, ClientTimeout


class RobotsChecker:
    """Manages robots.txt checking for domains."""

    def __init__(self, user_agent: str, enabled: bool = True, cache_ttl: float = 3600,
                 session: Optional[ClientSession] = None):
        self.user_agent = user_agent
        self.enabled = enabled
        self.cache_ttl = cache_ttl
        self.session = session
        self._owns_session = session is None
        self.robots_cache: Dict[str, RobotFileParser] = {}
        self.robots_check_time: Dict[str, float] = {}
        self.logger = logging.getLogger(__name__)

    def _get_domain(self, url: str) -> str:
        """Extract scheme and host from URL."""
        parsed = urlparse(url)
        return f"{parsed.scheme}://{parsed.netloc}"

    async def _get_session(self) -> ClientSession:
        if self.session is None:
            self.session = aiohttp.ClientSession(
                timeout=ClientTimeout(total=10),
                headers={'User-Agent': self.user_agent}
            )
        return self.session

    async def _load(self, domain: str) -> RobotFileParser:
        robots_url = urljoin(domain, '/robots.txt')
        rp = RobotFileParser()
        rp.set_url(robots_url)

        session = await self._get_session()
        async with session.get(robots_url) as response:
            if response.status == 200:
                rp.parse((await response.text()).splitlines())
            elif response.status in (401, 403):
                rp.disallow_all = True
            else:
                # Missing robots.txt allows everything
                rp.allow_all = True
        return rp

    async def allows(self, url: str) -> bool:
        """Check if URL can be fetched according to robots.txt."""
        if not self.enabled:
            return True

        domain = self._get_domain(url)
        current_time = time.time()

        rp = self.robots_cache.get(domain)
        if rp is None or current_time - self.robots_check_time.get(domain, 0) >= self.cache_ttl:
            try:
                rp = await self._load(domain)
            except Exception as e:
                self.logger.warning(f"Could not fetch robots.txt for {domain}: {e}")
                # If we can't fetch robots.txt, allow by default
                return True

            self.robots_cache[domain] = rp
            self.robots_check_time[domain] = current_time

        allowed = rp.can_fetch(self.user_agent, url)
        if not allowed:
            self.logger.debug(f"Robots.txt blocks access to: {url}")
        return allowed

    async def close(self):
        if self.session is not None and self._owns_session:
            await self.session.close()
        self.session = None

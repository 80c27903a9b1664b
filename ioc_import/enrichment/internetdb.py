"""Shodan InternetDB host intelligence client."""

import asyncio
import logging
from typing import Any, Optional

import aiohttp

from ioc_import.config import ImportConfig
from ioc_import.enrichment.base import HostIntelClient
from ioc_import.errors import HostIntelError
from ioc_import.models import HostIntel
from ioc_import.rate_limiter import TokenBucketRateLimiter, make_rate_limiter

logger = logging.getLogger("ioc_import.internetdb")


class InternetDBClient(HostIntelClient):
    """Free, keyless InternetDB lookups (ports, hostnames, vulns, tags, CPEs)."""

    name = "internetdb"

    def __init__(
        self,
        rate_limiter: TokenBucketRateLimiter,
        base_url: str = "https://internetdb.shodan.io",
        timeout: float = 10.0,
    ):
        """Initialize the InternetDB client."""
        self.rate_limiter = rate_limiter
        self.base_url = base_url.rstrip("/")
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self.session: Optional[aiohttp.ClientSession] = None

    @classmethod
    def from_config(cls, config: ImportConfig) -> "InternetDBClient":
        """Build a client with the configured URL, timeout and rate limit."""
        return cls(
            rate_limiter=make_rate_limiter("internetdb", config.host_intel_rate_limit),
            base_url=config.host_intel_url,
            timeout=config.host_intel_timeout,
        )

    async def _ensure_session(self) -> aiohttp.ClientSession:
        """Ensure aiohttp session exists."""
        if self.session is None:
            self.session = aiohttp.ClientSession(timeout=self.timeout)
        return self.session

    async def lookup(self, ip: str) -> HostIntel:
        """Query InternetDB for a single IP address."""
        await self.rate_limiter.acquire()
        session = await self._ensure_session()

        try:
            async with session.get(f"{self.base_url}/{ip}") as response:
                if response.status == 404:
                    logger.debug(f"InternetDB has no data for {ip}")
                    return HostIntel()
                if response.status == 429:
                    raise HostIntelError(f"InternetDB rate limit exceeded for {ip}")
                response.raise_for_status()
                data: dict[str, Any] = await response.json()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise HostIntelError(f"InternetDB HTTP error for {ip}: {e}") from e

        intel = HostIntel(
            ports=list(data.get("ports") or []),
            hostnames=list(data.get("hostnames") or []),
            vulns=list(data.get("vulns") or []),
            tags=list(data.get("tags") or []),
            cpes=list(data.get("cpes") or []),
        )
        logger.debug(f"InternetDB: {ip} has {len(intel.ports)} ports, {len(intel.vulns)} vulns")
        return intel

    async def close(self) -> None:
        """Close the aiohttp session."""
        if self.session:
            await self.session.close()
            self.session = None

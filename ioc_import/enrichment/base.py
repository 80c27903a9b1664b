"""Base class for host intelligence capabilities."""

from abc import ABC, abstractmethod

from ioc_import.models import HostIntel


class HostIntelClient(ABC):
    """Pluggable network reconnaissance lookup used to enrich IP indicators."""

    name = "host_intel"

    @abstractmethod
    async def lookup(self, ip: str) -> HostIntel:
        """
        Look up open ports, hostnames, vulns and tags for an IP address.

        Args:
            ip: IPv4 address to look up

        Returns:
            Summary for the address (empty when the source has no data)

        Raises:
            HostIntelError: If the lookup fails
        """
        ...

    async def close(self) -> None:
        """Release any underlying connections."""
        return None

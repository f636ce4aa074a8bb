"""Proxy pool management."""

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from npiscraper.monitoring.logger import get_logger

logger = get_logger(__name__)

_URL_PATTERN = re.compile(r"^(https?|socks[45]?)://(?:([^:]+):([^@]+)@)?([^:/]+):(\d+)/?$")


@dataclass
class Proxy:
    """Represents a proxy server."""

    address: str
    port: int
    protocol: str = "http"
    username: str | None = None
    password: str | None = None

    # Runtime stats
    is_healthy: bool = True
    success_count: int = 0
    fail_count: int = 0

    @property
    def url(self) -> str:
        """Proxy URL including credentials."""
        if self.username and self.password:
            return f"{self.protocol}://{self.username}:{self.password}@{self.address}:{self.port}"
        return f"{self.protocol}://{self.address}:{self.port}"

    @property
    def url_no_auth(self) -> str:
        """Proxy URL safe to log."""
        return f"{self.protocol}://{self.address}:{self.port}"

    @property
    def total_requests(self) -> int:
        return self.success_count + self.fail_count

    @property
    def success_rate(self) -> float:
        """Success rate as a percentage."""
        if self.total_requests == 0:
            return 0.0
        return (self.success_count / self.total_requests) * 100

    def record_success(self) -> None:
        self.success_count += 1

    def record_failure(self) -> None:
        self.fail_count += 1

    @classmethod
    def from_string(cls, proxy_str: str) -> "Proxy | None":
        """Parse proxy from string.

        Supported formats:
        - ip:port
        - ip:port:username:password
        - protocol://ip:port
        - protocol://username:password@ip:port

        Args:
            proxy_str: Proxy string

        Returns:
            Proxy instance or None if invalid
        """
        proxy_str = proxy_str.strip()
        if not proxy_str or proxy_str.startswith("#"):
            return None

        match = _URL_PATTERN.match(proxy_str)
        if match:
            return cls(
                protocol=match.group(1),
                username=match.group(2),
                password=match.group(3),
                address=match.group(4),
                port=int(match.group(5)),
            )

        parts = proxy_str.split(":")
        if len(parts) in (2, 4) and parts[1].isdigit():
            if len(parts) == 2:
                return cls(address=parts[0], port=int(parts[1]))
            return cls(
                address=parts[0],
                port=int(parts[1]),
                username=parts[2],
                password=parts[3],
            )

        logger.warning(f"Invalid proxy format: {proxy_str}")
        return None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary (credentials excluded)."""
        return {
            "address": self.address,
            "port": self.port,
            "protocol": self.protocol,
            "is_healthy": self.is_healthy,
            "success_rate": self.success_rate,
            "total_requests": self.total_requests,
        }


@dataclass
class ProxyPool:
    """Pool of proxy servers."""

    proxies: list[Proxy] = field(default_factory=list)

    def add(self, proxy: Proxy) -> bool:
        """Add proxy to pool, ignoring duplicates.

        Args:
            proxy: Proxy to add

        Returns:
            True if the proxy was added
        """
        if any(p.address == proxy.address and p.port == proxy.port for p in self.proxies):
            return False
        self.proxies.append(proxy)
        logger.debug(f"Added proxy: {proxy.url_no_auth}")
        return True

    def get_healthy(self) -> list[Proxy]:
        return [p for p in self.proxies if p.is_healthy]

    @property
    def size(self) -> int:
        return len(self.proxies)

    @property
    def healthy_count(self) -> int:
        return len(self.get_healthy())


class ProxyManager:
    """Manages proxy pool with loading from settings, lists and files."""

    def __init__(self, enabled: bool = True) -> None:
        """Initialize proxy manager.

        Args:
            enabled: Whether rotation is active
        """
        self.pool = ProxyPool()
        self._enabled = enabled

    @property
    def enabled(self) -> bool:
        return self._enabled

    def load_from_file(self, filepath: str | Path) -> int:
        """Load proxies from file.

        Args:
            filepath: Path to proxy list file (one proxy per line)

        Returns:
            Number of proxies loaded
        """
        filepath = Path(filepath)

        if not filepath.exists():
            logger.warning(f"Proxy file not found: {filepath}")
            return 0

        with open(filepath, "r", encoding="utf-8") as f:
            count = self.load_from_list(f.readlines())

        logger.info(f"Loaded {count} proxies from {filepath}")
        return count

    def load_from_list(self, proxy_strings: list[str]) -> int:
        """Load proxies from list of strings.

        Args:
            proxy_strings: List of proxy strings

        Returns:
            Number of proxies loaded
        """
        count = 0
        for proxy_str in proxy_strings:
            proxy = Proxy.from_string(proxy_str)
            if proxy and self.pool.add(proxy):
                count += 1
        return count

    def mark_unhealthy(self, proxy: Proxy) -> None:
        """Mark proxy as unhealthy.

        Args:
            proxy: Proxy to mark
        """
        proxy.is_healthy = False
        logger.warning(f"Proxy marked unhealthy: {proxy.url_no_auth}")

    def get_healthy(self) -> list[Proxy]:
        return self.pool.get_healthy()

    def get_stats(self) -> dict[str, Any]:
        """Get proxy pool statistics."""
        all_proxies = self.pool.proxies
        total_requests = sum(p.total_requests for p in all_proxies)
        total_success = sum(p.success_count for p in all_proxies)

        return {
            "enabled": self._enabled,
            "total": self.pool.size,
            "healthy": self.pool.healthy_count,
            "unhealthy": self.pool.size - self.pool.healthy_count,
            "total_requests": total_requests,
            "success_rate": (total_success / total_requests * 100) if total_requests > 0 else 0,
        }

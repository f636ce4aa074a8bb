"""Proxy rotation strategies."""

import random
from abc import ABC, abstractmethod

from npiscraper.core.config import ProxyRotationStrategy as RotationStrategy
from npiscraper.monitoring.logger import get_logger, log_proxy_event

from .manager import Proxy, ProxyManager

logger = get_logger(__name__)

# Proxies with at least this many requests and a success rate below
# UNHEALTHY_RATE percent are taken out of rotation.
MIN_REQUESTS_FOR_HEALTH = 5
UNHEALTHY_RATE = 20.0


class BaseRotator(ABC):
    """Base class for rotation strategies."""

    @abstractmethod
    def get_next(self, proxies: list[Proxy]) -> Proxy | None:
        """Get next proxy according to strategy.

        Args:
            proxies: List of available proxies

        Returns:
            Selected proxy or None
        """


class RoundRobinRotator(BaseRotator):
    """Round-robin rotation - cycle through proxies in order."""

    def __init__(self) -> None:
        self._index = 0

    def get_next(self, proxies: list[Proxy]) -> Proxy | None:
        if not proxies:
            return None

        if self._index >= len(proxies):
            self._index = 0

        proxy = proxies[self._index]
        self._index = (self._index + 1) % len(proxies)
        return proxy


class RandomRotator(BaseRotator):
    """Random rotation - select proxy randomly."""

    def get_next(self, proxies: list[Proxy]) -> Proxy | None:
        if not proxies:
            return None
        return random.choice(proxies)


class LeastUsedRotator(BaseRotator):
    """Least used rotation - prefer proxies with fewer requests."""

    def get_next(self, proxies: list[Proxy]) -> Proxy | None:
        if not proxies:
            return None
        return min(proxies, key=lambda p: p.total_requests)


class ProxyRotator:
    """Main proxy rotator with configurable strategies."""

    def __init__(
        self,
        manager: ProxyManager,
        strategy: RotationStrategy = RotationStrategy.ROUND_ROBIN,
    ) -> None:
        """Initialize proxy rotator.

        Args:
            manager: ProxyManager instance
            strategy: Rotation strategy to use
        """
        self.manager = manager
        self.strategy = strategy
        self._rotators: dict[RotationStrategy, BaseRotator] = {
            RotationStrategy.ROUND_ROBIN: RoundRobinRotator(),
            RotationStrategy.RANDOM: RandomRotator(),
            RotationStrategy.LEAST_USED: LeastUsedRotator(),
        }

    def get_next(self) -> Proxy | None:
        """Get next proxy according to current strategy.

        Returns:
            Next proxy or None if disabled/empty
        """
        if not self.manager.enabled:
            return None

        healthy_proxies = self.manager.get_healthy()
        if not healthy_proxies:
            logger.warning("No healthy proxies available")
            return None

        rotator = self._rotators.get(self.strategy, self._rotators[RotationStrategy.ROUND_ROBIN])
        proxy = rotator.get_next(healthy_proxies)

        if proxy:
            log_proxy_event(proxy.url_no_auth, "rotation", strategy=self.strategy.value)

        return proxy

    def record_success(self, proxy: Proxy) -> None:
        """Record successful request through a proxy.

        Args:
            proxy: Proxy used for the request
        """
        proxy.record_success()

    def record_failure(self, proxy: Proxy) -> None:
        """Record failed request and retire the proxy if it keeps failing.

        Args:
            proxy: Proxy used for the request
        """
        proxy.record_failure()
        log_proxy_event(proxy.url_no_auth, "request", success=False)

        if proxy.total_requests >= MIN_REQUESTS_FOR_HEALTH and proxy.success_rate < UNHEALTHY_RATE:
            self.manager.mark_unhealthy(proxy)

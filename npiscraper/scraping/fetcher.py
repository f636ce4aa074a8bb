"""HTTP fetch step built on httpx."""

import asyncio
import random
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
from typing import Awaitable, Callable, Protocol

import httpx

from npiscraper.core.config import Settings
from npiscraper.monitoring.logger import get_logger
from npiscraper.proxy import Proxy, ProxyManager, ProxyRotator
from npiscraper.workers.retry import RetryHandler, RetryPolicy

from .errors import NetworkError
from .models import PageFetchResult

logger = get_logger(__name__)

DEFAULT_RETRY_STATUSES = frozenset({429, 500, 502, 503, 504})


@dataclass(frozen=True)
class FetchOptions:
    """Per-request overrides."""

    timeout: float | None = None
    headers: Mapping[str, str] = field(default_factory=dict)


class PageFetcher(Protocol):
    """Anything able to GET a listing page."""

    async def fetch(self, url: str, options: FetchOptions | None = None) -> PageFetchResult:
        """Fetch ``url`` and return its body, status and final URL.

        Raises:
            NetworkError: On transport failures
        """
        ...


class _RetryableStatus(Exception):
    """Carries a response whose status is worth another attempt."""

    def __init__(self, result: PageFetchResult) -> None:
        super().__init__(f"HTTP {result.status}")
        self.result = result


class HttpFetcher:
    """Async page fetcher with retries, user-agent and proxy rotation.

    Non-2xx responses are returned, not raised: deciding whether a status
    ends a run belongs to the caller. Statuses in ``retry_statuses`` are
    retried under the retry policy first and the last response is returned
    once attempts run out.
    """

    def __init__(
        self,
        *,
        timeout: float = 30.0,
        headers: Mapping[str, str] | None = None,
        user_agents: Iterable[str] = (),
        retry_policy: RetryPolicy | None = None,
        retry_statuses: Iterable[int] = DEFAULT_RETRY_STATUSES,
        proxy_rotator: ProxyRotator | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """Initialize fetcher.

        Args:
            timeout: Per-request timeout in seconds
            headers: Headers sent with every request
            user_agents: User-Agent values, one picked at random per request
            retry_policy: Retry policy for transport errors and retry statuses
            retry_statuses: Statuses that trigger another attempt
            proxy_rotator: Optional proxy rotation
            transport: Custom httpx transport (tests)
            sleep: Awaitable sleep used between attempts
        """
        self.timeout = timeout
        self.headers = dict(headers or {})
        self.user_agents = tuple(user_agents)
        self.retry_statuses = frozenset(retry_statuses)
        self.retry_policy = replace(
            retry_policy or RetryPolicy(),
            retryable_exceptions=(httpx.TransportError, _RetryableStatus),
        )
        self._retry = RetryHandler(self.retry_policy, sleep=sleep)
        self._proxy_rotator = proxy_rotator
        self._transport = transport
        self._clients: dict[str | None, httpx.AsyncClient] = {}

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs) -> "HttpFetcher":
        """Build a fetcher from application settings.

        Args:
            settings: Application settings
            **kwargs: Constructor arguments that take precedence

        Returns:
            HttpFetcher instance
        """
        proxy_rotator = None
        if settings.proxy_enabled:
            manager = ProxyManager(enabled=True)
            manager.load_from_list(settings.proxies)
            manager.load_from_file(settings.proxy_list_file)
            proxy_rotator = ProxyRotator(manager, settings.proxy_rotation_strategy)

        options = {
            "timeout": settings.request_timeout,
            "user_agents": settings.user_agents,
            "retry_policy": RetryPolicy.from_settings(settings),
            "proxy_rotator": proxy_rotator,
        }
        options.update(kwargs)
        return cls(**options)

    async def __aenter__(self) -> "HttpFetcher":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close every pooled client."""
        clients = list(self._clients.values())
        self._clients.clear()
        for client in clients:
            await client.aclose()

    def _client_for(self, proxy: Proxy | None) -> httpx.AsyncClient:
        key = proxy.url if proxy else None
        client = self._clients.get(key)
        if client is None:
            client = httpx.AsyncClient(
                follow_redirects=True,
                timeout=self.timeout,
                proxy=key,
                transport=self._transport,
            )
            self._clients[key] = client
        return client

    def _build_headers(self, options: FetchOptions) -> dict[str, str]:
        headers = {**self.headers, **options.headers}
        has_agent = any(name.lower() == "user-agent" for name in headers)
        if self.user_agents and not has_agent:
            headers["User-Agent"] = random.choice(self.user_agents)
        return headers

    async def fetch(self, url: str, options: FetchOptions | None = None) -> PageFetchResult:
        """Fetch a page.

        Args:
            url: Absolute URL
            options: Per-request timeout and headers

        Returns:
            PageFetchResult with body, status and final URL

        Raises:
            NetworkError: Transport failure after all attempts, or a URL
                httpx cannot request
        """
        options = options or FetchOptions()

        try:
            return await self._retry.execute_async(self._attempt, url, options)
        except _RetryableStatus as exc:
            return exc.result
        except httpx.HTTPError as exc:
            raise NetworkError(
                f"Request failed: {type(exc).__name__}: {exc}", url=url, cause=exc
            ) from exc
        except (httpx.InvalidURL, ValueError) as exc:
            raise NetworkError(f"Invalid URL: {exc}", url=url, cause=exc) from exc

    async def _attempt(self, url: str, options: FetchOptions) -> PageFetchResult:
        proxy = self._proxy_rotator.get_next() if self._proxy_rotator else None
        client = self._client_for(proxy)

        try:
            response = await client.get(
                url,
                headers=self._build_headers(options),
                timeout=options.timeout if options.timeout is not None else self.timeout,
            )
        except httpx.TransportError:
            if proxy and self._proxy_rotator:
                self._proxy_rotator.record_failure(proxy)
            raise

        if proxy and self._proxy_rotator:
            self._proxy_rotator.record_success(proxy)

        result = PageFetchResult(
            body=response.text,
            status=response.status_code,
            url=str(response.url),
        )
        logger.debug(f"GET {url} | status={result.status} | final={result.url}")

        if result.status in self.retry_statuses:
            raise _RetryableStatus(result)
        return result

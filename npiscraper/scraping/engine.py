"""Main scraping session."""

import asyncio
from collections.abc import AsyncIterator, Iterable

from npiscraper.cleaning.normalizer import LinkResolver
from npiscraper.core.config import Settings, get_settings
from npiscraper.monitoring.logger import get_logger

from .errors import FetchFailure
from .fetcher import HttpFetcher, PageFetcher
from .models import (
    DirectoryEntry,
    DirectorySection,
    ProviderRow,
    RowSelectorRule,
    ScrapeResult,
    TerminationReason,
)
from .pagination import PaginatedTableScraper
from .parser import extract_sections

logger = get_logger(__name__)


class ScrapingSession:
    """Provider directory scraping combining fetcher, parser and pagination."""

    def __init__(
        self,
        settings: Settings | None = None,
        fetcher: PageFetcher | None = None,
        rule: RowSelectorRule | None = None,
    ) -> None:
        """Initialize scraping session.

        Args:
            settings: Application settings (cached settings when omitted)
            fetcher: Page fetcher (an HttpFetcher built from settings when omitted)
            rule: Row selector rule (defaults bound to the configured base URL)
        """
        self.settings = settings or get_settings()
        self._owns_fetcher = fetcher is None
        self.fetcher = fetcher or HttpFetcher.from_settings(self.settings)
        self.rule = rule or RowSelectorRule(base_url=self.settings.base_url)
        self.resolver = LinkResolver(self.rule.base_url)
        self.scraper = PaginatedTableScraper(
            self.fetcher,
            anti_bot_statuses=self.settings.anti_bot_statuses,
            delay_range=(self.settings.scraping_delay_min, self.settings.scraping_delay_max),
            dedupe_rows=self.settings.dedupe_rows,
            degenerate_patterns=self.settings.degenerate_url_patterns,
        )

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "ScrapingSession":
        """Build a session whose every collaborator comes from settings."""
        return cls(settings=settings)

    async def __aenter__(self) -> "ScrapingSession":
        logger.info(f"Scraping session started | base={self.rule.base_url}")
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def close(self) -> None:
        """Release the fetcher if the session created it."""
        if self._owns_fetcher and isinstance(self.fetcher, HttpFetcher):
            await self.fetcher.aclose()
        logger.info("Scraping session closed")

    def _limits(
        self, max_pages: int | None, max_consecutive_empty_pages: int | None
    ) -> tuple[int, int]:
        return (
            max_pages if max_pages is not None else self.settings.max_pages,
            max_consecutive_empty_pages
            if max_consecutive_empty_pages is not None
            else self.settings.max_consecutive_empty_pages,
        )

    async def scrape(
        self,
        start_url: str | None = None,
        max_pages: int | None = None,
        max_consecutive_empty_pages: int | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> ScrapeResult:
        """Scrape a paginated provider listing.

        Args:
            start_url: First listing page (configured start URL when omitted)
            max_pages: Page budget (configured value when omitted)
            max_consecutive_empty_pages: Empty-page limit (configured value when omitted)
            cancel_event: Set it to stop the run before its next fetch

        Returns:
            ScrapeResult

        Raises:
            FetchFailure: The first page could not be fetched
        """
        url = start_url or self.settings.start_url
        pages, empty = self._limits(max_pages, max_consecutive_empty_pages)
        logger.info(f"Starting scrape: {url}")

        return await self.scraper.scrape(url, self.rule, pages, empty, cancel_event=cancel_event)

    async def iter_rows(
        self,
        start_url: str | None = None,
        max_pages: int | None = None,
        max_consecutive_empty_pages: int | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> AsyncIterator[ProviderRow]:
        """Stream provider rows page by page (see :meth:`scrape`)."""
        url = start_url or self.settings.start_url
        pages, empty = self._limits(max_pages, max_consecutive_empty_pages)

        async for row in self.scraper.iter_rows(
            url, self.rule, pages, empty, cancel_event=cancel_event
        ):
            yield row

    async def scrape_directory(self, url: str | None = None) -> tuple[DirectorySection, ...]:
        """Scrape the summary tables of the directory landing page.

        Args:
            url: Landing page URL (configured start URL when omitted)

        Returns:
            Sections with absolute category links

        Raises:
            FetchFailure: The page could not be fetched
        """
        url = url or self.settings.start_url
        page = await self.scraper.fetch_page(url)
        sections = extract_sections(page.body)

        resolved = tuple(
            DirectorySection(
                heading=section.heading,
                tables=tuple(
                    tuple(
                        DirectoryEntry(
                            text=entry.text,
                            link=self.resolver(entry.link),
                            providers=entry.providers,
                            percent=entry.percent,
                        )
                        for entry in table
                    )
                    for table in section.tables
                ),
            )
            for section in sections
        )

        logger.info(f"Directory scraped: {url} | sections={len(resolved)}")
        return resolved

    async def scrape_category(
        self,
        category: DirectoryEntry | str,
        max_pages: int | None = None,
        max_consecutive_empty_pages: int | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> ScrapeResult:
        """Scrape the provider listing behind a directory category.

        Args:
            category: Directory entry or its (possibly relative) link
            max_pages: Page budget (configured value when omitted)
            max_consecutive_empty_pages: Empty-page limit (configured value when omitted)
            cancel_event: Set it to stop the run before its next fetch

        Returns:
            ScrapeResult
        """
        link = category.link if isinstance(category, DirectoryEntry) else category
        return await self.scrape(
            self.resolver(link),
            max_pages=max_pages,
            max_consecutive_empty_pages=max_consecutive_empty_pages,
            cancel_event=cancel_event,
        )

    async def scrape_many(
        self,
        start_urls: Iterable[str],
        max_pages: int | None = None,
        max_consecutive_empty_pages: int | None = None,
    ) -> list[ScrapeResult]:
        """Run independent scrapes concurrently.

        A run whose first page fails does not stop the others; it is
        reported as an empty result carrying the error.

        Args:
            start_urls: Listing pages to start from
            max_pages: Page budget per run
            max_consecutive_empty_pages: Empty-page limit per run

        Returns:
            One ScrapeResult per start URL, in input order
        """
        urls = list(start_urls)
        outcomes = await asyncio.gather(
            *(self.scrape(url, max_pages, max_consecutive_empty_pages) for url in urls),
            return_exceptions=True,
        )

        results = []
        for url, outcome in zip(urls, outcomes):
            if isinstance(outcome, FetchFailure):
                logger.error(f"Scrape failed: {url} | {outcome}")
                results.append(
                    ScrapeResult(
                        start_url=url,
                        pages_fetched=1,
                        termination=TerminationReason.for_failure(outcome),
                        error=outcome,
                    )
                )
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                results.append(outcome)
        return results

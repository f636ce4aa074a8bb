"""Pagination-driven table scraping.

A run starts from one listing URL, pulls the provider rows out of every page
and follows the "next page" control until one of these happens:

- the page has no enabled next link
- the page budget is spent
- too many consecutive pages yield no rows
- the next link points to a page already visited
- the next link is a degenerate, filter-less query URL
- the caller sets the cancellation event
- a fetch fails or the directory blocks the request

Everything a run mutates lives in a :class:`PaginationState` created for
that run, so concurrent runs never share state.
"""

import asyncio
import random
import re
import time
from collections.abc import AsyncIterator, Iterable
from typing import Awaitable, Callable
from urllib.parse import parse_qsl, urlsplit

from npiscraper.cleaning.normalizer import LinkResolver
from npiscraper.monitoring.logger import get_logger, log_page_event, log_scraping_event

from .errors import AntiBotBlock, FetchFailure, MalformedPage
from .fetcher import FetchOptions, PageFetcher
from .models import (
    PageFetchResult,
    PaginationState,
    ProviderRow,
    RowSelectorRule,
    ScrapeResult,
    TerminationReason,
)
from .parser import DOMParser, extract_next_link, extract_rows, is_complete, is_header_row

logger = get_logger(__name__)

DEFAULT_ANTI_BOT_STATUSES = frozenset({403, 429})


def is_degenerate_url(url: str, patterns: Iterable[str | re.Pattern[str]] = ()) -> bool:
    """Check for a self-referential "empty filter" URL.

    A URL is degenerate when it carries a query marker but no actual filter:
    ``/provider?`` or ``/provider?state=&city=``, or when it cannot be parsed
    at all. Extra regex ``patterns`` mark further URLs as degenerate.

    Args:
        url: Absolute URL
        patterns: Additional regexes searched in the URL

    Returns:
        True if the URL should not be followed
    """
    without_fragment = url.split("#", 1)[0]
    try:
        query = urlsplit(without_fragment).query
    except ValueError:
        # Unparseable links cannot be followed
        return True

    if "?" in without_fragment:
        pairs = parse_qsl(query, keep_blank_values=True)
        if all(not value.strip() for _, value in pairs):
            return True

    return any(re.search(pattern, url) for pattern in patterns)


class _PaginationRun:
    """One scrape invocation: owns its state and its termination outcome."""

    def __init__(
        self,
        scraper: "PaginatedTableScraper",
        start_url: str,
        rule: RowSelectorRule,
        max_pages: int,
        max_consecutive_empty_pages: int,
        cancel_event: asyncio.Event | None,
    ) -> None:
        self.scraper = scraper
        self.rule = rule
        self.max_pages = max_pages
        self.max_consecutive_empty_pages = max_consecutive_empty_pages
        self.cancel_event = cancel_event
        self.state = PaginationState(current_url=start_url)
        self.resolver = LinkResolver(rule.base_url)
        self.termination: TerminationReason | None = None
        self.error: FetchFailure | None = None
        self._seen_rows: set[ProviderRow] = set()

    def _cancelled(self) -> bool:
        return self.cancel_event is not None and self.cancel_event.is_set()

    def _stop_reason(self) -> TerminationReason | None:
        state = self.state

        if state.is_terminal:
            return TerminationReason.COMPLETED
        if state.page_count >= self.max_pages:
            return TerminationReason.PAGE_BUDGET
        if state.consecutive_empty_pages >= self.max_consecutive_empty_pages:
            return TerminationReason.EMPTY_PAGES
        if self._cancelled():
            return TerminationReason.CANCELLED
        if state.current_url in state.visited_urls:
            return TerminationReason.CYCLE
        if is_degenerate_url(state.current_url, self.scraper.degenerate_patterns):
            return TerminationReason.DEGENERATE_URL
        return None

    def _finish(self, reason: TerminationReason) -> None:
        self.termination = reason
        self.state.terminate()
        logger.debug(
            f"Pagination stopped | reason={reason.value} | pages={self.state.page_count}"
        )

    async def pages(self) -> AsyncIterator[tuple[ProviderRow, ...]]:
        """Yield the kept rows of each fetched page, in visit order.

        Raises:
            FetchFailure: The first page could not be fetched
        """
        state = self.state

        while True:
            reason = self._stop_reason()
            if reason is not None:
                self._finish(reason)
                return

            if state.page_count > 0:
                await self.scraper.pause()
                if self._cancelled():
                    self._finish(TerminationReason.CANCELLED)
                    return

            url = state.current_url
            state.visit(url)

            try:
                page = await self.scraper.fetch_page(url)
            except FetchFailure as exc:
                if state.page_count == 1:
                    self._finish(TerminationReason.for_failure(exc))
                    raise
                logger.warning(
                    f"Pagination aborted | page={state.page_count} | "
                    f"error={type(exc).__name__}: {exc}"
                )
                self.error = exc
                self._finish(TerminationReason.for_failure(exc))
                return

            dom = DOMParser(page.body)
            rows = self._page_rows(dom, url)
            state.record_rows(len(rows))
            log_page_event(url, state.page_count, len(rows), page.status)

            fresh = self._dedupe(rows)
            if fresh:
                yield fresh

            next_link = extract_next_link(dom, self.rule)
            state.advance(self.resolver(next_link) if next_link else None)

    def _page_rows(self, dom: DOMParser, url: str) -> tuple[ProviderRow, ...]:
        try:
            extracted = extract_rows(dom, self.rule)
        except MalformedPage as exc:
            logger.warning(f"Malformed page, counting as empty | url={url} | {exc}")
            return ()

        return tuple(
            ProviderRow(
                name=fields.get(self.rule.columns[0], ""),
                profile_link=self.resolver(fields.get("profile_link", "#")),
                address=fields.get("address", ""),
                taxonomy=fields.get("taxonomy", ""),
                enumeration_date=fields.get("enumeration_date", ""),
            )
            for fields in extracted
            if is_complete(fields, self.rule) and not is_header_row(fields, self.rule)
        )

    def _dedupe(self, rows: tuple[ProviderRow, ...]) -> tuple[ProviderRow, ...]:
        if not self.scraper.dedupe_rows:
            return rows

        fresh = []
        for row in rows:
            if row not in self._seen_rows:
                self._seen_rows.add(row)
                fresh.append(row)
        return tuple(fresh)


class PaginatedTableScraper:
    """Follow "next page" links and collect provider rows.

    The scraper itself is stateless between calls: each ``scrape`` or
    ``iter_rows`` call performs fresh fetches with fresh pagination state.
    """

    def __init__(
        self,
        fetcher: PageFetcher,
        *,
        fetch_options: FetchOptions | None = None,
        anti_bot_statuses: Iterable[int] = DEFAULT_ANTI_BOT_STATUSES,
        delay_range: tuple[float, float] = (0.0, 0.0),
        dedupe_rows: bool = True,
        degenerate_patterns: Iterable[str] = (),
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """Initialize scraper.

        Args:
            fetcher: HTTP fetch collaborator
            fetch_options: Timeout and headers passed on every fetch
            anti_bot_statuses: Statuses reported as AntiBotBlock
            delay_range: Min and max pause between pages, in seconds
            dedupe_rows: Drop rows identical to one already collected
            degenerate_patterns: Extra regexes of URLs never to follow
            sleep: Awaitable sleep used for the pause between pages
        """
        if delay_range[0] < 0 or delay_range[1] < delay_range[0]:
            raise ValueError("delay_range must satisfy 0 <= min <= max")

        self.fetcher = fetcher
        self.fetch_options = fetch_options or FetchOptions()
        self.anti_bot_statuses = frozenset(anti_bot_statuses)
        self.delay_range = delay_range
        self.dedupe_rows = dedupe_rows
        self.degenerate_patterns = tuple(re.compile(p) for p in degenerate_patterns)
        self._sleep = sleep

    async def pause(self) -> None:
        """Wait a random delay within ``delay_range`` before the next page."""
        low, high = self.delay_range
        if high <= 0:
            return
        await self._sleep(random.uniform(low, high))

    async def fetch_page(self, url: str) -> PageFetchResult:
        """Fetch one listing page and turn bad statuses into errors.

        Args:
            url: Absolute page URL

        Returns:
            Successful fetch result

        Raises:
            AntiBotBlock: The directory answered with a blocking status
            FetchFailure: Any other non-2xx status
            NetworkError: Transport failure
        """
        page = await self.fetcher.fetch(url, self.fetch_options)

        if page.status in self.anti_bot_statuses:
            raise AntiBotBlock(f"Blocked by directory (HTTP {page.status})", url=url, status=page.status)
        if not page.ok:
            raise FetchFailure(f"Unexpected HTTP {page.status}", url=url, status=page.status)
        return page

    def _new_run(
        self,
        start_url: str,
        rule: RowSelectorRule,
        max_pages: int,
        max_consecutive_empty_pages: int,
        cancel_event: asyncio.Event | None,
    ) -> _PaginationRun:
        if not start_url or not start_url.strip():
            raise ValueError("start_url must be a non-empty URL")
        if max_pages < 1:
            raise ValueError("max_pages must be >= 1")
        if max_consecutive_empty_pages < 1:
            raise ValueError("max_consecutive_empty_pages must be >= 1")

        return _PaginationRun(
            self,
            start_url.strip(),
            rule,
            max_pages,
            max_consecutive_empty_pages,
            cancel_event,
        )

    async def iter_rows(
        self,
        start_url: str,
        rule: RowSelectorRule,
        max_pages: int,
        max_consecutive_empty_pages: int,
        *,
        cancel_event: asyncio.Event | None = None,
    ) -> AsyncIterator[ProviderRow]:
        """Stream rows as pages are fetched.

        Args:
            start_url: Absolute URL of the first listing page
            rule: Table and pagination selectors
            max_pages: Page budget for the run
            max_consecutive_empty_pages: Empty-page limit for the run
            cancel_event: Set it to stop before the next fetch

        Yields:
            ProviderRow in page-visit order, then document order

        Raises:
            FetchFailure: The first page could not be fetched
        """
        run = self._new_run(start_url, rule, max_pages, max_consecutive_empty_pages, cancel_event)
        async for rows in run.pages():
            for row in rows:
                yield row

    async def scrape(
        self,
        start_url: str,
        rule: RowSelectorRule,
        max_pages: int,
        max_consecutive_empty_pages: int,
        *,
        cancel_event: asyncio.Event | None = None,
    ) -> ScrapeResult:
        """Run pagination to the end and collect every row.

        A failure after the first page is not raised: the rows gathered so
        far are returned with ``termination`` and ``error`` describing why
        the run stopped early.

        Args:
            start_url: Absolute URL of the first listing page
            rule: Table and pagination selectors
            max_pages: Page budget for the run
            max_consecutive_empty_pages: Empty-page limit for the run
            cancel_event: Set it to stop before the next fetch

        Returns:
            ScrapeResult with rows and termination details

        Raises:
            FetchFailure: The first page could not be fetched
        """
        start_time = time.monotonic()
        run = self._new_run(start_url, rule, max_pages, max_consecutive_empty_pages, cancel_event)
        collected: list[ProviderRow] = []

        async for rows in run.pages():
            collected.extend(rows)

        result = ScrapeResult(
            start_url=start_url,
            rows=tuple(collected),
            pages_fetched=run.state.page_count,
            termination=run.termination or TerminationReason.COMPLETED,
            error=run.error,
            duration=time.monotonic() - start_time,
        )

        log_scraping_event(
            url=start_url,
            items_count=result.items_count,
            duration=result.duration,
            success=not result.is_partial,
            pages=result.pages_fetched,
            termination=result.termination.value,
        )
        return result

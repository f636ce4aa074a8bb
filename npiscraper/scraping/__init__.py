"""Scraping module - Session, Fetcher, Parser, Pagination handling."""

from .engine import ScrapingSession
from .errors import AntiBotBlock, FetchFailure, MalformedPage, NetworkError, ScraperError
from .fetcher import FetchOptions, HttpFetcher, PageFetcher
from .models import (
    DirectoryEntry,
    DirectorySection,
    PageFetchResult,
    PaginationState,
    ProviderRow,
    RowSelectorRule,
    ScrapeResult,
    TerminationReason,
)
from .pagination import PaginatedTableScraper, is_degenerate_url
from .parser import DOMParser, extract_next_link, extract_rows, extract_sections

__all__ = [
    "ScrapingSession",
    "PaginatedTableScraper",
    "HttpFetcher",
    "FetchOptions",
    "PageFetcher",
    "DOMParser",
    "extract_rows",
    "extract_next_link",
    "extract_sections",
    "is_degenerate_url",
    "ProviderRow",
    "PageFetchResult",
    "PaginationState",
    "RowSelectorRule",
    "ScrapeResult",
    "TerminationReason",
    "DirectoryEntry",
    "DirectorySection",
    "ScraperError",
    "FetchFailure",
    "NetworkError",
    "AntiBotBlock",
    "MalformedPage",
]

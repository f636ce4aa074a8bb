"""Data structures produced and consumed by the scraping layer."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .errors import AntiBotBlock, FetchFailure

# Column order of the provider listing table.
ROW_FIELDS: tuple[str, ...] = ("name", "address", "taxonomy", "enumeration_date")


@dataclass(frozen=True)
class ProviderRow:
    """One provider parsed from a listing table row."""

    name: str
    profile_link: str
    address: str
    taxonomy: str
    enumeration_date: str

    def to_dict(self) -> dict[str, str]:
        """Convert to dictionary.

        Returns:
            Dictionary representation using the directory's camelCase keys
        """
        return {
            "name": self.name,
            "profileLink": self.profile_link,
            "address": self.address,
            "taxonomy": self.taxonomy,
            "enumerationDate": self.enumeration_date,
        }


@dataclass(frozen=True)
class PageFetchResult:
    """Body, status and final URL of one fetched page."""

    body: str
    status: int
    url: str

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


@dataclass(frozen=True)
class RowSelectorRule:
    """Where the provider table and its pagination control live on a page."""

    base_url: str = "https://opennpi.com"
    table_selector: str = "#search-result table"
    row_selector: str = "tbody tr"
    columns: tuple[str, ...] = ROW_FIELDS
    name_header: str = "Provider Name"
    pagination_selector: str = ".page-item a.page-link"
    next_labels: tuple[str, ...] = ("next", "next page")

    @property
    def min_cells(self) -> int:
        """Number of cells a row must have to be complete."""
        return len(self.columns)


class TerminationReason(str, Enum):
    """Why a pagination run stopped."""

    COMPLETED = "completed"  # No next link
    PAGE_BUDGET = "page_budget"
    EMPTY_PAGES = "empty_pages"
    CYCLE = "cycle"
    DEGENERATE_URL = "degenerate_url"
    FETCH_FAILED = "fetch_failed"
    BLOCKED = "blocked"
    CANCELLED = "cancelled"

    @classmethod
    def for_failure(cls, error: FetchFailure) -> "TerminationReason":
        """Map a fetch failure onto the reason it ends a run with."""
        if isinstance(error, AntiBotBlock):
            return cls.BLOCKED
        return cls.FETCH_FAILED


_PARTIAL_REASONS = frozenset(
    {TerminationReason.FETCH_FAILED, TerminationReason.BLOCKED, TerminationReason.CANCELLED}
)


@dataclass
class PaginationState:
    """Working state of a single pagination run.

    ``current_url`` set to ``None`` is the terminal state and is absorbing:
    once reached, ``advance`` cannot leave it.
    """

    current_url: str | None
    visited_urls: set[str] = field(default_factory=set)
    page_count: int = 0
    consecutive_empty_pages: int = 0

    @property
    def is_terminal(self) -> bool:
        return self.current_url is None

    def visit(self, url: str) -> None:
        self.visited_urls.add(url)
        self.page_count += 1

    def record_rows(self, count: int) -> None:
        if count == 0:
            self.consecutive_empty_pages += 1
        else:
            self.consecutive_empty_pages = 0

    def advance(self, next_url: str | None) -> None:
        if self.is_terminal:
            return
        self.current_url = next_url

    def terminate(self) -> None:
        self.current_url = None


@dataclass
class ScrapeResult:
    """Rows collected by one run plus how the run ended."""

    start_url: str
    rows: tuple[ProviderRow, ...] = ()
    pages_fetched: int = 0
    termination: TerminationReason = TerminationReason.COMPLETED
    error: FetchFailure | None = None
    duration: float = 0.0

    @property
    def is_partial(self) -> bool:
        """True when the run was cut short by a failure, block or cancellation."""
        return self.termination in _PARTIAL_REASONS

    @property
    def items_count(self) -> int:
        return len(self.rows)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary.

        Returns:
            Dictionary representation
        """
        return {
            "start_url": self.start_url,
            "rows": [row.to_dict() for row in self.rows],
            "items_count": self.items_count,
            "pages_fetched": self.pages_fetched,
            "termination": self.termination.value,
            "partial": self.is_partial,
            "error": str(self.error) if self.error else None,
            "duration": round(self.duration, 2),
        }


@dataclass(frozen=True)
class DirectoryEntry:
    """One row of a directory summary table (a category with its counts)."""

    text: str
    link: str
    providers: str
    percent: str

    def to_dict(self) -> dict[str, str]:
        return {
            "text": self.text,
            "link": self.link,
            "providers": self.providers,
            "percent": self.percent,
        }


@dataclass(frozen=True)
class DirectorySection:
    """A headed block of summary tables on the directory landing page."""

    heading: str
    tables: tuple[tuple[DirectoryEntry, ...], ...]

    def to_dict(self) -> dict[str, Any]:
        return {
            "heading": self.heading,
            "tables": [[entry.to_dict() for entry in table] for table in self.tables],
        }

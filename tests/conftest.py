"""Pytest configuration and fixtures."""

import os
import sys
from pathlib import Path

import pytest

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

# Set test environment
os.environ["APP_ENV"] = "development"
os.environ["DEBUG"] = "true"
os.environ["LOG_TO_FILE"] = "false"
os.environ["PROXY_ENABLED"] = "false"

from npiscraper.core.config import Settings  # noqa: E402
from npiscraper.scraping.models import PageFetchResult, RowSelectorRule  # noqa: E402

BASE_URL = "https://example.test"


def provider_page(rows, next_href=None, next_disabled=False, header=True):
    """Build a listing page shaped like the directory's provider table.

    Args:
        rows: Iterables of cell values; the first cell is ``(name, href)``
        next_href: Href of the "Next" control, or None for no control
        next_disabled: Render the "Next" control as disabled
        header: Repeat the header row inside ``tbody``
    """
    body = []
    if header:
        body.append(
            "<tr><td>Provider Name</td><td>Address</td>"
            "<td>Taxonomy</td><td>Enumeration Date</td></tr>"
        )
    for (name, href), *cells in rows:
        first = f'<a href="{href}">{name}</a>' if href is not None else name
        tds = "".join(f"<td>{cell}</td>" for cell in cells)
        body.append(f"<tr><td>{first}</td>{tds}</tr>")

    pagination = ""
    if next_href is not None:
        item_class = "page-item disabled" if next_disabled else "page-item"
        pagination = (
            '<ul class="pagination">'
            '<li class="page-item"><a class="page-link" href="?page=1">1</a></li>'
            f'<li class="{item_class}"><a class="page-link" href="{next_href}"> Next </a></li>'
            "</ul>"
        )

    return (
        "<html><body>"
        '<div id="search-result"><table class="table">'
        "<thead><tr><th>Provider Name</th><th>Address</th>"
        "<th>Taxonomy</th><th>Enumeration Date</th></tr></thead>"
        f"<tbody>{''.join(body)}</tbody>"
        "</table></div>"
        f"{pagination}"
        "</body></html>"
    )


def provider(n):
    """Cells of the n-th sample provider."""
    return (
        (f"Provider {n}", f"/provider/{n:010d}"),
        f"{n} Main St, Springfield, IL",
        "Internal Medicine",
        "2007-05-23",
    )


class StubFetcher:
    """In-memory fetcher serving canned pages by URL."""

    def __init__(self, pages=None, failures=None):
        """Initialize stub.

        Args:
            pages: Mapping of URL to HTML body or ``(status, body)``
            failures: Mapping of URL to exception raised when fetched
        """
        self.pages = dict(pages or {})
        self.failures = dict(failures or {})
        self.calls = []

    async def fetch(self, url, options=None):
        self.calls.append(url)
        if url in self.failures:
            raise self.failures[url]
        page = self.pages.get(url, (404, "<html><body>Not found</body></html>"))
        status, body = page if isinstance(page, tuple) else (200, page)
        return PageFetchResult(body=body, status=status, url=url)


@pytest.fixture
def rule():
    """Row selector rule bound to the test origin."""
    return RowSelectorRule(base_url=BASE_URL)


@pytest.fixture
def test_settings():
    """Settings without delays, retries or proxies."""
    return Settings(
        base_url=BASE_URL,
        start_url=f"{BASE_URL}/provider",
        max_pages=10,
        max_consecutive_empty_pages=2,
        scraping_delay_min=0.0,
        scraping_delay_max=0.0,
        retry_max_attempts=2,
        retry_initial_delay=0.0,
        retry_jitter=False,
        proxy_enabled=False,
        log_to_file=False,
    )


@pytest.fixture
def directory_page():
    """Directory landing page with summary sections."""
    return """
    <html><body>
      <div class="px-1">
        <div class="col-12">
          <h3>Providers by Taxonomy</h3>
          <table>
            <tr><th>Taxonomy</th><th>Providers</th><th>%</th></tr>
            <tr><td><a href="/provider/taxonomy/207R00000X">Internal Medicine</a></td>
                <td>123,456</td><td>2.1%</td></tr>
            <tr><td><a href="https://other.test/x">Family Medicine</a></td>
                <td>98,765</td><td>1.7%</td></tr>
          </table>
          <table>
            <tr><td>Dentist</td><td>5,000</td><td>0.1%</td></tr>
          </table>
        </div>
        <div class="col-12">
          <h3>Providers by Year</h3>
          <table>
            <tr><td><a href="/provider/year/2007">2007</a></td><td>1</td><td>1%</td></tr>
          </table>
        </div>
        <div class="col-12">
          <table>
            <tr><td><a href="/orphan">No heading</a></td><td>1</td><td>1%</td></tr>
          </table>
        </div>
        <div class="col-12">
          <h3>Providers by State</h3>
          <table>
            <tr><td><a href="/provider/state/IL">Illinois</a></td><td>42</td></tr>
          </table>
        </div>
      </div>
    </body></html>
    """


@pytest.fixture
def make_page():
    """Factory for provider listing pages."""
    return provider_page


@pytest.fixture
def make_provider():
    """Factory for sample provider cells."""
    return provider


@pytest.fixture
def make_fetcher():
    """Factory for in-memory fetchers."""
    return StubFetcher

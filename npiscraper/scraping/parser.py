"""DOM parsing with BeautifulSoup.

The module-level ``extract_*`` functions are pure: they take markup (or an
already parsed :class:`DOMParser`) and return immutable values without
touching any outer state.
"""

from collections.abc import Mapping
from types import MappingProxyType

from bs4 import BeautifulSoup, Tag

from npiscraper.cleaning.normalizer import TextNormalizer
from npiscraper.monitoring.logger import get_logger

from .errors import MalformedPage
from .models import DirectoryEntry, DirectorySection, RowSelectorRule

logger = get_logger(__name__)

_text = TextNormalizer()
_label = TextNormalizer(lowercase=True)

DEFAULT_SECTION_SELECTOR = ".px-1 .col-12"
DEFAULT_SKIPPED_HEADINGS = ("Providers by Year",)


class DOMParser:
    """DOM parser using BeautifulSoup."""

    def __init__(self, html: str, parser: str = "lxml") -> None:
        """Initialize parser with HTML content.

        Args:
            html: HTML content to parse
            parser: BeautifulSoup parser (lxml, html.parser, html5lib)
        """
        self.soup = BeautifulSoup(html or "", parser)

    def select(self, selector: str) -> list[Tag]:
        """Select elements using CSS selector.

        Args:
            selector: CSS selector

        Returns:
            List of matching elements
        """
        try:
            return self.soup.select(selector)
        except Exception as e:
            logger.warning(f"CSS select failed: {selector} | {e}")
            return []

    def select_one(self, selector: str) -> Tag | None:
        """Select single element using CSS selector.

        Args:
            selector: CSS selector

        Returns:
            First matching element or None
        """
        try:
            return self.soup.select_one(selector)
        except Exception as e:
            logger.warning(f"CSS select_one failed: {selector} | {e}")
            return None

    @staticmethod
    def get_text(element: Tag | None) -> str:
        """Extract whitespace-collapsed text from element."""
        if element is None:
            return ""
        return _text(element.get_text(separator=" "))

    @staticmethod
    def get_href(element: Tag | None) -> str | None:
        """Get href attribute from element."""
        if element is None:
            return None
        href = element.get("href")
        return href.strip() if isinstance(href, str) and href.strip() else None


def _as_parser(document: "str | DOMParser") -> DOMParser:
    return document if isinstance(document, DOMParser) else DOMParser(document)


def _first_cell(cell: Tag) -> tuple[str, str]:
    """Return the name text and raw link of the first cell."""
    anchor = cell.find("a")
    if anchor is None:
        return DOMParser.get_text(cell), "#"
    return DOMParser.get_text(anchor), DOMParser.get_href(anchor) or "#"


def extract_rows(
    document: "str | DOMParser", rule: RowSelectorRule
) -> tuple[Mapping[str, str], ...]:
    """Extract the provider table rows of a listing page.

    Cells are mapped positionally onto ``rule.columns``; the first cell also
    yields ``profile_link`` (raw ``href``, ``"#"`` when absent). Rows with
    fewer cells than the shape requires come back with fewer keys so callers
    can tell them apart with :func:`is_complete`.

    Args:
        document: HTML markup or parsed document
        rule: Table and row selectors

    Returns:
        One read-only field map per table row, in document order

    Raises:
        MalformedPage: The table itself is missing from the page
    """
    dom = _as_parser(document)
    tables = dom.select(rule.table_selector)
    if not tables:
        raise MalformedPage(f"Table not found: {rule.table_selector}")

    rows: list[Mapping[str, str]] = []
    for table in tables:
        for tr in table.select(rule.row_selector):
            cells = tr.find_all("td")
            if not cells:
                continue

            fields: dict[str, str] = {}
            for index, (column, cell) in enumerate(zip(rule.columns, cells)):
                if index == 0:
                    fields[column], fields["profile_link"] = _first_cell(cell)
                else:
                    fields[column] = DOMParser.get_text(cell)
            rows.append(MappingProxyType(fields))

    return tuple(rows)


def is_complete(fields: Mapping[str, str], rule: RowSelectorRule) -> bool:
    """Check that a row carries every column of the row shape."""
    return all(column in fields for column in rule.columns)


def is_header_row(fields: Mapping[str, str], rule: RowSelectorRule) -> bool:
    """Check whether a row merely repeats the table header."""
    first = fields.get(rule.columns[0], "") if rule.columns else ""
    return _label(first) == _label(rule.name_header)


def _is_disabled(element: Tag) -> bool:
    for node in (element, element.parent):
        if not isinstance(node, Tag):
            continue
        if node.has_attr("disabled") or node.get("aria-disabled") == "true":
            return True
        classes = node.get("class") or []
        if "disabled" in classes:
            return True
    return False


def extract_next_link(document: "str | DOMParser", rule: RowSelectorRule) -> str | None:
    """Find the raw ``href`` of the enabled "next page" control.

    Args:
        document: HTML markup or parsed document
        rule: Pagination selector and accepted labels

    Returns:
        The link as written in the page, or None when there is no next page
    """
    dom = _as_parser(document)
    labels = {_label(label) for label in rule.next_labels}

    for element in dom.select(rule.pagination_selector):
        if _label(element.get_text()) not in labels:
            continue
        if _is_disabled(element):
            continue
        href = DOMParser.get_href(element)
        if href:
            return href

    return None


def extract_sections(
    document: "str | DOMParser",
    section_selector: str = DEFAULT_SECTION_SELECTOR,
    skip_headings: tuple[str, ...] = DEFAULT_SKIPPED_HEADINGS,
) -> tuple[DirectorySection, ...]:
    """Extract the summary tables of the directory landing page.

    Each section is a block with an ``h3`` heading and one or more tables
    whose rows have at least three cells: category (with link), provider
    count and percentage. Blocks without a heading, with a skipped heading,
    or without any usable row are left out.

    Args:
        document: HTML markup or parsed document
        section_selector: CSS selector of section blocks
        skip_headings: Headings to ignore

    Returns:
        Sections in document order (links are raw)
    """
    dom = _as_parser(document)
    skipped = {_label(heading) for heading in skip_headings}
    sections: list[DirectorySection] = []

    for block in dom.select(section_selector):
        heading = DOMParser.get_text(block.find("h3"))
        if not heading or _label(heading) in skipped:
            continue

        tables = []
        for table in block.select("table"):
            entries = []
            for tr in table.select("tr"):
                cells = tr.find_all("td")
                if len(cells) < 3:
                    continue
                anchor = cells[0].find("a")
                entries.append(
                    DirectoryEntry(
                        text=DOMParser.get_text(cells[0]),
                        link=DOMParser.get_href(anchor) or "#",
                        providers=DOMParser.get_text(cells[1]),
                        percent=DOMParser.get_text(cells[2]),
                    )
                )
            if entries:
                tables.append(tuple(entries))

        if tables:
            sections.append(DirectorySection(heading=heading, tables=tuple(tables)))

    return tuple(sections)

"""Provider directory example - opennpi.com.

This example demonstrates:
- Directory landing page sections
- Paginated provider listing for one category
- Partial results when the directory blocks or fails mid-run

Usage:
    python -m examples.opennpi_scraper.run
"""

import asyncio
import json
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from npiscraper.core.config import settings
from npiscraper.monitoring.logger import get_logger, setup_logging
from npiscraper.scraping import FetchFailure, ScrapingSession

logger = get_logger(__name__)

# Configuration
MAX_PAGES = 5
OUTPUT_FILE = "providers.json"


async def run_scraper() -> list[dict]:
    """Scrape the first directory category into a JSON file."""
    setup_logging()

    logger.info("=" * 60)
    logger.info(f"Provider directory scraper | base={settings.base_url}")
    logger.info("=" * 60)

    async with ScrapingSession() as session:
        try:
            sections = await session.scrape_directory()
        except FetchFailure as e:
            logger.error(f"Directory unavailable: {e}")
            return []

        for section in sections:
            entries = sum(len(table) for table in section.tables)
            logger.info(f"  {section.heading}: {entries} categories")

        if not sections:
            logger.warning("No directory sections found, scraping the start page instead")
            result = await session.scrape(max_pages=MAX_PAGES)
        else:
            entry = sections[0].tables[0][0]
            logger.info(f"Scraping category: {entry.text} ({entry.providers} providers)")
            result = await session.scrape_category(entry, max_pages=MAX_PAGES)

    if result.is_partial:
        logger.warning(f"Partial result: {result.termination.value} | {result.error}")

    rows = [row.to_dict() for row in result.rows]
    payload = {
        "sections": [section.to_dict() for section in sections],
        "providers": rows,
    }
    output = settings.data_dir / OUTPUT_FILE
    output.write_text(json.dumps(payload, indent=2), encoding="utf-8")

    logger.info("")
    logger.info("=" * 60)
    logger.info(f"Pages: {result.pages_fetched} | Rows: {result.items_count} | Stop: {result.termination.value}")
    for row in result.rows[:5]:
        logger.info(f"  {row.name} | {row.taxonomy} | {row.enumeration_date}")
    logger.info(f"Saved to {output}")
    logger.info("=" * 60)

    return rows


if __name__ == "__main__":
    items = asyncio.run(run_scraper())
    print(f"\nSuccessfully scraped {len(items)} providers")

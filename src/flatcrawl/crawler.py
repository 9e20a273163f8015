"""Crawl4ai browser controller that runs extraction commands on source pages."""

import logging
import os
import sys
from typing import Optional, Protocol

# Fix Windows charmap encoding issues before importing crawl4ai
if sys.platform == "win32":
    os.environ.setdefault("PYTHONUTF8", "1")

from crawl4ai import AsyncWebCrawler, BrowserConfig

from .errors import ExtractionError
from .extraction import build_run_config, parse_extraction_result

logger = logging.getLogger(__name__)

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
)


class LinkExtractor(Protocol):
    """Anything that can turn a source page into raw URL candidates."""

    async def run(self, source_url: str, script: str) -> list[str]: ...

    async def close(self) -> None: ...


class BrowserController:
    """Headless browser shared by all sources of one run."""

    def __init__(self, headless: bool = True) -> None:
        self.headless = headless
        self._crawler: Optional[AsyncWebCrawler] = None

    async def _ensure_crawler(self) -> AsyncWebCrawler:
        """Lazy-init the crawl4ai crawler."""
        if self._crawler is None:
            logger.info("Launching browser...")
            browser_config = BrowserConfig(
                headless=self.headless,
                user_agent=USER_AGENT,
                viewport_width=1366,
                viewport_height=768,
                verbose=False,
            )
            crawler = AsyncWebCrawler(config=browser_config)
            try:
                await crawler.start()
            except Exception as e:
                raise ExtractionError(f"Failed to launch browser: {e}") from e
            self._crawler = crawler
        return self._crawler

    async def run(self, source_url: str, script: str) -> list[str]:
        """Open ``source_url`` and return what ``script`` evaluates to in the page.

        Raises:
            ExtractionError: the browser could not load the page or the
                script result could not be decoded.
        """
        crawler = await self._ensure_crawler()
        logger.info(f"Navigating to {source_url}...")
        try:
            result = await crawler.arun(url=source_url, config=build_run_config(script))
        except Exception as e:
            raise ExtractionError(f"Failed to navigate to {source_url}: {e}") from e

        if not result.success:
            raise ExtractionError(f"Crawl unsuccessful for {source_url}: {result.error_message}")

        urls = parse_extraction_result(getattr(result, "js_execution_result", None))
        logger.info(f"Command returned {len(urls)} candidates from {source_url}")
        return urls

    async def close(self) -> None:
        """Clean up crawler/browser resources."""
        if self._crawler:
            try:
                await self._crawler.close()
            except Exception as e:
                logger.debug(f"Error closing crawler: {e}")
            self._crawler = None

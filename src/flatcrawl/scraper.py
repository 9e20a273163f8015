"""Main orchestrator: extract, validate, deduplicate and store links per source."""

import enum
import logging
import time
from typing import Iterable, Optional

from .config import AppConfig, SourceSpec, get_source_spec
from .crawler import BrowserController, LinkExtractor
from .dedup import filter_new_urls
from .errors import ExtractionError
from .models import RecordDraft, RunSummary, SourceOutcome
from .resources import ResourceMonitor
from .storage import CsvStorage
from .validation import filter_valid_urls

logger = logging.getLogger(__name__)


class ScrapeState(enum.Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    VALIDATING = "validating"
    DEDUPLICATING = "deduplicating"
    PERSISTING = "persisting"
    FAILED = "failed"


def _enter(source: str, state: ScrapeState) -> None:
    logger.debug(f"[{source}] -> {state.value}")


def create_drafts(source: str, urls: Iterable[str], now: Optional[int] = None) -> list[RecordDraft]:
    """Build unflagged drafts for ``urls``, all stamped with the same time."""
    timestamp = int(time.time()) if now is None else now
    return [RecordDraft(source=source, url=url, date_added=timestamp) for url in urls]


async def scrape_source(
    source: str,
    spec: SourceSpec,
    storage: CsvStorage,
    browser: LinkExtractor,
) -> SourceOutcome:
    """Run one source through fetch, validation, dedup and persistence.

    An ``ExtractionError`` is recorded on the returned outcome; a
    ``StorageError`` propagates.
    """
    logger.info(f"Scraping source: {source}")

    _enter(source, ScrapeState.FETCHING)
    try:
        raw_urls = await browser.run(spec.url, spec.command)
    except ExtractionError as e:
        _enter(source, ScrapeState.FAILED)
        logger.error(f"Extraction failed for source {source}: {e}")
        return SourceOutcome(source=source, success=False, error=str(e))

    _enter(source, ScrapeState.VALIDATING)
    valid_urls = filter_valid_urls(raw_urls)
    invalid = len(raw_urls) - len(valid_urls)
    logger.info(f"Extracted {len(valid_urls)} valid URLs from {len(raw_urls)} total URLs")
    outcome = SourceOutcome(source=source, urls_found=len(raw_urls), invalid_urls=invalid)
    if not valid_urls:
        logger.info(f"No links found for source {source}, skipping")
        _enter(source, ScrapeState.IDLE)
        return outcome

    _enter(source, ScrapeState.DEDUPLICATING)
    # Re-read every time: earlier sources in this run may have appended.
    existing = storage.existing_urls()
    new_urls = filter_new_urls(valid_urls, existing, spec.normalization_params)
    outcome.duplicates = len(valid_urls) - len(new_urls)
    if not new_urls:
        logger.info(f"No new links for source {source}, skipping")
        _enter(source, ScrapeState.IDLE)
        return outcome

    _enter(source, ScrapeState.PERSISTING)
    outcome.new_records = storage.append_new(create_drafts(source, new_urls))
    logger.info(f"Added {outcome.new_count} new links for source {source}")
    _enter(source, ScrapeState.IDLE)
    return outcome


async def scrape_all(
    config: AppConfig,
    sources: Optional[list[str]] = None,
    storage: Optional[CsvStorage] = None,
    browser: Optional[LinkExtractor] = None,
    resource_monitor: Optional[ResourceMonitor] = None,
) -> RunSummary:
    """Scrape the given sources (all configured sources by default).

    Sources are processed sequentially so that each one deduplicates
    against everything appended before it. A failing source does not stop
    the others.

    Raises:
        ConfigurationError: a requested source is not configured.
        StorageError: the table could not be read or written.
    """
    names = list(config.sources) if sources is None else list(sources)
    specs = [(name, get_source_spec(config, name)) for name in names]

    storage = storage or CsvStorage(config.csv_path)
    resource_monitor = resource_monitor or ResourceMonitor()
    owns_browser = browser is None
    browser = browser or BrowserController()

    logger.info(f"Scraping {len(specs)} source(s) into {storage.csv_path}")
    logger.info(f"Resource snapshot: {resource_monitor.get_snapshot()}")

    summary = RunSummary()
    try:
        for name, spec in specs:
            if not resource_monitor.has_headroom():
                logger.warning(
                    f"Low memory before scraping {name}: {resource_monitor.get_snapshot()}"
                )
            summary.outcomes.append(await scrape_source(name, spec, storage, browser))
    finally:
        if owns_browser:
            await browser.close()

    logger.info(
        f"Done: {summary.total_new} new links from {summary.sources_attempted} "
        f"source(s), {len(summary.failed)} failed"
    )
    return summary

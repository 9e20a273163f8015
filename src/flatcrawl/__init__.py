"""flatcrawl: track links extracted from web pages in a CSV table."""

from .config import AppConfig, SourceSpec, load_config
from .dedup import filter_new_urls, normalize_url
from .errors import ConfigurationError, ExtractionError, GistError, StorageError
from .models import Record, RecordDraft, RunSummary, SourceOutcome
from .scraper import scrape_all, scrape_source
from .storage import CsvStorage
from .validation import is_valid_url

__all__ = [
    "AppConfig",
    "ConfigurationError",
    "CsvStorage",
    "ExtractionError",
    "GistError",
    "Record",
    "RecordDraft",
    "RunSummary",
    "SourceOutcome",
    "SourceSpec",
    "StorageError",
    "filter_new_urls",
    "is_valid_url",
    "load_config",
    "normalize_url",
    "scrape_all",
    "scrape_source",
]

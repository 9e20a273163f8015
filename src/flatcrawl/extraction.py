"""Browser-side extraction script wrapping and result decoding."""

import json
import logging
from typing import Any, Optional

from crawl4ai import CacheMode, CrawlerRunConfig

from .errors import ExtractionError

logger = logging.getLogger(__name__)

# The configured command is evaluated inside the page, never in Python. It is
# embedded as a JSON string literal so it cannot break out of the wrapper.
# A returned Promise is awaited. Errors thrown by the command yield an empty
# list, like a page with no links.
EXTRACTION_WRAPPER = """\
(async () => {{
  try {{
    const out = await eval({command});
    return Array.isArray(out) ? out.map((item) => String(item)) : [];
  }} catch (err) {{
    console.error("flatcrawl extraction command failed:", err);
    return [];
  }}
}})()\
"""

PAGE_TIMEOUT_MS = 60000
SETTLE_DELAY_S = 1.0


def build_extraction_script(command: str) -> str:
    """Wrap an opaque extraction command for evaluation in the page."""
    return EXTRACTION_WRAPPER.format(command=json.dumps(command))


def build_run_config(command: str) -> CrawlerRunConfig:
    """Build the crawl4ai run config that navigates and runs ``command``."""
    return CrawlerRunConfig(
        cache_mode=CacheMode.BYPASS,
        js_code=[build_extraction_script(command)],
        wait_until="domcontentloaded",
        page_timeout=PAGE_TIMEOUT_MS,
        # Let dynamic content settle before the page is captured.
        delay_before_return_html=SETTLE_DELAY_S,
    )


def _find_list(value: Any) -> Optional[list]:
    if isinstance(value, list):
        return value
    if isinstance(value, dict):
        if "result" in value:
            return _find_list(value["result"])
        if "results" in value:
            for item in value["results"]:
                found = _find_list(item)
                if found is not None:
                    return found
    return None


def parse_extraction_result(raw: Any) -> list[str]:
    """Decode crawl4ai's script execution result into a list of strings.

    crawl4ai reports script results either directly or wrapped as
    ``{"success": ..., "results": [{"success": ..., "result": ...}]}``.
    Non-string items are dropped; they are untrusted page data.
    """
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError:
            raise ExtractionError("Extraction command returned non-JSON text") from None

    found = _find_list(raw)
    if found is None:
        raise ExtractionError(f"Extraction command returned no URL list (got {type(raw).__name__})")

    urls = [item for item in found if isinstance(item, str)]
    if len(urls) != len(found):
        logger.debug(f"Dropped {len(found) - len(urls)} non-string extraction results")
    return urls

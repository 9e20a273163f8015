"""URL normalization and deduplication."""

import logging
from typing import Iterable, Sequence
from urllib.parse import unquote_plus, urlsplit, urlunsplit

from .validation import is_valid_url

logger = logging.getLogger(__name__)


def normalize_url(url: str, params_to_remove: Sequence[str] = ()) -> str:
    """Normalize a URL for deduplication.

    - Removes every query parameter named in ``params_to_remove``.
    - Keeps the remaining parameters, raw and in their original order.
    - Leaves scheme, host, path and fragment untouched.

    Returns ``url`` unchanged when there is nothing to remove, when no
    parameter matched, or when the URL is not valid. Never raises.
    """
    if not params_to_remove or not is_valid_url(url):
        return url

    try:
        parsed = urlsplit(url)
    except ValueError:
        return url

    remove = set(params_to_remove)
    kept: list[str] = []
    removed = False
    for segment in parsed.query.split("&"):
        name = unquote_plus(segment.split("=", 1)[0])
        if segment and name in remove:
            removed = True
            continue
        kept.append(segment)

    # An untouched query, empty segments and bare "?" included, stays byte-identical.
    if not removed:
        return url

    normalized = urlunsplit(
        (parsed.scheme, parsed.netloc, parsed.path, "&".join(kept), parsed.fragment)
    )
    if normalized != url:
        logger.debug(f"Normalized URL: {url} -> {normalized}")
    return normalized


class URLDeduplicator:
    """Set-based URL deduplication over normalized forms.

    With no parameters to remove, URLs are compared as exact strings and
    the normalizer is never called.
    """

    def __init__(self, params_to_remove: Sequence[str] = ()) -> None:
        self.params_to_remove = tuple(params_to_remove)
        self._seen: set[str] = set()

    def _key(self, url: str) -> str:
        if not self.params_to_remove:
            return url
        return normalize_url(url, self.params_to_remove)

    def add(self, url: str) -> None:
        """Mark a URL as already known."""
        self._seen.add(self._key(url))

    def is_new(self, url: str) -> bool:
        """Return True if the URL has not been seen before, and mark it seen."""
        if self.params_to_remove and not is_valid_url(url):
            # Malformed candidates are passed through for the caller to handle.
            return True
        key = self._key(url)
        if key in self._seen:
            return False
        self._seen.add(key)
        return True

    @property
    def count(self) -> int:
        return len(self._seen)


def filter_new_urls(
    candidates: Iterable[str],
    existing: Iterable[str],
    params_to_remove: Sequence[str] = (),
) -> list[str]:
    """Return the candidates whose normalized form is not already known.

    Order is preserved, and only the first of several equivalent
    candidates in the same batch is kept.
    """
    candidates = list(candidates)
    dedup = URLDeduplicator(params_to_remove)
    for url in existing:
        dedup.add(url)
    logger.debug(
        f"Filtering {len(candidates)} URLs against {dedup.count} known URLs "
        f"(parameters to remove: {', '.join(params_to_remove) or 'none'})"
    )

    new_urls: list[str] = []
    duplicates: list[str] = []
    for url in candidates:
        if dedup.is_new(url):
            new_urls.append(url)
        else:
            duplicates.append(url)

    if duplicates:
        shown = ", ".join(duplicates[:5])
        more = "..." if len(duplicates) > 5 else ""
        logger.debug(f"Filtered out {len(duplicates)} duplicates: {shown}{more}")
    logger.info(
        f"Found {len(new_urls)} new URLs ({len(duplicates)} duplicates filtered out)"
    )
    return new_urls

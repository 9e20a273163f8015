"""Absolute URL validation for extracted link candidates."""

from typing import Iterable
from urllib.parse import urlsplit

# Schemes that carry a host component.
RECOGNIZED_SCHEMES = frozenset({"http", "https", "ftp", "ws", "wss"})


def is_valid_url(candidate: object) -> bool:
    """Return True if *candidate* is an absolute URL with a known scheme and a host.

    Never raises: anything that fails to parse is simply invalid.
    """
    if not isinstance(candidate, str) or not candidate:
        return False
    if candidate != candidate.strip() or any(c.isspace() for c in candidate):
        return False
    try:
        parsed = urlsplit(candidate)
        # Accessing .port validates the port range and raises on garbage.
        parsed.port
    except ValueError:
        return False
    if parsed.scheme.lower() not in RECOGNIZED_SCHEMES:
        return False
    return bool(parsed.hostname)


def filter_valid_urls(candidates: Iterable[object]) -> list[str]:
    """Keep the valid URLs from *candidates*, preserving order."""
    return [url for url in candidates if is_valid_url(url)]

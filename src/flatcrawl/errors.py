"""Exception types raised by flatcrawl."""

from __future__ import annotations


class FlatcrawlError(Exception):
    """Base class for all flatcrawl errors."""


class ConfigurationError(FlatcrawlError, ValueError):
    """Raised when the configuration is missing, malformed, or names an unknown source."""


class ExtractionError(FlatcrawlError):
    """Raised when the browser fails to produce a URL list for a source."""


class StorageError(FlatcrawlError):
    """Raised when the record table cannot be read or written."""


class GistError(FlatcrawlError):
    """Raised when syncing the table to the remote gist fails."""

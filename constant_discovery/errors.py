"""errors.py — Exception hierarchy for the constant-discovery search."""

from __future__ import annotations


class SearchError(Exception):
    """Base class for every error raised by the search pipeline."""


class ConfigurationError(SearchError, ValueError):
    """Invalid search configuration.  Raised before any scanning starts."""


class ResultWriteError(SearchError, OSError):
    """The output directory or a result file could not be written."""

"""Exception hierarchy for the analyzer.

Every failure the pipeline can raise derives from ``AnalyzerError`` so the
command line can decide in one place whether to abort or continue.
"""
from __future__ import annotations


class AnalyzerError(Exception):
    """Base class for all analyzer errors."""


class ConfigurationError(AnalyzerError):
    """Invalid settings, unknown format or analysis type, missing GeoIP database."""


class SourceError(AnalyzerError):
    """A log source could not be opened, read or decompressed."""

    def __init__(self, source: str, message: str) -> None:
        super().__init__(f"{source}: {message}")
        self.source = source


class ParseError(AnalyzerError):
    """A log line could not be turned into a record."""

    def __init__(self, message: str, line: bytes | str | None = None) -> None:
        super().__init__(message)
        self.line = line


class StrictParseError(ParseError):
    """Fatal parse failure (delimiter grammar, JSON decode, time layout)."""


class LenientParseError(ParseError):
    """Auto-detect parse failure: the line is skipped and counted."""


class GeoLookupError(AnalyzerError):
    """The GeoIP database has no usable record for an address."""


class HandlerError(AnalyzerError):
    """A handler was used outside its lifecycle."""

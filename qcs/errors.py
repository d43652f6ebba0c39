"""
errors.py

Exception types raised by QCS.

Library modules raise these; only the CLI turns them into a log line and a
nonzero exit status.
"""

from __future__ import annotations

from typing import Optional


class SymbolicateError(Exception):
    """Base class for every fatal QCS error."""


class UsageError(SymbolicateError):
    """No input given, or help requested."""


class MalformedReport(SymbolicateError):
    """
    A required report field is missing or has the wrong type.

    field:
        Dotted name of the offending field (e.g. "panic.app_version").
    """

    def __init__(self, field: str, message: Optional[str] = None):
        self.field = field
        super().__init__(message or f"missing or invalid field: {field}")


class ToolMissing(SymbolicateError):
    """A required external tool is not on PATH."""

    def __init__(self, tool: str, remedy: str):
        self.tool = tool
        self.remedy = remedy
        super().__init__(f"{tool} not found on PATH; {remedy}")


class ToolFailed(SymbolicateError):
    """An external tool exited with a nonzero status."""


class FetchError(SymbolicateError):
    """Artifact download failed."""


class FetchUnavailable(FetchError):
    """Neither the primary nor the fallback URL could be retrieved."""

    def __init__(self, urls, reason: str):
        self.urls = list(urls)
        self.reason = reason
        super().__init__(f"could not download {' or '.join(self.urls)}: {reason}")


class FetchCorrupt(FetchError):
    """Downloaded artifact failed to decompress."""


class CacheError(SymbolicateError):
    """Artifact could not be made present in the cache."""


class CacheNotFound(CacheError):
    """Fetcher could not retrieve the artifact. The cause is chained."""


__all__ = [
    "SymbolicateError",
    "UsageError",
    "MalformedReport",
    "ToolMissing",
    "ToolFailed",
    "FetchError",
    "FetchUnavailable",
    "FetchCorrupt",
    "CacheError",
    "CacheNotFound",
]

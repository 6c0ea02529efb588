"""Error types for Folio."""

from __future__ import annotations

from pathlib import Path
from typing import Optional


class FolioError(Exception):
    """Base exception for all Folio errors."""

    def __init__(self, message: str, suggestion: Optional[str] = None) -> None:
        self.message = message
        self.suggestion = suggestion
        super().__init__(message)

    def __str__(self) -> str:
        if self.suggestion:
            return f"{self.message}\nSuggestion: {self.suggestion}"
        return self.message


class ScanError(FolioError):
    """The library root could not be walked."""

    def __init__(self, root: Path, reason: str) -> None:
        self.root = root
        super().__init__(
            f"Cannot scan library root '{root}': {reason}",
            "Check [library] path in config.ini",
        )


class ArchiveError(FolioError):
    """A comic archive is missing, corrupt, or has no such page."""

    def __init__(self, message: str, not_found: bool = False) -> None:
        self.not_found = not_found
        super().__init__(message)


class DecodeError(FolioError):
    """An image could not be decoded."""

    pass


class CacheIOError(FolioError):
    """A thumbnail could not be written to the cache directory."""

    pass

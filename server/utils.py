"""Utility functions for Folio."""

from __future__ import annotations

from pathlib import Path
from typing import Optional


def short_path(path: Path) -> str:
    """Return abbreviated path showing only parent folder + filename.

    Example: /very/long/path/to/folder/file.cbz -> folder/file.cbz
    """
    return f"{path.parent.name}/{path.name}"


def format_id(entry_id: int) -> str:
    """Render an entry id the way it appears in URLs (8 lowercase hex digits)."""
    return f"{entry_id:08x}"


def parse_id(text: str) -> Optional[int]:
    """Parse a hex entry id (with or without 0x). None if malformed or out of range."""
    try:
        value = int(text, 16)
    except (TypeError, ValueError):
        return None
    if not 0 <= value <= 0xFFFFFFFF:
        return None
    return value

"""Reader services: entry lookup, covers and page image extraction.

Lookups go through the active CollectionIndex snapshot; page bytes are read by
opening the archive for the duration of one call, never through the index.
Page order: lexicographic by entry name (page 0 is the first name).
"""

from __future__ import annotations

from typing import Optional

from server.archive import open_archive, page_content_type
from server.errors import ArchiveError
from server.models import CollectionIndex, Entry


class NotFound(Exception):
    """Requested album, folder or page does not exist."""


def image_content_type(data: bytes) -> str:
    """Sniff the MIME type of an encoded thumbnail."""
    if data.startswith(b"\x89PNG"):
        return "image/png"
    if data.startswith(b"\xff\xd8"):
        return "image/jpeg"
    return "application/octet-stream"


def get_album(index: CollectionIndex, album_id: int) -> Entry:
    """Return the comic entry for `album_id`. Folders are not albums."""
    entry = index.get(album_id)
    if entry is None or entry.is_container:
        raise NotFound(f"No such album: {album_id:08x}")
    return entry


def get_cover(index: CollectionIndex, entry_id: int) -> tuple[bytes, str]:
    """Return (thumbnail_bytes, content_type) for a comic or folder."""
    data = index.cover_for(entry_id)
    if not data:
        raise NotFound(f"No cover for {entry_id:08x}")
    return data, image_content_type(data)


def get_page_count(index: CollectionIndex, album_id: int) -> int:
    """Page count from the snapshot, re-reading the archive if the scan found none.

    Raises NotFound when the archive is gone and ArchiveError when it is unreadable.
    """
    entry = get_album(index, album_id)
    if entry.page_count > 0:
        return entry.page_count
    try:
        with open_archive(entry.path) as archive:
            return len(archive.list_pages())
    except ArchiveError as exc:
        if exc.not_found:
            raise NotFound(str(exc)) from exc
        raise


def get_page_image(
    index: CollectionIndex, album_id: int, page_index: int
) -> tuple[bytes, str]:
    """Return (image_bytes, content_type) for a comic page at 0-based index.

    Raises NotFound for an unknown album or a page outside the archive, and
    ArchiveError when the archive is unreadable.
    """
    entry = get_album(index, album_id)
    if page_index < 0:
        raise NotFound(f"Page {page_index} not found")

    try:
        with open_archive(entry.path) as archive:
            names = archive.list_pages()
            if page_index >= len(names):
                raise NotFound(
                    f"Page {page_index} not found ({len(names)} pages in {entry.title})"
                )
            data = archive.read_page(page_index)
            return data, page_content_type(names[page_index])
    except ArchiveError as exc:
        if exc.not_found:
            raise NotFound(str(exc)) from exc
        raise


def folder_listing(
    index: CollectionIndex, folder_id: Optional[int]
) -> tuple[Optional[int], list[Entry]]:
    """Return (parent_folder_id, children) for a folder id, root when None."""
    children = index.listing(folder_id)
    if children is None:
        raise NotFound(f"No such folder: {folder_id:08x}")

    parent_id = None
    if folder_id is not None:
        folder = index.get(folder_id)
        parent_id = index.parent_id(folder) if folder is not None else None
    return parent_id, list(children)

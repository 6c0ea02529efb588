"""FastAPI router for the web reader: browse albums and fetch covers and pages.

Every id in a URL is the entry's 8-digit hex id. A request resolves the active
snapshot once and uses it for its whole lifetime.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import Response
from pydantic import BaseModel

from server.errors import ArchiveError, ScanError
from server.index import IndexManager
from server.logging_config import get_logger
from server.models import CollectionIndex, Entry
from server.utils import format_id, parse_id

from . import services

logger = get_logger(__name__)

router = APIRouter(tags=["reader"])

_IMAGE_HEADERS = {"Cache-Control": "private, max-age=3600"}


class ListingItem(BaseModel):
    id: str
    title: str
    is_folder: bool
    page_count: int
    cover_url: str
    url: str


class FolderListing(BaseModel):
    folder: Optional[str]
    parent: Optional[str]
    items: list[ListingItem]


class AlbumInfo(BaseModel):
    id: str
    title: str
    page_count: int
    folder: Optional[str]
    first_page_url: str


def _current_index(request: Request) -> CollectionIndex:
    manager: Optional[IndexManager] = getattr(request.app.state, "manager", None)
    if manager is None:
        raise HTTPException(status_code=503, detail="Library not loaded")
    try:
        return manager.current()
    except ScanError:
        raise HTTPException(status_code=503, detail="Library not scanned yet")


def _parse_or_404(value: str, what: str) -> int:
    entry_id = parse_id(value)
    if entry_id is None:
        raise HTTPException(status_code=404, detail=f"{what} not found")
    return entry_id


def _item(request: Request, entry: Entry) -> ListingItem:
    hex_id = format_id(entry.id)
    if entry.is_container:
        url = str(request.url_for("list_albums").include_query_params(folder=hex_id))
    else:
        url = str(request.url_for("album_info", album_id=hex_id))
    return ListingItem(
        id=hex_id,
        title=entry.title,
        is_folder=entry.is_container,
        page_count=entry.page_count,
        cover_url=str(request.url_for("cover_image", entry_id=hex_id)),
        url=url,
    )


# --- Browse ---


@router.get("/albums", response_model=FolderListing)
def list_albums(request: Request, folder: Optional[str] = None):
    """Folders and comics directly inside a folder (library root by default)."""
    index = _current_index(request)
    folder_id = _parse_or_404(folder, "Folder") if folder else None
    try:
        parent_id, children = services.folder_listing(index, folder_id)
    except services.NotFound:
        raise HTTPException(status_code=404, detail="Folder not found")

    return FolderListing(
        folder=format_id(folder_id) if folder_id is not None else None,
        parent=format_id(parent_id) if parent_id is not None else None,
        items=[_item(request, entry) for entry in children],
    )


@router.get("/covers/{entry_id}")
def cover_image(request: Request, entry_id: str):
    """Cached cover thumbnail (PNG for folders, JPEG for comics)."""
    index = _current_index(request)
    try:
        data, content_type = services.get_cover(index, _parse_or_404(entry_id, "Cover"))
    except services.NotFound:
        raise HTTPException(status_code=404, detail="Cover not found")
    return Response(content=data, media_type=content_type, headers=_IMAGE_HEADERS)


# --- Read ---


@router.get("/albums/{album_id}", response_model=AlbumInfo)
def album_info(request: Request, album_id: str):
    """JSON: album title, page count and containing folder."""
    index = _current_index(request)
    entry_id = _parse_or_404(album_id, "Album")
    try:
        entry = services.get_album(index, entry_id)
        page_count = services.get_page_count(index, entry_id)
    except services.NotFound:
        raise HTTPException(status_code=404, detail="Album not found")
    except ArchiveError as exc:
        logger.error(f"✗ Failed to open album {album_id}: {exc}")
        raise HTTPException(status_code=500, detail="Failed to read archive")

    parent_id = index.parent_id(entry)
    return AlbumInfo(
        id=format_id(entry_id),
        title=entry.title,
        page_count=page_count,
        folder=format_id(parent_id) if parent_id is not None else None,
        first_page_url=str(
            request.url_for("album_page", album_id=format_id(entry_id), page_num=0)
        ),
    )


@router.get("/albums/{album_id}/pages/{page_num:int}")
def album_page(request: Request, album_id: str, page_num: int):
    """Image bytes for one page (0-based)."""
    index = _current_index(request)
    entry_id = _parse_or_404(album_id, "Album")
    try:
        data, content_type = services.get_page_image(index, entry_id, page_num)
    except services.NotFound:
        raise HTTPException(status_code=404, detail="Page not found")
    except ArchiveError as exc:
        logger.error(f"✗ Failed to read page {page_num} of {album_id}: {exc}")
        raise HTTPException(status_code=500, detail="Failed to read page from archive")
    return Response(content=data, media_type=content_type, headers=_IMAGE_HEADERS)

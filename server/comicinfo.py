"""ComicInfo.xml parsing for Folio.

Reads ComicInfo.xml from inside CBZ/CBR archives and builds a display title
("Series Title Number (Year)"). Per-page annotations are parsed too, but the
cover is always the first page in sort order regardless of any FrontCover
marker.
"""

from __future__ import annotations

import xml.etree.ElementTree as ET
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel

from .archive import ComicArchive
from .errors import ArchiveError
from .logging_config import get_logger

logger = get_logger(__name__)

COMICINFO_NAME = "comicinfo.xml"
FRONT_COVER = "frontcover"

# ComicInfo tag names (case-insensitive in XML).
TAG_MAP = {
    "series": "series",
    "title": "title",
    "number": "number",
    "volume": "volume",
    "year": "year",
    "month": "month",
    "writer": "writer",
    "publisher": "publisher",
    "summary": "summary",
}


class ComicPage(BaseModel):
    """One <Page> element of the <Pages> list."""

    model_config = {"extra": "ignore"}

    image: Optional[int] = None
    type: Optional[str] = None


class ComicInfo(BaseModel):
    """Metadata parsed from ComicInfo.xml (all optional)."""

    model_config = {"extra": "ignore"}

    series: Optional[str] = None
    title: Optional[str] = None
    number: Optional[str] = None
    volume: Optional[str] = None
    year: Optional[str] = None
    month: Optional[str] = None
    writer: Optional[str] = None
    publisher: Optional[str] = None
    summary: Optional[str] = None
    pages: List[ComicPage] = []

    def display_title(self) -> Optional[str]:
        """Join series, title and number with single spaces, then "(year)"."""
        parts = [p for p in (self.series, self.title, self.number) if p]
        if self.year:
            parts.append(f"({self.year})")
        return " ".join(parts) or None

    @property
    def front_cover_page(self) -> Optional[int]:
        """Image index of the first page marked FrontCover, if any."""
        for page in self.pages:
            if page.type and page.type.lower() == FRONT_COVER:
                return page.image
        return None


def _text(elem: Optional[ET.Element]) -> Optional[str]:
    if elem is None or elem.text is None:
        return None
    t = elem.text.strip()
    return t or None


def _int_or_none(s: Optional[str]) -> Optional[int]:
    if s is None:
        return None
    try:
        return int(s.strip())
    except ValueError:
        return None


def _local_name(tag: str) -> str:
    """Return tag without namespace (e.g. '{http://...}Issue' -> 'issue')."""
    return tag.split("}")[-1].lower() if "}" in tag else tag.lower()


def _parse_pages(pages_elem: ET.Element) -> List[ComicPage]:
    pages = []
    for elem in pages_elem:
        if _local_name(elem.tag) != "page":
            continue
        attrs = {_local_name(k): v for k, v in elem.attrib.items()}
        pages.append(
            ComicPage(image=_int_or_none(attrs.get("image")), type=attrs.get("type"))
        )
    return pages


def parse_comicinfo_xml(xml_bytes: bytes) -> Optional[ComicInfo]:
    """Parse ComicInfo.xml content. Returns None for invalid XML or a foreign root."""
    try:
        root = ET.fromstring(xml_bytes)
    except ET.ParseError:
        return None

    if _local_name(root.tag) != "comicinfo":
        return None

    raw: dict[str, object] = {}
    by_lower = {_local_name(elem.tag): elem for elem in root}

    for xml_tag_lower, our_key in TAG_MAP.items():
        text = _text(by_lower.get(xml_tag_lower))
        if text is not None:
            raw[our_key] = text

    pages_elem = by_lower.get("pages")
    if pages_elem is not None:
        raw["pages"] = _parse_pages(pages_elem)

    return ComicInfo.model_validate(raw)


def read_comicinfo(archive: ComicArchive) -> Optional[ComicInfo]:
    """Read ComicInfo.xml from an open archive, or None when absent or unreadable."""
    comicinfo_name = next(
        (n for n in archive.list_names() if Path(n).name.lower() == COMICINFO_NAME),
        None,
    )
    if comicinfo_name is None:
        return None

    try:
        raw = archive.read(comicinfo_name)
    except ArchiveError as exc:
        logger.warning(f"Unreadable ComicInfo.xml in {archive.path.name}: {exc}")
        return None

    if not raw.strip():
        return None
    return parse_comicinfo_xml(raw)

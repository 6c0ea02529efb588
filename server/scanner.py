"""Filesystem scanner for Folio.

Walks the library root and builds an immutable CollectionIndex:
- every directory becomes a container entry (addressable by id)
- every .cbz/.cbr file becomes a comic entry with title, page count and cover
- ids are CRC-32 checksums of the absolute path, stable across scans

One broken archive never aborts a scan; only an unreadable root does.
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Callable, Iterable, Iterator, NamedTuple, Optional, Tuple

from .archive import open_archive
from .comicinfo import read_comicinfo
from .config import FolioConfig
from .errors import ArchiveError, DecodeError, ScanError
from .logging_config import get_logger
from .models import CollectionIndex, Entry, ScanStats, path_id
from .thumbnails import FOLDER_COVER_ID, ThumbnailCache, default_folder_image
from .utils import short_path

logger = get_logger(__name__)


COMIC_EXTENSIONS = ("cbz", "cbr")

_WORD_START = re.compile(r"(?<![\w'])\w")


def is_comic_file(path: Path, formats: Iterable[str] = COMIC_EXTENSIONS) -> bool:
    """Return True if the path looks like a supported comic archive."""
    return path.suffix.lower().lstrip(".") in {f.lower() for f in formats}


def _should_ignore(name: str, ignore_patterns: Iterable[str]) -> bool:
    """Check if file/folder should be ignored based on patterns or macOS temp files."""
    if name.startswith("._"):
        return True
    return name in ignore_patterns


def title_from_filename(name: str, strip_suffix: bool = True) -> str:
    """Turn 'foo_bar.cbz' into 'Foo Bar'.

    Underscores become spaces and the first letter of every word is upper-cased;
    the rest of each word is left as it is. Bytes that are not valid UTF-8
    become U+FFFD.
    """
    if strip_suffix:
        name = Path(name).stem
    name = name.encode("utf-8", "surrogateescape").decode("utf-8", "replace")
    name = name.replace("_", " ")
    return _WORD_START.sub(lambda m: m.group(0).upper(), name)


def _scandir_sorted(directory: Path) -> list[os.DirEntry]:
    with os.scandir(directory) as it:
        return sorted(it, key=lambda de: de.name)


def _walk_entries(
    directory: Path,
    entries: list[os.DirEntry],
    ignore_patterns: Tuple[str, ...],
    formats: Tuple[str, ...],
) -> Iterator[Tuple[Path, bool]]:
    comics = sum(
        1
        for de in entries
        if not _should_ignore(de.name, ignore_patterns) and is_comic_file(Path(de.name), formats)
    )
    logger.info(f"[SCAN] {short_path(directory)} ({comics} files)")

    for de in entries:
        if _should_ignore(de.name, ignore_patterns):
            continue

        path = Path(de.path)
        try:
            is_dir = de.is_dir(follow_symlinks=False)
        except OSError:
            is_dir = False

        if is_dir:
            yield path, True
            try:
                children = _scandir_sorted(path)
            except OSError as exc:
                logger.error(f"✗ {short_path(path)} - Unable to list folder: {exc}")
                continue
            yield from _walk_entries(path, children, ignore_patterns, formats)
        elif is_comic_file(path, formats):
            yield path, False


def walk_library(
    root: Path,
    ignore_patterns: Tuple[str, ...],
    formats: Tuple[str, ...] = COMIC_EXTENSIONS,
) -> Iterator[Tuple[Path, bool]]:
    """Yield (path, is_dir) depth-first in name order, excluding root itself.

    Raises ScanError if root cannot be listed.
    """
    try:
        entries = _scandir_sorted(root)
    except OSError as exc:
        raise ScanError(root, str(exc)) from exc
    yield from _walk_entries(root, entries, ignore_patterns, formats)


class ComicScan(NamedTuple):
    title: str
    cover: Optional[bytes]
    page_count: int
    status: str  # "generated", "cached" or "broken"


class CollectionScanner:
    """Builds CollectionIndex snapshots for a library root."""

    def __init__(
        self,
        cache: ThumbnailCache,
        supported_formats: Tuple[str, ...] = COMIC_EXTENSIONS,
        ignore_patterns: Tuple[str, ...] = (),
        folder_image: Callable[[], bytes] = default_folder_image,
    ) -> None:
        self.cache = cache
        self.supported_formats = tuple(supported_formats)
        self.ignore_patterns = tuple(ignore_patterns)
        self.folder_image = folder_image

    @classmethod
    def from_config(cls, config: FolioConfig) -> "CollectionScanner":
        cache = ThumbnailCache(
            config.thumbnails_dir,
            height=config.thumbnails.height,
            quality=config.thumbnails.quality,
        )
        folder_image = default_folder_image
        custom = config.thumbnails.folder_image
        if custom is not None:
            folder_image = custom.read_bytes
        return cls(
            cache,
            supported_formats=config.scanner.supported_formats,
            ignore_patterns=config.scanner.ignore_patterns,
            folder_image=folder_image,
        )

    def scan(self, root_path: Path) -> CollectionIndex:
        """Walk `root_path` and return a fully populated CollectionIndex.

        Raises ScanError if the root is missing or unreadable.
        """
        root = Path(root_path).expanduser().resolve()
        if not root.exists():
            raise ScanError(root, "path does not exist")
        if not root.is_dir():
            raise ScanError(root, "not a directory")

        by_id: dict[int, Entry] = {}
        by_directory: dict[Path, list[Entry]] = {}
        dir_by_id: dict[int, Path] = {}
        counts = dict.fromkeys(
            ("folders", "comics", "pages", "broken", "generated", "cached"), 0
        )

        for path, is_dir in walk_library(root, self.ignore_patterns, self.supported_formats):
            entry_id = path_id(path)
            previous = by_id.get(entry_id)
            if previous is not None:
                logger.warning(
                    f"Id collision {entry_id:08x}: {short_path(path)} "
                    f"replaces {short_path(previous.path)}"
                )
                # The later entry owns the id everywhere.
                by_directory[previous.path.parent].remove(previous)
                dir_by_id.pop(entry_id, None)

            if is_dir:
                entry = Entry(
                    id=entry_id,
                    path=path,
                    is_container=True,
                    title=title_from_filename(path.name, strip_suffix=False),
                )
                dir_by_id[entry_id] = path
                counts["folders"] += 1
            else:
                result = self.scan_comic(path, entry_id)
                entry = Entry(
                    id=entry_id,
                    path=path,
                    is_container=False,
                    title=result.title,
                    cover=result.cover,
                    page_count=result.page_count,
                )
                counts["comics"] += 1
                counts["pages"] += result.page_count
                counts[result.status] += 1

            by_id[entry_id] = entry
            by_directory.setdefault(path.parent, []).append(entry)

        stats = ScanStats(
            folders=counts["folders"],
            comics=counts["comics"],
            pages=counts["pages"],
            broken=counts["broken"],
            thumbnails_generated=counts["generated"],
            thumbnails_cached=counts["cached"],
        )
        logger.info(
            f"Scan complete: {stats.comics} comics in {stats.folders} folders, "
            f"{stats.thumbnails_generated} new thumbnails, {stats.broken} broken."
        )
        return CollectionIndex.build(
            root,
            by_id,
            by_directory,
            dir_by_id,
            folder_cover=self.folder_cover(),
            stats=stats,
        )

    def folder_cover(self) -> Optional[bytes]:
        """Return the folder placeholder thumbnail, rendering it on first use."""
        try:
            return self.cache.populate(FOLDER_COVER_ID, self.folder_image, fmt="png")
        except (DecodeError, OSError) as exc:
            logger.error(f"✗ Folder placeholder unavailable: {exc}")
            return None

    def scan_comic(self, path: Path, entry_id: int) -> ComicScan:
        """Read title, page count and cover for one archive.

        Failures are logged and produce the filename title with no cover.
        """
        title = title_from_filename(path.name)
        page_count = 0
        try:
            with open_archive(path) as archive:
                pages = archive.list_pages()
                page_count = len(pages)

                comicinfo = read_comicinfo(archive)
                if comicinfo is not None:
                    title = comicinfo.display_title() or title
                    front = comicinfo.front_cover_page
                    if front is not None:
                        logger.debug(
                            f"{path.name}: FrontCover marker on page {front}, "
                            f"using first page as cover"
                        )

                if not pages:
                    logger.warning(f"✗ {short_path(path)} - No images found")
                    return ComicScan(title, None, 0, "broken")

                status = "cached" if self.cache.has(self.cache.key(entry_id)) else "generated"
                cover = self.cache.populate(entry_id, lambda: archive.read(pages[0]))
        except ArchiveError as exc:
            logger.error(f"✗ {short_path(path)} - {exc}")
            return ComicScan(title, None, page_count, "broken")
        except DecodeError as exc:
            logger.error(f"✗ {short_path(path)} - {pages[0]}: {exc}")
            return ComicScan(title, None, page_count, "broken")

        logger.debug(f"✓ {path.name} ({page_count} pages)")
        return ComicScan(title, cover, page_count, status)


def scan_library(config: FolioConfig, path: Optional[Path] = None) -> CollectionIndex:
    """Scan the configured library (or `path`) once and return the snapshot."""
    scanner = CollectionScanner.from_config(config)
    return scanner.scan(path or config.library_path)

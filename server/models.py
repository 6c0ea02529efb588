"""In-memory collection models for Folio.

A CollectionIndex is the immutable result of one scan. It is never updated in
place; a rescan builds a new one and IndexManager swaps it in.
"""

from __future__ import annotations

import dataclasses
import os
import zlib
from pathlib import Path
from types import MappingProxyType
from typing import Mapping, Optional, Tuple


def path_id(path: Path) -> int:
    """Stable 32-bit id of an absolute path (CRC-32 of its raw filesystem bytes)."""
    return zlib.crc32(os.fsencode(path))


@dataclasses.dataclass(frozen=True)
class Entry:
    id: int
    path: Path
    is_container: bool
    title: str
    cover: Optional[bytes] = dataclasses.field(default=None, repr=False)
    page_count: int = 0


@dataclasses.dataclass(frozen=True)
class ScanStats:
    folders: int = 0
    comics: int = 0
    pages: int = 0
    broken: int = 0
    thumbnails_generated: int = 0
    thumbnails_cached: int = 0


@dataclasses.dataclass(frozen=True)
class CollectionIndex:
    root_path: Path
    by_id: Mapping[int, Entry]
    by_directory: Mapping[Path, Tuple[Entry, ...]]
    dir_by_id: Mapping[int, Path]
    folder_cover: Optional[bytes] = dataclasses.field(default=None, repr=False)
    stats: ScanStats = ScanStats()

    @classmethod
    def build(
        cls,
        root_path: Path,
        by_id: dict[int, Entry],
        by_directory: dict[Path, list[Entry]],
        dir_by_id: dict[int, Path],
        folder_cover: Optional[bytes] = None,
        stats: Optional[ScanStats] = None,
    ) -> "CollectionIndex":
        """Freeze the scanner's working dicts into a read-only snapshot."""
        return cls(
            root_path=root_path,
            by_id=MappingProxyType(dict(by_id)),
            by_directory=MappingProxyType(
                {path: tuple(children) for path, children in by_directory.items()}
            ),
            dir_by_id=MappingProxyType(dict(dir_by_id)),
            folder_cover=folder_cover,
            stats=stats or ScanStats(),
        )

    def get(self, entry_id: int) -> Optional[Entry]:
        return self.by_id.get(entry_id)

    def children(self, directory: Path) -> Tuple[Entry, ...]:
        return self.by_directory.get(directory, ())

    def directory(self, folder_id: int) -> Optional[Path]:
        return self.dir_by_id.get(folder_id)

    def listing(self, folder_id: Optional[int] = None) -> Optional[Tuple[Entry, ...]]:
        """Children of a folder by id (root when None); None for an unknown id."""
        if folder_id is None:
            return self.children(self.root_path)
        directory = self.directory(folder_id)
        if directory is None:
            return None
        return self.children(directory)

    def parent_id(self, entry: Entry) -> Optional[int]:
        """Id of the folder containing `entry`, None when it sits at the root."""
        parent = entry.path.parent
        folder_id = path_id(parent)
        if self.dir_by_id.get(folder_id) != parent:
            return None
        return folder_id

    def cover_for(self, entry_id: int) -> Optional[bytes]:
        entry = self.get(entry_id)
        if entry is None:
            return None
        if entry.is_container:
            return self.folder_cover
        return entry.cover

    @property
    def comics(self) -> Tuple[Entry, ...]:
        return tuple(e for e in self.by_id.values() if not e.is_container)

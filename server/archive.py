"""Archive handling utilities for Folio.

Provides a unified interface for reading CBZ (Zip) and CBR (Rar) archives,
with format fallback detection. Page order is plain lexicographic order of
the image entry names; page 0 is always the first name in that order.
"""

from __future__ import annotations

import zipfile
import zlib
from pathlib import Path
from typing import List, Protocol

import rarfile

from .errors import ArchiveError


IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".gif", ".webp"}

_CONTENT_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".webp": "image/webp",
}

# Exceptions the backends raise for unreadable or damaged members.
_READ_ERRORS = (
    OSError,
    EOFError,
    ValueError,
    RuntimeError,
    NotImplementedError,
    zlib.error,
    zipfile.BadZipFile,
    rarfile.Error,
)


def is_image(filename: str) -> bool:
    if filename.endswith("/"):
        return False
    name = filename.replace("\\", "/").rsplit("/", 1)[-1]
    if name.startswith("._"):
        return False
    return Path(name).suffix.lower() in IMAGE_EXTENSIONS


def page_content_type(filename: str) -> str:
    return _CONTENT_TYPES.get(Path(filename).suffix.lower(), "application/octet-stream")


class ComicArchive(Protocol):
    path: Path

    def list_names(self) -> List[str]:
        """List all file names in the archive (for finding ComicInfo.xml etc.)."""
        ...

    def list_pages(self) -> List[str]:
        ...

    def read(self, filename: str) -> bytes:
        ...

    def read_page(self, index: int) -> bytes:
        ...

    def close(self) -> None:
        ...

    def __enter__(self) -> "ComicArchive":
        ...

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        ...


class _ArchiveWrapper:
    """Shared page logic; subclasses provide the backend handle."""

    def __init__(self, path: Path, handle) -> None:
        self.path = path
        self._handle = handle
        self._pages: List[str] | None = None

    def list_names(self) -> List[str]:
        return self._handle.namelist()

    def list_pages(self) -> List[str]:
        if self._pages is None:
            self._pages = sorted(n for n in self.list_names() if is_image(n))
        return list(self._pages)

    def read(self, filename: str) -> bytes:
        if self._handle is None:
            raise ArchiveError(f"Archive already closed: {self.path.name}")
        try:
            return self._handle.read(filename)
        except (KeyError, rarfile.NoRarEntry):
            raise ArchiveError(
                f"No entry {filename!r} in {self.path.name}", not_found=True
            )
        except _READ_ERRORS as exc:
            raise ArchiveError(
                f"Failed to decompress {filename!r} from {self.path.name}: {exc}"
            ) from exc

    def read_page(self, index: int) -> bytes:
        pages = self.list_pages()
        if index < 0 or index >= len(pages):
            raise ArchiveError(
                f"Page {index} not found in {self.path.name} ({len(pages)} pages)",
                not_found=True,
            )
        return self.read(pages[index])

    def close(self) -> None:
        if self._handle is None:
            return
        handle, self._handle = self._handle, None
        handle.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


class ZipArchiveWrapper(_ArchiveWrapper):
    def __init__(self, path: Path):
        super().__init__(path, zipfile.ZipFile(path, mode="r"))


class RarArchiveWrapper(_ArchiveWrapper):
    def __init__(self, path: Path):
        super().__init__(path, rarfile.RarFile(path, mode="r"))


def open_archive(path: Path) -> ComicArchive:
    """Open an archive, detecting format by extension with fallback.

    Tries the expected format first (cbz→zip, cbr→rar).
    If that fails, tries the other format (handles misnamed files).
    Raises ArchiveError when neither backend can list the archive.
    """
    path = Path(path)
    if not path.is_file():
        raise ArchiveError(f"File not found: {path}", not_found=True)

    if path.suffix.lower() == ".cbr":
        backends = (RarArchiveWrapper, ZipArchiveWrapper)
    else:
        backends = (ZipArchiveWrapper, RarArchiveWrapper)

    errors = []
    for backend in backends:
        try:
            return backend(path)
        except _READ_ERRORS as exc:
            errors.append(f"{backend.__name__}: {exc}")

    raise ArchiveError(f"Unable to open archive {path.name} ({'; '.join(errors)})")

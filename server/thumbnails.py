"""Thumbnail cache for Folio.

Thumbnails are stored under `thumbnails/{entry_id:08x}-{height}`, one file per
(entry id, thumbnail height) key. Changing the configured height simply makes
old files unreferenced. Writes go through a temp file in the cache directory
followed by os.replace, so a cache file is either complete or absent.
"""

from __future__ import annotations

import os
import re
import tempfile
import zlib
from io import BytesIO
from pathlib import Path
from typing import Callable, NamedTuple, Optional

from PIL import Image, ImageDraw

from .errors import CacheIOError, DecodeError
from .logging_config import get_logger

logger = get_logger(__name__)

# Reserved key for the shared folder placeholder.
FOLDER_COVER_ID = zlib.crc32(b"folder.png")

_KEY_PATTERN = re.compile(r"^([0-9a-f]{8})-(\d+)$")


class CacheKey(NamedTuple):
    entry_id: int
    height: int

    @property
    def filename(self) -> str:
        return f"{self.entry_id:08x}-{self.height}"

    @classmethod
    def from_filename(cls, name: str) -> Optional["CacheKey"]:
        match = _KEY_PATTERN.match(name)
        if match is None:
            return None
        return cls(int(match.group(1), 16), int(match.group(2)))


def render_thumbnail(
    img_bytes: bytes,
    height: int,
    fmt: str = "jpeg",
    quality: int = 85,
) -> bytes:
    """Resize an encoded image to `height` pixels tall and re-encode it.

    The width follows the source aspect ratio. JPEG output is RGB; PNG keeps
    transparency. Raises DecodeError if the source cannot be decoded.
    """
    try:
        with Image.open(BytesIO(img_bytes)) as im:
            im.load()
            if fmt == "png":
                im = im.convert("RGBA")
            else:
                im = im.convert("RGB")
    except (OSError, ValueError, Image.DecompressionBombError) as exc:
        raise DecodeError(f"Cannot decode image: {exc}") from exc

    src_width, src_height = im.size
    if src_height == 0:
        raise DecodeError("Cannot decode image: zero height")
    width = max(1, round(src_width * height / src_height))
    im = im.resize((width, height), Image.Resampling.LANCZOS)

    out = BytesIO()
    if fmt == "png":
        im.save(out, format="PNG")
    else:
        im.save(out, format="JPEG", quality=quality)
    return out.getvalue()


def default_folder_image() -> bytes:
    """Draw the generic folder cover used for every directory entry."""
    im = Image.new("RGBA", (300, 240), (0, 0, 0, 0))
    draw = ImageDraw.Draw(im)
    tab = (214, 160, 60, 255)
    body = (240, 190, 80, 255)
    draw.rounded_rectangle((10, 20, 130, 70), radius=12, fill=tab)
    draw.rounded_rectangle((10, 45, 290, 230), radius=16, fill=body)
    draw.line((10, 75, 290, 75), fill=tab, width=4)

    out = BytesIO()
    im.save(out, format="PNG")
    return out.getvalue()


class ThumbnailCache:
    """Disk-backed thumbnail store keyed by (entry id, height)."""

    def __init__(self, cache_dir: Path, height: int, quality: int = 85) -> None:
        self.cache_dir = Path(cache_dir)
        self.height = height
        self.quality = quality

    def key(self, entry_id: int) -> CacheKey:
        return CacheKey(entry_id, self.height)

    def path_for(self, key: CacheKey) -> Path:
        return self.cache_dir / key.filename

    def has(self, key: CacheKey) -> bool:
        return self.path_for(key).is_file()

    def get(self, key: CacheKey) -> Optional[bytes]:
        path = self.path_for(key)
        try:
            return path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as exc:
            logger.warning(f"Unreadable cached thumbnail {path.name}: {exc}")
            return None

    def put(self, key: CacheKey, data: bytes) -> None:
        """Write `data` for `key`, replacing any previous file atomically."""
        target = self.path_for(key)
        tmp_path: Optional[str] = None
        try:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                dir=str(self.cache_dir), prefix=f".{key.filename}_", suffix=".tmp"
            )
            with os.fdopen(fd, "wb") as handle:
                handle.write(data)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_path, target)
            tmp_path = None
        except OSError as exc:
            raise CacheIOError(f"Failed to write thumbnail {target}: {exc}") from exc
        finally:
            if tmp_path is not None:
                try:
                    os.unlink(tmp_path)
                except OSError:
                    logger.debug(f"Could not remove temp file {tmp_path}")

    def populate(
        self,
        entry_id: int,
        load_source: Callable[[], bytes],
        fmt: str = "jpeg",
    ) -> bytes:
        """Return the thumbnail for `entry_id`, generating it on a cache miss.

        `load_source` is only called when nothing is cached for the key. A
        failed cache write is logged; the freshly rendered bytes are still
        returned.
        """
        key = self.key(entry_id)
        cached = self.get(key)
        if cached is not None:
            return cached

        data = render_thumbnail(load_source(), self.height, fmt, self.quality)
        try:
            self.put(key, data)
        except CacheIOError as exc:
            logger.warning(str(exc))
        return data

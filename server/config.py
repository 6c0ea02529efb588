"""Config management for Folio.

Reads `config.ini` from the data directory (beside main.py unless DATA_DIR is set).
"""

from __future__ import annotations

import configparser
import dataclasses
import os
import pathlib
import sys
from typing import Optional

from .logging_config import get_logger

logger = get_logger(__name__)


def _get_project_root() -> pathlib.Path:
    if getattr(sys, "frozen", False):
        return pathlib.Path(sys.executable).resolve().parent
    return pathlib.Path(__file__).resolve().parents[1]


PROJECT_ROOT = _get_project_root()

# DATA_DIR holds all persistent state (config.ini, folio.log, thumbnails/).
DATA_DIR = pathlib.Path(os.environ.get("DATA_DIR", str(PROJECT_ROOT)))
DEFAULT_CONFIG_PATH = DATA_DIR / "config.ini"

MIN_THUMB_HEIGHT = 100
MAX_THUMB_HEIGHT = 2000


@dataclasses.dataclass
class LibraryConfig:
    path: pathlib.Path
    name: str = "My Comic Library"


@dataclasses.dataclass
class ServerConfig:
    host: str = "0.0.0.0"
    port: int = 4531


@dataclasses.dataclass
class ThumbnailConfig:
    height: int = 400
    quality: int = 85
    cache_dir: Optional[pathlib.Path] = None
    folder_image: Optional[pathlib.Path] = None


@dataclasses.dataclass
class ScannerConfig:
    supported_formats: tuple[str, ...] = ("cbz", "cbr")
    ignore_patterns: tuple[str, ...] = (".DS_Store", "Thumbs.db", "@eaDir")
    rescan_interval: int = 300


@dataclasses.dataclass
class MonitoringConfig:
    enabled: bool = False
    debounce_seconds: int = 2


@dataclasses.dataclass
class FolioConfig:
    library: LibraryConfig
    server: ServerConfig = dataclasses.field(default_factory=ServerConfig)
    thumbnails: ThumbnailConfig = dataclasses.field(default_factory=ThumbnailConfig)
    scanner: ScannerConfig = dataclasses.field(default_factory=ScannerConfig)
    monitoring: MonitoringConfig = dataclasses.field(default_factory=MonitoringConfig)

    @property
    def library_path(self) -> pathlib.Path:
        return self.library.path

    @property
    def server_host(self) -> str:
        return self.server.host

    @property
    def server_port(self) -> int:
        return self.server.port

    @property
    def thumbnails_dir(self) -> pathlib.Path:
        return self.thumbnails.cache_dir or DATA_DIR / "thumbnails"


def _parse_bool(value: str, default: bool) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _parse_list(value: str) -> tuple[str, ...]:
    return tuple(p.strip() for p in value.split(",") if p.strip())


def _optional_path(value: str) -> Optional[pathlib.Path]:
    value = value.strip()
    return pathlib.Path(value).expanduser() if value else None


def load_config(config_path: Optional[pathlib.Path] = None) -> FolioConfig:
    """Load configuration from config.ini.

    Defaults to `config.ini` in the data directory. Raises FileNotFoundError
    when the file is missing and ValueError for an out-of-range thumbnail height.
    """
    path = config_path or DEFAULT_CONFIG_PATH
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    parser = configparser.ConfigParser()
    parser.read(path)

    lib_path = pathlib.Path(
        parser.get("library", "path", fallback="/path/to/comics")
    ).expanduser()
    lib_name = parser.get("library", "name", fallback="My Comic Library")

    server = ServerConfig(
        host=parser.get("server", "host", fallback="0.0.0.0"),
        port=parser.getint("server", "port", fallback=4531),
    )

    thumbs = ThumbnailConfig(
        height=parser.getint("thumbnails", "height", fallback=400),
        quality=parser.getint("thumbnails", "quality", fallback=85),
        cache_dir=_optional_path(parser.get("thumbnails", "cache_dir", fallback="")),
        folder_image=_optional_path(
            parser.get("thumbnails", "folder_image", fallback="")
        ),
    )
    if not MIN_THUMB_HEIGHT <= thumbs.height <= MAX_THUMB_HEIGHT:
        raise ValueError(
            f"Invalid thumbnail height {thumbs.height} "
            f"(expected {MIN_THUMB_HEIGHT}-{MAX_THUMB_HEIGHT})"
        )

    scanner = ScannerConfig(
        supported_formats=_parse_list(
            parser.get("scanner", "supported_formats", fallback="cbz,cbr")
        ),
        ignore_patterns=_parse_list(
            parser.get(
                "scanner",
                "ignore_patterns",
                fallback=".DS_Store,Thumbs.db,@eaDir",
            )
        ),
        rescan_interval=parser.getint("scanner", "rescan_interval", fallback=300),
    )

    monitoring = MonitoringConfig(
        enabled=_parse_bool(
            parser.get("monitoring", "enabled", fallback="false"), False
        ),
        debounce_seconds=parser.getint(
            "monitoring", "debounce_seconds", fallback=2
        ),
    )

    return FolioConfig(
        library=LibraryConfig(path=lib_path, name=lib_name),
        server=server,
        thumbnails=thumbs,
        scanner=scanner,
        monitoring=monitoring,
    )


_cached_config: Optional[FolioConfig] = None


def get_config() -> FolioConfig:
    """Return the cached config singleton. Loads from disk on first call."""
    global _cached_config
    if _cached_config is None:
        _cached_config = load_config()
    return _cached_config


def reset_config_cache() -> None:
    """Clear the cached config (useful for tests)."""
    global _cached_config
    _cached_config = None


def write_default_config(
    config_path: pathlib.Path, library_path: pathlib.Path, library_name: str
) -> None:
    """Write a config.ini with default settings for the given library."""
    parser = configparser.ConfigParser()

    parser["library"] = {
        "path": str(library_path.expanduser()),
        "name": library_name,
    }
    parser["server"] = {
        "host": "0.0.0.0",
        "port": "4531",
    }
    parser["thumbnails"] = {
        "height": "400",
        "quality": "85",
        "cache_dir": "",
        "folder_image": "",
    }
    parser["scanner"] = {
        "supported_formats": "cbz,cbr",
        "ignore_patterns": ".DS_Store,Thumbs.db,@eaDir",
        "rescan_interval": "300",
    }
    parser["monitoring"] = {
        "enabled": "false",
        "debounce_seconds": "2",
    }

    config_path.parent.mkdir(parents=True, exist_ok=True)
    with config_path.open("w") as handle:
        parser.write(handle)
    logger.debug(f"Wrote default config to {config_path}")

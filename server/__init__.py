"""Folio core package.

Modules:
- archive: uniform CBZ/CBR access and page ordering
- comicinfo: ComicInfo.xml parsing and display titles
- thumbnails: disk-backed thumbnail cache
- scanner: filesystem walk building a CollectionIndex
- index: active snapshot, background rescans and atomic swap
- monitor: Watchdog-based filesystem monitoring
- app: FastAPI app and server start-up
- config: INI parsing and config object
"""

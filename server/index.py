"""Active collection snapshot and background rescans for Folio.

The IndexManager owns the one CollectionIndex that requests read from. A rescan
builds a complete new snapshot without touching the active one, then swaps the
reference under a lock. A request that grabbed `current()` keeps using that
snapshot even if a swap happens before it finishes.
"""

from __future__ import annotations

import threading
from pathlib import Path
from typing import Optional

from .errors import ScanError
from .logging_config import get_logger
from .models import CollectionIndex
from .scanner import CollectionScanner

logger = get_logger(__name__)


class IndexManager:
    def __init__(self, scanner: CollectionScanner, root_path: Path) -> None:
        self.scanner = scanner
        self.root_path = Path(root_path)
        self._index: Optional[CollectionIndex] = None
        self._swap_lock = threading.Lock()
        self._scan_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._worker: Optional[threading.Thread] = None

    def current(self) -> CollectionIndex:
        """Return the active snapshot. Raises ScanError before the first scan."""
        with self._swap_lock:
            index = self._index
        if index is None:
            raise ScanError(self.root_path, "library has not been scanned yet")
        return index

    @property
    def ready(self) -> bool:
        with self._swap_lock:
            return self._index is not None

    def install(self, index: CollectionIndex) -> None:
        """Make `index` the active snapshot."""
        with self._swap_lock:
            self._index = index

    def rescan(self) -> CollectionIndex:
        """Scan the library and swap the result in.

        Scans never overlap. On ScanError the previous snapshot stays active and
        the error propagates.
        """
        with self._scan_lock:
            index = self.scanner.scan(self.root_path)
            self.install(index)
        return index

    # --- Background worker ---

    def start(self, interval_seconds: int) -> Optional[threading.Thread]:
        """Start periodic rescans every `interval_seconds`. Disabled when <= 0."""
        if interval_seconds <= 0:
            logger.info("Periodic rescan disabled")
            return None
        if self._worker is not None and self._worker.is_alive():
            return self._worker

        self._stop_event.clear()
        self._worker = threading.Thread(
            target=self._run,
            args=(interval_seconds,),
            daemon=True,
            name="FolioRescanWorker",
        )
        self._worker.start()
        logger.info(f"Rescanning library every {interval_seconds}s")
        return self._worker

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop_event.set()
        if self._worker is not None:
            self._worker.join(timeout)
            self._worker = None

    def _run(self, interval_seconds: int) -> None:
        while not self._stop_event.wait(interval_seconds):
            try:
                self.rescan()
            except ScanError as exc:
                logger.error(f"Rescan failed, keeping previous index: {exc}")
            except Exception:
                logger.exception("Unexpected error during rescan")

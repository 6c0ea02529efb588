"""Filesystem monitoring for Folio.

Uses Watchdog to notice new/modified/deleted comics and folders. Events are
batched over a short window and each batch triggers a single full rescan
through the IndexManager; the index itself is never patched in place.
"""

from __future__ import annotations

import queue
import time
from pathlib import Path
from threading import Event, Thread
from typing import Dict, Iterable, NamedTuple, Optional

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .config import FolioConfig
from .errors import ScanError
from .index import IndexManager
from .logging_config import get_logger
from .scanner import COMIC_EXTENSIONS, is_comic_file

logger = get_logger(__name__)

BATCH_WINDOW = 1.0  # Seconds to wait for more events


class MonitorTask(NamedTuple):
    action: str
    path: Path
    dest_path: Optional[Path] = None


class ComicLibraryHandler(FileSystemEventHandler):
    """Handle filesystem events and push them to a processing queue."""

    def __init__(
        self,
        task_queue: queue.Queue,
        debounce_seconds: int = 2,
        formats: Iterable[str] = COMIC_EXTENSIONS,
    ):
        super().__init__()
        self.task_queue = task_queue
        self.debounce_seconds = debounce_seconds
        self.formats = tuple(formats)
        self._last_modified: Dict[str, float] = {}

    def _relevant(self, path: Path, is_directory: bool) -> bool:
        if path.name.startswith("._"):
            return False
        return is_directory or is_comic_file(path, self.formats)

    def on_created(self, event: FileSystemEvent) -> None:
        path = Path(event.src_path)
        if self._relevant(path, event.is_directory):
            self.task_queue.put(MonitorTask("created", path))

    def on_deleted(self, event: FileSystemEvent) -> None:
        path = Path(event.src_path)
        if path.name.startswith("._"):
            return
        # Deleted paths can't be stat'ed; anything without a comic suffix may be a folder.
        self.task_queue.put(MonitorTask("deleted", path))

    def on_moved(self, event: FileSystemEvent) -> None:
        src_path = Path(event.src_path)
        dest_path = Path(event.dest_path)

        if src_path.name.startswith("._") or dest_path.name.startswith("._"):
            return
        if not (
            event.is_directory
            or is_comic_file(src_path, self.formats)
            or is_comic_file(dest_path, self.formats)
        ):
            return

        self.task_queue.put(MonitorTask("moved", src_path, dest_path=dest_path))

    def on_modified(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return

        path = Path(event.src_path)
        if not self._relevant(path, False):
            return

        # Simple debounce for modified files
        now = time.time()
        key = str(path)
        last = self._last_modified.get(key, 0)
        if now - last < self.debounce_seconds:
            return

        self._last_modified[key] = now
        self.task_queue.put(MonitorTask("modified", path))

        # Prune stale entries to prevent unbounded growth
        cutoff = now - self.debounce_seconds * 2
        self._last_modified = {
            k: v for k, v in self._last_modified.items() if v > cutoff
        }


def drain_batch(task_queue: queue.Queue, first_task: MonitorTask, window: float) -> list[MonitorTask]:
    """Collect tasks arriving within `window` seconds of the first one."""
    batch = [first_task]
    start_time = time.time()

    while (time.time() - start_time) < window:
        try:
            batch.append(task_queue.get_nowait())
        except queue.Empty:
            time.sleep(0.1)

    return batch


def process_queue(
    task_queue: queue.Queue,
    manager: IndexManager,
    stop_event: Event,
    window: float = BATCH_WINDOW,
) -> None:
    """Worker: turn each burst of filesystem events into one rescan."""
    while not stop_event.is_set():
        try:
            first_task = task_queue.get(timeout=1.0)
        except queue.Empty:
            continue

        batch = drain_batch(task_queue, first_task, window)
        paths = {task.path for task in batch}
        logger.info(f"[~] {len(paths)} library change(s) detected, rescanning")

        try:
            manager.rescan()
        except ScanError as exc:
            logger.error(f"Rescan after change failed: {exc}")
        except Exception:
            logger.exception("Unexpected error while rescanning after change")


class LibraryMonitor:
    """Watchdog observer plus the worker thread that feeds IndexManager."""

    def __init__(self, observer: Observer, worker: Thread, stop_event: Event) -> None:
        self.observer = observer
        self.worker = worker
        self.stop_event = stop_event

    def stop(self) -> None:
        self.stop_event.set()
        self.observer.stop()
        self.observer.join()
        self.worker.join(timeout=5)


def start_file_monitoring(config: FolioConfig, manager: IndexManager) -> Optional[LibraryMonitor]:
    """Start filesystem monitoring if enabled in config."""
    if not config.monitoring.enabled:
        return None

    library_path = config.library_path
    if not library_path.exists():
        logger.error(f"Library path does not exist: {library_path}")
        return None

    task_queue: queue.Queue = queue.Queue()
    stop_event = Event()

    worker = Thread(
        target=process_queue,
        args=(task_queue, manager, stop_event),
        daemon=True,
        name="FolioMonitorWorker",
    )
    worker.start()

    event_handler = ComicLibraryHandler(
        task_queue,
        config.monitoring.debounce_seconds,
        formats=config.scanner.supported_formats,
    )

    observer = Observer()
    observer.schedule(event_handler, str(library_path), recursive=True)
    observer.start()
    logger.info("File monitoring enabled")

    return LibraryMonitor(observer, worker, stop_event)

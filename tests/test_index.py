"""Tests for the IndexManager snapshot swap and background rescans."""

import io
import shutil
import threading
import time
import zipfile
from pathlib import Path

import pytest
from PIL import Image

from server.errors import ScanError
from server.index import IndexManager
from server.scanner import CollectionScanner
from server.thumbnails import ThumbnailCache


def _create_cbz(path: Path) -> None:
    img = Image.new("RGB", (10, 10), color="red")
    img_bytes = io.BytesIO()
    img.save(img_bytes, format="PNG")

    path.parent.mkdir(parents=True, exist_ok=True)
    with zipfile.ZipFile(path, "w") as zf:
        zf.writestr("page001.png", img_bytes.getvalue())


def _make_manager(tmp_path: Path, root: Path) -> IndexManager:
    scanner = CollectionScanner(ThumbnailCache(tmp_path / "cache", height=100))
    return IndexManager(scanner, root)


def test_current_before_first_scan_raises(tmp_path):
    manager = _make_manager(tmp_path, tmp_path)
    assert not manager.ready
    with pytest.raises(ScanError):
        manager.current()


def test_rescan_installs_new_snapshot(tmp_path):
    lib = tmp_path / "lib"
    _create_cbz(lib / "one.cbz")
    manager = _make_manager(tmp_path, lib)

    first = manager.rescan()
    assert manager.current() is first
    assert len(first.comics) == 1

    _create_cbz(lib / "two.cbz")
    second = manager.rescan()

    assert manager.current() is second
    assert len(second.comics) == 2
    # The old snapshot is untouched.
    assert len(first.comics) == 1


def test_failed_rescan_keeps_previous_snapshot(tmp_path):
    lib = tmp_path / "lib"
    _create_cbz(lib / "one.cbz")
    manager = _make_manager(tmp_path, lib)
    before = manager.rescan()

    shutil.rmtree(lib)
    with pytest.raises(ScanError):
        manager.rescan()

    assert manager.current() is before


def test_readers_never_see_a_partial_index(tmp_path):
    lib = tmp_path / "lib"
    for i in range(5):
        _create_cbz(lib / f"old_{i}.cbz")
    manager = _make_manager(tmp_path, lib)
    manager.rescan()

    for i in range(5):
        _create_cbz(lib / f"new_{i}.cbz")

    errors = []
    stop = threading.Event()

    def reader():
        while not stop.is_set():
            index = manager.current()
            ids = list(index.by_id)
            # Every id listed must resolve in the same snapshot.
            if any(index.get(i) is None for i in ids):
                errors.append("torn read")
            count = len(index.comics)
            if count not in (5, 10):
                errors.append(f"unexpected comic count {count}")

    threads = [threading.Thread(target=reader) for _ in range(4)]
    for t in threads:
        t.start()
    for _ in range(3):
        manager.rescan()
    stop.set()
    for t in threads:
        t.join()

    assert errors == []
    assert len(manager.current().comics) == 10


def test_periodic_worker_rescans(tmp_path):
    lib = tmp_path / "lib"
    _create_cbz(lib / "one.cbz")
    manager = _make_manager(tmp_path, lib)
    first = manager.rescan()

    manager.start(interval_seconds=1)
    try:
        deadline = time.time() + 10
        while manager.current() is first and time.time() < deadline:
            time.sleep(0.1)
    finally:
        manager.stop(timeout=5)

    assert manager.current() is not first


def test_start_with_non_positive_interval_is_disabled(tmp_path):
    manager = _make_manager(tmp_path, tmp_path)
    assert manager.start(0) is None
    assert manager.start(-5) is None


def test_periodic_worker_survives_scan_errors(tmp_path):
    lib = tmp_path / "lib"
    _create_cbz(lib / "one.cbz")
    manager = _make_manager(tmp_path, lib)
    before = manager.rescan()
    shutil.rmtree(lib)

    worker = manager.start(interval_seconds=1)
    time.sleep(1.5)
    try:
        assert worker.is_alive()
        assert manager.current() is before
    finally:
        manager.stop(timeout=5)

"""Tests for the web reader endpoints."""

import io
import zipfile
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from PIL import Image

from server.app import app
from server.index import IndexManager
from server.models import path_id
from server.scanner import CollectionScanner
from server.thumbnails import ThumbnailCache


def _image_bytes(color="red", fmt="JPEG") -> bytes:
    img = Image.new("RGB", (40, 60), color=color)
    out = io.BytesIO()
    img.save(out, format=fmt)
    return out.getvalue()


def _create_cbz(path: Path, members: dict) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with zipfile.ZipFile(path, "w") as zf:
        for name, data in members.items():
            zf.writestr(name, data)


@pytest.fixture
def library(tmp_path):
    lib = tmp_path / "comics"
    _create_cbz(
        lib / "Foo_Bar.cbz",
        {"003.jpg": _image_bytes(), "001.jpg": _image_bytes("blue"), "002.png": _image_bytes(fmt="PNG")},
    )
    _create_cbz(lib / "Marvel" / "x-men_1.cbz", {"01.jpg": _image_bytes()})
    return lib.resolve()


@pytest.fixture
def manager(tmp_path, library):
    scanner = CollectionScanner(ThumbnailCache(tmp_path / "cache", height=100))
    manager = IndexManager(scanner, library)
    manager.rescan()
    return manager


@pytest.fixture
def client(manager, monkeypatch):
    monkeypatch.setattr(app.state, "manager", manager, raising=False)
    return TestClient(app)


def _hex(path: Path) -> str:
    return f"{path_id(path):08x}"


def test_root_redirects_to_albums(client):
    response = client.get("/", follow_redirects=False)
    assert response.status_code == 302
    assert response.headers["location"] == "/reader/albums"


def test_root_listing(client):
    response = client.get("/reader/albums")
    assert response.status_code == 200
    body = response.json()

    assert body["folder"] is None
    assert body["parent"] is None
    assert [(i["title"], i["is_folder"]) for i in body["items"]] == [
        ("Foo Bar", False),
        ("Marvel", True),
    ]
    assert body["items"][0]["page_count"] == 3


def test_folder_listing(client, library):
    folder = _hex(library / "Marvel")
    response = client.get("/reader/albums", params={"folder": folder})
    assert response.status_code == 200
    body = response.json()

    assert body["folder"] == folder
    assert body["parent"] is None
    assert [i["title"] for i in body["items"]] == ["X-Men 1"]


def test_unknown_folder_is_404(client):
    assert client.get("/reader/albums", params={"folder": "deadbeef"}).status_code == 404
    assert client.get("/reader/albums", params={"folder": "not-hex"}).status_code == 404


def test_album_info(client, library):
    album = _hex(library / "Marvel" / "x-men_1.cbz")
    response = client.get(f"/reader/albums/{album}")
    assert response.status_code == 200
    body = response.json()

    assert body["id"] == album
    assert body["title"] == "X-Men 1"
    assert body["page_count"] == 1
    assert body["folder"] == _hex(library / "Marvel")
    assert body["first_page_url"].endswith(f"/reader/albums/{album}/pages/0")


def test_album_info_for_folder_is_404(client, library):
    assert client.get(f"/reader/albums/{_hex(library / 'Marvel')}").status_code == 404


def test_first_page_is_first_sorted_name(client, library):
    album = _hex(library / "Foo_Bar.cbz")
    response = client.get(f"/reader/albums/{album}/pages/0")

    assert response.status_code == 200
    assert response.headers["content-type"] == "image/jpeg"
    with zipfile.ZipFile(library / "Foo_Bar.cbz") as zf:
        assert response.content == zf.read("001.jpg")


def test_png_page_content_type(client, library):
    album = _hex(library / "Foo_Bar.cbz")
    response = client.get(f"/reader/albums/{album}/pages/1")
    assert response.status_code == 200
    assert response.headers["content-type"] == "image/png"


def test_page_out_of_range_is_404(client, library):
    album = _hex(library / "Foo_Bar.cbz")
    assert client.get(f"/reader/albums/{album}/pages/5").status_code == 404
    assert client.get(f"/reader/albums/{album}/pages/-1").status_code == 404


def test_unknown_album_is_404(client):
    assert client.get("/reader/albums/0000abcd/pages/0").status_code == 404
    assert client.get("/reader/albums/0000abcd").status_code == 404


def test_deleted_archive_page_is_404(client, library):
    album = _hex(library / "Foo_Bar.cbz")
    (library / "Foo_Bar.cbz").unlink()
    assert client.get(f"/reader/albums/{album}/pages/0").status_code == 404


def test_corrupt_archive_page_is_500(client, library):
    album = _hex(library / "Foo_Bar.cbz")
    (library / "Foo_Bar.cbz").write_bytes(b"overwritten with garbage")
    assert client.get(f"/reader/albums/{album}/pages/0").status_code == 500


def test_covers(client, library):
    comic = client.get(f"/reader/covers/{_hex(library / 'Foo_Bar.cbz')}")
    assert comic.status_code == 200
    assert comic.headers["content-type"] == "image/jpeg"

    folder = client.get(f"/reader/covers/{_hex(library / 'Marvel')}")
    assert folder.status_code == 200
    assert folder.headers["content-type"] == "image/png"

    assert client.get("/reader/covers/0000abcd").status_code == 404


def test_service_unavailable_before_first_scan(tmp_path, monkeypatch):
    scanner = CollectionScanner(ThumbnailCache(tmp_path / "cache", height=100))
    monkeypatch.setattr(app.state, "manager", IndexManager(scanner, tmp_path), raising=False)

    response = TestClient(app).get("/reader/albums")
    assert response.status_code == 503


def test_album_info_for_unreadable_archive_is_500(client, manager, library):
    (library / "broken.cbz").write_bytes(b"not an archive")
    manager.rescan()

    album = _hex(library / "broken.cbz")
    assert client.get(f"/reader/albums/{album}").status_code == 500

    (library / "broken.cbz").unlink()
    assert client.get(f"/reader/albums/{album}").status_code == 404

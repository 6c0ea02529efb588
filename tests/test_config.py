"""Tests for config.ini loading."""

import pytest

from server.config import load_config, write_default_config


def test_write_then_load_default_config(tmp_path):
    config_path = tmp_path / "config.ini"
    write_default_config(config_path, tmp_path / "comics", "Test Library")

    config = load_config(config_path)

    assert config.library_path == tmp_path / "comics"
    assert config.library.name == "Test Library"
    assert config.server_port == 4531
    assert config.thumbnails.height == 400
    assert config.thumbnails.cache_dir is None
    assert config.scanner.supported_formats == ("cbz", "cbr")
    assert config.scanner.rescan_interval == 300
    assert config.monitoring.enabled is False


def test_missing_sections_fall_back_to_defaults(tmp_path):
    config_path = tmp_path / "config.ini"
    config_path.write_text(
        "[library]\npath = /srv/comics\n\n[thumbnails]\nheight = 250\ncache_dir = /tmp/thumbs\n"
    )

    config = load_config(config_path)

    assert str(config.library_path) == "/srv/comics"
    assert config.thumbnails.height == 250
    assert str(config.thumbnails_dir) == "/tmp/thumbs"
    assert config.server_host == "0.0.0.0"
    assert config.monitoring.debounce_seconds == 2


def test_monitoring_flag_and_lists(tmp_path):
    config_path = tmp_path / "config.ini"
    config_path.write_text(
        "[library]\npath = /srv/comics\n\n"
        "[scanner]\nsupported_formats = cbz\nignore_patterns = @eaDir , .git\n\n"
        "[monitoring]\nenabled = yes\n"
    )

    config = load_config(config_path)

    assert config.scanner.supported_formats == ("cbz",)
    assert config.scanner.ignore_patterns == ("@eaDir", ".git")
    assert config.monitoring.enabled is True


@pytest.mark.parametrize("height", [50, 5000])
def test_thumbnail_height_out_of_range(tmp_path, height):
    config_path = tmp_path / "config.ini"
    config_path.write_text(f"[library]\npath = /srv/comics\n\n[thumbnails]\nheight = {height}\n")

    with pytest.raises(ValueError):
        load_config(config_path)


def test_missing_config_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "absent.ini")

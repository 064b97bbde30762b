"""Tests for internal modules."""

from __future__ import annotations

import io
import logging
import sys

import pytest

from shellydeck.config import (
    DatabaseConfig,
    FetchConfig,
    LoadingConfig,
    Settings,
    TuiConfig,
    get_settings,
    load_settings,
    log_file_from_settings,
    write_settings,
)
from shellydeck.storage import Database
from shellydeck.utils.logging import logging_to, setup_logging


def test_config_roundtrip(tmp_path):
    path = tmp_path / "config.toml"
    settings = Settings(
        database=DatabaseConfig(path=str(tmp_path / "data")),
        loading=LoadingConfig(wave_size=3, wave_delay=0.5),
        tui=TuiConfig(log_file="~/shellydeck.log"),
    )
    write_settings(settings, path)

    loaded = load_settings(path)
    assert loaded == settings
    assert loaded.loading.wave_size == 3


@pytest.mark.parametrize(
    ("text", "message"),
    [
        ("[loading]\nwave_size = 0\n", "Invalid config file"),
        ("[loading]\nwaves = 3\n", "Invalid config file"),
        ("[fetch]\ndevice_timeout = 5.0\noverall_timeout = 1.0\n", "overall_timeout"),
        ("[loading\n", "Invalid TOML"),
    ],
)
def test_invalid_config(tmp_path, text, message):
    path = tmp_path / "config.toml"
    path.write_text(text)

    with pytest.raises(ValueError, match=message):
        load_settings(path)


def test_config_env_var_must_point_to_a_file(tmp_path, monkeypatch):
    monkeypatch.setenv("SHELLYDECK_CONFIG", str(tmp_path / "missing.toml"))

    with pytest.raises(FileNotFoundError):
        get_settings()


def test_timeouts_are_validated():
    with pytest.raises(ValueError):
        Settings(fetch=FetchConfig(device_timeout=5.0, overall_timeout=1.0))


def test_log_file_location(tmp_path):
    settings = Settings(database=DatabaseConfig(path=str(tmp_path)))
    assert log_file_from_settings(settings) == tmp_path / "tui.log"

    custom = Settings(tui=TuiConfig(log_file=str(tmp_path / "logs" / "deck.log")))
    assert log_file_from_settings(custom) == tmp_path / "logs" / "deck.log"


def test_device_registry_crud(tmp_path):
    db = Database(tmp_path)

    db.add_device("kitchen", "10.0.0.3", generation=1, push=False, notes='Above "sink"')
    registry = db.load_devices()
    device = registry.devices["kitchen"]
    assert device.address == "10.0.0.3"
    assert device.generation == 1
    assert device.push is False
    assert device.notes == 'Above "sink"'
    assert device.supports_push is False

    db.add_device("kitchen", "10.0.0.4")
    assert db.load_devices().devices["kitchen"].address == "10.0.0.4"

    assert db.remove_device("kitchen") is True
    assert db.remove_device("kitchen") is False
    assert db.load_devices().devices == {}


def test_init_creates_empty_registry(tmp_path):
    db = Database(tmp_path / "data")
    db.init()

    assert db.devices_path.exists()
    assert db.load_devices().devices == {}


@pytest.mark.parametrize(
    ("text", "message"),
    [
        ("[devices]\nplug = { generation = 2 }\n", "Invalid devices file"),
        ("[devices]\nplug = { address = \"10.0.0.5\", colour = \"red\" }\n", "Invalid devices file"),
        ("devices = 3\n", "must be a table"),
        ("[devices\n", "Invalid TOML"),
    ],
)
def test_invalid_devices_file(tmp_path, text, message):
    db = Database(tmp_path)
    db.devices_path.write_text(text)

    with pytest.raises(ValueError, match=message):
        db.load_devices()


def test_logging_setup_quiets_noisy_libraries():
    setup_logging("DEBUG")

    assert logging.getLogger().level == logging.DEBUG
    assert logging.getLogger("aiohttp").level == logging.WARNING
    assert logging.getLogger("zeroconf").level == logging.WARNING


def test_logging_to_stream_is_temporary():
    setup_logging("INFO")
    buffer = io.StringIO()

    with logging_to(buffer):
        logging.getLogger("shellydeck.test").info("inside the console")
        terminal = [
            h
            for h in logging.getLogger().handlers
            if isinstance(h, logging.StreamHandler) and h.stream is sys.stderr
        ]
        assert terminal == []

    logging.getLogger("shellydeck.test").info("after the console")

    assert "inside the console" in buffer.getvalue()
    assert "after the console" not in buffer.getvalue()
    assert not any(
        isinstance(h, logging.StreamHandler) and h.stream is buffer
        for h in logging.getLogger().handlers
    )

"""Tests for platform data directory resolution."""

from pathlib import Path

import platformdirs

from wpmanager.utils.paths import APP_NAME, ensure_data_dir, get_data_dir, get_default_db_path


def test_default_uses_platformdirs(monkeypatch):
    monkeypatch.delenv("WPMANAGER_DATA_DIR", raising=False)
    expected = Path(platformdirs.user_data_dir(APP_NAME, appauthor=False))
    assert get_data_dir() == expected


def test_override_env_var(monkeypatch, tmp_path):
    monkeypatch.setenv("WPMANAGER_DATA_DIR", str(tmp_path / "state"))
    assert get_data_dir() == tmp_path / "state"
    assert get_default_db_path() == tmp_path / "state" / "wpmanager.db"


def test_blank_override_ignored(monkeypatch):
    monkeypatch.setenv("WPMANAGER_DATA_DIR", "   ")
    assert get_data_dir().name == APP_NAME


def test_ensure_data_dir_creates_directory(monkeypatch, tmp_path):
    target = tmp_path / "a" / "b"
    monkeypatch.setenv("WPMANAGER_DATA_DIR", str(target))

    assert ensure_data_dir() == target
    assert target.is_dir()

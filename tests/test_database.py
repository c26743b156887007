"""Unit tests for the SQLite settings store."""

import os
import sys

import pytest

# Add project root to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import vidquotes.database as db


@pytest.fixture(autouse=True)
def app_home(tmp_path, monkeypatch):
    monkeypatch.setenv("VIDQUOTES_HOME", str(tmp_path / "home"))
    db.init_db()
    return tmp_path / "home"


class TestSettings:

    def test_db_lives_in_app_dir(self, app_home):
        assert db.get_db_path() == os.path.join(str(app_home), db.DB_NAME)
        assert os.path.isfile(db.get_db_path())

    def test_save_and_get(self):
        db.save_setting("output_dir", "/videos")
        assert db.get_setting("output_dir") == "/videos"

    def test_overwrite(self):
        db.save_setting("gemini_api_key", "a")
        db.save_setting("gemini_api_key", "b")
        assert db.get_setting("gemini_api_key") == "b"

    def test_default(self):
        assert db.get_setting("missing", "fallback") == "fallback"

    def test_bulk_save_and_read(self):
        db.save_settings({"output_dir": "/videos", "gemini_api_key": 42})
        settings = db.get_settings({"output_dir": "", "gemini_api_key": "", "extra": "x"})
        assert settings == {"output_dir": "/videos", "gemini_api_key": "42", "extra": "x"}

    def test_delete(self):
        db.save_setting("k", "v")
        db.delete_setting("k")
        assert db.get_setting("k") == ""

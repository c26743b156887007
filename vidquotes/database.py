"""
Vid Quotes - SQLite Settings Store
Persists app settings (output folder, image-service API key) between sessions.
"""

import sqlite3
import os
from contextlib import closing

APP_DIR_NAME = "VidQuotes"
DB_NAME = "vid_quotes.db"

_SCHEMA = """
    CREATE TABLE IF NOT EXISTS settings (
        key TEXT PRIMARY KEY,
        value TEXT DEFAULT ''
    )
"""

_UPSERT = """
    INSERT INTO settings (key, value) VALUES (?, ?)
    ON CONFLICT(key) DO UPDATE SET value = excluded.value
"""


def get_app_dir() -> str:
    """VIDQUOTES_HOME if set, else <APPDATA or home>/VidQuotes. Created on demand."""
    app_dir = os.environ.get("VIDQUOTES_HOME") or os.path.join(
        os.environ.get("APPDATA", os.path.expanduser("~")), APP_DIR_NAME
    )
    os.makedirs(app_dir, exist_ok=True)
    return app_dir


def get_db_path() -> str:
    return os.path.join(get_app_dir(), DB_NAME)


def get_connection():
    conn = sqlite3.connect(get_db_path())
    conn.row_factory = sqlite3.Row
    return conn


def init_db():
    with closing(get_connection()) as conn, conn:
        conn.execute(_SCHEMA)


def save_setting(key, value):
    save_settings({key: value})


def save_settings(values: dict):
    """Upsert several settings in one transaction. Values are stored as text."""
    with closing(get_connection()) as conn, conn:
        conn.executemany(_UPSERT, [(k, str(v)) for k, v in values.items()])


def get_setting(key, default=""):
    with closing(get_connection()) as conn:
        row = conn.execute("SELECT value FROM settings WHERE key = ?", (key,)).fetchone()
    return row["value"] if row else default


def get_settings(defaults: dict) -> dict:
    """Read every key of ``defaults``; missing keys keep their default."""
    with closing(get_connection()) as conn:
        rows = conn.execute("SELECT key, value FROM settings").fetchall()
    stored = {row["key"]: row["value"] for row in rows}
    return {k: stored.get(k, v) for k, v in defaults.items()}


def delete_setting(key):
    with closing(get_connection()) as conn, conn:
        conn.execute("DELETE FROM settings WHERE key = ?", (key,))

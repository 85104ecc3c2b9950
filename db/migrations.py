"""SQLite migrations for the song library."""

from __future__ import annotations

import sqlite3


def ensure_song_metadata_table(conn: sqlite3.Connection) -> None:
    """Ensure the song_metadata table and its indexes exist."""
    cur = conn.cursor()
    cur.execute(
        """
        CREATE TABLE IF NOT EXISTS song_metadata (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            user_id TEXT NOT NULL,
            file_name TEXT NOT NULL,
            title TEXT NOT NULL,
            artist TEXT NOT NULL,
            album TEXT,
            release_date TEXT,
            duration INTEGER,
            genres TEXT,
            popularity INTEGER,
            spotify_id TEXT,
            album_cover_url TEXT,
            artist_image_url TEXT,
            artist_id TEXT,
            album_id TEXT,
            youtube_url TEXT,
            created_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now')),
            updated_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now')),
            UNIQUE (user_id, file_name)
        )
        """
    )
    cur.execute(
        "CREATE INDEX IF NOT EXISTS idx_song_metadata_user "
        "ON song_metadata (user_id, created_at DESC)"
    )
    _ensure_column(conn, "song_metadata", "youtube_url", "TEXT")
    conn.commit()


def _ensure_column(conn: sqlite3.Connection, table: str, column: str, ddl_type: str) -> None:
    existing = {row[1] for row in conn.execute(f"PRAGMA table_info({table})").fetchall()}
    if column not in existing:
        conn.execute(f"ALTER TABLE {table} ADD COLUMN {column} {ddl_type}")

"""Persistence for imported song metadata."""

from __future__ import annotations

import json
import os
import sqlite3
from datetime import datetime, timezone
from typing import Any, Mapping

from db.migrations import ensure_song_metadata_table

_DEFAULT_DB_ENV_KEY = "SONGIMPORT_DB_PATH"

_INSERT_COLUMNS = (
    "user_id",
    "file_name",
    "title",
    "artist",
    "album",
    "release_date",
    "duration",
    "genres",
    "popularity",
    "spotify_id",
    "album_cover_url",
    "artist_image_url",
    "artist_id",
    "album_id",
    "youtube_url",
)
_REQUIRED_COLUMNS = ("user_id", "file_name", "title", "artist")
# Columns a user edit may touch; ownership and identity stay fixed.
UPDATABLE_COLUMNS = frozenset(
    {
        "title",
        "artist",
        "album",
        "release_date",
        "duration",
        "genres",
        "popularity",
        "spotify_id",
        "album_cover_url",
        "artist_image_url",
        "artist_id",
        "album_id",
    }
)


def _resolve_db_path() -> str:
    return os.environ.get(_DEFAULT_DB_ENV_KEY, os.path.join(os.getcwd(), "songimport.sqlite3"))


def _utc_now() -> str:
    # Same millisecond format as the column defaults so values sort as text.
    now = datetime.now(timezone.utc)
    return now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"


def _encode_value(column: str, value: Any) -> Any:
    if column == "genres" and value is not None and not isinstance(value, str):
        return json.dumps(list(value))
    return value


def _row_to_dict(row: sqlite3.Row) -> dict[str, Any]:
    record = dict(row)
    raw_genres = record.get("genres")
    if raw_genres:
        try:
            record["genres"] = json.loads(raw_genres)
        except ValueError:
            record["genres"] = [raw_genres]
    else:
        record["genres"] = []
    return record


class SongMetadataStore:
    """SQLite-backed store for the ``song_metadata`` table."""

    def __init__(self, db_path: str | None = None) -> None:
        self.db_path = db_path or _resolve_db_path()
        parent = os.path.dirname(os.path.abspath(self.db_path))
        if parent:
            os.makedirs(parent, exist_ok=True)
        conn = self._connect()
        conn.close()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, check_same_thread=False, timeout=30)
        conn.row_factory = sqlite3.Row
        ensure_song_metadata_table(conn)
        return conn

    def insert(self, record: Mapping[str, Any]) -> int:
        """Insert a song row and return its generated id."""
        missing = [col for col in _REQUIRED_COLUMNS if not str(record.get(col) or "").strip()]
        if missing:
            raise ValueError(f"missing required fields: {', '.join(missing)}")
        values = [_encode_value(col, record.get(col)) for col in _INSERT_COLUMNS]
        placeholders = ", ".join("?" for _ in _INSERT_COLUMNS)
        conn = self._connect()
        try:
            cur = conn.cursor()
            cur.execute(
                f"INSERT INTO song_metadata ({', '.join(_INSERT_COLUMNS)}) VALUES ({placeholders})",
                values,
            )
            conn.commit()
            return int(cur.lastrowid)
        finally:
            conn.close()

    def update(self, song_id: int, partial: Mapping[str, Any], *, user_id: str | None = None) -> dict[str, Any] | None:
        """Apply whitelisted fields from ``partial``; return the updated row or None."""
        fields = {key: value for key, value in (partial or {}).items() if key in UPDATABLE_COLUMNS}
        for required in ("title", "artist"):
            if required in fields and not str(fields[required] or "").strip():
                raise ValueError(f"{required} must not be empty")
        assignments = [f"{col}=?" for col in fields]
        params: list[Any] = [_encode_value(col, value) for col, value in fields.items()]
        assignments.append("updated_at=?")
        params.append(_utc_now())
        where = "id=?"
        params.append(int(song_id))
        if user_id is not None:
            where += " AND user_id=?"
            params.append(user_id)
        conn = self._connect()
        try:
            cur = conn.cursor()
            cur.execute(f"UPDATE song_metadata SET {', '.join(assignments)} WHERE {where}", params)
            conn.commit()
            if cur.rowcount == 0:
                return None
        finally:
            conn.close()
        return self.get(song_id)

    def get(self, song_id: int) -> dict[str, Any] | None:
        conn = self._connect()
        try:
            cur = conn.cursor()
            cur.execute("SELECT * FROM song_metadata WHERE id=?", (int(song_id),))
            row = cur.fetchone()
            return _row_to_dict(row) if row else None
        finally:
            conn.close()

    def list_for_user(self, user_id: str) -> list[dict[str, Any]]:
        conn = self._connect()
        try:
            cur = conn.cursor()
            cur.execute(
                "SELECT * FROM song_metadata WHERE user_id=? ORDER BY created_at DESC, id DESC",
                (user_id,),
            )
            return [_row_to_dict(row) for row in cur.fetchall()]
        finally:
            conn.close()

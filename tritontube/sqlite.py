"""Video metadata kept in a SQLite database."""

from __future__ import annotations

import sqlite3
import threading
from datetime import datetime, timezone

from tritontube.models import VideoMetadata, VideoMetadataService, VideoNotFoundError

_SCHEMA = """
CREATE TABLE IF NOT EXISTS videos (
    id TEXT PRIMARY KEY,
    uploaded_at DATETIME NOT NULL
)
"""


def _format(moment: datetime) -> str:
    return moment.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _parse(text: str) -> datetime:
    try:
        moment = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        moment = None
    if moment is None or moment.tzinfo is None:
        raise ValueError(f"parse uploaded time failed: {text}")
    return moment


class SQLiteVideoMetadataService(VideoMetadataService):
    """Metadata service backed by one SQLite database."""

    def __init__(self, dsn: str) -> None:
        self._lock = threading.Lock()
        self._db = sqlite3.connect(
            dsn, check_same_thread=False, uri=dsn.startswith("file:")
        )
        try:
            self._db.execute("PRAGMA busy_timeout = 5000")
            with self._db:
                self._db.execute(_SCHEMA)
        except sqlite3.Error:
            self._db.close()
            raise

    def create(self, video_id: str, uploaded_at: datetime) -> None:
        with self._lock, self._db:
            self._db.execute(
                "INSERT INTO videos (id, uploaded_at) VALUES (?, ?)",
                (video_id, _format(uploaded_at)),
            )

    def list(self) -> list[VideoMetadata]:
        with self._lock:
            rows = self._db.execute(
                "SELECT id, uploaded_at FROM videos ORDER BY uploaded_at DESC"
            ).fetchall()
        return [VideoMetadata(video_id, _parse(stamp)) for video_id, stamp in rows]

    def read(self, video_id: str) -> VideoMetadata:
        with self._lock:
            row = self._db.execute(
                "SELECT id, uploaded_at FROM videos WHERE id = ?", (video_id,)
            ).fetchone()
        if row is None:
            raise VideoNotFoundError(video_id, "no rows in result set")
        return VideoMetadata(row[0], _parse(row[1]))

    def close(self) -> None:
        with self._lock:
            self._db.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
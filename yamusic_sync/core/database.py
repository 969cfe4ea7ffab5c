"""
Thread-safe SQLite database for yamusic-sync.

One table per record kind, keyed by the remote Yandex Music ID.

Schema:
    artists:    Artist metadata, overwritten on every sync
    tracks:     One row per unique track id (metadata + local file path)

Every write is a single atomic upsert (INSERT ... ON CONFLICT DO UPDATE),
so two callers saving the same record can never collide on a duplicate
insert. A failure in the middle of a batch leaves earlier writes in place;
each save commits on its own.

Usage:
    db = Database(output_dir / "database.db")

    db.save_artist(artist.to_database_dict())
    for row in db.get_artist_tracks(artist.id):
        print(row["title"], row["local_path"])
"""

import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Generator

from yamusic_sync.core.exceptions import StorageError
from yamusic_sync.core.logger import get_logger

logger = get_logger(__name__)


DATABASE_VERSION = 1

ARTIST_COLUMNS = (
    "id", "name", "subscribers_count", "monthly_listeners",
    "albums_count", "tracks_count", "cover_url",
)

TRACK_COLUMNS = (
    "id", "artist_id", "title", "duration_seconds",
    "album_id", "album_title", "cover_url", "local_path",
)


_SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY
);

CREATE TABLE IF NOT EXISTS artists (
    id INTEGER PRIMARY KEY,
    name TEXT NOT NULL,
    subscribers_count INTEGER NOT NULL DEFAULT 0,
    monthly_listeners INTEGER NOT NULL DEFAULT 0,
    albums_count INTEGER NOT NULL DEFAULT 0,
    tracks_count INTEGER NOT NULL DEFAULT 0,
    cover_url TEXT,
    created_at TEXT,
    updated_at TEXT
);

CREATE TABLE IF NOT EXISTS tracks (
    id INTEGER PRIMARY KEY,
    artist_id INTEGER NOT NULL,
    title TEXT NOT NULL,
    duration_seconds REAL NOT NULL DEFAULT 0,
    album_id INTEGER,
    album_title TEXT,
    cover_url TEXT,
    local_path TEXT,
    created_at TEXT,
    updated_at TEXT,
    FOREIGN KEY (artist_id) REFERENCES artists(id)
);

CREATE INDEX IF NOT EXISTS idx_tracks_artist_id ON tracks(artist_id);
"""


class Database:
    """
    Thread-safe SQLite store for artists and tracks.

    Uses a single persistent connection with a lock.
    All public methods acquire self._lock before executing.

    Rows are exchanged as plain dicts in the storage shape
    (see ARTIST_COLUMNS / TRACK_COLUMNS).
    """

    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path
        self._lock = threading.Lock()
        self._conn: sqlite3.Connection | None = None

        if not db_path.parent.exists():
            raise StorageError(
                f"Parent directory does not exist: {db_path.parent}",
                details={"path": str(db_path.parent)}
            )

        try:
            self._init_database()
        except sqlite3.Error as e:
            raise StorageError(
                f"Failed to initialize database: {e}",
                details={"path": str(db_path), "original_error": str(e)}
            ) from e

    @contextmanager
    def _get_connection(self) -> Generator[sqlite3.Connection, None, None]:
        """
        Yield the persistent connection, creating it on first use.

        The connection is not closed on exit; close() does that.
        """
        if self._conn is None:
            self._conn = sqlite3.connect(
                str(self.db_path),
                timeout=30.0,
                check_same_thread=False  # Thread safety comes from _lock
            )
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA foreign_keys = ON")
            self._conn.execute("PRAGMA journal_mode = WAL")
        yield self._conn

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    def __enter__(self) -> "Database":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _init_database(self) -> None:
        with self._get_connection() as conn:
            conn.executescript(_SCHEMA_SQL)

            cursor = conn.execute("SELECT version FROM schema_version LIMIT 1")
            row = cursor.fetchone()

            if row is None:
                conn.execute("INSERT INTO schema_version (version) VALUES (?)", (DATABASE_VERSION,))
            elif row[0] != DATABASE_VERSION:
                raise StorageError(
                    f"Database version mismatch: expected {DATABASE_VERSION}, got {row[0]}",
                    details={"expected": DATABASE_VERSION, "actual": row[0]}
                )
            conn.commit()

    def _now_iso(self) -> str:
        return datetime.now(timezone.utc).isoformat()

    def _execute_write(self, operation: str, sql: str, params: tuple, details: dict) -> None:
        """Run one write statement and commit, wrapping sqlite errors."""
        with self._lock:
            try:
                with self._get_connection() as conn:
                    conn.execute(sql, params)
                    conn.commit()
            except sqlite3.Error as e:
                if self._conn is not None:
                    self._conn.rollback()
                raise StorageError(
                    f"Failed to {operation}: {e}",
                    details={**details, "original_error": str(e)}
                ) from e

    def _fetch(self, operation: str, sql: str, params: tuple, details: dict) -> list[sqlite3.Row]:
        """Run one read statement, wrapping sqlite errors."""
        with self._lock:
            try:
                with self._get_connection() as conn:
                    return conn.execute(sql, params).fetchall()
            except sqlite3.Error as e:
                raise StorageError(
                    f"Failed to {operation}: {e}",
                    details={**details, "original_error": str(e)}
                ) from e

    # =========================================================================
    # Artists
    # =========================================================================

    def save_artist(self, artist_data: dict[str, Any]) -> None:
        """
        Insert or fully replace an artist row.

        All metadata columns are overwritten (no field-by-field merge).
        created_at is kept from the first insert.
        """
        now = self._now_iso()
        self._execute_write(
            "save artist",
            """
            INSERT INTO artists (
                id, name, subscribers_count, monthly_listeners,
                albums_count, tracks_count, cover_url, created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                name = excluded.name,
                subscribers_count = excluded.subscribers_count,
                monthly_listeners = excluded.monthly_listeners,
                albums_count = excluded.albums_count,
                tracks_count = excluded.tracks_count,
                cover_url = excluded.cover_url,
                updated_at = excluded.updated_at
            """,
            tuple(artist_data.get(column) for column in ARTIST_COLUMNS) + (now, now),
            {"artist_id": artist_data.get("id")}
        )

    def get_artist(self, artist_id: int) -> dict[str, Any] | None:
        """Get an artist row by its Yandex ID."""
        rows = self._fetch(
            "get artist",
            f"SELECT {', '.join(ARTIST_COLUMNS)} FROM artists WHERE id = ?",
            (artist_id,),
            {"artist_id": artist_id}
        )
        return dict(rows[0]) if rows else None

    # =========================================================================
    # Tracks
    # =========================================================================

    def save_track(self, track_data: dict[str, Any]) -> None:
        """
        Insert or replace a track row.

        Metadata is overwritten. A NULL local_path never erases a path that
        is already stored, so a file downloaded earlier stays referenced.

        Raises:
            StorageError: Including when the owning artist is not stored yet
                          (foreign key violation).
        """
        now = self._now_iso()
        self._execute_write(
            "save track",
            """
            INSERT INTO tracks (
                id, artist_id, title, duration_seconds, album_id,
                album_title, cover_url, local_path, created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                artist_id = excluded.artist_id,
                title = excluded.title,
                duration_seconds = excluded.duration_seconds,
                album_id = excluded.album_id,
                album_title = excluded.album_title,
                cover_url = excluded.cover_url,
                local_path = COALESCE(excluded.local_path, tracks.local_path),
                updated_at = excluded.updated_at
            """,
            tuple(track_data.get(column) for column in TRACK_COLUMNS) + (now, now),
            {"track_id": track_data.get("id"), "artist_id": track_data.get("artist_id")}
        )

    def get_track(self, track_id: int) -> dict[str, Any] | None:
        """Get a track row by its Yandex ID, whatever artist owns it."""
        rows = self._fetch(
            "get track",
            f"SELECT {', '.join(TRACK_COLUMNS)} FROM tracks WHERE id = ?",
            (track_id,),
            {"track_id": track_id}
        )
        return dict(rows[0]) if rows else None

    def get_artist_tracks(self, artist_id: int) -> list[dict[str, Any]]:
        """Get all tracks of an artist, oldest insert first."""
        rows = self._fetch(
            "get artist tracks",
            f"""
            SELECT {', '.join(TRACK_COLUMNS)} FROM tracks
            WHERE artist_id = ?
            ORDER BY created_at, id
            """,
            (artist_id,),
            {"artist_id": artist_id}
        )
        return [dict(row) for row in rows]

    # =========================================================================
    # Diagnostics
    # =========================================================================

    def list_tables(self) -> list[str]:
        rows = self._fetch(
            "list tables",
            "SELECT name FROM sqlite_master WHERE type = 'table' ORDER BY name",
            (),
            {}
        )
        return [row[0] for row in rows]

    def get_stats(self) -> dict[str, int]:
        """
        Get global statistics.

        Returns:
            Dict with keys: artists, tracks, downloaded_tracks
        """
        rows = self._fetch(
            "get stats",
            """
            SELECT
                (SELECT COUNT(*) FROM artists) AS artists,
                (SELECT COUNT(*) FROM tracks) AS tracks,
                (SELECT COUNT(*) FROM tracks WHERE local_path IS NOT NULL) AS downloaded_tracks
            """,
            (),
            {}
        )
        return dict(rows[0])

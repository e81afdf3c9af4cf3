"""SQLite backed persistence for audio uploads and generated content."""

from __future__ import annotations

import json
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, Optional

from .models import AudioRecord, ContentData

APP_DIR = Path.home() / ".voiceframe"
DB_PATH = APP_DIR / "voiceframe.db"
SCHEMA_VERSION = 1


class StorageError(RuntimeError):
    """Raised when something goes wrong while accessing the storage."""


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class Storage:
    """Manage persistence of audio records and study content using SQLite."""

    def __init__(self, db_path: Optional[Path] = None) -> None:
        self.db_path = db_path or DB_PATH
        self._ensure_initialised()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    def _ensure_initialised(self) -> None:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS audio_files (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    title TEXT NOT NULL,
                    original_filename TEXT NOT NULL,
                    audio_path TEXT,
                    transcript TEXT NOT NULL,
                    duration TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    metadata TEXT NOT NULL
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS learning_content (
                    audio_file_id INTEGER PRIMARY KEY
                        REFERENCES audio_files(id) ON DELETE CASCADE,
                    content TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS metadata (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                )
                """
            )
            cur = conn.execute("SELECT value FROM metadata WHERE key = ?", ("schema_version",))
            row = cur.fetchone()
            if row is None:
                conn.execute(
                    "INSERT INTO metadata(key, value) VALUES(?, ?)",
                    ("schema_version", str(SCHEMA_VERSION)),
                )

    def add_audio(
        self,
        title: str,
        transcript: str,
        original_filename: str,
        duration: str = "Unknown",
        audio_path: Optional[Path] = None,
        metadata: Optional[dict] = None,
    ) -> AudioRecord:
        now = _now()
        with self._connect() as conn:
            cur = conn.execute(
                """
                INSERT INTO audio_files(
                    title, original_filename, audio_path, transcript, duration, created_at, updated_at, metadata
                )
                VALUES(?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    title,
                    original_filename,
                    str(audio_path) if audio_path else None,
                    transcript,
                    duration,
                    now,
                    now,
                    json.dumps(metadata or {}),
                ),
            )
            audio_id = cur.lastrowid
        return self.get_audio(audio_id)

    def list_audio(self) -> Iterator[AudioRecord]:
        with self._connect() as conn:
            conn.row_factory = sqlite3.Row
            for row in conn.execute("SELECT * FROM audio_files ORDER BY created_at DESC, id DESC"):
                yield _row_to_record(row)

    def get_audio(self, audio_id: int) -> AudioRecord:
        with self._connect() as conn:
            conn.row_factory = sqlite3.Row
            cur = conn.execute("SELECT * FROM audio_files WHERE id = ?", (audio_id,))
            row = cur.fetchone()
            if row is None:
                raise StorageError(f"Audio file with id {audio_id} not found")
            return _row_to_record(row)

    def delete_audio(self, audio_id: int) -> None:
        with self._connect() as conn:
            cur = conn.execute("DELETE FROM audio_files WHERE id = ?", (audio_id,))
            if cur.rowcount == 0:
                raise StorageError(f"Audio file with id {audio_id} not found")

    def save_content(self, audio_id: int, content: ContentData) -> ContentData:
        self.get_audio(audio_id)
        now = _now()
        payload = json.dumps(content.to_dict())
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO learning_content(audio_file_id, content, created_at, updated_at)
                VALUES(?, ?, ?, ?)
                ON CONFLICT(audio_file_id) DO UPDATE SET content = excluded.content, updated_at = excluded.updated_at
                """,
                (audio_id, payload, now, now),
            )
        return content

    def get_content(self, audio_id: int) -> ContentData:
        with self._connect() as conn:
            cur = conn.execute("SELECT content FROM learning_content WHERE audio_file_id = ?", (audio_id,))
            row = cur.fetchone()
        if row is None:
            raise StorageError(f"Learning content for audio file {audio_id} not found. Generate content first.")
        try:
            payload = json.loads(row[0])
        except json.JSONDecodeError as exc:
            raise StorageError(f"Stored content for audio file {audio_id} is not valid JSON") from exc
        return ContentData.from_dict(payload)


def _row_to_record(row: sqlite3.Row) -> AudioRecord:
    return AudioRecord(
        id=row["id"],
        title=row["title"],
        original_filename=row["original_filename"],
        audio_path=row["audio_path"],
        transcript=row["transcript"],
        duration=row["duration"],
        created_at=datetime.fromisoformat(row["created_at"]),
        updated_at=datetime.fromisoformat(row["updated_at"]),
        metadata=json.loads(row["metadata"] or "{}"),
    )

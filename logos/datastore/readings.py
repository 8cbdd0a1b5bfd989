"""Persistence of readings and of the links between users and readings."""

from __future__ import annotations

import sqlite3
from collections.abc import Sequence
from datetime import datetime, timezone

from logos.datastore.common import (
    NotFoundError,
    _database_errors,
    _decode_time,
    _encode_time,
    validate_uuid,
)
from logos.records import Reading, ReadingFormat

_FIELDS = (
    "id",
    "reading_source_id",
    "author",
    "created_at",
    "content_hash",
    "excerpt",
    "format",
    "published_at",
    "storage_path",
    "title",
)


def _reading_columns(alias: str = "") -> str:
    """Comma-separated reading columns, optionally qualified by a table alias."""
    prefix = f"{alias}." if alias else ""
    return ", ".join(prefix + field for field in _FIELDS)


def _to_reading(row: Sequence, content_body: str = "") -> Reading:
    (
        reading_id,
        source_id,
        author,
        created_at,
        content_hash,
        excerpt,
        reading_format,
        published_at,
        storage_path,
        title,
    ) = row
    return Reading(
        id=reading_id,
        source_id=source_id,
        author=author,
        created_at=_decode_time(created_at),
        content_hash=content_hash,
        content_body=content_body,
        excerpt=excerpt,
        format=ReadingFormat(reading_format),
        published_at=_decode_time(published_at),
        storage_path=storage_path,
        title=title,
    )


class ReadingRepository:
    """Reads and writes the readings and user_readings tables."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def create_reading(self, reading: Reading) -> None:
        """Insert a reading whose ID and other fields the caller has already set."""
        required = (
            reading.id,
            reading.source_id,
            reading.content_hash,
            reading.excerpt,
            reading.storage_path,
            reading.title,
        )
        if not all(required):
            raise ValueError("missing required fields for creating reading")
        validate_uuid(reading.id, "reading ID")
        validate_uuid(reading.source_id, "reading source ID")
        with _database_errors("failed to insert reading"), self._conn:
            self._conn.execute(
                "INSERT INTO readings (id, reading_source_id, author, created_at, "
                "content_hash, content_body, excerpt, format, published_at, "
                "storage_path, title) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    reading.id,
                    reading.source_id,
                    reading.author,
                    _encode_time(reading.created_at),
                    reading.content_hash,
                    reading.content_body,
                    reading.excerpt,
                    ReadingFormat(reading.format).value,
                    _encode_time(reading.published_at),
                    reading.storage_path,
                    reading.title,
                ),
            )

    def get_reading_by_content_hash(self, content_hash: str) -> Reading | None:
        """Return the reading with this SHA-256 hex hash, or ``None`` if it is new."""
        if not content_hash:
            raise ValueError("content hash cannot be empty")
        if len(content_hash) != 64:
            raise ValueError("invalid content hash format (expected 64 hex characters)")
        with _database_errors("failed to get reading by content hash"):
            row = self._conn.execute(
                f"SELECT {_reading_columns()} FROM readings "
                "WHERE content_hash = ? LIMIT 1",
                (content_hash,),
            ).fetchone()
        return None if row is None else _to_reading(row)

    def get_reading_by_id(self, reading_id: str) -> Reading:
        validate_uuid(reading_id, "reading ID")
        with _database_errors("failed to get reading by ID"):
            row = self._conn.execute(
                f"SELECT {_reading_columns()} FROM readings WHERE id = ?",
                (reading_id,),
            ).fetchone()
        if row is None:
            raise NotFoundError(f"reading not found: {reading_id}")
        return _to_reading(row)

    def get_readings(self) -> list[Reading]:
        """Return every reading, newest first."""
        with _database_errors("failed to query readings"):
            rows = self._conn.execute(
                f"SELECT {_reading_columns()} FROM readings ORDER BY created_at DESC"
            ).fetchall()
        return [_to_reading(row) for row in rows]

    def get_readings_by_user_id(self, user_id: str) -> list[Reading]:
        """Return the user's readings, most recently received first."""
        validate_uuid(user_id, "user ID")
        with _database_errors(f"failed to query readings for user {user_id}"):
            rows = self._conn.execute(
                f"SELECT {_reading_columns('r')} FROM readings r "
                "JOIN user_readings ur ON r.id = ur.reading_id "
                "WHERE ur.user_id = ? ORDER BY ur.received_at DESC",
                (user_id,),
            ).fetchall()
        return [_to_reading(row) for row in rows]

    def get_user_readings_since(self, user_id: str, since: datetime) -> list[Reading]:
        """Return the user's readings received after ``since``, oldest first."""
        validate_uuid(user_id, "user ID")
        with _database_errors(
            f"failed to query readings since {since} for user {user_id}"
        ):
            rows = self._conn.execute(
                f"SELECT {_reading_columns('r')} FROM readings r "
                "JOIN user_readings ur ON r.id = ur.reading_id "
                "WHERE ur.user_id = ? AND ur.received_at > ? "
                "ORDER BY ur.received_at ASC",
                (user_id, _encode_time(since)),
            ).fetchall()
        return [_to_reading(row) for row in rows]

    def get_user_readings_since_by_source_ids(
        self, user_id: str, since: datetime, source_ids: Sequence[str]
    ) -> list[Reading]:
        """Like ``get_user_readings_since``, limited to the given sources."""
        validate_uuid(user_id, "user ID")
        source_ids = list(source_ids)
        if not source_ids:
            return []
        placeholders = ", ".join("?" for _ in source_ids)
        with _database_errors(
            f"failed to query readings by source IDs for user {user_id}"
        ):
            rows = self._conn.execute(
                f"SELECT {_reading_columns('r')} FROM readings r "
                "JOIN user_readings ur ON r.id = ur.reading_id "
                "WHERE ur.user_id = ? AND ur.received_at > ? "
                f"AND r.reading_source_id IN ({placeholders}) "
                "ORDER BY ur.received_at ASC",
                (user_id, _encode_time(since), *source_ids),
            ).fetchall()
        return [_to_reading(row) for row in rows]

    def add_user_reading(
        self, user_id: str, reading_id: str, received_at: datetime
    ) -> None:
        """Link a reading to a user; linking it again changes nothing."""
        validate_uuid(user_id, "user ID")
        validate_uuid(reading_id, "reading ID")
        with _database_errors("failed to add user reading link"), self._conn:
            self._conn.execute(
                "INSERT OR IGNORE INTO user_readings "
                "(user_id, reading_id, created_at, received_at) VALUES (?, ?, ?, ?)",
                (
                    user_id,
                    reading_id,
                    _encode_time(datetime.now(timezone.utc)),
                    _encode_time(received_at),
                ),
            )
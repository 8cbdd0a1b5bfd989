"""Persistence of users' subscriptions to reading sources."""

from __future__ import annotations

import sqlite3
from datetime import datetime

from logos.datastore.common import (
    NotFoundError,
    _database_errors,
    _decode_time,
    _encode_time,
    validate_uuid,
)
from logos.records import ReadingSource


def _to_subscribed_source(row: tuple) -> ReadingSource:
    source_id, created_at, name, source_type = row
    return ReadingSource(
        id=source_id,
        created_at=_decode_time(created_at),
        name=name,
        type=source_type,
    )


class UserReadingSourceRepository:
    """Reads and writes the user_reading_sources join table."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def subscribe_user_to_source(
        self, user_id: str, source_id: str, created_at: datetime | None
    ) -> None:
        """Subscribe a user to a source; subscribing again changes nothing."""
        validate_uuid(user_id, "user ID")
        validate_uuid(source_id, "reading source ID")
        if created_at is None:
            raise ValueError("created_at timestamp must be provided")
        with _database_errors(
            f"failed to subscribe user {user_id} to source {source_id}"
        ), self._conn:
            self._conn.execute(
                "INSERT OR IGNORE INTO user_reading_sources "
                "(user_id, reading_source_id, created_at) VALUES (?, ?, ?)",
                (user_id, source_id, _encode_time(created_at)),
            )

    def unsubscribe_user_from_source(self, user_id: str, source_id: str) -> None:
        """Remove a subscription; raise ``NotFoundError`` if there was none."""
        validate_uuid(user_id, "user ID")
        validate_uuid(source_id, "reading source ID")
        with _database_errors(
            f"failed to unsubscribe user {user_id} from source {source_id}"
        ), self._conn:
            cursor = self._conn.execute(
                "DELETE FROM user_reading_sources "
                "WHERE user_id = ? AND reading_source_id = ?",
                (user_id, source_id),
            )
        if cursor.rowcount == 0:
            raise NotFoundError(
                f"no subscription found for user {user_id} and source {source_id} "
                "to unsubscribe, or IDs invalid"
            )

    def get_user_subscribed_sources(self, user_id: str) -> list[ReadingSource]:
        """Return the sources the user is subscribed to, ordered by name."""
        validate_uuid(user_id, "user ID")
        with _database_errors(
            f"failed to query subscribed sources for user {user_id}"
        ):
            rows = self._conn.execute(
                "SELECT rs.id, rs.created_at, rs.name, rs.type "
                "FROM reading_sources rs "
                "JOIN user_reading_sources urs ON rs.id = urs.reading_source_id "
                "WHERE urs.user_id = ? ORDER BY rs.name ASC",
                (user_id,),
            ).fetchall()
        return [_to_subscribed_source(row) for row in rows]

    def is_user_subscribed(self, user_id: str, source_id: str) -> bool:
        validate_uuid(user_id, "user ID")
        validate_uuid(source_id, "reading source ID")
        with _database_errors(
            f"failed to check subscription status for user {user_id} "
            f"and source {source_id}"
        ):
            (exists,) = self._conn.execute(
                "SELECT EXISTS (SELECT 1 FROM user_reading_sources "
                "WHERE user_id = ? AND reading_source_id = ?)",
                (user_id, source_id),
            ).fetchone()
        return bool(exists)
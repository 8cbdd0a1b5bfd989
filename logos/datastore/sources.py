"""Persistence of reading sources."""

from __future__ import annotations

import sqlite3

from logos.datastore.common import (
    NotFoundError,
    _database_errors,
    _decode_time,
    _encode_time,
    validate_uuid,
)
from logos.records import ReadingSource

_COLUMNS = "id, created_at, name, type, identifier"


def _to_source(row: tuple) -> ReadingSource:
    source_id, created_at, name, source_type, identifier = row
    return ReadingSource(
        id=source_id,
        created_at=_decode_time(created_at),
        name=name,
        type=source_type,
        identifier=identifier,
    )


class SourceRepository:
    """Reads and writes the reading_sources table."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def create_reading_source(self, source: ReadingSource) -> None:
        validate_uuid(source.id, "reading source ID")
        if not source.name:
            raise ValueError("reading source name cannot be empty")
        if not source.identifier:
            raise ValueError("reading source identifier cannot be empty")
        with _database_errors("failed to insert reading source"), self._conn:
            self._conn.execute(
                f"INSERT INTO reading_sources ({_COLUMNS}) VALUES (?, ?, ?, ?, ?)",
                (
                    source.id,
                    _encode_time(source.created_at),
                    source.name,
                    source.type,
                    source.identifier,
                ),
            )

    def get_reading_source_by_id(self, source_id: str) -> ReadingSource:
        validate_uuid(source_id, "reading source ID")
        with _database_errors("failed to get reading source by ID"):
            row = self._conn.execute(
                f"SELECT {_COLUMNS} FROM reading_sources WHERE id = ?", (source_id,)
            ).fetchone()
        if row is None:
            raise NotFoundError(f"reading source not found: {source_id}")
        return _to_source(row)

    def get_source_by_identifier_and_type(
        self, identifier: str, source_type: str
    ) -> ReadingSource:
        """Find a source such as a feed by URL or a sender by address."""
        if not identifier:
            raise ValueError("identifier cannot be empty")
        if not source_type:
            raise ValueError("source type cannot be empty")
        with _database_errors("failed to get reading source by identifier and type"):
            row = self._conn.execute(
                f"SELECT {_COLUMNS} FROM reading_sources WHERE identifier = ? AND type = ?",
                (identifier, source_type),
            ).fetchone()
        if row is None:
            raise NotFoundError(
                f"reading source not found for identifier '{identifier}' "
                f"and type '{source_type}'"
            )
        return _to_source(row)

    def get_unassigned_sources_by_user_id(self, user_id: str) -> list[ReadingSource]:
        """Sources that sent the user readings but feed none of the user's templates."""
        validate_uuid(user_id, "user ID")
        with _database_errors(f"failed to query unassigned sources for user {user_id}"):
            rows = self._conn.execute(
                "SELECT DISTINCT rs.id, rs.created_at, rs.name, rs.type, rs.identifier "
                "FROM reading_sources rs "
                "JOIN readings rd ON rd.reading_source_id = rs.id "
                "JOIN user_readings ur ON ur.reading_id = rd.id AND ur.user_id = :user "
                "WHERE rs.id NOT IN ("
                "  SELECT ets.reading_source_id FROM edition_template_sources ets "
                "  JOIN edition_templates et ON et.id = ets.edition_template_id "
                "  WHERE et.user_id = :user"
                ") ORDER BY rs.name ASC",
                {"user": user_id},
            ).fetchall()
        return [_to_source(row) for row in rows]

    def get_reading_sources(self) -> list[ReadingSource]:
        with _database_errors("failed to query reading sources"):
            rows = self._conn.execute(
                f"SELECT {_COLUMNS} FROM reading_sources ORDER BY name ASC"
            ).fetchall()
        return [_to_source(row) for row in rows]
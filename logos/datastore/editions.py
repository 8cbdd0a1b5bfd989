"""Persistence of editions and of the readings they contain."""

from __future__ import annotations

import sqlite3
from datetime import datetime, timezone

from logos.datastore.common import (
    NotFoundError,
    _database_errors,
    _decode_time,
    _encode_time,
    validate_uuid,
)
from logos.datastore.readings import _reading_columns, _to_reading
from logos.records import Edition, Reading

_COLUMNS = "id, user_id, name, edition_template_id, created_at"


def _to_edition(row: tuple) -> Edition:
    edition_id, user_id, name, template_id, created_at = row
    return Edition(
        id=edition_id,
        user_id=user_id,
        name=name,
        edition_template_id=template_id,
        created_at=_decode_time(created_at),
    )


class EditionRepository:
    """Reads and writes the editions and edition_readings tables."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def create_edition(self, edition: Edition, template_id: str) -> None:
        """Insert an edition built from a template; a missing time is set to now."""
        validate_uuid(template_id, "edition_template_id")
        if edition.created_at is None:
            edition.created_at = datetime.now(timezone.utc)
        with _database_errors("failed to insert edition"), self._conn:
            self._conn.execute(
                "INSERT INTO editions (id, user_id, edition_template_id, name, created_at) "
                "VALUES (?, ?, ?, ?, ?)",
                (
                    edition.id,
                    edition.user_id,
                    template_id,
                    edition.name,
                    _encode_time(edition.created_at),
                ),
            )

    def get_edition_by_id(self, edition_id: str) -> Edition:
        with _database_errors("failed to get edition by ID"):
            row = self._conn.execute(
                f"SELECT {_COLUMNS} FROM editions WHERE id = ?", (edition_id,)
            ).fetchone()
        if row is None:
            raise NotFoundError(f"edition not found: {edition_id}")
        return _to_edition(row)

    def get_editions_by_user_id(self, user_id: str) -> list[Edition]:
        """Return the user's editions, newest first."""
        with _database_errors("failed to query editions by user ID"):
            rows = self._conn.execute(
                f"SELECT {_COLUMNS} FROM editions WHERE user_id = ? ORDER BY created_at DESC",
                (user_id,),
            ).fetchall()
        return [_to_edition(row) for row in rows]

    def add_reading_to_edition(self, edition_id: str, reading_id: str) -> None:
        """Add a reading to an edition; adding it again changes nothing."""
        validate_uuid(edition_id, "edition ID")
        validate_uuid(reading_id, "reading ID")
        with _database_errors("failed to add reading to edition"), self._conn:
            self._conn.execute(
                "INSERT OR IGNORE INTO edition_readings (edition_id, reading_id, created_at) "
                "VALUES (?, ?, ?)",
                (edition_id, reading_id, _encode_time(datetime.now(timezone.utc))),
            )

    def get_readings_for_edition(self, edition_id: str) -> list[Reading]:
        """Return the edition's readings with their content, newest first."""
        with _database_errors(f"failed to query readings for edition {edition_id}"):
            rows = self._conn.execute(
                f"SELECT {_reading_columns('r')}, r.content_body FROM readings r "
                "JOIN edition_readings er ON r.id = er.reading_id "
                "WHERE er.edition_id = ? ORDER BY r.created_at DESC",
                (edition_id,),
            ).fetchall()
        return [_to_reading(row[:-1], row[-1]) for row in rows]

    def get_latest_edition_by_template_id(self, template_id: str) -> Edition | None:
        """Return the newest edition of a template, or ``None`` if there is none."""
        validate_uuid(template_id, "template ID")
        with _database_errors("failed to get latest edition by template ID"):
            row = self._conn.execute(
                f"SELECT {_COLUMNS} FROM editions WHERE edition_template_id = ? "
                "ORDER BY created_at DESC LIMIT 1",
                (template_id,),
            ).fetchone()
        return None if row is None else _to_edition(row)
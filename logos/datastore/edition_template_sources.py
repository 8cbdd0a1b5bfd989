"""Assignment of reading sources to edition templates."""

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


def _to_source(row: tuple) -> ReadingSource:
    source_id, created_at, name, source_type, identifier = row
    return ReadingSource(
        id=source_id,
        created_at=_decode_time(created_at),
        name=name,
        type=source_type,
        identifier=identifier,
    )


class EditionTemplateSourceRepository:
    """Reads and writes the edition_template_sources join table."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def add_source_to_template(
        self, template_id: str, source_id: str, created_at: datetime | None
    ) -> None:
        """Assign a source to a template; assigning it again changes nothing."""
        validate_uuid(template_id, "edition template ID")
        validate_uuid(source_id, "reading source ID")
        if created_at is None:
            raise ValueError("created_at timestamp must be provided")
        with _database_errors(
            f"failed to add source {source_id} to template {template_id}"
        ), self._conn:
            self._conn.execute(
                "INSERT OR IGNORE INTO edition_template_sources "
                "(edition_template_id, reading_source_id, created_at) VALUES (?, ?, ?)",
                (template_id, source_id, _encode_time(created_at)),
            )

    def remove_source_from_template(self, template_id: str, source_id: str) -> None:
        validate_uuid(template_id, "edition template ID")
        validate_uuid(source_id, "reading source ID")
        with _database_errors(
            f"failed to remove source {source_id} from template {template_id}"
        ), self._conn:
            cursor = self._conn.execute(
                "DELETE FROM edition_template_sources "
                "WHERE edition_template_id = ? AND reading_source_id = ?",
                (template_id, source_id),
            )
        if cursor.rowcount == 0:
            raise NotFoundError(
                f"no source assignment found for template {template_id} and source {source_id}"
            )

    def get_sources_for_template(self, template_id: str) -> list[ReadingSource]:
        validate_uuid(template_id, "edition template ID")
        with _database_errors(f"failed to query sources for template {template_id}"):
            rows = self._conn.execute(
                "SELECT rs.id, rs.created_at, rs.name, rs.type, rs.identifier "
                "FROM reading_sources rs "
                "JOIN edition_template_sources ets ON rs.id = ets.reading_source_id "
                "WHERE ets.edition_template_id = ? ORDER BY rs.name ASC",
                (template_id,),
            ).fetchall()
        return [_to_source(row) for row in rows]

    def get_source_ids_for_template(self, template_id: str) -> list[str]:
        validate_uuid(template_id, "edition template ID")
        with _database_errors(f"failed to query source IDs for template {template_id}"):
            rows = self._conn.execute(
                "SELECT reading_source_id FROM edition_template_sources "
                "WHERE edition_template_id = ?",
                (template_id,),
            ).fetchall()
        return [source_id for (source_id,) in rows]
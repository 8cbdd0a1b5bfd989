"""Persistence of edition templates."""

from __future__ import annotations

import re
import sqlite3

from logos.datastore.common import (
    NotFoundError,
    _database_errors,
    _decode_time,
    _encode_time,
    validate_uuid,
)
from logos.records import EditionFormat, EditionTemplate

_COLUMNS = (
    "id, user_id, created_at, name, description, "
    "format, delivery_interval, delivery_time, is_recurring, color_images"
)

_VALID_FORMATS = frozenset(edition_format.value for edition_format in EditionFormat)
_VALID_INTERVALS = frozenset(
    {"every_five_minutes", "hourly", "daily", "weekly", "monthly"}
)
_TIME_PATTERN = re.compile(r"([01][0-9]|2[0-3]):([0-5][0-9]):([0-5][0-9])")


def _to_template(row: tuple) -> EditionTemplate:
    (
        template_id,
        user_id,
        created_at,
        name,
        description,
        edition_format,
        interval,
        delivery_time,
        is_recurring,
        color_images,
    ) = row
    return EditionTemplate(
        id=template_id,
        user_id=user_id,
        created_at=_decode_time(created_at),
        name=name,
        description=description or "",
        format=EditionFormat(edition_format),
        delivery_interval=interval,
        delivery_time=delivery_time,
        is_recurring=bool(is_recurring),
        color_images=bool(color_images),
    )


def _validate_settings(template: EditionTemplate, context: str) -> tuple[str, str]:
    """Check format, interval, time and name; return the normalised format and interval."""
    format_text = str(template.format).lower()
    if format_text not in _VALID_FORMATS:
        allowed = ", ".join(f.value for f in EditionFormat)
        raise ValueError(
            f"invalid edition format{context}: {template.format}. Must be one of: {allowed}"
        )
    interval = template.delivery_interval.lower()
    if interval not in _VALID_INTERVALS:
        raise ValueError(
            f"invalid delivery interval{context}: {template.delivery_interval}. "
            "Must be one of: every_five_minutes, hourly, daily, weekly, monthly"
        )
    if not _TIME_PATTERN.fullmatch(template.delivery_time):
        raise ValueError(
            f"invalid delivery time format{context}: {template.delivery_time}. Must be HH:MM:SS"
        )
    if not template.name:
        raise ValueError(f"template name cannot be empty{context}")
    return format_text, interval


class EditionTemplateRepository:
    """Reads and writes the edition_templates table."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def create_edition_template(self, template: EditionTemplate) -> None:
        validate_uuid(template.id, "template ID")
        validate_uuid(template.user_id, "user ID")
        format_text, interval = _validate_settings(template, "")
        if template.created_at is None:
            raise ValueError("template CreatedAt timestamp must be set")
        with _database_errors("failed to insert edition template"), self._conn:
            self._conn.execute(
                f"INSERT INTO edition_templates ({_COLUMNS}) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    template.id,
                    template.user_id,
                    _encode_time(template.created_at),
                    template.name,
                    template.description or None,
                    format_text,
                    interval,
                    template.delivery_time,
                    int(template.is_recurring),
                    int(template.color_images),
                ),
            )

    def get_edition_template_by_id(
        self, template_id: str, user_id: str
    ) -> EditionTemplate:
        validate_uuid(template_id, "template ID")
        validate_uuid(user_id, "user ID")
        with _database_errors("failed to get edition template by ID"):
            row = self._conn.execute(
                f"SELECT {_COLUMNS} FROM edition_templates WHERE id = ? AND user_id = ?",
                (template_id, user_id),
            ).fetchone()
        if row is None:
            raise NotFoundError(
                f"edition template not found for id {template_id} and user_id {user_id}"
            )
        return _to_template(row)

    def get_edition_templates_by_user_id(self, user_id: str) -> list[EditionTemplate]:
        validate_uuid(user_id, "user ID")
        with _database_errors(
            f"failed to query edition templates by user ID {user_id}"
        ):
            rows = self._conn.execute(
                f"SELECT {_COLUMNS} FROM edition_templates "
                "WHERE user_id = ? ORDER BY name ASC",
                (user_id,),
            ).fetchall()
        return [_to_template(row) for row in rows]

    def update_edition_template(self, template: EditionTemplate) -> None:
        validate_uuid(template.id, "template ID")
        validate_uuid(template.user_id, "user ID")
        format_text, interval = _validate_settings(template, " for update")
        with _database_errors(
            f"failed to update edition template with ID {template.id}"
        ), self._conn:
            cursor = self._conn.execute(
                "UPDATE edition_templates SET name = ?, description = ?, format = ?, "
                "delivery_interval = ?, delivery_time = ?, is_recurring = ?, "
                "color_images = ? WHERE id = ? AND user_id = ?",
                (
                    template.name,
                    template.description or None,
                    format_text,
                    interval,
                    template.delivery_time,
                    int(template.is_recurring),
                    int(template.color_images),
                    template.id,
                    template.user_id,
                ),
            )
        if cursor.rowcount == 0:
            raise NotFoundError(
                f"edition template not found for update "
                f"(ID: {template.id}, UserID: {template.user_id})"
            )

    def get_all_recurring_templates(self) -> list[EditionTemplate]:
        """Return every template marked as recurring, across all users."""
        with _database_errors("failed to query recurring edition templates"):
            rows = self._conn.execute(
                f"SELECT {_COLUMNS} FROM edition_templates WHERE is_recurring = 1"
            ).fetchall()
        return [_to_template(row) for row in rows]

    def delete_edition_template(self, template_id: str, user_id: str) -> None:
        validate_uuid(template_id, "template ID")
        validate_uuid(user_id, "user ID")
        with _database_errors(
            f"failed to delete edition template with ID {template_id}"
        ), self._conn:
            cursor = self._conn.execute(
                "DELETE FROM edition_templates WHERE id = ? AND user_id = ?",
                (template_id, user_id),
            )
        if cursor.rowcount == 0:
            raise NotFoundError(
                f"edition template not found for delete "
                f"(ID: {template_id}, UserID: {user_id})"
            )
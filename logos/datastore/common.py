"""Database schema, errors and helpers shared by the repositories."""

from __future__ import annotations

import sqlite3
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone

_TIME_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"

_SCHEMA = """
CREATE TABLE IF NOT EXISTS users (
    id TEXT PRIMARY KEY,
    created_at TEXT NOT NULL,
    email TEXT NOT NULL UNIQUE,
    email_token TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS reading_sources (
    id TEXT PRIMARY KEY,
    created_at TEXT NOT NULL,
    name TEXT NOT NULL,
    type TEXT NOT NULL,
    identifier TEXT NOT NULL DEFAULT ''
);
CREATE TABLE IF NOT EXISTS readings (
    id TEXT PRIMARY KEY,
    reading_source_id TEXT NOT NULL,
    author TEXT NOT NULL DEFAULT '',
    created_at TEXT NOT NULL,
    content_hash TEXT NOT NULL,
    content_body TEXT NOT NULL DEFAULT '',
    excerpt TEXT NOT NULL,
    format TEXT NOT NULL,
    published_at TEXT,
    storage_path TEXT NOT NULL,
    title TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS user_readings (
    user_id TEXT NOT NULL,
    reading_id TEXT NOT NULL,
    created_at TEXT NOT NULL,
    received_at TEXT NOT NULL,
    PRIMARY KEY (user_id, reading_id)
);
CREATE TABLE IF NOT EXISTS edition_templates (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    created_at TEXT NOT NULL,
    name TEXT NOT NULL,
    description TEXT,
    format TEXT NOT NULL,
    delivery_interval TEXT NOT NULL,
    delivery_time TEXT NOT NULL,
    is_recurring INTEGER NOT NULL DEFAULT 0,
    color_images INTEGER NOT NULL DEFAULT 0
);
CREATE TABLE IF NOT EXISTS editions (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    edition_template_id TEXT NOT NULL,
    name TEXT NOT NULL,
    created_at TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS edition_readings (
    edition_id TEXT NOT NULL,
    reading_id TEXT NOT NULL,
    created_at TEXT NOT NULL,
    PRIMARY KEY (edition_id, reading_id)
);
CREATE TABLE IF NOT EXISTS edition_template_sources (
    edition_template_id TEXT NOT NULL,
    reading_source_id TEXT NOT NULL,
    created_at TEXT NOT NULL,
    PRIMARY KEY (edition_template_id, reading_source_id)
);
CREATE TABLE IF NOT EXISTS user_reading_sources (
    user_id TEXT NOT NULL,
    reading_source_id TEXT NOT NULL,
    created_at TEXT NOT NULL,
    PRIMARY KEY (user_id, reading_source_id)
);
CREATE TABLE IF NOT EXISTS delivery_destinations_base (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    created_at TEXT NOT NULL,
    is_default INTEGER NOT NULL DEFAULT 0,
    name TEXT NOT NULL,
    type TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS email_destinations (
    id TEXT PRIMARY KEY,
    email_address TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS deliveries (
    id TEXT PRIMARY KEY,
    edition_id TEXT NOT NULL,
    delivery_destination_id TEXT NOT NULL,
    created_at TEXT NOT NULL,
    completed_at TEXT,
    edition_format TEXT NOT NULL,
    file_path TEXT NOT NULL DEFAULT '',
    file_size INTEGER NOT NULL DEFAULT 0,
    started_at TEXT,
    status TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS delivery_attempts (
    id TEXT PRIMARY KEY,
    delivery_id TEXT NOT NULL,
    created_at TEXT NOT NULL,
    status TEXT NOT NULL,
    error_message TEXT NOT NULL DEFAULT ''
);
CREATE TABLE IF NOT EXISTS allowed_senders (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    created_at TEXT NOT NULL,
    name TEXT NOT NULL,
    email_pattern TEXT NOT NULL
);
"""


class DatastoreError(Exception):
    """A database operation failed."""


class NotFoundError(DatastoreError):
    """The requested record does not exist."""


def create_schema(conn: sqlite3.Connection) -> None:
    """Create every table the repositories use, if missing."""
    conn.executescript(_SCHEMA)


def validate_uuid(value: str, what: str) -> str:
    """Return ``value`` if it is a UUID, else raise ``ValueError``."""
    try:
        uuid.UUID(value)
    except (ValueError, TypeError, AttributeError) as exc:
        raise ValueError(f"invalid {what} format: {value!r}") from exc
    return value


def _encode_time(moment: datetime | None) -> str | None:
    """Store times as sortable UTC text; naive times are taken as UTC."""
    if moment is None:
        return None
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).strftime(_TIME_FORMAT)


def _decode_time(text: str | None) -> datetime | None:
    if text is None:
        return None
    return datetime.strptime(text, _TIME_FORMAT).replace(tzinfo=timezone.utc)


@contextmanager
def _database_errors(message: str) -> Iterator[None]:
    """Turn driver errors into ``DatastoreError`` with a descriptive message."""
    try:
        yield
    except sqlite3.Error as exc:
        raise DatastoreError(f"{message}: {exc}") from exc
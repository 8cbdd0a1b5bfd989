"""Persistence of delivery destinations."""

from __future__ import annotations

import sqlite3

from logos.datastore.common import (
    NotFoundError,
    _database_errors,
    _decode_time,
    _encode_time,
    validate_uuid,
)
from logos.records import DeliveryDestination

_COLUMNS = "id, user_id, created_at, is_default, name, type"


def _to_destination(row: tuple) -> DeliveryDestination:
    dest_id, user_id, created_at, is_default, name, dest_type = row
    return DeliveryDestination(
        id=dest_id,
        user_id=user_id,
        created_at=_decode_time(created_at),
        is_default=bool(is_default),
        name=name,
        type=dest_type,
    )


class DestinationRepository:
    """Reads and writes delivery destinations and their e-mail details."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def create_email_destination(
        self, dest: DeliveryDestination, email_address: str
    ) -> None:
        """Insert an e-mail destination; a default one clears the user's other defaults."""
        validate_uuid(dest.id, "destination ID")
        validate_uuid(dest.user_id, "user ID")
        if not email_address:
            raise ValueError("email address cannot be empty")
        if dest.type != "email":
            raise ValueError("destination type must be 'email' for this function")

        with self._conn:
            if dest.is_default:
                with _database_errors("failed to unset other default destinations"):
                    self._conn.execute(
                        "UPDATE delivery_destinations_base SET is_default = 0 "
                        "WHERE user_id = ? AND id != ?",
                        (dest.user_id, dest.id),
                    )
            with _database_errors("failed to insert base destination"):
                self._conn.execute(
                    f"INSERT INTO delivery_destinations_base ({_COLUMNS}) "
                    "VALUES (?, ?, ?, ?, ?, ?)",
                    (
                        dest.id,
                        dest.user_id,
                        _encode_time(dest.created_at),
                        int(dest.is_default),
                        dest.name,
                        dest.type,
                    ),
                )
            with _database_errors("failed to insert email destination details"):
                self._conn.execute(
                    "INSERT INTO email_destinations (id, email_address) VALUES (?, ?)",
                    (dest.id, email_address),
                )

    def get_destinations_by_user_id(self, user_id: str) -> list[DeliveryDestination]:
        validate_uuid(user_id, "user ID")
        with _database_errors(f"failed to query destinations for user {user_id}"):
            rows = self._conn.execute(
                f"SELECT {_COLUMNS} FROM delivery_destinations_base "
                "WHERE user_id = ? ORDER BY created_at DESC",
                (user_id,),
            ).fetchall()
        return [_to_destination(row) for row in rows]

    def get_default_destination_by_user_id(
        self, user_id: str
    ) -> DeliveryDestination | None:
        """Return the user's default destination, or ``None`` if there is none."""
        validate_uuid(user_id, "user ID")
        with _database_errors(f"failed to get default destination for user {user_id}"):
            row = self._conn.execute(
                f"SELECT {_COLUMNS} FROM delivery_destinations_base "
                "WHERE user_id = ? AND is_default = 1 LIMIT 1",
                (user_id,),
            ).fetchone()
        return None if row is None else _to_destination(row)

    def get_email_destination_details(
        self, destination_id: str
    ) -> tuple[DeliveryDestination, str]:
        """Return the destination together with its e-mail address."""
        validate_uuid(destination_id, "destination ID")
        with _database_errors("failed to get email destination details"):
            row = self._conn.execute(
                "SELECT b.id, b.user_id, b.created_at, b.is_default, b.name, b.type, "
                "e.email_address FROM delivery_destinations_base b "
                "JOIN email_destinations e ON b.id = e.id "
                "WHERE b.id = ? AND b.type = 'email'",
                (destination_id,),
            ).fetchone()
        if row is None:
            raise NotFoundError(f"email destination not found: {destination_id}")
        return _to_destination(row[:6]), row[6]
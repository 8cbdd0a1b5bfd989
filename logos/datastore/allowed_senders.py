"""Persistence of each user's allowed-sender whitelist."""

from __future__ import annotations

import sqlite3

from logos.datastore.common import (
    NotFoundError,
    _database_errors,
    _decode_time,
    _encode_time,
    validate_uuid,
)
from logos.records import AllowedSender

_COLUMNS = "id, user_id, created_at, name, email_pattern"


def _to_sender(row: tuple) -> AllowedSender:
    sender_id, user_id, created_at, name, pattern = row
    return AllowedSender(
        id=sender_id,
        user_id=user_id,
        created_at=_decode_time(created_at),
        name=name,
        email_pattern=pattern,
    )


class AllowedSenderRepository:
    """Reads and writes the allowed_senders table."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def create_allowed_sender(self, sender: AllowedSender) -> None:
        validate_uuid(sender.id, "allowed sender ID")
        validate_uuid(sender.user_id, "user ID")
        if not sender.email_pattern:
            raise ValueError("email pattern cannot be empty")
        if not sender.name:
            raise ValueError("allowed sender name cannot be empty")
        with _database_errors("failed to insert allowed sender"), self._conn:
            self._conn.execute(
                f"INSERT INTO allowed_senders ({_COLUMNS}) VALUES (?, ?, ?, ?, ?)",
                (
                    sender.id,
                    sender.user_id,
                    _encode_time(sender.created_at),
                    sender.name,
                    sender.email_pattern,
                ),
            )

    def delete_allowed_sender(self, sender_id: str, user_id: str) -> None:
        validate_uuid(sender_id, "allowed sender ID")
        validate_uuid(user_id, "user ID")
        with _database_errors(f"failed to delete allowed sender {sender_id}"), self._conn:
            cursor = self._conn.execute(
                "DELETE FROM allowed_senders WHERE id = ? AND user_id = ?",
                (sender_id, user_id),
            )
        if cursor.rowcount == 0:
            raise NotFoundError(
                f"allowed sender not found (ID: {sender_id}, UserID: {user_id})"
            )

    def get_allowed_senders_by_user_id(self, user_id: str) -> list[AllowedSender]:
        validate_uuid(user_id, "user ID")
        with _database_errors(f"failed to query allowed senders for user {user_id}"):
            rows = self._conn.execute(
                f"SELECT {_COLUMNS} FROM allowed_senders WHERE user_id = ? ORDER BY name ASC",
                (user_id,),
            ).fetchall()
        return [_to_sender(row) for row in rows]

    def is_allowed_sender(self, user_id: str, sender_email: str) -> bool:
        """Match the address against the user's patterns, ``%`` being a wildcard."""
        validate_uuid(user_id, "user ID")
        if not sender_email:
            raise ValueError("sender email cannot be empty")
        with _database_errors(
            f"failed to check allowed sender status for user {user_id}"
        ):
            (exists,) = self._conn.execute(
                "SELECT EXISTS (SELECT 1 FROM allowed_senders "
                "WHERE user_id = ? AND LOWER(?) LIKE LOWER(email_pattern))",
                (user_id, sender_email.lower()),
            ).fetchone()
        return bool(exists)
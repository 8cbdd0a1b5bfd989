"""Persistence of users."""

from __future__ import annotations

import sqlite3

from logos.datastore.common import (
    NotFoundError,
    _database_errors,
    _decode_time,
    _encode_time,
)
from logos.records import User

_COLUMNS = "id, created_at, email"


def _to_user(row: tuple) -> User:
    user_id, created_at, email = row
    return User(id=user_id, email=email, created_at=_decode_time(created_at))


class UserRepository:
    """Reads and writes the users table."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def create_user(self, user: User, email_token: str) -> None:
        with _database_errors("failed to insert user"), self._conn:
            self._conn.execute(
                "INSERT INTO users (id, created_at, email, email_token) VALUES (?, ?, ?, ?)",
                (user.id, _encode_time(user.created_at), user.email, email_token),
            )

    def get_user_by_id(self, user_id: str) -> User:
        with _database_errors("failed to get user by ID"):
            row = self._conn.execute(
                f"SELECT {_COLUMNS} FROM users WHERE id = ?", (user_id,)
            ).fetchone()
        if row is None:
            raise NotFoundError(f"user not found: {user_id}")
        return _to_user(row)

    def get_users(self) -> list[User]:
        with _database_errors("failed to query users"):
            rows = self._conn.execute(
                f"SELECT {_COLUMNS} FROM users ORDER BY created_at DESC"
            ).fetchall()
        return [_to_user(row) for row in rows]
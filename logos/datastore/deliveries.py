"""Persistence of deliveries and delivery attempts."""

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
from logos.records import Delivery, DeliveryAttempt, DeliveryStatus, EditionFormat

_COLUMNS = (
    "id, edition_id, delivery_destination_id, created_at, completed_at, "
    "edition_format, file_path, file_size, started_at, status"
)


def _to_delivery(row: tuple) -> Delivery:
    (
        delivery_id,
        edition_id,
        destination_id,
        created_at,
        completed_at,
        edition_format,
        file_path,
        file_size,
        started_at,
        status,
    ) = row
    return Delivery(
        id=delivery_id,
        edition_id=edition_id,
        delivery_destination_id=destination_id,
        created_at=_decode_time(created_at),
        completed_at=_decode_time(completed_at),
        format=EditionFormat(edition_format),
        file_path=file_path,
        file_size=file_size,
        started_at=_decode_time(started_at),
        status=DeliveryStatus(status),
    )


class DeliveryRepository:
    """Reads and writes the deliveries table."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def create_delivery(self, delivery: Delivery) -> None:
        validate_uuid(delivery.id, "delivery ID")
        validate_uuid(delivery.edition_id, "edition ID")
        validate_uuid(delivery.delivery_destination_id, "delivery destination ID")
        with _database_errors("failed to insert delivery"), self._conn:
            self._conn.execute(
                f"INSERT INTO deliveries ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    delivery.id,
                    delivery.edition_id,
                    delivery.delivery_destination_id,
                    _encode_time(delivery.created_at),
                    _encode_time(delivery.completed_at),
                    EditionFormat(delivery.format).value,
                    delivery.file_path,
                    delivery.file_size,
                    _encode_time(delivery.started_at),
                    DeliveryStatus(delivery.status).value,
                ),
            )

    def get_delivery_by_id(self, delivery_id: str) -> Delivery:
        validate_uuid(delivery_id, "delivery ID")
        with _database_errors("failed to get delivery by ID"):
            row = self._conn.execute(
                f"SELECT {_COLUMNS} FROM deliveries WHERE id = ?", (delivery_id,)
            ).fetchone()
        if row is None:
            raise NotFoundError(f"delivery not found: {delivery_id}")
        return _to_delivery(row)

    def update_delivery_status(
        self,
        delivery_id: str,
        status: DeliveryStatus,
        started_at: datetime | None,
        completed_at: datetime | None,
    ) -> None:
        """Set the status; timestamps given as ``None`` keep their stored value."""
        validate_uuid(delivery_id, "delivery ID")
        with _database_errors(
            f"failed to update delivery status for ID {delivery_id}"
        ), self._conn:
            cursor = self._conn.execute(
                "UPDATE deliveries SET status = ?, "
                "started_at = COALESCE(?, started_at), "
                "completed_at = COALESCE(?, completed_at) WHERE id = ?",
                (
                    DeliveryStatus(status).value,
                    _encode_time(started_at),
                    _encode_time(completed_at),
                    delivery_id,
                ),
            )
        if cursor.rowcount == 0:
            raise NotFoundError(f"delivery not found for status update: {delivery_id}")


class DeliveryAttemptRepository:
    """Records each attempt made to deliver an edition."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def create_attempt(self, attempt: DeliveryAttempt) -> None:
        validate_uuid(attempt.id, "attempt ID")
        validate_uuid(attempt.delivery_id, "delivery ID")
        with _database_errors("failed to insert delivery attempt"), self._conn:
            self._conn.execute(
                "INSERT INTO delivery_attempts (id, delivery_id, created_at, status, error_message) "
                "VALUES (?, ?, ?, ?, ?)",
                (
                    attempt.id,
                    attempt.delivery_id,
                    _encode_time(attempt.created_at),
                    DeliveryStatus(attempt.status).value,
                    attempt.error_message,
                ),
            )
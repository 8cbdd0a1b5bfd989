import sqlite3
import uuid
from datetime import datetime, timezone

import pytest

from logos.datastore.common import create_schema
from logos.datastore.deliveries import DeliveryAttemptRepository, DeliveryRepository
from logos.datastore.destinations import DestinationRepository
from logos.delivery.email_provider import DeliveryError
from logos.delivery.service import DeliveryService
from logos.records import (
    Delivery,
    DeliveryDestination,
    DeliveryStatus,
    EditionFormat,
)

NOW = datetime(2024, 5, 1, 8, 0, tzinfo=timezone.utc)


class _RecordingProvider:
    def __init__(self, error=None, kind="email"):
        self.calls = []
        self.error = error
        self.type = kind

    def deliver(self, file_path, file_name, recipient_address):
        self.calls.append((file_path, file_name, recipient_address))
        if self.error is not None:
            raise self.error


@pytest.fixture
def conn():
    connection = sqlite3.connect(":memory:")
    create_schema(connection)
    yield connection
    connection.close()


@pytest.fixture
def destination(conn):
    dest = DeliveryDestination(
        id=str(uuid.uuid4()),
        user_id=str(uuid.uuid4()),
        name="Reader",
        type="email",
        is_default=True,
        created_at=NOW,
    )
    DestinationRepository(conn).create_email_destination(dest, "reader@example.com")
    return dest


def _delivery(destination, stored=True, conn=None):
    delivery = Delivery(
        id=str(uuid.uuid4()),
        edition_id=str(uuid.uuid4()),
        delivery_destination_id=destination.id,
        created_at=NOW,
        format=EditionFormat.EPUB,
        file_path="/data/editions/one.epub",
        status=DeliveryStatus.PENDING,
    )
    if stored:
        DeliveryRepository(conn).create_delivery(delivery)
    return delivery


def _service(conn, *providers):
    return DeliveryService(
        DeliveryRepository(conn),
        DestinationRepository(conn),
        DeliveryAttemptRepository(conn),
        *providers,
    )


def _attempts(conn, delivery_id):
    return conn.execute(
        "SELECT status, error_message FROM delivery_attempts WHERE delivery_id = ?",
        (delivery_id,),
    ).fetchall()


def test_successful_delivery(conn, destination):
    delivery = _delivery(destination, conn=conn)
    provider = _RecordingProvider()
    _service(conn, provider).execute_delivery(delivery)

    assert provider.calls == [
        ("/data/editions/one.epub", "edition.epub", "reader@example.com")
    ]
    stored = DeliveryRepository(conn).get_delivery_by_id(delivery.id)
    assert stored.status is DeliveryStatus.DELIVERED
    assert stored.started_at is not None and stored.completed_at is not None
    assert stored.started_at <= stored.completed_at
    assert _attempts(conn, delivery.id) == [("delivered", "")]


def test_failed_delivery_is_recorded_and_raised(conn, destination):
    delivery = _delivery(destination, conn=conn)
    provider = _RecordingProvider(error=DeliveryError("mailbox full"))
    with pytest.raises(DeliveryError, match="mailbox full"):
        _service(conn, provider).execute_delivery(delivery)

    stored = DeliveryRepository(conn).get_delivery_by_id(delivery.id)
    assert stored.status is DeliveryStatus.FAILED
    assert stored.completed_at is not None
    assert _attempts(conn, delivery.id) == [("failed", "mailbox full")]


def test_no_provider_for_type(conn, destination):
    delivery = _delivery(destination, conn=conn)
    with pytest.raises(DeliveryError, match="no delivery provider"):
        _service(conn, _RecordingProvider(kind="webhook")).execute_delivery(delivery)
    assert _attempts(conn, delivery.id) == []


def test_unknown_destination(conn):
    missing = DeliveryDestination(id=str(uuid.uuid4()))
    delivery = _delivery(missing, stored=False)
    provider = _RecordingProvider()
    with pytest.raises(DeliveryError, match="failed to look up destination"):
        _service(conn, provider).execute_delivery(delivery)
    assert provider.calls == []


def test_unstored_delivery_still_attempted(conn, destination):
    delivery = _delivery(destination, stored=False)
    provider = _RecordingProvider()
    _service(conn, provider).execute_delivery(delivery)
    assert len(provider.calls) == 1
    assert _attempts(conn, delivery.id) == [("delivered", "")]


def test_file_name_follows_edition_format(conn, destination):
    delivery = _delivery(destination, stored=False)
    delivery.format = EditionFormat.PDF
    provider = _RecordingProvider()
    _service(conn, provider).execute_delivery(delivery)
    assert provider.calls[0][1] == "edition.pdf"
"""Execution of deliveries through registered delivery providers."""

from __future__ import annotations

import logging
import uuid
from contextlib import suppress
from datetime import datetime, timezone
from typing import Protocol

from logos.datastore.common import DatastoreError
from logos.datastore.deliveries import DeliveryAttemptRepository, DeliveryRepository
from logos.datastore.destinations import DestinationRepository
from logos.delivery.email_provider import DeliveryError
from logos.records import Delivery, DeliveryAttempt, DeliveryStatus, EditionFormat

logger = logging.getLogger(__name__)


class DeliveryProvider(Protocol):
    """A mechanism that delivers files to one kind of destination."""

    @property
    def type(self) -> str:
        """The destination type handled, such as ``"email"``."""
        ...

    def deliver(self, file_path: str, file_name: str, recipient_address: str) -> None:
        """Send the file; raise on failure."""
        ...


class DeliveryService:
    """Chooses a provider for each delivery and records status and attempts."""

    def __init__(
        self,
        delivery_repo: DeliveryRepository,
        destination_repo: DestinationRepository,
        attempt_repo: DeliveryAttemptRepository,
        *providers: DeliveryProvider,
    ) -> None:
        self._providers = {provider.type: provider for provider in providers}
        self._deliveries = delivery_repo
        self._destinations = destination_repo
        self._attempts = attempt_repo

    def execute_delivery(self, delivery: Delivery) -> None:
        """Send the delivery's file and record the outcome; re-raise any send failure."""
        try:
            destination, email_address = self._destinations.get_email_destination_details(
                delivery.delivery_destination_id
            )
        except (DatastoreError, ValueError) as exc:
            raise DeliveryError(
                f"failed to look up destination {delivery.delivery_destination_id}: {exc}"
            ) from exc

        provider = self._providers.get(destination.type)
        if provider is None:
            raise DeliveryError(
                f"no delivery provider registered for type {destination.type!r}"
            )
        if destination.type == "email":
            recipient = email_address
        else:
            raise DeliveryError(f"unsupported destination type {destination.type!r}")

        started_at = datetime.now(timezone.utc)
        try:
            self._deliveries.update_delivery_status(
                delivery.id, DeliveryStatus.PROCESSING, started_at, None
            )
        except (DatastoreError, ValueError) as exc:
            logger.warning(
                "Failed to set processing status for delivery %s: %s", delivery.id, exc
            )

        file_name = f"edition.{EditionFormat(delivery.format).value}"
        failure: Exception | None = None
        try:
            provider.deliver(delivery.file_path, file_name, recipient)
        except Exception as exc:  # any provider failure is recorded, then re-raised
            failure = exc

        completed_at = datetime.now(timezone.utc)
        attempt = DeliveryAttempt(
            id=str(uuid.uuid4()), delivery_id=delivery.id, created_at=completed_at
        )
        if failure is not None:
            attempt.status = DeliveryStatus.FAILED
            attempt.error_message = str(failure)
            final_status = DeliveryStatus.FAILED
            logger.error("Delivery %s failed: %s", delivery.id, failure)
        else:
            attempt.status = DeliveryStatus.DELIVERED
            final_status = DeliveryStatus.DELIVERED
            logger.info("Delivery %s completed successfully to %s", delivery.id, recipient)

        with suppress(DatastoreError, ValueError):
            self._deliveries.update_delivery_status(
                delivery.id, final_status, None, completed_at
            )
        try:
            self._attempts.create_attempt(attempt)
        except (DatastoreError, ValueError) as exc:
            logger.warning("Failed to record attempt for delivery %s: %s", delivery.id, exc)

        if failure is not None:
            raise failure
"""Ingestion of inbound e-mail into stored, de-duplicated readings."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from logos.conversion import ConversionError
from logos.datastore.common import DatastoreError
from logos.datastore.readings import ReadingRepository
from logos.datastore.sources import SourceRepository
from logos.ingestion.content_processor import ContentProcessingError, ProcessedContent
from logos.ingestion.formats import (
    Attachment,
    Envelope,
    PrioritizedFormat,
    attachment_extension_matches,
    is_direct_reading_format,
    match_attachment_by_content_type,
)
from logos.ingestion.pipeline import ContentInput, ContentPipelineService
from logos.ingestion.reading_builder import ReadingBuilder
from logos.records import Reading, ReadingFormat

logger = logging.getLogger(__name__)

_PRIORITY_ORDER = (
    PrioritizedFormat(".pdf", ReadingFormat.PDF),
    PrioritizedFormat(".epub", ReadingFormat.EPUB),
    PrioritizedFormat(".mobi", ReadingFormat.MOBI),
    PrioritizedFormat(".docx", ReadingFormat.DOCX),
    PrioritizedFormat(".rtf", ReadingFormat.RTF),
    PrioritizedFormat(".md", ReadingFormat.MD),
    PrioritizedFormat(".txt", ReadingFormat.TXT),
    PrioritizedFormat(".text", ReadingFormat.TXT),
)
_MIN_ATTACHMENT_SIZE = 100


class IngestionError(Exception):
    """An inbound message could not be turned into a stored reading."""


def _check_attachment(
    attachment: Attachment, prioritized: PrioritizedFormat
) -> tuple[bytes, ReadingFormat, str] | None:
    matches_extension = attachment_extension_matches(
        attachment.file_name, prioritized.extension
    )
    if len(attachment.content) < _MIN_ATTACHMENT_SIZE and not matches_extension:
        return None
    if matches_extension:
        logger.info(
            "Found priority attachment by extension: Name='%s', Format='%s'",
            attachment.file_name,
            prioritized.format,
        )
        return attachment.content, prioritized.format, attachment.file_name
    base_type = attachment.content_type.split(";", 1)[0].strip().lower()
    return match_attachment_by_content_type(attachment, prioritized, base_type)


def _find_priority_attachment(
    envelope: Envelope,
) -> tuple[bytes, ReadingFormat, str] | None:
    for prioritized in _PRIORITY_ORDER:
        for attachment in envelope.attachments:
            found = _check_attachment(attachment, prioritized)
            if found is not None:
                return found
    return None


class IngestionOrchestrator:
    """Identifies, converts, builds, stores and links the content of inbound e-mail."""

    def __init__(
        self,
        reading_repo: ReadingRepository,
        source_repo: SourceRepository,
        pipeline: ContentPipelineService,
        reading_builder: ReadingBuilder,
    ) -> None:
        self.reading_repo = reading_repo
        self.source_repo = source_repo
        self.pipeline = pipeline
        self.reading_builder = reading_builder

    def process_inbound_email(
        self,
        user_id: str,
        sender_email: str,
        webhook_subject: str,
        envelope: Envelope,
        message_id: str,
    ) -> Reading:
        """Store the message's primary content as a reading linked to the user.

        Content already stored (same hash) is reused rather than stored again.
        """
        try:
            content, original_format, file_name, is_attachment = self._identify_primary_content(
                envelope
            )
        except IngestionError as exc:
            raise IngestionError(
                f"no usable primary content found for UserID {user_id} "
                f"(Message-ID: {message_id}): {exc}"
            ) from exc

        try:
            if is_attachment and is_direct_reading_format(original_format):
                logger.info(
                    "Attachment %s is a direct reading format (%s); using as is",
                    file_name,
                    original_format,
                )
                final_content, final_format, processed = content, original_format, None
            else:
                source_name = (
                    file_name
                    if is_attachment
                    else f"email_body.{ReadingFormat(original_format).value.lower()}"
                )
                output = self.pipeline.process_content(
                    ContentInput(content, original_format, source_name)
                )
                final_content, final_format, processed = (
                    output.content,
                    output.format,
                    output.processed,
                )
        except (ConversionError, ContentProcessingError, ValueError) as exc:
            logger.error(
                "Failed to process primary content (format: %s, attachment: %s) "
                "for UserID %s (Message-ID: %s): %s",
                original_format,
                is_attachment,
                user_id,
                message_id,
                exc,
            )
            raise IngestionError(f"failed to process email content: {exc}") from exc

        reading = self._build(
            sender_email,
            webhook_subject,
            envelope,
            final_content,
            final_format,
            processed,
            file_name,
            message_id,
        )
        self._persist(reading, final_content, final_format, user_id, message_id)

        try:
            self.reading_repo.add_user_reading(
                user_id, reading.id, datetime.now(timezone.utc)
            )
        except (DatastoreError, ValueError) as exc:
            logger.error(
                "Failed to link Reading %s to User %s (Message-ID %s): %s",
                reading.id,
                user_id,
                message_id,
                exc,
            )
        else:
            logger.info("Linked Reading %s to User %s", reading.id, user_id)
        return reading

    def _identify_primary_content(
        self, envelope: Envelope
    ) -> tuple[bytes, ReadingFormat, str, bool]:
        """Return content, format, file name and whether it came from an attachment."""
        found = _find_priority_attachment(envelope)
        if found is not None:
            content, reading_format, file_name = found
            return content, reading_format, file_name, True
        if envelope.html:
            return envelope.html.encode("utf-8"), ReadingFormat.HTML, "email_body.html", False
        if envelope.text:
            return envelope.text.encode("utf-8"), ReadingFormat.TXT, "email_body.txt", False
        raise IngestionError(
            "no processable content (attachments, HTML body, or Text body) "
            "found in the email"
        )

    def _build(
        self,
        sender_email: str,
        webhook_subject: str,
        envelope: Envelope,
        content: bytes,
        reading_format: ReadingFormat,
        processed: ProcessedContent | None,
        file_name: str,
        message_id: str,
    ) -> Reading:
        try:
            if reading_format is ReadingFormat.HTML and processed is not None:
                return self.reading_builder.build_from_html(
                    sender_email, webhook_subject, envelope, processed, message_id
                )
            return self.reading_builder.build_from_file(
                sender_email,
                webhook_subject,
                envelope,
                content,
                reading_format,
                file_name,
                message_id,
            )
        except ValueError as exc:
            logger.error("Failed to build reading (Message-ID: %s): %s", message_id, exc)
            raise IngestionError(f"failed to build reading model: {exc}") from exc

    def _persist(
        self,
        reading: Reading,
        content: bytes,
        reading_format: ReadingFormat,
        user_id: str,
        message_id: str,
    ) -> None:
        """Store a new reading, or point ``reading`` at the stored copy of its content."""
        try:
            existing = self.reading_repo.get_reading_by_content_hash(reading.content_hash)
        except (DatastoreError, ValueError) as exc:
            raise IngestionError(f"failed to check for duplicate content: {exc}") from exc

        if existing is not None:
            logger.info(
                "Using existing reading %s for UserID %s (Message-ID %s)",
                existing.id,
                user_id,
                message_id,
            )
            reading.id = existing.id
            reading.storage_path = existing.storage_path
            return

        reading.content_body = bytes(content).decode("utf-8", "replace")
        reading.storage_path = (
            f"readings/{user_id}/{reading.id}.{ReadingFormat(reading_format).value}"
        )
        try:
            self.reading_repo.create_reading(reading)
        except (DatastoreError, ValueError) as exc:
            logger.error(
                "Failed to create reading %s for UserID %s (Message-ID: %s): %s",
                reading.id,
                user_id,
                message_id,
                exc,
            )
            raise IngestionError(f"failed to save reading record to database: {exc}") from exc
        logger.info("Created reading %s (%s) for UserID %s", reading.id, reading.format, user_id)
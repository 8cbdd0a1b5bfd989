"""Construction of reading records from processed content and e-mail metadata."""

from __future__ import annotations

import hashlib
import logging
import uuid
from datetime import datetime, timezone
from email.utils import getaddresses, parsedate_to_datetime

from logos.datastore.common import DatastoreError, NotFoundError
from logos.datastore.sources import SourceRepository
from logos.ingestion.content_processor import ProcessedContent
from logos.ingestion.formats import Envelope
from logos.records import Reading, ReadingFormat, ReadingSource

logger = logging.getLogger(__name__)

NIL_UUID = str(uuid.UUID(int=0))
_EXCERPT_LENGTH = 250
_TEXT_FORMATS = frozenset({ReadingFormat.TXT, ReadingFormat.MD})
_LOOSE_DATE_FORMATS = (
    "%a, %B %d, %Y %I:%M:%S %p",
    "%a, %b %d, %Y %I:%M %p",
)


def content_hash(text: str | bytes) -> str:
    """Return the SHA-256 hex digest of the content."""
    data = text.encode("utf-8") if isinstance(text, str) else bytes(text)
    return hashlib.sha256(data).hexdigest()


def extract_author(envelope: Envelope | None) -> str:
    """Return the sender's display name, else its address, else the raw From header."""
    if envelope is None:
        return ""
    from_header = envelope.header("From")
    if not from_header:
        return ""
    addresses = [pair for pair in getaddresses([from_header]) if pair[1]]
    if addresses:
        name, address = addresses[0]
        return name or address
    logger.warning("Could not parse 'From' header (%r); using it as the author", from_header)
    return from_header


def generate_excerpt(text: str) -> str:
    """Return a short summary of plain text, cut at a sentence or word where possible."""
    trimmed = text.strip()
    if len(trimmed) <= _EXCERPT_LENGTH:
        return trimmed
    head = trimmed[:_EXCERPT_LENGTH]
    last_period = head.rfind(". ")
    if last_period > _EXCERPT_LENGTH - 75:
        return trimmed[: last_period + 1] + "..."
    last_space = head.rfind(" ")
    if last_space > _EXCERPT_LENGTH - 100:
        return trimmed[:last_space] + "..."
    return head + "..."


def _parse_date(value: str) -> datetime | None:
    try:
        parsed = parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError):
        parsed = None
    if parsed is not None:
        return parsed
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        pass
    for date_format in _LOOSE_DATE_FORMATS:
        candidates = [value]
        if date_format.endswith("%S %p"):
            candidates.append(value.rsplit(" ", 1)[0])
        for candidate in candidates:
            try:
                return datetime.strptime(candidate, date_format)
            except ValueError:
                continue
    return None


def extract_published_date(envelope: Envelope | None) -> datetime | None:
    """Return the message's Date header as a UTC time, or ``None``."""
    if envelope is None:
        return None
    date_text = envelope.header("Date")
    if not date_text:
        return None
    parsed = _parse_date(date_text.strip())
    if parsed is None:
        logger.warning("Could not parse Date header %r with common formats", date_text)
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _strip_extension(file_name: str) -> str:
    base_start = file_name.rfind("/") + 1
    dot = file_name.rfind(".")
    return file_name[:dot] if dot >= base_start else file_name


class ReadingBuilder:
    """Builds ``Reading`` records, finding or creating the sender's source."""

    def __init__(self, source_repo: SourceRepository | None) -> None:
        self._sources = source_repo

    def build_from_html(
        self,
        sender_email: str,
        webhook_subject: str,
        envelope: Envelope | None,
        processed: ProcessedContent | None,
        message_id: str,
    ) -> Reading:
        """Build a reading from extracted HTML content."""
        if processed is None:
            raise ValueError("processed content cannot be None when building from HTML")
        title = (
            processed.extracted_title
            or (envelope.header("Subject") if envelope is not None else "")
            or webhook_subject
        )
        if not title:
            logger.warning(
                "Message %r has no subject or extracted title; using a default", message_id
            )
            title = "Untitled Reading"
        return Reading(
            id=str(uuid.uuid4()),
            source_id=self._source_id_for(sender_email, message_id),
            author=extract_author(envelope),
            created_at=datetime.now(timezone.utc),
            content_hash=content_hash(processed.main_html),
            content_body="",
            excerpt=generate_excerpt(processed.main_text),
            format=ReadingFormat.HTML,
            published_at=extract_published_date(envelope),
            storage_path="",
            title=title,
        )

    def build_from_file(
        self,
        sender_email: str,
        webhook_subject: str,
        envelope: Envelope | None,
        file_bytes: bytes,
        original_format: ReadingFormat | str,
        original_file_name: str,
        message_id: str,
    ) -> Reading:
        """Build a reading from a file's raw bytes."""
        if not file_bytes:
            raise ValueError(
                f"file bytes are empty for Message-ID {message_id!r}, "
                f"Filename: {original_file_name!r}"
            )
        reading_format = ReadingFormat(original_format)
        title = (
            _strip_extension(original_file_name)
            or (envelope.header("Subject") if envelope is not None else "")
            or webhook_subject
        )
        if not title:
            logger.warning(
                "Attachment %r of message %r has no title; using a default",
                original_file_name,
                message_id,
            )
            title = "Untitled Attachment"

        fallback = f"Attached {reading_format.value.upper()} document."
        if reading_format in _TEXT_FORMATS:
            excerpt = generate_excerpt(bytes(file_bytes).decode("utf-8", "replace"))
        else:
            body_text = envelope.text if envelope is not None else ""
            excerpt = generate_excerpt(body_text) if body_text else fallback
            if len(excerpt) > 150:
                excerpt = fallback

        return Reading(
            id=str(uuid.uuid4()),
            source_id=self._source_id_for(sender_email, message_id),
            author=extract_author(envelope),
            created_at=datetime.now(timezone.utc),
            content_hash=content_hash(bytes(file_bytes)),
            content_body="",
            excerpt=excerpt,
            format=reading_format,
            published_at=extract_published_date(envelope),
            storage_path="",
            title=title,
        )

    def _source_id_for(self, sender_email: str, message_id: str) -> str:
        """Return the e-mail source of the sender, creating it if needed.

        Any failure yields the nil UUID, as does a missing sender.
        """
        if self._sources is None:
            logger.warning(
                "No source repository; cannot determine source for %r (message %r)",
                sender_email,
                message_id,
            )
            return NIL_UUID
        if not sender_email:
            return NIL_UUID
        try:
            source = self._sources.get_source_by_identifier_and_type(sender_email, "email")
        except NotFoundError:
            return self._create_source(sender_email, message_id)
        except (DatastoreError, ValueError) as exc:
            logger.error("Failed to query source for sender %r: %s", sender_email, exc)
            return NIL_UUID
        logger.info("Using source %s for sender %r", source.id, sender_email)
        return source.id

    def _create_source(self, sender_email: str, message_id: str) -> str:
        source = ReadingSource(
            id=str(uuid.uuid4()),
            created_at=datetime.now(timezone.utc),
            name=sender_email,
            type="email",
            identifier=sender_email,
        )
        try:
            self._sources.create_reading_source(source)
        except (DatastoreError, ValueError) as exc:
            logger.error(
                "Failed to create source for sender %r (message %r): %s",
                sender_email,
                message_id,
                exc,
            )
            return NIL_UUID
        logger.info("Created source %s for sender %r", source.id, sender_email)
        return source.id
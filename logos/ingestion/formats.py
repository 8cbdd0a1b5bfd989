"""Parsed e-mail envelopes and helpers for choosing attachments by format."""

from __future__ import annotations

import email
import logging
from dataclasses import dataclass, field
from email import policy
from email.message import EmailMessage
from pathlib import PurePath

from bs4 import BeautifulSoup

from logos.records import ReadingFormat

logger = logging.getLogger(__name__)

_DIRECT_FORMATS = frozenset({ReadingFormat.PDF, ReadingFormat.EPUB, ReadingFormat.MOBI})
_DOCX_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"


@dataclass(frozen=True)
class PrioritizedFormat:
    """A file extension and the reading format it stands for."""

    extension: str
    format: ReadingFormat


@dataclass
class Attachment:
    file_name: str = ""
    content_type: str = ""
    content: bytes = b""


@dataclass
class Envelope:
    """The parts of an e-mail message that ingestion uses."""

    text: str = ""
    html: str = ""
    attachments: list[Attachment] = field(default_factory=list)
    inlines: list[Attachment] = field(default_factory=list)
    headers: list[tuple[str, str]] = field(default_factory=list)

    def header(self, name: str) -> str:
        """Return the first header called ``name`` (any case), or an empty string."""
        wanted = name.lower()
        return next((value for key, value in self.headers if key.lower() == wanted), "")


def _text_of(part: EmailMessage) -> str:
    try:
        return part.get_content()
    except (LookupError, ValueError):
        payload = part.get_payload(decode=True) or b""
        return payload.decode("utf-8", "replace")


def _as_attachment(part: EmailMessage) -> Attachment:
    return Attachment(
        file_name=part.get_filename() or "",
        content_type=str(part.get("Content-Type") or part.get_content_type()),
        content=part.get_payload(decode=True) or b"",
    )


def parse_envelope(data: bytes) -> Envelope:
    """Parse a raw MIME message into bodies, attachments and headers."""
    message = email.message_from_bytes(data, policy=policy.default)
    envelope = Envelope(headers=[(key, str(value)) for key, value in message.items()])

    for part in message.walk():
        if part.is_multipart():
            continue
        disposition = part.get_content_disposition()
        file_name = part.get_filename()
        content_type = part.get_content_type()
        is_body_type = content_type in ("text/plain", "text/html")

        if disposition == "attachment" or (file_name and disposition != "inline" and not is_body_type):
            envelope.attachments.append(_as_attachment(part))
        elif file_name and disposition == "inline":
            envelope.inlines.append(_as_attachment(part))
        elif content_type == "text/plain" and not envelope.text:
            envelope.text = _text_of(part)
        elif content_type == "text/html" and not envelope.html:
            envelope.html = _text_of(part)
        elif not is_body_type:
            envelope.inlines.append(_as_attachment(part))

    if not envelope.text and envelope.html:
        envelope.text = BeautifulSoup(envelope.html, "html.parser").get_text("\n").strip()
    return envelope


def attachment_extension_matches(file_name: str, expected_extension: str) -> bool:
    """Whether the file name ends in the expected extension, ignoring case."""
    return PurePath(file_name).suffix.lower() == expected_extension.lower()


def match_attachment_by_content_type(
    attachment: Attachment, prioritized: PrioritizedFormat, content_type_base: str
) -> tuple[bytes, ReadingFormat, str] | None:
    """Identify an attachment by MIME type when its extension did not match.

    Plain text also needs a ``.txt`` or ``.text`` extension, since
    ``text/plain`` says little. Returns content, format and file name.
    """
    wanted = prioritized.format
    if wanted is ReadingFormat.PDF:
        matched = content_type_base == "application/pdf"
    elif wanted is ReadingFormat.DOCX:
        matched = content_type_base == _DOCX_TYPE
    elif wanted is ReadingFormat.RTF:
        matched = content_type_base in ("application/rtf", "text/rtf")
    elif wanted is ReadingFormat.MD:
        matched = content_type_base == "text/markdown"
    elif wanted is ReadingFormat.TXT:
        matched = content_type_base == "text/plain" and (
            attachment_extension_matches(attachment.file_name, ".txt")
            or attachment_extension_matches(attachment.file_name, ".text")
        )
    else:
        matched = False
    if not matched:
        return None
    logger.info(
        "Found %s attachment by content type: Name='%s'", wanted, attachment.file_name
    )
    return attachment.content, wanted, attachment.file_name


def is_direct_reading_format(reading_format: ReadingFormat | str) -> bool:
    """Whether the format is read as is, without conversion to HTML."""
    return reading_format in _DIRECT_FORMATS
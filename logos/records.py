"""Domain records shared by the repositories and services."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class _StrEnum(str, Enum):
    def __str__(self) -> str:
        return self.value


class ReadingFormat(_StrEnum):
    """Format in which a reading's content is stored."""

    HTML = "html"
    TXT = "txt"
    MD = "md"
    DOCX = "docx"
    RTF = "rtf"
    PDF = "pdf"
    EPUB = "epub"
    MOBI = "mobi"


class EditionFormat(_StrEnum):
    """Output format of a generated edition."""

    EPUB = "epub"
    MOBI = "mobi"
    PDF = "pdf"


class DeliveryStatus(_StrEnum):
    """Lifecycle state of a delivery."""

    PENDING = "pending"
    PROCESSING = "processing"
    DELIVERED = "delivered"
    FAILED = "failed"


@dataclass
class User:
    id: str = ""
    email: str = ""
    created_at: datetime | None = None


@dataclass
class ReadingSource:
    id: str = ""
    name: str = ""
    type: str = ""
    identifier: str = ""
    created_at: datetime | None = None


@dataclass
class Reading:
    id: str = ""
    source_id: str = ""
    title: str = ""
    author: str = ""
    created_at: datetime | None = None
    content_hash: str = ""
    content_body: str = ""
    excerpt: str = ""
    format: ReadingFormat = ReadingFormat.HTML
    published_at: datetime | None = None
    storage_path: str = ""


@dataclass
class Edition:
    id: str = ""
    user_id: str = ""
    name: str = ""
    edition_template_id: str = ""
    created_at: datetime | None = None


@dataclass
class EditionTemplate:
    id: str = ""
    user_id: str = ""
    name: str = ""
    created_at: datetime | None = None
    description: str = ""
    format: EditionFormat = EditionFormat.EPUB
    delivery_interval: str = ""
    delivery_time: str = ""
    is_recurring: bool = False
    color_images: bool = False


@dataclass
class EditionMetadata:
    title: str = ""
    author: str = ""
    language: str = ""
    date: str = ""


@dataclass
class DeliveryDestination:
    id: str = ""
    user_id: str = ""
    name: str = ""
    type: str = ""
    is_default: bool = False
    created_at: datetime | None = None


@dataclass
class Delivery:
    id: str = ""
    edition_id: str = ""
    delivery_destination_id: str = ""
    created_at: datetime | None = None
    completed_at: datetime | None = None
    format: EditionFormat = EditionFormat.EPUB
    file_path: str = ""
    file_size: int = 0
    started_at: datetime | None = None
    status: DeliveryStatus = DeliveryStatus.PENDING


@dataclass
class DeliveryAttempt:
    id: str = ""
    delivery_id: str = ""
    created_at: datetime | None = None
    status: DeliveryStatus = DeliveryStatus.PENDING
    error_message: str = ""


@dataclass
class AllowedSender:
    id: str = ""
    user_id: str = ""
    name: str = ""
    email_pattern: str = ""
    created_at: datetime | None = None
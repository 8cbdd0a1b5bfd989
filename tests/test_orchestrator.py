import sqlite3
import uuid
from datetime import datetime, timezone

import pytest

from logos.conversion import Converter
from logos.datastore.common import create_schema
from logos.datastore.readings import ReadingRepository
from logos.datastore.sources import SourceRepository
from logos.datastore.users import UserRepository
from logos.ingestion.content_processor import ContentProcessor
from logos.ingestion.formats import Attachment, Envelope
from logos.ingestion.orchestrator import IngestionError, IngestionOrchestrator
from logos.ingestion.pipeline import ContentPipelineService
from logos.ingestion.reading_builder import ReadingBuilder
from logos.records import ReadingFormat, User

ARTICLE = (
    "<html><body><h1>Daily Letter</h1>"
    "<div><p>This is the first paragraph of a long newsletter article.</p>"
    "<p>And this is the second paragraph, which carries more words.</p></div>"
    "</body></html>"
)


@pytest.fixture
def setup():
    conn = sqlite3.connect(":memory:")
    create_schema(conn)
    user_id = str(uuid.uuid4())
    UserRepository(conn).create_user(
        User(id=user_id, created_at=datetime.now(timezone.utc), email="reader@example.com"),
        "token",
    )
    readings = ReadingRepository(conn)
    sources = SourceRepository(conn)
    pipeline = ContentPipelineService(Converter(pandoc_path=""), ContentProcessor())
    orchestrator = IngestionOrchestrator(readings, sources, pipeline, ReadingBuilder(sources))
    yield orchestrator, readings, user_id
    conn.close()


def test_html_body_is_stored_and_linked(setup):
    orchestrator, readings, user_id = setup
    env = Envelope(html=ARTICLE, headers=[("Subject", "Letter")])
    reading = orchestrator.process_inbound_email(
        user_id, "news@example.com", "Letter", env, "m1"
    )
    assert reading.format is ReadingFormat.HTML
    assert reading.title == "Daily Letter"
    assert reading.storage_path == f"readings/{user_id}/{reading.id}.html"
    assert [r.id for r in readings.get_readings_by_user_id(user_id)] == [reading.id]


def test_duplicate_content_reuses_reading(setup):
    orchestrator, readings, user_id = setup
    env = Envelope(html=ARTICLE)
    first = orchestrator.process_inbound_email(user_id, "news@example.com", "", env, "m1")
    second = orchestrator.process_inbound_email(user_id, "news@example.com", "", env, "m2")
    assert second.id == first.id
    assert second.storage_path == first.storage_path
    assert len(readings.get_readings()) == 1


def test_pdf_attachment_is_used_directly(setup):
    orchestrator, readings, user_id = setup
    pdf = b"%PDF-1.4 " + b"0" * 200
    env = Envelope(
        html=ARTICLE,
        attachments=[Attachment("paper.pdf", "application/pdf", pdf)],
    )
    reading = orchestrator.process_inbound_email(user_id, "a@example.com", "", env, "m")
    assert reading.format is ReadingFormat.PDF
    assert reading.title == "paper"
    stored = readings.get_reading_by_id(reading.id)
    assert stored.storage_path.endswith(".pdf")
    assert stored.format is ReadingFormat.PDF


def test_attachment_matched_by_content_type(setup):
    orchestrator, _, user_id = setup
    data = b"%PDF-1.4 " + b"1" * 200
    env = Envelope(attachments=[Attachment("paper.bin", "application/pdf; name=x", data)])
    reading = orchestrator.process_inbound_email(user_id, "a@example.com", "", env, "m")
    assert reading.format is ReadingFormat.PDF
    assert reading.title == "paper"


def test_small_unmatched_attachment_falls_back_to_text(setup):
    orchestrator, _, user_id = setup
    env = Envelope(
        text="A plain message body that is long enough to be kept as content.",
        attachments=[Attachment("logo.png", "image/png", b"tiny")],
    )
    reading = orchestrator.process_inbound_email(user_id, "a@example.com", "Note", env, "m")
    assert reading.format is ReadingFormat.HTML
    assert "plain message body" in reading.excerpt


def test_empty_message_raises(setup):
    orchestrator, readings, user_id = setup
    with pytest.raises(IngestionError):
        orchestrator.process_inbound_email(user_id, "a@example.com", "", Envelope(), "m")
    assert readings.get_readings() == []


def test_epub_preferred_over_markdown(setup):
    orchestrator, _, user_id = setup
    env = Envelope(
        attachments=[
            Attachment("notes.md", "text/markdown", b"# Notes\n" + b"x" * 200),
            Attachment("book.epub", "application/epub+zip", b"PK" + b"y" * 200),
        ]
    )
    reading = orchestrator.process_inbound_email(user_id, "a@example.com", "", env, "m")
    assert reading.format is ReadingFormat.EPUB
    assert reading.title == "book"
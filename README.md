# logos

`logos` turns the newsletters, articles and documents that arrive by e-mail
into stored readings. An inbound message is parsed, its primary content is
chosen and converted to HTML where possible, the main article is extracted
and cleaned, duplicates are recognised by a SHA-256 content hash, and the
result is stored as a reading linked to a user. Readings can then be bundled
into an EPUB edition and sent to a reader's e-mail address.

## Installing

```
pip install .
pip install ".[test]"   # with pytest and responses for the test suite
```

Converting Markdown, DOCX and RTF needs the `pandoc` program on the `PATH`;
everything else works without it.

## What is inside

- `logos.records` – dataclasses used throughout the package: `User`,
  `ReadingSource`, `Reading`, `Edition`, `EditionTemplate`,
  `EditionMetadata`, `DeliveryDestination`, `Delivery`, `DeliveryAttempt`,
  `AllowedSender`, and the string enums `ReadingFormat`, `EditionFormat`
  and `DeliveryStatus`.
- `logos.datastore` – repositories over a `sqlite3` connection.
  `logos.datastore.common.create_schema(conn)` creates the tables;
  `UserRepository`, `ReadingRepository`, `SourceRepository`,
  `EditionRepository`, `EditionTemplateRepository`,
  `EditionTemplateSourceRepository`, `UserReadingSourceRepository`
  (in `logos.datastore.subscriptions`), `AllowedSenderRepository`,
  `DestinationRepository`, `DeliveryRepository` and
  `DeliveryAttemptRepository` read and write them. Malformed identifiers
  (checked with `validate_uuid`) and missing required fields raise
  `ValueError`; missing rows raise `NotFoundError`; other database failures
  raise `DatastoreError`. Lookups that may legitimately find nothing, such as
  `get_reading_by_content_hash`, `get_default_destination_by_user_id` and
  `get_latest_edition_by_template_id`, return `None` instead.
- `logos.ingestion` – the inbound e-mail path:
  `formats.parse_envelope(data)` reads a raw MIME message into an
  `Envelope`; `pipeline.ContentPipelineService.process_content` converts and
  cleans content with a `Converter` and a `content_processor.ContentProcessor`;
  `reading_builder.ReadingBuilder` turns the result into a `Reading`, finding
  or creating the sender's e-mail `ReadingSource`; and
  `orchestrator.IngestionOrchestrator.process_inbound_email` ties the steps
  together, stores the reading and returns it. Failures raise
  `IngestionError`.
- `logos.conversion` – `Converter.to_html(content, original_format)` returns
  the HTML bytes and the new format. Markdown, DOCX and RTF go through
  pandoc, plain text is wrapped in `<pre>`, HTML is passed through, and PDF,
  EPUB and MOBI come back unchanged with their own format. It raises
  `ConversionError` when no conversion is possible.
- `logos.ebook` – `EditionGenerator.generate_edition` writes
  `<output_dir>/<edition_id>.epub` with a title page, a table of contents and
  one chapter per HTML reading that has a body, and returns the path and the
  file size. Remote `http(s)` images are downloaded and embedded, converted
  to greyscale unless `color_images` is true. The book is always EPUB,
  whatever format is requested.
- `logos.delivery` – `email_provider.EmailDeliveryProvider.deliver` sends a
  file as an e-mail attachment through the SendGrid mail API, trying up to
  three times with a growing delay and raising `DeliveryError` if every
  attempt fails. `service.DeliveryService.execute_delivery` picks the
  provider for a delivery's destination, sets the delivery's status to
  processing and then delivered or failed, and records a `DeliveryAttempt`.

## Example

```python
import sqlite3

from logos.conversion import Converter
from logos.datastore.common import create_schema
from logos.datastore.readings import ReadingRepository
from logos.datastore.sources import SourceRepository
from logos.ingestion.content_processor import ContentProcessor
from logos.ingestion.formats import parse_envelope
from logos.ingestion.orchestrator import IngestionOrchestrator
from logos.ingestion.pipeline import ContentPipelineService
from logos.ingestion.reading_builder import ReadingBuilder

conn = sqlite3.connect("logos.db")
create_schema(conn)
readings = ReadingRepository(conn)
sources = SourceRepository(conn)
orchestrator = IngestionOrchestrator(
    readings,
    sources,
    ContentPipelineService(Converter(), ContentProcessor()),
    ReadingBuilder(sources),
)

with open("message.eml", "rb") as handle:
    envelope = parse_envelope(handle.read())
reading = orchestrator.process_inbound_email(
    user_id, "news@example.com", "Weekly digest", envelope, "<id@example.com>"
)
```

## Attachment priority

When a message carries several attachments, the first match in this order
wins: PDF, EPUB, MOBI, DOCX, RTF, Markdown, then plain text (`.txt` or
`.text`). Files are matched by extension first and by content type second;
attachments under 100 bytes are only accepted when their extension matches.
Without a usable attachment the HTML body is used, and failing that the
plain-text body.

## Allowed senders

`AllowedSenderRepository.is_allowed_sender` checks an address against a
user's patterns. A pattern is either an exact address such as
`news@example.com` or uses `%` as a wildcard, as in `%@example.com`.
Matching ignores case, and a user with no patterns accepts no senders.

## Sending e-mail

E-mail delivery needs a SendGrid API key:

```python
from logos.delivery.email_provider import EmailDeliveryProvider

provider = EmailDeliveryProvider("placeholder", "editions@example.com", "Logos")
provider.deliver("out/edition.epub", "edition.epub", "reader@example.com")
```

## What it does not do

`logos` is a library. It has no command-line program, no HTTP API or
webhook endpoint for receiving mail, and no scheduler that produces
recurring editions from templates; the caller drives each step. Readings are
kept in the database: the `storage_path` of a reading is a label, and no
file is written for it.
"""Conversion of raw content to HTML followed by main-content extraction."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import PurePath

from logos.conversion import ConversionError, Converter
from logos.ingestion.content_processor import (
    ContentProcessingError,
    ContentProcessor,
    ProcessedContent,
)
from logos.records import ReadingFormat

logger = logging.getLogger(__name__)

_CONVERTIBLE = frozenset(
    {ReadingFormat.DOCX, ReadingFormat.RTF, ReadingFormat.MD, ReadingFormat.TXT}
)


@dataclass
class ContentInput:
    """Raw content entering the pipeline."""

    content: bytes
    original_format: ReadingFormat
    original_file_name: str = ""


@dataclass
class PipelineOutput:
    """The bytes to store, their format, and the extraction result for HTML."""

    content: bytes
    format: ReadingFormat
    processed: ProcessedContent | None = None


class ContentPipelineService:
    """Converts content to HTML where possible and extracts its main article."""

    def __init__(self, converter: Converter, content_processor: ContentProcessor) -> None:
        self.converter = converter
        self.content_processor = content_processor

    def process_content(self, content: ContentInput) -> PipelineOutput:
        """Run conversion and extraction; failures fall back to the unconverted content."""
        data = content.content
        current_format = ReadingFormat(content.original_format)

        if current_format in _CONVERTIBLE:
            try:
                data, current_format = self.converter.to_html(content.content, current_format)
            except ConversionError as exc:
                logger.warning(
                    "Conversion failed for '%s' (%s): %s; keeping original content",
                    content.original_file_name,
                    content.original_format,
                    exc,
                )
            else:
                logger.info(
                    "Converted '%s' from %s to %s",
                    content.original_file_name,
                    content.original_format,
                    current_format,
                )

        if current_format is ReadingFormat.HTML:
            html, processed = self._process_html(
                data, content.original_file_name, content.original_format
            )
            return PipelineOutput(html, ReadingFormat.HTML, processed)

        logger.info(
            "Content '%s' (%s) is not HTML; returning as is",
            content.original_file_name,
            current_format,
        )
        return PipelineOutput(data, current_format, None)

    def _process_html(
        self, html: bytes, file_name: str, original_format: ReadingFormat
    ) -> tuple[bytes, ProcessedContent]:
        if not html:
            logger.warning("HTML for %s is empty; skipping extraction", file_name)
            return html, ProcessedContent()

        base_url = f"file://{PurePath(file_name).as_posix()}" if file_name else None
        text = html.decode("utf-8", "replace")
        try:
            extracted = self.content_processor.process(text, base_url)
        except ContentProcessingError as exc:
            logger.warning(
                "Extraction failed for HTML from %s (%s): %s; using unprocessed HTML",
                file_name,
                original_format,
                exc,
            )
            return html, ProcessedContent(main_html=text, main_text=text)

        if not extracted.main_html:
            return html, extracted
        logger.info(
            "Processed HTML from %s. Extracted title: '%s'",
            file_name,
            extracted.extracted_title,
        )
        return extracted.main_html.encode("utf-8"), extracted
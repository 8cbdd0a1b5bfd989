"""Conversion of document formats to HTML, using pandoc where needed."""

from __future__ import annotations

import logging
import shutil
import subprocess

from logos.records import ReadingFormat

logger = logging.getLogger(__name__)

_PANDOC_INPUTS = {
    ReadingFormat.MD: "markdown",
    ReadingFormat.DOCX: "docx",
    ReadingFormat.RTF: "rtf",
}
_DIRECT_FORMATS = frozenset({ReadingFormat.PDF, ReadingFormat.EPUB, ReadingFormat.MOBI})


class ConversionError(Exception):
    """A document could not be converted to HTML."""


class Converter:
    """Converts documents to HTML; pandoc handles Markdown, DOCX and RTF."""

    def __init__(self, pandoc_path: str | None = None, *, timeout: float = 30.0) -> None:
        if pandoc_path is None:
            pandoc_path = shutil.which("pandoc")
            if pandoc_path:
                logger.info("Found pandoc executable at: %s", pandoc_path)
            else:
                logger.warning(
                    "pandoc executable not found in PATH; conversions requiring it will fail"
                )
        self.pandoc_path = pandoc_path or ""
        self.timeout = timeout

    def to_html(
        self, content: bytes, original_format: ReadingFormat | str
    ) -> tuple[bytes, ReadingFormat]:
        """Return the content as HTML with its new format.

        Formats read directly (PDF, EPUB, MOBI) come back unchanged with their
        own format. Raises ``ConversionError`` when no conversion is possible.
        """
        try:
            reading_format = ReadingFormat(original_format)
        except ValueError:
            raise ConversionError(
                f"unsupported format for ToHTML conversion: {original_format}"
            ) from None

        if reading_format is ReadingFormat.HTML:
            return content, ReadingFormat.HTML
        if reading_format is ReadingFormat.TXT:
            return b"<pre>" + content + b"</pre>", ReadingFormat.HTML
        if reading_format in _DIRECT_FORMATS:
            return content, reading_format

        if not self.pandoc_path:
            raise ConversionError(
                f"pandoc conversion required for {reading_format}, "
                "but pandoc executable was not found"
            )
        try:
            html = self._run_pandoc(_PANDOC_INPUTS[reading_format], content)
        except ConversionError as exc:
            logger.error("Failed to convert %s to HTML using pandoc: %s", reading_format, exc)
            raise ConversionError(
                f"pandoc conversion from {reading_format} failed: {exc}"
            ) from exc
        logger.info("Converted %s to HTML using pandoc", reading_format)
        return html, ReadingFormat.HTML

    def _run_pandoc(self, from_format: str, content: bytes) -> bytes:
        try:
            result = subprocess.run(
                [self.pandoc_path, "-f", from_format, "-t", "html"],
                input=content,
                capture_output=True,
                timeout=self.timeout,
                check=False,
            )
        except subprocess.TimeoutExpired as exc:
            stderr = (exc.stderr or b"").decode("utf-8", "replace")
            raise ConversionError(
                f"pandoc execution timed out after {self.timeout}s. Stderr: {stderr}"
            ) from exc
        except OSError as exc:
            raise ConversionError(f"failed to start pandoc command: {exc}") from exc

        stderr = (result.stderr or b"").decode("utf-8", "replace")
        if result.returncode != 0:
            raise ConversionError(
                f"pandoc execution failed with exit code {result.returncode}. "
                f"Stderr: {stderr}"
            )
        if stderr:
            logger.warning(
                "pandoc stderr output during %s to html conversion:\n%s",
                from_format,
                stderr,
            )
        return result.stdout
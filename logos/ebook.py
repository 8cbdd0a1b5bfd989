"""Generation of EPUB editions from collected readings."""

from __future__ import annotations

import io
import logging
import re
import time
import uuid
import zipfile
from dataclasses import dataclass, field
from datetime import datetime, timezone
from html import escape
from pathlib import Path

import requests
from bs4 import BeautifulSoup
from PIL import Image

from logos.records import EditionFormat, EditionMetadata, Reading, ReadingFormat

logger = logging.getLogger(__name__)

_IMG_SRC = re.compile(r"""<img([^>]*)\ssrc=["']([^"']+)["']([^>]*)>""")

_IMAGE_KINDS = {
    "JPEG": ("image/jpeg", ".jpg"),
    "PNG": ("image/png", ".png"),
    "GIF": ("image/gif", ".gif"),
    "WEBP": ("image/webp", ".webp"),
}

_CONTAINER_XML = """<?xml version="1.0" encoding="UTF-8"?>
<container version="1.0" xmlns="urn:oasis:names:tc:opendocument:xmlns:container">
  <rootfiles>
    <rootfile full-path="EPUB/package.opf" media-type="application/oebps-package+xml"/>
  </rootfiles>
</container>
"""


@dataclass
class _Section:
    id: str
    title: str
    body: str

    @property
    def file_name(self) -> str:
        return f"{self.id}.xhtml"


@dataclass
class _EpubImage:
    name: str
    media_type: str
    data: bytes


@dataclass
class _EpubBook:
    """An EPUB 3 book assembled in memory and written as one zip file."""

    title: str
    author: str
    language: str
    identifier: str = field(default_factory=lambda: str(uuid.uuid4()))
    sections: list[_Section] = field(default_factory=list)
    images: list[_EpubImage] = field(default_factory=list)

    def add_section(self, body: str, title: str, section_id: str) -> None:
        self.sections.append(_Section(section_id, title, body))

    def add_image(self, name: str, data: bytes, image_format: str) -> str:
        """Add an image and return the path sections use to refer to it."""
        try:
            media_type, extension = _IMAGE_KINDS[image_format]
        except KeyError:
            raise ValueError(f"unsupported image format: {image_format}") from None
        file_name = name + extension
        self.images.append(_EpubImage(file_name, media_type, data))
        return f"../images/{file_name}"

    def write(self, path: Path) -> None:
        with zipfile.ZipFile(path, "w") as archive:
            archive.writestr(zipfile.ZipInfo("mimetype"), "application/epub+zip")
            deflated = zipfile.ZIP_DEFLATED
            archive.writestr("META-INF/container.xml", _CONTAINER_XML, deflated)
            archive.writestr("EPUB/package.opf", self._package(), deflated)
            archive.writestr("EPUB/nav.xhtml", self._nav(), deflated)
            for section in self.sections:
                archive.writestr(
                    f"EPUB/xhtml/{section.file_name}", self._page(section), deflated
                )
            for image in self.images:
                archive.writestr(f"EPUB/images/{image.name}", image.data, deflated)

    def _page(self, section: _Section) -> str:
        body = str(BeautifulSoup(section.body, "html.parser"))
        return (
            '<?xml version="1.0" encoding="UTF-8"?>\n<!DOCTYPE html>\n'
            '<html xmlns="http://www.w3.org/1999/xhtml" '
            'xmlns:epub="http://www.idpf.org/2007/ops" '
            f'xml:lang="{escape(self.language)}">\n'
            f'<head><meta charset="UTF-8"/><title>{escape(section.title)}</title></head>\n'
            f"<body>\n{body}\n</body>\n</html>\n"
        )

    def _nav(self) -> str:
        entries = "\n".join(
            f'      <li><a href="xhtml/{section.file_name}">{escape(section.title)}</a></li>'
            for section in self.sections
        )
        return (
            '<?xml version="1.0" encoding="UTF-8"?>\n<!DOCTYPE html>\n'
            '<html xmlns="http://www.w3.org/1999/xhtml" '
            'xmlns:epub="http://www.idpf.org/2007/ops">\n'
            f"<head><title>{escape(self.title)}</title></head>\n<body>\n"
            '  <nav epub:type="toc" id="toc">\n    <ol>\n'
            f"{entries}\n    </ol>\n  </nav>\n</body>\n</html>\n"
        )

    def _package(self) -> str:
        modified = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
        manifest = [
            '    <item id="nav" href="nav.xhtml" '
            'media-type="application/xhtml+xml" properties="nav"/>'
        ]
        manifest += [
            f'    <item id="{escape(section.id)}" href="xhtml/{escape(section.file_name)}" '
            'media-type="application/xhtml+xml"/>'
            for section in self.sections
        ]
        manifest += [
            f'    <item id="img-{escape(image.name)}" href="images/{escape(image.name)}" '
            f'media-type="{image.media_type}"/>'
            for image in self.images
        ]
        spine = "\n".join(
            f'    <itemref idref="{escape(section.id)}"/>' for section in self.sections
        )
        manifest_text = "\n".join(manifest)
        return (
            '<?xml version="1.0" encoding="UTF-8"?>\n'
            '<package xmlns="http://www.idpf.org/2007/opf" version="3.0" '
            'unique-identifier="pub-id">\n'
            '  <metadata xmlns:dc="http://purl.org/dc/elements/1.1/">\n'
            f'    <dc:identifier id="pub-id">urn:uuid:{self.identifier}</dc:identifier>\n'
            f"    <dc:title>{escape(self.title)}</dc:title>\n"
            f"    <dc:creator>{escape(self.author)}</dc:creator>\n"
            f"    <dc:language>{escape(self.language)}</dc:language>\n"
            f'    <meta property="dcterms:modified">{modified}</meta>\n'
            "  </metadata>\n"
            f"  <manifest>\n{manifest_text}\n  </manifest>\n"
            f"  <spine>\n{spine}\n  </spine>\n"
            "</package>\n"
        )


def build_title_page(title: str, author: str, date: str) -> str:
    """Return the HTML of the title page; an empty date means today."""
    if not date:
        today = datetime.now()
        date = f"{today:%B} {today.day}, {today.year}"
    return (
        '<div style="text-align: center; padding-top: 40%;">\n'
        f'\t<h1 style="font-size: 2em; margin-bottom: 0.5em;">{title}</h1>\n'
        f'\t<p style="font-size: 1.2em; color: #666;">{date}</p>\n'
        f'\t<p style="font-size: 1em; color: #999; margin-top: 2em;">{author}</p>\n'
        "</div>"
    )


def build_article_section(reading: Reading) -> str:
    """Return the HTML of one article: its title, its author if known, its body."""
    parts = [f"<h1>{reading.title}</h1>"]
    if reading.author:
        parts.append(
            '<p style="color: #666; font-style: italic; margin-bottom: 2em;">'
            f"{reading.author}</p>"
        )
    parts.append(reading.content_body)
    return "".join(parts)


def _original_image(data: bytes) -> tuple[bytes, str]:
    with Image.open(io.BytesIO(data)) as image:
        return data, image.format or ""


def _grayscale_image(data: bytes) -> tuple[bytes, str]:
    with Image.open(io.BytesIO(data)) as image:
        source_format = image.format
        gray = image.convert("L")
    buffer = io.BytesIO()
    if source_format == "JPEG":
        gray.save(buffer, "JPEG", quality=85)
        return buffer.getvalue(), "JPEG"
    gray.save(buffer, "PNG")
    return buffer.getvalue(), "PNG"


class EditionGenerator:
    """Builds EPUB ebooks with a title page, a table of contents and one chapter per article."""

    def __init__(
        self, session: requests.Session | None = None, *, timeout: float = 30.0
    ) -> None:
        self._session = session or requests.Session()
        self.timeout = timeout

    def generate_edition(
        self,
        readings: list[Reading],
        metadata: EditionMetadata,
        output_format: EditionFormat | str,
        output_dir: str,
        edition_id: str,
        color_images: bool,
    ) -> tuple[str, int]:
        """Write ``<output_dir>/<edition_id>.epub`` and return its path and size.

        The book is always written as EPUB. Only HTML readings with a body
        become chapters.
        """
        readings = list(readings)
        if not readings:
            raise ValueError("no readings provided")
        if not output_dir:
            raise ValueError("output directory cannot be empty")
        if not edition_id:
            raise ValueError("edition ID cannot be empty")

        started = time.monotonic()
        title = metadata.title or "Logos Edition"
        author = metadata.author or "Logos"
        book = _EpubBook(title, author, metadata.language or "en")
        book.add_section(build_title_page(title, author, metadata.date), title, "titlepage")

        for number, reading in enumerate(readings, start=1):
            if reading.format != ReadingFormat.HTML or not reading.content_body:
                continue
            body = self._embed_images(book, build_article_section(reading), color_images)
            book.add_section(body, reading.title, f"article-{number}")

        directory = Path(output_dir)
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / f"{edition_id}.epub"
        book.write(path)
        size = path.stat().st_size
        logger.info(
            "Generated EPUB for edition %s: %s (%d articles, %d bytes, %.2fs, requested %s)",
            edition_id,
            path,
            len(readings),
            size,
            time.monotonic() - started,
            output_format,
        )
        return str(path), size

    def _embed_images(self, book: _EpubBook, html: str, color_images: bool) -> str:
        """Download remote images into the book, rewriting their ``src``."""
        count = 0

        def replace(match: re.Match[str]) -> str:
            nonlocal count
            before, source, after = match.groups()
            if source.startswith("data:") or not source.startswith(("http://", "https://")):
                return match.group(0)
            count += 1
            name = f"image-{count:03d}"
            try:
                data = self._download(source)
                prepared = _original_image(data) if color_images else _grayscale_image(data)
                path = book.add_image(name, *prepared)
            except (requests.RequestException, OSError, ValueError) as exc:
                logger.warning("Failed to embed image %s: %s", source, exc)
                return match.group(0)
            return f'<img{before} src="{path}"{after}>'

        result = _IMG_SRC.sub(replace, html)
        if count:
            logger.info("Embedded %d images in EPUB (color: %s)", count, color_images)
        return result

    def _download(self, url: str) -> bytes:
        response = self._session.get(url, timeout=self.timeout)
        if response.status_code != 200:
            raise ValueError(f"image download returned status {response.status_code}")
        return response.content
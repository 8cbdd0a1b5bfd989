"""Cleaning of inbound HTML and extraction of the main article content."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from urllib.parse import urljoin

from bs4 import BeautifulSoup
from bs4.element import PreformattedString, Tag

logger = logging.getLogger(__name__)

_SKIP_CONTENT = [
    "script", "style", "title", "iframe", "noscript", "noembed", "noframes",
    "frameset", "object", "template", "textarea", "select",
]
_ALLOWED_TAGS = frozenset({
    "a", "abbr", "article", "aside", "b", "blockquote", "br", "caption", "cite",
    "code", "dd", "del", "details", "dfn", "div", "dl", "dt", "em", "figcaption",
    "figure", "footer", "h1", "h2", "h3", "h4", "h5", "h6", "header", "hr", "i",
    "img", "ins", "kbd", "li", "main", "mark", "nav", "ol", "p", "pre", "q", "s",
    "samp", "section", "small", "span", "strike", "strong", "sub", "summary", "sup",
    "table", "tbody", "td", "tfoot", "th", "thead", "time", "tr", "u", "ul",
})
_GLOBAL_ATTRS = frozenset({"title", "lang", "dir"})
_TAG_ATTRS = {
    "a": {"href"},
    "img": {"src", "alt", "width", "height"},
    "td": {"colspan", "rowspan"},
    "th": {"colspan", "rowspan", "scope"},
    "ol": {"start", "reversed", "type"},
    "blockquote": {"cite"},
    "q": {"cite"},
    "time": {"datetime"},
}
_URL_ATTRS = frozenset({"href", "src", "cite"})
_UNSAFE_SCHEMES = ("javascript:", "vbscript:")
_CONTENT_BLOCKS = ["p", "pre", "blockquote"]
_MIN_BLOCK_LENGTH = 25


class ContentProcessingError(Exception):
    """No usable content could be obtained from the HTML."""


@dataclass
class ProcessedContent:
    main_html: str = ""
    main_text: str = ""
    extracted_title: str = ""


def _sanitize(raw_html: str) -> str:
    """Keep a safe subset of tags and attributes, dropping scripts and the like."""
    soup = BeautifulSoup(raw_html, "html.parser")
    for node in list(soup.descendants):
        if isinstance(node, PreformattedString):
            node.extract()
    while (tag := soup.find(_SKIP_CONTENT)) is not None:
        tag.decompose()
    for tag in soup.find_all(True):
        if tag.name not in _ALLOWED_TAGS:
            tag.unwrap()
            continue
        allowed = _GLOBAL_ATTRS | _TAG_ATTRS.get(tag.name, set())
        kept = {}
        for name, value in tag.attrs.items():
            if name not in allowed:
                continue
            if isinstance(value, list):
                value = " ".join(value)
            if name in _URL_ATTRS and value.strip().lower().startswith(_UNSAFE_SCHEMES):
                continue
            kept[name] = value
        tag.attrs = kept
    return str(soup).strip()


def _strip_tags(html: str) -> str:
    return BeautifulSoup(html, "html.parser").get_text()


def _extract(cleaned_html: str, base_url: str | None) -> ProcessedContent | None:
    """Find the container richest in paragraph text; ``None`` if there is none."""
    soup = BeautifulSoup(cleaned_html, "html.parser")
    scores: dict[int, float] = {}
    nodes: dict[int, Tag] = {}
    for block in soup.find_all(_CONTENT_BLOCKS):
        length = len(block.get_text(" ", strip=True))
        if length < _MIN_BLOCK_LENGTH:
            continue
        parent = block.parent
        grandparent = parent.parent if parent is not None else None
        for container, weight in ((parent, 1.0), (grandparent, 0.5)):
            if container is None:
                continue
            nodes[id(container)] = container
            scores[id(container)] = scores.get(id(container), 0.0) + length * weight
    if not scores:
        return None

    best = nodes[max(scores, key=scores.__getitem__)]
    if base_url:
        for tag in best.find_all(["a", "img"]):
            attribute = "href" if tag.name == "a" else "src"
            if tag.get(attribute):
                tag[attribute] = urljoin(base_url, tag[attribute])

    heading = soup.find("h1") or soup.find("h2")
    title = heading.get_text(" ", strip=True) if heading is not None else ""
    content = str(best).strip()
    if not content:
        return None
    text = " ".join(best.get_text(" ").split())
    return ProcessedContent(main_html=content, main_text=text, extracted_title=title)


class ContentProcessor:
    """Cleans raw HTML and extracts the main article from it."""

    def process(self, raw_html: str, base_url: str | None = None) -> ProcessedContent:
        """Return the cleaned main content; ``base_url`` resolves relative links."""
        if not raw_html:
            raise ContentProcessingError("raw HTML content is empty")

        cleaned = _sanitize(raw_html)
        if not cleaned:
            logger.warning("Sanitizing non-empty raw HTML produced an empty string")

        extracted = _extract(cleaned, base_url) if cleaned else None
        if extracted is not None:
            logger.info(
                "Extracted main content. Extracted title: '%s'", extracted.extracted_title
            )
            result = extracted
        else:
            logger.warning("Main content extraction found nothing; using cleaned HTML")
            result = ProcessedContent(main_html=cleaned, main_text=_strip_tags(cleaned))

        if not result.main_html:
            raise ContentProcessingError(
                "processed content (MainHTML) is empty after cleaning and attempting extraction"
            )
        return result
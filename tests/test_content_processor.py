import pytest

from logos.ingestion.content_processor import (
    ContentProcessingError,
    ContentProcessor,
    ProcessedContent,
)

PARAGRAPH = "This paragraph holds enough words to count as the main body of an article."
SECOND = "Another long paragraph follows so that the article clearly wins the scoring."


def _article_page():
    return (
        "<html><head><title>Page</title><script>alert(1)</script></head><body>"
        '<nav><a href="/">Home</a> <a href="/about">About us</a></nav>'
        f"<article><h1>Headline</h1><p>{PARAGRAPH}</p><p>{SECOND}</p></article>"
        "</body></html>"
    )


def test_empty_input_raises():
    with pytest.raises(ContentProcessingError):
        ContentProcessor().process("", None)


def test_input_that_sanitizes_to_nothing_raises():
    with pytest.raises(ContentProcessingError):
        ContentProcessor().process("<script>alert(1)</script>", None)


def test_extracts_main_article():
    result = ContentProcessor().process(_article_page(), None)
    assert PARAGRAPH in result.main_html
    assert SECOND in result.main_text
    assert "About us" not in result.main_html
    assert "alert" not in result.main_html
    assert result.extracted_title == "Headline"


def test_unsafe_attributes_removed():
    html = f'<div><p onclick="steal()" style="color:red">{PARAGRAPH}</p></div>'
    result = ContentProcessor().process(html, None)
    assert "onclick" not in result.main_html
    assert "style" not in result.main_html
    assert PARAGRAPH in result.main_text


def test_javascript_links_dropped():
    html = f'<div><p>{PARAGRAPH} <a href="javascript:evil()">x</a></p></div>'
    result = ContentProcessor().process(html, None)
    assert "javascript" not in result.main_html


def test_fallback_uses_cleaned_html():
    result = ContentProcessor().process("<b>hi</b><script>x()</script>", None)
    assert result == ProcessedContent(main_html="<b>hi</b>", main_text="hi", extracted_title="")


def test_relative_links_resolved_against_base():
    html = f'<div><p>{PARAGRAPH} <a href="page.html">more</a></p></div>'
    result = ContentProcessor().process(html, "http://example.com/dir/")
    assert 'href="http://example.com/dir/page.html"' in result.main_html
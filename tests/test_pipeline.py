from logos.conversion import Converter
from logos.ingestion.content_processor import ContentProcessor, ProcessedContent
from logos.ingestion.pipeline import ContentInput, ContentPipelineService, PipelineOutput
from logos.records import ReadingFormat

PARAGRAPH = "This paragraph holds enough words to count as the main body of an article."


class _MarkdownToHtml:
    def to_html(self, content, original_format):
        return b"<article><p>" + content + b"</p></article>", ReadingFormat.HTML


def _service(converter=None):
    return ContentPipelineService(converter or Converter(""), ContentProcessor())


def test_html_is_processed():
    html = f"<div><p>{PARAGRAPH}</p></div><script>x()</script>".encode()
    output = _service().process_content(ContentInput(html, ReadingFormat.HTML, "body.html"))
    assert output.format is ReadingFormat.HTML
    assert PARAGRAPH in output.content.decode()
    assert b"script" not in output.content
    assert output.processed.main_html == output.content.decode()


def test_text_is_wrapped_and_processed():
    output = _service().process_content(
        ContentInput(PARAGRAPH.encode(), ReadingFormat.TXT, "notes.txt")
    )
    assert output.format is ReadingFormat.HTML
    assert "<pre>" in output.content.decode()
    assert PARAGRAPH in output.processed.main_text


def test_pdf_passes_through():
    data = b"%PDF-1.4 fake"
    output = _service().process_content(ContentInput(data, ReadingFormat.PDF, "a.pdf"))
    assert output == PipelineOutput(data, ReadingFormat.PDF, None)


def test_failed_conversion_keeps_original():
    data = b"# Heading"
    output = _service().process_content(ContentInput(data, ReadingFormat.MD, "a.md"))
    assert output == PipelineOutput(data, ReadingFormat.MD, None)


def test_converted_markdown_is_processed():
    output = _service(_MarkdownToHtml()).process_content(
        ContentInput(PARAGRAPH.encode(), ReadingFormat.MD, "a.md")
    )
    assert output.format is ReadingFormat.HTML
    assert PARAGRAPH in output.content.decode()
    assert output.processed is not None and PARAGRAPH in output.processed.main_text


def test_empty_html_yields_empty_processed():
    output = _service().process_content(ContentInput(b"", ReadingFormat.HTML))
    assert output == PipelineOutput(b"", ReadingFormat.HTML, ProcessedContent())


def test_unprocessable_html_falls_back_to_original():
    html = "<script>only()</script>"
    output = _service().process_content(ContentInput(html.encode(), ReadingFormat.HTML))
    assert output.content == html.encode()
    assert output.processed == ProcessedContent(main_html=html, main_text=html)
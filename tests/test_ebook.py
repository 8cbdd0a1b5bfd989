import io
import zipfile

import pytest
import responses
from PIL import Image

from logos.ebook import EditionGenerator, build_article_section, build_title_page
from logos.records import EditionFormat, EditionMetadata, Reading, ReadingFormat

IMAGE_URL = "http://example.com/picture.png"


def _png_bytes():
    buffer = io.BytesIO()
    Image.new("RGB", (4, 4), (200, 30, 30)).save(buffer, "PNG")
    return buffer.getvalue()


def _html_reading(title="First", body="<p>Body</p>", author=""):
    return Reading(
        id="r1", title=title, author=author, content_body=body, format=ReadingFormat.HTML
    )


def _generate(tmp_path, readings, color_images=False, metadata=None):
    generator = EditionGenerator()
    return generator.generate_edition(
        readings,
        metadata or EditionMetadata(),
        EditionFormat.EPUB,
        str(tmp_path / "out"),
        "edition-1",
        color_images,
    )


def test_title_page_holds_title_date_and_author():
    page = build_title_page("My Title", "Someone", "May 1, 2024")
    assert "My Title" in page
    assert "May 1, 2024" in page
    assert page.index("My Title") < page.index("May 1, 2024") < page.index("Someone")


def test_title_page_defaults_date():
    page = build_title_page("T", "A", "")
    assert "<p style=\"font-size: 1.2em; color: #666;\"></p>" not in page


def test_article_section_with_and_without_author():
    with_author = build_article_section(_html_reading(author="Jane"))
    assert with_author.startswith("<h1>First</h1>")
    assert "Jane" in with_author
    assert with_author.endswith("<p>Body</p>")
    without = build_article_section(_html_reading())
    assert without == "<h1>First</h1><p>Body</p>"


def test_generate_writes_epub(tmp_path):
    path, size = _generate(tmp_path, [_html_reading()])
    assert path.endswith("edition-1.epub")
    assert size == (tmp_path / "out" / "edition-1.epub").stat().st_size
    with zipfile.ZipFile(path) as archive:
        assert archive.namelist()[0] == "mimetype"
        assert archive.read("mimetype") == b"application/epub+zip"
        assert archive.getinfo("mimetype").compress_type == zipfile.ZIP_STORED
        title_page = archive.read("EPUB/xhtml/titlepage.xhtml").decode()
        assert "Logos Edition" in title_page
        assert "Body" in archive.read("EPUB/xhtml/article-1.xhtml").decode()


def test_generate_skips_non_html_and_empty(tmp_path):
    readings = [
        _html_reading(),
        Reading(id="r2", title="Paper", content_body="x", format=ReadingFormat.PDF),
        _html_reading(title="Empty", body=""),
    ]
    path, _ = _generate(tmp_path, readings)
    with zipfile.ZipFile(path) as archive:
        pages = sorted(n for n in archive.namelist() if n.startswith("EPUB/xhtml/"))
    assert pages == ["EPUB/xhtml/article-1.xhtml", "EPUB/xhtml/titlepage.xhtml"]


def test_metadata_title_used(tmp_path):
    path, _ = _generate(
        tmp_path, [_html_reading()], metadata=EditionMetadata(title="Morning", author="Me")
    )
    with zipfile.ZipFile(path) as archive:
        package = archive.read("EPUB/package.opf").decode()
    assert "<dc:title>Morning</dc:title>" in package
    assert "<dc:creator>Me</dc:creator>" in package


@pytest.mark.parametrize(
    "readings, output_dir, edition_id",
    [([], "out", "e"), ([Reading()], "", "e"), ([Reading()], "out", "")],
)
def test_generate_rejects_missing_input(tmp_path, readings, output_dir, edition_id):
    with pytest.raises(ValueError):
        EditionGenerator().generate_edition(
            readings, EditionMetadata(), EditionFormat.EPUB, output_dir, edition_id, True
        )


@pytest.mark.parametrize("color_images, mode", [(False, "L"), (True, "RGB")])
def test_images_are_embedded(tmp_path, color_images, mode):
    body = f'<p>Look</p><img alt="x" src="{IMAGE_URL}">'
    with responses.RequestsMock() as mock:
        mock.add(responses.GET, IMAGE_URL, body=_png_bytes(), status=200)
        path, _ = _generate(tmp_path, [_html_reading(body=body)], color_images)
    with zipfile.ZipFile(path) as archive:
        page = archive.read("EPUB/xhtml/article-1.xhtml").decode()
        image = Image.open(io.BytesIO(archive.read("EPUB/images/image-001.png")))
    assert "../images/image-001.png" in page
    assert IMAGE_URL not in page
    assert image.mode == mode


def test_failed_download_keeps_original_src(tmp_path):
    body = f'<img src="{IMAGE_URL}">'
    with responses.RequestsMock() as mock:
        mock.add(responses.GET, IMAGE_URL, status=404)
        path, _ = _generate(tmp_path, [_html_reading(body=body)])
    with zipfile.ZipFile(path) as archive:
        page = archive.read("EPUB/xhtml/article-1.xhtml").decode()
        assert not [n for n in archive.namelist() if n.startswith("EPUB/images/")]
    assert IMAGE_URL in page


def test_relative_and_data_images_untouched(tmp_path):
    body = '<img src="local/pic.png"><img src="data:image/png;base64,AAAA">'
    path, _ = _generate(tmp_path, [_html_reading(body=body)])
    with zipfile.ZipFile(path) as archive:
        page = archive.read("EPUB/xhtml/article-1.xhtml").decode()
    assert "local/pic.png" in page
    assert "data:image/png;base64,AAAA" in page
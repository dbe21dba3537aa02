from __future__ import annotations

import pytest
from ebooklib import epub

from pageup_reader.classify import classify_chapters
from pageup_reader.errors import UnsupportedFormatError
from pageup_reader.ingest.epub_loader import EpubLoader
from pageup_reader.ingest.html_loader import HtmlLoader
from pageup_reader.reader import load_book


def _write_epub(path):
    book = epub.EpubBook()
    book.set_identifier("pageup-test")
    book.set_title("River Tales")
    book.set_language("en")

    cover = epub.EpubHtml(title="Cover", file_name="cover.xhtml", lang="en", uid="cover")
    cover.content = "<html><body><p>River Tales, a cover page</p></body></html>"
    first = epub.EpubHtml(title="The Source", file_name="chap_01.xhtml", lang="en", uid="chapter_1")
    first.content = "<html><body><h1>The Source</h1><p>Water <i>starts</i> here.</p></body></html>"
    second = epub.EpubHtml(title="Chapter 2", file_name="chap_02.xhtml", lang="en", uid="chapter_2")
    second.content = "<html><body><p>It reaches the sea.</p></body></html>"

    for item in (cover, first, second):
        book.add_item(item)
    book.toc = (
        epub.Link("chap_01.xhtml", "The Source", "source"),
        epub.Link("chap_02.xhtml#start", "Chapter 2", "sea"),
    )
    book.add_item(epub.EpubNcx())
    book.add_item(epub.EpubNav())
    book.spine = [cover, first, second]
    epub.write_epub(str(path), book)


def test_epub_loader_walks_the_spine_with_toc_labels(tmp_path):
    path = tmp_path / "river.epub"
    _write_epub(path)

    sources = EpubLoader().load(path)

    assert [source.identifier for source in sources] == ["cover", "chapter_1", "chapter_2"]
    assert [source.path for source in sources] == ["cover.xhtml", "chap_01.xhtml", "chap_02.xhtml"]
    assert [source.label for source in sources] == [None, "The Source", "Chapter 2"]

    chapters = classify_chapters(sources)
    assert chapters[0].is_metadata
    assert [chapter.chapter_number for chapter in chapters[1:]] == [1, 2]
    assert [chapter.title for chapter in chapters[1:]] == ["The Source", None]
    assert "<em>starts</em>" in chapters[1].normalized_content


def test_epub_loader_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        EpubLoader().load(tmp_path / "missing.epub")


def test_html_marked_sections():
    markup = """
    <html><body>
      <section data-chapter="3"><h2>The Storm</h2><p>Rain.</p></section>
      <section data-chapter-number="4" data-chapter-title="After"><p>Sun.</p></section>
    </body></html>
    """

    sources = HtmlLoader().load_string(markup)

    assert [source.number_hint for source in sources] == [3, 4]
    assert [source.label for source in sources] == ["The Storm", "After"]
    assert [source.index for source in sources] == [0, 1]


def test_html_chapter_headings_split_the_body():
    markup = (
        "<html><body><p>Preface text.</p>"
        "<h2>Chapter 1</h2><p>One.</p>"
        "<h2>Chapter 2</h2><p>Two.</p><h3>Chapter 9 aside</h3>"
        "</body></html>"
    )

    sources = HtmlLoader().load_string(markup)

    assert [source.label for source in sources] == [None, "Chapter 1", "Chapter 2"]
    assert [source.number_hint for source in sources] == [None, 1, 2]
    assert "<h2>Chapter 1</h2>" in sources[1].root
    assert "Chapter 9 aside" in sources[2].root


def test_html_numbered_headings_are_recognised():
    markup = "<body><h1>1. Dawn</h1><p>Early.</p><h1>2. Dusk</h1><p>Late.</p></body>"

    sources = HtmlLoader().load_string(markup)

    assert [source.label for source in sources] == ["1. Dawn", "2. Dusk"]


def test_html_whole_document_fallback():
    markup = "<html><head><title>Notes</title></head><body><p>Just text.</p></body></html>"

    sources = HtmlLoader().load_string(markup)

    assert len(sources) == 1
    assert sources[0].label == "Notes"
    assert sources[0].number_hint == 1
    assert classify_chapters(sources)[0].normalized_content == "<p>Just text.</p>"


def test_load_book_dispatches_on_extension(tmp_path):
    html_path = tmp_path / "book.HTML"
    html_path.write_text("<body><p>Hello.</p></body>", encoding="utf-8")
    text_path = tmp_path / "book.txt"
    text_path.write_text("Hello.", encoding="utf-8")

    assert len(load_book(html_path)) == 1
    with pytest.raises(UnsupportedFormatError):
        load_book(text_path)

from __future__ import annotations

from conftest import paragraph
from pageup_reader.chunker import Page, chunk
from pageup_reader.ingest import Chapter
from pageup_reader.reflow import MatchStrategy, extract_snippet, map_position, remap
from pageup_reader.text.markup import squash_whitespace


def _book(paragraphs_per_chapter=(12, 8)) -> list:
    chapters = []
    counter = 0
    for index, count in enumerate(paragraphs_per_chapter):
        body = ""
        for _ in range(count):
            body += f"<p>{paragraph(counter)}</p>"
            counter += 1
        chapters.append(
            Chapter(
                title=f"Part {index + 1}",
                normalized_content=body,
                is_metadata=False,
                source_index=index,
                chapter_number=index + 1,
            )
        )
    return chapters


def _page(index: int, chapter: int, text: str) -> Page:
    return Page(
        id=index + 1,
        title=None,
        source_chapter_index=chapter,
        chapter_number=chapter + 1,
        chapter_display_title=None,
        text=f"<p>{text}</p>",
    )


def test_extract_snippet_prefers_whole_sentences():
    text = "The first sentence is reasonably long, over fifty characters. Second one! " + "x " * 100

    assert extract_snippet(text) == "The first sentence is reasonably long, over fifty characters. Second one!"


def test_extract_snippet_truncates_at_a_late_word_boundary():
    text = "word " * 60

    snippet = extract_snippet(text)

    assert len(snippet) <= 200
    assert snippet.endswith("word")
    assert len(snippet) > 140


def test_extract_snippet_keeps_hard_cut_without_late_space():
    text = "short " + "z" * 300

    assert extract_snippet(text) == ("short " + "z" * 300)[:200]


def test_remap_with_unchanged_size_keeps_the_position():
    chapters = _book()
    pages = chunk(chapters, 300).pages

    for index in range(len(pages)):
        new_index, _ = map_position(pages, index, pages)
        assert new_index == index


def test_medium_to_less_lands_on_the_page_with_the_same_text():
    chapters = _book()
    old_pages = chunk(chapters, 500).pages
    old_index = 1

    result = remap(chapters, old_pages, old_index, 300)

    snippet = extract_snippet(old_pages[old_index].plain_text)
    assert len(snippet) >= 50
    assert result.strategy is MatchStrategy.EXACT_TEXT
    assert squash_whitespace(snippet) in squash_whitespace(result.pages[result.new_index].plain_text)
    assert result.new_index == 2
    assert result.chapter_index.total_chapters == 2


def test_chapter_relative_fallback_when_snippet_is_too_short():
    old_pages = [_page(0, 0, "Tiny."), _page(1, 1, "A."), _page(2, 1, "B."), _page(3, 1, "C.")]
    new_pages = [_page(0, 0, "Other."), _page(1, 1, "D."), _page(2, 1, "E.")]

    index, strategy = map_position(old_pages, 3, new_pages)

    assert strategy is MatchStrategy.CHAPTER_RELATIVE
    assert index == 2


def test_book_relative_fallback_when_chapter_is_gone():
    old_pages = [_page(i, 5, f"{i}.") for i in range(5)]
    new_pages = [_page(i, 9, f"{i}.") for i in range(9)]

    index, strategy = map_position(old_pages, 2, new_pages)

    assert strategy is MatchStrategy.BOOK_RELATIVE
    assert index == 4


def test_degenerate_inputs_never_raise():
    pages = [_page(i, 0, f"{i}.") for i in range(3)]

    assert map_position(pages, 1, []) == (0, MatchStrategy.EMPTY)
    assert map_position([], 4, pages) == (0, MatchStrategy.BOOK_RELATIVE)
    index, _ = map_position(pages, 99, pages)
    assert index == 2


def test_snippet_thresholds_can_be_overridden():
    old_pages = [_page(0, 0, "Short but unique marker."), _page(1, 0, "Another.")]
    new_pages = [_page(0, 3, "Filler."), _page(1, 3, "Short but unique marker.")]

    assert map_position(old_pages, 0, new_pages)[1] is MatchStrategy.BOOK_RELATIVE
    assert map_position(old_pages, 0, new_pages, min_length=10) == (1, MatchStrategy.EXACT_TEXT)


def test_repeated_passage_resolves_to_the_nearest_copy():
    refrain = "The bells rang out over the harbour as the boats came home."
    pages = [
        _page(0, 0, "Opening lines."),
        _page(1, 0, refrain),
        _page(2, 0, "Between the choruses."),
        _page(3, 0, refrain),
        _page(4, 0, "Closing lines."),
    ]

    assert map_position(pages, 3, pages) == (3, MatchStrategy.EXACT_TEXT)
    assert map_position(pages, 1, pages) == (1, MatchStrategy.EXACT_TEXT)


def test_extract_snippet_keeps_an_unterminated_final_run():
    text = "Short opener. " + "the tide " * 18 + "turned"

    assert extract_snippet(text) == text

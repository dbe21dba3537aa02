"""Re-chunk at a new page size while keeping the reader in the same place."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import logging
import math
from typing import Optional, Sequence, Tuple

from .chunker import ChapterIndex, Chunker, Page
from .ingest import Chapter
from .text.markup import collapse_whitespace, split_sentences, squash_whitespace

logger = logging.getLogger(__name__)

SNIPPET_MAX_LENGTH = 200
SNIPPET_MIN_LENGTH = 50
# A truncated snippet is cut back to its last space only past this share of
# the maximum length.
WORD_BOUNDARY_RATIO = 0.7


class MatchStrategy(str, Enum):
    EXACT_TEXT = "exact_text"
    CHAPTER_RELATIVE = "chapter_relative"
    BOOK_RELATIVE = "book_relative"
    EMPTY = "empty"


@dataclass(frozen=True)
class RemapResult:
    pages: Tuple[Page, ...]
    new_index: int
    chapter_index: ChapterIndex
    strategy: MatchStrategy


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def extract_snippet(text: str, max_length: int = SNIPPET_MAX_LENGTH, min_length: int = SNIPPET_MIN_LENGTH) -> str:
    """Return a representative opening snippet of *text*.

    Whole leading sentences, including an unterminated final run, are
    preferred while they fit in *max_length*.
    When they amount to fewer than *min_length* characters the first
    *max_length* characters are used instead, cut back to a word boundary
    if one lies late enough.
    """

    text = collapse_whitespace(text).strip()
    snippet = ""
    for sentence in split_sentences(text):
        if len(snippet) + len(sentence) > max_length:
            break
        snippet += sentence
    snippet = snippet.strip()
    if len(snippet) >= min_length:
        return snippet

    truncated = text[:max_length]
    last_space = truncated.rfind(" ")
    if last_space > max_length * WORD_BOUNDARY_RATIO:
        truncated = truncated[:last_space]
    return truncated.strip()


def _find_snippet(snippet: str, pages: Sequence[Page], chapter: int, expected: float) -> Optional[int]:
    """Return the page holding *snippet*, nearest *expected* when it repeats.

    Matches inside *chapter* win over matches elsewhere in the book.
    """

    needle = squash_whitespace(snippet)
    matches = [index for index, page in enumerate(pages) if needle in squash_whitespace(page.plain_text)]
    if not matches:
        return None
    in_chapter = [index for index in matches if pages[index].source_chapter_index == chapter]
    return min(in_chapter or matches, key=lambda index: abs(index - expected))


def _chapter_relative(old_pages: Sequence[Page], old_index: int, new_pages: Sequence[Page]) -> Optional[int]:
    chapter = old_pages[old_index].source_chapter_index
    old_chapter = [index for index, page in enumerate(old_pages) if page.source_chapter_index == chapter]
    new_chapter = [index for index, page in enumerate(new_pages) if page.source_chapter_index == chapter]
    if not new_chapter:
        return None
    fraction = old_chapter.index(old_index) / max(len(old_chapter) - 1, 1)
    target = _round_half_up(fraction * (len(new_chapter) - 1))
    return new_chapter[min(target, len(new_chapter) - 1)]


def map_position(
    old_pages: Sequence[Page],
    old_index: int,
    new_pages: Sequence[Page],
    *,
    max_length: int = SNIPPET_MAX_LENGTH,
    min_length: int = SNIPPET_MIN_LENGTH,
) -> Tuple[int, MatchStrategy]:
    """Map *old_index* in *old_pages* to the best index in *new_pages*."""

    if not new_pages:
        return 0, MatchStrategy.EMPTY
    last = len(new_pages) - 1
    if not old_pages:
        return 0, MatchStrategy.BOOK_RELATIVE

    old_index = max(0, min(old_index, len(old_pages) - 1))
    current = old_pages[old_index]

    snippet = extract_snippet(current.plain_text, max_length, min_length)
    if len(snippet) >= min_length:
        expected = old_index / (len(old_pages) - 1) * last if len(old_pages) > 1 else 0.0
        found = _find_snippet(snippet, new_pages, current.source_chapter_index, expected)
        if found is not None:
            return found, MatchStrategy.EXACT_TEXT

    found = _chapter_relative(old_pages, old_index, new_pages)
    if found is not None:
        return found, MatchStrategy.CHAPTER_RELATIVE

    fraction = old_index / (len(old_pages) - 1) if len(old_pages) > 1 else 0.0
    return max(0, min(_round_half_up(fraction * last), last)), MatchStrategy.BOOK_RELATIVE


def remap(
    chapters: Sequence[Chapter],
    old_pages: Sequence[Page],
    old_index: int,
    new_max_chunk_size: int,
    **snippet_options: int,
) -> RemapResult:
    """Re-chunk *chapters* at *new_max_chunk_size* and carry the position over.

    ``snippet_options`` accepts ``max_length`` and ``min_length`` to tune the
    exact-text anchor.
    """

    result = Chunker(new_max_chunk_size).chunk(chapters)
    new_index, strategy = map_position(old_pages, old_index, result.pages, **snippet_options)
    logger.debug(
        "Remapped page %d/%d to %d/%d via %s",
        old_index,
        len(old_pages),
        new_index,
        len(result.pages),
        strategy.value,
    )
    return RemapResult(
        pages=result.pages,
        new_index=new_index,
        chapter_index=result.chapter_index,
        strategy=strategy,
    )


__all__ = [
    "MatchStrategy",
    "RemapResult",
    "SNIPPET_MAX_LENGTH",
    "SNIPPET_MIN_LENGTH",
    "extract_snippet",
    "map_position",
    "remap",
]

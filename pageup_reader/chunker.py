"""Pack classified chapters into size-bounded, formatting-preserving pages.

A page budget is measured in characters of de-tagged text. Blocks (paragraphs,
headings and block wrappers) are packed greedily; a block that alone exceeds
the budget is split, first into its child blocks, then by sentences, then by
words. Only a single word longer than the budget may produce an oversized page.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import cached_property
import html
import logging
from typing import Iterator, List, Optional, Sequence, Tuple

from bs4 import Tag

from .errors import NoExtractableContentError
from .ingest import Chapter
from .text.markup import (
    ALLOWED_TAGS,
    BLOCK_TAGS,
    close_tag,
    detag,
    is_text,
    open_tag,
    parse_fragment,
    render_node,
    render_nodes,
    sentence_spans,
    trim_span,
    word_spans,
)

logger = logging.getLogger(__name__)

Span = Tuple[int, int]


@dataclass(frozen=True)
class Page:
    """One screenful of a chapter."""

    id: int
    title: Optional[str]
    source_chapter_index: int
    chapter_number: Optional[int]
    chapter_display_title: Optional[str]
    text: str

    @cached_property
    def plain_text(self) -> str:
        return detag(self.text)


@dataclass(frozen=True)
class ChapterEntry:
    display_title: Optional[str]
    start_page_index: int
    end_page_index: int
    chapter_number: Optional[int]


@dataclass(frozen=True)
class ChapterIndex:
    """Page ranges of the content chapters of one chunking run."""

    entries: Tuple[ChapterEntry, ...] = ()
    total_chapters: int = 0

    def entry_for_page(self, page_index: int) -> Optional[ChapterEntry]:
        for entry in self.entries:
            if entry.start_page_index <= page_index <= entry.end_page_index:
                return entry
        return None


@dataclass(frozen=True)
class ChunkResult:
    pages: Tuple[Page, ...]
    chapter_index: ChapterIndex


@dataclass
class _Block:
    """A block element plus the wrapper elements it was lifted out of."""

    node: Tag
    wrappers: Tuple[Tag, ...] = ()

    @cached_property
    def text(self) -> str:
        return detag(self.node)

    def has_nested_blocks(self) -> bool:
        return self.node.find(list(BLOCK_TAGS)) is not None

    def markup(self, body: Optional[str] = None) -> str:
        opening = "".join(open_tag(wrapper) for wrapper in self.wrappers)
        closing = "".join(close_tag(wrapper) for wrapper in reversed(self.wrappers))
        return f"{opening}{render_node(self.node) if body is None else body}{closing}"


def _synthetic_paragraph(nodes: Sequence[object]) -> Tag:
    return parse_fragment(f"<p>{render_nodes(nodes)}</p>").p


def collect_blocks(container: Tag) -> List[_Block]:
    """Return the top-level blocks of *container* in document order.

    Non-block containers are searched for blocks; loose text and inline runs
    between blocks become synthetic paragraphs so that no text is dropped.
    """

    blocks: List[_Block] = []
    run: List[object] = []

    def flush_run() -> None:
        if any(_detag_node(node).strip() for node in run):
            blocks.append(_Block(_synthetic_paragraph(run)))
        run.clear()

    for child in list(container.children):
        if isinstance(child, Tag) and child.name in BLOCK_TAGS:
            flush_run()
            if detag(child).strip():
                blocks.append(_Block(child))
        elif isinstance(child, Tag) and child.find(list(BLOCK_TAGS)) is not None:
            flush_run()
            blocks.extend(collect_blocks(child))
        else:
            run.append(child)
    flush_run()
    return blocks


def _detag_node(node: object) -> str:
    if is_text(node):
        return str(node)
    if isinstance(node, Tag):
        return detag(node)
    return ""


def _slice_markup(node: Tag, start: int, end: int, offset: int = 0) -> Tuple[str, int]:
    """Render the part of *node*'s children covering text range [start, end)."""

    parts: List[str] = []
    for child in node.children:
        if is_text(child):
            value = str(child)
            low = max(start - offset, 0)
            high = min(end - offset, len(value))
            if low < high:
                parts.append(html.escape(value[low:high], quote=False))
            offset += len(value)
        elif isinstance(child, Tag):
            if child.name == "br":
                if start < offset < end:
                    parts.append("<br>")
                continue
            inner, offset = _slice_markup(child, start, end, offset)
            if not inner:
                continue
            if child.name in ALLOWED_TAGS:
                parts.append(f"{open_tag(child)}{inner}{close_tag(child)}")
            else:
                parts.append(inner)
    return "".join(parts), offset


def _pack_spans(spans: Sequence[Span], limit: int) -> List[Span]:
    packed: List[Span] = []
    current: Optional[List[int]] = None
    for start, end in spans:
        if current is None:
            current = [start, end]
        elif end - current[0] > limit:
            packed.append((current[0], current[1]))
            current = [start, end]
        else:
            current[1] = end
    if current is not None:
        packed.append((current[0], current[1]))
    return packed


class Chunker:
    """Split chapters into pages of at most ``max_chunk_size`` characters."""

    def __init__(self, max_chunk_size: int) -> None:
        if max_chunk_size <= 0:
            raise ValueError("max_chunk_size must be positive")
        self.max_chunk_size = max_chunk_size

    # Public API -----------------------------------------------------------------
    def chunk(self, chapters: Sequence[Chapter]) -> ChunkResult:
        pages: List[Page] = []
        entries: List[ChapterEntry] = []

        for chapter in chapters:
            chapter_pages = self.chunk_chapter(chapter, first_id=len(pages) + 1)
            if not chapter_pages:
                logger.debug("Chapter %d produced no pages", chapter.source_index)
                continue
            start = len(pages)
            pages.extend(chapter_pages)
            if not chapter.is_metadata:
                entries.append(
                    ChapterEntry(
                        display_title=chapter.title,
                        start_page_index=start,
                        end_page_index=len(pages) - 1,
                        chapter_number=chapter.chapter_number,
                    )
                )

        if not pages:
            raise NoExtractableContentError("No readable content found in any chapter")

        numbers = [entry.chapter_number for entry in entries if entry.chapter_number]
        total_chapters = max(numbers) if numbers else len(entries)
        logger.info(
            "Prepared %d pages from %d chapters (max_chunk_size=%d, total_chapters=%d)",
            len(pages),
            len(chapters),
            self.max_chunk_size,
            total_chapters,
        )
        return ChunkResult(
            pages=tuple(pages),
            chapter_index=ChapterIndex(entries=tuple(entries), total_chapters=total_chapters),
        )

    def chunk_chapter(self, chapter: Chapter, first_id: int = 1) -> List[Page]:
        fragment = parse_fragment(chapter.normalized_content)
        if not detag(fragment).strip():
            return []

        texts: List[str] = []
        buffer: List[str] = []
        buffered = 0
        for block in collect_blocks(fragment):
            for markup, length in self._fit(block):
                if buffer and buffered + length > self.max_chunk_size:
                    texts.append("".join(buffer))
                    buffer = []
                    buffered = 0
                buffer.append(markup)
                buffered += length
        if buffer:
            texts.append("".join(buffer))

        title = None if chapter.is_metadata else chapter.title
        return [
            Page(
                id=first_id + offset,
                title=title if offset == 0 else None,
                source_chapter_index=chapter.source_index,
                chapter_number=chapter.chapter_number,
                chapter_display_title=chapter.title,
                text=text,
            )
            for offset, text in enumerate(texts)
        ]

    # Oversized blocks ---------------------------------------------------------------
    def _fit(self, block: _Block) -> Iterator[Tuple[str, int]]:
        length = len(block.text)
        if length <= self.max_chunk_size:
            yield block.markup(), length
            return
        if block.has_nested_blocks():
            wrappers = block.wrappers + (block.node,)
            for child in collect_blocks(block.node):
                yield from self._fit(_Block(child.node, wrappers + child.wrappers))
            return
        yield from self._split(block)

    def _split(self, block: _Block) -> Iterator[Tuple[str, int]]:
        text = block.text
        node = block.node
        for start, end in self.fragment_spans(text):
            inner, _ = _slice_markup(node, start, end)
            yield block.markup(f"{open_tag(node)}{inner}{close_tag(node)}"), end - start

    def fragment_spans(self, text: str) -> List[Span]:
        """Pack sentences, falling back to words for any still-oversized run."""

        limit = self.max_chunk_size
        sentences = [trim_span(text, span) for span in sentence_spans(text)]
        sentences = [span for span in sentences if span[0] < span[1]]
        fragments: List[Span] = []
        for start, end in _pack_spans(sentences, limit):
            if end - start > limit:
                fragments.extend(_pack_spans(word_spans(text, start, end), limit))
            else:
                fragments.append((start, end))
        return fragments


def chunk(chapters: Sequence[Chapter], max_chunk_size: int) -> ChunkResult:
    """Chunk *chapters* into pages of at most *max_chunk_size* characters."""

    return Chunker(max_chunk_size).chunk(chapters)


__all__ = [
    "ChapterEntry",
    "ChapterIndex",
    "ChunkResult",
    "Chunker",
    "Page",
    "chunk",
    "collect_blocks",
]

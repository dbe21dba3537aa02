"""Chapter classification: front matter detection, numbering and titles."""

from __future__ import annotations

import logging
import re
from typing import Iterable, List, Optional

from .ingest import Chapter, SourceChapter
from .text.markup import collapse_whitespace, detag, parse_fragment
from .text.normalize import MarkupNormalizer

logger = logging.getLogger(__name__)

METADATA_PHRASES = (
    "table of contents",
    "contents",
    "toc",
    "project gutenberg",
    "ebook",
    "copyright",
    "license",
)
PATH_MARKERS = ("title", "cover", "copyright")
IDENTIFIER_MARKERS = ("cover", "header")

# More links than this on one page usually means a navigation document.
NAVIGATION_LINK_THRESHOLD = 10

_CHAPTER_IDENTIFIER = re.compile(r"chapter[_-]?(\d+)", re.I)
_GENERATED_TITLE = re.compile(r"^(chapter|ch)\s*\d+$", re.I)


def is_metadata_chapter(
    text: str,
    *,
    link_count: int = 0,
    path: Optional[str] = None,
    identifier: Optional[str] = None,
) -> bool:
    """Return ``True`` when a chapter looks like a TOC or publisher front matter."""

    lowered = text.lower()
    if any(phrase in lowered for phrase in METADATA_PHRASES):
        return True
    if link_count > NAVIGATION_LINK_THRESHOLD:
        return True
    lowered_path = (path or "").lower()
    if any(marker in lowered_path for marker in PATH_MARKERS):
        return True
    lowered_id = (identifier or "").lower()
    return any(marker in lowered_id for marker in IDENTIFIER_MARKERS)


def chapter_number_from_identifier(identifier: Optional[str]) -> Optional[int]:
    if not identifier:
        return None
    match = _CHAPTER_IDENTIFIER.search(identifier)
    if match is None:
        return None
    return int(match.group(1))


def display_title(label: Optional[str]) -> Optional[str]:
    """Keep *label* unless it is empty or an auto-generated "Chapter N"."""

    if not label:
        return None
    title = collapse_whitespace(label).strip()
    if not title or _GENERATED_TITLE.match(title):
        return None
    return title


class ChapterClassifier:
    """Classify source chapters one at a time, in reading order.

    The sequential chapter counter is shared across calls, so a classifier
    instance should see a whole book's chapters in order.
    """

    def __init__(self, normalizer: Optional[MarkupNormalizer] = None) -> None:
        self.normalizer = normalizer or MarkupNormalizer()
        self._counter = 0

    def reset(self) -> None:
        self._counter = 0

    def classify(self, source: SourceChapter) -> Optional[Chapter]:
        content = self.normalizer.normalize(source.root)
        fragment = parse_fragment(content)
        text = detag(fragment)
        if not text.strip():
            logger.debug("Skipping chapter %d without text", source.index)
            return None

        metadata = is_metadata_chapter(
            text,
            link_count=len(fragment.find_all("a")),
            path=source.path,
            identifier=source.identifier,
        )
        if metadata:
            logger.debug("Chapter %d classified as metadata (%s)", source.index, source.path)
            return Chapter(
                title=None,
                normalized_content=content,
                is_metadata=True,
                source_index=source.index,
            )

        explicit = chapter_number_from_identifier(source.identifier)
        if explicit is None:
            explicit = source.number_hint
        if explicit is not None:
            number = explicit
            # The counter tracks the highest number handed out so far.
            self._counter = max(self._counter, explicit)
        else:
            self._counter += 1
            number = self._counter

        return Chapter(
            title=display_title(source.label),
            normalized_content=content,
            is_metadata=False,
            source_index=source.index,
            explicit_chapter_number=explicit,
            chapter_number=number,
        )


def classify_chapters(
    sources: Iterable[SourceChapter], normalizer: Optional[MarkupNormalizer] = None
) -> List[Chapter]:
    """Normalize and classify *sources*, skipping chapters that fail."""

    classifier = ChapterClassifier(normalizer)
    chapters: List[Chapter] = []
    for source in sources:
        try:
            chapter = classifier.classify(source)
        except Exception as exc:  # noqa: BLE001 - per-chapter failures are non-fatal
            logger.warning("Skipping chapter %d: %s", source.index, exc)
            continue
        if chapter is not None:
            chapters.append(chapter)
    logger.debug(
        "Classified %d chapters (%d metadata)",
        len(chapters),
        sum(1 for chapter in chapters if chapter.is_metadata),
    )
    return chapters


__all__ = [
    "ChapterClassifier",
    "chapter_number_from_identifier",
    "classify_chapters",
    "display_title",
    "is_metadata_chapter",
]

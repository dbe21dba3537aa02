"""Content ingestion helpers for the PageUp reader."""

from dataclasses import dataclass
from typing import Optional, Union

from bs4 import Tag


@dataclass
class SourceChapter:
    """A chapter as delivered by a content source, before normalization."""

    index: int
    root: Union[Tag, str]
    label: Optional[str] = None
    identifier: Optional[str] = None
    path: Optional[str] = None
    number_hint: Optional[int] = None


@dataclass(frozen=True)
class Chapter:
    """A normalized, classified chapter ready for chunking."""

    title: Optional[str]
    normalized_content: str
    is_metadata: bool
    source_index: int
    explicit_chapter_number: Optional[int] = None
    chapter_number: Optional[int] = None


__all__ = ["Chapter", "SourceChapter"]

"""Core package for the PageUp reader."""

from __future__ import annotations

__version__ = "0.1.0"

from .chunker import ChapterEntry, ChapterIndex, ChunkResult, Chunker, Page, chunk
from .errors import InvalidDensityError, NoExtractableContentError, PageUpError, UnsupportedFormatError
from .reader import DENSITY_PRESETS, ReaderOptions, ReaderSession, load_book
from .reflow import MatchStrategy, RemapResult, remap

__all__ = [
    "ChapterEntry",
    "ChapterIndex",
    "ChunkResult",
    "Chunker",
    "DENSITY_PRESETS",
    "InvalidDensityError",
    "MatchStrategy",
    "NoExtractableContentError",
    "Page",
    "PageUpError",
    "ReaderOptions",
    "ReaderSession",
    "RemapResult",
    "UnsupportedFormatError",
    "chunk",
    "load_book",
    "remap",
]

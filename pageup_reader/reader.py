"""Reading session orchestration shared by the CLI and any presentation layer.

A :class:`ReaderSession` owns everything that changes while a book is open:
the classified chapters, the current page list and chapter index, the
pagination machine, the persisted position and the analytics tracker. The
core modules it drives (classifier, chunker, reflow mapper) stay pure.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
import logging
import os
from typing import Callable, Dict, List, Optional, Sequence, Tuple, Union

from .analytics import ReadingSession, SessionTracker
from .chunker import ChapterIndex, ChunkResult, Page, chunk
from .classify import classify_chapters
from .errors import InvalidDensityError, UnsupportedFormatError
from .ingest import Chapter, SourceChapter
from .ingest.epub_loader import EpubLoader
from .ingest.html_loader import HtmlLoader
from .pagination import Paginator
from .reflow import RemapResult, remap
from .storage import PositionStore

__all__ = [
    "BULK_LOAD_CHUNK_SIZE",
    "DEFAULT_DENSITY",
    "DENSITY_PRESETS",
    "ReaderOptions",
    "ReaderSession",
    "book_identifier",
    "chunk_size_for_density",
    "load_book",
]

logger = logging.getLogger(__name__)

DENSITY_PRESETS: Dict[str, int] = {
    "less": 300,
    "medium": 500,
    "more": 800,
}
DEFAULT_DENSITY = "medium"
BULK_LOAD_CHUNK_SIZE = 400

SUPPORTED_SUFFIXES = (".epub", ".html", ".htm")


def chunk_size_for_density(density: str) -> int:
    try:
        return DENSITY_PRESETS[density]
    except KeyError:
        raise InvalidDensityError(density) from None


def book_identifier(path: Union[str, Path]) -> str:
    """Build a stable key for *path* from its name, size and modification time."""

    path = Path(path)
    stat = path.stat()
    return f"{path.name}-{stat.st_size}-{int(stat.st_mtime * 1000)}"


def load_book(path: Union[str, Path]) -> List[SourceChapter]:
    """Load the source chapters of an EPUB or HTML file."""

    path = Path(path)
    suffix = path.suffix.lower()
    if suffix == ".epub":
        return EpubLoader().load(path)
    if suffix in (".html", ".htm"):
        return HtmlLoader().load(path)
    raise UnsupportedFormatError(
        f"Unsupported input format {suffix or '(none)'!r}; expected one of {', '.join(SUPPORTED_SUFFIXES)}"
    )


@dataclass
class ReaderOptions:
    """Options that control how a book is opened and tracked."""

    density: Optional[str] = None
    store_dir: Optional[Path] = None
    restore_position: bool = True
    track_analytics: bool = True
    bulk_load: bool = False

    def __post_init__(self) -> None:
        if self.density is None:
            self.density = os.getenv("PAGEUP_DENSITY") or None
        if self.density is not None and self.density not in DENSITY_PRESETS:
            raise InvalidDensityError(self.density)
        if self.store_dir is not None:
            self.store_dir = Path(self.store_dir)


@dataclass(frozen=True)
class _BookState:
    pages: Tuple[Page, ...]
    chapter_index: ChapterIndex


class ReaderSession:
    """An open book plus the reader's position in it."""

    def __init__(
        self,
        options: Optional[ReaderOptions] = None,
        *,
        store: Optional[PositionStore] = None,
        clock: Optional[Callable[[], float]] = None,
        tracker: Optional[SessionTracker] = None,
    ) -> None:
        self.options = options or ReaderOptions()
        self.store = store or PositionStore(self.options.store_dir)
        self._clock = clock
        self.density = self._resolve_density()
        self.tracker: Optional[SessionTracker] = None
        if self.options.track_analytics:
            self.tracker = tracker or SessionTracker(density=self.density)
        self.book_identifier: Optional[str] = None
        self.pagination: Optional[Paginator] = None
        self.chunk_size: Optional[int] = None
        self._chapters: Tuple[Chapter, ...] = ()
        self._state: Optional[_BookState] = None

    # Opening -----------------------------------------------------------------------
    def open(self, path: Union[str, Path]) -> ChunkResult:
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Input file does not exist: {path}")
        sources = load_book(path)
        logger.debug("Loaded %d source chapters from %s", len(sources), path)
        return self.open_chapters(sources, book_identifier(path))

    def open_chapters(
        self,
        sources: Sequence[SourceChapter],
        book_identifier: str,
        chunk_size: Optional[int] = None,
    ) -> ChunkResult:
        chapters = tuple(classify_chapters(sources))
        size = chunk_size or self._initial_chunk_size()
        result = chunk(chapters, size)

        index = self._restored_index(book_identifier, len(result.pages))
        self.book_identifier = book_identifier
        self.chunk_size = size
        self._chapters = chapters
        self._state = _BookState(pages=result.pages, chapter_index=result.chapter_index)

        if self.pagination is not None:
            self.pagination.remove_listener(self._on_page_change)
        paginator_options = {"clock": self._clock} if self._clock is not None else {}
        self.pagination = Paginator(len(result.pages), index, **paginator_options)
        self.pagination.add_listener(self._on_page_change)

        if self.tracker is not None:
            self.tracker.reset()
            self.tracker.start_session()
            self.tracker.start_page(index, self.density)
        logger.info(
            "Opened %s: %d pages, %d chapters, starting at page %d",
            book_identifier,
            len(result.pages),
            result.chapter_index.total_chapters,
            index + 1,
        )
        return result

    def _initial_chunk_size(self) -> int:
        if self.options.bulk_load:
            return BULK_LOAD_CHUNK_SIZE
        return chunk_size_for_density(self.density)

    # State -------------------------------------------------------------------------
    @property
    def chapters(self) -> Tuple[Chapter, ...]:
        return self._chapters

    @property
    def pages(self) -> Tuple[Page, ...]:
        return self._state.pages if self._state is not None else ()

    @property
    def chapter_index(self) -> ChapterIndex:
        return self._state.chapter_index if self._state is not None else ChapterIndex()

    @property
    def current_index(self) -> int:
        return self.pagination.current_index if self.pagination is not None else 0

    @property
    def current_page(self) -> Optional[Page]:
        pages = self.pages
        if not pages:
            return None
        return pages[self.current_index]

    def chapter_progress(self) -> Optional[Tuple[int, int]]:
        """Return ``(chapter_number, total_chapters)`` for the current page."""

        page = self.current_page
        if page is None:
            return None
        number = page.chapter_number
        if number is None:
            entry = self.chapter_index.entry_for_page(self.current_index)
            number = entry.chapter_number if entry is not None else None
        if number is None:
            return None
        return number, max(self.chapter_index.total_chapters, number)

    # Density -----------------------------------------------------------------------
    def change_density(self, density: str) -> RemapResult:
        size = chunk_size_for_density(density)
        if self._state is None or self.pagination is None:
            raise RuntimeError("No book is open")

        previous_index = self.pagination.current_index
        result = remap(self._chapters, self._state.pages, previous_index, size)
        self._state = _BookState(pages=result.pages, chapter_index=result.chapter_index)
        self.density = density
        self.chunk_size = size
        self.pagination.replace_pages(len(result.pages), result.new_index)
        if result.new_index == previous_index:
            # replace_pages only notifies listeners when the index moves.
            self._on_page_change(result.new_index)
        self.store.save_density(density)
        logger.info(
            "Density changed to %s: page %d -> %d of %d (%s)",
            density,
            previous_index + 1,
            result.new_index + 1,
            len(result.pages),
            result.strategy.value,
        )
        return result

    # Closing -----------------------------------------------------------------------
    def finish(self) -> Optional[ReadingSession]:
        """End the analytics session and store it for the open book."""

        if self.tracker is None or self.book_identifier is None:
            return None
        session = self.tracker.end_session(len(self.pages))
        self.store.save_session(self.book_identifier, session)
        self.tracker.reset()
        return session

    # Internals ---------------------------------------------------------------------
    def _resolve_density(self) -> str:
        if self.options.density is not None:
            return self.options.density
        stored = self.store.load_density()
        if stored in DENSITY_PRESETS:
            return stored
        if stored is not None:
            logger.warning("Ignoring stored density %r", stored)
        return DEFAULT_DENSITY

    def _restored_index(self, book_identifier: str, page_count: int) -> int:
        if not self.options.restore_position:
            return 0
        position = self.store.load_position()
        if position is None or position.book_identifier != book_identifier:
            return 0
        if not 0 <= position.page_index < page_count:
            logger.debug("Saved page %d is out of range, starting at 0", position.page_index)
            return 0
        return position.page_index

    def _on_page_change(self, index: int) -> None:
        if self.book_identifier is not None:
            self.store.save_position(self.book_identifier, index)
        if self.tracker is not None:
            self.tracker.start_page(index, self.density)

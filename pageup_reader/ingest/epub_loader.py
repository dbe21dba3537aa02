"""EPUB ingestion utilities."""

from __future__ import annotations

from dataclasses import dataclass
import logging
from pathlib import Path
import posixpath
import re
from typing import Dict, Iterable, List, Optional, Tuple, Union

from bs4 import BeautifulSoup
import ebooklib
from ebooklib import epub

from . import SourceChapter

LOGGER = logging.getLogger(__name__)


@dataclass
class TocEntry:
    title: str
    href: str


class EpubLoader:
    """Extract chapter trees from EPUB files in spine (reading) order."""

    def __init__(self, *, strip_empty: bool = True) -> None:
        self.strip_empty = strip_empty

    def load(self, path: Union[str, Path]) -> List[SourceChapter]:
        """Load one :class:`SourceChapter` per spine document of the EPUB at *path*."""

        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Input file does not exist: {path}")

        book = epub.read_epub(str(path))
        labels = self._toc_labels(book)
        if not labels:
            LOGGER.warning("EPUB has no explicit TOC, chapters will be untitled.")

        chapters: List[SourceChapter] = []
        for position, (idref, item) in enumerate(self._spine_items(book)):
            name = item.get_name()
            try:
                markup = item.get_content().decode("utf-8")
            except (UnicodeDecodeError, AttributeError) as exc:
                LOGGER.warning("Skipping undecodable spine item %s: %s", name, exc)
                continue
            soup = BeautifulSoup(markup, "html.parser")
            root = soup.body or soup
            if self.strip_empty and not root.get_text().strip():
                LOGGER.debug("Skipping empty spine item: %s", name)
                continue
            chapters.append(
                SourceChapter(
                    index=position,
                    root=root,
                    label=self._label_for(name, labels),
                    identifier=idref,
                    path=name,
                )
            )
        LOGGER.debug("Loaded %d spine documents from %s", len(chapters), path)
        return chapters

    # Spine -------------------------------------------------------------------------
    def _spine_items(self, book: epub.EpubBook) -> Iterable[Tuple[str, epub.EpubItem]]:
        idrefs = [entry[0] if isinstance(entry, (list, tuple)) else entry for entry in book.spine]
        if not idrefs:
            LOGGER.warning("EPUB has an empty spine, falling back to document order.")
            for item in book.get_items_of_type(ebooklib.ITEM_DOCUMENT):
                yield item.get_id(), item
            return
        for idref in idrefs:
            item = book.get_item_with_id(idref)
            if item is None:
                LOGGER.debug("Skipping spine entry without item: %s", idref)
                continue
            if item.get_type() != ebooklib.ITEM_DOCUMENT:
                LOGGER.debug("Skipping non-document spine entry: %s", idref)
                continue
            yield idref, item

    # Table of contents -------------------------------------------------------------
    def _toc_labels(self, book: epub.EpubBook) -> Dict[str, str]:
        labels: Dict[str, str] = {}
        for entry in self._flatten_toc(book.toc):
            href = entry.href.split("#", 1)[0]
            if href and entry.title and href not in labels:
                labels[href] = entry.title
        return labels

    def _label_for(self, name: str, labels: Dict[str, str]) -> Optional[str]:
        if name in labels:
            return labels[name]
        basename = posixpath.basename(name)
        for href, title in labels.items():
            if posixpath.basename(href) == basename:
                return title
        return None

    def _flatten_toc(self, toc: Iterable) -> Iterable[TocEntry]:
        for node in toc:
            if isinstance(node, (list, tuple)) and node:
                first, *rest = node
                if hasattr(first, "title") and hasattr(first, "href"):
                    yield TocEntry(title=self._safe_title(first.title), href=first.href or "")
                for child in rest:
                    yield from self._flatten_toc(child if isinstance(child, (list, tuple)) else [child])
            elif hasattr(node, "title") and hasattr(node, "href"):
                yield TocEntry(title=self._safe_title(node.title), href=node.href or "")

    def _safe_title(self, value: Union[str, bytes, None]) -> str:
        if isinstance(value, bytes):
            value = value.decode("utf-8", errors="ignore")
        return re.sub(r"\s+", " ", value or "").strip()


__all__ = ["EpubLoader", "TocEntry"]

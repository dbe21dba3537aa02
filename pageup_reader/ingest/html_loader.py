"""HTML ingestion utilities."""

from __future__ import annotations

import logging
from pathlib import Path
import re
from typing import List, Optional, Sequence, Union

from bs4 import BeautifulSoup, Tag

from . import SourceChapter

LOGGER = logging.getLogger(__name__)

MARKED_SECTION_SELECTOR = ", ".join(
    f"{tag}[{attribute}]"
    for tag in ("article", "section")
    for attribute in ("data-chapter", "data-chapter-number")
)
_CHAPTER_HEADING = re.compile(r"chapter\s+\d+|^\d+\.", re.I)


def _heading_text(node: Optional[Tag]) -> Optional[str]:
    if node is None:
        return None
    text = re.sub(r"\s+", " ", node.get_text()).strip()
    return text or None


def _parse_number(value: Union[str, Sequence[str], None]) -> Optional[int]:
    if isinstance(value, (list, tuple)):
        value = " ".join(value)
    match = re.search(r"\d+", value or "")
    return int(match.group(0)) if match else None


class HtmlLoader:
    """Split a single HTML document into chapters.

    Three strategies are tried in order: sections explicitly marked with
    ``data-chapter``, top-level "Chapter N" / "N." headings, and finally the
    whole body as one chapter.
    """

    def load(self, path: Union[str, Path]) -> List[SourceChapter]:
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Input file does not exist: {path}")
        return self.load_string(path.read_text(encoding="utf-8", errors="replace"), name=path.name)

    def load_string(self, markup: str, name: Optional[str] = None) -> List[SourceChapter]:
        soup = BeautifulSoup(markup, "html.parser")
        body = soup.body or soup
        for strategy in (self._marked_sections, self._heading_sections, self._whole_document):
            chapters = strategy(soup, body)
            if chapters:
                LOGGER.debug(
                    "Split %s into %d chapters using %s",
                    name or "document",
                    len(chapters),
                    strategy.__name__.lstrip("_"),
                )
                return chapters
        return []

    # Strategies ----------------------------------------------------------------------
    def _marked_sections(self, soup: BeautifulSoup, body: Tag) -> List[SourceChapter]:
        selected = body.select(MARKED_SECTION_SELECTOR)
        # Sections nested inside another marked section belong to their parent.
        selected_ids = {id(node) for node in selected}
        outermost = [
            node
            for node in selected
            if not any(id(parent) in selected_ids for parent in node.parents)
        ]
        chapters: List[SourceChapter] = []
        for position, node in enumerate(outermost):
            number = _parse_number(node.get("data-chapter"))
            if number is None:
                number = _parse_number(node.get("data-chapter-number"))
            if number is None:
                number = position + 1
            label = node.get("data-chapter-title") or _heading_text(node.find(["h1", "h2", "h3"]))
            chapters.append(
                SourceChapter(index=position, root=str(node), label=label, number_hint=number)
            )
        return chapters

    def _heading_sections(self, soup: BeautifulSoup, body: Tag) -> List[SourceChapter]:
        children = list(body.children)
        starts = [
            position
            for position, node in enumerate(children)
            if isinstance(node, Tag)
            and node.name in ("h1", "h2")
            and _CHAPTER_HEADING.search(_heading_text(node) or "")
        ]
        if not starts:
            return []

        chapters: List[SourceChapter] = []
        leading = children[: starts[0]]
        if "".join(node.get_text() if isinstance(node, Tag) else str(node) for node in leading).strip():
            chapters.append(SourceChapter(index=0, root=self._join(leading)))

        bounds = starts + [len(children)]
        for number, (start, end) in enumerate(zip(bounds, bounds[1:]), start=1):
            chapters.append(
                SourceChapter(
                    index=len(chapters),
                    root=self._join(children[start:end]),
                    label=_heading_text(children[start]),
                    number_hint=number,
                )
            )
        return chapters

    def _whole_document(self, soup: BeautifulSoup, body: Tag) -> List[SourceChapter]:
        if not body.get_text().strip():
            return []
        label = _heading_text(body.find("h1")) or _heading_text(soup.title)
        return [SourceChapter(index=0, root=body, label=label, number_hint=1)]

    def _join(self, nodes: Sequence[object]) -> str:
        return "".join(str(node) for node in nodes)


__all__ = ["HtmlLoader"]

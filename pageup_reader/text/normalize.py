"""Chapter markup normalization."""

from __future__ import annotations

from dataclasses import dataclass, field
import html
from typing import FrozenSet, List, Mapping, Optional, Tuple, Union

from bs4 import Tag

from .markup import (
    ALLOWED_ATTRIBUTES,
    HEADING_TAGS,
    collapse_whitespace,
    format_attributes,
    is_text,
    parse_fragment,
)


DEFAULT_DROPPED_TAGS = frozenset(
    {"script", "style", "nav", "header", "footer", "head", "title", "noscript", "template"}
)

LEGACY_EMPHASIS = {
    "i": "em",
    "b": "strong",
}

# Children that make a <div> keep its own structure instead of being
# resegmented into paragraphs.
NESTED_BLOCK_TAGS = frozenset({"p", "div", "section", "article"}) | HEADING_TAGS

# Children that end the current synthetic paragraph inside a text-only <div>.
PARAGRAPH_BREAK_TAGS = frozenset({"br", "p", "div"}) | HEADING_TAGS


@dataclass
class NormalizationOptions:
    """Configuration toggles for markup normalization."""

    dropped_tags: FrozenSet[str] = field(default_factory=lambda: DEFAULT_DROPPED_TAGS)
    preserved_attributes: Mapping[str, Tuple[str, ...]] = field(default_factory=lambda: dict(ALLOWED_ATTRIBUTES))
    map_legacy_emphasis: bool = True

    def __post_init__(self) -> None:
        for tag, names in self.preserved_attributes.items():
            extra = set(names) - set(ALLOWED_ATTRIBUTES.get(tag, ()))
            if extra:
                raise ValueError(f"Cannot preserve {sorted(extra)} on <{tag}>")


class _InlineBuffer:
    """Accumulates inline markup, inserting single spaces between text runs."""

    def __init__(self) -> None:
        self.parts: List[str] = []
        self.has_content = False
        self.space_pending = False
        self.pieces = 0

    def text(self, value: str) -> None:
        collapsed = collapse_whitespace(value)
        core = collapsed.strip()
        if not core:
            if collapsed and self.has_content:
                self.space_pending = True
            return
        if collapsed[0] == " " and self.has_content:
            self.space_pending = True
        self._flush_space()
        self.parts.append(html.escape(core, quote=False))
        self.has_content = True
        self.pieces += 1
        self.space_pending = collapsed[-1] == " "

    def open(self, markup: str) -> None:
        self._flush_space()
        self.parts.append(markup)

    def close(self, markup: str) -> None:
        self.parts.append(markup)

    def line_break(self) -> None:
        self.space_pending = False
        self.has_content = False
        self.parts.append("<br>")

    def block(self, markup: str) -> None:
        self.space_pending = False
        self.has_content = False
        self.parts.append(markup)
        self.pieces += 1

    def mark(self) -> Tuple[int, bool, bool, int]:
        return len(self.parts), self.has_content, self.space_pending, self.pieces

    def rollback(self, mark: Tuple[int, bool, bool, int]) -> None:
        size, self.has_content, self.space_pending, self.pieces = mark
        del self.parts[size:]

    def render(self) -> str:
        return "".join(self.parts).strip()

    def _flush_space(self) -> None:
        if self.space_pending and self.has_content:
            self.parts.append(" ")
        self.space_pending = False


class MarkupNormalizer:
    """Reduce an arbitrary chapter tree to the restricted page vocabulary."""

    def __init__(self, options: NormalizationOptions | None = None) -> None:
        self.options = options or NormalizationOptions()

    def normalize(self, root: Union[Tag, str, None]) -> str:
        if root is None:
            return ""
        if isinstance(root, str):
            soup = parse_fragment(root)
            root = soup.body or soup
        buffer = _InlineBuffer()
        self._emit_children(root, buffer)
        return buffer.render()

    # Tree walking ---------------------------------------------------------------
    def _emit_children(self, node: Tag, buffer: _InlineBuffer) -> None:
        for child in node.children:
            self._emit(child, buffer)

    def _emit(self, node: object, buffer: _InlineBuffer) -> None:
        if is_text(node):
            buffer.text(str(node))
            return
        if not isinstance(node, Tag):
            return
        name = (node.name or "").lower()
        if name in self.options.dropped_tags:
            return
        if name == "br":
            buffer.line_break()
        elif name == "p" or name in HEADING_TAGS:
            inner = self._normalize_inline(node)
            if inner:
                buffer.block(f"<{name}{self._attributes(node)}>{inner}</{name}>")
        elif name == "div":
            inner = self._normalize_div(node)
            if inner:
                buffer.block(f"<div{self._attributes(node)}>{inner}</div>")
        elif name in {"em", "strong"} or (
            self.options.map_legacy_emphasis and name in LEGACY_EMPHASIS
        ):
            tag = LEGACY_EMPHASIS.get(name, name)
            self._emit_wrapped(node, buffer, f"<{tag}>", f"</{tag}>")
        elif name == "span":
            attributes = self._attributes(node)
            if attributes:
                self._emit_wrapped(node, buffer, f"<span{attributes}>", "</span>")
            else:
                self._emit_children(node, buffer)
        elif name == "a":
            href = (node.get("href") or "").strip()
            if href:
                self._emit_wrapped(node, buffer, f"<a{self._attributes(node)}>", "</a>")
            else:
                self._emit_children(node, buffer)
        else:
            # section, article, main, body and anything unknown are transparent
            self._emit_children(node, buffer)

    def _attributes(self, node: Tag) -> str:
        return format_attributes(node, self.options.preserved_attributes)

    def _emit_wrapped(self, node: Tag, buffer: _InlineBuffer, opening: str, closing: str) -> None:
        mark = buffer.mark()
        buffer.open(opening)
        self._emit_children(node, buffer)
        if buffer.pieces == mark[3]:
            pending = buffer.space_pending
            buffer.rollback(mark)
            buffer.space_pending = buffer.space_pending or pending
            return
        buffer.close(closing)

    def _normalize_inline(self, node: Tag) -> str:
        buffer = _InlineBuffer()
        self._emit_children(node, buffer)
        return buffer.render()

    def _normalize_div(self, node: Tag) -> str:
        if node.find(list(NESTED_BLOCK_TAGS)) is not None:
            return self._normalize_inline(node)

        paragraphs = _InlineBuffer()
        current = _InlineBuffer()

        def finish_paragraph() -> None:
            nonlocal current
            text = current.render()
            if text:
                paragraphs.block(f"<p>{text}</p>")
            current = _InlineBuffer()

        for child in node.children:
            name = child.name.lower() if isinstance(child, Tag) and child.name else ""
            if name in PARAGRAPH_BREAK_TAGS and name not in self.options.dropped_tags:
                finish_paragraph()
                if name != "br":
                    self._emit(child, paragraphs)
            else:
                self._emit(child, current)
        finish_paragraph()
        return paragraphs.render()


def normalize_markup(root: Union[Tag, str, None], options: Optional[NormalizationOptions] = None) -> str:
    """Convenience wrapper around :class:`MarkupNormalizer`."""

    return MarkupNormalizer(options).normalize(root)


__all__ = ["MarkupNormalizer", "NormalizationOptions", "normalize_markup"]

"""Helpers for the restricted page markup vocabulary.

Pages and normalized chapters only ever contain ``p``, ``br``, ``h1``-``h6``,
``em``, ``strong``, ``span``, ``a`` and ``div``. Everything here parses that
markup with BeautifulSoup and serializes it back without letting any other tag
or attribute through.
"""

from __future__ import annotations

import html
import re
from typing import Iterable, List, Mapping, Optional, Tuple, Union

from bs4 import BeautifulSoup, NavigableString, Tag
from bs4.element import PreformattedString

HEADING_TAGS = frozenset({"h1", "h2", "h3", "h4", "h5", "h6"})
BLOCK_TAGS = frozenset({"p", "div"}) | HEADING_TAGS
INLINE_TAGS = frozenset({"em", "strong", "span", "a"})
ALLOWED_TAGS = BLOCK_TAGS | INLINE_TAGS | {"br"}

# Attributes that survive normalization, per tag.
ALLOWED_ATTRIBUTES = {
    "p": ("class", "style"),
    "div": ("class", "style"),
    "span": ("class", "style"),
    "a": ("href",),
    **{name: ("class", "style") for name in HEADING_TAGS},
}

_WHITESPACE = re.compile(r"\s+")
_SENTENCE = re.compile(r"[^.!?]*[.!?]+[\"'\)\]”’»]*\s*")
_WORD = re.compile(r"\S+")

Span = Tuple[int, int]


def parse_fragment(markup: str) -> BeautifulSoup:
    return BeautifulSoup(markup or "", "html.parser")


def is_text(node: object) -> bool:
    """Return ``True`` for character data, ignoring comments and doctypes."""

    return isinstance(node, NavigableString) and not isinstance(node, PreformattedString)


def detag(markup: Union[str, Tag]) -> str:
    """Return the de-tagged text of *markup* with entities decoded."""

    node = parse_fragment(markup) if isinstance(markup, str) else markup
    return "".join(str(piece) for piece in node.descendants if is_text(piece))


def collapse_whitespace(text: str) -> str:
    return _WHITESPACE.sub(" ", text)


def squash_whitespace(text: str) -> str:
    """Drop all whitespace so texts can be compared across split seams."""

    return _WHITESPACE.sub("", text)


def format_attributes(node: Tag, allowed_attributes: Optional[Mapping[str, Tuple[str, ...]]] = None) -> str:
    allowed = (ALLOWED_ATTRIBUTES if allowed_attributes is None else allowed_attributes).get(node.name, ())
    rendered = []
    for name in allowed:
        value = node.get(name)
        if value is None:
            continue
        if isinstance(value, (list, tuple)):
            value = " ".join(value)
        value = value.strip()
        if not value:
            continue
        rendered.append(f' {name}="{html.escape(value, quote=True)}"')
    return "".join(rendered)


def open_tag(node: Tag) -> str:
    return f"<{node.name}{format_attributes(node)}>"


def close_tag(node: Tag) -> str:
    return f"</{node.name}>"


def render_node(node: object) -> str:
    """Serialize a parsed node, keeping only the allowed vocabulary."""

    if is_text(node):
        return html.escape(str(node), quote=False)
    if not isinstance(node, Tag):
        return ""
    if node.name == "br":
        return "<br>"
    inner = render_children(node)
    if node.name not in ALLOWED_TAGS:
        return inner
    return f"{open_tag(node)}{inner}{close_tag(node)}"


def render_children(node: Tag) -> str:
    return "".join(render_node(child) for child in node.children)


def render_nodes(nodes: Iterable[object]) -> str:
    return "".join(render_node(node) for node in nodes)


def sentence_spans(text: str) -> List[Span]:
    """Split *text* into contiguous sentence spans covering all of it.

    A sentence is a run ending in ``.``, ``!`` or ``?`` plus any closing
    quotes or brackets and trailing whitespace. Unterminated trailing text
    forms the last span.
    """

    spans: List[Span] = []
    position = 0
    for match in _SENTENCE.finditer(text):
        spans.append((match.start(), match.end()))
        position = match.end()
    if position < len(text):
        spans.append((position, len(text)))
    return spans


def split_sentences(text: str) -> List[str]:
    return [text[start:end] for start, end in sentence_spans(text)]


def word_spans(text: str, start: int = 0, end: int | None = None) -> List[Span]:
    end = len(text) if end is None else end
    return [(match.start(), match.end()) for match in _WORD.finditer(text, start, end)]


def trim_span(text: str, span: Span) -> Span:
    """Shrink *span* so it neither starts nor ends with whitespace."""

    start, end = span
    while start < end and text[start].isspace():
        start += 1
    while end > start and text[end - 1].isspace():
        end -= 1
    return start, end


__all__ = [
    "ALLOWED_ATTRIBUTES",
    "ALLOWED_TAGS",
    "BLOCK_TAGS",
    "HEADING_TAGS",
    "INLINE_TAGS",
    "collapse_whitespace",
    "detag",
    "format_attributes",
    "is_text",
    "open_tag",
    "parse_fragment",
    "render_children",
    "render_node",
    "render_nodes",
    "sentence_spans",
    "split_sentences",
    "squash_whitespace",
    "trim_span",
    "word_spans",
]

"""Exception types raised by the PageUp reader."""

from __future__ import annotations


class PageUpError(Exception):
    """Base class for reader errors."""


class NoExtractableContentError(PageUpError, ValueError):
    """Raised when a chunking pass produces no pages at all."""


class InvalidDensityError(PageUpError, ValueError):
    """Raised for an unrecognised density key."""

    def __init__(self, density: object) -> None:
        super().__init__(f"Unsupported density: {density!r}")
        self.density = density


class UnsupportedFormatError(PageUpError):
    """Raised when a book file has an extension no loader understands."""


__all__ = [
    "InvalidDensityError",
    "NoExtractableContentError",
    "PageUpError",
    "UnsupportedFormatError",
]

from __future__ import annotations

import sys
from pathlib import Path

import pytest


PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))


class FakeClock:
    def __init__(self, start: float = 0.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


def paragraph(number: int, length: int = 110) -> str:
    """A single-sentence paragraph of roughly *length* characters, unique per number."""

    text = f"Paragraph {number:02d} follows the river"
    while len(text) < length - 1:
        text += " onward"
    return text[: length - 1].rstrip() + "."

from __future__ import annotations

import pytest

from conftest import FakeClock, paragraph
from pageup_reader.errors import InvalidDensityError
from pageup_reader.ingest import SourceChapter
from pageup_reader.reader import (
    BULK_LOAD_CHUNK_SIZE,
    ReaderOptions,
    ReaderSession,
    book_identifier,
    chunk_size_for_density,
)
from pageup_reader.reflow import MatchStrategy
from pageup_reader.storage import PositionStore


@pytest.fixture(autouse=True)
def _clean_environment(monkeypatch):
    monkeypatch.delenv("PAGEUP_DENSITY", raising=False)


def _sources():
    first = "".join(f"<p>{paragraph(n)}</p>" for n in range(12))
    second = "".join(f"<p>{paragraph(n)}</p>" for n in range(12, 20))
    return [
        SourceChapter(index=0, root="<p>Table of Contents</p>", identifier="toc"),
        SourceChapter(index=1, root=first, label="Upstream", identifier="chapter-1"),
        SourceChapter(index=2, root=second, label="Chapter 2", identifier="chapter-2"),
    ]


def _session(tmp_path, **options) -> ReaderSession:
    options.setdefault("store_dir", tmp_path)
    return ReaderSession(ReaderOptions(**options), clock=FakeClock())


def test_density_presets():
    assert chunk_size_for_density("less") == 300
    assert chunk_size_for_density("medium") == 500
    assert chunk_size_for_density("more") == 800
    assert BULK_LOAD_CHUNK_SIZE == 400
    with pytest.raises(InvalidDensityError):
        chunk_size_for_density("huge")


def test_options_read_density_from_environment(monkeypatch):
    monkeypatch.setenv("PAGEUP_DENSITY", "more")
    assert ReaderOptions().density == "more"

    monkeypatch.setenv("PAGEUP_DENSITY", "tiny")
    with pytest.raises(InvalidDensityError):
        ReaderOptions()


def test_open_chapters_builds_pages_and_progress(tmp_path):
    session = _session(tmp_path)

    result = session.open_chapters(_sources(), "river-1-2")

    assert session.density == "medium"
    assert session.pages == result.pages
    # 1 metadata page, 3 pages for chapter one, 2 for chapter two
    assert len(session.pages) == 6
    assert session.current_index == 0
    assert session.chapter_progress() is None
    session.pagination.jump_to(1)
    assert session.current_page.title == "Upstream"
    assert session.chapter_progress() == (1, 2)


def test_bulk_load_opens_at_the_bulk_size_until_density_changes(tmp_path):
    session = _session(tmp_path, bulk_load=True)

    session.open_chapters(_sources(), "river-1-2")

    assert session.chunk_size == BULK_LOAD_CHUNK_SIZE
    # 1 metadata page, 4 pages for chapter one, 3 for chapter two
    assert len(session.pages) == 8

    session.change_density("medium")

    assert session.chunk_size == 500
    assert len(session.pages) == 6


def test_page_changes_are_persisted_and_restored(tmp_path):
    session = _session(tmp_path)
    session.open_chapters(_sources(), "river-1-2")
    session.pagination.jump_to(4)

    assert PositionStore(tmp_path).load_position().page_index == 4

    reopened = _session(tmp_path)
    reopened.open_chapters(_sources(), "river-1-2")
    assert reopened.current_index == 4

    other_book = _session(tmp_path)
    other_book.open_chapters(_sources(), "another-book")
    assert other_book.current_index == 0

    not_restored = _session(tmp_path, restore_position=False)
    not_restored.open_chapters(_sources(), "river-1-2")
    assert not_restored.current_index == 0


def test_reopening_detaches_the_previous_paginator(tmp_path):
    session = _session(tmp_path)
    session.open_chapters(_sources(), "river-1-2")
    previous = session.pagination
    session.open_chapters(_sources(), "another-book")

    previous.jump_to(3)

    assert PositionStore(tmp_path).load_position() is None
    assert session.current_index == 0


def test_change_density_keeps_reading_position(tmp_path):
    session = _session(tmp_path)
    session.open_chapters(_sources(), "river-1-2")
    session.pagination.jump_to(2)
    session.pagination.finish_transition()
    old_page = session.current_page

    result = session.change_density("less")

    assert result.strategy is MatchStrategy.EXACT_TEXT
    assert session.density == "less"
    assert session.pages == result.pages
    assert session.current_index == result.new_index
    assert session.current_page.source_chapter_index == old_page.source_chapter_index
    assert all(len(page.plain_text) <= 300 for page in session.pages)
    store = PositionStore(tmp_path)
    assert store.load_density() == "less"
    assert store.load_position().page_index == result.new_index


def test_invalid_density_changes_nothing(tmp_path):
    session = _session(tmp_path)
    session.open_chapters(_sources(), "river-1-2")
    pages = session.pages

    with pytest.raises(InvalidDensityError):
        session.change_density("tiny")

    assert session.pages is pages
    assert session.density == "medium"


def test_change_density_requires_an_open_book(tmp_path):
    with pytest.raises(RuntimeError):
        _session(tmp_path).change_density("less")


def test_stored_density_is_used_when_not_configured(tmp_path):
    PositionStore(tmp_path).save_density("more")

    assert _session(tmp_path).density == "more"
    assert _session(tmp_path, density="less").density == "less"


def test_finish_stores_the_session(tmp_path):
    session = _session(tmp_path)
    session.open_chapters(_sources(), "river-1-2")
    session.pagination.jump_to(3)

    summary = session.finish()

    assert summary is not None
    assert summary.total_pages == len(session.pages)
    assert summary.last_page_index == 3
    assert PositionStore(tmp_path).load_sessions("river-1-2") == [summary]


def test_finish_without_analytics(tmp_path):
    session = _session(tmp_path, track_analytics=False)
    session.open_chapters(_sources(), "river-1-2")

    assert session.finish() is None


def test_open_reads_html_files(tmp_path):
    path = tmp_path / "river.html"
    body = "".join(f"<p>{paragraph(n)}</p>" for n in range(6))
    path.write_text(f"<html><head><title>River</title></head><body>{body}</body></html>", encoding="utf-8")
    session = _session(tmp_path / "store")

    result = session.open(path)

    assert session.book_identifier == book_identifier(path)
    assert session.book_identifier.startswith(f"river.html-{path.stat().st_size}-")
    assert result.pages[0].title == "River"
    assert result.chapter_index.total_chapters == 1


def test_open_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        _session(tmp_path).open(tmp_path / "nope.epub")

"""Command line interface for the PageUp reader."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import List, Optional

from . import __version__
from .chunker import ChapterIndex
from .pagination import NavigationOutcome
from .reader import BULK_LOAD_CHUNK_SIZE, DENSITY_PRESETS, ReaderOptions, ReaderSession

LOGGER = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pageup-reader",
        description="Split an EPUB or HTML book into one-screen pages and show where you are.",
    )
    densities = sorted(DENSITY_PRESETS)
    parser.add_argument("--in", dest="input_path", type=Path, required=True, help="Input EPUB/HTML file")
    parser.add_argument("--density", choices=densities, help="Text density (page size) to read at")
    parser.add_argument("--page", type=int, help="Jump to this 1-based page before printing")
    parser.add_argument(
        "--reflow",
        choices=densities,
        metavar="DENSITY",
        help="Change to this density after opening and report where the reader lands",
    )
    parser.add_argument("--toc", action="store_true", help="Print the chapter index")
    parser.add_argument("--store-dir", type=Path, help="Directory for saved position and preferences")
    parser.add_argument("--no-restore", action="store_true", help="Ignore the saved reading position")
    parser.add_argument(
        "--bulk",
        action="store_true",
        help="Open at the bulk-load page size; combine with --reflow to settle on a density",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose logging")
    parser.add_argument("-q", "--quiet", action="store_true", help="Only print warnings and errors")
    parser.add_argument("--version", action="version", version=f"pageup-reader {__version__}")
    return parser


def configure_logging(verbose: bool, quiet: bool) -> None:
    if quiet:
        level = logging.WARNING
    elif verbose:
        level = logging.DEBUG
    else:
        level = logging.INFO
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")


def create_options(namespace: argparse.Namespace) -> ReaderOptions:
    return ReaderOptions(
        density=namespace.density,
        store_dir=namespace.store_dir,
        restore_position=not namespace.no_restore,
        bulk_load=namespace.bulk,
    )


def format_toc(chapter_index: ChapterIndex) -> List[str]:
    lines = []
    for entry in chapter_index.entries:
        number = f"{entry.chapter_number:>3}" if entry.chapter_number is not None else "  -"
        title = entry.display_title or "(untitled)"
        lines.append(f"{number}  {title}  pages {entry.start_page_index + 1}-{entry.end_page_index + 1}")
    return lines


def render_current_page(session: ReaderSession) -> List[str]:
    page = session.current_page
    if page is None:
        return ["(empty book)"]
    label = "bulk" if session.chunk_size == BULK_LOAD_CHUNK_SIZE else session.density
    lines = [f"Page {session.current_index + 1} of {len(session.pages)} [{label}]"]
    progress = session.chapter_progress()
    if progress is not None:
        lines.append(f"Chapter {progress[0]} of {progress[1]}")
    if page.title:
        lines.append(page.title)
    lines.append("")
    lines.append(page.plain_text)
    return lines


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose, args.quiet)
    output: List[str] = []
    try:
        session = ReaderSession(create_options(args))
        session.open(args.input_path)

        if args.page is not None:
            outcome = session.pagination.jump_to(args.page - 1)
            session.pagination.finish_transition()
            if outcome is NavigationOutcome.IGNORED and args.page - 1 != session.current_index:
                LOGGER.warning("Page %d is out of range (1-%d)", args.page, len(session.pages))

        if args.reflow:
            result = session.change_density(args.reflow)
            output.append(
                f"Reflowed to {args.reflow}: now on page {result.new_index + 1} of "
                f"{len(result.pages)} (matched by {result.strategy.value})"
            )

        if args.toc:
            output.extend(format_toc(session.chapter_index))
            output.append("")

        output.extend(render_current_page(session))
        session.finish()
    except Exception as exc:  # pragma: no cover - CLI safety net
        LOGGER.error(str(exc))
        return 1

    print("\n".join(output))
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())

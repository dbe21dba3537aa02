"""JSON persistence for reading position, density preference and sessions."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
import hashlib
import json
import logging
import os
import time
from typing import Any, List, Optional

from .analytics import ReadingSession

logger = logging.getLogger(__name__)

POSITION_FILE = "reading-position.json"
DENSITY_FILE = "text-density.json"
ANALYTICS_DIR = "analytics"


def default_store_dir() -> Path:
    return Path(os.getenv("PAGEUP_HOME", Path.home() / ".cache" / "pageup_reader"))


@dataclass
class ReadingPosition:
    book_identifier: str
    page_index: int
    timestamp: float


class PositionStore:
    """Keep the last reading position and preferences under ``directory``."""

    def __init__(self, directory: Optional[Path] = None) -> None:
        self.directory = Path(directory) if directory is not None else default_store_dir()

    # Reading position ------------------------------------------------------------
    def save_position(self, book_identifier: str, page_index: int) -> ReadingPosition:
        position = ReadingPosition(
            book_identifier=book_identifier,
            page_index=page_index,
            timestamp=time.time(),
        )
        self._write(
            self.directory / POSITION_FILE,
            {
                "book_identifier": position.book_identifier,
                "page_index": position.page_index,
                "timestamp": position.timestamp,
            },
        )
        return position

    def load_position(self) -> Optional[ReadingPosition]:
        data = self._read(self.directory / POSITION_FILE)
        if not isinstance(data, dict):
            return None
        try:
            return ReadingPosition(
                book_identifier=str(data["book_identifier"]),
                page_index=int(data["page_index"]),
                timestamp=float(data.get("timestamp", 0.0)),
            )
        except (KeyError, TypeError, ValueError):
            logger.warning("Ignoring malformed reading position in %s", self.directory / POSITION_FILE)
            return None

    def clear_position(self) -> None:
        path = self.directory / POSITION_FILE
        if path.exists():
            path.unlink()

    # Density preference ------------------------------------------------------------
    def save_density(self, density: str) -> None:
        self._write(self.directory / DENSITY_FILE, {"density": density})

    def load_density(self) -> Optional[str]:
        data = self._read(self.directory / DENSITY_FILE)
        if isinstance(data, dict) and isinstance(data.get("density"), str):
            return data["density"]
        return None

    # Sessions ------------------------------------------------------------------------
    def save_session(self, book_identifier: str, session: ReadingSession) -> Path:
        path = self._session_path(book_identifier)
        sessions = [entry.to_dict() for entry in self.load_sessions(book_identifier)]
        sessions.append(session.to_dict())
        self._write(path, {"book_identifier": book_identifier, "sessions": sessions})
        logger.debug("Stored session %s for %s", session.session_id, book_identifier)
        return path

    def load_sessions(self, book_identifier: str) -> List[ReadingSession]:
        data = self._read(self._session_path(book_identifier))
        if not isinstance(data, dict):
            return []
        sessions: List[ReadingSession] = []
        for entry in data.get("sessions", []):
            try:
                sessions.append(ReadingSession.from_dict(entry))
            except (TypeError, AttributeError):
                logger.warning("Skipping malformed session record for %s", book_identifier)
        return sessions

    # Helpers -------------------------------------------------------------------------
    def _session_path(self, book_identifier: str) -> Path:
        key = hashlib.sha256(book_identifier.encode("utf-8")).hexdigest()
        return self.directory / ANALYTICS_DIR / f"{key}.json"

    def _write(self, path: Path, payload: Any) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(payload, indent=2), encoding="utf-8")

    def _read(self, path: Path) -> Any:
        if not path.exists():
            return None
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            logger.warning("Ignoring corrupt store file %s: %s", path, exc)
            return None


__all__ = ["PositionStore", "ReadingPosition", "default_store_dir"]

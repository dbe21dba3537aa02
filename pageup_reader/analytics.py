"""Local reading-session analytics."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
import logging
import math
import time
import uuid
from typing import Any, Callable, Dict, List, Mapping, Optional, Set

logger = logging.getLogger(__name__)

# Seconds a page must stay on screen to count as read.
READ_THRESHOLD = 2.0
DEFAULT_DENSITY = "medium"

Clock = Callable[[], float]


def _round_seconds(value: float) -> int:
    return int(math.floor(value + 0.5))


def _isoformat(timestamp: float) -> str:
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).isoformat().replace("+00:00", "Z")


@dataclass
class _PageVisit:
    page_index: int
    density: str
    started: float
    ended: Optional[float] = None

    @property
    def duration(self) -> float:
        return 0.0 if self.ended is None else self.ended - self.started


@dataclass
class ReadingSession:
    """Summary of one reading session."""

    session_id: str
    session_start: str
    session_end: str
    total_pages_read: int
    last_page_index: int
    total_pages: int
    progress_percentage: float
    average_seconds_per_page: int
    total_reading_seconds: int
    last_density: str
    seconds_per_density: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ReadingSession":
        known = {name: data[name] for name in cls.__dataclass_fields__ if name in data}
        return cls(**known)


def progress_percentage(last_page_index: int, total_pages: int) -> float:
    if total_pages > 1:
        return round(last_page_index / (total_pages - 1) * 100, 2)
    return 100.0 if total_pages == 1 else 0.0


class SessionTracker:
    """Record which pages were shown, for how long, and at which density."""

    def __init__(
        self,
        *,
        clock: Optional[Clock] = None,
        read_threshold: float = READ_THRESHOLD,
        density: str = DEFAULT_DENSITY,
    ) -> None:
        self._clock = clock or time.time
        self.read_threshold = read_threshold
        self._initial_density = density
        self.reset()

    def reset(self) -> None:
        self.session_id = f"session_{int(self._clock() * 1000)}_{uuid.uuid4().hex[:9]}"
        self.session_started: Optional[float] = None
        self.density = self._initial_density
        self._visits: List[_PageVisit] = []
        self._pages_read: Set[int] = set()
        self._density_seconds: Dict[str, float] = {}
        self._density_started: Optional[float] = None

    @property
    def pages_read(self) -> Set[int]:
        return set(self._pages_read)

    def start_session(self) -> None:
        now = self._clock()
        self.session_started = now
        self._density_started = now

    def start_page(self, page_index: int, density: str) -> None:
        now = self._clock()
        self._close_visit(now)
        if density != self.density:
            self._close_density(now)
            self.density = density
            self._density_started = now
        self._visits.append(_PageVisit(page_index=page_index, density=density, started=now))

    def end_session(self, total_pages: int) -> ReadingSession:
        now = self._clock()
        self._close_visit(now)
        self._close_density(now)

        durations = [visit.duration for visit in self._visits if visit.duration > 0]
        total = sum(durations)
        last_page_index = self._visits[-1].page_index if self._visits else 0
        session = ReadingSession(
            session_id=self.session_id,
            session_start=_isoformat(self.session_started if self.session_started is not None else now),
            session_end=_isoformat(now),
            total_pages_read=len(self._pages_read),
            last_page_index=last_page_index,
            total_pages=total_pages,
            progress_percentage=progress_percentage(last_page_index, total_pages),
            average_seconds_per_page=_round_seconds(total / len(durations)) if durations else 0,
            total_reading_seconds=_round_seconds(total),
            last_density=self.density,
            seconds_per_density={
                key: _round_seconds(value) for key, value in sorted(self._density_seconds.items())
            },
        )
        logger.debug(
            "Session %s: %d pages read, %d seconds",
            session.session_id,
            session.total_pages_read,
            session.total_reading_seconds,
        )
        return session

    def _close_visit(self, now: float) -> None:
        if not self._visits or self._visits[-1].ended is not None:
            return
        visit = self._visits[-1]
        visit.ended = now
        if visit.duration >= self.read_threshold:
            self._pages_read.add(visit.page_index)

    def _close_density(self, now: float) -> None:
        if self._density_started is None:
            return
        elapsed = now - self._density_started
        self._density_seconds[self.density] = self._density_seconds.get(self.density, 0.0) + elapsed
        self._density_started = None


__all__ = ["READ_THRESHOLD", "ReadingSession", "SessionTracker", "progress_percentage"]

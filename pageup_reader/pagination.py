"""Swipe-driven page navigation as a small state machine.

The machine is driven by discrete events (drag start, drag movement, drag
release, keyboard-style next/previous and direct jumps). A successful move
enters a fixed-length transition during which further events are ignored.
Time is read from an injectable monotonic clock and transitions settle lazily
the next time the machine is touched, so no timers or threads are involved.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import logging
import time
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)

SWIPE_THRESHOLD = 40.0
TRANSITION_DURATION = 0.3

Clock = Callable[[], float]
Listener = Callable[[int], None]


class PaginationState(str, Enum):
    IDLE = "idle"
    DRAGGING = "dragging"
    TRANSITIONING = "transitioning"


class NavigationOutcome(str, Enum):
    MOVED = "moved"
    SNAPPED_BACK = "snapped_back"
    IGNORED = "ignored"


@dataclass(frozen=True)
class PaginationCursor:
    current_index: int
    is_transitioning: bool


class Paginator:
    """Track the current page of a book with ``page_count`` pages."""

    def __init__(
        self,
        page_count: int,
        index: int = 0,
        *,
        threshold: float = SWIPE_THRESHOLD,
        duration: float = TRANSITION_DURATION,
        clock: Optional[Clock] = None,
    ) -> None:
        if threshold < 0:
            raise ValueError("threshold must be non-negative")
        if duration < 0:
            raise ValueError("duration must be non-negative")
        self.threshold = threshold
        self.duration = duration
        self._clock = clock or time.monotonic
        self._listeners: List[Listener] = []
        self._page_count = max(page_count, 0)
        self._index = self._clamp(index)
        self._state = PaginationState.IDLE
        self._offset = 0.0
        self._from_index = self._index
        self._transition_started = 0.0

    # Introspection ---------------------------------------------------------------
    @property
    def page_count(self) -> int:
        return self._page_count

    @property
    def state(self) -> PaginationState:
        self.poll()
        return self._state

    @property
    def offset(self) -> float:
        return self._offset

    @property
    def current_index(self) -> int:
        # While transitioning the destination is already the current page.
        self.poll()
        return self._index

    @property
    def cursor(self) -> PaginationCursor:
        self.poll()
        return PaginationCursor(
            current_index=self._index,
            is_transitioning=self._state is PaginationState.TRANSITIONING,
        )

    def add_listener(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        self._listeners.remove(listener)

    # Time ------------------------------------------------------------------------
    def poll(self) -> PaginationState:
        """Settle a finished transition and return the resulting state."""

        if (
            self._state is PaginationState.TRANSITIONING
            and self._clock() - self._transition_started >= self.duration
        ):
            self._state = PaginationState.IDLE
        return self._state

    def finish_transition(self) -> None:
        if self._state is PaginationState.TRANSITIONING:
            self._state = PaginationState.IDLE

    # Gestures --------------------------------------------------------------------
    def begin_drag(self) -> NavigationOutcome:
        if self.poll() is not PaginationState.IDLE:
            return NavigationOutcome.IGNORED
        self._state = PaginationState.DRAGGING
        self._offset = 0.0
        return NavigationOutcome.MOVED

    def drag_to(self, delta: float) -> NavigationOutcome:
        """Add *delta* to the running drag offset."""

        if self.poll() is not PaginationState.DRAGGING:
            return NavigationOutcome.IGNORED
        self._offset += delta
        return NavigationOutcome.MOVED

    def end_drag(self) -> NavigationOutcome:
        if self.poll() is not PaginationState.DRAGGING:
            return NavigationOutcome.IGNORED
        offset = self._offset
        self._offset = 0.0
        self._state = PaginationState.IDLE
        if abs(offset) <= self.threshold:
            return NavigationOutcome.SNAPPED_BACK
        # Dragging upwards (negative offset) reveals the next page.
        step = 1 if offset < 0 else -1
        return self._step(step)

    def cancel_drag(self) -> None:
        if self._state is PaginationState.DRAGGING:
            self._state = PaginationState.IDLE
            self._offset = 0.0

    # Keyboard-style navigation -----------------------------------------------------
    def go_next(self) -> NavigationOutcome:
        if self.poll() is not PaginationState.IDLE:
            return NavigationOutcome.IGNORED
        return self._step(1)

    def go_previous(self) -> NavigationOutcome:
        if self.poll() is not PaginationState.IDLE:
            return NavigationOutcome.IGNORED
        return self._step(-1)

    def jump_to(self, index: int) -> NavigationOutcome:
        if self.poll() is not PaginationState.IDLE:
            return NavigationOutcome.IGNORED
        if not 0 <= index < self._page_count or index == self._index:
            return NavigationOutcome.IGNORED
        self._start_transition(index)
        return NavigationOutcome.MOVED

    # Content changes ------------------------------------------------------------------
    def replace_pages(self, page_count: int, index: int) -> None:
        """Swap in a new page list size, e.g. after a reflow."""

        previous = self._index
        self._page_count = max(page_count, 0)
        self._index = self._clamp(index)
        self._from_index = self._index
        self._state = PaginationState.IDLE
        self._offset = 0.0
        if self._index != previous:
            self._notify()

    # Internals -----------------------------------------------------------------------
    def _step(self, step: int) -> NavigationOutcome:
        target = self._index + step
        if not 0 <= target < self._page_count:
            return NavigationOutcome.SNAPPED_BACK
        self._start_transition(target)
        return NavigationOutcome.MOVED

    def _start_transition(self, target: int) -> None:
        self._from_index = self._index
        self._index = target
        self._state = PaginationState.TRANSITIONING
        self._transition_started = self._clock()
        logger.debug("Page %d -> %d", self._from_index, target)
        self._notify()

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self._index)

    def _clamp(self, index: int) -> int:
        if self._page_count == 0:
            return 0
        return max(0, min(index, self._page_count - 1))


__all__ = [
    "NavigationOutcome",
    "PaginationCursor",
    "PaginationState",
    "Paginator",
    "SWIPE_THRESHOLD",
    "TRANSITION_DURATION",
]

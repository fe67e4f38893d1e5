"""Time-windowed coalescing of aggregated analysis events."""

from __future__ import annotations

from enum import Enum
from typing import Callable, Optional

from .aggregator import AggregatedInfoEvent, AnalysisEvent, BestMoveEvent

DEFAULT_WINDOW_MS = 500


class CoalescerState(Enum):
    IDLE = "idle"
    ACCUMULATING = "accumulating"


class EventCoalescer:
    """Emits at most one info event per window, plus every best-move event.

    The window is a deadline rather than a timer thread: whoever owns the
    coalescer calls :meth:`poll` with the current time. Within a window only
    the deepest event is kept; events are never merged.
    """

    def __init__(
        self,
        emit: Callable[[AnalysisEvent], None],
        *,
        window_ms: int = DEFAULT_WINDOW_MS,
    ) -> None:
        if window_ms <= 0:
            raise ValueError("Coalescing window must be positive")
        self._emit = emit
        self._window_s = window_ms / 1000.0
        self._held: Optional[AggregatedInfoEvent] = None
        self._deadline: Optional[float] = None

    @property
    def state(self) -> CoalescerState:
        if self._deadline is None:
            return CoalescerState.IDLE
        return CoalescerState.ACCUMULATING

    @property
    def window_s(self) -> float:
        return self._window_s

    @property
    def held(self) -> Optional[AggregatedInfoEvent]:
        return self._held

    def offer_info(self, event: AggregatedInfoEvent, now: float) -> None:
        if self._deadline is None:
            self._deadline = now + self._window_s
        if self._held is None or event.depth >= self._held.depth:
            self._held = event

    def offer_bestmove(self, event: BestMoveEvent) -> None:
        self._flush()
        self._emit(event)

    def poll(self, now: float) -> bool:
        """Flush the held event when the window has elapsed."""
        if self._deadline is None or now < self._deadline:
            return False
        self._flush()
        return True

    def time_until_flush(self, now: float) -> Optional[float]:
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - now)

    def discard(self) -> None:
        self._held = None
        self._deadline = None

    def _flush(self) -> None:
        held = self._held
        self.discard()
        if held is not None:
            self._emit(held)
